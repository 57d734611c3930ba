import numpy as np
import pytest

from MenuModel.errors import ThresholdOutOfRange
from MenuModel.menu import Menu
from MenuModel.registry import Binning
from RateFitting.rate_curve import ChannelDescription, MenuRateCurves, RateCurve
from RateFitting.sample import Sample
from triggers import DoubleJet_v0, HT_AD_v0, HTT_v0, SingleAD_v0


def _ad_description() -> ChannelDescription:
    return ChannelDescription.from_channel(SingleAD_v0())


def _curve(rates, errors=None, lo=0.0, hi=60.0) -> RateCurve:
    return RateCurve.from_arrays(_ad_description(), "threshold1", (), lo, hi, rates, errors)


def test_find_threshold_interpolates_inside_the_crossing_bin() -> None:
    curve = _curve([10.0, 8.0, 6.0, 4.0, 2.0, 0.0])
    assert curve.bin_width == pytest.approx(10.0)
    assert curve.find_threshold(7.0) == pytest.approx(15.0)
    assert curve.find_threshold(6.0) == pytest.approx(20.0)
    assert curve.find_threshold(0.0) == pytest.approx(50.0)


def test_rate_at_or_above_first_bin_returns_lower_edge() -> None:
    curve = _curve([10.0, 8.0, 6.0, 4.0, 2.0, 0.0], lo=5.0, hi=65.0)
    assert curve.find_threshold(10.0) == 5.0
    assert curve.find_threshold(1e9) == 5.0


def test_rate_below_sampled_range_raises() -> None:
    with pytest.raises(ThresholdOutOfRange):
        _curve([10.0, 8.0, 6.0, 4.0, 2.0, 0.0]).find_threshold(-1.0)
    with pytest.raises(ThresholdOutOfRange) as excinfo:
        _curve([10.0, 8.0, 6.0, 4.0, 2.0]).find_threshold(1.0)
    assert excinfo.value.lowest == 2.0
    assert excinfo.value.highest == 10.0


def test_plateaus_pick_the_lowest_threshold() -> None:
    curve = _curve([10.0, 10.0, 5.0, 5.0, 0.0], hi=50.0)
    assert curve.find_threshold(5.0) == pytest.approx(20.0)


def test_inversion_is_idempotent() -> None:
    curve = _curve([10.0, 8.0, 6.0, 4.0, 2.0, 0.0])
    t = curve.find_threshold(7.0)
    assert curve.rate_at(t) == pytest.approx(7.0)
    assert curve.find_threshold(curve.rate_at(t)) == pytest.approx(t)


def test_find_threshold_with_error_band() -> None:
    curve = _curve([10.0, 8.0, 6.0, 4.0, 2.0, 0.0], errors=np.ones(6))
    low, high = curve.find_threshold_with_error(5.0)
    assert low == pytest.approx(20.0)
    assert high == pytest.approx(30.0)
    assert low <= curve.find_threshold(5.0) <= high


@pytest.mark.parametrize("rate", [-1.0, 99999999.0])
def test_find_threshold_with_error_outside_range_raises(rate) -> None:
    curve = _curve([10.0, 8.0, 6.0, 4.0, 2.0, 0.0], errors=np.ones(6))
    with pytest.raises(ThresholdOutOfRange):
        curve.find_threshold_with_error(rate)


def test_bad_binning_is_rejected() -> None:
    with pytest.raises(ValueError):
        _curve([], lo=0.0, hi=1.0)
    with pytest.raises(ValueError):
        _curve([1.0, 0.0], lo=1.0, hi=1.0)
    with pytest.raises(ValueError):
        _curve([1.0, 0.0], errors=[0.1])


def test_built_curve_is_monotone_and_matches_the_sample(grid_sample) -> None:
    curve = RateCurve.build(HTT_v0(), "threshold1", 100, 0.0, 800.0, ["threshold1"], grid_sample)
    assert np.all(np.diff(curve.rates) <= 0)
    assert curve.max_rate == pytest.approx(400.0)
    np.testing.assert_allclose(curve.rates, 400.0 * (1.0 - np.arange(100) / 100.0))
    assert curve.find_threshold(200.0) == pytest.approx(400.0)
    assert np.all(curve.errors >= 0)


def test_curve_build_co_scales_correlated_thresholds() -> None:
    rng = np.random.default_rng(3)
    jets = rng.exponential(40.0, size=(5000, 3))
    sample = Sample({"jet_pt": jets}, event_rate=10.0)
    ch = DoubleJet_v0()  # threshold2 / threshold1 = 0.5
    curve = RateCurve.build(ch, "threshold1", 30, 0.0, 300.0, ["threshold1", "threshold2"], sample)
    assert curve.scaled_parameters == (("threshold2", 0.5),)

    check = DoubleJet_v0()
    check.set_parameter("threshold1", 50.0)
    check.set_parameter("threshold2", 25.0)
    assert curve.rates[5] == pytest.approx(10.0 * check.accept(sample.columns).mean())
    # building does not touch the channel it was given
    assert ch.parameters() == {"threshold1": 60.0, "threshold2": 30.0}


def test_dict_round_trip_rebuilds_the_curve() -> None:
    curve = _curve([10.0, 8.0, 6.0, 4.0, 2.0, 0.0], errors=np.full(6, 0.5))
    again = RateCurve.from_dict(curve.to_dict())
    assert again.description == curve.description
    np.testing.assert_array_equal(again.rates, curve.rates)
    np.testing.assert_array_equal(again.errors, curve.errors)
    assert again.find_threshold(7.0) == curve.find_threshold(7.0)


def test_channel_matches_ignores_scanned_threshold_values() -> None:
    curve = _curve([1.0, 0.0])
    ch = SingleAD_v0()
    ch.set_parameter("threshold1", 12.0)
    assert curve.channel_matches(ch)
    assert not curve.channel_matches(HTT_v0())


def test_channel_matches_compares_ratios_and_other_parameters() -> None:
    jet = DoubleJet_v0()
    desc = ChannelDescription.from_channel(jet)
    curve = RateCurve.from_arrays(desc, "threshold1", [("threshold2", 0.5)], 0.0, 300.0, [1.0, 0.0])
    jet.set_parameter("threshold1", 100.0)
    jet.set_parameter("threshold2", 50.0)
    assert curve.channel_matches(jet)
    jet.set_parameter("threshold2", 60.0)
    assert not curve.channel_matches(jet)

    cross = HT_AD_v0()
    curve = RateCurve.from_arrays(ChannelDescription.from_channel(cross), "leg1threshold1", (),
                                  0.0, 800.0, [1.0, 0.0])
    cross.set_parameter("leg1threshold1", 250.0)
    assert curve.channel_matches(cross)
    cross.set_parameter("leg2threshold1", 21.0)
    assert not curve.channel_matches(cross)


def test_build_for_menu_uses_registry_binning(registry, grid_sample) -> None:
    menu = Menu(registry)
    menu.add_channel(HTT_v0())
    menu.add_channel(SingleAD_v0())
    curves = MenuRateCurves.build_for_menu(menu, grid_sample, registry, Binning(50, 0.0, 100.0))
    assert len(curves) == 2
    htt, ad = list(curves)
    assert (htt.n_bins, htt.upper_edge) == (100, 800.0)
    assert (ad.n_bins, ad.upper_edge) == (50, 100.0)
    assert curves.find(menu.channel(1)) is ad
    assert curves.find(DoubleJet_v0()) is None
