import numpy as np
import pytest

from MenuModel.constraints import Constraint, ConstraintType
from MenuModel.errors import InvalidConstraintValue, UnknownChannel
from MenuModel.menu import Menu
from triggers import HTT_v0, SingleAD_v0


def test_constraint_defaults_to_fixed_thresholds() -> None:
    c = Constraint()
    assert c.type is ConstraintType.FIXED_THRESHOLDS
    assert not c.is_fittable
    assert Constraint.fixed_rate(3.0).is_fittable
    assert Constraint.fraction_of_bandwidth(0.2).is_fittable


@pytest.mark.parametrize("fraction", [1.5, -0.1])
def test_fraction_outside_unit_interval_is_rejected(fraction) -> None:
    with pytest.raises(InvalidConstraintValue):
        Constraint.fraction_of_bandwidth(fraction)


def test_rejected_value_leaves_constraint_untouched() -> None:
    c = Constraint.fraction_of_bandwidth(0.3)
    with pytest.raises(InvalidConstraintValue):
        c.set_fraction_of_bandwidth(2.0)
    assert c == Constraint.fraction_of_bandwidth(0.3)


def test_negative_fixed_rate_is_rejected() -> None:
    with pytest.raises(InvalidConstraintValue):
        Constraint.fixed_rate(-1.0)
    assert Constraint.fixed_rate(0.0).value == 0.0


def test_fraction_bounds_are_inclusive() -> None:
    assert Constraint.fraction_of_bandwidth(0.0).value == 0.0
    assert Constraint.fraction_of_bandwidth(1.0).value == 1.0


def test_lock_thresholds() -> None:
    c = Constraint.fixed_rate(12.0)
    c.lock_thresholds()
    assert c == Constraint.fixed_thresholds()


def test_add_channel_by_name_gets_fixed_thresholds(registry) -> None:
    menu = Menu(registry)
    added = menu.add_channel("L1_AD")
    assert menu.number_of_channels() == len(menu) == 1
    assert menu.channel(0) is added
    assert menu.constraint(0) == Constraint.fixed_thresholds()
    with pytest.raises(UnknownChannel):
        menu.add_channel("L1_Nothing")
    assert len(menu) == 1


def test_add_channel_stores_a_copy() -> None:
    menu = Menu()
    ch = HTT_v0()
    menu.add_channel(ch)
    ch.set_parameter("threshold1", 500.0)
    assert menu.channel(0).parameter("threshold1") == 100.0


def test_positions_are_checked() -> None:
    menu = Menu()
    menu.add_channel(SingleAD_v0())
    with pytest.raises(IndexError):
        menu.channel(1)
    with pytest.raises(IndexError):
        menu.constraint(-1)
    with pytest.raises(IndexError):
        menu.set_constraint(3, Constraint.fixed_rate(1.0))


def test_set_constraint_keeps_its_own_copy() -> None:
    menu = Menu()
    menu.add_channel(SingleAD_v0())
    c = Constraint.fraction_of_bandwidth(0.4)
    menu.set_constraint(0, c)
    c.set_fraction_of_bandwidth(0.9)
    assert menu.constraint(0).value == 0.4


def test_copy_is_deep() -> None:
    menu = Menu()
    menu.add_channel(HTT_v0())
    menu.set_constraint(0, Constraint.fixed_rate(5.0))
    dup = menu.copy()
    dup.channel(0).set_parameter("threshold1", 1.0)
    dup.set_constraint(0, Constraint.fixed_thresholds())
    assert menu.channel(0).parameter("threshold1") == 100.0
    assert menu.constraint(0) == Constraint.fixed_rate(5.0)


def test_iteration_pairs_channels_with_constraints() -> None:
    menu = Menu()
    menu.add_channel(HTT_v0())
    menu.add_channel(SingleAD_v0())
    menu.set_constraint(1, Constraint.fraction_of_bandwidth(0.5))
    pairs = list(menu)
    assert [ch.name for ch, _ in pairs] == ["L1_HTT", "L1_AD"]
    assert pairs[1][1] == Constraint.fraction_of_bandwidth(0.5)


def test_menu_accepts_if_any_channel_fires() -> None:
    menu = Menu()
    menu.add_channel(HTT_v0())
    menu.add_channel(SingleAD_v0())
    menu.channel(0).set_parameter("threshold1", 25.0)
    menu.channel(1).set_parameter("threshold1", 35.0)
    columns = {"ht": np.array([10.0, 20.0, 30.0, 40.0]), "score": np.array([40.0, 30.0, 20.0, 10.0])}
    assert menu.accept(columns).tolist() == [True, False, True, True]
