# MenuModel/errors.py
# Exceptions raised by the menu model and the rate fitter.


class UnknownParameter(KeyError):
    """
    Raised when a channel is asked for a parameter it does not declare.
    Parameter names are fixed per (name, version), so this is always a
    configuration or programming error and is never retried.
    """

    def __init__(self, channel_name: str, parameter_name: str):
        super().__init__(f"{channel_name} has no parameter '{parameter_name}'")
        self.channel_name = channel_name
        self.parameter_name = parameter_name

    def __str__(self):
        return self.args[0]


class UnknownChannel(KeyError):
    """Raised when the registry has nothing registered under (name, version)."""

    def __str__(self):
        return self.args[0]


class InvalidConstraintValue(ValueError):
    """Raised when a constraint is given a value it can never hold."""
    pass


class ThresholdOutOfRange(RuntimeError):
    """
    Raised when a rate curve is inverted at a rate outside the range it
    sampled. Recoverable: the caller can skip the channel or widen the curve.
    """

    def __init__(self, rate: float, lowest: float, highest: float):
        super().__init__(
            f"rate {rate:g} is outside the sampled range [{lowest:g}, {highest:g}]"
        )
        self.rate = rate
        self.lowest = lowest
        self.highest = highest


class FitError(RuntimeError):
    """A menu fit could not produce a result."""
    pass


class IterationLimitExceeded(FitError):
    """
    Raised when the total rate has not converged after the maximum number of
    rescale iterations. The constraints are unsatisfiable or oscillating.
    """

    def __init__(self, iterations: int, total_rate: float, target_rate: float):
        super().__init__(
            f"Too many iterations: {iterations} rescales left the total rate at "
            f"{total_rate:g} (target {target_rate:g})"
        )
        self.iterations = iterations
        self.total_rate = total_rate
        self.target_rate = target_rate
