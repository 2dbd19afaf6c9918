class LoopRunError(Exception):
    pass


class InvalidCoordinate(LoopRunError, ValueError):
    pass


class LocationUnavailable(LoopRunError):
    """GPS denied, timed out or the lookup service failed."""


class RouteTooShort(LoopRunError, ValueError):
    def __init__(self, length_m: float, min_length_m: float):
        self.length_m = length_m
        self.min_length_m = min_length_m
        super().__init__(
            f"Try at least 1 mile, {length_m:.0f} m is too short for loops "
            f"(minimum {min_length_m:.0f} m)"
        )


class RouteProviderFailure(LoopRunError, RuntimeError):
    pass


class StaleBatch(LoopRunError):
    """A candidate batch finished after a newer one was requested."""
