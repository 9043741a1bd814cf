"""
Domain errors raised by the screening services.

Rule and data problems (invalid commodity code, malformed rule text, unknown
sort field) are normal outcomes and never raise; only conditions a caller has
to react to are exceptions.
"""


class ScreeningError(Exception):
    """Base class for screening errors."""


class ScreeningAlreadyRunning(ScreeningError):
    """A re-screening of a different kind is already in flight for the register."""

    def __init__(self, register_id: int, running_kind: str, requested_kind: str):
        self.register_id = register_id
        self.running_kind = running_kind
        self.requested_kind = requested_kind
        super().__init__(
            f"Register {register_id} is already being screened ({running_kind}); "
            f"cannot start {requested_kind}"
        )


class MorphologyBackendError(ScreeningError):
    """The configured morphology backend could not be loaded."""
