"""Exception taxonomy for the application workflow."""


class AutoApplyError(Exception):
    """Base class for every error raised by autoapply."""


class InputValidationError(AutoApplyError, ValueError):
    """Task input failed validation before the run started."""


class ConfigurationError(AutoApplyError):
    """A required environment value or config key is missing or invalid."""


class StateMergeError(AutoApplyError, ValueError):
    """A step update tried to overwrite an immutable task-input field."""


class ResourceError(AutoApplyError):
    """A resource file could not be read or is in an unsupported format."""


class AccountError(AutoApplyError):
    """Account creation, login or verification could not be completed."""


class UnknownRunError(AutoApplyError, KeyError):
    """No checkpoint exists for the given run id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""


class RunStateError(AutoApplyError):
    """The run is not in a state that allows the requested operation."""


class RoutingError(AutoApplyError):
    """A step routed to a name that is neither a graph step nor END."""


class StepFailedError(AutoApplyError):
    """A step raised while executing; the run cannot continue."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")
