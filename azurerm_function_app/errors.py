from typing import List, Optional


class FunctionAppError(Exception):
    """Base class of all errors raised by the Function App resource."""


class ConfigValidationError(FunctionAppError):
    """The desired configuration does not satisfy the attribute schema."""

    def __init__(self, errors: List[str]) -> None:
        self.errors = errors
        super().__init__("Invalid Function App configuration:\n" + "\n".join(f"  - {e}" for e in errors))


class InvalidResourceIdError(FunctionAppError):
    pass


class NameUnavailableError(FunctionAppError):
    """The globally unique name of the Function App is already taken."""

    def __init__(self, name: str, message: Optional[str] = None) -> None:
        self.name = name
        reason = f"The name {name!r} used for the Function App needs to be globally unique and isn't available"
        super().__init__(f"{reason}: {message}" if message is not None else reason)


class RemoteCallError(FunctionAppError):
    """
    A call to the management API failed.
    The original exception is available as `__cause__`.
    """

    def __init__(self, operation: str, resource_name: str, message: str) -> None:
        self.operation = operation
        self.resource_name = resource_name
        super().__init__(message)


class OperationTimeoutError(RemoteCallError):
    pass


class FunctionAppNotFoundError(FunctionAppError):
    pass
