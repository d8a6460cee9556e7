"""Exceptions raised by ecectl."""
from typing import List, Optional


class EceError(Exception):
    """Base exception for ecectl errors."""
    pass


class ConfigurationError(EceError):
    """Desired state or client configuration is missing or malformed."""
    pass


class TransportError(EceError):
    """A request could not be sent or its response could not be read."""
    pass


class OperationError(EceError):
    """The control plane answered with an unexpected status code."""

    def __init__(self, operation: str, status_code: int, body: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(f"{operation} failed with status {status_code}: {body}")


class DecodingError(EceError):
    """A response body did not parse into the expected shape."""

    def __init__(self, message: str, body: str = ""):
        self.body = body
        super().__init__(message)


class ConvergenceTimeoutError(EceError):
    """Polling gave up before the resource reached the target status."""

    def __init__(self, resource_id: str, target_status: str,
                 last_status: Optional[str] = None, timeout: Optional[float] = None):
        self.resource_id = resource_id
        self.target_status = target_status
        self.last_status = last_status
        self.timeout = timeout
        super().__init__(
            f"'{resource_id}': timeout while waiting for status '{target_status}' "
            f"(last seen: {last_status or 'none'})"
        )


class ConvergenceCancelledError(ConvergenceTimeoutError):
    """The caller cancelled the wait before the target status was reached."""

    def __str__(self):
        return (f"'{self.resource_id}': wait for status '{self.target_status}' "
                f"was cancelled (last seen: {self.last_status or 'none'})")


class PlanFailureError(EceError):
    """The latest plan attempt finished unhealthy."""

    def __init__(self, resource_id: str, messages: List[str]):
        self.resource_id = resource_id
        self.messages = list(messages)
        detail = "; ".join(self.messages) if self.messages else "no step diagnostics reported"
        super().__init__(f"'{resource_id}': plan update failed: {detail}")


class InvalidStateTransition(EceError):
    """The engine was asked to move between states that are not connected."""

    def __init__(self, from_state, to_state):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"invalid state transition: {from_state} -> {to_state}")
