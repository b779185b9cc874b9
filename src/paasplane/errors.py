"""Error types raised by the paasplane control plane."""

from kubernetes.client.exceptions import ApiException


class PaasplaneError(Exception):
    """Base class for all paasplane errors."""


class ConfigError(PaasplaneError):
    """Raised when the controller configuration cannot be loaded."""


class StoreError(PaasplaneError):
    """A request against the cluster store failed."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class NotFoundError(StoreError):
    pass


class ConflictError(StoreError):
    """The object changed in the store since it was read."""


class AlreadyExistsError(StoreError):
    pass


class PropagationError(PaasplaneError):
    """Copying or pruning objects into a child namespace failed."""


class WatchOpenError(PaasplaneError):
    """Opening a watch against the store failed."""


class AwaitTimeoutError(PaasplaneError):
    """An awaited object did not reach the expected state in time."""


class NotReadyError(PaasplaneError):
    """A reconcile step could not complete yet.

    Args:
        reason: Condition reason recorded on the Ready condition
        message: Human readable description, defaults to the cause's message
        cause: The underlying error, if any
        requeue_after: Optional delay in seconds before the next attempt
    """

    def __init__(self, reason, message=None, cause=None, requeue_after=0.0):
        if message is None:
            message = str(cause) if cause is not None else reason
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.cause = cause
        self.requeue_after = requeue_after


def from_api_exception(e: ApiException, what: str) -> StoreError:
    """Translate a kubernetes ApiException into a StoreError subclass."""
    message = f"{what}: {e.status} {e.reason}"
    if e.status == 404:
        return NotFoundError(message, status=e.status)
    if e.status == 409:
        # Both "already exists" and optimistic-concurrency failures are 409s
        body = e.body or ""
        if isinstance(body, bytes):
            body = body.decode("utf-8", "replace")
        if "AlreadyExists" in body:
            return AlreadyExistsError(message, status=e.status)
        return ConflictError(message, status=e.status)
    return StoreError(message, status=e.status)
