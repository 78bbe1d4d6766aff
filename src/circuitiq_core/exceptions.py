"""Error taxonomy for the CircuitIQ core.

Every error carries a stable ``error_code`` so calling layers can render a
specific UI (upgrade prompt, retry button, operator alert) without string
matching on messages.

- ConfigurationFailure: provider credentials missing/invalid. Fatal.
- InferenceFailure: transient upstream failure, timeout, rate limit or
  malformed response. Retryable; session and ledger state unchanged.
- QuotaExceeded: expected, user-facing rejection with usage numbers.
- InvalidArgumentError / InvalidActionError: caller contract violations,
  raised before any inference call or ledger mutation.
"""

from typing import Any, Dict, Optional


class CircuitIQError(Exception):
    """Base class for all errors raised by circuitiq_core"""

    error_code = "CIRCUITIQ_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Structured error body: ``{errorCode, message}``"""
        return {"errorCode": self.error_code, "message": self.message}


class ConfigurationFailure(CircuitIQError):
    """Inference provider is not configured or rejected our credentials"""

    error_code = "CONFIGURATION_FAILURE"


class InferenceFailure(CircuitIQError):
    """Model call failed in a way the caller may retry"""

    error_code = "INFERENCE_FAILURE"
    retryable = True


class QuotaExceeded(CircuitIQError):
    """The user's plan does not allow another metered action this period"""

    error_code = "QUOTA_EXCEEDED"

    def __init__(
        self,
        action: str,
        current: int,
        limit: Optional[int],
        percentage: int,
        message: Optional[str] = None,
    ):
        super().__init__(
            message or f"Monthly limit reached for {action} ({current}/{limit})",
            context={"action": action},
        )
        self.action = action
        self.current = current
        self.limit = limit
        self.percentage = percentage

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(
            {
                "current": self.current,
                "limit": self.limit,
                "percentage": self.percentage,
            }
        )
        return body


class InvalidArgumentError(CircuitIQError):
    """A required parameter is missing or malformed"""

    error_code = "INVALID_ARGUMENT"


class InvalidActionError(CircuitIQError):
    """The requested action is not part of the dispatch contract"""

    error_code = "INVALID_ACTION"


class DiagramNotFound(CircuitIQError):
    """Diagram does not exist or is not visible to the requesting user"""

    error_code = "DIAGRAM_NOT_FOUND"
