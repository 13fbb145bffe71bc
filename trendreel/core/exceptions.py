"""
Core exception hierarchy for TrendReel.

Every failure raised by a stage, a capability adapter or the orchestrator is a
TrendReelError. The Retryable/Permanent split tells callers (the scheduler, an
operator re-triggering a run) whether trying again can help.
"""

from typing import Any, Optional


# =============================================================================
# Base Exceptions
# =============================================================================


class TrendReelError(Exception):
    """Base exception for all TrendReel errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class RetryableError(TrendReelError):
    """
    Transient errors that may succeed on a later attempt.

    Examples: Rate limits, render timeouts, temporary network issues.
    """

    pass


class PermanentError(TrendReelError):
    """
    Errors that won't be fixed by retrying.

    Examples: Invalid stage input, malformed model output, bad credentials.
    """

    pass


# =============================================================================
# Initialization / Configuration Errors
# =============================================================================


class InitializationError(PermanentError):
    """Raised when a critical component fails to initialize."""

    def __init__(self, component: str, message: str, details: Optional[dict[str, Any]] = None):
        self.component = component
        super().__init__(f"[{component}] {message}", details)


class ConfigurationError(PermanentError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details)


# =============================================================================
# Stage Errors
# =============================================================================


class StageError(TrendReelError):
    """Base exception for failures attributed to one pipeline stage."""

    def __init__(
        self,
        stage: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.stage = stage
        self.reason = message
        super().__init__(f"[{stage}] {message}", details)


class InputValidationError(StageError, PermanentError):
    """Raised when a stage's input violates its precondition."""

    pass


class StageExecutionError(StageError, PermanentError):
    """Raised when a stage cannot uphold its own output invariant."""

    pass


class SequencingError(StageError, PermanentError):
    """Raised when a stage is invoked before its prerequisite is satisfied."""

    pass


# =============================================================================
# External Capability Errors
# =============================================================================


class ExternalCapabilityError(TrendReelError):
    """Base exception for failures of an external capability (model, platform)."""

    def __init__(
        self,
        capability: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.capability = capability
        super().__init__(f"[{capability}] {message}", details)


class CapabilityRateLimitError(ExternalCapabilityError, RetryableError):
    """Raised when a capability rejects a call for quota or rate limits."""

    pass


class CapabilityTimeoutError(ExternalCapabilityError, RetryableError):
    """Raised when a capability does not answer in time."""

    pass


class CapabilityUnavailableError(ExternalCapabilityError, RetryableError):
    """Raised when a capability is temporarily unreachable."""

    pass


class CapabilityAuthError(ExternalCapabilityError, PermanentError):
    """Raised when a capability rejects the configured credentials."""

    pass


class MalformedCapabilityOutputError(ExternalCapabilityError, PermanentError):
    """Raised when a capability answers with output that breaks its contract."""

    pass


class RenderTimeoutError(CapabilityTimeoutError):
    """Raised when a render job is still pending after the last poll."""

    def __init__(self, attempts: int, interval: float):
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            "video_renderer",
            f"Render job did not finish after {attempts} polls",
            {"attempts": attempts, "interval_seconds": interval},
        )


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitBreakerOpenError(RetryableError):
    """Raised when circuit breaker is open and blocking requests."""

    def __init__(self, service: str, recovery_time: float):
        self.service = service
        self.recovery_time = recovery_time
        super().__init__(
            f"Circuit breaker open for {service}. Recovery in {recovery_time:.1f}s",
            {"service": service, "recovery_time": recovery_time},
        )
