"""
Core infrastructure modules for TrendReel.

- exceptions: Standardized exception hierarchy
- circuit_breaker: Resilience pattern for external APIs
- polling: Bounded polling for long-running renders
- container: Dependency injection container
"""

from trendreel.core.exceptions import (
    CapabilityAuthError,
    CapabilityRateLimitError,
    CapabilityTimeoutError,
    CapabilityUnavailableError,
    CircuitBreakerOpenError,
    ConfigurationError,
    ExternalCapabilityError,
    InitializationError,
    InputValidationError,
    MalformedCapabilityOutputError,
    PermanentError,
    RenderTimeoutError,
    RetryableError,
    SequencingError,
    StageError,
    StageExecutionError,
    TrendReelError,
)

from trendreel.core.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    get_all_circuit_breakers,
    get_circuit_breaker,
    reset_all_circuit_breakers,
)

from trendreel.core.polling import poll_until_done

from trendreel.core.container import (
    DependencyContainer,
    get_container,
    initialize_container,
    shutdown_container,
)

__all__ = [
    # Exceptions
    "TrendReelError",
    "RetryableError",
    "PermanentError",
    "InitializationError",
    "ConfigurationError",
    "StageError",
    "InputValidationError",
    "StageExecutionError",
    "SequencingError",
    "ExternalCapabilityError",
    "CapabilityRateLimitError",
    "CapabilityTimeoutError",
    "CapabilityUnavailableError",
    "CapabilityAuthError",
    "MalformedCapabilityOutputError",
    "RenderTimeoutError",
    "CircuitBreakerOpenError",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitState",
    "get_circuit_breaker",
    "get_all_circuit_breakers",
    "reset_all_circuit_breakers",
    # Polling
    "poll_until_done",
    # Container
    "DependencyContainer",
    "get_container",
    "initialize_container",
    "shutdown_container",
]
