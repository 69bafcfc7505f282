"""
Circuit breaker for pricing services.
Stops calling a failing pricing endpoint for a while instead of paying its
timeout once per resource of every estimate.
"""
from enum import Enum
import logging
import threading
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


# Circuit breaker configuration constants
FAILURE_THRESHOLD = 3  # Trip breaker after N consecutive failures
OPEN_STATE_DURATION = 60  # Seconds to remain OPEN before transitioning to HALF_OPEN
HALF_OPEN_MAX_REQUESTS = 1  # Max requests allowed in HALF_OPEN state


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast, not calling upstream
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """
    Circuit breaker shared by all lookups against one pricing service.

    Transitions:
    - CLOSED -> OPEN: After ``failure_threshold`` consecutive failures
    - OPEN -> HALF_OPEN: After ``open_duration`` seconds
    - HALF_OPEN -> CLOSED: On successful request
    - HALF_OPEN -> OPEN: On failure during test

    State changes happen under a lock; estimates for several templates may
    price resources concurrently.
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: int = FAILURE_THRESHOLD,
        open_duration: float = OPEN_STATE_DURATION,
        half_open_max_requests: int = HALF_OPEN_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            service_name: Name of the pricing service (e.g., "pricing_api")
            failure_threshold: Number of consecutive failures before opening
            open_duration: Seconds to remain OPEN before HALF_OPEN
            half_open_max_requests: Max requests allowed in HALF_OPEN state
            clock: Monotonic time source in seconds
        """
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.open_duration = open_duration
        self.half_open_max_requests = half_open_max_requests
        self._clock = clock
        self._lock = threading.Lock()

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self.half_open_requests = 0

    def allow_request(self) -> bool:
        """
        Check if a request should be allowed.

        Returns:
            True if request should proceed, False if circuit is open
        """
        with self._lock:
            if self.state == CircuitState.OPEN:
                if self.opened_at is not None and self._clock() - self.opened_at >= self.open_duration:
                    logger.warning("Circuit breaker for %s: OPEN -> HALF_OPEN (testing recovery)", self.service_name)
                    self.state = CircuitState.HALF_OPEN
                    self.half_open_requests = 1
                    return True
                return False

            if self.state == CircuitState.HALF_OPEN:
                if self.half_open_requests < self.half_open_max_requests:
                    self.half_open_requests += 1
                    return True
                return False

            return True

    def record_success(self) -> None:
        """Record a successful request."""
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                logger.warning("Circuit breaker for %s: HALF_OPEN -> CLOSED (service recovered)", self.service_name)
                self.state = CircuitState.CLOSED
                self.half_open_requests = 0
                self.opened_at = None
            self.failure_count = 0

    def record_failure(self) -> None:
        """Record a failed request."""
        with self._lock:
            self.failure_count += 1

            if self.state == CircuitState.HALF_OPEN:
                logger.warning("Circuit breaker for %s: HALF_OPEN -> OPEN (service still failing)", self.service_name)
                self._open()
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
                logger.warning(
                    "Circuit breaker for %s: CLOSED -> OPEN (%d consecutive failures)",
                    self.service_name, self.failure_count,
                )
                self._open()

    def current_state(self) -> CircuitState:
        """Get current circuit state."""
        with self._lock:
            return self.state

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = self._clock()
        self.half_open_requests = 0


_circuit_breakers: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_circuit_breaker(service_name: str) -> CircuitBreaker:
    """
    Get or create the circuit breaker for a pricing service.

    Args:
        service_name: Name of the service

    Returns:
        CircuitBreaker instance for the service
    """
    with _registry_lock:
        if service_name not in _circuit_breakers:
            _circuit_breakers[service_name] = CircuitBreaker(service_name)
        return _circuit_breakers[service_name]


def reset_circuit_breakers() -> None:
    """Forget all circuit breakers (used between tests)."""
    with _registry_lock:
        _circuit_breakers.clear()
