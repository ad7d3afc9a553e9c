"""
Circuit Breaker / Failover Controller

Per-upstream circuit breakers that stop traffic to failing backends and let
it back in gradually.

MECHANISM OF ACTION:
-------------------
- **CLOSED**: Normal operation. Each failed attempt increments a counter,
  each success resets it. Reaching `failure_threshold` consecutive failures
  opens the circuit.
- **OPEN**: The upstream is skipped by the selector and `allow()` refuses
  calls. Once `cooldown_ms` has elapsed since opening, the breaker moves to
  HALF_OPEN.
- **HALF_OPEN**: Exactly one trial call is admitted. Success closes
  the circuit; failure reopens it and restarts the cooldown.

The trial claim is a compare-and-set on `trial_in_flight` under the
upstream's own guard; concurrent callers racing for the trial see exactly one
winner. The guard is held only for field updates, never across I/O, and
never spans more than one upstream.

Outcomes that say nothing about upstream health (the backend rejected a
malformed request, the caller was cancelled) call `release_trial()` so a
claimed trial is not leaked.

Author: Platform Engineering
Date: 2026-02-13
"""

import time
from collections.abc import Callable
from enum import Enum

from iris.core.config.constants import CircuitState, Stage
from iris.core.logging import get_logger
from iris.core.resilience.upstream_registry import BreakerState, UpstreamRegistry

logger = get_logger(__name__)

TransitionListener = Callable[[str, CircuitState, CircuitState], None]


class Admission(str, Enum):
    """Result of asking the breaker for permission to dispatch."""

    DENIED = "denied"
    ADMITTED = "admitted"
    TRIAL = "trial"  # admitted as the single HALF_OPEN trial


class CircuitBreaker:
    """
    Breaker for a single upstream.

    Usually obtained through CircuitBreakerManager.get_breaker(); the state
    object itself lives in the UpstreamRegistry.
    """

    def __init__(
        self,
        state: BreakerState,
        failure_threshold: int,
        cooldown_ms: float,
        clock: Callable[[], float],
        listener: TransitionListener | None = None,
    ):
        self.name = state.upstream_id
        self._state = state
        self._failure_threshold = failure_threshold
        self._cooldown_s = cooldown_ms / 1000.0
        self._clock = clock
        self._listener = listener

    def _transition(self, new_state: CircuitState, now: float) -> None:
        # Caller holds the guard
        old_state = self._state.state
        if old_state is new_state:
            return
        self._state.state = new_state
        self._state.last_transition_at = now
        if new_state is CircuitState.OPEN:
            self._state.opened_at = now
        elif new_state is CircuitState.CLOSED:
            self._state.opened_at = None

        logger.info(
            "Circuit state changed",
            stage=Stage.CIRCUIT_BREAKER,
            upstream=self.name,
            from_state=old_state.value,
            to_state=new_state.value,
            consecutive_failures=self._state.consecutive_failures,
        )
        if self._listener is not None:
            self._listener(self.name, old_state, new_state)

    def _advance(self, now: float) -> None:
        # OPEN -> HALF_OPEN once the cooldown has elapsed. Caller holds the guard.
        state = self._state
        if state.state is CircuitState.OPEN and state.opened_at is not None:
            if now - state.opened_at >= self._cooldown_s:
                state.trial_in_flight = False
                self._transition(CircuitState.HALF_OPEN, now)

    @property
    def state(self) -> CircuitState:
        with self._state.guard:
            self._advance(self._clock())
            return self._state.state

    def is_available(self) -> bool:
        """Peek: would a call be admitted right now? Claims nothing."""
        with self._state.guard:
            self._advance(self._clock())
            if self._state.state is CircuitState.CLOSED:
                return True
            if self._state.state is CircuitState.HALF_OPEN:
                return not self._state.trial_in_flight
            return False

    def claim(self) -> Admission:
        """Ask to dispatch a call, claiming the HALF_OPEN trial if that is the state."""
        with self._state.guard:
            self._advance(self._clock())
            if self._state.state is CircuitState.CLOSED:
                return Admission.ADMITTED
            if self._state.state is CircuitState.HALF_OPEN and not self._state.trial_in_flight:
                self._state.trial_in_flight = True
                logger.info("Admitting trial call", stage=Stage.CIRCUIT_BREAKER, upstream=self.name)
                return Admission.TRIAL
            return Admission.DENIED

    def allow(self) -> bool:
        return self.claim() is not Admission.DENIED

    def on_result(self, success: bool) -> None:
        """Feed the outcome of one invocation attempt."""
        with self._state.guard:
            now = self._clock()
            state = self._state
            if success:
                state.consecutive_failures = 0
                if state.state is CircuitState.HALF_OPEN:
                    state.trial_in_flight = False
                    self._transition(CircuitState.CLOSED, now)
                return

            state.consecutive_failures += 1
            if state.state is CircuitState.HALF_OPEN:
                state.trial_in_flight = False
                self._transition(CircuitState.OPEN, now)
            elif state.state is CircuitState.CLOSED and state.consecutive_failures >= self._failure_threshold:
                self._transition(CircuitState.OPEN, now)

    def release_trial(self) -> None:
        """Give back a claimed HALF_OPEN trial whose outcome is not a health signal."""
        with self._state.guard:
            if self._state.state is CircuitState.HALF_OPEN and self._state.trial_in_flight:
                self._state.trial_in_flight = False
                logger.debug("Trial call released without result", stage=Stage.CIRCUIT_BREAKER, upstream=self.name)

    def reset(self) -> None:
        with self._state.guard:
            self._state.consecutive_failures = 0
            self._state.trial_in_flight = False
            self._transition(CircuitState.CLOSED, self._clock())

    def get_stats(self) -> dict:
        with self._state.guard:
            now = self._clock()
            self._advance(now)
            state = self._state
            remaining = 0.0
            if state.state is CircuitState.OPEN and state.opened_at is not None:
                remaining = max(0.0, self._cooldown_s - (now - state.opened_at))
            return {
                "state": state.state.value,
                "consecutive_failures": state.consecutive_failures,
                "failure_threshold": self._failure_threshold,
                "trial_in_flight": state.trial_in_flight,
                "cooldown_remaining_ms": round(remaining * 1000.0, 1),
            }


class CircuitBreakerManager:
    """
    Breakers for every upstream in a registry.

    Upstreams the registry does not know are always admitted: there is
    nothing recorded against them.
    """

    def __init__(
        self,
        registry: UpstreamRegistry,
        failure_threshold: int = 3,
        cooldown_ms: float = 60000,
        clock: Callable[[], float] | None = None,
        listener: TransitionListener | None = None,
    ):
        self.registry = registry
        self.failure_threshold = failure_threshold
        self.cooldown_ms = cooldown_ms
        self._clock = clock or time.monotonic
        self._listener = listener
        self._breakers: dict[str, CircuitBreaker] = {}

    @classmethod
    def from_settings(cls, registry: UpstreamRegistry, settings, clock=None, listener=None) -> "CircuitBreakerManager":
        return cls(
            registry,
            failure_threshold=settings.circuit_breaker.CB_FAILURE_THRESHOLD,
            cooldown_ms=settings.circuit_breaker.CB_COOLDOWN_MS,
            clock=clock,
            listener=listener,
        )

    def get_breaker(self, upstream_id: str) -> CircuitBreaker | None:
        state = self.registry.breaker_state(upstream_id)
        if state is None:
            return None
        breaker = self._breakers.get(upstream_id)
        # Rebuild if the registry replaced the state object on reconfigure
        if breaker is None or breaker._state is not state:
            breaker = CircuitBreaker(
                state,
                failure_threshold=self.failure_threshold,
                cooldown_ms=self.cooldown_ms,
                clock=self._clock,
                listener=self._listener,
            )
            self._breakers[upstream_id] = breaker
        return breaker

    def is_available(self, upstream_id: str) -> bool:
        breaker = self.get_breaker(upstream_id)
        return True if breaker is None else breaker.is_available()

    def claim(self, upstream_id: str) -> Admission:
        breaker = self.get_breaker(upstream_id)
        return Admission.ADMITTED if breaker is None else breaker.claim()

    def allow(self, upstream_id: str) -> bool:
        return self.claim(upstream_id) is not Admission.DENIED

    def on_result(self, upstream_id: str, success: bool) -> None:
        breaker = self.get_breaker(upstream_id)
        if breaker is not None:
            breaker.on_result(success)

    def release_trial(self, upstream_id: str) -> None:
        breaker = self.get_breaker(upstream_id)
        if breaker is not None:
            breaker.release_trial()

    def get_state(self, upstream_id: str) -> CircuitState:
        breaker = self.get_breaker(upstream_id)
        return CircuitState.CLOSED if breaker is None else breaker.state

    def get_all_stats(self) -> dict[str, dict]:
        stats = {}
        for upstream_id in self.registry.ids():
            breaker = self.get_breaker(upstream_id)
            if breaker is not None:
                stats[upstream_id] = breaker.get_stats()
        return stats

    def reset(self, upstream_id: str) -> None:
        breaker = self.get_breaker(upstream_id)
        if breaker is not None:
            breaker.reset()

    def reset_all(self) -> None:
        for upstream_id in self.registry.ids():
            self.reset(upstream_id)
        logger.info("All circuit breakers reset", stage=Stage.CIRCUIT_BREAKER)
