"""
Convergence engine.

Drives create, update and delete of a single resource as a small state
machine:

  absent -> submitting -> converging -> ready
  ready -> submitting -> converging -> ready
  ready -> shutting_down -> deleted

Any step may end in ``failed``. Mutating submissions are never retried;
only status reads are repeated while waiting. Time is taken from an
injected clock so waits can be simulated.
"""
import logging
import threading
import time
from types import MappingProxyType
from typing import Optional, Tuple

from .client import ControlPlaneClient
from .errors import (
    ConvergenceCancelledError,
    ConvergenceTimeoutError,
    EceError,
    InvalidStateTransition,
    OperationError,
    PlanFailureError,
)
from .models import (
    ClusterStatus,
    ConvergenceResult,
    CreateRequest,
    CrudResponse,
    Plan,
    ResourceInfo,
    ResourceKind,
    ResourceState,
)

logger = logging.getLogger(__name__)

S = ResourceState

ALLOWED_TRANSITIONS = MappingProxyType({
    S.ABSENT: frozenset({S.SUBMITTING}),
    S.SUBMITTING: frozenset({S.CONVERGING, S.FAILED}),
    S.CONVERGING: frozenset({S.READY, S.FAILED, S.ABSENT}),
    S.READY: frozenset({S.SUBMITTING, S.SHUTTING_DOWN}),
    S.SHUTTING_DOWN: frozenset({S.DELETED, S.FAILED}),
    S.DELETED: frozenset(),
    S.FAILED: frozenset(),
})


class SystemClock:
    """Wall-clock time source used outside of tests."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class ConvergenceEngine:
    """Submits plans and waits for the control plane to apply them."""

    def __init__(self, client: ControlPlaneClient, timeout: float = 3600,
                 poll_interval: float = 10.0, settle_delay: float = 5.0,
                 clock=None, cancel_event: Optional[threading.Event] = None):
        """
        Args:
            client: Control-plane client used for every call.
            timeout: Overall limit in seconds for one status wait.
            poll_interval: Pause between two status reads.
            settle_delay: Pause after a plan update before polling starts,
                so the control plane has begun executing the new plan.
            clock: Object with ``monotonic()`` and ``sleep(seconds)``.
            cancel_event: When set, a running wait stops at the next poll.
        """
        self.client = client
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        self.clock = clock or SystemClock()
        self.cancel_event = cancel_event

    @classmethod
    def from_config(cls, client: ControlPlaneClient, clock=None,
                    cancel_event: Optional[threading.Event] = None) -> "ConvergenceEngine":
        config = client.config
        return cls(client, timeout=config.timeout, poll_interval=config.poll_interval,
                   settle_delay=config.settle_delay, clock=clock, cancel_event=cancel_event)

    # ── State bookkeeping ────────────────────────────────────────

    @staticmethod
    def _transition(result: ConvergenceResult, to_state: ResourceState) -> None:
        if to_state not in ALLOWED_TRANSITIONS[result.state]:
            raise InvalidStateTransition(result.state.value, to_state.value)
        logger.debug(f"{result.kind.value} '{result.resource_id or '<new>'}': "
                     f"{result.state.value} -> {to_state.value}")
        result.state = to_state
        result.history.append(to_state)

    @staticmethod
    def _start(kind: ResourceKind, resource_id: str = "",
               state: ResourceState = ResourceState.ABSENT) -> ConvergenceResult:
        return ConvergenceResult(kind=kind, resource_id=resource_id, state=state, history=[state])

    # ── Polling ──────────────────────────────────────────────────

    def wait_for_status(self, kind: ResourceKind, resource_id: str, status: str,
                        allow_missing: bool = False,
                        result: Optional[ConvergenceResult] = None
                        ) -> Optional[ResourceInfo]:
        """Poll a resource until it reports ``status``.

        Returns the last read, or ``None`` when the resource is absent and
        ``allow_missing`` is set. A failed read aborts the wait at once;
        a read with another status just means keep waiting.

        Raises:
            ConvergenceTimeoutError: the status was not seen within ``timeout``.
            ConvergenceCancelledError: ``cancel_event`` was set.
        """
        logger.debug(f"Waiting up to {self.timeout}s for '{status}' status of {kind.value} ID: {resource_id}")
        deadline = self.clock.monotonic() + self.timeout
        last_status = None

        while True:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise ConvergenceCancelledError(resource_id, status, last_status, self.timeout)

            info = self.client.read(kind, resource_id)
            if result is not None:
                result.polls += 1

            if info is None:
                if allow_missing:
                    logger.debug(f"{kind.value} '{resource_id}' is gone")
                    return None
                logger.debug(f"{kind.value} '{resource_id}' not visible yet")
            else:
                last_status = info.status
                if info.status == status:
                    logger.debug(f"{kind.value} '{resource_id}' reached status: {status}")
                    return info
                logger.debug(f"{kind.value} '{resource_id}' current status: {info.status}. "
                             f"Desired status: {status}")

            remaining = deadline - self.clock.monotonic()
            if remaining <= 0:
                raise ConvergenceTimeoutError(resource_id, status, last_status, self.timeout)
            self.clock.sleep(min(self.poll_interval, remaining))

    # ── Create ───────────────────────────────────────────────────

    def submit_create(self, kind: ResourceKind, request: CreateRequest) -> Tuple[ConvergenceResult, CrudResponse]:
        """Send a create request; the returned result is in ``submitting``."""
        result = self._start(kind)
        self._transition(result, S.SUBMITTING)
        try:
            crud = self.client.create(kind, request)
        except EceError:
            self._transition(result, S.FAILED)
            raise
        result.resource_id = crud.cluster_id
        result.credentials = crud.credentials
        return result, crud

    def adopt(self, kind: ResourceKind, resource_id: str) -> ConvergenceResult:
        """Track a resource whose create was submitted as part of another request."""
        result = self._start(kind, resource_id)
        self._transition(result, S.SUBMITTING)
        return result

    def converge(self, result: ConvergenceResult) -> ConvergenceResult:
        """Wait for a submitted resource to start."""
        self._transition(result, S.CONVERGING)
        try:
            info = self.wait_for_status(result.kind, result.resource_id, ClusterStatus.STARTED.value,
                                        result=result)
        except EceError as e:
            logger.error(f"{result.kind.value} '{result.resource_id}' did not converge: {e}")
            self._transition(result, S.FAILED)
            raise
        result.info = info
        self._transition(result, S.READY)
        logger.info(f"{result.kind.value} '{result.resource_id}' is ready")
        return result

    def create(self, kind: ResourceKind, request: CreateRequest) -> ConvergenceResult:
        """Create a resource and wait until it is started."""
        logger.info(f"Creating {kind.value} '{request.name}'")
        result, _ = self.submit_create(kind, request)
        return self.converge(result)

    # ── Update ───────────────────────────────────────────────────

    def update(self, kind: ResourceKind, resource_id: str, plan: Plan,
               name: Optional[str] = None) -> ConvergenceResult:
        """Apply a new plan (and optionally a new name) to a running resource.

        Raises:
            PlanFailureError: the plan attempt finished unhealthy; the message
                lists the diagnostics of the steps that did not succeed.
        """
        result = self._start(kind, resource_id, S.READY)
        logger.info(f"Updating {kind.value} '{resource_id}'")

        self._transition(result, S.SUBMITTING)
        try:
            if name:
                self.client.update_metadata(kind, resource_id, name)
            self.client.update_plan(kind, resource_id, plan)
        except EceError:
            self._transition(result, S.FAILED)
            raise

        self._transition(result, S.CONVERGING)
        self.clock.sleep(self.settle_delay)
        try:
            info = self.wait_for_status(kind, resource_id, ClusterStatus.STARTED.value, result=result)
            activity = self.client.read_plan_activity(kind, resource_id)
        except EceError:
            self._transition(result, S.FAILED)
            raise

        if activity is None:
            logger.warning(f"{kind.value} '{resource_id}' was not found after update")
            self._transition(result, S.ABSENT)
            return result

        if not activity.current.healthy:
            result.diagnostics = activity.current.failed_messages()
            for step in activity.current.failed_steps():
                logger.error(f"{kind.value} '{resource_id}' plan step '{step.step_id}' "
                             f"ended with status '{step.status}'")
            self._transition(result, S.FAILED)
            raise PlanFailureError(resource_id, result.diagnostics)

        result.info = info
        self._transition(result, S.READY)
        logger.info(f"{kind.value} '{resource_id}' plan applied")
        return result

    # ── Delete ───────────────────────────────────────────────────

    def delete(self, kind: ResourceKind, resource_id: str) -> ConvergenceResult:
        """Shut a resource down, wait for it to stop, then delete it.

        A resource that is already gone counts as deleted. Running out of
        time while waiting for the shutdown is logged and the delete is
        attempted anyway.
        """
        result = self._start(kind, resource_id, S.READY)
        logger.info(f"Shutting down {kind.value} '{resource_id}'")

        self._transition(result, S.SHUTTING_DOWN)
        try:
            self.client.shutdown(kind, resource_id)
        except OperationError as e:
            if e.status_code == 404:
                logger.info(f"{kind.value} '{resource_id}' already absent")
                self._transition(result, S.DELETED)
                return result
            self._transition(result, S.FAILED)
            raise
        except EceError:
            self._transition(result, S.FAILED)
            raise

        absent = False
        try:
            info = self.wait_for_status(kind, resource_id, ClusterStatus.STOPPED.value,
                                        allow_missing=True, result=result)
            absent = info is None
        except ConvergenceCancelledError:
            self._transition(result, S.FAILED)
            raise
        except ConvergenceTimeoutError as e:
            logger.warning(f"{e}; attempting delete anyway")
        except EceError:
            self._transition(result, S.FAILED)
            raise

        if not absent:
            logger.info(f"Deleting {kind.value} '{resource_id}'")
            try:
                self.client.delete(kind, resource_id)
            except OperationError as e:
                if e.status_code != 404:
                    self._transition(result, S.FAILED)
                    raise
            except EceError:
                self._transition(result, S.FAILED)
                raise

        self._transition(result, S.DELETED)
        logger.info(f"{kind.value} '{resource_id}' deleted")
        return result
