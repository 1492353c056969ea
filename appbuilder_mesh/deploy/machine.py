"""Mesh deployment state machine.

Drives a slow, text-reported remote provisioning operation to a bounded
decision:

    idle -> submitting -> polling -> succeeded | failed | timed_out
                 ^            |
                 +------------+  (bounded resubmission)

- A failed submission is retried up to max_submit_retries.
- Each successful submission is followed by up to max_poll_attempts
  status checks, each preceded by a fixed sleep.
- A reported success or failure ends the deployment immediately; a
  reported failure is authoritative and never resubmitted.
- Running out of polls without a terminal status is a soft timeout:
  the remote side may still finish, so the outcome succeeds with a
  warning. If the checks themselves kept failing at the end of the
  budget, the submission is retried, and the deployment fails once
  submissions run out.

Polls are strictly sequential; the remote side has a single mutable
provisioning state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from appbuilder_mesh.config import Settings
from appbuilder_mesh.deploy.remote import PollError, RemoteMeshService, SubmitError
from appbuilder_mesh.deploy.status import (
    DEFAULT_KEYWORDS,
    StatusKeywords,
    classify_status,
)
from appbuilder_mesh.types import DeploymentState, Environment, MeshStatus

logger = logging.getLogger(__name__)

REASON_PROVISIONED = "provisioned"
REASON_REMOTE_FAILURE = "remote reported failure"
REASON_TIMED_OUT = "timed out, status unknown"


class RemoteFailure(Exception):
    """Raised when the remote service reported an authoritative failure."""

    def __init__(
        self,
        message: str,
        status_text: str | None = None,
        code: str = "remote_failure",
    ) -> None:
        super().__init__(message)
        self.status_text = status_text
        self.code = code


@dataclass
class DeployOptions:
    """Budgets for one deployment.

    Attributes:
        max_submit_retries: Maximum update submissions.
        poll_interval_seconds: Sleep before each status check.
        max_poll_attempts: Status checks per submission.
        timeout_seconds: Wall-clock limit for polling one submission.
        poll_error_threshold: Trailing consecutive status check errors
            that make polling count as broken rather than timed out.
        keywords: Status classification keywords.
    """

    max_submit_retries: int = 3
    poll_interval_seconds: float = 45
    max_poll_attempts: int = 3
    timeout_seconds: float | None = None
    poll_error_threshold: int = 2
    keywords: StatusKeywords = DEFAULT_KEYWORDS

    def __post_init__(self) -> None:
        if self.max_submit_retries < 1:
            raise ValueError("max_submit_retries must be at least 1")
        if self.max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1")
        if self.poll_interval_seconds < 0:
            raise ValueError("poll_interval_seconds must not be negative")
        if self.poll_error_threshold < 1:
            raise ValueError("poll_error_threshold must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings, environment: Environment) -> DeployOptions:
        """Build options from tool settings for an environment."""
        return cls(
            max_submit_retries=settings.max_submit_retries,
            poll_interval_seconds=settings.poll_interval_for(environment.value),
            max_poll_attempts=settings.max_poll_attempts,
            timeout_seconds=settings.deploy_timeout,
            poll_error_threshold=settings.poll_error_threshold,
            keywords=StatusKeywords.from_settings(settings),
        )


@dataclass
class DeploymentAttempt:
    """Transient state of one submission and its polling."""

    attempt_number: int
    started_at: float
    poll_count: int = 0
    last_status: str | None = None
    consecutive_poll_errors: int = 0


@dataclass
class DeploymentEvent:
    """Progress notification emitted during a deployment."""

    type: str
    message: str
    state: DeploymentState
    attempt: int
    poll: int | None = None
    status: MeshStatus | None = None


@dataclass
class DeploymentOutcome:
    """Result of a deployment.

    Attributes:
        success: Whether the deployment counts as successful.
        attempts: Submissions made.
        polls: Status checks made across all submissions.
        terminal_reason: Human-readable reason for the final state.
        state: Final state.
        warning: Set for a soft timeout.
        last_status: Last status text observed.
        error: Last error message, for failures.
        error_code: Stable error code, for failures.
    """

    success: bool
    attempts: int
    polls: int
    terminal_reason: str
    state: DeploymentState
    warning: bool = False
    last_status: str | None = None
    error: str | None = None
    error_code: str | None = None
    events: list[DeploymentEvent] = field(default_factory=list, repr=False)

    @property
    def exit_code(self) -> int:
        """Process exit code for this outcome."""
        return 0 if self.success else 1

    def raise_for_failure(self) -> None:
        """Raise the error matching a failed outcome; no-op otherwise.

        Raises:
            RemoteFailure: The remote service reported failure.
            SubmitError: Submissions were exhausted.
            PollError: Status checks kept failing.
        """
        if self.success:
            return
        if self.error_code == "remote_failure":
            raise RemoteFailure(
                f"Mesh provisioning failed: {self.last_status}",
                status_text=self.last_status,
            )
        if self.error_code == "poll_error":
            raise PollError(f"{self.terminal_reason}: {self.error}")
        raise SubmitError(f"{self.terminal_reason}: {self.error}")


class DeploymentStateMachine:
    """Submit a mesh update and poll it to a terminal decision.

    Args:
        remote: Remote mesh service.
        sleep: Sleep function (seconds).
        clock: Monotonic clock (seconds).
        on_event: Optional callback receiving every DeploymentEvent.
    """

    def __init__(
        self,
        remote: RemoteMeshService,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_event: Callable[[DeploymentEvent], None] | None = None,
    ) -> None:
        self._remote = remote
        self._sleep = sleep
        self._clock = clock
        self._on_event = on_event
        self._events: list[DeploymentEvent] = []
        self.state = DeploymentState.IDLE

    def _emit(
        self,
        event_type: str,
        message: str,
        attempt: DeploymentAttempt,
        level: int = logging.INFO,
        status: MeshStatus | None = None,
    ) -> None:
        event = DeploymentEvent(
            type=event_type,
            message=message,
            state=self.state,
            attempt=attempt.attempt_number,
            poll=attempt.poll_count or None,
            status=status,
        )
        self._events.append(event)
        logger.log(level, message)
        if self._on_event is not None:
            self._on_event(event)

    def _transition(self, state: DeploymentState) -> None:
        logger.debug("Deployment state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _finish(
        self,
        state: DeploymentState,
        attempt: DeploymentAttempt,
        polls: int,
        reason: str,
        *,
        success: bool,
        warning: bool = False,
        error: str | None = None,
        error_code: str | None = None,
    ) -> DeploymentOutcome:
        self._transition(state)
        return DeploymentOutcome(
            success=success,
            attempts=attempt.attempt_number,
            polls=polls,
            terminal_reason=reason,
            state=state,
            warning=warning,
            last_status=attempt.last_status,
            error=error,
            error_code=error_code,
            events=list(self._events),
        )

    def _poll(self, attempt: DeploymentAttempt, options: DeployOptions) -> MeshStatus | None:
        """Poll until a terminal status or the budget runs out.

        Returns:
            The terminal status, or None if polling was exhausted.
        """
        for poll in range(1, options.max_poll_attempts + 1):
            if (
                options.timeout_seconds is not None
                and self._clock() - attempt.started_at >= options.timeout_seconds
            ):
                self._emit(
                    "polling_timeout",
                    f"Polling time limit of {options.timeout_seconds}s reached",
                    attempt,
                    level=logging.WARNING,
                )
                return None

            self._sleep(options.poll_interval_seconds)
            attempt.poll_count = poll

            try:
                status_text = self._remote.check_status()
            except PollError as e:
                attempt.consecutive_poll_errors += 1
                self._emit(
                    "status_error",
                    f"Status check {poll}/{options.max_poll_attempts} failed: {e}",
                    attempt,
                    level=logging.WARNING,
                )
                continue

            attempt.consecutive_poll_errors = 0
            attempt.last_status = status_text
            status = classify_status(status_text, options.keywords)
            self._emit(
                "status",
                f"Status check {poll}/{options.max_poll_attempts}: {status.value} "
                f"({status_text.strip()})",
                attempt,
                status=status,
            )
            if status.is_terminal:
                return status
        return None

    def deploy(self, options: DeployOptions | None = None) -> DeploymentOutcome:
        """Run the deployment.

        Args:
            options: Deployment budgets; defaults if not provided.

        Returns:
            DeploymentOutcome. Failures are reported in the outcome, not
            raised; see DeploymentOutcome.raise_for_failure().
        """
        if options is None:
            options = DeployOptions()

        self._events = []
        self.state = DeploymentState.IDLE
        total_polls = 0
        attempt = DeploymentAttempt(attempt_number=0, started_at=self._clock())

        for attempt_number in range(1, options.max_submit_retries + 1):
            last_status = attempt.last_status
            attempt = DeploymentAttempt(
                attempt_number=attempt_number,
                started_at=self._clock(),
                last_status=last_status,
            )
            self._transition(DeploymentState.SUBMITTING)
            self._emit(
                "submit",
                f"Submitting mesh update (attempt {attempt_number}/"
                f"{options.max_submit_retries})",
                attempt,
            )

            try:
                self._remote.submit_update()
            except SubmitError as e:
                self._emit(
                    "submit_error",
                    f"Attempt {attempt_number} failed: {e}",
                    attempt,
                    level=logging.WARNING,
                )
                if attempt_number == options.max_submit_retries:
                    return self._finish(
                        DeploymentState.FAILED,
                        attempt,
                        total_polls,
                        f"submit failed after {attempt_number} attempts",
                        success=False,
                        error=str(e),
                        error_code="submit_error",
                    )
                continue

            self._transition(DeploymentState.POLLING)
            self._emit(
                "polling",
                f"Polling status every {options.poll_interval_seconds}s "
                f"(max {options.max_poll_attempts} checks)",
                attempt,
            )
            terminal = self._poll(attempt, options)
            total_polls += attempt.poll_count

            if terminal == MeshStatus.SUCCESS:
                return self._finish(
                    DeploymentState.SUCCEEDED,
                    attempt,
                    total_polls,
                    REASON_PROVISIONED,
                    success=True,
                )
            if terminal == MeshStatus.FAILURE:
                return self._finish(
                    DeploymentState.FAILED,
                    attempt,
                    total_polls,
                    REASON_REMOTE_FAILURE,
                    success=False,
                    error=attempt.last_status,
                    error_code="remote_failure",
                )

            threshold = min(options.poll_error_threshold, options.max_poll_attempts)
            if attempt.consecutive_poll_errors >= threshold:
                if attempt_number == options.max_submit_retries:
                    return self._finish(
                        DeploymentState.FAILED,
                        attempt,
                        total_polls,
                        f"status check failed after {attempt.poll_count} attempts",
                        success=False,
                        error=f"{attempt.consecutive_poll_errors} consecutive status "
                        "check errors",
                        error_code="poll_error",
                    )
                self._emit(
                    "resubmit",
                    f"Status checks kept failing, resubmitting (attempt {attempt_number})",
                    attempt,
                    level=logging.WARNING,
                )
                continue

            self._emit(
                "timed_out",
                f"Mesh status still unknown after {attempt.poll_count} checks; "
                "provisioning may still complete",
                attempt,
                level=logging.WARNING,
            )
            return self._finish(
                DeploymentState.TIMED_OUT,
                attempt,
                total_polls,
                REASON_TIMED_OUT,
                success=True,
                warning=True,
            )

        # Unreachable: the last iteration always returns
        raise AssertionError("deployment loop exited without an outcome")


__all__ = [
    "REASON_PROVISIONED",
    "REASON_REMOTE_FAILURE",
    "REASON_TIMED_OUT",
    "DeployOptions",
    "DeploymentAttempt",
    "DeploymentEvent",
    "DeploymentOutcome",
    "DeploymentStateMachine",
    "RemoteFailure",
]
