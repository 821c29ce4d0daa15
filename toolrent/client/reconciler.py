"""Client-side, optimistic view of a submission list.

Decisions and deletions take the submission out of the local view before the
service answers. Each in-flight action keeps the snapshot it removed so a
failure puts exactly that record back where it was. A success is confirmed by
a full reload of the list; the last reload wins and nothing is merged.

All of this runs on one event loop. The busy check and the optimistic removal
happen before the first ``await``, so two actions on the same submission can
never both be dispatched.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from toolrent.errors import ModerationError, PreconditionError, RemoteFailure
from toolrent.models.submission import Submission, SubmissionStatus

logger = logging.getLogger(__name__)


class SubmissionGateway(Protocol):
    async def list_submissions(self, status: SubmissionStatus | None = None) -> list[Submission]: ...

    async def approve_submission(self, submission_id: str, note: str | None = None): ...

    async def reject_submission(self, submission_id: str, note: str = ""): ...

    async def delete_submission(self, submission_id: str): ...


class Action(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    DELETE = "delete"


class InFlightStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    REVERTING = "reverting"


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class InFlightAction:
    submission_id: str
    action: Action
    previous: Submission
    position: int
    status: InFlightStatus = InFlightStatus.PENDING


@dataclass
class ActionOutcome:
    submission_id: str
    action: Action
    status: OutcomeStatus
    error: ModerationError | None = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


@dataclass
class Notice:
    level: str  # info | success | error
    title: str
    message: str
    submission_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# user-facing strings, Arabic UI
_TEXT = {
    Action.APPROVE: {
        "progress": ("جاري المعالجة...", "جاري الموافقة على الطلب"),
        "success": ("تمت الموافقة بنجاح", "تمت الموافقة على الطلب"),
        "error": ("خطأ في الموافقة", "تعذر الموافقة على الطلب"),
    },
    Action.REJECT: {
        "progress": ("جاري المعالجة...", "جاري رفض الطلب"),
        "success": ("تم الرفض بنجاح", "تم رفض الطلب"),
        "error": ("خطأ في الرفض", "تعذر رفض الطلب"),
    },
    Action.DELETE: {
        "progress": ("جاري الحذف...", "جاري حذف الطلب"),
        "success": ("تم الحذف", "تم حذف الطلب بنجاح"),
        "error": ("خطأ في الحذف", "تعذر حذف الطلب، يرجى المحاولة مرة أخرى"),
    },
}
_RELOAD_ERROR = ("خطأ في تحميل الطلبات", "تعذر تحميل الطلبات")


class SubmissionReconciler:
    def __init__(
        self,
        gateway: SubmissionGateway,
        status_filter: SubmissionStatus | None = SubmissionStatus.PENDING,
        loader: Callable[[], Awaitable[list[Submission]]] | None = None,
    ) -> None:
        self._gateway = gateway
        self._status_filter = status_filter
        self._loader = loader or (lambda: gateway.list_submissions(status_filter))
        self._view: list[Submission] = []
        self._in_flight: dict[str, InFlightAction] = {}
        self.notices: list[Notice] = []

    @property
    def submissions(self) -> list[Submission]:
        return list(self._view)

    @property
    def in_flight(self) -> dict[str, InFlightAction]:
        return dict(self._in_flight)

    def is_busy(self, submission_id: str) -> bool:
        return submission_id in self._in_flight

    def _notify(self, level: str, text: tuple[str, str], submission_id: str | None = None) -> None:
        title, message = text
        self.notices.append(Notice(level, title, message, submission_id))

    async def reload(self) -> list[Submission]:
        """Replace the local view with the canonical list.

        Submissions with an action still in flight stay out of the view; the
        action's own outcome decides whether they come back.
        """
        submissions = await self._loader()
        self._view = [s for s in submissions if s.id not in self._in_flight]
        return self.submissions

    async def approve(self, submission_id: str, note: str | None = None) -> ActionOutcome:
        return await self._run(
            Action.APPROVE, submission_id, lambda: self._gateway.approve_submission(submission_id, note)
        )

    async def reject(self, submission_id: str, note: str = "") -> ActionOutcome:
        return await self._run(
            Action.REJECT, submission_id, lambda: self._gateway.reject_submission(submission_id, note)
        )

    async def delete(self, submission_id: str) -> ActionOutcome:
        return await self._run(
            Action.DELETE, submission_id, lambda: self._gateway.delete_submission(submission_id)
        )

    async def _run(
        self, action: Action, submission_id: str, call: Callable[[], Awaitable[object]]
    ) -> ActionOutcome:
        if self.is_busy(submission_id):
            logger.info("[reconcile] ignored, busy | id=%s | action=%s", submission_id, action.value)
            return ActionOutcome(submission_id, action, OutcomeStatus.IGNORED)

        position = next(
            (i for i, s in enumerate(self._view) if s.id == submission_id), None
        )
        if position is None:
            logger.info("[reconcile] ignored, not in view | id=%s | action=%s", submission_id, action.value)
            return ActionOutcome(submission_id, action, OutcomeStatus.IGNORED)

        previous = self._view[position]
        if action is not Action.DELETE and not previous.is_pending:
            error = PreconditionError(f"submission {submission_id} is already {previous.status.value}")
            self._notify("error", _TEXT[action]["error"], submission_id)
            return ActionOutcome(submission_id, action, OutcomeStatus.FAILED, error)

        record = InFlightAction(submission_id, action, previous, position)
        self._in_flight[submission_id] = record
        del self._view[position]
        self._notify("info", _TEXT[action]["progress"], submission_id)

        try:
            await call()
        except Exception as exc:
            error = exc if isinstance(exc, ModerationError) else RemoteFailure(
                f"{action.value} {submission_id} failed: {type(exc).__name__}: {exc}"
            )
            self._revert(record, error)
            return ActionOutcome(submission_id, action, OutcomeStatus.FAILED, error)
        except BaseException as exc:
            # cancelled mid-call; the view must not keep the removal
            self._revert(record, exc)
            raise
        finally:
            self._in_flight.pop(submission_id, None)

        record.status = InFlightStatus.COMMITTED
        self._notify("success", _TEXT[action]["success"], submission_id)
        logger.info("[reconcile] committed | id=%s | action=%s", submission_id, action.value)
        try:
            await self.reload()
        except Exception as exc:
            # the action itself went through; only the refresh is stale
            logger.warning("[reconcile] reload after %s failed | error=%s", action.value, exc)
            self._notify("error", _RELOAD_ERROR)
        return ActionOutcome(submission_id, action, OutcomeStatus.SUCCEEDED)

    def _revert(self, record: InFlightAction, error: BaseException) -> None:
        record.status = InFlightStatus.REVERTING
        self._restore(record)
        self._notify("error", _TEXT[record.action]["error"], record.submission_id)
        logger.warning(
            "[reconcile] reverted | id=%s | action=%s | error=%s: %s",
            record.submission_id,
            record.action.value,
            type(error).__name__,
            error,
        )

    def _restore(self, record: InFlightAction) -> None:
        if any(s.id == record.submission_id for s in self._view):
            return
        self._view.insert(min(record.position, len(self._view)), record.previous)
