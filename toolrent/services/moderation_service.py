"""Submission lifecycle: creation, the pending -> approved|rejected state
machine and hard deletion.

Repositories are synchronous (sqlite3); every public method here runs its
storage work in a worker thread so route handlers never block the loop.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from toolrent.errors import (
    PermissionDenied,
    PreconditionError,
    SubmissionNotFound,
    SubmissionValidationError,
)
from toolrent.models.effects import CatalogueEffect, CreateProduct, RemoveProduct, UpdateProduct
from toolrent.models.product import Product
from toolrent.models.submission import (
    Actor,
    Moderator,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)
from toolrent.repositories.base import AbstractProductRepository, AbstractSubmissionRepository
from toolrent.schemas.payloads import AddPayload, DeletePayload, ModifyPayload, parse_payload

logger = logging.getLogger(__name__)

DELETE_POLICIES = ("hide", "delete")


@dataclass
class ApprovalResult:
    submission: Submission
    product_id: str


@dataclass
class Comparison:
    submission: Submission
    current_product: Product | None


def plan_effect(submission: Submission, delete_policy: str = "hide") -> CatalogueEffect:
    """Translate an approved payload into the catalogue change it implies."""
    payload = submission.payload
    match payload:
        case AddPayload():
            fields = payload.product_fields()
            fields["owner_user_id"] = submission.requester_id
            return CreateProduct(fields=fields)
        case ModifyPayload(target_product_id=target):
            return UpdateProduct(product_id=target, fields=payload.product_fields())
        case DeletePayload(target_product_id=target):
            return RemoveProduct(product_id=target, hard_delete=delete_policy == "delete")
    raise TypeError(f"unhandled payload variant: {type(payload).__name__}")


class ModerationService:
    def __init__(
        self,
        submissions: AbstractSubmissionRepository,
        products: AbstractProductRepository,
        delete_policy: str = "hide",
    ) -> None:
        if delete_policy not in DELETE_POLICIES:
            raise ValueError(f"delete_policy must be one of {DELETE_POLICIES}, got {delete_policy!r}")
        self._submissions = submissions
        self._products = products
        self._delete_policy = delete_policy

    # --- creation -------------------------------------------------------

    async def create_submission(
        self, kind: str, payload: dict, requester_id: str | None
    ) -> Submission:
        """
        Validate the payload and store a new pending submission.
        No catalogue change happens until a moderator approves it.
        """
        try:
            kind = SubmissionKind(kind)
        except ValueError:
            raise SubmissionValidationError(f"unknown submission kind: {kind!r}") from None
        parsed = parse_payload(kind.value, payload)
        return await self._store_new(parsed, requester_id)

    async def resubmit(self, submission_id: str, payload: dict, actor: Actor) -> Submission:
        """
        Create a fresh pending copy of a rejected submission with a corrected payload.
        The rejected record stays as it is.
        """
        original = await self.get_submission(submission_id)
        if actor.user_id is None or actor.user_id != original.requester_id:
            raise PermissionDenied("only the requester may resubmit")
        if original.status is not SubmissionStatus.REJECTED:
            raise PreconditionError(
                f"only rejected submissions can be resubmitted, {submission_id} is {original.status.value}"
            )
        data = dict(payload)
        if original.target_product_id is not None:
            data["targetProductId"] = original.target_product_id
        parsed = parse_payload(original.kind.value, data)
        submission = await self._store_new(parsed, original.requester_id)
        logger.info("[submission] resubmitted | from=%s | new=%s", submission_id, submission.id)
        return submission

    async def _store_new(self, payload, requester_id: str | None) -> Submission:
        target = payload.target_product_id
        if target is not None and not await asyncio.to_thread(self._products.exists, target):
            raise SubmissionValidationError(f"target product {target} does not exist")
        submission = Submission(id=uuid.uuid4().hex, requester_id=requester_id, payload=payload)
        await asyncio.to_thread(self._submissions.insert, submission)
        logger.info(
            "[submission] created | id=%s | kind=%s | requester=%s | target=%s",
            submission.id,
            submission.kind.value,
            requester_id,
            target,
        )
        return submission

    # --- reads ----------------------------------------------------------

    async def get_submission(self, submission_id: str) -> Submission:
        submission = await asyncio.to_thread(self._submissions.get, submission_id)
        if submission is None:
            raise SubmissionNotFound(f"submission {submission_id} does not exist")
        return submission

    async def list_submissions(
        self,
        status: SubmissionStatus | None = None,
        requester_id: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> list[Submission]:
        return await asyncio.to_thread(
            self._submissions.list, status, requester_id, (page - 1) * limit, limit
        )

    async def get_comparison(self, submission_id: str) -> Comparison:
        submission = await self.get_submission(submission_id)
        product = None
        if submission.target_product_id is not None:
            product = await asyncio.to_thread(self._products.get, submission.target_product_id)
        return Comparison(submission=submission, current_product=product)

    # --- transitions ----------------------------------------------------

    async def approve(
        self, submission_id: str, moderator: Moderator, note: str | None = None
    ) -> ApprovalResult:
        submission = await self._get_pending(submission_id)
        effect = plan_effect(submission, self._delete_policy)
        product_id = await asyncio.to_thread(
            self._submissions.approve,
            submission_id,
            effect,
            moderator.name,
            datetime.now(timezone.utc),
            note,
        )
        return ApprovalResult(
            submission=await self.get_submission(submission_id), product_id=product_id
        )

    async def reject(self, submission_id: str, moderator: Moderator, note: str = "") -> Submission:
        await self._get_pending(submission_id)
        await asyncio.to_thread(
            self._submissions.reject,
            submission_id,
            moderator.name,
            datetime.now(timezone.utc),
            note or "",
        )
        return await self.get_submission(submission_id)

    async def _get_pending(self, submission_id: str) -> Submission:
        submission = await self.get_submission(submission_id)
        if not submission.is_pending:
            logger.warning(
                "[moderation] refused transition | id=%s | status=%s",
                submission_id,
                submission.status.value,
            )
            raise PreconditionError(
                f"submission {submission_id} is already {submission.status.value}"
            )
        return submission

    # --- deletion -------------------------------------------------------

    async def delete_submission(self, submission_id: str, actor: Actor) -> None:
        """Hard-delete a submission in any status. Allowed to its requester or a moderator."""
        submission = await self.get_submission(submission_id)
        is_owner = actor.user_id is not None and actor.user_id == submission.requester_id
        if actor.moderator is None and not is_owner:
            raise PermissionDenied("only the requester or a moderator may delete a submission")
        if not await asyncio.to_thread(self._submissions.delete, submission_id):
            raise SubmissionNotFound(f"submission {submission_id} does not exist")
        logger.info(
            "[submission] deleted | id=%s | status=%s | by=%s",
            submission_id,
            submission.status.value,
            actor.moderator.name if actor.moderator else actor.user_id,
        )

    async def purge_decided(self, moderator: Moderator) -> int:
        count = await asyncio.to_thread(self._submissions.delete_decided)
        logger.info("[submission] purged decided | count=%d | by=%s", count, moderator.name)
        return count
