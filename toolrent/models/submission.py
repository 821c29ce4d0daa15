from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from toolrent.schemas.payloads import (
    AddPayload,
    DeletePayload,
    ModifyPayload,
    dump_payload,
    parse_payload,
)


class SubmissionKind(str, Enum):
    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not SubmissionStatus.PENDING


@dataclass(frozen=True)
class Moderator:
    """Capability to decide submissions. Only the API dependency layer mints these."""

    name: str


@dataclass(frozen=True)
class Actor:
    """Whoever is calling: an end user id, a moderator, or both absent (anonymous)."""

    user_id: str | None = None
    moderator: Moderator | None = None


@dataclass
class Submission:
    id: str
    requester_id: str | None
    payload: AddPayload | ModifyPayload | DeletePayload
    status: SubmissionStatus = SubmissionStatus.PENDING
    moderation_note: str | None = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    decided_at: datetime | None = None
    decided_by: str | None = None

    @property
    def kind(self) -> SubmissionKind:
        return SubmissionKind(self.payload.kind)

    @property
    def target_product_id(self) -> str | None:
        return self.payload.target_product_id

    @property
    def is_pending(self) -> bool:
        return self.status is SubmissionStatus.PENDING

    def to_dict(self) -> dict:
        """JSON-safe representation, as served by the API."""
        return {
            "id": self.id,
            "requesterId": self.requester_id,
            "kind": self.kind.value,
            "targetProductId": self.target_product_id,
            "payload": dump_payload(self.payload),
            "status": self.status.value,
            "moderationNote": self.moderation_note,
            "submittedAt": self.submitted_at.isoformat(),
            "decidedAt": self.decided_at.isoformat() if self.decided_at else None,
            "decidedBy": self.decided_by,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Submission":
        decided_at = data.get("decidedAt")
        return cls(
            id=data["id"],
            requester_id=data.get("requesterId"),
            payload=parse_payload(data["kind"], data.get("payload") or {}),
            status=SubmissionStatus(data["status"]),
            moderation_note=data.get("moderationNote"),
            submitted_at=datetime.fromisoformat(data["submittedAt"]),
            decided_at=datetime.fromisoformat(decided_at) if decided_at else None,
            decided_by=data.get("decidedBy"),
        )
