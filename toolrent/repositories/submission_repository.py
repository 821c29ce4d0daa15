import json
import logging
import sqlite3
from datetime import datetime

from toolrent.db.connection import read_only, transaction
from toolrent.errors import PreconditionError, SubmissionNotFound, TargetProductNotFound
from toolrent.models.effects import CatalogueEffect, CreateProduct, RemoveProduct, UpdateProduct
from toolrent.models.submission import Submission, SubmissionStatus
from toolrent.repositories.base import AbstractSubmissionRepository
from toolrent.repositories.product_repository import (
    delete_product,
    hide_product,
    insert_product,
    update_product,
)
from toolrent.schemas.payloads import dump_payload, parse_payload

logger = logging.getLogger(__name__)


def _row_to_submission(row: sqlite3.Row) -> Submission:
    decided_at = row["decided_at"]
    return Submission(
        id=row["id"],
        requester_id=row["requester_id"],
        payload=parse_payload(row["kind"], json.loads(row["payload"])),
        status=SubmissionStatus(row["status"]),
        moderation_note=row["moderation_note"],
        submitted_at=datetime.fromisoformat(row["submitted_at"]),
        decided_at=datetime.fromisoformat(decided_at) if decided_at else None,
        decided_by=row["decided_by"],
    )


def _require_pending(conn: sqlite3.Connection, submission_id: str) -> None:
    row = conn.execute(
        "SELECT status FROM submissions WHERE id = ?", (submission_id,)
    ).fetchone()
    if row is None:
        raise SubmissionNotFound(f"submission {submission_id} does not exist")
    if row["status"] != SubmissionStatus.PENDING.value:
        raise PreconditionError(f"submission {submission_id} is already {row['status']}")


def _apply_effect(conn: sqlite3.Connection, effect: CatalogueEffect) -> str:
    match effect:
        case CreateProduct(fields=fields):
            return insert_product(conn, fields)
        case UpdateProduct(product_id=product_id, fields=fields):
            applied = update_product(conn, product_id, fields)
        case RemoveProduct(product_id=product_id, hard_delete=True):
            applied = delete_product(conn, product_id)
        case RemoveProduct(product_id=product_id):
            applied = hide_product(conn, product_id)
        case _:
            raise TypeError(f"unknown catalogue effect: {effect!r}")
    if not applied:
        raise TargetProductNotFound(f"product {product_id} does not exist")
    return product_id


class SubmissionRepository(AbstractSubmissionRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert(self, submission: Submission) -> None:
        with transaction(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO submissions
                    (id, requester_id, kind, target_product_id, payload, status, submitted_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    submission.id,
                    submission.requester_id,
                    submission.kind.value,
                    submission.target_product_id,
                    json.dumps(dump_payload(submission.payload), ensure_ascii=False),
                    submission.status.value,
                    submission.submitted_at.isoformat(),
                ),
            )

    def get(self, submission_id: str) -> Submission | None:
        with read_only(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM submissions WHERE id = ?", (submission_id,)
            ).fetchone()
        return _row_to_submission(row) if row else None

    def list(
        self,
        status: SubmissionStatus | None = None,
        requester_id: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Submission]:
        clauses, params = [], []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if requester_id is not None:
            clauses.append("requester_id = ?")
            params.append(requester_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        # moderators work the pending queue oldest-first
        order = "ASC" if status is SubmissionStatus.PENDING else "DESC"
        with read_only(self._db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM submissions {where} "
                f"ORDER BY submitted_at {order}, rowid {order} LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        return [_row_to_submission(r) for r in rows]

    def approve(
        self,
        submission_id: str,
        effect: CatalogueEffect,
        decided_by: str,
        decided_at: datetime,
        note: str | None = None,
    ) -> str:
        with transaction(self._db_path) as conn:
            _require_pending(conn, submission_id)
            # catalogue first; the terminal mark only lands if the effect did
            product_id = _apply_effect(conn, effect)
            self._mark_decided(
                conn, submission_id, SubmissionStatus.APPROVED, decided_by, decided_at, note
            )
        logger.info(
            "[moderation] approved | id=%s | effect=%s | product=%s | by=%s",
            submission_id,
            type(effect).__name__,
            product_id,
            decided_by,
        )
        return product_id

    def reject(
        self, submission_id: str, decided_by: str, decided_at: datetime, note: str = ""
    ) -> None:
        with transaction(self._db_path) as conn:
            _require_pending(conn, submission_id)
            self._mark_decided(
                conn, submission_id, SubmissionStatus.REJECTED, decided_by, decided_at, note
            )
        logger.info("[moderation] rejected | id=%s | by=%s", submission_id, decided_by)

    @staticmethod
    def _mark_decided(
        conn: sqlite3.Connection,
        submission_id: str,
        status: SubmissionStatus,
        decided_by: str,
        decided_at: datetime,
        note: str | None,
    ) -> None:
        cursor = conn.execute(
            """
            UPDATE submissions
            SET status = ?, decided_at = ?, decided_by = ?, moderation_note = ?
            WHERE id = ? AND status = 'pending'
            """,
            (status.value, decided_at.isoformat(), decided_by, note, submission_id),
        )
        if cursor.rowcount != 1:
            raise PreconditionError(f"submission {submission_id} was decided concurrently")

    def delete(self, submission_id: str) -> bool:
        with transaction(self._db_path) as conn:
            cursor = conn.execute("DELETE FROM submissions WHERE id = ?", (submission_id,))
        return cursor.rowcount == 1

    def delete_decided(self) -> int:
        with transaction(self._db_path) as conn:
            cursor = conn.execute("DELETE FROM submissions WHERE status != 'pending'")
        return cursor.rowcount
