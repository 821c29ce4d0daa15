from abc import ABC, abstractmethod
from datetime import datetime

from toolrent.models.effects import CatalogueEffect
from toolrent.models.product import Product, ProductPage
from toolrent.models.submission import Submission, SubmissionStatus


class AbstractSubmissionRepository(ABC):
    @abstractmethod
    def insert(self, submission: Submission) -> None:
        """Persist a new pending submission."""

    @abstractmethod
    def get(self, submission_id: str) -> Submission | None:
        """Return the submission with this id, or None."""

    @abstractmethod
    def list(
        self,
        status: SubmissionStatus | None = None,
        requester_id: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Submission]:
        """List submissions. The pending queue is oldest-first, everything else newest-first."""

    @abstractmethod
    def approve(
        self,
        submission_id: str,
        effect: CatalogueEffect,
        decided_by: str,
        decided_at: datetime,
        note: str | None = None,
    ) -> str:
        """
        Apply the catalogue effect, then mark the submission approved, as one unit.
        Returns the id of the product that was created or affected.
        Raises SubmissionNotFound, PreconditionError or TargetProductNotFound; on any
        of them nothing is written.
        """

    @abstractmethod
    def reject(
        self, submission_id: str, decided_by: str, decided_at: datetime, note: str = ""
    ) -> None:
        """Mark a pending submission rejected. Raises SubmissionNotFound or PreconditionError."""

    @abstractmethod
    def delete(self, submission_id: str) -> bool:
        """Hard-delete a submission in any status. Returns False if it did not exist."""

    @abstractmethod
    def delete_decided(self) -> int:
        """Hard-delete every approved or rejected submission. Returns the count."""


class AbstractProductRepository(ABC):
    @abstractmethod
    def get(self, product_id: str) -> Product | None:
        """Return the product with this id, hidden or not."""

    @abstractmethod
    def exists(self, product_id: str) -> bool:
        """Return True if a product with this id exists."""

    @abstractmethod
    def create(self, fields: dict) -> Product:
        """Insert a product from catalogue columns and return it."""

    @abstractmethod
    def list_visible(
        self,
        search: str | None = None,
        category: str | None = None,
        city: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ProductPage:
        """Page through products that are not hidden, newest first."""
