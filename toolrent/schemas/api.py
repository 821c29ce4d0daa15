from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from toolrent.models.product import Product, ProductPage
from toolrent.models.submission import SubmissionKind, SubmissionStatus


class CreateSubmissionRequest(BaseModel):
    kind: SubmissionKind = SubmissionKind.ADD
    # validated per kind by the service so errors come back as one 422 shape
    payload: dict


class ResubmitRequest(BaseModel):
    payload: dict


class DecisionRequest(BaseModel):
    note: str | None = None


class SubmissionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    requester_id: str | None = Field(alias="requesterId")
    kind: SubmissionKind
    target_product_id: str | None = Field(alias="targetProductId")
    payload: dict
    status: SubmissionStatus
    moderation_note: str | None = Field(alias="moderationNote")
    submitted_at: datetime = Field(alias="submittedAt")
    decided_at: datetime | None = Field(alias="decidedAt")
    decided_by: str | None = Field(alias="decidedBy")


class ApprovalOut(SubmissionOut):
    product_id: str = Field(alias="productId")


class ProductOut(BaseModel):
    id: str
    name: str
    description: str
    category: str
    brand: str
    model: str
    condition: str
    specifications: str
    daily_price: float
    city: str
    neighborhood: str
    contact_phone: str
    contact_whatsapp: str
    has_delivery: bool
    delivery_price: float | None
    delivery_notes: str
    images: list[str]
    owner_name: str
    owner_user_id: str | None
    rating: float
    reviews_count: int
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_product(cls, product: Product) -> "ProductOut":
        return cls(**vars(product))


class ProductPageOut(BaseModel):
    products: list[ProductOut]
    total: int
    page: int
    total_pages: int
    has_more: bool

    @classmethod
    def from_page(cls, page: ProductPage) -> "ProductPageOut":
        return cls(
            products=[ProductOut.from_product(p) for p in page.products],
            total=page.total,
            page=page.page,
            total_pages=page.total_pages,
            has_more=page.has_more,
        )


class ComparisonOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission: SubmissionOut
    current_product: ProductOut | None = Field(alias="currentProduct")


class PurgeOut(BaseModel):
    deleted: int


class ErrorOut(BaseModel):
    status: str = "error"
    code: str
    message: str
