from dataclasses import dataclass, field
from datetime import datetime, timezone

STATUS_AVAILABLE = "available"
STATUS_HIDDEN = "hidden"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Product:
    id: str
    name: str
    category: str
    daily_price: float
    description: str = ""
    brand: str = ""
    model: str = ""
    condition: str = ""
    specifications: str = ""
    city: str = ""
    neighborhood: str = ""
    contact_phone: str = ""
    contact_whatsapp: str = ""
    has_delivery: bool = False
    delivery_price: float | None = None
    delivery_notes: str = ""
    images: list[str] = field(default_factory=list)
    owner_name: str = ""
    owner_user_id: str | None = None
    rating: float = 0.0
    reviews_count: int = 0
    status: str = STATUS_AVAILABLE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_visible(self) -> bool:
        return self.status != STATUS_HIDDEN


@dataclass
class ProductPage:
    products: list[Product]
    total: int
    page: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.total > self.page * self.limit

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0
