"""Submission payload variants.

Each request kind has its own payload model; the ``kind`` literal is the
discriminator so a stored payload always parses back to the right variant.
Wire names are the camelCase keys the listing form sends (``toolName``,
``dailyPrice``...); catalogue columns are snake_case.
"""
import math
from typing import Annotated, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from toolrent.errors import SubmissionValidationError

# payload field -> catalogue column, where they differ
_COLUMN_NAMES = {"tool_name": "name"}

_NON_PRODUCT_FIELDS = {"kind", "target_product_id", "reason"}


def parse_price(value: str) -> float:
    """Parse a submitted price string ("50", " 12.5 ", "٥٠") into a float."""
    return float(value.strip().replace(",", "."))


class _ProductFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tool_name: str | None = Field(default=None, alias="toolName")
    category: str | None = None
    brand: str | None = None
    model: str | None = None
    condition: str | None = None
    description: str | None = None
    specifications: str | None = None
    daily_price: str | None = Field(default=None, alias="dailyPrice")
    city: str | None = None
    neighborhood: str | None = None
    owner_name: str | None = Field(default=None, alias="ownerName")
    contact_phone: str | None = Field(default=None, alias="contactPhone")
    contact_whatsapp: str | None = Field(default=None, alias="contactWhatsApp")
    has_delivery: bool | None = Field(default=None, alias="hasDelivery")
    delivery_price: str | None = Field(default=None, alias="deliveryPrice")
    delivery_notes: str | None = Field(default=None, alias="deliveryNotes")
    images: list[str] | None = None

    @field_validator("daily_price", "delivery_price", mode="before")
    @classmethod
    def price_must_be_numeric(cls, v):
        if v is None or isinstance(v, bool):
            return v
        text = str(v).strip()
        if not text:
            return None
        try:
            price = parse_price(text)
        except ValueError:
            raise ValueError(f"not a number: {text!r}") from None
        if not math.isfinite(price):
            raise ValueError(f"not a finite number: {text!r}")
        if price < 0:
            raise ValueError("price must not be negative")
        return text

    @field_validator("tool_name", "category")
    @classmethod
    def must_not_be_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("must not be empty")
        return v.strip() if v is not None else v

    def product_fields(self) -> dict:
        """Return the explicitly provided fields as catalogue columns, coerced."""
        columns = {}
        for name in self.model_fields_set - _NON_PRODUCT_FIELDS:
            value = getattr(self, name)
            # only delivery_price is nullable in the catalogue
            if value is None and name != "delivery_price":
                continue
            if name in ("daily_price", "delivery_price") and value is not None:
                value = parse_price(value)
            columns[_COLUMN_NAMES.get(name, name)] = value
        return columns


class AddPayload(_ProductFields):
    kind: Literal["add"] = "add"

    tool_name: str = Field(alias="toolName")
    category: str
    daily_price: str = Field(alias="dailyPrice")

    @property
    def target_product_id(self) -> None:
        return None

    def product_fields(self) -> dict:
        columns = {
            "name": self.tool_name,
            "category": self.category,
            "daily_price": parse_price(self.daily_price),
            "has_delivery": bool(self.has_delivery),
            "images": list(self.images or []),
        }
        for name, value in super().product_fields().items():
            columns.setdefault(name, value)
        return columns


class ModifyPayload(_ProductFields):
    kind: Literal["modify"] = "modify"

    target_product_id: str = Field(
        validation_alias=AliasChoices("targetProductId", "originalProductId", "target_product_id"),
        serialization_alias="targetProductId",
    )

    @model_validator(mode="after")
    def must_change_something(self) -> "ModifyPayload":
        if not self.product_fields():
            raise ValueError("a modify request must change at least one field")
        return self


class DeletePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: Literal["delete"] = "delete"

    target_product_id: str = Field(
        validation_alias=AliasChoices("targetProductId", "originalProductId", "target_product_id"),
        serialization_alias="targetProductId",
    )
    reason: str = Field(default="", validation_alias=AliasChoices("reason", "description"))

    @field_validator("target_product_id")
    @classmethod
    def target_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


SubmissionPayload = Annotated[
    AddPayload | ModifyPayload | DeletePayload, Field(discriminator="kind")
]

_payload_adapter = TypeAdapter(SubmissionPayload)


def parse_payload(kind: str, data: dict) -> AddPayload | ModifyPayload | DeletePayload:
    """Validate ``data`` as the payload of a ``kind`` submission.

    Raises SubmissionValidationError with pydantic's error summary on failure.
    """
    if not isinstance(data, dict):
        raise SubmissionValidationError("payload must be an object")
    try:
        return _payload_adapter.validate_python({**data, "kind": kind})
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        )
        raise SubmissionValidationError(f"invalid {kind} payload: {details}") from exc


def dump_payload(payload: AddPayload | ModifyPayload | DeletePayload) -> dict:
    """Serialise a payload with wire names, keeping only the provided fields."""
    return payload.model_dump(by_alias=True, exclude_unset=True, exclude={"kind"})
