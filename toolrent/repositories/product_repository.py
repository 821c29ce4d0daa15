import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone

from toolrent.db.connection import read_only, transaction
from toolrent.models.product import STATUS_AVAILABLE, STATUS_HIDDEN, Product, ProductPage
from toolrent.repositories.base import AbstractProductRepository

logger = logging.getLogger(__name__)

# "all" as sent by the Arabic filter dropdowns
ANY_VALUE = "الكل"

# Columns a submission may write. Everything else (id, rating, timestamps...)
# is owned by the catalogue.
WRITABLE_COLUMNS = (
    "name", "description", "category", "brand", "model", "condition",
    "specifications", "daily_price", "city", "neighborhood", "contact_phone",
    "contact_whatsapp", "has_delivery", "delivery_price", "delivery_notes",
    "images", "owner_name", "owner_user_id",
)


def _to_row_values(fields: dict) -> dict:
    unknown = set(fields) - set(WRITABLE_COLUMNS)
    if unknown:
        raise ValueError(f"not catalogue columns: {sorted(unknown)}")
    values = dict(fields)
    if "images" in values:
        values["images"] = json.dumps(values["images"] or [], ensure_ascii=False)
    if "has_delivery" in values:
        values["has_delivery"] = int(bool(values["has_delivery"]))
    return values


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        category=row["category"],
        daily_price=row["daily_price"],
        description=row["description"],
        brand=row["brand"],
        model=row["model"],
        condition=row["condition"],
        specifications=row["specifications"],
        city=row["city"],
        neighborhood=row["neighborhood"],
        contact_phone=row["contact_phone"],
        contact_whatsapp=row["contact_whatsapp"],
        has_delivery=bool(row["has_delivery"]),
        delivery_price=row["delivery_price"],
        delivery_notes=row["delivery_notes"],
        images=json.loads(row["images"] or "[]"),
        owner_name=row["owner_name"],
        owner_user_id=row["owner_user_id"],
        rating=row["rating"],
        reviews_count=row["reviews_count"],
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def insert_product(conn: sqlite3.Connection, fields: dict) -> str:
    """Insert a new catalogue entry with catalogue-side defaults. Returns its id."""
    values = _to_row_values(fields)
    now = datetime.now(timezone.utc).isoformat()
    values.update(
        id=uuid.uuid4().hex,
        rating=0,
        reviews_count=0,
        status=STATUS_AVAILABLE,
        created_at=now,
        updated_at=now,
    )
    columns = ", ".join(values)
    placeholders = ", ".join(f":{c}" for c in values)
    conn.execute(f"INSERT INTO products ({columns}) VALUES ({placeholders})", values)
    return values["id"]


def update_product(conn: sqlite3.Connection, product_id: str, fields: dict) -> bool:
    """Partial update: only the given columns change. Returns False if no such product."""
    values = _to_row_values(fields)
    values["updated_at"] = datetime.now(timezone.utc).isoformat()
    assignments = ", ".join(f"{c} = :{c}" for c in values)
    cursor = conn.execute(
        f"UPDATE products SET {assignments} WHERE id = :_id", {**values, "_id": product_id}
    )
    return cursor.rowcount == 1


def hide_product(conn: sqlite3.Connection, product_id: str) -> bool:
    cursor = conn.execute(
        "UPDATE products SET status = ?, updated_at = ? WHERE id = ?",
        (STATUS_HIDDEN, datetime.now(timezone.utc).isoformat(), product_id),
    )
    return cursor.rowcount == 1


def delete_product(conn: sqlite3.Connection, product_id: str) -> bool:
    cursor = conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
    return cursor.rowcount == 1


class ProductRepository(AbstractProductRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def get(self, product_id: str) -> Product | None:
        with read_only(self._db_path) as conn:
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        return _row_to_product(row) if row else None

    def exists(self, product_id: str) -> bool:
        with read_only(self._db_path) as conn:
            row = conn.execute("SELECT 1 FROM products WHERE id = ?", (product_id,)).fetchone()
        return row is not None

    def create(self, fields: dict) -> Product:
        with transaction(self._db_path) as conn:
            product_id = insert_product(conn, fields)
        logger.info("[catalogue] product created | id=%s", product_id)
        return self.get(product_id)

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
        clauses = ["status != ?"]
        params: list = [STATUS_HIDDEN]
        # name-only search, case-insensitive for latin text
        if search and search.strip():
            clauses.append("name LIKE ? ESCAPE '\\'")
            escaped = search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            params.append(f"%{escaped}%")
        if category and category != ANY_VALUE:
            clauses.append("category = ?")
            params.append(category)
        if city and city != ANY_VALUE:
            clauses.append("city = ?")
            params.append(city)
        if min_price is not None:
            clauses.append("daily_price >= ?")
            params.append(min_price)
        if max_price is not None:
            clauses.append("daily_price <= ?")
            params.append(max_price)
        where = " AND ".join(clauses)
        offset = (page - 1) * limit

        with read_only(self._db_path) as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM products WHERE {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM products WHERE {where} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        return ProductPage(
            products=[_row_to_product(r) for r in rows], total=total, page=page, limit=limit
        )
