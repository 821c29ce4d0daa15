import asyncio

from toolrent.errors import ProductNotFound
from toolrent.models.product import Product, ProductPage
from toolrent.repositories.base import AbstractProductRepository


class CatalogueService:
    """Read side of the product catalogue. Writes only happen through approvals."""

    def __init__(self, products: AbstractProductRepository) -> None:
        self._products = products

    async def list_products(
        self,
        search: str | None = None,
        category: str | None = None,
        city: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ProductPage:
        return await asyncio.to_thread(
            self._products.list_visible, search, category, city, min_price, max_price, page, limit
        )

    async def get_product(self, product_id: str) -> Product:
        product = await asyncio.to_thread(self._products.get, product_id)
        if product is None:
            raise ProductNotFound(f"product {product_id} does not exist")
        return product
