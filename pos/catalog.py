import asyncio
import logging
import time
import uuid
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from sdk.posbase import BackendClient, BackendError

from .errors import ProductValidationError, RemoteReadError, RemoteWriteError
from .models import Category, Product, ProductIn, Supplier

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = """
    id, name, sku, barcode, sell_price, buy_price, stock, min_stock, is_active,
    image_url, category_id, categories(name), supplier_id, suppliers(name)
"""

FIELD_MESSAGES = {
    "name": "Product name is required.",
    "sku": "Product SKU is required.",
    "category_id": "A category must be selected.",
    "supplier_id": "Supplier is not valid.",
    "buy_price": "Buy price is not valid.",
    "sell_price": "Sell price is not valid.",
    "stock": "Stock is not valid.",
    "min_stock": "Minimum stock is not valid.",
}


def validate_product(data: Dict[str, Any]) -> ProductIn:
    """Parse raw form data; raises ProductValidationError with one message per bad field."""
    try:
        return ProductIn.model_validate(data)
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else "__all__"
            errors.setdefault(field, FIELD_MESSAGES.get(field, err["msg"]))
        raise ProductValidationError(errors) from exc


class CatalogStore:
    """Session snapshot of products, categories and suppliers."""

    def __init__(self, backend: Optional[BackendClient] = None, image_bucket: str = "product-images"):
        self.backend = backend
        self.image_bucket = image_bucket
        self._products: List[Product] = []
        self._categories: List[Category] = []
        self._suppliers: List[Supplier] = []
        self._by_id: Dict[int, Product] = {}

    # ---------------------------
    # Snapshot access
    # ---------------------------
    @property
    def products(self) -> List[Product]:
        return list(self._products)

    @property
    def categories(self) -> List[Category]:
        return list(self._categories)

    @property
    def suppliers(self) -> List[Supplier]:
        return list(self._suppliers)

    def get(self, product_id: int) -> Optional[Product]:
        return self._by_id.get(product_id)

    def find_by_barcode(self, code: str) -> Optional[Product]:
        code = code.strip()
        for p in self._products:
            if p.barcode and p.barcode == code:
                return p
        return None

    def find_by_sku(self, sku: str) -> Optional[Product]:
        for p in self._products:
            if p.sku == sku:
                return p
        return None

    def active_products(self) -> List[Product]:
        return [p for p in self._products if p.is_active]

    def filter_products(self, search: str = "", category_id: Optional[int] = None) -> List[Product]:
        term = search.strip().lower()
        out = []
        for p in self._products:
            if not p.is_active:
                continue
            if category_id is not None and p.category_id != category_id:
                continue
            if term and term not in p.name.lower() and term not in p.sku.lower() and p.barcode != search.strip():
                continue
            out.append(p)
        return out

    def replace(
        self,
        products: List[Product],
        categories: List[Category],
        suppliers: List[Supplier],
    ) -> None:
        # all three collections swap together
        ordered = sorted(products, key=lambda p: p.name)
        self._products = ordered
        self._by_id = {p.id: p for p in ordered}
        self._categories = list(categories)
        self._suppliers = list(suppliers)

    # ---------------------------
    # Remote reads
    # ---------------------------
    def _require_backend(self) -> BackendClient:
        if self.backend is None:
            raise RuntimeError("catalog has no backend client")
        return self.backend

    async def _fetch(self, what: str, query) -> List[Dict[str, Any]]:
        try:
            return await query.execute() or []
        except (BackendError, httpx.HTTPError) as exc:
            logger.error("Error fetching %s: %s", what, exc)
            raise RemoteReadError(what, exc) from exc

    async def refresh(self) -> None:
        backend = self._require_backend()
        product_rows, category_rows, supplier_rows = await asyncio.gather(
            self._fetch("products", backend.table("products").select(PRODUCT_COLUMNS).order("name")),
            self._fetch(
                "categories",
                backend.table("categories").select("id, name").eq("is_active", True).order("name"),
            ),
            self._fetch(
                "suppliers",
                backend.table("suppliers").select("id, name").eq("is_active", True).order("name"),
            ),
        )
        try:
            products = [Product.model_validate(r) for r in product_rows]
            categories = [Category.model_validate(r) for r in category_rows]
            suppliers = [Supplier.model_validate(r) for r in supplier_rows]
        except ValidationError as exc:
            logger.error("Malformed catalog row: %s", exc)
            raise RemoteReadError("catalog", exc) from exc
        self.replace(products, categories, suppliers)
        logger.info(
            "Catalog loaded: %d products, %d categories, %d suppliers",
            len(self._products), len(self._categories), len(self._suppliers),
        )

    # ---------------------------
    # Remote writes
    # ---------------------------
    async def save_product(self, data: Dict[str, Any], product_id: Optional[int] = None) -> Optional[Product]:
        payload = validate_product(data)
        backend = self._require_backend()
        row = payload.model_dump()
        action = "update" if product_id is not None else "insert"
        try:
            if product_id is not None:
                await backend.table("products").update(row).eq("id", product_id).execute()
            else:
                await backend.table("products").insert([row]).execute()
        except (BackendError, httpx.HTTPError) as exc:
            logger.error("Error saving product %r: %s", payload.name, exc)
            raise RemoteWriteError(f"product {action}", exc) from exc
        logger.info("Product %s %sd", payload.sku, action)
        await self.refresh()
        if product_id is not None:
            return self.get(product_id)
        return self.find_by_sku(payload.sku)

    async def deactivate_product(self, product_id: int) -> None:
        backend = self._require_backend()
        try:
            await backend.table("products").update({"is_active": False}).eq("id", product_id).execute()
        except (BackendError, httpx.HTTPError) as exc:
            logger.error("Error deactivating product %s: %s", product_id, exc)
            raise RemoteWriteError("product deactivate", exc) from exc
        logger.info("Product %s deactivated", product_id)
        await self.refresh()

    async def upload_image(self, filename: str, data: bytes, content_type: str = "image/jpeg") -> str:
        backend = self._require_backend()
        suffix = PurePosixPath(filename).suffix.lower() or ".jpg"
        path = f"products/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{suffix}"
        bucket = backend.storage.from_(self.image_bucket)
        try:
            await bucket.upload(path, data, content_type)
        except (BackendError, httpx.HTTPError) as exc:
            logger.error("Error uploading image %s: %s", filename, exc)
            raise RemoteWriteError("image upload", exc) from exc
        return bucket.get_public_url(path)


class ProductFilter:
    """Search term and category selection for the sales view."""

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog
        self.search = ""
        self.category_id: Optional[int] = None

    def on_scan(self, code: Optional[str]) -> None:
        # scanner reports nothing when it closes without a decode
        if code is None:
            return
        self.search = code.strip()
        logger.info("Scanned code %r", self.search)

    def results(self) -> List[Product]:
        return self.catalog.filter_products(self.search, self.category_id)
