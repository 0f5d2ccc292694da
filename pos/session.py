import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from sdk.posbase import BackendClient

from .cart import CartEngine
from .catalog import CatalogStore, ProductFilter
from .checkout import CheckoutResult, CheckoutSequencer
from .config import Settings, settings as default_settings
from .errors import PaymentValidationError
from .models import DashboardStats, Notice, PaymentInfo
from .stats import compute_stats

logger = logging.getLogger(__name__)


class PosSession:
    """Everything one cashier session owns: backend client, catalog, cart and checkout."""

    def __init__(self, backend: BackendClient, cfg: Optional[Settings] = None):
        self.settings = cfg or default_settings
        self.backend = backend
        self.catalog = CatalogStore(backend, image_bucket=self.settings.image_bucket)
        self.cart = CartEngine(self.catalog)
        self.filter = ProductFilter(self.catalog)
        self.sequencer = CheckoutSequencer(
            backend, self.cart, self.catalog, default_customer=self.settings.default_customer
        )

    @classmethod
    def from_settings(
        cls,
        cfg: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PosSession":
        cfg = cfg or default_settings
        backend = BackendClient(
            base_url=cfg.backend_url,
            api_key=cfg.backend_key,
            timeout=cfg.timeout,
            transport=transport,
        )
        return cls(backend, cfg)

    async def load(self) -> None:
        await self.catalog.refresh()
        logger.info("Session ready: %s", self.stats().model_dump(exclude={"low_stock_products"}))

    async def refresh(self) -> List[Notice]:
        await self.catalog.refresh()
        return self.cart.reconcile()

    def stats(self) -> DashboardStats:
        return compute_stats(self.catalog, self.cart)

    def payment(self, amount: Optional[int] = None, customer_name: Optional[str] = None,
                method: Optional[str] = None) -> PaymentInfo:
        try:
            return PaymentInfo(
                method=method or self.settings.default_payment_method,
                amount=amount,
                customer_name=customer_name,
            )
        except ValidationError as exc:
            raise PaymentValidationError(f"invalid payment: {exc.errors()[0]['msg']}") from exc

    async def save_product(self, data: Dict[str, Any], product_id: Optional[int] = None) -> List[Notice]:
        await self.catalog.save_product(data, product_id)
        return self.cart.reconcile()

    async def deactivate_product(self, product_id: int) -> List[Notice]:
        await self.catalog.deactivate_product(product_id)
        return self.cart.reconcile()

    async def checkout(self, payment: Optional[PaymentInfo] = None) -> CheckoutResult:
        return await self.sequencer.checkout(payment or self.payment())

    async def close(self) -> None:
        await self.backend.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
