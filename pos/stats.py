from .cart import CartEngine
from .catalog import CatalogStore
from .models import DashboardStats


def compute_stats(catalog: CatalogStore, cart: CartEngine) -> DashboardStats:
    # inactive products count nowhere, not even as low stock
    active = catalog.active_products()
    low = [p for p in active if p.is_low_stock]
    return DashboardStats(
        total_products=len(active),
        total_categories=len([c for c in catalog.categories if c.is_active]),
        low_stock=len(low),
        cart_items=cart.size(),
        low_stock_products=low,
    )
