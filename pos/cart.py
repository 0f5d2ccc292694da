import logging
from typing import Dict, Iterator, List, Optional

from .catalog import CatalogStore
from .models import CartLine, Notice, Product

logger = logging.getLogger(__name__)


class CartEngine:
    """In-progress sale: one line per product, kept within the catalog's stock.

    Stock conflicts never raise. A refused or adjusted request returns a
    ``Notice`` for the cashier and leaves the cart in a valid state.
    """

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog
        # dicts keep insertion order, which is the display order
        self._lines: Dict[int, CartLine] = {}

    def _notice(self, product_id: Optional[int], message: str) -> Notice:
        logger.info("Cart notice: %s", message)
        return Notice(product_id=product_id, message=message)

    def _current(self, product_id: int) -> Optional[Product]:
        return self.catalog.get(product_id)

    def add_item(self, product: Product) -> Optional[Notice]:
        current = self._current(product.id) or product
        if not current.is_active:
            return self._notice(product.id, f"Product {current.name} is inactive and cannot be sold.")

        line = self._lines.get(product.id)
        if line is not None:
            if line.quantity + 1 > current.stock:
                return self._notice(
                    product.id,
                    f"Insufficient stock for {current.name}. Only {current.stock} available.",
                )
            line.quantity += 1
            return None

        if current.stock <= 0:
            return self._notice(product.id, f"{current.name} is out of stock.")
        self._lines[product.id] = CartLine.from_product(current)
        return None

    def set_quantity(self, product_id: int, new_quantity: int) -> Optional[Notice]:
        line = self._lines.get(product_id)
        current = self._current(product_id)
        if line is None or current is None:
            return None
        if new_quantity <= 0:
            del self._lines[product_id]
            return None

        if new_quantity > current.stock:
            notice = self._notice(product_id, f"Stock for {line.name} is only {current.stock}.")
            if current.stock <= 0:
                del self._lines[product_id]
            else:
                line.quantity = current.stock
            return notice
        line.quantity = new_quantity
        return None

    def remove_item(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def reconcile(self) -> List[Notice]:
        """Bring every line back within the current catalog after a refresh."""
        notices = []
        for product_id, line in list(self._lines.items()):
            current = self._current(product_id)
            if current is None or not current.is_active or current.stock <= 0:
                del self._lines[product_id]
                notices.append(self._notice(product_id, f"{line.name} is no longer available and was removed."))
            elif line.quantity > current.stock:
                line.quantity = current.stock
                notices.append(self._notice(product_id, f"Stock for {current.name} is only {current.stock}."))
        return notices

    def total(self) -> int:
        return sum(line.sell_price * line.quantity for line in self._lines.values())

    def size(self) -> int:
        return len(self._lines)

    def units(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def get(self, product_id: int) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self.lines())

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._lines
