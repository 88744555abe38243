"""
Inventory services for Duka
Stock reservation at checkout and restoration on cancellation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db.models import F
from django.db.models.functions import Greatest

from .models import Product

if TYPE_CHECKING:
    from uuid import UUID

logger = logging.getLogger(__name__)


class InventoryService:
    """Atomic stock counter updates using F() expressions"""

    @staticmethod
    def reserve_stock(product_id: UUID, quantity: int) -> bool:
        """
        Take `quantity` units out of stock and count them as sold.

        Returns False when a tracked product no longer has enough units;
        the conditional UPDATE keeps concurrent checkouts from overselling.
        """
        product = Product.objects.only('track_quantity').get(pk=product_id)

        if product.track_quantity:
            updated = Product.objects.filter(pk=product_id, quantity__gte=quantity).update(
                quantity=F('quantity') - quantity,
                total_sales=F('total_sales') + quantity,
            )
            if not updated:
                logger.warning(f"⚠️ [Inventory] Insufficient stock for product {product_id} (wanted {quantity})")
                return False
        else:
            Product.objects.filter(pk=product_id).update(total_sales=F('total_sales') + quantity)

        return True

    @staticmethod
    def restore_stock(product_id: UUID, quantity: int) -> None:
        """Put units back on the shelf and reverse the sales counter"""
        product = Product.objects.filter(pk=product_id).only('track_quantity').first()
        if product is None:
            logger.warning(f"⚠️ [Inventory] Product {product_id} vanished, cannot restore {quantity} units")
            return

        updates = {'total_sales': Greatest(F('total_sales') - quantity, 0)}
        if product.track_quantity:
            updates['quantity'] = F('quantity') + quantity
        Product.objects.filter(pk=product_id).update(**updates)
        logger.info(f"↩️ [Inventory] Restored {quantity} units of product {product_id}")
