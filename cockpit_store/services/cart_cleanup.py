"""
Expired cart cleanup

Carts are purged lazily when their owner touches them; this sweeps the ones
nobody comes back for. Run from cron via scripts/cleanup_carts.py.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cockpit_store.core.utils import utcnow
from cockpit_store.models.cart import Cart, CartItem

logger = logging.getLogger(__name__)


async def cleanup_expired_carts(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Delete every cart past its expiry, with its lines.

    Returns:
        Number of carts deleted
    """
    cutoff = now or utcnow()
    expired_ids = select(Cart.id).where(Cart.expires_at <= cutoff)

    # Lines first; SQLite doesn't enforce ON DELETE CASCADE by default
    items_result = await db.execute(
        delete(CartItem).where(CartItem.cart_id.in_(expired_ids))
    )
    carts_result = await db.execute(
        delete(Cart).where(Cart.expires_at <= cutoff)
    )
    await db.commit()

    deleted = carts_result.rowcount or 0
    if deleted:
        logger.info(f"Deleted {deleted} expired carts ({items_result.rowcount or 0} lines)")
    return deleted
