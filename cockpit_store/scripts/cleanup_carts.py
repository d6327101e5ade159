#!/usr/bin/env python3
"""
Delete expired carts.

One-shot, meant to be run from cron.

Usage:
    python -m cockpit_store.scripts.cleanup_carts
"""
import asyncio
import logging

from cockpit_store.core.database import get_db_session
from cockpit_store.services.cart_cleanup import cleanup_expired_carts

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


async def main() -> int:
    async with get_db_session() as db:
        deleted = await cleanup_expired_carts(db)
    logger.info(f"Expired cart cleanup finished: {deleted} carts deleted")
    return deleted


if __name__ == "__main__":
    asyncio.run(main())
