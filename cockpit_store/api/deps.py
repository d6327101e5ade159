"""
API dependencies

Cart owner and display region are resolved from request headers. The user
id is set by the upstream auth layer; guests send their session id.
"""
from typing import Optional

from fastapi import Header, Query

from cockpit_store.core.currency import Region, resolve_region
from cockpit_store.services.cart_service import CartOwner


async def get_cart_owner(
    x_user_id: Optional[int] = Header(None),
    x_session_id: Optional[str] = Header(None, max_length=128),
) -> CartOwner:
    """Authenticated user if present, else the guest session."""
    if x_user_id is not None:
        return CartOwner(user_id=x_user_id, session_id=x_session_id)
    return CartOwner(session_id=x_session_id or None)


async def get_region(
    x_region: Optional[str] = Header(None),
    region: Optional[str] = Query(None),
) -> Region:
    """Display region: X-Region header, then ?region=, then the configured default."""
    return resolve_region(x_region or region)
