"""
Shared configuration routes

Public: a link carries only the product and its selections, never a cart.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cockpit_store.core.database import get_db
from cockpit_store.schemas.shared_config import (
    SharedConfigCreate,
    SharedConfigCreated,
    SharedConfigResponse,
)
from cockpit_store.services.shared_config_service import SharedConfigService, share_url

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=SharedConfigCreated, status_code=status.HTTP_201_CREATED)
async def create_shared_config(
    request: SharedConfigCreate,
    db: AsyncSession = Depends(get_db)
):
    """Save a configuration and return its short code and link."""
    shared = await SharedConfigService.create(db, request.product_id, request.configuration)
    return SharedConfigCreated(
        short_code=shared.short_code,
        url=share_url(shared.short_code),
        product_id=shared.product_id,
    )


@router.get("/{short_code}", response_model=SharedConfigResponse)
async def get_shared_config(
    short_code: str,
    db: AsyncSession = Depends(get_db)
):
    """Open a shared link: the product and the configuration to preload."""
    shared = await SharedConfigService.get(db, short_code)
    return SharedConfigResponse.model_validate(shared)
