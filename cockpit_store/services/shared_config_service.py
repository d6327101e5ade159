"""
Shared Config Service

Saves a product configuration under a short code so a customer can send it
as a link, and reads it back when the link is opened.

A configuration is validated against the product's current schema before it
is stored. Stock is not checked: availability is resolved again when the
link is opened and the configuration is priced or added to a cart.
"""
import logging
import secrets
import string
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cockpit_store.core.config import settings
from cockpit_store.core.exceptions import SharedConfigNotFound, ShortCodeExhausted
from cockpit_store.models.shared_config import SharedConfig
from cockpit_store.services.configuration_validator import (
    parse_raw_configuration,
    validate_configuration,
)
from cockpit_store.services.configurator import ConfiguratorService

logger = logging.getLogger(__name__)

SHORT_CODE_ALPHABET = string.ascii_letters + string.digits
SHORT_CODE_ATTEMPTS = 5


def generate_short_code(length: Optional[int] = None) -> str:
    length = length or settings.SHARE_CODE_LENGTH
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))


def share_url(short_code: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/share/{short_code}"


class SharedConfigService:
    """Create and look up shared product configurations."""

    @staticmethod
    async def _unused_short_code(db: AsyncSession) -> str:
        for attempt in range(1, SHORT_CODE_ATTEMPTS + 1):
            code = generate_short_code()
            result = await db.execute(
                select(SharedConfig.id).where(SharedConfig.short_code == code)
            )
            if result.scalar_one_or_none() is None:
                return code
            logger.warning(f"Share code collision (attempt {attempt}/{SHORT_CODE_ATTEMPTS})")

        raise ShortCodeExhausted(
            f"Could not generate an unused share code after {SHORT_CODE_ATTEMPTS} attempts"
        )

    @staticmethod
    async def create(db: AsyncSession, product_id: int, raw_configuration: Any) -> SharedConfig:
        """
        Validate and store a configuration.

        Raises:
            ProductNotFound, ValidationError subclasses, ShortCodeExhausted
        """
        schema = await ConfiguratorService.load_schema(db, product_id)
        payload = parse_raw_configuration(raw_configuration)
        validate_configuration(schema, payload)

        shared = SharedConfig(
            short_code=await SharedConfigService._unused_short_code(db),
            product_id=product_id,
            configuration=payload.model_dump(mode="json"),
            view_count=0,
        )
        db.add(shared)
        await db.commit()

        logger.info(f"Shared configuration {shared.short_code} created for product {product_id}")
        return shared

    @staticmethod
    async def get(db: AsyncSession, short_code: str) -> SharedConfig:
        """Look up a shared configuration and count the view."""
        result = await db.execute(
            select(SharedConfig).where(SharedConfig.short_code == short_code)
        )
        shared = result.scalar_one_or_none()
        if shared is None:
            raise SharedConfigNotFound(short_code)

        await db.execute(
            update(SharedConfig)
            .where(SharedConfig.id == shared.id)
            .values(view_count=SharedConfig.view_count + 1)
        )
        await db.commit()
        await db.refresh(shared)
        return shared
