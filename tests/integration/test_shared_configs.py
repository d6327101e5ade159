"""
Tests for shared configuration links: service and endpoints.
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from cockpit_store.core.exceptions import (
    InvalidOptionReference,
    ProductNotFound,
    SharedConfigNotFound,
)
from cockpit_store.models import SharedConfig
from cockpit_store.services.configurator import ConfiguratorService
from cockpit_store.services.shared_config_service import SharedConfigService

LOADED = {
    "variations": {"10": 102, "11": 113},
    "bundle_items": {"selected_optional": [30]},
}


async def shared_count(db):
    return (await db.execute(select(func.count(SharedConfig.id)))).scalar_one()


class TestSharedConfigService:

    @pytest.mark.asyncio
    async def test_create_and_open(self, db_session, seeded):
        created = await SharedConfigService.create(db_session, seeded["cockpit"], LOADED)

        assert len(created.short_code) == 8
        assert created.short_code.isalnum()

        opened = await SharedConfigService.get(db_session, created.short_code)
        assert opened.product_id == seeded["cockpit"]
        assert opened.view_count == 1
        assert opened.configuration["variations"] == {"10": 102, "11": 113}

    @pytest.mark.asyncio
    async def test_each_open_counts(self, db_session, seeded):
        created = await SharedConfigService.create(db_session, seeded["cockpit"], LOADED)

        await SharedConfigService.get(db_session, created.short_code)
        opened = await SharedConfigService.get(db_session, created.short_code)
        assert opened.view_count == 2

    @pytest.mark.asyncio
    async def test_stored_configuration_prices_like_the_original(self, db_session, seeded):
        created = await SharedConfigService.create(db_session, seeded["cockpit"], LOADED)
        opened = await SharedConfigService.get(db_session, created.short_code)

        resolved = await ConfiguratorService.resolve(db_session, opened.product_id, opened.configuration)
        assert resolved.unit_price == Decimal("1898.00")

    @pytest.mark.asyncio
    async def test_invalid_configuration_rejected(self, db_session, seeded):
        with pytest.raises(InvalidOptionReference):
            await SharedConfigService.create(db_session, seeded["cockpit"], {"variations": {"10": 111}})
        assert await shared_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_unknown_product(self, db_session, seeded):
        with pytest.raises(ProductNotFound):
            await SharedConfigService.create(db_session, 999, {})
        assert await shared_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_out_of_stock_choice_can_be_shared(self, db_session, seeded):
        # Stock is resolved when the link is opened, not when it is created
        created = await SharedConfigService.create(
            db_session, seeded["cockpit"], {"variations": {"12": 122}}
        )
        opened = await SharedConfigService.get(db_session, created.short_code)
        assert opened.configuration["variations"] == {"12": 122}

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_session, seeded):
        with pytest.raises(SharedConfigNotFound) as exc_info:
            await SharedConfigService.get(db_session, "NOPE1234")
        assert exc_info.value.details["short_code"] == "NOPE1234"


class TestSharedConfigRoutes:

    @pytest.mark.asyncio
    async def test_create_returns_code_and_link(self, client, seeded):
        response = await client.post(
            "/api/shared-configs", json={"product_id": 1, "configuration": LOADED}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["product_id"] == 1
        assert len(data["short_code"]) == 8
        assert data["url"].endswith(f"/share/{data['short_code']}")

    @pytest.mark.asyncio
    async def test_open_link(self, client, seeded):
        created = (await client.post(
            "/api/shared-configs", json={"product_id": 1, "configuration": LOADED}
        )).json()

        response = await client.get(f"/api/shared-configs/{created['short_code']}")

        assert response.status_code == 200
        data = response.json()
        assert data["product_id"] == 1
        assert data["view_count"] == 1
        assert data["configuration"]["variations"] == {"10": 102, "11": 113}
        assert data["configuration"]["bundle_items"]["selected_optional"] == [30]

    @pytest.mark.asyncio
    async def test_unknown_code(self, client, seeded):
        response = await client.get("/api/shared-configs/NOPE1234")

        assert response.status_code == 404
        assert response.json()["code"] == "SHARED_CONFIG_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_invalid_configuration(self, client, seeded):
        response = await client.post(
            "/api/shared-configs", json={"product_id": 1, "configuration": {"variations": {"10": 111}}}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_OPTION_REFERENCE"

    @pytest.mark.asyncio
    async def test_unknown_product(self, client, seeded):
        response = await client.post("/api/shared-configs", json={"product_id": 999, "configuration": {}})

        assert response.status_code == 404
        assert response.json()["code"] == "PRODUCT_NOT_FOUND"
