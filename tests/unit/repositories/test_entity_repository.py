"""Unit tests for vendor/tenant access."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from coi_compliance.database.models import Tenant, Vendor
from coi_compliance.repositories.entity_repository import EntityRepository


def scalars_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


@pytest.mark.asyncio
async def test_iter_batches_pages_past_the_first_batch(mock_session):
    vendors = [Vendor(id=uuid4(), company_name=f"Vendor {i}") for i in range(3)]
    tenants = [Tenant(id=uuid4(), company_name="Tenant 0")]
    mock_session.execute = AsyncMock(
        side_effect=[
            scalars_result(vendors[:2]),
            scalars_result(vendors[2:]),
            scalars_result(tenants),
        ]
    )
    repo = EntityRepository(mock_session)

    batches = [batch async for batch in repo.iter_batches(batch_size=2)]

    assert [len(batch) for batch in batches] == [2, 1, 1]
    assert [row.id for batch in batches for row in batch] == [
        *(v.id for v in vendors),
        tenants[0].id,
    ]
    second_query = str(mock_session.execute.await_args_list[1].args[0])
    assert "vendors.id >" in second_query


@pytest.mark.asyncio
async def test_iter_batches_stops_on_empty_tables(mock_session):
    mock_session.execute = AsyncMock(side_effect=[scalars_result([]), scalars_result([])])
    repo = EntityRepository(mock_session)

    batches = [batch async for batch in repo.iter_batches(batch_size=2)]

    assert batches == []
    assert mock_session.execute.await_count == 2
