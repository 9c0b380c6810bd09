"""Unit tests for the shared row access helpers."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from coi_compliance.database.models import RequirementTemplate
from coi_compliance.repositories.template_repository import TemplateRepository


def scalar_result(row):
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    return result


@pytest.mark.asyncio
async def test_update_sets_known_columns_and_touches_updated_at(mock_session):
    template = RequirementTemplate(id=uuid4(), name="Vendor default", updated_at=None)
    mock_session.execute.return_value = scalar_result(template)
    repo = TemplateRepository(mock_session)

    updated = await repo.update(template.id, name="Vendor standard", not_a_column="ignored")

    assert updated is template
    assert template.name == "Vendor standard"
    assert template.updated_at is not None
    assert not hasattr(template, "not_a_column")
    mock_session.flush.assert_awaited_once()
    mock_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_and_delete_unknown_row(mock_session):
    mock_session.execute.return_value = scalar_result(None)
    repo = TemplateRepository(mock_session)

    assert await repo.update(uuid4(), name="Anything") is None
    assert await repo.delete(uuid4()) is False
    mock_session.flush.assert_not_awaited()


@pytest.mark.asyncio
async def test_database_errors_propagate(mock_session):
    mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
    repo = TemplateRepository(mock_session)

    with pytest.raises(OperationalError):
        await repo.get_by_id(uuid4())


@pytest.mark.asyncio
async def test_create_flushes_without_committing(mock_session):
    repo = TemplateRepository(mock_session)

    template = await repo.create(name="Tenant default")

    assert isinstance(template, RequirementTemplate)
    mock_session.add.assert_called_once_with(template)
    mock_session.flush.assert_awaited_once()
    mock_session.commit.assert_not_awaited()
