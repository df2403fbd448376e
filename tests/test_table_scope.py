import pytest

from conftest import FakeMetadataProvider
from querybot.core.errors import NoDatasetAvailable, UnauthorizedTable
from querybot.services.collaborators import DatasetRecord
from querybot.services.table_scope import ActiveDataset, TableScopeResolver


def test_latest_registration_wins():
    resolver = TableScopeResolver(
        FakeMetadataProvider(
            [
                DatasetRecord(identifier=3, table_name="orders_3", column_mapping={"Id": "id"}),
                DatasetRecord(identifier=None, table_name="orphan"),
                DatasetRecord(identifier=7, table_name="sales_7", column_mapping={"Amount": "amount"}),
            ]
        )
    )
    active = resolver.resolve_active_table()
    assert active.table_name == "sales_7"
    assert active.columns == ["amount"]


def test_missing_identifier_ranks_lowest():
    resolver = TableScopeResolver(
        FakeMetadataProvider(
            [
                DatasetRecord(identifier=None, table_name="orphan"),
                DatasetRecord(identifier=0, table_name="first"),
            ]
        )
    )
    assert resolver.resolve_active_table().table_name == "first"


def test_no_datasets():
    with pytest.raises(NoDatasetAvailable):
        TableScopeResolver(FakeMetadataProvider([])).resolve_active_table()


def test_requested_table_must_match_active():
    active = ActiveDataset(table_name="sales", column_mapping={})
    TableScopeResolver.check_requested_table(None, active)
    TableScopeResolver.check_requested_table("  ", active)
    TableScopeResolver.check_requested_table('"SALES"', active)

    with pytest.raises(UnauthorizedTable, match="sales"):
        TableScopeResolver.check_requested_table("other_table", active)
