from dataclasses import dataclass
from typing import List, Mapping, Optional

from ..core.errors import NoDatasetAvailable, UnauthorizedTable
from .collaborators import DatasetMetadataProvider
from .sql_validator import normalize_identifier


@dataclass(frozen=True)
class ActiveDataset:
    table_name: str
    column_mapping: Mapping[str, str]

    @property
    def columns(self) -> List[str]:
        return list(self.column_mapping.values())


class TableScopeResolver:
    """Single-active-table policy: only the newest upload may be queried."""

    def __init__(self, metadata_provider: DatasetMetadataProvider):
        self.metadata_provider = metadata_provider

    def resolve_active_table(self) -> ActiveDataset:
        datasets = self.metadata_provider.list_datasets()
        if not datasets:
            raise NoDatasetAvailable("No uploaded table available")

        # A missing identifier ranks below every real one
        latest = max(
            datasets,
            key=lambda d: d.identifier if d.identifier is not None else float("-inf"),
        )
        return ActiveDataset(
            table_name=latest.table_name,
            column_mapping=dict(latest.column_mapping or {}),
        )

    @staticmethod
    def check_requested_table(requested: Optional[str], active: ActiveDataset) -> None:
        if not requested or not requested.strip():
            return
        if normalize_identifier(requested) != normalize_identifier(active.table_name):
            raise UnauthorizedTable(
                f"You can only query the latest uploaded table: {active.table_name}"
            )
