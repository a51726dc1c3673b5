"""
Report Engine Input Validation

Fail-fast structural checks with precise error messages. Anything raised from
here aborts a whole generation; cosmetic problems never end up here.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Mapping, Sequence


class ReportError(Exception):
    """Base class for errors raised by the report engine."""
    pass


class StructuralInputError(ReportError):
    """Raised when inputs are inconsistent enough that no artifact can be produced."""
    pass


class DuplicateColumnIdError(StructuralInputError):
    """Raised when column identities collide."""

    def __init__(self, duplicates: Sequence[str], where: str):
        self.duplicates = list(duplicates)
        self.where = where
        super().__init__(f"Duplicate column ids in {where}: {', '.join(self.duplicates)}")


class UnknownColumnError(StructuralInputError):
    """Raised when row data references columns absent from the header set."""

    def __init__(self, row_index: int, columns: Sequence[str]):
        self.row_index = row_index
        self.columns = list(columns)
        super().__init__(
            f"Row {row_index} references unknown columns: {', '.join(self.columns)}"
        )


class ColumnMismatchError(StructuralInputError):
    """Raised when display columns and column ids are not parallel lists."""
    pass


class TemplateFormatError(ReportError):
    """Raised when a persisted payload cannot be parsed into the data model."""
    pass


def find_duplicates(values: Iterable[Any]) -> list[Any]:
    counts = Counter(values)
    return [value for value, count in counts.items() if count > 1]


def validate_unique_ids(ids: Iterable[str], where: str = "column config") -> None:
    duplicates = find_duplicates(ids)
    if duplicates:
        raise DuplicateColumnIdError([str(d) for d in duplicates], where)


def validate_column_map(column_map: Mapping[str, int]) -> None:
    """Each saved position must belong to exactly one id."""
    duplicates = find_duplicates(column_map.values())
    if duplicates:
        owners = sorted(
            col_id for col_id, pos in column_map.items() if pos in set(duplicates)
        )
        raise DuplicateColumnIdError(owners, "template column map")


def validate_render_inputs(
    columns: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    config_ids: Sequence[str],
) -> None:
    """
    Validate renderer inputs for consistency.

    Raises StructuralInputError subclasses on failure.
    """
    if len(columns) != len(config_ids):
        raise ColumnMismatchError(
            f"Got {len(columns)} columns but {len(config_ids)} column ids"
        )
    validate_unique_ids(config_ids, "rendered column ids")

    known = set(columns)
    for idx, row in enumerate(rows):
        unknown = [key for key in row if key not in known]
        if unknown:
            raise UnknownColumnError(idx, unknown)
