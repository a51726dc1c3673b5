"""
Position Mapper

Translates a template's saved column slots into the current run's slots via
column identity, so cosmetics follow a column through reorders, inserts and
deletes instead of staying glued to a fixed position.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from rpt_engine.log_utils import log_event
from rpt_engine.models import SheetTemplate
from rpt_engine.validation import validate_column_map, validate_unique_ids

logger = logging.getLogger(__name__)


def build_position_map(
    template: Optional[SheetTemplate],
    current_config_ids: Sequence[str],
) -> dict[int, int]:
    """
    Map saved column positions to current positions.

    Legacy templates (no column map) fall back to the identity map. Saved
    positions whose id no longer exists get no entry.
    """
    validate_unique_ids(current_config_ids, "current column ids")

    if template is None or not template.is_identity_mapped:
        if template is not None:
            log_event(logger, "template.legacy_positional", columns=len(current_config_ids))
        return {idx: idx for idx in range(len(current_config_ids))}

    column_map = template.column_map or {}
    validate_column_map(column_map)

    saved_pos_to_id = {pos: col_id for col_id, pos in column_map.items()}
    current_id_to_pos = {col_id: idx for idx, col_id in enumerate(current_config_ids)}

    mapping: dict[int, int] = {}
    for saved_pos, col_id in saved_pos_to_id.items():
        current_pos = current_id_to_pos.get(col_id)
        if current_pos is not None:
            mapping[saved_pos] = current_pos
    return mapping


def invert_position_map(pos_map: dict[int, int]) -> dict[int, int]:
    """Current position -> saved position."""
    return {current: saved for saved, current in pos_map.items()}

