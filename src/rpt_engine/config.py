from __future__ import annotations

import os
from dataclasses import dataclass


LOG_LEVEL_ENV = "RPT_LOG_LEVEL"
DEFAULT_COLUMN_WIDTH_ENV = "RPT_DEFAULT_COLUMN_WIDTH"
HEADER_FILL_ENV = "RPT_HEADER_FILL"

# Approximate pixels per Excel character-width unit
PX_PER_EXCEL_WIDTH = 7
# Widths above this are assumed to be legacy pixel values
LEGACY_PIXEL_THRESHOLD = 50
# Excel limit on worksheet title length
MAX_SHEET_TITLE = 31


@dataclass(frozen=True)
class RenderSettings:
    default_column_width: float = 15.0
    header_fill: str = "FFD9E1F2"
    header_font_color: str = "FF000000"
    header_font_size: float = 11
    default_font_color: str = "FF000000"
    px_per_unit: float = PX_PER_EXCEL_WIDTH
    max_sheet_title: int = MAX_SHEET_TITLE


def get_log_level(default: str = "WARNING") -> str:
    return os.getenv(LOG_LEVEL_ENV, default)


def load_render_settings() -> RenderSettings:
    defaults = RenderSettings()
    width = os.getenv(DEFAULT_COLUMN_WIDTH_ENV)
    fill = os.getenv(HEADER_FILL_ENV)
    return RenderSettings(
        default_column_width=float(width) if width else defaults.default_column_width,
        header_fill=fill.strip().upper() if fill else defaults.header_fill,
    )
