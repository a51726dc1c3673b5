"""
XLSX Style Resolution

Turns captured editor styles into openpyxl style objects. Resolution is
lenient: bad colours, dangling style references and unknown codes fall back
to defaults instead of failing the export.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from rpt_engine.config import RenderSettings
from rpt_engine.models import StyleData

logger = logging.getLogger(__name__)

DEFAULT_ARGB = "FF000000"

_RGB_FUNC = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*(\d*\.?\d+)\s*(%?)\s*)?\)$",
    re.IGNORECASE,
)
_HEX = re.compile(r"^[0-9A-Fa-f]+$")

H_ALIGN = {1: "left", 2: "center", 3: "right", 4: "justify"}
V_ALIGN = {1: "top", 2: "center", 3: "bottom"}
WRAP_CODE = 3

# Editor border style codes -> openpyxl Side styles
BORDER_STYLES = {
    1: "thin",
    2: "hair",
    3: "dotted",
    4: "dashed",
    5: "dashDot",
    6: "dashDotDot",
    7: "double",
    8: "medium",
    9: "mediumDashed",
    10: "mediumDashDot",
    11: "mediumDashDotDot",
    12: "slantDashDot",
    13: "thick",
}
BORDER_SIDES = {"l": "left", "r": "right", "t": "top", "b": "bottom"}


def _clamp_channel(value: str) -> int:
    return max(0, min(255, int(value)))


def argb_from_rgb(value: Any, fallback: str = DEFAULT_ARGB) -> str:
    """
    Normalize an editor colour to an ARGB hex string.

    Accepts rgb()/rgba(), #abc shorthand, #rrggbb and aarrggbb. Anything
    else, including None, returns fallback. Never raises.
    """
    if not isinstance(value, str):
        return fallback
    text = value.strip()
    if not text:
        return fallback

    match = _RGB_FUNC.match(text)
    if match:
        red, green, blue, alpha, percent = match.groups()
        alpha_byte = 255
        if alpha is not None:
            fraction = float(alpha) / 100 if percent else float(alpha)
            alpha_byte = max(0, min(255, round(fraction * 255)))
        return "{:02X}{:02X}{:02X}{:02X}".format(
            alpha_byte, _clamp_channel(red), _clamp_channel(green), _clamp_channel(blue)
        )

    clean = text.lstrip("#")
    if not _HEX.match(clean):
        return fallback
    if len(clean) == 3:
        return "FF" + "".join(ch * 2 for ch in clean).upper()
    if len(clean) == 6:
        return "FF" + clean.upper()
    if len(clean) == 8:
        return clean.upper()
    return fallback


def color_value(ref: Any) -> Optional[str]:
    """Extract the raw colour string from {"rgb": ...} or a bare string."""
    if isinstance(ref, Mapping):
        ref = ref.get("rgb")
    return ref if isinstance(ref, str) and ref.strip() else None


def _flag(value: Any) -> Optional[bool]:
    """Editor flags come as 0/1, booleans or {"s": 0/1}."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        value = value.get("s")
        if value is None:
            return None
    return bool(value)


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_code(value: Any) -> Optional[int]:
    """Editor enum codes; "2" and 2.0 are accepted, anything else is None."""
    number = _as_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def resolve_style_ref(
    ref: Union[str, StyleData, None],
    styles: Mapping[str, Optional[StyleData]],
) -> Optional[StyleData]:
    """Resolve a named or inline style; dangling names resolve to None."""
    if ref is None:
        return None
    if isinstance(ref, StyleData):
        return ref
    style = styles.get(ref)
    if style is None:
        logger.debug("style.dangling_reference %s", ref)
    return style


def _has_value(key: str, value: Any) -> bool:
    if value is None:
        return False
    if key in ("cl", "bg"):
        return color_value(value) is not None
    if key == "fs":
        return _as_float(value) is not None
    if key in ("ht", "vt", "tb"):
        return _as_code(value) is not None
    return True


def merge_styles(base: StyleData, override: Optional[StyleData]) -> StyleData:
    """Field-by-field overlay: every usable override field replaces the base one."""
    if override is None:
        return base
    updates = {
        key: value
        for key, value in override.model_dump().items()
        if _has_value(key, value)
    }
    return base.model_copy(update=updates)


def header_default_style(settings: RenderSettings) -> StyleData:
    return StyleData(
        bl=1,
        fs=settings.header_font_size,
        bg={"rgb": settings.header_fill},
        cl={"rgb": settings.header_font_color},
        ht=1,
        vt=2,
    )


@dataclass(frozen=True)
class XlsxStyle:
    """openpyxl style objects built once and assigned to many cells."""
    font: Optional[Font] = None
    fill: Optional[PatternFill] = None
    alignment: Optional[Alignment] = None
    border: Optional[Border] = None
    number_format: Optional[str] = None

    def apply(self, cell) -> None:
        if self.font is not None:
            cell.font = self.font
        if self.fill is not None:
            cell.fill = self.fill
        if self.alignment is not None:
            cell.alignment = self.alignment
        if self.border is not None:
            cell.border = self.border
        if self.number_format is not None:
            cell.number_format = self.number_format


def _build_font(style: StyleData, settings: RenderSettings) -> Optional[Font]:
    bold = _flag(style.bl)
    italic = _flag(style.it)
    underline = _flag(style.ul)
    strike = _flag(style.st)
    raw_color = color_value(style.cl)
    size = _as_float(style.fs)
    family = style.ff if isinstance(style.ff, str) and style.ff.strip() else None
    if all(v is None for v in (bold, italic, underline, strike, size, family, raw_color)):
        return None
    return Font(
        name=family or "Calibri",
        size=size if size and size > 0 else 11,
        bold=bool(bold),
        italic=bool(italic),
        underline="single" if underline else None,
        strike=bool(strike),
        color=argb_from_rgb(raw_color, settings.default_font_color),
    )


def _build_fill(style: StyleData) -> Optional[PatternFill]:
    raw = color_value(style.bg)
    if raw is None:
        return None
    argb = argb_from_rgb(raw, "")
    if not argb:
        return None
    return PatternFill(fill_type="solid", start_color=argb, end_color=argb)


def _build_alignment(style: StyleData) -> Optional[Alignment]:
    horizontal = H_ALIGN.get(_as_code(style.ht))
    vertical = V_ALIGN.get(_as_code(style.vt))
    wrap = True if _as_code(style.tb) == WRAP_CODE else None
    if horizontal is None and vertical is None and wrap is None:
        return None
    return Alignment(horizontal=horizontal, vertical=vertical, wrap_text=wrap)


def _build_border(style: StyleData) -> Optional[Border]:
    if not isinstance(style.bd, Mapping):
        return None
    sides: dict[str, Side] = {}
    for key, side_name in BORDER_SIDES.items():
        spec = style.bd.get(key)
        if not isinstance(spec, Mapping):
            continue
        border_style = BORDER_STYLES.get(_as_code(spec.get("s")))
        if border_style is None:
            continue
        sides[side_name] = Side(
            border_style=border_style,
            color=argb_from_rgb(color_value(spec.get("cl"))),
        )
    return Border(**sides) if sides else None


def _number_format(style: StyleData) -> Optional[str]:
    fmt = style.n
    if isinstance(fmt, Mapping):
        fmt = fmt.get("pattern")
    return fmt if isinstance(fmt, str) and fmt else None


def build_xlsx_style(style: Optional[StyleData], settings: RenderSettings) -> XlsxStyle:
    """Build openpyxl objects for a style; a malformed style yields no styling."""
    if style is None:
        return XlsxStyle()
    try:
        return XlsxStyle(
            font=_build_font(style, settings),
            fill=_build_fill(style),
            alignment=_build_alignment(style),
            border=_build_border(style),
            number_format=_number_format(style),
        )
    except (TypeError, ValueError) as exc:
        logger.debug("style.unusable %s", exc)
        return XlsxStyle()
