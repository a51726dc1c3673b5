"""
Formula Translator

Rewrites A1-style spreadsheet formulas for column movement (identity remap)
and for row replication (one template row copied down N data rows).

Formulas are tokenized with openpyxl so string literals and function names
such as LOG10( are never mistaken for cell references. Only reference text
changes; spacing and line breaks are kept as written.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Mapping

from openpyxl.formula.tokenizer import Token, Tokenizer, TokenizerError
from openpyxl.utils import column_index_from_string, get_column_letter

logger = logging.getLogger(__name__)

_CELL_REF = re.compile(
    r"(?<![A-Za-z0-9_.])(\$?)([A-Za-z]{1,3})(\$?)([0-9]+)(?![A-Za-z0-9_(])"
)

RefRewriter = Callable[[re.Match], str]


def column_index(letters: str) -> int:
    """0-based column index: A -> 0, Z -> 25, AA -> 26."""
    return column_index_from_string(letters.upper()) - 1


def column_letters(index: int) -> str:
    """Inverse of column_index."""
    return get_column_letter(index + 1)


def _rewrite_range(value: str, rewrite: RefRewriter) -> str:
    # Sheet qualifiers ('Data 2024'!A1) are left alone
    sheet, bang, ref = value.rpartition("!")
    return f"{sheet}{bang}{_CELL_REF.sub(rewrite, ref)}"


def _rewrite_references(formula: str, rewrite: RefRewriter) -> str:
    if not formula:
        return formula
    has_equals = formula.startswith("=")
    source = formula if has_equals else "=" + formula
    try:
        tokenizer = Tokenizer(source)
    except TokenizerError:
        logger.debug("formula.tokenize_failed %s", formula)
        return formula

    # Splice rewritten ranges into the source text; Tokenizer.render() would
    # collapse whitespace runs and line breaks.
    pieces: list[str] = []
    copied = 0
    cursor = 1
    for token in tokenizer.items:
        if token.type == Token.WSPACE:
            continue
        start = source.find(token.value, cursor)
        if start < 0:
            logger.debug("formula.token_unmatched %s", formula)
            return formula
        cursor = start + len(token.value)
        if token.type != Token.OPERAND or token.subtype != Token.RANGE:
            continue
        rewritten = _rewrite_range(token.value, rewrite)
        if rewritten != token.value:
            pieces.append(source[copied:start])
            pieces.append(rewritten)
            copied = cursor
    if not pieces:
        return formula

    pieces.append(source[copied:])
    rendered = "".join(pieces)
    return rendered if has_equals else rendered[1:]


def remap_formula_columns(formula: str, pos_map: Mapping[int, int]) -> str:
    """
    Move column letters of cell references according to pos_map.

    Unknown or unmoved columns keep their original text; row digits and $
    anchors are never touched.
    """
    def rewrite(match: re.Match) -> str:
        col_anchor, letters, row_anchor, row = match.groups()
        try:
            old_idx = column_index(letters)
        except ValueError:
            return match.group(0)
        new_idx = pos_map.get(old_idx)
        if new_idx is None or new_idx == old_idx:
            return match.group(0)
        return f"{col_anchor}{column_letters(new_idx)}{row_anchor}{row}"

    return _rewrite_references(formula, rewrite)


def adjust_formula_row(formula: str, template_row: int, target_row: int) -> str:
    """
    Shift relative row numbers by target_row - template_row.

    Absolute ($-anchored) rows stay put. A reference pushed above row 1
    becomes #REF!, as a spreadsheet fill would produce.
    """
    offset = target_row - template_row
    if offset == 0:
        return formula

    def rewrite(match: re.Match) -> str:
        col_anchor, letters, row_anchor, row = match.groups()
        if row_anchor:
            return match.group(0)
        new_row = int(row) + offset
        if new_row < 1:
            return "#REF!"
        return f"{col_anchor}{letters}{new_row}"

    return _rewrite_references(formula, rewrite)


def translate_formula(
    formula: str,
    pos_map: Mapping[int, int],
    template_row: int,
    target_row: int,
) -> str:
    """Column remap first, then row adjust."""
    return adjust_formula_row(remap_formula_columns(formula, pos_map), template_row, target_row)
