"""
Integration tests for report workbook rendering.

Workbooks are rendered to bytes and read back with openpyxl.
"""
from datetime import date, datetime, time, timedelta, timezone

import pytest

from rpt_engine.models import ColumnConfig, SheetTemplate
from rpt_engine.validation import ColumnMismatchError, DuplicateColumnIdError, UnknownColumnError
from rpt_io.writers import generate_excel, report_filename
from rpt_io.xlsx_validation import (
    FormulaCheck,
    find_missing_formulas,
    header_values,
    load_workbook_bytes,
    merged_ranges,
)

COLUMNS = ["Name", "Amount", "Status"]
ROWS = [
    {"Name": "Alice", "Amount": 100, "Status": "Active"},
    {"Name": "Bob", "Amount": 200, "Status": "Inactive"},
    {"Name": "Charlie", "Amount": 300, "Status": "Active"},
]
CONFIG_IDS = ["cfg_aaa", "cfg_bbb", "cfg_ccc"]


@pytest.fixture
def column_config() -> list[ColumnConfig]:
    return [
        ColumnConfig(id="cfg_aaa", source_column="name", display_name="Name", width=12),
        ColumnConfig(id="cfg_bbb", source_column="amount", display_name="Amount", width=10),
        ColumnConfig(id="cfg_ccc", source_column="status", display_name="Status", width=10),
    ]


def _template(cell_data, styles=None, column_map=None, start_row=0, **sheet_extra) -> SheetTemplate:
    return SheetTemplate.model_validate(
        {
            "version": 2,
            "startRow": start_row,
            "columnMap": column_map or {"cfg_aaa": 0, "cfg_bbb": 1, "cfg_ccc": 2},
            "snapshot": {
                "styles": styles or {},
                "sheetOrder": ["s1"],
                "sheets": {"s1": {"name": "Results", "cellData": cell_data, **sheet_extra}},
            },
        }
    )


def _render(column_config, template=None, columns=COLUMNS, rows=ROWS, config_ids=CONFIG_IDS):
    content = generate_excel("Test", columns, rows, config_ids, column_config, template)
    return load_workbook_bytes(content).active


class TestDefaultRendering:
    def test_default_header_formatting(self, column_config):
        ws = _render(column_config)
        for col in range(1, 4):
            cell = ws.cell(row=1, column=col)
            assert cell.font.bold
            assert cell.font.size == 11
            assert cell.fill.fill_type == "solid"
            assert cell.fill.fgColor.rgb == "FFD9E1F2"
        assert header_values(ws, 1) == COLUMNS
        assert ws.cell(row=2, column=1).value == "Alice"
        assert ws.cell(row=2, column=2).value == 100
        assert ws.cell(row=3, column=1).value == "Bob"

    def test_sheet_chrome(self, column_config):
        ws = _render(column_config)
        assert ws.title == "Test"
        assert ws.freeze_panes == "A2"
        assert ws.auto_filter.ref == "A1:C1"
        assert ws.column_dimensions["A"].width == 12

    def test_formula_column(self, column_config):
        config = column_config + [
            ColumnConfig(id="cfg_ddd", display_name="Total", formula="=B2*1.1", width=10)
        ]
        rows = [{**row, "Total": ""} for row in ROWS]
        content = generate_excel(
            "Test", COLUMNS + ["Total"], rows, CONFIG_IDS + ["cfg_ddd"], config, None
        )
        wb = load_workbook_bytes(content)
        assert not find_missing_formulas(wb, [FormulaCheck("Test", ["D2", "D3", "D4"])])
        ws = wb.active
        assert ws["D2"].value == "=B2*1.1"
        assert ws["D4"].value == "=B4*1.1"

    def test_formula_like_data_stays_text(self, column_config):
        rows = [{"Name": "=HYPERLINK(\"x\")", "Amount": None, "Status": ""}]
        ws = _render(column_config, rows=rows)
        assert ws["A2"].value == '=HYPERLINK("x")'
        assert ws["A2"].data_type == "s"
        assert ws["B2"].value is None
        assert ws["C2"].value is None

    def test_timezone_aware_values_written_as_utc(self, column_config):
        plus_two = timezone(timedelta(hours=2))
        rows = [
            {"Name": datetime(2026, 1, 1, 9, tzinfo=timezone.utc), "Amount": 1, "Status": time(9, 30, tzinfo=plus_two)},
            {"Name": datetime(2026, 1, 1, 11, tzinfo=plus_two), "Amount": 2, "Status": time(8, 15)},
        ]
        ws = _render(column_config, rows=rows)
        assert ws["A2"].value == datetime(2026, 1, 1, 9)
        assert ws["A3"].value == datetime(2026, 1, 1, 9)
        assert ws["C2"].value == time(7, 30)
        assert ws["C3"].value == time(8, 15)

    def test_long_title_truncated(self, column_config):
        content = generate_excel("Q3 / Sales: " + "x" * 40, COLUMNS, ROWS, CONFIG_IDS, column_config)
        title = load_workbook_bytes(content).active.title
        assert len(title) <= 31
        assert "/" not in title and ":" not in title


class TestTemplateRendering:
    def test_template_styles_on_header_and_data(self, column_config):
        styles = {
            "gold_header": {"bl": 1, "fs": 12, "bg": {"rgb": "#c9933a"}, "cl": {"rgb": "#ffffff"}, "ht": 2},
            "bold_data": {"bl": 1, "fs": 11, "cl": {"rgb": "#333333"}},
            "bg_data": {"bg": {"rgb": "#f0f0f0"}},
        }
        cell_data = {
            0: {0: {"s": "gold_header"}, 1: {"s": "gold_header"}, 2: {"s": "gold_header"}},
            1: {0: {"s": "bold_data"}, 1: {"s": "bold_data"}, 2: {"s": "bg_data"}},
        }
        ws = _render(column_config, _template(cell_data, styles))

        for col in range(1, 4):
            cell = ws.cell(row=1, column=col)
            assert cell.font.bold
            assert cell.font.size == 12
            assert cell.font.color.rgb == "FFFFFFFF"
            assert cell.fill.fgColor.rgb == "FFC9933A"
            assert cell.alignment.horizontal == "center"

        for row in range(2, 5):
            assert ws.cell(row=row, column=1).font.bold
            assert ws.cell(row=row, column=1).font.color.rgb == "FF333333"
            assert ws.cell(row=row, column=3).fill.fgColor.rgb == "FFF0F0F0"

    def test_preamble_rows(self, column_config):
        styles = {"title_style": {"bl": 1, "fs": 16, "cl": {"rgb": "#000000"}}}
        cell_data = {0: {0: {"v": "Monthly Report", "s": "title_style"}}}
        ws = _render(column_config, _template(cell_data, styles, start_row=2))

        assert ws["A1"].value == "Monthly Report"
        assert ws["A1"].font.bold
        assert ws["A1"].font.size == 16
        assert header_values(ws, 3) == COLUMNS
        assert ws["A4"].value == "Alice"
        assert ws.freeze_panes == "A4"
        assert ws.auto_filter.ref == "A3:C3"

    def test_reordered_columns_follow_identity(self, column_config):
        # Saved when the order was [Amount, Name, Status]
        styles = {"amount_style": {"bl": 1, "bg": {"rgb": "#e6ffe6"}}}
        cell_data = {0: {0: {"s": "amount_style"}}, 1: {0: {"s": "amount_style"}}}
        template = _template(
            cell_data, styles, column_map={"cfg_bbb": 0, "cfg_aaa": 1, "cfg_ccc": 2}
        )
        ws = _render(column_config, template)

        assert ws["B1"].fill.fgColor.rgb == "FFE6FFE6"
        assert ws["A1"].fill.fgColor.rgb == "FFD9E1F2"
        for row in range(2, 5):
            assert ws.cell(row=row, column=2).font.bold
            assert not ws.cell(row=row, column=1).font.bold

    def test_deleted_column_cosmetics_dropped(self, column_config):
        styles = {"red": {"bg": {"rgb": "#ff0000"}}}
        cell_data = {1: {1: {"s": "red"}}}
        template = _template(cell_data, styles, column_map={"cfg_aaa": 0, "cfg_gone": 1, "cfg_bbb": 2})
        ws = _render(column_config, template)
        for col in range(1, 4):
            assert ws.cell(row=2, column=col).fill.fgColor.rgb != "FFFF0000"

    def test_edge_case_colours(self, column_config):
        styles = {
            "rgb_format": {"bg": {"rgb": "rgb(255, 200, 100)"}},
            "no_hash": {"bg": {"rgb": "C9933A"}},
            "null_color": {"bl": 1, "bg": {"rgb": None}, "cl": {"rgb": None}},
        }
        cell_data = {1: {0: {"s": "rgb_format"}, 1: {"s": "no_hash"}, 2: {"s": "null_color"}}}
        ws = _render(column_config, _template(cell_data, styles))

        assert ws["A2"].fill.fgColor.rgb == "FFFFC864"
        assert ws["B2"].fill.fgColor.rgb == "FFC9933A"
        assert ws["C2"].font.bold
        assert ws["C2"].fill.fill_type is None

    def test_dangling_style_reference_ignored(self, column_config):
        cell_data = {0: {0: {"s": "nope"}}, 1: {0: {"s": "also_nope"}}}
        ws = _render(column_config, _template(cell_data))
        assert ws["A1"].fill.fgColor.rgb == "FFD9E1F2"
        assert ws["A2"].value == "Alice"

    def test_template_formula_remapped_and_replicated(self, column_config):
        # Saved as [Amount, Name, Status, Double] with Double = A2*2
        config = column_config + [ColumnConfig(id="cfg_ddd", display_name="Double", width=10)]
        cell_data = {1: {3: {"f": "=A2*2"}}}
        template = _template(
            cell_data,
            column_map={"cfg_bbb": 0, "cfg_aaa": 1, "cfg_ccc": 2, "cfg_ddd": 3},
        )
        rows = [{**row, "Double": ""} for row in ROWS]
        content = generate_excel(
            "Test", COLUMNS + ["Double"], rows, CONFIG_IDS + ["cfg_ddd"], config, template
        )
        ws = load_workbook_bytes(content).active
        assert ws["D2"].value == "=B2*2"
        assert ws["D3"].value == "=B3*2"
        assert ws["D4"].value == "=B4*2"

    def test_template_widths_follow_identity(self, column_config):
        template = _template({}, column_map={"cfg_ccc": 0, "cfg_aaa": 1, "cfg_bbb": 2}, columnData={0: {"w": 140}})
        ws = _render(column_config, template)
        assert ws.column_dimensions["C"].width == 20
        assert ws.column_dimensions["A"].width == 12

    def test_legacy_template_is_positional(self, column_config):
        template = SheetTemplate.model_validate(
            {
                "snapshot": {
                    "styles": {"red": {"bg": {"rgb": "#ff0000"}}},
                    "sheets": {"s1": {"cellData": {1: {0: {"s": "red"}}}}},
                }
            }
        )
        assert template.version == 1
        ws = _render(column_config, template)
        assert ws["A2"].fill.fgColor.rgb == "FFFF0000"

    def test_column_formula_overrides_template_formula(self, column_config):
        config = column_config + [
            ColumnConfig(id="cfg_ddd", display_name="Scaled", formula="=B2*10", width=10)
        ]
        template = _template(
            {1: {3: {"f": "=B2+1"}}},
            column_map={"cfg_aaa": 0, "cfg_bbb": 1, "cfg_ccc": 2, "cfg_ddd": 3},
        )
        rows = [{**row, "Scaled": ""} for row in ROWS]
        content = generate_excel(
            "Test", COLUMNS + ["Scaled"], rows, CONFIG_IDS + ["cfg_ddd"], config, template
        )
        ws = load_workbook_bytes(content).active
        assert ws["D2"].value == "=B2*10"
        assert ws["D4"].value == "=B4*10"

    def test_formulas_below_preamble(self, column_config):
        # Two preamble rows: header on row 3, data from row 4
        config = column_config + [
            ColumnConfig(id="cfg_ddd", display_name="Double", width=10),
            ColumnConfig(id="cfg_eee", display_name="Scaled", formula="=B2*10", width=10),
        ]
        template = _template(
            {0: {0: {"v": "Title"}}, 3: {3: {"f": "=B4*2"}}},
            column_map={"cfg_aaa": 0, "cfg_bbb": 1, "cfg_ccc": 2, "cfg_ddd": 3, "cfg_eee": 4},
            start_row=2,
        )
        rows = [{**row, "Double": "", "Scaled": ""} for row in ROWS]
        content = generate_excel(
            "Test",
            COLUMNS + ["Double", "Scaled"],
            rows,
            CONFIG_IDS + ["cfg_ddd", "cfg_eee"],
            config,
            template,
        )
        ws = load_workbook_bytes(content).active
        assert [ws.cell(row=r, column=4).value for r in (4, 5, 6)] == ["=B4*2", "=B5*2", "=B6*2"]
        assert [ws.cell(row=r, column=5).value for r in (4, 5, 6)] == ["=B4*10", "=B5*10", "=B6*10"]

    def test_malformed_style_fields_still_render(self, column_config):
        template = SheetTemplate.model_validate(
            {
                "columnMap": {"cfg_aaa": 0, "cfg_bbb": 1, "cfg_ccc": 2},
                "snapshot": {
                    "styles": {"odd": {"fs": "12pt", "bl": {"s": 1}, "ht": "center", "bg": {"rgb": "#c9933a"}}},
                    "sheets": {"s1": {"cellData": {0: {0: {"s": "odd"}}, 1: {0: {"s": "odd"}}}}},
                },
            }
        )
        ws = _render(column_config, template)
        assert ws["A1"].value == "Name"
        assert ws["A1"].font.size == 11
        assert ws["A1"].fill.fgColor.rgb == "FFC9933A"
        assert ws["A2"].font.bold
        assert ws["A2"].value == "Alice"


class TestMergesAndFreeze:
    def test_merges_placed_and_invalid_skipped(self, column_config):
        merge_data = [
            {"startRow": 0, "startColumn": 0, "endRow": 0, "endColumn": 2},
            {"startRow": 0, "startColumn": 1, "endRow": 0, "endColumn": 2},
            {"startRow": 2, "startColumn": 0, "endRow": 2, "endColumn": 0},
        ]
        template = _template({0: {0: {"v": "Title"}}}, start_row=1, mergeData=merge_data)
        ws = _render(column_config, template)
        assert merged_ranges(ws) == {"A1:C1"}

    def test_data_area_merge_follows_identity(self, column_config):
        merge_data = [{"startRow": 1, "startColumn": 0, "endRow": 2, "endColumn": 0}]
        template = _template({}, column_map={"cfg_ccc": 0, "cfg_aaa": 1, "cfg_bbb": 2}, mergeData=merge_data)
        ws = _render(column_config, template)
        assert merged_ranges(ws) == {"C2:C3"}

    def test_template_freeze(self, column_config):
        template = _template({}, freeze={"xSplit": 1, "ySplit": 2, "startRow": 2, "startColumn": 1})
        ws = _render(column_config, template)
        assert ws.freeze_panes == "B3"

    def test_template_without_freeze_splits(self, column_config):
        template = _template({}, freeze={"xSplit": 0, "ySplit": 0})
        ws = _render(column_config, template)
        assert ws.freeze_panes is None


class TestStructuralErrors:
    def test_unknown_row_column(self, column_config):
        rows = [{"Name": "Alice", "Amount": 1, "Status": "x", "Bogus": 1}]
        with pytest.raises(UnknownColumnError) as exc_info:
            generate_excel("Test", COLUMNS, rows, CONFIG_IDS, column_config)
        assert exc_info.value.columns == ["Bogus"]

    def test_ids_not_parallel_to_columns(self, column_config):
        with pytest.raises(ColumnMismatchError):
            generate_excel("Test", COLUMNS, ROWS, CONFIG_IDS[:2], column_config)

    def test_duplicate_ids(self, column_config):
        with pytest.raises(DuplicateColumnIdError):
            generate_excel("Test", COLUMNS, ROWS, ["cfg_aaa", "cfg_aaa", "cfg_ccc"], column_config)


def test_report_filename():
    assert report_filename("Q3: Sales/Report!", date(2026, 2, 18)) == "Q3 SalesReport_2026-02-18.xlsx"
    assert report_filename("***", date(2026, 2, 18)) == "report_2026-02-18.xlsx"
