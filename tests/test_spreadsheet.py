from __future__ import annotations

import io
from datetime import date
from typing import Any, List, Sequence

import openpyxl
import pytest

from models.analysis_models import AnalysisResult, CriteriaScores
from services.spreadsheet import (
    EXPORT_HEADERS,
    RESULTS_SHEET_TITLE,
    SpreadsheetError,
    append_urls,
    export_filename,
    export_results,
    extract_urls_from_workbook,
)


# -----------------------------
# Helpers
# -----------------------------
def make_workbook(rows: Sequence[Sequence[Any]], extra_sheet: bool = False) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    if extra_sheet:
        other = wb.create_sheet("Other")
        other.append(["URL"])
        other.append(["https://should-not-be-read.example"])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def sample_results() -> List[AnalysisResult]:
    return [
        AnalysisResult.succeeded(
            "https://a.example",
            CriteriaScores(missingToC=True, semanticHtml=True, summary="## Findings"),
        ),
        AnalysisResult.failed("https://b.example", "Failed to fetch page content: 404"),
        AnalysisResult.pending("https://c.example"),
    ]


# -----------------------------
# Import
# -----------------------------
def test_extract_prefers_url_column():
    data = make_workbook(
        [
            ["Name", "URL"],
            ["Home", "https://a.example"],
            ["About", "https://b.example/about"],
        ]
    )

    assert extract_urls_from_workbook(data) == ["https://a.example", "https://b.example/about"]


def test_extract_uses_first_column_when_unnamed():
    data = make_workbook(
        [
            [None, "Note"],
            ["https://c.example", "x"],
            ["https://c.example", "y"],
        ]
    )

    assert extract_urls_from_workbook(data) == ["https://c.example", "https://c.example"]


def test_extract_falls_back_to_first_value_when_url_cell_empty():
    data = make_workbook(
        [
            ["Page", "URL"],
            ["https://fallback.example", None],
            ["ignored", "https://a.example"],
        ]
    )

    assert extract_urls_from_workbook(data) == ["https://fallback.example", "https://a.example"]


def test_extract_filters_non_http_values_and_trims():
    data = make_workbook(
        [
            ["URL"],
            ["  https://a.example  "],
            ["ftp://files.example"],
            ["www.no-scheme.example"],
            [42],
            [None],
            ["HTTP://UPPER.example"],
        ]
    )

    assert extract_urls_from_workbook(data) == ["https://a.example", "HTTP://UPPER.example"]


def test_extract_reads_only_first_sheet():
    data = make_workbook([["URL"], ["https://a.example"]], extra_sheet=True)

    assert extract_urls_from_workbook(data) == ["https://a.example"]


def test_extract_header_only_sheet_returns_empty():
    assert extract_urls_from_workbook(make_workbook([["URL"]])) == []


def test_extract_rejects_non_workbook_bytes():
    with pytest.raises(SpreadsheetError):
        extract_urls_from_workbook(b"this is not an xlsx file")


@pytest.mark.parametrize(
    "existing, urls, expected",
    [
        ("", ["https://a.example"], "https://a.example"),
        ("https://x.example", ["https://a.example", "https://b.example"], "https://x.example\nhttps://a.example\nhttps://b.example"),
        ("https://x.example", [], "https://x.example"),
        ("", [], ""),
    ],
)
def test_append_urls(existing, urls, expected):
    assert append_urls(existing, urls) == expected


# -----------------------------
# Export
# -----------------------------
def test_export_writes_header_and_one_row_per_result():
    wb = openpyxl.load_workbook(io.BytesIO(export_results(sample_results())))
    ws = wb.active

    rows = list(ws.iter_rows(values_only=True))
    assert ws.title == RESULTS_SHEET_TITLE
    assert list(rows[0]) == EXPORT_HEADERS
    assert len(rows) == 4

    assert list(rows[1][:8]) == [
        "https://a.example",
        "success",
        "Yes",
        "No",
        "No",
        "No",
        "Yes",
        "## Findings",
    ]
    # 空文字セルは読み戻すと None になることがある
    assert rows[1][8] in (None, "")
    assert rows[2][1] == "error"
    assert rows[2][8] == "Failed to fetch page content: 404"
    assert rows[3][1] == "pending"


def test_export_then_reimport_reproduces_url_order():
    results = sample_results()

    data = export_results(results)

    assert extract_urls_from_workbook(data) == [r.url for r in results]


def test_export_of_empty_list_has_header_only():
    wb = openpyxl.load_workbook(io.BytesIO(export_results([])))
    rows = list(wb.active.iter_rows(values_only=True))

    assert len(rows) == 1


def test_export_filename_uses_prefix_and_iso_date():
    assert export_filename("VW_SEO_Analysis", date(2026, 10, 18)) == "VW_SEO_Analysis_2026-10-18.xlsx"


def test_export_drops_control_characters_instead_of_failing():
    results = [
        AnalysisResult.succeeded("https://a.example", CriteriaScores(summary="Heading\x0bbroken\x1f")),
        AnalysisResult.failed("https://a.example/\x01x", "bad\x0cmessage"),
    ]

    wb = openpyxl.load_workbook(io.BytesIO(export_results(results)))
    rows = list(wb.active.iter_rows(values_only=True))

    assert rows[1][7] == "Headingbroken"
    assert rows[2][0] == "https://a.example/x"
    assert rows[2][8] == "badmessage"
