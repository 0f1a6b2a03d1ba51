# services/spreadsheet.py

from __future__ import annotations

import io
import logging
import re
from datetime import date
from typing import Any, Iterable, List, Optional, Sequence

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from models.analysis_models import AnalysisResult

logger = logging.getLogger(__name__)

URL_HEADER = "URL"
RESULTS_SHEET_TITLE = "Analysis Results"

EXPORT_HEADERS = [
    "URL",
    "Status",
    "Missing ToC",
    "Deep-Linkable Anchors",
    "Natural Language Headings",
    "High Info Density",
    "Semantic HTML",
    "Summary",
    "Error",
]

# 列幅（見やすさ用。値そのものには影響しない）
_COLUMN_WIDTHS = [60, 10, 14, 22, 26, 18, 16, 80, 40]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HTTP_URL_RE = re.compile(r"^https?://\S+", flags=re.IGNORECASE)


class SpreadsheetError(ValueError):
    """アップロードされたファイルをワークブックとして読めない。"""


# ------------------------------------------------------------------
# Import（URL の取り込み）
# ------------------------------------------------------------------
def _is_http_url(value: Any) -> bool:
    return isinstance(value, str) and bool(_HTTP_URL_RE.match(value.strip()))


def _pick_row_value(row: Sequence[Any], url_col: Optional[int]) -> Any:
    """URL 列があればその値、無い（または空）なら行の最初の空でないセル。"""
    if url_col is not None and url_col < len(row) and row[url_col] not in (None, ""):
        return row[url_col]
    for cell in row:
        if cell not in (None, ""):
            return cell
    return None


def extract_urls_from_workbook(data: bytes) -> List[str]:
    """
    ワークブックの先頭シートから URL を抜き出す。

    - 1 行目はヘッダ行として扱う
    - "URL" という見出しの列があればそれを使い、無ければ各行の先頭の値を使う
    - http(s):// で始まる文字列だけを残す（trim 済みで返す）
    """
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True)
    except Exception as e:  # noqa: BLE001
        raise SpreadsheetError(f"Could not read workbook: {e}") from e

    try:
        if not wb.worksheets:
            return []
        # 1 行目が空でもヘッダ行として数えるため min_row=1 を明示
        rows = wb.worksheets[0].iter_rows(min_row=1, values_only=True)

        header = next(rows, None)
        if header is None:
            return []

        url_col: Optional[int] = None
        for i, name in enumerate(header):
            if isinstance(name, str) and name.strip() == URL_HEADER:
                url_col = i
                break

        urls: List[str] = []
        for row in rows:
            value = _pick_row_value(row, url_col)
            if _is_http_url(value):
                urls.append(value.strip())
    finally:
        wb.close()

    logger.info("[spreadsheet] extracted urls=%s url_column=%s", len(urls), url_col is not None)
    return urls


def append_urls(existing_text: str, urls: Iterable[str]) -> str:
    """既存の入力テキストの末尾に URL を 1 行ずつ追記する。"""
    extracted = "\n".join(urls)
    if not extracted:
        return existing_text or ""
    return f"{existing_text}\n{extracted}" if existing_text else extracted


# ------------------------------------------------------------------
# Export（結果の書き出し）
# ------------------------------------------------------------------
def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def _cell_text(value: str) -> str:
    """xlsx に書けない制御文字（\x0b など）を落とす。"""
    return ILLEGAL_CHARACTERS_RE.sub("", value)


def result_to_row(result: AnalysisResult) -> List[str]:
    return [
        _cell_text(result.url),
        result.status,
        _yes_no(result.missing_toc),
        _yes_no(result.deep_linkable_anchors),
        _yes_no(result.natural_language_headings),
        _yes_no(result.high_information_density),
        _yes_no(result.semantic_html),
        _cell_text(result.summary),
        _cell_text(result.error or ""),
    ]


def export_results(results: Iterable[AnalysisResult]) -> bytes:
    """結果 1 件につき 1 行の xlsx を作ってバイト列で返す。"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = RESULTS_SHEET_TITLE

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill("solid", fgColor="1A1A1A")

    for col, name in enumerate(EXPORT_HEADERS, 1):
        c = ws.cell(row=1, column=col, value=name)
        c.font = header_font
        c.fill = header_fill
        c.alignment = Alignment(horizontal="center", vertical="center")

    count = 0
    for count, result in enumerate(results, start=1):
        for col, value in enumerate(result_to_row(result), 1):
            c = ws.cell(row=count + 1, column=col, value=value)
            c.alignment = Alignment(vertical="top", wrap_text=(col == 8))

    for col, width in enumerate(_COLUMN_WIDTHS, 1):
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = "A2"

    buf = io.BytesIO()
    wb.save(buf)
    logger.info("[spreadsheet] exported rows=%s", count)
    return buf.getvalue()


def export_filename(prefix: str, today: Optional[date] = None) -> str:
    """例: SEO_GEO_Analysis_2026-10-18.xlsx"""
    today = today or date.today()
    return f"{prefix}_{today.isoformat()}.xlsx"
