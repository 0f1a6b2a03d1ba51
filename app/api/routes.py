# app/api/routes.py
from __future__ import annotations

import io
import logging
from functools import partial
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel

from agents.page_analyzer_agent import analyze_page
from app.config import Settings
from app.graph.state import RunState, create_initial_state
from app.graph.workflow import run_analysis, split_url_text
from models.analysis_models import AnalysisResult, RunSummary
from services.crawler import FetchError, PageFetcher
from services.run_store import RunStore
from services.spreadsheet import (
    XLSX_MEDIA_TYPE,
    SpreadsheetError,
    append_urls,
    export_filename,
    export_results,
    extract_urls_from_workbook,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# --------- Request / Response モデル ---------


class AnalyzeRequest(BaseModel):
    # 1 行 1 URL のテキスト（UI のテキストエリアそのまま）
    urls: str


class RunResponse(BaseModel):
    run_id: str
    is_analyzing: bool
    results: List[AnalysisResult]
    summary: RunSummary
    progress_messages: List[str] = []

    @classmethod
    def from_state(cls, state: RunState) -> "RunResponse":
        return cls(
            run_id=state.run_id,
            is_analyzing=state.is_analyzing,
            results=state.results,
            summary=state.summary(),
            progress_messages=state.progress_messages,
        )


class ImportResponse(BaseModel):
    urls: str
    imported: List[str]


class FetchUrlRequest(BaseModel):
    url: str


class FetchUrlResponse(BaseModel):
    html: str


# --------- 依存オブジェクト（app.state に create_app で積んである） ---------


def _analyze_fn(request: Request):
    app_state = request.app.state
    settings: Settings = app_state.settings
    return partial(
        analyze_page,
        fetcher=app_state.fetcher,
        scorer=app_state.scorer,
        max_html_chars=settings.max_html_chars,
        lenient_parse=settings.scoring_lenient_parse,
        subject=settings.analysis_subject,
    )


def _run_store(request: Request) -> RunStore:
    return request.app.state.run_store


def _get_run_or_404(request: Request, run_id: str) -> RunState:
    state = _run_store(request).get(run_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return state


# --------- エンドポイント ---------


@router.post("/urls/import", response_model=ImportResponse)
def api_import_urls(file: UploadFile = File(...), urls: str = Form("")) -> ImportResponse:
    """
    xlsx をアップロードして URL を取り出し、既存の入力テキストに追記して返す。
    """
    data = file.file.read()
    try:
        imported = extract_urls_from_workbook(data)
    except SpreadsheetError as e:
        logger.warning("[api.urls.import] unreadable workbook filename=%s error=%s", file.filename, e)
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info("[api.urls.import] filename=%s imported=%s", file.filename, len(imported))
    return ImportResponse(urls=append_urls(urls, imported), imported=imported)


@router.post("/runs", response_model=RunResponse, response_model_exclude_none=True, status_code=202)
def api_start_run(payload: AnalyzeRequest, request: Request, background_tasks: BackgroundTasks) -> RunResponse:
    """
    分析を開始する。全件 pending の state をすぐに返し、
    実際の分析はバックグラウンドで 1 件ずつ直列に進める。
    途中経過は GET /runs/{run_id} で取得する。
    """
    url_list = split_url_text(payload.urls)
    if not url_list:
        raise HTTPException(status_code=400, detail="No URLs to analyze")

    store = _run_store(request)
    state = create_initial_state(url_list)
    store.put(state)

    logger.info("[api.runs] start run_id=%s urls=%s", state.run_id, len(url_list))

    background_tasks.add_task(
        run_analysis,
        url_list,
        _analyze_fn(request),
        on_update=store.publish,
        run_id=state.run_id,
    )
    return RunResponse.from_state(state)


@router.get("/runs/{run_id}", response_model=RunResponse, response_model_exclude_none=True)
def api_get_run(run_id: str, request: Request) -> RunResponse:
    return RunResponse.from_state(_get_run_or_404(request, run_id))


@router.get("/runs/{run_id}/summary", response_model=RunSummary)
def api_get_run_summary(run_id: str, request: Request) -> RunSummary:
    return _get_run_or_404(request, run_id).summary()


@router.delete("/runs/{run_id}", status_code=204)
def api_clear_run(run_id: str, request: Request) -> Response:
    """結果を破棄する。裏で走っている分析は止めない（以降の更新は捨てられる）。"""
    if not _run_store(request).clear(run_id):
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return Response(status_code=204)


@router.get("/runs/{run_id}/export")
def api_export_run(run_id: str, request: Request) -> StreamingResponse:
    state = _get_run_or_404(request, run_id)
    settings: Settings = request.app.state.settings

    filename = export_filename(settings.export_filename_prefix)
    logger.info("[api.runs.export] run_id=%s rows=%s filename=%s", run_id, len(state.results), filename)

    return StreamingResponse(
        io.BytesIO(export_results(state.results)),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/analyze", response_model=RunResponse, response_model_exclude_none=True)
def api_analyze(payload: AnalyzeRequest, request: Request) -> RunResponse:
    """
    同期版。全 URL の分析が終わるまで待って最終結果を返す（少数 URL の確認用）。
    """
    logger.info("[api.analyze] start")
    state: Optional[RunState] = run_analysis(payload.urls, _analyze_fn(request))
    if state is None:
        raise HTTPException(status_code=400, detail="No URLs to analyze")

    logger.info("[api.analyze] done run_id=%s summary=%s", state.run_id, state.summary())
    return RunResponse.from_state(state)


@router.post("/fetch-url", response_model=FetchUrlResponse)
def api_fetch_url(payload: FetchUrlRequest, request: Request) -> FetchUrlResponse:
    """
    ページ取得用プロキシ。{url} を受け取り、その HTML を {html} で返す。
    """
    url = payload.url.strip()
    if not (url.lower().startswith("http://") or url.lower().startswith("https://")):
        raise HTTPException(status_code=400, detail="URL must start with http:// or https://")

    fetcher: PageFetcher = request.app.state.proxy_fetcher
    try:
        html = fetcher.fetch(url)
    except FetchError as e:
        logger.warning("[api.fetch-url] upstream error url=%s error=%s", url, e)
        raise HTTPException(status_code=502, detail=str(e)) from e

    return FetchUrlResponse(html=html)
