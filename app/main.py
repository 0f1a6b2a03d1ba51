# app/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.config import Settings, get_settings
from services.crawler import ContentFetcher, PageFetcher, build_fetcher
from services.llm_client import ScoringClient, build_openai_client
from services.run_store import RunStore

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """ルートロガーにコンソール出力を 1 つだけ付ける（二重登録しない）。"""
    root = logging.getLogger()
    if not any(getattr(h, "_seo_geo_console", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
        handler._seo_geo_console = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level.upper())


def create_app(
    settings: Optional[Settings] = None,
    fetcher: Optional[ContentFetcher] = None,
    scorer=None,
) -> FastAPI:
    """
    アプリの組み立て。外部クライアント（fetcher / LLM）はここで 1 回だけ生成し、
    app.state に載せてルートから参照する。テストでは fake を渡す。
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if fetcher is None:
        fetcher = build_fetcher(settings.fetch_proxy_url, settings.fetch_timeout)
    if scorer is None:
        scorer = ScoringClient(build_openai_client(settings), model=settings.openai_model)

    app = FastAPI(title="SEO/GEO Page Checker")

    app.state.settings = settings
    app.state.fetcher = fetcher
    app.state.scorer = scorer
    # /api/fetch-url は常に直接取得（プロキシ設定が自分自身を指しても再帰しない）
    app.state.proxy_fetcher = PageFetcher(timeout=settings.fetch_timeout)
    app.state.run_store = RunStore()

    app.include_router(api_router, prefix="/api")

    logging.getLogger(__name__).info(
        "[main] app created model=%s fetch_mode=%s",
        settings.openai_model,
        "proxy" if settings.fetch_proxy_url else "direct",
    )
    return app


app = create_app()
