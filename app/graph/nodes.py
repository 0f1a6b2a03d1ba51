# app/graph/nodes.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List

from app.graph.state import RunState
from models.analysis_models import AnalysisResult

logger = logging.getLogger(__name__)

AnalyzeFn = Callable[[str], AnalysisResult]


def _log_progress(state: RunState, node: str, message: str) -> RunState:
    """
    進捗ログを state に積むユーティリティ。
    state は frozen なので、messages を足した新しい state を返す。
    """
    line = f"[{node}] {message}"

    messages: List[str] = list(state.progress_messages)
    messages.append(line)

    logger.info("[%s] run_id=%s %s", node, state.run_id, message)
    return state.model_copy(update={"progress_messages": messages})


# ---------- seed ノード ----------


def seed_node(state: RunState) -> RunState:
    """全件 pending の初期 state に開始ログを積むだけ。"""
    return _log_progress(state, "seed", f"start: {len(state.results)} URLs queued")


# ---------- URL 1 件分の分析ノード ----------


def analyze_node(state: RunState, index: int, analyze: AnalyzeFn) -> RunState:
    """
    index 番目の URL を分析し、そのレコードだけを差し替えた新しい state を返す。

    analyze は本来例外を投げない契約だが、万一投げても
    この URL を error にするだけで後続の URL は止めない。
    """
    url = state.results[index].url
    total = len(state.results)
    state = _log_progress(state, "analyze", f"start: {index + 1}/{total} {url}")

    try:
        result = analyze(url)
    except Exception as e:  # noqa: BLE001
        logger.exception("[analyze_node] analyze raised url=%s", url)
        result = AnalysisResult.failed(url, str(e) or e.__class__.__name__)

    # レコードの url は書き換えない（位置で対応付ける）
    if result.url != url:
        result = result.model_copy(update={"url": url})

    results = list(state.results)
    results[index] = result

    state = state.model_copy(update={"results": results})
    return _log_progress(state, "analyze", f"done: {index + 1}/{total} status={result.status}")


# ---------- 完了ノード ----------


def finish_node(state: RunState) -> RunState:
    summary = state.summary()
    state = state.model_copy(update={"is_analyzing": False, "finished_at": datetime.now()})
    return _log_progress(
        state,
        "finish",
        f"done: success={summary.success} error={summary.error} total={summary.total}",
    )
