# app/graph/workflow.py

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Union

from app.graph import nodes
from app.graph.nodes import AnalyzeFn
from app.graph.state import RunState, create_initial_state

logger = logging.getLogger(__name__)

OnUpdate = Callable[[RunState], None]


def split_url_text(text: str) -> List[str]:
    """
    改行区切りのテキストを URL リストにする。
    "\n" でだけ区切り、各行を trim して空行は捨てる。順序と重複はそのまま。
    """
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def _normalize_input(urls: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(urls, str):
        return split_url_text(urls)
    return [u.strip() for u in urls if u and u.strip()]


def run_analysis(
    urls: Union[str, Iterable[str]],
    analyze: AnalyzeFn,
    on_update: Optional[OnUpdate] = None,
    run_id: Optional[str] = None,
) -> Optional[RunState]:
    """
    URL リストを 1 件ずつ直列に分析するワークフロー。

    seed(全件 pending を publish) → analyze × N（1 件終わるごとに publish）→ finish

    - 入力が空なら何もしない（None を返し、on_update も呼ばない）
    - URL i+1 は URL i の分析が完了してから開始する
    - 1 件の失敗で全体を止めない（失敗はその URL のレコードに入る）
    """
    url_list = _normalize_input(urls)
    if not url_list:
        logger.info("[workflow] run_analysis skipped: no URLs")
        return None

    def publish(state: RunState) -> None:
        if on_update is not None:
            on_update(state)

    state = create_initial_state(url_list, run_id=run_id)
    state = nodes.seed_node(state)
    logger.info("[workflow] run_analysis start run_id=%s urls=%s", state.run_id, len(url_list))

    # 最初の分析が返る前に pending の一覧を見せる
    publish(state)

    for index in range(len(url_list)):
        state = nodes.analyze_node(state, index, analyze)
        publish(state)

    state = nodes.finish_node(state)
    publish(state)

    logger.info(
        "[workflow] run_analysis done run_id=%s current_node=finish",
        state.run_id,
    )
    return state
