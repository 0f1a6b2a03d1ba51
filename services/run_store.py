# services/run_store.py

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from app.graph.state import RunState

logger = logging.getLogger(__name__)


class RunStore:
    """
    実行中 / 完了済みの RunState をメモリ上に持つだけのストア。
    RunState は丸ごと差し替えるので、ロックは dict 操作の間だけで足りる。
    """

    def __init__(self) -> None:
        self._runs: Dict[str, RunState] = {}
        self._cleared: set[str] = set()
        self._lock = threading.Lock()

    def put(self, state: RunState) -> None:
        with self._lock:
            self._runs[state.run_id] = state

    def publish(self, state: RunState) -> None:
        """
        ワークフローからの途中経過の反映用。
        clear 済みの run は（処理が裏で続いていても）復活させない。
        """
        with self._lock:
            if state.run_id in self._cleared:
                # 最終 snapshot が来たらもう更新は来ないので印も消す
                if not state.is_analyzing:
                    self._cleared.discard(state.run_id)
                return
            self._runs[state.run_id] = state

    def get(self, run_id: str) -> Optional[RunState]:
        with self._lock:
            return self._runs.get(run_id)

    def clear(self, run_id: str) -> bool:
        with self._lock:
            removed = self._runs.pop(run_id, None)
            # 完了済みの run には後から更新が来ないので印は不要
            if removed is not None and removed.is_analyzing:
                self._cleared.add(run_id)
        if removed is not None:
            logger.info("[run_store] cleared run_id=%s", run_id)
        return removed is not None
