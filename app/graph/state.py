# app/graph/state.py

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.analysis_models import AnalysisResult, RunSummary


def _new_run_id() -> str:
    return uuid.uuid4().hex


class RunState(BaseModel):
    """
    1 回の分析実行（URL リスト 1 本分）の State。

    - results は入力 URL と同じ順序・同じ件数
    - 更新は常に「新しい RunState / 新しい list」を作って丸ごと差し替える
      （部分的なフィールド更新はしない）
    """

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=_new_run_id)
    results: List[AnalysisResult] = Field(default_factory=list)
    is_analyzing: bool = False

    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    # 各ノードからのログ的メッセージ
    progress_messages: List[str] = Field(default_factory=list)

    def summary(self) -> RunSummary:
        statuses = [r.status for r in self.results]
        return RunSummary(
            total=len(statuses),
            pending=statuses.count("pending"),
            success=statuses.count("success"),
            error=statuses.count("error"),
        )


def create_initial_state(urls: List[str], run_id: Optional[str] = None) -> RunState:
    """
    実行開始時の初期 state。全件 pending・判定は False / summary 空。
    """
    results = [AnalysisResult.pending(u) for u in urls]
    if run_id:
        return RunState(run_id=run_id, results=results, is_analyzing=True)
    return RunState(results=results, is_analyzing=True)
