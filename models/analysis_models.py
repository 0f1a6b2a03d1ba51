# models/analysis_models.py

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# -----------------------------------------
# ステータス（pending → success / error の一方向のみ）
# -----------------------------------------
AnalysisStatus = Literal["pending", "success", "error"]

TERMINAL_STATUSES = ("success", "error")

# LLM の structured output で必須にする 6 フィールド（wire 上の名前）
CRITERIA_FIELDS = (
    "missingToC",
    "deepLinkableAnchors",
    "naturalLanguageHeadings",
    "highInformationDensity",
    "semanticHtml",
)
SCORE_FIELDS = CRITERIA_FIELDS + ("summary",)


class CriteriaScores(BaseModel):
    """LLM が返す 5 つの判定 + summary。

    未知のフィールドは無視し、欠けているフィールドは False / "" で埋める。
    （スキーマ強制は LLM 側に任せ、クライアント側では厳密に検証しない）
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    missing_toc: bool = Field(False, alias="missingToC", description="True if ToC is missing")
    deep_linkable_anchors: bool = Field(
        False, alias="deepLinkableAnchors", description="True if sections have linkable IDs"
    )
    natural_language_headings: bool = Field(
        False,
        alias="naturalLanguageHeadings",
        description="True if headings use natural language/questions",
    )
    high_information_density: bool = Field(
        False, alias="highInformationDensity", description="True if content is entity-rich"
    )
    semantic_html: bool = Field(False, alias="semanticHtml", description="True if HTML structure is semantic")
    summary: str = Field("", description="Detailed summary of findings in Markdown")

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CriteriaScores":
        """LLM の JSON(dict) を正規化して CriteriaScores にする。

        - bool 以外の値が来た場合は truthiness で丸める
        - summary が文字列でなければ str() する（None は ""）
        """
        values: Dict[str, Any] = {}
        for name in CRITERIA_FIELDS:
            values[name] = bool(data.get(name))
        summary = data.get("summary")
        values["summary"] = "" if summary is None else str(summary)
        return cls(**values)


class AnalysisResult(BaseModel):
    """1 URL（= 入力 1 行）分の分析結果。

    レコードは完了時に丸ごと差し替える前提なので frozen にしている。
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str
    status: AnalysisStatus = "pending"

    missing_toc: bool = Field(False, alias="missingToC")
    deep_linkable_anchors: bool = Field(False, alias="deepLinkableAnchors")
    natural_language_headings: bool = Field(False, alias="naturalLanguageHeadings")
    high_information_density: bool = Field(False, alias="highInformationDensity")
    semantic_html: bool = Field(False, alias="semanticHtml")

    summary: str = ""
    error: Optional[str] = None

    # ------------------------------
    # ファクトリ
    # ------------------------------
    @classmethod
    def pending(cls, url: str) -> "AnalysisResult":
        return cls(url=url, status="pending")

    @classmethod
    def succeeded(cls, url: str, scores: CriteriaScores) -> "AnalysisResult":
        return cls(
            url=url,
            status="success",
            missing_toc=scores.missing_toc,
            deep_linkable_anchors=scores.deep_linkable_anchors,
            natural_language_headings=scores.natural_language_headings,
            high_information_density=scores.high_information_density,
            semantic_html=scores.semantic_html,
            summary=scores.summary,
        )

    @classmethod
    def failed(cls, url: str, message: str) -> "AnalysisResult":
        """エラー時は判定をすべて False / summary 空にリセットする。"""
        return cls(url=url, status="error", error=message or "Unknown error")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def criteria(self) -> Dict[str, bool]:
        """wire 名 → bool の dict（export やテスト用）。"""
        return {
            "missingToC": self.missing_toc,
            "deepLinkableAnchors": self.deep_linkable_anchors,
            "naturalLanguageHeadings": self.natural_language_headings,
            "highInformationDensity": self.high_information_density,
            "semanticHtml": self.semantic_html,
        }


class RunSummary(BaseModel):
    """結果一覧ヘッダ用の件数サマリ（N Success / M Errors）。"""

    total: int
    pending: int
    success: int
    error: int
