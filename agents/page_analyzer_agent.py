# agents/page_analyzer_agent.py

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Protocol

from models.analysis_models import AnalysisResult, CriteriaScores
from services.crawler import ContentFetcher, FetchError
from services.llm_client import ScoringError

logger = logging.getLogger(__name__)

# ============================================================
# パラメータ
# ============================================================

# LLM に渡す HTML の最大文字数（トークン爆発を防ぐ）
MAX_HTML_CHARS_DEFAULT: int = 30000

DEFAULT_SUBJECT = "the website"


class Scorer(Protocol):
    def score(self, prompt: str, schema: Dict[str, Any]) -> str:
        ...


# ============================================================
# structured output スキーマ
# ============================================================

SCORING_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "missingToC": {"type": "boolean", "description": "True if ToC is missing"},
        "deepLinkableAnchors": {"type": "boolean", "description": "True if sections have linkable IDs"},
        "naturalLanguageHeadings": {
            "type": "boolean",
            "description": "True if headings use natural language/questions",
        },
        "highInformationDensity": {"type": "boolean", "description": "True if content is entity-rich"},
        "semanticHtml": {"type": "boolean", "description": "True if HTML structure is semantic"},
        "summary": {"type": "string", "description": "Detailed summary of findings in Markdown"},
    },
    "required": [
        "missingToC",
        "deepLinkableAnchors",
        "naturalLanguageHeadings",
        "highInformationDensity",
        "semanticHtml",
        "summary",
    ],
    "additionalProperties": False,
}


# ============================================================
# プロンプト
# ============================================================

def build_prompt(html: str, subject: str = DEFAULT_SUBJECT, max_chars: int = MAX_HTML_CHARS_DEFAULT) -> str:
    """HTML の先頭 max_chars 文字だけを埋め込んだ評価プロンプトを作る。"""
    snippet = html[:max_chars] if max_chars > 0 else html

    return f"""
Analyze the following HTML content for SEO and GEO optimization criteria for {subject}.

HTML Content (truncated if too long):
{snippet}

Check the following points:
1. Missing Table of Contents (ToC): Is there a clear navigation or ToC for the page content?
2. Deep-Linkable Anchor Tags: Are headings or sections equipped with IDs that can be linked directly?
3. Natural Language & Question-Based Headings: Are headings formulated as questions or in natural language?
4. High Information Density (Keywords as Entities): Does the content treat keywords as entities with rich information?
5. Semantic HTML Structure: Does the page use proper semantic tags (h1-h6, main, section, article)?

Provide a summary of findings for each point in Markdown.
""".strip()


# ============================================================
# レスポンスのパース
# ============================================================

def parse_scores(text: str | None, lenient: bool = False) -> CriteriaScores:
    """
    LLM の応答テキストを CriteriaScores にする。

    - lenient=False（デフォルト）: JSON として読めない / object でない場合は ScoringError
    - lenient=True: 読めなければ空 object 扱い（全 False / summary 空の success になる）
    """
    try:
        data = json.loads(text or "")
    except ValueError as e:
        if lenient:
            logger.warning("[page_analyzer] unparsable LLM response, using empty object (lenient)")
            return CriteriaScores()
        raise ScoringError(f"LLM response is not valid JSON: {(text or '')[:200]!r}") from e

    if not isinstance(data, dict):
        if lenient:
            return CriteriaScores()
        raise ScoringError("LLM response is not a JSON object")

    return CriteriaScores.from_payload(data)


# ============================================================
# メインロジック
# ============================================================

def analyze_page(
    url: str,
    fetcher: ContentFetcher,
    scorer: Scorer,
    *,
    max_html_chars: int = MAX_HTML_CHARS_DEFAULT,
    lenient_parse: bool = False,
    subject: str = DEFAULT_SUBJECT,
) -> AnalysisResult:
    """
    1 URL 分の分析。例外は投げず、失敗はすべて status=error のレコードで返す。

    1) fetcher で HTML を取得
    2) HTML 先頭をプロンプトに埋め込み、スキーマ付きで LLM に採点させる
    3) 応答を CriteriaScores に正規化して success レコードにする
    """
    try:
        html = fetcher.fetch(url)

        prompt = build_prompt(html, subject=subject, max_chars=max_html_chars)
        try:
            text = scorer.score(prompt, SCORING_SCHEMA)
        except ScoringError:
            raise
        except Exception as e:  # noqa: BLE001
            raise ScoringError(str(e) or e.__class__.__name__) from e

        scores = parse_scores(text, lenient=lenient_parse)

    except FetchError as e:
        logger.warning("[page_analyzer] fetch failed url=%s error=%s", url, e)
        return AnalysisResult.failed(url, str(e))
    except ScoringError as e:
        logger.warning("[page_analyzer] scoring failed url=%s error=%s", url, e)
        return AnalysisResult.failed(url, f"Scoring failed: {e}")
    except Exception as e:  # noqa: BLE001
        logger.exception("[page_analyzer] unexpected error url=%s", url)
        return AnalysisResult.failed(url, str(e) or e.__class__.__name__)

    logger.info(
        "[page_analyzer] success url=%s criteria=%s summary_length=%s",
        url,
        {k: v for k, v in scores.model_dump(by_alias=True).items() if k != "summary"},
        len(scores.summary),
    )
    return AnalysisResult.succeeded(url, scores)
