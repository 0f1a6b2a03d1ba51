# services/llm_client.py

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from app.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1-mini"


class ScoringError(RuntimeError):
    """LLM 呼び出しの失敗（SDK エラー / 空レスポンス / キー未設定）。"""


def build_openai_client(settings: Settings) -> Optional[OpenAI]:
    """
    アプリ起動時に 1 回だけ呼ぶ想定のクライアント生成。
    モジュールレベルのシングルトンにはせず、呼び出し側で保持して引き回す。
    OPENAI_API_KEY が無ければ None を返す。
    """
    if not settings.openai_api_key:
        logger.warning("[llm_client] OPENAI_API_KEY is not set; scoring calls will fail")
        return None
    return OpenAI(api_key=settings.openai_api_key)


class ScoringClient:
    """
    structured output（json_schema）付きで LLM を呼び、テキストをそのまま返す。
    JSON のパースや正規化は呼び出し側（page_analyzer）で行う。
    """

    def __init__(
        self,
        client: Optional[OpenAI],
        model: str = DEFAULT_MODEL,
        schema_name: str = "seo_geo_criteria",
    ):
        self.client = client
        self.model = model or DEFAULT_MODEL
        self.schema_name = schema_name

    def score(self, prompt: str, schema: Dict[str, Any]) -> str:
        if self.client is None:
            raise ScoringError("OPENAI_API_KEY is not set")

        logger.info("[scoring] LLM call start model=%s prompt_length=%s", self.model, len(prompt))

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": self.schema_name,
                        "strict": True,
                        "schema": schema,
                    },
                },
                messages=[
                    {
                        "role": "system",
                        "content": "You are an SEO and GEO (generative engine optimization) auditor.",
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=0.2,
            )
        except OpenAIError as e:
            raise ScoringError(str(e)) from e

        usage = getattr(response, "usage", None)
        content = response.choices[0].message.content if response.choices else None
        logger.info(
            "[scoring] LLM response received length=%s total_tokens=%s",
            len(content or ""),
            getattr(usage, "total_tokens", None) if usage else None,
        )

        if content is None:
            raise ScoringError("LLM returned no content")
        return content
