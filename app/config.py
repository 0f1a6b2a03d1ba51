# app/config.py

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    アプリ全体で使う設定クラス。
    .env から環境変数を読み込み、属性として参照できるようにする。
    """

    # ---------- OpenAI ----------
    # OPENAI_API_KEY=sk-xxxx... を .env に書く想定
    # 未設定でも起動はできる（各 URL のスコアリングが error になるだけ）
    openai_api_key: str | None = None

    # OPENAI_MODEL=gpt-4.1 などと書けば上書きされる
    openai_model: str = "gpt-4.1-mini"

    # ---------- ページ取得 ----------
    # FETCH_PROXY_URL を指定すると {url} → {html} のプロキシ経由で取得する
    fetch_proxy_url: str | None = None
    fetch_timeout: float = 10.0

    # ---------- 分析 ----------
    # LLM に渡す HTML の最大文字数
    max_html_chars: int = 30000

    # プロンプト中で「何のサイトか」を示す文言
    analysis_subject: str = "the website"

    # True にすると、LLM 応答が JSON として読めない場合も
    # 空オブジェクト扱いで success にする（旧挙動）
    scoring_lenient_parse: bool = False

    # ---------- Export ----------
    export_filename_prefix: str = "SEO_GEO_Analysis"

    # ---------- ログ ----------
    log_level: str = "INFO"

    # ---------- Pydantic Settings 設定 ----------
    model_config = SettingsConfigDict(
        env_file=".env",            # .env を読む
        env_file_encoding="utf-8",
        extra="ignore",             # 定義外の環境変数があっても無視（エラーにしない）
    )


@lru_cache
def get_settings() -> Settings:
    """Settings をシングルトン的に使うためのヘルパ。"""
    return Settings()


# 他のモジュールからは `from app.config import settings` で利用
settings = get_settings()
