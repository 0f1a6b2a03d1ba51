# services/crawler.py

from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)

# ブラウザっぽい UA（ボット判定で弾かれにくくする）
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class FetchError(RuntimeError):
    """ページ本文の取得に失敗した（通信エラー / 非 2xx / 不正なレスポンス）。"""


class ContentFetcher(Protocol):
    def fetch(self, url: str) -> str:
        ...


class PageFetcher:
    """
    単純な GET だけのクロール。
    並列もリトライも入れていない（1 URL ずつ直列に呼ばれる前提）。
    """

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str) -> str:
        logger.info("[crawler] GET start url=%s", url)
        try:
            resp = self.session.get(url, headers=DEFAULT_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch page content: {e}") from e

        if not resp.ok:
            raise FetchError(f"Failed to fetch page content: {resp.status_code} {resp.reason or ''}".rstrip())

        logger.info("[crawler] GET done url=%s status=%s length=%s", url, resp.status_code, len(resp.text))
        return resp.text


class ProxyPageFetcher:
    """
    {url} を POST すると {html} を返すフェッチ用プロキシ経由で取得する。
    プロキシの中身（リダイレクトやキャッシュ）はこちらでは関知しない。
    """

    def __init__(self, proxy_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.proxy_url = proxy_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str) -> str:
        logger.info("[crawler] proxy fetch start url=%s proxy=%s", url, self.proxy_url)
        try:
            resp = self.session.post(self.proxy_url, json={"url": url}, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch page content: {e}") from e

        if not resp.ok:
            raise FetchError(f"Failed to fetch page content: {resp.status_code} {resp.reason or ''}".rstrip())

        try:
            data = resp.json()
        except ValueError as e:
            raise FetchError("Failed to fetch page content: proxy returned invalid JSON") from e

        html = data.get("html") if isinstance(data, dict) else None
        if not isinstance(html, str):
            raise FetchError("Failed to fetch page content: proxy response has no html")

        logger.info("[crawler] proxy fetch done url=%s length=%s", url, len(html))
        return html


def build_fetcher(proxy_url: Optional[str], timeout: float) -> ContentFetcher:
    """FETCH_PROXY_URL があればプロキシ経由、無ければ直接 GET。"""
    if proxy_url:
        return ProxyPageFetcher(proxy_url, timeout=timeout)
    return PageFetcher(timeout=timeout)
