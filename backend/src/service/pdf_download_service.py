from __future__ import annotations

import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit

import requests
from urllib3.util import parse_url

from .errors import ReviewError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class ManuscriptDownloader:
    """
    从托管对象存储下载稿件

    - 只接受 https
    - host 必须以白名单后缀结尾（防 SSRF）
    - 不跟随重定向，Content-Length 与实际字节数都受上限约束
    """

    def __init__(
        self,
        allowed_host_suffixes: Iterable[str],
        max_bytes: int,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.allowed_host_suffixes = tuple(s.lower() for s in allowed_host_suffixes)
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_allowed_host(self, hostname: str) -> bool:
        host = (hostname or "").lower()
        if not host:
            return False
        return any(host.endswith(suffix) for suffix in self.allowed_host_suffixes)

    @staticmethod
    def _same_target_host(netloc: str, hostname: str, url: str) -> bool:
        # requests 走 urllib3 解析 URL，反斜杠会提前截断 host，必须以它连接的 host 为准
        authority = netloc.lower()
        if "\\" in authority or "%5c" in authority:
            return False
        try:
            target = parse_url(url).host
        except ValueError:
            return False
        return (target or "").lower().rstrip(".") == hostname.lower().rstrip(".")

    def validate_url(self, file_url: str) -> str:
        try:
            raw = str(file_url or "").strip()
            parts = urlsplit(raw)
            hostname = parts.hostname
        except ValueError:
            raise ReviewError(400, "invalid_file_url") from None

        if not parts.scheme or not hostname:
            raise ReviewError(400, "invalid_file_url")
        if parts.scheme.lower() != "https":
            raise ReviewError(400, "invalid_file_url_protocol")
        if not self.is_allowed_host(hostname) or not self._same_target_host(parts.netloc, hostname, raw):
            raise ReviewError(400, "invalid_file_url_host")
        return parts.geturl()

    def _too_large(self, size: int) -> bool:
        return size > self.max_bytes

    def download(self, file_url: str) -> bytes:
        """Blocking GET of `file_url`; returns the body bytes."""
        url = self.validate_url(file_url)
        logger.info(f"⬇ Downloading manuscript: {url}")

        try:
            resp = self.session.get(url, timeout=self.timeout, stream=True, allow_redirects=False)
        except requests.RequestException as e:
            logger.warning(f"⚠ Manuscript download error: {url} | {e}")
            raise ReviewError(502, "file_download_failed", str(e)) from e

        try:
            if not 200 <= resp.status_code < 300:
                raise ReviewError(502, "file_download_failed", f"http_{resp.status_code}")

            try:
                declared = int(resp.headers.get("Content-Length") or 0)
            except ValueError:
                declared = 0
            if self._too_large(declared):
                raise ReviewError(400, "manuscript_too_large")

            body = bytearray()
            try:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    body.extend(chunk)
                    if self._too_large(len(body)):
                        raise ReviewError(400, "manuscript_too_large")
            except requests.RequestException as e:
                raise ReviewError(502, "file_download_failed", str(e)) from e
        finally:
            resp.close()

        if not body:
            raise ReviewError(400, "manuscript_content_empty")

        logger.info(f"✅ Downloaded {len(body)} bytes: {url}")
        return bytes(body)
