# src/service/manuscript_service.py

"""
Manuscript text extraction.

Turns an uploaded manuscript (inline base64 or a remote object-storage URL)
into clean, length-bounded text for the reviewer prompt:

    resolve extension -> load bytes -> decode (PDF / UTF-8) -> clean -> truncate

Blocking work (base64 decoding, HTTP download, PDF parsing) runs in a worker thread so the
event loop stays free.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Optional

from ..config import Config, ManuscriptConfig
from ..model.review import ExtractedManuscript, ManuscriptSource
from .errors import ReviewError
from .pdf_download_service import ManuscriptDownloader
from .pdf_parser_service import extract_pdf_text, sanitize_manuscript_text

logger = logging.getLogger(__name__)


def ext_from_file_name(file_name: str) -> str:
    safe = str(file_name or "").strip().lower()
    if "." not in safe:
        return ""
    return safe.rsplit(".", 1)[-1]


class ManuscriptExtractor:
    def __init__(
        self,
        config: Optional[ManuscriptConfig] = None,
        downloader: Optional[ManuscriptDownloader] = None,
    ):
        self.config = config or Config.manuscript
        self.downloader = downloader or ManuscriptDownloader(
            allowed_host_suffixes=self.config.allowed_host_suffixes,
            max_bytes=self.config.max_remote_bytes,
            timeout=self.config.download_timeout,
        )
        self.supported_extensions = {e.lower() for e in self.config.supported_extensions}

    # --------- 扩展名 --------- #

    def resolve_extension(self, file_name: str, extension: str = "") -> str:
        ext = str(extension or "").strip().lower().lstrip(".") or ext_from_file_name(file_name)
        if ext not in self.supported_extensions:
            raise ReviewError(400, "unsupported_file_type")
        return ext

    # --------- 原始字节 --------- #

    def decode_base64(self, content_base64: str) -> bytes:
        if not isinstance(content_base64, str) or not content_base64.strip():
            raise ReviewError(400, "invalid_content_base64")
        if len(content_base64) > self.config.max_base64_chars:
            raise ReviewError(400, "manuscript_too_large")

        try:
            data = base64.b64decode(content_base64.strip())
        except (binascii.Error, ValueError):
            raise ReviewError(400, "invalid_content_base64") from None
        if not data:
            raise ReviewError(400, "invalid_content_base64")
        return data

    async def load_bytes(self, source: ManuscriptSource) -> bytes:
        if source.content_base64 and source.content_base64.strip():
            return await asyncio.to_thread(self.decode_base64, source.content_base64)
        if source.file_url and source.file_url.strip():
            return await asyncio.to_thread(self.downloader.download, source.file_url)
        raise ReviewError(400, "invalid_payload")

    # --------- 解码 --------- #

    async def decode_text(self, data: bytes, extension: str, mime_type: str = "") -> str:
        if extension == "pdf" or "pdf" in str(mime_type or "").lower():
            try:
                return await asyncio.to_thread(extract_pdf_text, data)
            except Exception as e:  # pypdf raises a wide range of errors on broken files
                logger.warning(f"⚠ PDF parse failed: {e}")
                raise ReviewError(400, "pdf_parse_failed", str(e)) from e
        return data.decode("utf-8", errors="replace")

    async def extract(self, source: ManuscriptSource) -> ExtractedManuscript:
        extension = self.resolve_extension(source.file_name, source.extension)
        data = await self.load_bytes(source)
        raw_text = await self.decode_text(data, extension, source.mime_type)

        cleaned = sanitize_manuscript_text(raw_text)
        if len(cleaned) < self.config.min_text_chars:
            raise ReviewError(400, "manuscript_content_too_short")

        text = cleaned[: self.config.max_text_chars]
        logger.info(f"📄 Extracted {len(text)} chars from {source.file_name or 'manuscript'} ({extension})")
        return ExtractedManuscript(text=text, extension=extension)
