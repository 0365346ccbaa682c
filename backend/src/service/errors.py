# src/service/errors.py

"""
Review pipeline 的统一错误类型

每个错误都带有 HTTP 状态码 + 机器可读的 message（如 `unsupported_file_type`），
可选的 detail 给人看。
"""

from typing import Optional


class ReviewError(Exception):
    """A failure with a public error code and the HTTP status it maps to."""

    def __init__(self, status: int, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        return {"status": self.status, "message": self.message, "detail": self.detail}

    def __repr__(self) -> str:
        return f"ReviewError(status={self.status}, message={self.message!r}, detail={self.detail!r})"
