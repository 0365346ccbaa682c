# src/model/review.py

"""
Review simulator 数据模型

- ManuscriptSource：稿件来源（内联 base64 或远程 URL）
- ReviewResult：归一化后的审稿结果
- ReviewTask：异步审稿任务及其生命周期
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


class Decision(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


class ReviewResult(BaseModel):
    """审稿结果，字段总是完整的（缺失时使用默认值）"""
    decision: Decision = Decision.REJECT
    score: float = 0.0
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class ManuscriptSource(BaseModel):
    file_name: str = ""
    mime_type: str = ""
    extension: str = ""
    content_base64: Optional[str] = None
    file_url: Optional[str] = None


class ExtractedManuscript(BaseModel):
    text: str
    extension: str


class ReviewTask(BaseModel):
    task_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str

    file_name: str
    mime_type: str = ""
    extension: str = ""
    file_url: str

    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    review: Optional[ReviewResult] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = {
        "str_strip_whitespace": True,
    }

    def to_source(self) -> ManuscriptSource:
        return ManuscriptSource(
            file_name=self.file_name,
            mime_type=self.mime_type,
            extension=self.extension,
            file_url=self.file_url,
        )
