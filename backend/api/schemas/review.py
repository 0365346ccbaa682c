from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.model.review import ManuscriptSource, ReviewResult, ReviewTask, TaskStatus


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


# --- Requests ---

class ReviewTaskCreateRequest(_WireModel):
    file_name: str = Field(default="", alias="fileName")
    mime_type: str = Field(default="", alias="mimeType")
    extension: str = Field(default="", alias="extension")
    file_url: str = Field(default="", alias="fileUrl")

    def to_source(self, extension: str) -> ManuscriptSource:
        return ManuscriptSource(
            file_name=self.file_name,
            mime_type=self.mime_type,
            extension=extension,
            file_url=self.file_url,
        )


class ReviewSimulateRequest(_WireModel):
    file_name: str = Field(default="", alias="fileName")
    mime_type: str = Field(default="", alias="mimeType")
    extension: str = Field(default="", alias="extension")
    content_base64: str = Field(default="", alias="contentBase64")
    file_url: str = Field(default="", alias="fileUrl")

    def to_source(self) -> ManuscriptSource:
        return ManuscriptSource(
            file_name=self.file_name,
            mime_type=self.mime_type,
            extension=self.extension,
            content_base64=self.content_base64 or None,
            file_url=self.file_url or None,
        )


# --- Responses ---

class ReviewTaskView(_WireModel):
    task_id: str = Field(alias="taskId")
    status: TaskStatus
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    file_name: str = Field(alias="fileName")
    error: Optional[str] = None
    review: Optional[ReviewResult] = None

    @classmethod
    def from_task(cls, task: ReviewTask) -> ReviewTaskView:
        return cls(
            task_id=task.task_id,
            status=task.status,
            created_at=task.created_at,
            updated_at=task.updated_at,
            file_name=task.file_name,
            error=task.error,
            review=task.review.model_copy(deep=True) if task.review else None,
        )


class ReviewTaskResponse(BaseModel):
    task: ReviewTaskView


class ReviewMeta(_WireModel):
    model: str
    endpoint: str
    input_chars: int = Field(alias="inputChars")
    file_type: str = Field(alias="fileType")


class ReviewSimulateResponse(BaseModel):
    review: ReviewResult
    meta: ReviewMeta
