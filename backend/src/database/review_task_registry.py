# src/database/review_task_registry.py

"""
内存中的审稿任务表

- create：清理过期任务后插入新的 PENDING 任务
- get / update_status：查询、原地更新并刷新 updated_at
- purge_expired：删除 updated_at 超过 TTL 的任务

不做持久化，进程重启后任务全部丢失。
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from ..model.review import ManuscriptSource, ReviewResult, ReviewTask, TaskStatus, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 2 * 60 * 60


class ReviewTaskRegistry:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._tasks: Dict[str, ReviewTask] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def create(self, owner_id: str, source: ManuscriptSource) -> ReviewTask:
        self.purge_expired()

        now = self._clock()
        task = ReviewTask(
            user_id=owner_id,
            file_name=source.file_name,
            mime_type=source.mime_type,
            extension=source.extension,
            file_url=source.file_url or "",
            created_at=now,
            updated_at=now,
        )
        self._tasks[task.task_id] = task
        logger.info(f"📝 Review task created: {task.task_id} (user={owner_id}, file={task.file_name})")
        return task

    def get(self, task_id: str) -> Optional[ReviewTask]:
        return self._tasks.get(task_id)

    def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        error: Optional[str] = None,
        review: Optional[ReviewResult] = None,
    ) -> Optional[ReviewTask]:
        task = self._tasks.get(task_id)
        if task is None:
            # 可能已被 TTL 清理
            return None

        task.status = status
        task.error = error
        task.review = review
        task.updated_at = self._clock()
        return task

    def purge_expired(self) -> int:
        cutoff = self._clock() - self.ttl
        expired = [task_id for task_id, task in self._tasks.items() if task.updated_at < cutoff]
        for task_id in expired:
            del self._tasks[task_id]

        if expired:
            logger.info(f"🧹 Purged {len(expired)} expired review task(s)")
        return len(expired)
