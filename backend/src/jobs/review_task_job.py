# src/jobs/review_task_job.py

"""
Review Task Job - 审稿模拟后台任务

状态机：PENDING -> RUNNING -> DONE | FAILED

- dispatch：同步标记 RUNNING，然后在事件循环上后台执行 run
- run：下载/解析稿件 -> 调用 LLM -> 写回结果，失败记录在任务上，不重试
- review_now：同步版本，不经过任务表，错误直接抛给调用方
"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from src.database.review_task_registry import ReviewTaskRegistry
from src.model.review import ExtractedManuscript, ManuscriptSource, ReviewResult, TaskStatus
from src.service.errors import ReviewError
from src.service.llm_service import ReviewGenerator
from src.service.manuscript_service import ManuscriptExtractor

logger = logging.getLogger(__name__)

FALLBACK_ERROR = "review_simulation_failed"


class ReviewTaskRunner:
    def __init__(
        self,
        registry: ReviewTaskRegistry,
        extractor: ManuscriptExtractor,
        generator: ReviewGenerator,
        max_concurrent_runs: Optional[int] = None,
    ):
        self.registry = registry
        self.extractor = extractor
        self.generator = generator
        self._semaphore = asyncio.Semaphore(max_concurrent_runs) if max_concurrent_runs else None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def review_now(self, source: ManuscriptSource) -> Tuple[ExtractedManuscript, ReviewResult]:
        manuscript = await self.extractor.extract(source)
        review = await self.generator.generate(manuscript.text)
        return manuscript, review

    def dispatch(self, task_id: str) -> Optional[asyncio.Task]:
        """Mark the task RUNNING and schedule it on the running event loop."""
        if self.registry.update_status(task_id, TaskStatus.RUNNING) is None:
            logger.error(f"❌ Review task not found: {task_id}")
            return None

        job = asyncio.create_task(self._guarded_run(task_id), name=f"review-task-{task_id}")
        self._in_flight.add(job)
        job.add_done_callback(self._on_done)
        return job

    def _on_done(self, job: asyncio.Task) -> None:
        self._in_flight.discard(job)
        if job.cancelled():
            logger.warning(f"🛑 {job.get_name()} cancelled")
            return
        exc = job.exception()
        if exc is not None:
            logger.error(f"❌ {job.get_name()} crashed", exc_info=exc)

    async def _guarded_run(self, task_id: str) -> None:
        if self._semaphore is None:
            await self.run(task_id)
            return
        async with self._semaphore:
            await self.run(task_id)

    async def run(self, task_id: str) -> None:
        task = self.registry.get(task_id)
        if task is None:
            return

        if task.status is not TaskStatus.RUNNING:
            self.registry.update_status(task_id, TaskStatus.RUNNING)

        logger.info(f"🚀 Starting review task: {task_id}")
        try:
            _, review = await self.review_now(task.to_source())
        except ReviewError as e:
            logger.warning(f"❌ Review task failed: {task_id} ({e.message}: {e.detail})")
            self.registry.update_status(task_id, TaskStatus.FAILED, error=e.message or FALLBACK_ERROR)
            return
        except Exception:
            logger.exception(f"❌ Review task crashed: {task_id}")
            self.registry.update_status(task_id, TaskStatus.FAILED, error=FALLBACK_ERROR)
            return

        self.registry.update_status(task_id, TaskStatus.DONE, review=review)
        logger.info(f"✅ Review task done: {task_id} ({review.decision.value}, {review.score})")

    async def drain(self) -> None:
        """等待所有进行中的任务结束（关闭服务时使用）"""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
