from fastapi import APIRouter, Depends

from api.deps import get_current_user_id, get_review_registry, get_review_runner
from api.schemas.review import (
    ReviewMeta,
    ReviewSimulateRequest,
    ReviewSimulateResponse,
    ReviewTaskCreateRequest,
    ReviewTaskResponse,
    ReviewTaskView,
)
from src.database.review_task_registry import ReviewTaskRegistry
from src.jobs.review_task_job import ReviewTaskRunner
from src.service.errors import ReviewError

router = APIRouter(prefix="/lab/review-simulator", tags=["review-simulator"])


@router.post("/tasks", status_code=202, response_model=ReviewTaskResponse)
async def create_review_task(
    body: ReviewTaskCreateRequest,
    user_id: str = Depends(get_current_user_id),
    registry: ReviewTaskRegistry = Depends(get_review_registry),
    runner: ReviewTaskRunner = Depends(get_review_runner),
):
    """提交异步审稿任务，立即返回 PENDING 任务，客户端轮询结果"""
    if not body.file_name or not body.file_url:
        raise ReviewError(400, "invalid_payload")

    extension = runner.extractor.resolve_extension(body.file_name, body.extension)

    task = registry.create(user_id, body.to_source(extension))
    # 先拍快照：响应里的任务状态是创建时的 PENDING
    view = ReviewTaskView.from_task(task)

    runner.dispatch(task.task_id)
    return ReviewTaskResponse(task=view)


@router.get("/tasks/{task_id}", response_model=ReviewTaskResponse)
def get_review_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: ReviewTaskRegistry = Depends(get_review_registry),
):
    """查询任务状态（只能看到自己创建的任务）"""
    task_id = task_id.strip()
    if not task_id:
        raise ReviewError(400, "invalid_task_id")

    task = registry.get(task_id)
    if not task or task.user_id != user_id:
        raise ReviewError(404, "task_not_found")

    return ReviewTaskResponse(task=ReviewTaskView.from_task(task))


@router.post("", response_model=ReviewSimulateResponse, dependencies=[Depends(get_current_user_id)])
async def simulate_review(
    body: ReviewSimulateRequest,
    runner: ReviewTaskRunner = Depends(get_review_runner),
):
    """同步审稿：直接返回结果，错误原样抛出"""
    if not body.file_name or (not body.content_base64 and not body.file_url):
        raise ReviewError(400, "invalid_payload")

    manuscript, review = await runner.review_now(body.to_source())

    return ReviewSimulateResponse(
        review=review,
        meta=ReviewMeta(
            model=runner.generator.model,
            endpoint=runner.generator.endpoint,
            input_chars=len(manuscript.text),
            file_type=manuscript.extension,
        ),
    )
