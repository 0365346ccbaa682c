import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routes.review_simulator import router as review_simulator_router
from src.config import Config, Settings
from src.database.review_task_registry import ReviewTaskRegistry
from src.jobs.review_task_job import ReviewTaskRunner
from src.service.errors import ReviewError
from src.service.llm_service import ReviewGenerator, init_litellm
from src.service.manuscript_service import ManuscriptExtractor

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """配置日志"""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def create_app(
    settings: Optional[Settings] = None,
    extractor: Optional[ManuscriptExtractor] = None,
    generator: Optional[ReviewGenerator] = None,
) -> FastAPI:
    if settings is None:
        settings = Config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        init_litellm()

        # 任务表跟随 app 实例，不做进程级全局变量
        registry = ReviewTaskRegistry(ttl_seconds=settings.review_tasks.ttl_seconds)
        runner = ReviewTaskRunner(
            registry=registry,
            extractor=extractor or ManuscriptExtractor(settings.manuscript),
            generator=generator or ReviewGenerator(settings.llm),
            max_concurrent_runs=settings.review_tasks.max_concurrent_runs,
        )
        app.state.review_registry = registry
        app.state.review_runner = runner
        logger.info(f"🚀 Review simulator ready (model={settings.llm.model})")

        yield

        if runner.in_flight:
            logger.info(f"⏳ Waiting for {runner.in_flight} review task(s) to finish...")
            await runner.drain()

    app = FastAPI(title="Research Pilot API", lifespan=lifespan)
    app.state.settings = settings

    # CORS 配置：开发环境允许所有来源
    is_dev = settings.env == "development"
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if is_dev else ["https://servicewechat.com"],
        allow_credentials=not is_dev,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ReviewError)
    async def review_error_handler(request: Request, exc: ReviewError):
        return JSONResponse(status_code=exc.status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"status": 400, "message": "invalid_payload", "detail": str(exc.errors()[:1])},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "not_found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"status": exc.status_code, "message": message, "detail": None})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"status": 500, "message": "review_simulation_failed", "detail": str(exc)},
        )

    app.include_router(review_simulator_router)

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
