from .review import (
    ReviewMeta,
    ReviewSimulateRequest,
    ReviewSimulateResponse,
    ReviewTaskCreateRequest,
    ReviewTaskResponse,
    ReviewTaskView,
)

__all__ = [
    "ReviewMeta",
    "ReviewSimulateRequest",
    "ReviewSimulateResponse",
    "ReviewTaskCreateRequest",
    "ReviewTaskResponse",
    "ReviewTaskView",
]
