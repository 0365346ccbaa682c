"""
llm_service.py

提供：
- OpenAI 兼容 chat-completions 地址拼接
- 单次 chat 调用（LiteLLM，异步）
- 审稿：manuscript 文本 -> 结构化 ReviewResult

依赖：
    pip install litellm
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import litellm

from ..config import Config, LlmConfig
from ..model.review import ReviewResult
from .errors import ReviewError
from .review_parser import normalize_review_result, parse_json_from_llm_content

logger = logging.getLogger(__name__)

DEFAULT_CHAT_COMPLETIONS_URL = "https://api-inference.modelscope.cn/v1/chat/completions"

REVIEWER_SYSTEM_PROMPT = "You are a strict but constructive academic reviewer. Reply with JSON only."

REVIEWER_USER_PROMPT = (
    "Review this manuscript and return JSON with fields: "
    "decision (ACCEPT or REJECT), score (0-10), summary, "
    "strengths (array), weaknesses (array), suggestions (array).\n\n"
    "Manuscript:\n{manuscript}"
)


def init_litellm():
    # OpenAI 兼容服务不一定支持全部参数
    litellm.drop_params = True


def chat_completions_url(base_url: str) -> str:
    base = str(base_url or "").strip().rstrip("/")
    if not base:
        return DEFAULT_CHAT_COMPLETIONS_URL
    if re.search(r"/v1/chat/completions$", base, re.IGNORECASE):
        return base
    if re.search(r"/v1$", base, re.IGNORECASE):
        return f"{base}/chat/completions"
    return f"{base}/v1/chat/completions"


def _api_base(base_url: str) -> str:
    """LiteLLM 自己会拼 /chat/completions，这里只给到 /v1"""
    return chat_completions_url(base_url)[: -len("/chat/completions")]


# =========================================================
# 🔹 响应解析
# =========================================================

def _as_dict(response: Any) -> Dict[str, Any]:
    if isinstance(response, dict):
        return response
    if hasattr(response, "model_dump"):
        return response.model_dump()
    if hasattr(response, "to_dict"):
        return response.to_dict()
    return {}


def extract_completion_text(response: Any) -> str:
    """
    取出 choices[0] 的文本：
    - message.content 为字符串：直接用
    - message.content 为片段数组：拼接各片段的 text
    - 否则退回 choices[0].text
    """
    payload = _as_dict(response)
    choices = payload.get("choices") or []
    first = choices[0] if choices and isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None

    if isinstance(content, list):
        parts: List[str] = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text") or ""))
            elif isinstance(item, str):
                parts.append(item)
        content = "\n".join(parts)

    if not isinstance(content, str):
        content = first.get("text")
    return content if isinstance(content, str) else ""


def _provider_error_detail(exc: Exception) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])

    message = getattr(exc, "message", None)
    if message:
        return str(message)

    status = getattr(exc, "status_code", None)
    if status:
        return f"llm_http_{status}"
    return str(exc) or exc.__class__.__name__


# =========================================================
# 🔹 审稿生成
# =========================================================

class ReviewGenerator:
    def __init__(self, config: Optional[LlmConfig] = None):
        self.config = config or Config.llm

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def endpoint(self) -> str:
        return chat_completions_url(self.config.base_url)

    def build_messages(self, manuscript_text: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": REVIEWER_SYSTEM_PROMPT},
            {"role": "user", "content": REVIEWER_USER_PROMPT.format(manuscript=manuscript_text)},
        ]

    async def chat(self, messages: List[Dict[str, str]]) -> Any:
        """单次 chat 调用，返回 provider 原始响应"""
        api_key = (self.config.api_key or "").strip()
        if not api_key:
            raise ReviewError(500, "llm_config_missing")

        try:
            return await litellm.acompletion(
                model=self.config.model,
                custom_llm_provider="openai",
                api_base=_api_base(self.config.base_url),
                api_key=api_key,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                timeout=self.config.timeout,
            )
        except Exception as e:  # litellm maps provider and transport failures onto its own exception tree
            detail = _provider_error_detail(e)
            logger.warning(f"⚠ LLM request failed ({self.config.model}): {detail}")
            raise ReviewError(502, "llm_request_failed", detail) from e

    async def generate(self, manuscript_text: str) -> ReviewResult:
        logger.info(f"🤖 Requesting review from {self.config.model} ({len(manuscript_text)} chars)")
        response = await self.chat(self.build_messages(manuscript_text))

        content = extract_completion_text(response)
        parsed = parse_json_from_llm_content(content)
        if parsed is None:
            logger.warning(f"⚠ LLM reply is not JSON: {content[:200]!r}")
            raise ReviewError(502, "llm_response_invalid")

        return normalize_review_result(parsed)
