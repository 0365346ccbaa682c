from __future__ import annotations
from typing import Any, Dict, List, Optional
from pathlib import Path

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Annotated
from pydantic import Field
from dotenv import load_dotenv

load_dotenv()

MiB = 1024 * 1024


class LlmConfig(BaseModel):
    """OpenAI 兼容的 chat-completions 服务（默认 ModelScope）"""
    api_key: Annotated[str, Field(default="")]
    base_url: Annotated[str, Field(default="https://api-inference.modelscope.cn")]
    model: Annotated[str, Field(default="deepseek-ai/DeepSeek-V3.2")]
    temperature: Annotated[float, Field(default=0.2)]
    max_tokens: Annotated[int, Field(default=1200)]
    timeout: Annotated[float, Field(default=120.0)]


class ManuscriptConfig(BaseModel):
    supported_extensions: Annotated[List[str], Field(default=["pdf", "txt", "md"])]
    max_base64_chars: Annotated[int, Field(default=70 * MiB)]
    max_remote_bytes: Annotated[int, Field(default=55 * MiB)]
    min_text_chars: Annotated[int, Field(default=60)]
    max_text_chars: Annotated[int, Field(default=24000)]
    # 只允许从托管对象存储下载（防 SSRF）
    allowed_host_suffixes: Annotated[List[str], Field(default=[".myqcloud.com", ".tcb.qcloud.la"])]
    download_timeout: Annotated[int, Field(default=60)]


class ReviewTaskConfig(BaseModel):
    ttl_seconds: Annotated[int, Field(default=2 * 60 * 60)]
    max_concurrent_runs: Annotated[Optional[int], Field(default=None, ge=1)]


class AuthConfig(BaseModel):
    jwt_secret: Annotated[str, Field(default="change_this_jwt_secret_before_deploying")]
    jwt_algorithm: Annotated[str, Field(default="HS256")]


class Settings(BaseSettings):
    env: Annotated[str, Field(default="development")]
    log_level: Annotated[str, Field(default="INFO")]

    llm: LlmConfig = Field(default_factory=LlmConfig)
    manuscript: ManuscriptConfig = Field(default_factory=ManuscriptConfig)
    review_tasks: ReviewTaskConfig = Field(default_factory=ReviewTaskConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def yaml_settings() -> Dict[str, Any]:
            path = Path("settings.yaml")
            if not path.exists():
                return {}
            return yaml.safe_load(path.read_text(encoding="utf-8")) or {}

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )


Config = Settings()
