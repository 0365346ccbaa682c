from .config import AuthConfig, Config, LlmConfig, ManuscriptConfig, ReviewTaskConfig, Settings

__all__ = [
    "AuthConfig",
    "Config",
    "LlmConfig",
    "ManuscriptConfig",
    "ReviewTaskConfig",
    "Settings",
]
