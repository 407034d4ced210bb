from tubeshelf.env.env import (
    MAX_PAGE_SIZE,
    ConfigError,
    Environment,
    LoggingEnvironment,
    _load_dotenv,
    get_env,
    get_logging_env,
    reset_env_caches,
)
from tubeshelf.env.paths import PROJECT_ROOT

__all__ = [
    "MAX_PAGE_SIZE",
    "ConfigError",
    "Environment",
    "LoggingEnvironment",
    "get_env",
    "get_logging_env",
    "reset_env_caches",
    "PROJECT_ROOT",
    "_load_dotenv",
]
