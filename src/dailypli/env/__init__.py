from dailypli.env.env import (
    Environment,
    LoggingEnvironment,
    get_env,
    get_logging_env,
    reset_env_caches,
)

__all__ = [
    "Environment",
    "LoggingEnvironment",
    "get_env",
    "get_logging_env",
    "reset_env_caches",
]
