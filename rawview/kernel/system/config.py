import os
from dataclasses import dataclass


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    use_parallel: bool
    cache_dir: str
    perf_log: bool


# User dir env (scratch space for perf logs)
BASE_USER_DIR = os.path.abspath(os.getenv("RAWVIEW_USER_DIR", "user"))

APP_CONFIG = AppConfig(
    use_parallel=_env_flag("RAWVIEW_USE_PARALLEL", True),
    cache_dir=os.path.join(BASE_USER_DIR, "cache"),
    perf_log=_env_flag("RAWVIEW_PERF_LOG", False),
)
