import logging
import os
import sys
from functools import lru_cache
from typing import Optional, Union

from dotenv import find_dotenv, load_dotenv

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def load_environment() -> None:
    explicit_path = os.environ.get("LIBRIVOX_ENV_FILE")
    if explicit_path:
        load_dotenv(explicit_path, override=False)
        return
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Attach a single stdout handler to the package logger.

    ``level`` may be a level name; unknown names fall back to INFO.
    """

    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        level = resolved if isinstance(resolved, int) else logging.INFO

    logger = logging.getLogger("librivox_catalog")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, _LOG_DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(level)
    return logger


def ensure_directory(path):
    resolved = os.path.abspath(os.path.expanduser(str(path)))
    os.makedirs(resolved, exist_ok=True)
    return resolved


@lru_cache(maxsize=1)
def get_user_cache_root():
    logger = logging.getLogger(__name__)

    override = os.environ.get("LIBRIVOX_CACHE_DIR")
    if override:
        try:
            return ensure_directory(override)
        except OSError as exc:
            logger.warning("LIBRIVOX_CACHE_DIR=%s is not writable: %s", override, exc)

    from platformdirs import user_cache_dir

    candidates = [
        user_cache_dir("librivox-catalog", appauthor=False, opinion=True),
        os.path.join("/tmp", "librivox-catalog-cache"),
    ]
    last_error: Optional[OSError] = None
    for candidate in candidates:
        try:
            return ensure_directory(candidate)
        except OSError as exc:
            last_error = exc
            logger.debug("Unable to use cache directory %s: %s", candidate, exc)

    # Final safety net: a tmp directory unique to this process.
    tmp_candidate = os.path.join("/tmp", f"librivox-catalog-cache-{os.getpid()}")
    logger.warning("Falling back to temp cache directory %s (%s)", tmp_candidate, last_error)
    return ensure_directory(tmp_candidate)


def get_state_path():
    override = os.environ.get("LIBRIVOX_STATE_PATH")
    if override:
        return os.path.abspath(os.path.expanduser(override))
    return os.path.join(get_user_cache_root(), "state.json")
