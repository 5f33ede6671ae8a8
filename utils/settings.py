import os
import tempfile
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Mapping, Optional

PACKAGE_NAME = "photo-collector-bot"


def package_version(name: str = PACKAGE_NAME) -> str:
    """Return the installed version of `name`, or "unknown" when running from an uninstalled checkout."""
    try:
        return version(name)
    except PackageNotFoundError:
        return "unknown"


BOT_VERSION = package_version()

DEFAULT_API_BASE = "https://api.telegram.org"
BOT_MODES = ("polling", "webhook")


@dataclass(frozen=True)
class BotSettings:
    """
    Runtime configuration for the bot, read from environment variables.

    - TG_BOT_TOKEN is required. A RuntimeError is raised if it is missing.
    - BOT_WORK_DIR is where scratch directories and archives are staged.
      It defaults to `<system temp>/photo-collector` and is created if it
      does not exist; pointing it at a file is a configuration error.
    - MAX_CONCURRENT_FETCHES of 0 leaves photo downloads unbounded.
    - FETCH_TIMEOUT_SECONDS unset means downloads never time out.
    """

    bot_token: str
    api_base: str = DEFAULT_API_BASE
    mode: str = "polling"
    webhook_secret: Optional[str] = None
    work_dir: Path = Path(tempfile.gettempdir()) / "photo-collector"
    max_concurrent_fetches: int = 0
    fetch_timeout: Optional[float] = None
    poll_timeout: int = 30
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BotSettings":
        env = os.environ if environ is None else environ

        token = (env.get("TG_BOT_TOKEN") or "").strip()
        if not token:
            raise RuntimeError(
                "TG_BOT_TOKEN environment variable must be set to the bot token "
                "issued by @BotFather."
            )

        mode = (env.get("BOT_MODE") or "polling").strip().lower()
        if mode not in BOT_MODES:
            raise RuntimeError(f"BOT_MODE={mode!r} is invalid; expected one of {', '.join(BOT_MODES)}.")

        work_dir = _ensure_work_dir(env.get("BOT_WORK_DIR"))

        max_fetches = _parse_number(env, "MAX_CONCURRENT_FETCHES", int, 0)
        if max_fetches < 0:
            raise RuntimeError("MAX_CONCURRENT_FETCHES must be zero (unbounded) or a positive integer.")

        fetch_timeout = _parse_number(env, "FETCH_TIMEOUT_SECONDS", float, None)
        if fetch_timeout is not None and fetch_timeout <= 0:
            raise RuntimeError("FETCH_TIMEOUT_SECONDS must be greater than zero when set.")

        poll_timeout = _parse_number(env, "POLL_TIMEOUT_SECONDS", int, 30)
        if poll_timeout < 0:
            raise RuntimeError("POLL_TIMEOUT_SECONDS cannot be negative.")

        return cls(
            bot_token=token,
            api_base=(env.get("TELEGRAM_API_BASE") or DEFAULT_API_BASE).strip().rstrip("/"),
            mode=mode,
            webhook_secret=(env.get("TELEGRAM_WEBHOOK_SECRET") or "").strip() or None,
            work_dir=work_dir,
            max_concurrent_fetches=max_fetches,
            fetch_timeout=fetch_timeout,
            poll_timeout=poll_timeout,
            log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
        )


def _parse_number(env: Mapping[str, str], name: str, kind, default):
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} is not a valid {kind.__name__}.") from exc


def _ensure_work_dir(raw: Optional[str]) -> Path:
    if raw is None or not raw.strip():
        work_dir = Path(tempfile.gettempdir()) / "photo-collector"
    else:
        work_dir = Path(raw).expanduser()

    # If the path exists but is not a directory, that's a configuration error.
    if work_dir.exists() and not work_dir.is_dir():
        raise RuntimeError(
            f"BOT_WORK_DIR={raw!r} points to a file, not a directory "
            f"({work_dir}). Please set BOT_WORK_DIR to a directory path."
        )

    try:
        work_dir.mkdir(parents=True, exist_ok=True)
    except Exception as exc:
        raise RuntimeError(f"Failed to create or access work directory at {work_dir}") from exc

    return work_dir
