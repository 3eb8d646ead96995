"""
프로젝트 공통 로깅 설정.

- 콘솔: WARNING 이상 (LOG_CONSOLE_LEVEL)
- 통합: logs/app.log (INFO 이상)
- 에러: logs/error.log (ERROR 이상)
- 카테고리: logs/vmix.log (명령 채널·시퀀서·운영자 로그), logs/overlay.log (서버·상태·GO)
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

# 파일명 -> 받을 logger 이름 prefix
CATEGORY_FILES = {
    "vmix.log": ("pickban.vmix", "pickban.match.ledger"),
    "overlay.log": ("pickban.overlay", "pickban.match"),
}

# 500ms 폴링마다 찍히는 access/클라이언트 로그
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


class _PrefixFilter(logging.Filter):
    """logger name prefix 기반 필터."""

    def __init__(self, *prefixes: str):
        super().__init__()
        self._prefixes = prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith(self._prefixes)


def _rotating(path: Path, level: int, fmt: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=int(os.environ.get("LOG_MAX_MB", "10")) * 1024 * 1024,
        backupCount=int(os.environ.get("LOG_BACKUP_COUNT", "5")),
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(log_dir: Path = Path("logs")) -> Path:
    """루트 로거/핸들러를 재설정하고 로그 디렉터리 경로 반환."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, (os.environ.get("LOG_CONSOLE_LEVEL") or "WARNING").upper(), logging.WARNING))
    console.setFormatter(fmt)
    root.addHandler(console)

    root.addHandler(_rotating(log_dir / "app.log", logging.INFO, fmt))
    root.addHandler(_rotating(log_dir / "error.log", logging.ERROR, fmt))
    for filename, prefixes in CATEGORY_FILES.items():
        handler = _rotating(log_dir / filename, logging.DEBUG, fmt)
        handler.addFilter(_PrefixFilter(*prefixes))
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_dir
