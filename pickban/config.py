"""
서버 설정. .env(python-dotenv) → 환경 변수 → 기본값 순.

PICKBAN_HOST=127.0.0.1, PICKBAN_PORT=3000
VMIX_HOST=127.0.0.1, VMIX_PORT=8088   (디자인 설정 vmixHost/vmixPort 기본값)
RELAY_URL=http://127.0.0.1:3000        (명령 채널이 부르는 릴레이, 기본은 서버 자신)
HIDE_DELAY_MS=4000                     (디자인 설정 vmixDelay 기본값)
CANCEL_HIDE_ON_RETRIGGER=0             (1이면 같은 스텝 재GO 시 이전 숨김 예약 취소)
SHUTDOWN_DRAIN_SECONDS=10              (종료 시 남은 숨김 명령을 기다리는 최대 시간)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_flag(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000
    vmix_host: str = "127.0.0.1"
    vmix_port: int = 8088
    relay_url: Optional[str] = None
    hide_delay_ms: int = 4000
    cancel_hide_on_retrigger: bool = False
    shutdown_drain_seconds: float = 10.0

    @property
    def effective_relay_url(self) -> str:
        return self.relay_url or f"http://{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        return cls(
            host=os.getenv("PICKBAN_HOST", "127.0.0.1"),
            port=int(os.getenv("PICKBAN_PORT", "3000")),
            vmix_host=os.getenv("VMIX_HOST", "127.0.0.1"),
            vmix_port=int(os.getenv("VMIX_PORT", "8088")),
            relay_url=(os.getenv("RELAY_URL") or "").strip() or None,
            hide_delay_ms=int(os.getenv("HIDE_DELAY_MS", "4000")),
            cancel_hide_on_retrigger=_env_flag("CANCEL_HIDE_ON_RETRIGGER"),
            shutdown_drain_seconds=float(os.getenv("SHUTDOWN_DRAIN_SECONDS", "10")),
        )
