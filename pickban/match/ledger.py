"""
오버레이 표시 상태(어떤 스텝이 공개됐는지)와 운영자용 명령 로그.

- VisibilityLedger: 공개된 스텝 id 집합 + 현재 턴 포인터(화면 안내용, 시퀀서는 안 씀)
- EventLog: vMix 명령 요청/성공/실패를 시간순으로 쌓는 콘솔 로그. id로 중복 제거.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

LOG_TYPES = ("info", "success", "error", "request")

_LEVEL_BY_TYPE = {
    "info": logging.INFO,
    "success": logging.INFO,
    "request": logging.DEBUG,
    "error": logging.WARNING,
}


class VisibilityLedger:
    """공개 스텝 집합. 켜고 끄는 건 GO(트리거)만 한다."""

    def __init__(self, last_step_id: int, current_step_id: int = 1):
        self.last_step_id = last_step_id
        self.current_step_id = current_step_id
        self._visible: List[int] = []  # 공개 순서 유지

    @property
    def visible(self) -> List[int]:
        return list(self._visible)

    def is_visible(self, step_id: int) -> bool:
        return step_id in self._visible

    def toggle(self, step_id: int) -> bool:
        """
        공개 여부 토글 후 새 상태 반환.
        켤 때 그 스텝이 현재 턴이고 마지막 스텝 전이면 턴 포인터를 하나 넘긴다.
        끌 때는 포인터를 건드리지 않는다.
        """
        if step_id in self._visible:
            self._visible.remove(step_id)
            return False
        self._visible.append(step_id)
        if step_id == self.current_step_id and self.current_step_id < self.last_step_id:
            self.current_step_id += 1
        return True

    def show_all(self, step_ids: Iterable[int]) -> None:
        self._visible = list(dict.fromkeys(step_ids))

    def hide_all(self) -> None:
        self._visible = []

    def sync(self, step_ids: Iterable[int]) -> None:
        """공유 상태에 외부에서 써진 visibleSteps를 받아들인다 (마지막 쓰기 우선)."""
        self._visible = list(dict.fromkeys(step_ids))

    def reset(self, last_step_id: Optional[int] = None) -> None:
        self._visible = []
        self.current_step_id = 1
        if last_step_id is not None:
            self.last_step_id = last_step_id


@dataclass(frozen=True)
class LogEntry:
    id: str
    timestamp: datetime
    type: str  # "info" | "success" | "error" | "request"
    message: str
    details: Any = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type,
            "message": self.message,
            "details": self.details,
        }


LogListener = Callable[[LogEntry], None]


class EventLog:
    """추가 전용 로그. 개별 삭제 없음, clear()로만 비운다."""

    def __init__(self):
        self._entries: List[LogEntry] = []
        self._ids: set[str] = set()
        self._listeners: List[LogListener] = []

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """리스너 등록. 반환값을 호출하면 해제."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, type_: str, message: str, details: Any = None) -> LogEntry:
        if type_ not in LOG_TYPES:
            raise ValueError(f"unknown log type: {type_}")
        entry = LogEntry(
            id=secrets.token_hex(6),
            timestamp=datetime.now(),
            type=type_,
            message=message,
            details=details,
        )
        if details is None:
            logger.log(_LEVEL_BY_TYPE[type_], "[vMix %s] %s", type_.upper(), message)
        else:
            logger.log(_LEVEL_BY_TYPE[type_], "[vMix %s] %s %s", type_.upper(), message, details)
        self.append(entry)
        return entry

    def info(self, message: str, details: Any = None) -> LogEntry:
        return self.emit("info", message, details)

    def append(self, entry: LogEntry) -> bool:
        """같은 id가 이미 있으면 무시하고 False."""
        if entry.id in self._ids:
            return False
        self._ids.add(entry.id)
        self._entries.append(entry)
        for fn in list(self._listeners):
            try:
                fn(entry)
            except Exception as e:
                logger.warning("로그 리스너 오류: %s", e)
        return True

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries = []
        self._ids = set()

    def __len__(self) -> int:
        return len(self._entries)
