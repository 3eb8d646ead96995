"""
맵 공개(Reveal) 시퀀서. 운영자가 스텝의 GO를 누르면 vMix에 정해진 순서로 명령을 보내고,
지연 후 숨김 명령을 예약한다.

즉시 명령 (하나씩 await, 실패해도 다음 단계 진행):
  1) SetText      타이틀 입력의 스텝 슬롯에 맵 비디오 이름 기록
  2) Restart      맵 비디오 처음으로
  3) Play         맵 비디오 재생
  4) OverlayInput1In  맵 비디오를 오버레이 1에
  5) OverlayInput2In  BAN/PICK/DECIDER 이미지를 오버레이 2에
지연 명령 (delay_ms 후, 호출자는 기다리지 않음):
  6) OverlayInput1Out, 7) OverlayInput2Out

숨김 예약은 그 스텝이 아직 "현재" 공개인지 다시 확인하지 않는다. 같은 스텝을 지연 안에
다시 GO 하면 앞 세션의 숨김이 뒤 세션의 표시 뒤에 나갈 수 있다 (기본 동작, 취소 없음).
cancel_on_retrigger=True 로 켜면 재트리거 시 이전 숨김 예약을 취소한다.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from pickban.match.errors import MapNotSelectedError
from pickban.match.ledger import EventLog
from pickban.match.models import MapData, MatchStep

from .channel import Target, VMixCommandChannel
from .constants import (
    DEFAULT_HIDE_DELAY_MS,
    PHASE_ASSETS,
    PHASE_OVERLAY,
    VIDEO_OVERLAY,
    VMIX_INPUT_NAME,
    overlay_in,
    overlay_out,
    text_field_for,
)

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class RevealSession:
    """GO 한 번의 수명. 숨김 예약이 끝나거나 프로세스가 끝날 때까지."""
    session_id: str
    step_id: int
    map_name: str
    delay_ms: int
    target: Optional[Target] = None  # 숨김 명령도 같은 vMix로
    results: List[bool] = field(default_factory=list)
    hide_results: List[bool] = field(default_factory=list)
    task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    def cancel(self) -> bool:
        if self.task is None or self.task.done():
            return False
        return self.task.cancel()


class RevealSequencer:
    def __init__(
        self,
        channel: VMixCommandChannel,
        log: Optional[EventLog] = None,
        sleep: SleepFn = asyncio.sleep,
        cancel_on_retrigger: bool = False,
    ):
        self.channel = channel
        self.log = log or channel.log
        self._sleep = sleep
        self.cancel_on_retrigger = cancel_on_retrigger
        self._sessions: Dict[int, List[RevealSession]] = {}

    async def trigger(
        self,
        step: MatchStep,
        map_data: Optional[MapData],
        delay_ms: int = DEFAULT_HIDE_DELAY_MS,
        target: Optional[Target] = None,
    ) -> RevealSession:
        """
        즉시 명령 5개를 순서대로 보내고 숨김 예약을 건 세션을 반환.
        target (host, port)은 세션에 고정되어 숨김 명령까지 같은 vMix로 나간다.
        """
        if map_data is None:
            raise MapNotSelectedError(step.id)

        if self.cancel_on_retrigger:
            self.cancel(step.id)

        video_ref = map_data.video_asset_ref
        phase_asset = PHASE_ASSETS[step.type]
        session = RevealSession(
            session_id=secrets.token_hex(4),
            step_id=step.id,
            map_name=map_data.name,
            delay_ms=int(delay_ms),
            target=target,
        )
        self.log.info(f">>> START REVEAL SEQUENCE: {map_data.name} (Video: {video_ref})")

        commands = [
            ("SetText", {
                "Input": VMIX_INPUT_NAME,
                "SelectedName": text_field_for(step.external_id),
                "Value": video_ref,
            }),
            ("Restart", {"Input": video_ref}),
            ("Play", {"Input": video_ref}),
            (overlay_in(VIDEO_OVERLAY), {"Input": video_ref}),
            (overlay_in(PHASE_OVERLAY), {"Input": phase_asset}),
        ]
        for function, params in commands:
            session.results.append(await self.channel.send(function, params, session.target))

        failed = session.results.count(False)
        if failed:
            self.log.emit("error", f"<<< SEQUENCE COMPLETE with {failed} failed command(s)")
        else:
            self.log.emit("success", "<<< SEQUENCE COMPLETE")

        session.task = asyncio.create_task(
            self._hide_later(session, video_ref, phase_asset),
            name=f"reveal-hide-{step.id}-{session.session_id}",
        )
        self._sessions.setdefault(step.id, []).append(session)
        session.task.add_done_callback(lambda _t, s=session: self._forget(s))
        return session

    async def _hide_later(self, session: RevealSession, video_ref: str, phase_asset: str) -> None:
        try:
            await self._sleep(session.delay_ms / 1000)
        except asyncio.CancelledError:
            self.log.info(f"Hide cancelled: step {session.step_id} ({session.map_name})")
            raise
        self.log.info(f"Auto hide after {session.delay_ms}ms: step {session.step_id} ({session.map_name})")
        session.hide_results.append(
            await self.channel.send(overlay_out(VIDEO_OVERLAY), {"Input": video_ref}, session.target)
        )
        session.hide_results.append(
            await self.channel.send(overlay_out(PHASE_OVERLAY), {"Input": phase_asset}, session.target)
        )

    def _forget(self, session: RevealSession) -> None:
        pending = self._sessions.get(session.step_id)
        if not pending:
            return
        if session in pending:
            pending.remove(session)
        if not pending:
            self._sessions.pop(session.step_id, None)

    def sessions(self, step_id: Optional[int] = None) -> List[RevealSession]:
        """진행 중(숨김 대기) 세션 목록."""
        if step_id is not None:
            return list(self._sessions.get(step_id, []))
        return [s for group in self._sessions.values() for s in group]

    def cancel(self, step_id: int) -> int:
        """해당 스텝의 대기 중인 숨김 예약 취소. 취소한 개수 반환."""
        count = 0
        for session in self.sessions(step_id):
            if session.cancel():
                count += 1
        if count:
            logger.info("스텝 %s 숨김 예약 %d개 취소", step_id, count)
        return count

    async def drain(self, timeout: Optional[float] = None) -> int:
        """
        대기 중인 숨김 예약이 모두 끝날 때까지 기다린다 (서버 종료 시).
        timeout 안에 안 끝난 예약은 취소하고 그 개수를 반환.
        """
        tasks = [s.task for s in self.sessions() if s.task is not None]
        if not tasks:
            return 0
        _done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("종료 대기 시간 초과: 숨김 예약 %d개 취소", len(pending))
        return len(pending)
