"""
운영자 동작 모음 (맵 선택, BAN/PICK 전환, GO, 전체 표시/숨김, 리셋, 맵 업로드).
상태의 원본은 공유 상태 저장소이고, 공개 스텝·턴 포인터는 VisibilityLedger가 들고 있다가
바뀔 때마다 저장소 visibleSteps로 밀어 넣는다.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from pickban.match.errors import MapNotSelectedError, UnknownMapError, UnknownStepError
from pickban.match.ledger import EventLog, VisibilityLedger
from pickban.match.models import MapData, MatchStep, toggle_phase
from pickban.match.sequence import default_steps, find_step
from pickban.overlay.state import SharedStateStore
from pickban.vmix.sequencer import RevealSequencer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerOutcome:
    step_id: int
    visible: bool
    current_step_id: int
    # 공개 시퀀스 작업 (결과는 RevealSession). 숨김 GO면 None
    reveal: Optional[asyncio.Task] = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "visible": self.visible,
            "currentStepId": self.current_step_id,
            "revealing": self.reveal is not None,
        }


class PickBanController:
    def __init__(
        self,
        store: SharedStateStore,
        sequencer: RevealSequencer,
        log: EventLog,
        ledger: Optional[VisibilityLedger] = None,
    ):
        self.store = store
        self.sequencer = sequencer
        self.log = log
        self.ledger = ledger or VisibilityLedger(last_step_id=self._last_step_id())
        self._reveals: Dict[asyncio.Task, int] = {}

    def _last_step_id(self) -> int:
        steps = self.store.document.steps
        return max((s.id for s in steps), default=1)

    def _step(self, step_id: int) -> MatchStep:
        step = find_step(self.store.document.steps, step_id)
        if step is None:
            raise UnknownStepError(step_id)
        return step

    def _map(self, name: str) -> MapData:
        for m in self.store.document.maps:
            if m.name == name:
                return m
        raise UnknownMapError(name)

    def _push_visibility(self) -> None:
        self.store.write({"visibleSteps": self.ledger.visible})

    # ----- 선택 / 스텝 편집

    def select_map(self, step_id: int, map_name: str) -> None:
        self._step(step_id)
        self._map(map_name)
        selections = dict(self.store.document.selections)
        others = [sid for sid, name in selections.items() if name == map_name and sid != step_id]
        if others:
            # 같은 맵 중복은 안내만 하고 막지 않는다
            logger.info("맵 %s 이미 스텝 %s 에서 사용 중", map_name, others)
        selections[step_id] = map_name
        self.store.write({"selections": {str(k): v for k, v in selections.items()}})

    def used_map_names(self) -> List[str]:
        return list(self.store.document.selections.values())

    def toggle_step_type(self, step_id: int) -> MatchStep:
        """BAN <-> PICK. DECIDER는 그대로."""
        target = self._step(step_id)
        steps = [toggle_phase(s) if s.id == step_id else s for s in self.store.document.steps]
        self.store.write({"steps": [s.to_dict() for s in steps]})
        return toggle_phase(target)

    def set_team_names(self, team_a: Optional[str] = None, team_b: Optional[str] = None) -> None:
        patch = {}
        if team_a is not None:
            patch["teamAName"] = team_a
        if team_b is not None:
            patch["teamBName"] = team_b
        if patch:
            self.store.write(patch)

    def add_maps(self, maps: Iterable[Mapping]) -> int:
        """맵 추가 업로드. 기존 목록 뒤에 붙여 자산 묶음을 통째로 교체 (자산 버전 증가)."""
        new_maps = [MapData.from_dict(m) for m in maps]
        current = [m.to_dict() for m in self.store.document.maps]
        self.store.write({"maps": current + [m.to_dict() for m in new_maps]})
        self.log.info("Images Uploaded", f"{len(new_maps)} images processed")
        return len(new_maps)

    # ----- GO

    async def trigger(self, step_id: int) -> TriggerOutcome:
        """
        스텝 GO. 공개 여부는 명령을 보내기 전에 바로 바꿔 저장소에 반영한다.
        아직 공개 안 된 스텝이면 공개로 전환하고 vMix 공개 시퀀스를 백그라운드 작업으로 띄운다
        (릴레이가 멈춰도 오버레이와 다른 GO는 그대로 진행).
        이미 공개된 스텝이면 오버레이에서만 내린다 (vMix 명령 없음).

        Raises:
            UnknownStepError: 없는 스텝
            MapNotSelectedError: 맵을 고르지 않은 스텝 (명령 0건)
            UnknownMapError: 선택된 맵 이름이 맵 목록에 없음 (명령 0건)
        """
        doc = self.store.document
        step = self._step(step_id)
        self.ledger.sync(doc.visible_steps)
        self.ledger.last_step_id = self._last_step_id()

        if self.ledger.is_visible(step_id):
            self.ledger.toggle(step_id)
            self._push_visibility()
            logger.info("GO step %s -> hidden (overlay only)", step_id)
            return TriggerOutcome(step_id=step_id, visible=False, current_step_id=self.ledger.current_step_id)

        map_name = doc.selections.get(step_id)
        if not map_name:
            raise MapNotSelectedError(step_id)
        map_data = self._map(map_name)

        # 여기까지 await 없음: 같은 스텝을 겹쳐 누르면 두 번째 GO는 위의 숨김 쪽으로 간다
        self.ledger.toggle(step_id)
        self._push_visibility()
        design = doc.design
        reveal = asyncio.create_task(
            self.sequencer.trigger(step, map_data, design.vmix_delay, (design.vmix_host, design.vmix_port)),
            name=f"reveal-{step_id}",
        )
        self._reveals[reveal] = step_id
        reveal.add_done_callback(self._reveal_done)
        logger.info("GO step %s -> visible (turn %s)", step_id, self.ledger.current_step_id)
        return TriggerOutcome(
            step_id=step_id,
            visible=True,
            current_step_id=self.ledger.current_step_id,
            reveal=reveal,
        )

    def _reveal_done(self, task: asyncio.Task) -> None:
        step_id = self._reveals.pop(task, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("공개 시퀀스 오류 (step %s): %s", step_id, exc, exc_info=exc)
            self.log.emit("error", f"Reveal failed: step {step_id}", str(exc))

    def revealing(self) -> List[int]:
        """즉시 명령을 아직 보내는 중인 스텝 id."""
        return sorted(self._reveals.values())

    async def drain(self, timeout: Optional[float] = None) -> int:
        """
        진행 중인 공개 시퀀스와 숨김 예약이 끝날 때까지 기다린다 (서버 종료 시).
        timeout 안에 못 끝난 작업은 취소하고 그 개수를 반환.
        """
        cancelled = 0
        reveals = list(self._reveals)
        if reveals:
            _done, pending = await asyncio.wait(reveals, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            cancelled = len(pending)
        return cancelled + await self.sequencer.drain(timeout)

    # ----- 일괄 동작

    def show_all(self) -> List[int]:
        self.ledger.show_all(s.id for s in self.store.document.steps)
        self._push_visibility()
        return self.ledger.visible

    def hide_all(self) -> None:
        self.ledger.hide_all()
        self._push_visibility()

    def reset(self) -> None:
        """
        선택·공개·턴·스텝 순서를 처음으로. 이미 예약된 숨김 명령은 취소하지 않으므로
        리셋 뒤에도 지연 시간이 지나면 그대로 나간다.
        """
        steps = default_steps()
        self.store.write({
            "selections": {},
            "visibleSteps": [],
            "steps": [s.to_dict() for s in steps],
        })
        self.ledger.reset(last_step_id=max(s.id for s in steps))
        self.log.info("System Reset", "All states cleared")

    def status(self) -> dict:
        return {
            "currentStepId": self.ledger.current_step_id,
            "visibleSteps": self.ledger.visible,
            "revealing": self.revealing(),
            "pendingHides": [
                {"stepId": s.step_id, "sessionId": s.session_id, "mapName": s.map_name}
                for s in self.sequencer.sessions()
            ],
            "usedMapNames": self.used_map_names(),
        }
