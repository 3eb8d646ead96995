"""
오버레이용 공유 상태 저장소. 메모리 안의 문서 하나를 컨트롤러·오버레이·다른 탭이 함께 읽고 쓴다.

- 가벼운 문서(팀 이름, 스텝, 선택, 공개 스텝, 디자인)는 500ms 폴링으로 매번 전송
- 맵 이미지 묶음은 무거우므로 따로 두고 mapUpdateTs(자산 버전)가 바뀔 때만 다시 받는다
- 쓰기는 병합: 최상위 필드는 통째 교체, design만 한 단계 깊게 병합,
  steps는 비어 있지 않을 때만, maps가 오면 자산 교체 + 버전 증가
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pickban.match.errors import StateValidationError
from pickban.match.models import DesignSettings, MapData, MatchStep, PhaseType, Team, apply_design_patch
from pickban.match.sequence import default_steps

logger = logging.getLogger(__name__)

STATE_KEYS = frozenset({
    "teamAName", "teamBName", "steps", "selections", "visibleSteps", "design", "maps", "mapUpdateTs",
})


@dataclass(frozen=True)
class StateDocument:
    team_a_name: str = "Team A"
    team_b_name: str = "Team B"
    steps: Tuple[MatchStep, ...] = field(default_factory=lambda: tuple(default_steps()))
    selections: Dict[int, str] = field(default_factory=dict)
    visible_steps: Tuple[int, ...] = ()
    design: DesignSettings = field(default_factory=DesignSettings)
    maps: Tuple[MapData, ...] = ()
    map_update_ts: int = 0

    def light_dict(self) -> dict:
        """maps를 뺀 폴링용 문서"""
        return {
            "teamAName": self.team_a_name,
            "teamBName": self.team_b_name,
            "steps": [s.to_dict() for s in self.steps],
            "selections": {str(k): v for k, v in self.selections.items()},
            "visibleSteps": list(self.visible_steps),
            "design": self.design.to_dict(),
            "mapUpdateTs": self.map_update_ts,
        }

    def assets_list(self) -> List[dict]:
        return [m.to_dict() for m in self.maps]


@dataclass(frozen=True)
class WriteResult:
    accepted: bool
    asset_version: int

    def to_dict(self) -> dict:
        return {"success": self.accepted, "mapUpdateTs": self.asset_version}


def _parse_name(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise StateValidationError(f"{key} must be a string")
    return value


def _parse_steps(value: Any) -> Tuple[MatchStep, ...]:
    if not isinstance(value, list):
        raise StateValidationError("steps must be a list")
    steps = tuple(MatchStep.from_dict(item) for item in value)
    ids = [s.id for s in steps]
    if len(set(ids)) != len(ids):
        raise StateValidationError("step ids must be unique")
    if steps:
        deciders = [s for s in steps if s.type is PhaseType.DECIDER]
        if len(deciders) != 1:
            raise StateValidationError(f"steps must contain exactly one DECIDER (got {len(deciders)})")
        if deciders[0].team is not Team.NONE:
            raise StateValidationError(f"DECIDER step {deciders[0].id} must belong to {Team.NONE.value}")
    return steps


def _parse_selections(value: Any) -> Dict[int, str]:
    if not isinstance(value, Mapping):
        raise StateValidationError("selections must be an object")
    out: Dict[int, str] = {}
    for key, map_name in value.items():
        try:
            step_id = int(key)
        except (TypeError, ValueError):
            raise StateValidationError(f"selection key must be a step id: {key!r}") from None
        if not isinstance(map_name, str):
            raise StateValidationError(f"selection for step {key} must be a map name")
        out[step_id] = map_name
    return out


def _parse_visible(value: Any) -> Tuple[int, ...]:
    if not isinstance(value, list):
        raise StateValidationError("visibleSteps must be a list")
    for item in value:
        if not isinstance(item, int) or isinstance(item, bool):
            raise StateValidationError(f"visibleSteps items must be step ids: {item!r}")
    return tuple(dict.fromkeys(value))


def merge_state(doc: StateDocument, patch: Mapping[str, Any], now_ms: int) -> StateDocument:
    """
    부분 문서를 병합한 새 문서를 반환 (순수 함수, doc은 그대로).
    모든 필드를 먼저 검증하므로 하나라도 틀리면 아무것도 적용되지 않는다.

    Raises:
        StateValidationError: 본문이 객체가 아니거나 필드 형식이 틀린 경우
    """
    if not isinstance(patch, Mapping):
        raise StateValidationError("state body must be a JSON object")

    changes: Dict[str, Any] = {}
    if "teamAName" in patch:
        changes["team_a_name"] = _parse_name("teamAName", patch["teamAName"])
    if "teamBName" in patch:
        changes["team_b_name"] = _parse_name("teamBName", patch["teamBName"])
    if "steps" in patch:
        steps = _parse_steps(patch["steps"])
        # 빈 배열은 실수로 지우는 것으로 보고 무시
        if steps:
            changes["steps"] = steps
    if "selections" in patch:
        changes["selections"] = _parse_selections(patch["selections"])
    if "visibleSteps" in patch:
        changes["visible_steps"] = _parse_visible(patch["visibleSteps"])
    if "design" in patch:
        changes["design"] = apply_design_patch(doc.design, patch["design"])
    if "maps" in patch:
        maps = patch["maps"]
        if not isinstance(maps, list):
            raise StateValidationError("maps must be a list")
        changes["maps"] = tuple(MapData.from_dict(m) for m in maps)
        # 자산 버전은 절대 줄지 않는다 (같은 ms 안의 연속 쓰기도 +1)
        changes["map_update_ts"] = max(int(now_ms), doc.map_update_ts + 1)

    unknown = set(patch) - STATE_KEYS
    if unknown:
        logger.debug("공유 상태 쓰기: 알 수 없는 키 무시 %s", sorted(unknown))
    return replace(doc, **changes) if changes else doc


def _now_ms() -> int:
    return int(time.time() * 1000)


class SharedStateStore:
    """
    단일 문서 저장소. 읽기-병합-쓰기를 락 하나로 감싼다
    (uvicorn 스레드풀과 이벤트 루프가 동시에 만질 수 있음).
    여러 탭이 동시에 쓰면 최상위 필드 단위로 마지막 쓰기가 이긴다.
    """

    def __init__(self, doc: Optional[StateDocument] = None, clock: Callable[[], int] = _now_ms):
        self._doc = doc or StateDocument()
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def document(self) -> StateDocument:
        return self._doc

    def read_light(self) -> dict:
        return self._doc.light_dict()

    def read_assets(self) -> List[dict]:
        return self._doc.assets_list()

    @property
    def asset_version(self) -> int:
        return self._doc.map_update_ts

    def write(self, patch: Mapping[str, Any]) -> WriteResult:
        with self._lock:
            new_doc = merge_state(self._doc, patch, self._clock())
            if new_doc.map_update_ts != self._doc.map_update_ts:
                logger.info("Overlay API: maps updated (%d), mapUpdateTs=%d", len(new_doc.maps), new_doc.map_update_ts)
            self._doc = new_doc
        return WriteResult(accepted=True, asset_version=new_doc.map_update_ts)
