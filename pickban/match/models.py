"""
픽/밴 데이터 모델.

와이어(JSON) 형식은 컨트롤러 화면·오버레이와 그대로 호환되어야 하므로
to_dict()/from_dict() 로 camelCase 키를 명시적으로 매핑한다.
  Step:  { id, customId?, team: "Team A"|"Team B"|"Decider", type: "BAN"|"PICK"|"DECIDER" }
  Map:   { name, videoInput, imageFile, imageFileName? }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, List, Mapping, Optional

from .errors import StateValidationError

logger = logging.getLogger(__name__)


class PhaseType(str, Enum):
    BAN = "BAN"
    PICK = "PICK"
    DECIDER = "DECIDER"


class Team(str, Enum):
    A = "Team A"
    B = "Team B"
    NONE = "Decider"


@dataclass(frozen=True)
class MatchStep:
    """밴픽 순서의 한 칸. id 순서가 곧 턴 순서."""
    id: int
    team: Team
    type: PhaseType
    custom_id: Optional[str] = None  # vMix 텍스트 슬롯 번호를 수동 지정할 때 (예: "1", "A")

    @property
    def external_id(self) -> str:
        """vMix 쪽에서 쓰는 슬롯 키. 지정 안 했으면 id 문자열."""
        return self.custom_id if self.custom_id else str(self.id)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"id": self.id}
        if self.custom_id is not None:
            out["customId"] = self.custom_id
        out["team"] = self.team.value
        out["type"] = self.type.value
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MatchStep":
        if not isinstance(data, Mapping):
            raise StateValidationError(f"step must be an object: {data!r}")
        step_id = data.get("id")
        if not isinstance(step_id, int) or isinstance(step_id, bool) or step_id < 1:
            raise StateValidationError(f"step id must be a positive integer: {step_id!r}")
        try:
            team = Team(data.get("team"))
            phase = PhaseType(data.get("type"))
        except ValueError as e:
            raise StateValidationError(f"invalid step {step_id}: {e}") from e
        custom_id = data.get("customId")
        if custom_id is not None and not isinstance(custom_id, str):
            raise StateValidationError(f"customId must be a string: {custom_id!r}")
        return cls(id=step_id, team=team, type=phase, custom_id=custom_id)


def toggle_phase(step: MatchStep) -> MatchStep:
    """BAN <-> PICK 전환. DECIDER는 고정이라 그대로 반환."""
    if step.type is PhaseType.DECIDER:
        return step
    new_type = PhaseType.PICK if step.type is PhaseType.BAN else PhaseType.BAN
    return replace(step, type=new_type)


@dataclass(frozen=True)
class MapData:
    """선택 가능한 맵. 선택은 이름으로만 참조하므로 이름을 바꾸면 기존 선택은 끊긴다."""
    name: str
    video_input: str
    image_file: str  # data URL
    image_file_name: Optional[str] = None

    @property
    def video_asset_ref(self) -> str:
        """vMix 비디오 입력 이름 (관례상 맵 이름 + .mp4)"""
        return f"{self.name}.mp4"

    def to_dict(self) -> dict:
        out = {
            "name": self.name,
            "videoInput": self.video_input,
            "imageFile": self.image_file,
        }
        if self.image_file_name is not None:
            out["imageFileName"] = self.image_file_name
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MapData":
        if not isinstance(data, Mapping):
            raise StateValidationError(f"map must be an object: {data!r}")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise StateValidationError(f"map name must be a non-empty string: {name!r}")
        video_input = data.get("videoInput", "")
        image_file = data.get("imageFile", "")
        image_file_name = data.get("imageFileName")
        for key, val in (("videoInput", video_input), ("imageFile", image_file)):
            if not isinstance(val, str):
                raise StateValidationError(f"map {name}: {key} must be a string")
        if image_file_name is not None and not isinstance(image_file_name, str):
            raise StateValidationError(f"map {name}: imageFileName must be a string")
        return cls(
            name=name,
            video_input=video_input,
            image_file=image_file,
            image_file_name=image_file_name,
        )


@dataclass(frozen=True)
class CustomFont:
    name: str
    data: str  # base64 data URL

    def to_dict(self) -> dict:
        return {"name": self.name, "data": self.data}


VALID_LANGUAGES = frozenset({"EN", "RU"})


@dataclass(frozen=True)
class DesignSettings:
    """오버레이 디자인 + vMix 연결 설정. 운영자 화면이 통째로 바꾸고, 공유 상태에만 저장."""
    # 색상 (#RRGGBB 또는 #RRGGBBAA)
    ban_color_start: str = "#880000"
    ban_color_end: str = "#111111"
    pick_color_start: str = "#006400"
    pick_color_end: str = "#111111"
    decider_color_start: str = "#ca8a04"
    decider_color_end: str = "#111111"
    # 배치
    scale: float = 1
    item_scale: float = 1
    vertical_gap: float = 12
    horizontal_offset: float = 60
    vertical_offset: float = 180
    image_border_width: float = 2
    decider_offset_x: float = 0
    decider_offset_y: float = 0
    # 글꼴
    font_size: float = 24
    font_family: str = "Arial"
    custom_fonts: tuple = field(default_factory=tuple)
    language: str = "EN"
    # 숨김 지연(ms)과 vMix 주소
    vmix_delay: int = 4000
    vmix_host: str = "127.0.0.1"
    vmix_port: int = 8088

    def to_dict(self) -> dict:
        out = {}
        for attr, wire_key, _kind in _DESIGN_FIELDS:
            value = getattr(self, attr)
            if attr == "custom_fonts":
                value = [f.to_dict() for f in value]
            out[wire_key] = value
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DesignSettings":
        return apply_design_patch(cls(), data)


# (속성 이름, 와이어 키, 값 종류)
_DESIGN_FIELDS = (
    ("ban_color_start", "banColorStart", "str"),
    ("ban_color_end", "banColorEnd", "str"),
    ("pick_color_start", "pickColorStart", "str"),
    ("pick_color_end", "pickColorEnd", "str"),
    ("decider_color_start", "deciderColorStart", "str"),
    ("decider_color_end", "deciderColorEnd", "str"),
    ("scale", "scale", "number"),
    ("item_scale", "itemScale", "number"),
    ("vertical_gap", "verticalGap", "number"),
    ("horizontal_offset", "horizontalOffset", "number"),
    ("vertical_offset", "verticalOffset", "number"),
    ("image_border_width", "imageBorderWidth", "number"),
    ("decider_offset_x", "deciderOffsetX", "number"),
    ("decider_offset_y", "deciderOffsetY", "number"),
    ("font_size", "fontSize", "number"),
    ("font_family", "fontFamily", "str"),
    ("custom_fonts", "customFonts", "fonts"),
    ("language", "language", "language"),
    ("vmix_delay", "vmixDelay", "int"),
    ("vmix_host", "vmixHost", "str"),
    ("vmix_port", "vmixPort", "int"),
)
DESIGN_WIRE_KEYS = frozenset(wire for _, wire, _ in _DESIGN_FIELDS)


def _check_design_value(wire_key: str, kind: str, value: Any) -> Any:
    if kind == "str":
        if not isinstance(value, str):
            raise StateValidationError(f"design.{wire_key} must be a string")
        return value
    if kind in ("number", "int"):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise StateValidationError(f"design.{wire_key} must be a number")
        if kind == "int":
            if value != int(value) or value < 0:
                raise StateValidationError(f"design.{wire_key} must be a non-negative integer")
            return int(value)
        return value
    if kind == "language":
        if value not in VALID_LANGUAGES:
            raise StateValidationError(f"design.language must be one of {sorted(VALID_LANGUAGES)}")
        return value
    if kind == "fonts":
        if not isinstance(value, list):
            raise StateValidationError("design.customFonts must be a list")
        fonts: List[CustomFont] = []
        for item in value:
            if not isinstance(item, Mapping) or not isinstance(item.get("name"), str) \
                    or not isinstance(item.get("data"), str):
                raise StateValidationError("design.customFonts items need string name/data")
            fonts.append(CustomFont(name=item["name"], data=item["data"]))
        return tuple(fonts)
    raise AssertionError(kind)


def apply_design_patch(current: DesignSettings, patch: Mapping[str, Any]) -> DesignSettings:
    """
    디자인 부분 패치 적용. 필드마다 존재 여부를 확인해 들어온 값만 바꾸고
    나머지는 current 값을 유지한다 (design만 한 단계 깊게 병합).

    Raises:
        StateValidationError: 패치가 객체가 아니거나 값 형식이 틀린 경우 (부분 적용 없음)
    """
    if not isinstance(patch, Mapping):
        raise StateValidationError("design must be an object")
    changes = {}
    for attr, wire_key, kind in _DESIGN_FIELDS:
        if wire_key in patch:
            changes[attr] = _check_design_value(wire_key, kind, patch[wire_key])
    unknown = set(patch) - DESIGN_WIRE_KEYS
    if unknown:
        logger.debug("design 패치의 알 수 없는 키 무시: %s", sorted(unknown))
    return replace(current, **changes) if changes else current
