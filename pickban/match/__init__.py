"""
밴픽 모델·기본 순서·표시/로그 장부.
"""

from .errors import (
    MapNotSelectedError,
    PickBanError,
    StateValidationError,
    UnknownMapError,
    UnknownStepError,
)
from .ledger import EventLog, LogEntry, VisibilityLedger
from .models import (
    CustomFont,
    DesignSettings,
    MapData,
    MatchStep,
    PhaseType,
    Team,
    apply_design_patch,
    toggle_phase,
)
from .sequence import MATCH_SEQUENCE, default_steps, find_step

__all__ = [
    "CustomFont",
    "DesignSettings",
    "EventLog",
    "LogEntry",
    "MATCH_SEQUENCE",
    "MapData",
    "MapNotSelectedError",
    "MatchStep",
    "PhaseType",
    "PickBanError",
    "StateValidationError",
    "Team",
    "UnknownMapError",
    "UnknownStepError",
    "VisibilityLedger",
    "apply_design_patch",
    "default_steps",
    "find_step",
    "toggle_phase",
]
