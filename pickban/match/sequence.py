"""
기본 밴픽 순서 (23스텝). 리셋 시 이 순서로 되돌린다.

1. A-BAN, 2. B-BAN, 3. B-BAN, 4. A-BAN, 5. A-PICK, 6. B-PICK,
7. B-BAN, 8. A-BAN, 9. A-PICK, 10. B-PICK ... 23. DECIDER
"""

from typing import List

from .models import MatchStep, PhaseType, Team

_A, _B = Team.A, Team.B
_BAN, _PICK = PhaseType.BAN, PhaseType.PICK

_SCRIPT = [
    (_A, _BAN), (_B, _BAN), (_B, _BAN), (_A, _BAN), (_A, _PICK), (_B, _PICK),
    (_B, _BAN), (_A, _BAN), (_A, _PICK), (_B, _PICK),
    (_A, _BAN), (_B, _BAN), (_A, _PICK), (_B, _PICK),
    (_B, _BAN), (_A, _BAN), (_A, _PICK), (_B, _PICK),
    (_A, _BAN), (_B, _BAN), (_A, _PICK), (_B, _PICK),
    (Team.NONE, PhaseType.DECIDER),
]

MATCH_SEQUENCE: tuple = tuple(
    MatchStep(id=i, team=team, type=phase) for i, (team, phase) in enumerate(_SCRIPT, start=1)
)
assert len(MATCH_SEQUENCE) == 23, f"밴픽 순서 23스텝 아님: {len(MATCH_SEQUENCE)}"
assert sum(1 for s in MATCH_SEQUENCE if s.type is PhaseType.DECIDER) == 1


def default_steps() -> List[MatchStep]:
    """기본 순서의 새 리스트 (MatchStep은 불변이라 그대로 공유해도 안전)."""
    return list(MATCH_SEQUENCE)


def find_step(steps, step_id: int):
    for step in steps:
        if step.id == step_id:
            return step
    return None
