"""
방송 오버레이: 공유 상태 저장소 + 운영자 컨트롤러 + HTTP 서버.

- SharedStateStore: 컨트롤러가 갱신, 서버가 /api/state · /api/maps 로 반환.
- 브라우저 소스 URL을 http://127.0.0.1:3000/overlay 로 설정.
"""

from .controller import PickBanController, TriggerOutcome
from .state import SharedStateStore, StateDocument, WriteResult, merge_state

__all__ = [
    "PickBanController",
    "SharedStateStore",
    "StateDocument",
    "TriggerOutcome",
    "WriteResult",
    "merge_state",
]
