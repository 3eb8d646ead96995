"""픽/밴 도메인 예외."""


class PickBanError(Exception):
    """도메인 예외 기본 클래스"""


class MapNotSelectedError(PickBanError):
    """맵을 고르지 않은 스텝을 GO 하려 할 때"""

    def __init__(self, step_id: int):
        super().__init__(f"Please select a map first. (step {step_id})")
        self.step_id = step_id


class UnknownMapError(PickBanError):
    """선택된 맵 이름이 맵 목록에 없을 때 (맵 이름 변경 등으로 끊긴 선택)"""

    def __init__(self, map_name: str):
        super().__init__(f"Unknown map: {map_name}")
        self.map_name = map_name


class UnknownStepError(PickBanError):
    def __init__(self, step_id: int):
        super().__init__(f"Unknown step: {step_id}")
        self.step_id = step_id


class StateValidationError(PickBanError):
    """공유 상태 쓰기 본문이 잘못된 경우. 부분 적용 없이 통째로 거절."""
