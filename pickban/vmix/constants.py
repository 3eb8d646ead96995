"""vMix 쪽 이름 규칙. 타이틀 입력·오버레이 채널 번호·단계 표시 이미지."""

from pickban.match.models import PhaseType

# 타이틀(GT) 입력. 스텝별 텍스트 슬롯에 맵 비디오 이름을 써 넣는다.
VMIX_INPUT_NAME = "PIC_BAN.gtzip"
TEXT_FIELD_FORMAT = "TextBlock{slot}.Text"

# 오버레이 채널: 1 = 맵 비디오, 2 = BAN/PICK/DECIDER 표시 이미지
VIDEO_OVERLAY = 1
PHASE_OVERLAY = 2

PHASE_ASSETS = {
    PhaseType.BAN: "BAN.png",
    PhaseType.PICK: "PICK.png",
    PhaseType.DECIDER: "DECIDER.png",
}

DEFAULT_VMIX_HOST = "127.0.0.1"
DEFAULT_VMIX_PORT = 8088
DEFAULT_HIDE_DELAY_MS = 4000


def text_field_for(external_id: str) -> str:
    return TEXT_FIELD_FORMAT.format(slot=external_id)


def overlay_in(channel: int) -> str:
    return f"OverlayInput{channel}In"


def overlay_out(channel: int) -> str:
    return f"OverlayInput{channel}Out"
