"""
vMix 연동: 릴레이를 통한 명령 채널과 맵 공개 시퀀서.
"""

from .channel import VMixCommandChannel
from .sequencer import RevealSequencer, RevealSession

__all__ = ["VMixCommandChannel", "RevealSequencer", "RevealSession"]
