"""
맵 픽/밴 방송 컨트롤러.

- match: 스텝/맵/디자인 모델, 기본 밴픽 순서, 표시 상태·로그 장부
- vmix: vMix 명령 채널과 공개(Reveal) 시퀀서
- overlay: 공유 상태 저장소, 컨트롤러, HTTP 서버(오버레이 페이지 포함)
"""

__version__ = "0.3.0"
