"""
vMix 명령 채널. 로컬 릴레이(/api/vmix)를 거쳐 vMix HTTP API에 명령 한 개씩 전달.

- 매 호출: request 로그 → GET → success/error 로그. 재시도 없음.
- 실패(2xx 아님, 연결 오류)는 예외로 올리지 않고 False 반환.
- 릴레이 호출에 타임아웃 없음: 릴레이가 멈추면 그 send()만 멈추고 나머지는 계속 돈다.
"""

from __future__ import annotations

from typing import Mapping, Optional, Tuple

import httpx

from pickban.match.ledger import EventLog

from .constants import DEFAULT_VMIX_HOST, DEFAULT_VMIX_PORT

RELAY_PATH = "/api/vmix"
# 릴레이가 vMix 주소를 고를 때 쓰고, vMix로는 넘기지 않는 파라미터
HOST_PARAM = "vmixHost"
PORT_PARAM = "vmixPort"

Target = Tuple[str, int]


class VMixCommandChannel:
    """vMix 명령 1건 = GET 1건."""

    def __init__(
        self,
        log: EventLog,
        relay_url: str = "http://127.0.0.1:3000",
        host: str = DEFAULT_VMIX_HOST,
        port: int = DEFAULT_VMIX_PORT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            log: 운영자 로그
            relay_url: 릴레이 서버 주소 (이 프로젝트 서버 자신)
            host, port: vMix가 떠 있는 주소
            transport: httpx 전송 계층 교체용 (테스트에서 MockTransport)
        """
        self.log = log
        self.relay_url = relay_url.rstrip("/")
        self.host = host
        self.port = int(port)
        self._transport = transport

    def build_params(
        self,
        function: str,
        params: Optional[Mapping[str, str]] = None,
        target: Optional[Target] = None,
    ) -> dict:
        host, port = target or (self.host, self.port)
        query = {"Function": function}
        for key, value in (params or {}).items():
            query[key] = str(value)
        query[HOST_PARAM] = host
        query[PORT_PARAM] = str(int(port))
        return query

    async def send(
        self,
        function: str,
        params: Optional[Mapping[str, str]] = None,
        target: Optional[Target] = None,
    ) -> bool:
        """
        명령 전송. 성공 여부만 반환하고 예외는 삼켜 로그로 남긴다.
        target (host, port)을 주면 이 호출만 그 vMix로 보낸다. 채널 기본값은 바뀌지 않는다.
        """
        query = self.build_params(function, params, target)
        command = {k: v for k, v in query.items() if k not in (HOST_PARAM, PORT_PARAM)}
        self.log.emit("request", f"Sending: {function}", command)
        try:
            async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
                response = await client.get(self.relay_url + RELAY_PATH, params=query)
            if not response.is_success:
                detail = response.text or response.reason_phrase
                raise RuntimeError(f"vMix API Error ({response.status_code}): {detail}")
        except (httpx.HTTPError, RuntimeError) as e:
            self.log.emit("error", f"Failed: {function}", str(e) or e.__class__.__name__)
            return False
        self.log.emit("success", f"Executed: {function}")
        return True
