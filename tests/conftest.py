import asyncio
from typing import List

import httpx
import pytest

from pickban.match.ledger import EventLog
from pickban.match.models import MapData
from pickban.overlay.controller import PickBanController
from pickban.overlay.state import SharedStateStore
from pickban.vmix.channel import VMixCommandChannel
from pickban.vmix.sequencer import RevealSequencer


class VirtualClock:
    """sleep() 대체. advance() 로 시간을 넘겨야만 깨어난다."""

    def __init__(self):
        self.now = 0.0
        self.requested: List[float] = []
        self._waiters = []

    async def sleep(self, seconds: float) -> None:
        self.requested.append(seconds)
        fut = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + seconds, fut))
        await fut

    def advance(self, seconds: float) -> None:
        self.now += seconds
        remaining = []
        for deadline, fut in self._waiters:
            if deadline <= self.now + 1e-9:
                if not fut.done():
                    fut.set_result(None)
            else:
                remaining.append((deadline, fut))
        self._waiters = remaining


class MixerRecorder:
    """릴레이 역할 MockTransport. 받은 명령을 기록하고 fail 목록의 Function은 500."""

    def __init__(self):
        self.calls: List[dict] = []
        self.fail: set = set()
        self.unreachable = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.calls.append(params)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if params.get("Function") in self.fail:
            return httpx.Response(500, text="Input not found")
        return httpx.Response(200, text="<response>Function completed successfully.</response>")

    @property
    def functions(self) -> List[str]:
        return [c["Function"] for c in self.calls]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


INFERNO = {"name": "Inferno", "videoInput": "Inferno.mp4", "imageFile": "data:image/png;base64,AAAA"}
MIRAGE = {"name": "Mirage", "videoInput": "Mirage.mp4", "imageFile": "data:image/png;base64,BBBB",
          "imageFileName": "Mirage.png"}


@pytest.fixture
def mixer():
    return MixerRecorder()


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def channel(event_log, mixer):
    return VMixCommandChannel(event_log, relay_url="http://relay.test", transport=mixer.transport())


@pytest.fixture
def sequencer(channel, event_log, clock):
    return RevealSequencer(channel, event_log, sleep=clock.sleep)


@pytest.fixture
def inferno():
    return MapData.from_dict(INFERNO)


@pytest.fixture
def store():
    return SharedStateStore()


@pytest.fixture
def controller(store, sequencer, event_log):
    ctl = PickBanController(store, sequencer, event_log)
    ctl.add_maps([INFERNO, MIRAGE])
    return ctl


@pytest.fixture
def sample_maps():
    return [dict(INFERNO), dict(MIRAGE)]
