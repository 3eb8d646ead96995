"""Tests for operator actions: select, GO, show/hide all, reset."""

import asyncio

import httpx
import pytest

from pickban.match.errors import MapNotSelectedError, UnknownMapError, UnknownStepError
from pickban.match.models import PhaseType
from pickban.overlay.controller import PickBanController
from pickban.vmix.channel import VMixCommandChannel
from pickban.vmix.sequencer import RevealSequencer

IMMEDIATE = ["SetText", "Restart", "Play", "OverlayInput1In", "OverlayInput2In"]
HIDE = ["OverlayInput1Out", "OverlayInput2Out"]


class GatedRelay:
    """set() 될 때까지 모든 요청을 붙잡고 있는 릴레이."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.functions = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.functions.append(request.url.params["Function"])
        await self.gate.wait()
        return httpx.Response(200)


@pytest.fixture
def gated_controller(store, event_log, clock, sample_maps):
    relay = GatedRelay()
    channel = VMixCommandChannel(event_log, relay_url="http://relay.test", transport=httpx.MockTransport(relay.handler))
    ctl = PickBanController(store, RevealSequencer(channel, event_log, sleep=clock.sleep), event_log)
    ctl.add_maps(sample_maps)
    return ctl, relay


class TestTrigger:
    async def test_end_to_end_reveal(self, controller, store, mixer, clock, event_log):
        controller.ledger.current_step_id = 5
        controller.select_map(5, "Inferno")

        outcome = await controller.trigger(5)

        assert outcome.visible is True
        assert outcome.current_step_id == 6
        assert store.read_light()["visibleSteps"] == [5]

        session = await asyncio.wait_for(outcome.reveal, timeout=1)
        assert session.results == [True] * 5
        assert mixer.functions == IMMEDIATE
        requests = [e for e in event_log.entries() if e.type == "request"]
        results = [e for e in event_log.entries() if e.message.startswith(("Executed:", "Failed:"))]
        assert [e.details["Function"] for e in requests] == IMMEDIATE
        assert len(results) == 5

        await asyncio.sleep(0)
        assert clock.requested == [4.0]
        clock.advance(4)
        await asyncio.wait_for(session.task, timeout=1)
        assert mixer.functions == IMMEDIATE + HIDE
        out_requests = [e for e in event_log.entries()
                        if e.type == "request" and e.details["Function"].endswith("Out")]
        assert len(out_requests) == 2

    async def test_no_selection_is_precondition_failure(self, controller, mixer, store):
        with pytest.raises(MapNotSelectedError):
            await controller.trigger(3)
        assert mixer.calls == []
        assert store.read_light()["visibleSteps"] == []

    async def test_orphaned_selection_sends_nothing(self, controller, store, mixer):
        store.write({"selections": {"4": "Cache"}})
        with pytest.raises(UnknownMapError):
            await controller.trigger(4)
        await asyncio.sleep(0)
        assert mixer.calls == []
        assert store.read_light()["visibleSteps"] == []

    async def test_unknown_step(self, controller):
        with pytest.raises(UnknownStepError):
            await controller.trigger(99)

    async def test_second_go_hides_without_commands(self, controller, mixer, store):
        controller.select_map(1, "Mirage")
        first = await controller.trigger(1)
        await first.reveal
        pointer = controller.ledger.current_step_id
        outcome = await controller.trigger(1)
        assert outcome.visible is False
        assert outcome.reveal is None
        assert controller.ledger.current_step_id == pointer
        assert mixer.functions == IMMEDIATE
        assert store.read_light()["visibleSteps"] == []

    async def test_uses_design_delay_and_target(self, controller, store, mixer, clock):
        store.write({"design": {"vmixDelay": 2500, "vmixHost": "192.168.1.20", "vmixPort": 8090}})
        controller.select_map(2, "Inferno")
        outcome = await controller.trigger(2)
        await outcome.reveal
        await asyncio.sleep(0)
        assert clock.requested == [2.5]
        assert mixer.calls[0]["vmixHost"] == "192.168.1.20"
        assert mixer.calls[0]["vmixPort"] == "8090"

    async def test_reset_does_not_cancel_pending_hide(self, controller, store, mixer, clock):
        controller.select_map(1, "Inferno")
        outcome = await controller.trigger(1)
        await outcome.reveal
        await asyncio.sleep(0)
        controller.reset()
        light = store.read_light()
        assert light["selections"] == {}
        assert light["visibleSteps"] == []
        assert controller.ledger.current_step_id == 1

        clock.advance(4)
        await asyncio.wait_for(asyncio.gather(*[s.task for s in controller.sequencer.sessions()]), timeout=1)
        assert mixer.functions == IMMEDIATE + HIDE


class TestOverlappingGo:
    async def test_same_step_twice_is_show_then_hide(self, controller, store, mixer):
        controller.select_map(1, "Inferno")
        first, second = await asyncio.gather(controller.trigger(1), controller.trigger(1))
        assert (first.visible, second.visible) == (True, False)
        assert second.reveal is None

        await asyncio.wait_for(first.reveal, timeout=1)
        assert mixer.functions.count("SetText") == 1
        assert store.read_light()["visibleSteps"] == []
        await controller.drain(timeout=0)

    async def test_different_steps_both_reveal(self, controller, store, mixer):
        controller.select_map(1, "Inferno")
        controller.select_map(2, "Mirage")
        first, second = await asyncio.gather(controller.trigger(1), controller.trigger(2))
        assert store.read_light()["visibleSteps"] == [1, 2]
        assert controller.ledger.current_step_id == 3

        await asyncio.wait_for(asyncio.gather(first.reveal, second.reveal), timeout=1)
        slots = sorted(c["SelectedName"] for c in mixer.calls if c["Function"] == "SetText")
        assert slots == ["TextBlock1.Text", "TextBlock2.Text"]
        for name in ("Inferno.mp4", "Mirage.mp4"):
            assert [c["Function"] for c in mixer.calls if c.get("Input") == name] == [
                "Restart", "Play", "OverlayInput1In",
            ]
        await controller.drain(timeout=0)

    async def test_hung_relay_does_not_block_overlay(self, gated_controller, store):
        ctl, relay = gated_controller
        ctl.select_map(1, "Inferno")
        ctl.select_map(2, "Mirage")

        first = await asyncio.wait_for(ctl.trigger(1), timeout=1)
        assert store.read_light()["visibleSteps"] == [1]
        await asyncio.sleep(0.05)
        assert relay.functions == ["SetText"]
        assert not first.reveal.done()
        assert ctl.revealing() == [1]

        # 첫 GO의 명령이 멈춰 있어도 다른 GO와 상태 읽기는 그대로
        second = await asyncio.wait_for(ctl.trigger(2), timeout=1)
        assert second.visible is True
        assert store.read_light()["visibleSteps"] == [1, 2]
        hidden = await asyncio.wait_for(ctl.trigger(1), timeout=1)
        assert hidden.visible is False
        assert store.read_light()["visibleSteps"] == [2]

        relay.gate.set()
        await asyncio.wait_for(asyncio.gather(first.reveal, second.reveal), timeout=1)
        assert relay.functions.count("SetText") == 2
        assert ctl.revealing() == []
        await ctl.drain(timeout=0)

    async def test_each_go_keeps_its_own_target(self, controller, store, mixer, clock):
        controller.select_map(1, "Inferno")
        controller.select_map(2, "Mirage")
        store.write({"design": {"vmixHost": "10.0.0.1"}})
        first = await controller.trigger(1)
        store.write({"design": {"vmixHost": "10.0.0.2"}})
        second = await controller.trigger(2)
        sessions = await asyncio.wait_for(asyncio.gather(first.reveal, second.reveal), timeout=1)

        await asyncio.sleep(0)
        clock.advance(4)
        await asyncio.wait_for(asyncio.gather(*[s.task for s in sessions]), timeout=1)
        hosts = {}
        for call in mixer.calls:
            name = call.get("Input")
            if name in ("Inferno.mp4", "Mirage.mp4"):
                hosts.setdefault(name, set()).add(call["vmixHost"])
        assert hosts == {"Inferno.mp4": {"10.0.0.1"}, "Mirage.mp4": {"10.0.0.2"}}
        assert mixer.functions.count("OverlayInput1Out") == 2

    async def test_drain_waits_for_reveal_and_hide(self, store, event_log, mixer, sample_maps):
        async def short_sleep(_seconds):
            await asyncio.sleep(0)

        channel = VMixCommandChannel(event_log, relay_url="http://relay.test", transport=mixer.transport())
        ctl = PickBanController(store, RevealSequencer(channel, event_log, sleep=short_sleep), event_log)
        ctl.add_maps(sample_maps)
        ctl.select_map(3, "Mirage")
        await ctl.trigger(3)
        assert await ctl.drain(timeout=1) == 0
        assert mixer.functions == IMMEDIATE + HIDE

class TestOperatorActions:
    def test_toggle_step_type(self, controller, store):
        step = controller.toggle_step_type(1)
        assert step.type is PhaseType.PICK
        assert store.read_light()["steps"][0]["type"] == "PICK"
        controller.toggle_step_type(1)
        assert store.read_light()["steps"][0]["type"] == "BAN"

    def test_toggle_decider_is_noop(self, controller, store):
        controller.toggle_step_type(23)
        assert store.read_light()["steps"][22]["type"] == "DECIDER"

    def test_select_unknown_map(self, controller):
        with pytest.raises(UnknownMapError):
            controller.select_map(1, "Dust2")

    def test_duplicate_selection_is_advisory(self, controller):
        controller.select_map(1, "Inferno")
        controller.select_map(2, "Inferno")
        assert controller.used_map_names() == ["Inferno", "Inferno"]

    def test_show_all_and_hide_all(self, controller, store):
        assert controller.show_all() == list(range(1, 24))
        assert store.read_light()["visibleSteps"] == list(range(1, 24))
        controller.hide_all()
        assert store.read_light()["visibleSteps"] == []

    def test_reset_restores_default_steps(self, controller, store, event_log):
        controller.toggle_step_type(3)
        controller.reset()
        assert store.read_light()["steps"][2]["type"] == "BAN"
        assert event_log.entries()[-1].message == "System Reset"

    def test_add_maps_appends_and_logs(self, controller, store, event_log):
        version = store.asset_version
        added = controller.add_maps([{"name": "Nuke", "videoInput": "Nuke.mp4", "imageFile": ""}])
        assert added == 1
        assert [m["name"] for m in store.read_assets()] == ["Inferno", "Mirage", "Nuke"]
        assert store.asset_version > version
        assert event_log.entries()[-1].message == "Images Uploaded"

    def test_team_names(self, controller, store):
        controller.set_team_names("NAVI", None)
        light = store.read_light()
        assert light["teamAName"] == "NAVI"
        assert light["teamBName"] == "Team B"
