"""
픽/밴 로컬 HTTP 서버.
- /api/state, /api/maps: 공유 상태 (오버레이가 500ms 폴링)
- /api/vmix: vMix HTTP API 릴레이 (명령 채널은 vMix와 직접 통신하지 않고 여기를 거친다)
- /api/trigger 등: 운영자 동작
- /overlay: OBS/vMix 브라우저 소스용 오버레이 페이지
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel

from pickban.config import ServerConfig
from pickban.match.errors import (
    MapNotSelectedError,
    PickBanError,
    StateValidationError,
    UnknownMapError,
    UnknownStepError,
)
from pickban.match.ledger import EventLog
from pickban.match.models import DesignSettings
from pickban.overlay.controller import PickBanController
from pickban.overlay.state import SharedStateStore, StateDocument
from pickban.vmix.channel import HOST_PARAM, PORT_PARAM, VMixCommandChannel
from pickban.vmix.sequencer import RevealSequencer

logger = logging.getLogger(__name__)


class SelectMapRequest(BaseModel):
    mapName: str


class TeamNamesRequest(BaseModel):
    teamAName: Optional[str] = None
    teamBName: Optional[str] = None


class AddMapsRequest(BaseModel):
    maps: List[dict]


def build_controller(
    config: ServerConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PickBanController:
    """설정으로 저장소·로그·명령 채널·시퀀서를 묶은 컨트롤러 생성."""
    design = DesignSettings(
        vmix_delay=config.hide_delay_ms,
        vmix_host=config.vmix_host,
        vmix_port=config.vmix_port,
    )
    store = SharedStateStore(StateDocument(design=design))
    log = EventLog()
    channel = VMixCommandChannel(
        log,
        relay_url=config.effective_relay_url,
        host=config.vmix_host,
        port=config.vmix_port,
        transport=transport,
    )
    sequencer = RevealSequencer(channel, log, cancel_on_retrigger=config.cancel_hide_on_retrigger)
    return PickBanController(store, sequencer, log)


_STATUS_BY_ERROR = (
    (UnknownStepError, 404),
    (MapNotSelectedError, 409),
    (UnknownMapError, 409),
    (StateValidationError, 400),
)


def _error_response(exc: PickBanError) -> JSONResponse:
    status = 400
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            status = code
            break
    return JSONResponse({"success": False, "error": str(exc)}, status_code=status)


def create_app(
    controller: Optional[PickBanController] = None,
    config: Optional[ServerConfig] = None,
    relay_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Args:
        controller: 외부에서 만든 컨트롤러 (없으면 config로 생성)
        config: 서버 설정 (없으면 환경 변수)
        relay_transport: /api/vmix 가 vMix로 보낼 때 쓸 httpx 전송 계층 (테스트용)
    """
    config = config or ServerConfig.from_env()
    controller = controller or build_controller(config)
    store = controller.store

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        # 종료 시 남은 숨김 명령까지 내보내고 끝낸다
        cancelled = await controller.drain(timeout=config.shutdown_drain_seconds)
        if cancelled:
            logger.warning("종료: 끝내지 못한 vMix 작업 %d개 취소", cancelled)

    app = FastAPI(title="PickBan Controller", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.controller = controller
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        if request.url.path.startswith("/api"):
            logger.debug("[API] %s %s", request.method, request.url.path)
        return await call_next(request)

    @app.exception_handler(PickBanError)
    async def handle_pickban_error(request: Request, exc: PickBanError):
        logger.info("Overlay API: %s %s -> %s", request.method, request.url.path, exc)
        return _error_response(exc)

    # ----- 공유 상태

    @app.get("/api/state")
    def get_state():
        """maps 없는 가벼운 문서. 오버레이는 mapUpdateTs가 바뀔 때만 /api/maps 를 다시 받는다."""
        return JSONResponse(store.read_light())

    @app.get("/api/maps")
    def get_maps():
        return JSONResponse(store.read_assets())

    @app.post("/api/state")
    async def post_state(request: Request):
        try:
            body = await request.json()
        except ValueError as e:
            logger.warning("Overlay API: malformed state body: %s", e)
            return JSONResponse({"success": False, "error": "Malformed JSON body"}, status_code=400)
        result = store.write(body)
        logger.info("Overlay API: state updated, visible steps=%d", len(store.document.visible_steps))
        return JSONResponse(result.to_dict())

    # ----- vMix 릴레이

    @app.get("/api/vmix")
    async def vmix_relay(request: Request):
        """쿼리 그대로 vMix /api 로 전달. 상태 코드·본문도 그대로 돌려준다."""
        params = [(k, v) for k, v in request.query_params.multi_items() if k not in (HOST_PARAM, PORT_PARAM)]
        host = request.query_params.get(HOST_PARAM) or store.document.design.vmix_host
        port = request.query_params.get(PORT_PARAM) or str(store.document.design.vmix_port)
        url = f"http://{host}:{port}/api"
        try:
            async with httpx.AsyncClient(timeout=None, transport=relay_transport) as client:
                response = await client.get(url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("vMix 연결 실패 (%s): %s", url, e)
            return JSONResponse({"error": "Failed to connect to vMix"}, status_code=502)
        return Response(
            content=response.content,
            status_code=response.status_code,
            media_type=response.headers.get("content-type"),
        )

    # ----- 운영자 동작

    @app.post("/api/selections/{step_id}")
    def select_map(step_id: int, body: SelectMapRequest):
        controller.select_map(step_id, body.mapName)
        return JSONResponse({"success": True, "selections": store.read_light()["selections"]})

    @app.post("/api/steps/{step_id}/toggle-type")
    def toggle_step_type(step_id: int):
        step = controller.toggle_step_type(step_id)
        return JSONResponse({"success": True, "step": step.to_dict()})

    @app.post("/api/trigger/{step_id}")
    async def trigger_step(step_id: int):
        outcome = await controller.trigger(step_id)
        return JSONResponse({"success": True, **outcome.to_dict()})

    @app.post("/api/teams")
    def set_team_names(body: TeamNamesRequest):
        controller.set_team_names(body.teamAName, body.teamBName)
        light = store.read_light()
        return JSONResponse({"success": True, "teamAName": light["teamAName"], "teamBName": light["teamBName"]})

    @app.post("/api/maps")
    def add_maps(body: AddMapsRequest):
        count = controller.add_maps(body.maps)
        return JSONResponse({"success": True, "added": count, "mapUpdateTs": store.asset_version})

    @app.post("/api/show-all")
    def show_all():
        return JSONResponse({"success": True, "visibleSteps": controller.show_all()})

    @app.post("/api/hide-all")
    def hide_all():
        controller.hide_all()
        return JSONResponse({"success": True, "visibleSteps": []})

    @app.post("/api/reset")
    def reset_all():
        controller.reset()
        return JSONResponse({"success": True})

    @app.get("/api/status")
    def get_status():
        return JSONResponse(controller.status())

    # ----- 로그

    @app.get("/api/logs")
    def get_logs():
        return JSONResponse([e.to_dict() for e in controller.log.entries()])

    @app.post("/api/logs/clear")
    def clear_logs():
        controller.log.clear()
        return JSONResponse({"ok": True})

    @app.get("/api/health")
    def health():
        return JSONResponse({"status": "ok", "mapUpdateTs": store.asset_version})

    # ----- 오버레이 페이지

    @app.get("/overlay", response_class=HTMLResponse)
    def overlay_page():
        """브라우저 소스에 http://127.0.0.1:3000/overlay 로 추가."""
        return HTMLResponse(OVERLAY_HTML)

    return app


OVERLAY_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>Pick &amp; Ban Overlay</title>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body { background: transparent; width: 1920px; height: 1080px; overflow: hidden; font-family: Arial, sans-serif; }
    #root { position: fixed; top: 0; left: 0; width: 1920px; height: 1080px; transform-origin: top left; }
    .header { position: absolute; top: 20px; left: 0; width: 100%; display: flex; justify-content: space-between; padding: 0 100px; }
    .team { width: 600px; padding: 16px; color: #fff; font-size: 60px; font-weight: 900; text-transform: uppercase;
            white-space: nowrap; overflow: hidden; text-overflow: ellipsis; text-shadow: 0 4px 4px rgba(0,0,0,0.8); }
    .team.a { background: linear-gradient(90deg, rgba(17,24,39,0.9), transparent); }
    .team.b { background: linear-gradient(270deg, rgba(17,24,39,0.9), transparent); text-align: right; }
    .vs { position: absolute; top: 30px; left: 50%; transform: translateX(-50%); color: #f97316; font-size: 36px; font-weight: bold; font-style: italic; }
    .grid { position: absolute; left: 0; width: 100%; display: flex; justify-content: space-between; }
    .col { width: 450px; display: flex; flex-direction: column; }
    .plate { display: flex; align-items: flex-end; height: 72px; width: 100%; position: relative; }
    .plate .img { position: relative; z-index: 2; width: 110px; height: 100%; flex-shrink: 0; border-style: solid; border-color: #4b5563;
                  background: #111827; overflow: hidden; }
    .plate .img img { width: 100%; height: 100%; object-fit: cover; }
    .plate .tag { position: absolute; top: 0; left: 0; color: #fff; font-size: 11px; font-weight: 900; padding: 2px 8px; letter-spacing: 1px; }
    .plate .bar { height: 50px; flex-grow: 1; display: flex; align-items: center; padding: 0 32px 0 16px; margin-left: -2px; margin-bottom: 2px;
                  clip-path: polygon(0 0, 95% 0, 100% 100%, 0% 100%); }
    .plate .bar span { color: #fff; font-weight: 900; text-transform: uppercase; white-space: nowrap; overflow: hidden; text-overflow: ellipsis; }
    .spacer { height: 72px; width: 100%; }
    .decider { position: absolute; bottom: 50px; left: 50%; width: 600px; }
  </style>
  <style id="custom-fonts"></style>
</head>
<body>
  <div id="root">
    <div class="header"><div class="team a" id="team-a"></div><div class="team b" id="team-b"></div></div>
    <div class="vs">VS</div>
    <div class="grid" id="grid"><div class="col" id="col-a"></div><div class="col" id="col-b"></div></div>
    <div class="decider" id="decider"></div>
  </div>
  <script>
    var base = window.location.origin || (window.location.protocol + "//" + window.location.host);
    var LABELS = {
      EN: { BAN: "BAN", PICK: "PICK", DECIDER: "DECIDER" },
      RU: { BAN: "БАН", PICK: "ПИК", DECIDER: "ДЕСАЙДЕР" }
    };
    var TAG_BG = { BAN: "#D02090", PICK: "#66BB22", DECIDER: "#ca8a04" };
    var maps = [];
    var mapVersion = -1;
    var fontsKey = "";

    function escapeHtml(text) {
      if (!text) return "";
      return String(text).replace(/&/g, "&amp;").replace(/</g, "&lt;").replace(/>/g, "&gt;")
                         .replace(/"/g, "&quot;").replace(/'/g, "&#039;");
    }

    function colors(design, type) {
      if (type === "PICK") return [design.pickColorStart, design.pickColorEnd];
      if (type === "DECIDER") return [design.deciderColorStart, design.deciderColorEnd];
      return [design.banColorStart, design.banColorEnd];
    }

    function plate(state, step) {
      var design = state.design || {};
      var gap = (design.verticalGap || 0) + "px";
      var visible = (state.visibleSteps || []).indexOf(step.id) !== -1;
      if (!visible) return '<div class="spacer" style="margin-bottom:' + gap + '"></div>';
      var mapName = (state.selections || {})[String(step.id)] || "";
      var mapData = maps.find(function(m) { return m.name === mapName; });
      var c = colors(design, step.type);
      var label = (LABELS[design.language] || LABELS.EN)[step.type] || step.type;
      var img = mapData && mapData.imageFile
        ? '<img src="' + mapData.imageFile + '" alt="' + escapeHtml(mapName) + '">'
        : '';
      return '<div class="plate" style="margin-bottom:' + gap + ';transform:scale(' + (design.itemScale || 1) + ')">' +
        '<div class="img" style="border-width:' + (design.imageBorderWidth || 0) + 'px">' + img +
        '<div class="tag" style="background:' + TAG_BG[step.type] + '">' + escapeHtml(label) + '</div></div>' +
        '<div class="bar" style="background:linear-gradient(90deg,' + c[0] + ' 0%,' + c[1] + ' 100%)">' +
        '<span style="font-size:' + (design.fontSize || 24) + 'px">' + escapeHtml(mapName || "UNKNOWN") + '</span></div></div>';
    }

    function applyFonts(design) {
      var fonts = design.customFonts || [];
      var key = fonts.map(function(f) { return f.name; }).join("|");
      if (key === fontsKey) return;
      fontsKey = key;
      document.getElementById("custom-fonts").innerHTML = fonts.map(function(f) {
        return "@font-face { font-family: '" + f.name + "'; src: url('" + f.data + "'); }";
      }).join("\\n");
    }

    function render(state) {
      var design = state.design || {};
      applyFonts(design);
      var root = document.getElementById("root");
      root.style.transform = "scale(" + (design.scale || 1) + ")";
      root.style.fontFamily = (design.fontFamily || "Arial") + ", sans-serif";
      document.getElementById("team-a").textContent = state.teamAName || "";
      document.getElementById("team-b").textContent = state.teamBName || "";
      var grid = document.getElementById("grid");
      grid.style.top = (design.verticalOffset || 0) + "px";
      grid.style.padding = "0 " + (design.horizontalOffset || 0) + "px";
      var steps = state.steps || [];
      document.getElementById("col-a").innerHTML = steps.filter(function(s) {
        return s.team === "Team A" && s.type !== "DECIDER";
      }).map(function(s) { return plate(state, s); }).join("");
      document.getElementById("col-b").innerHTML = steps.filter(function(s) {
        return s.team === "Team B" && s.type !== "DECIDER";
      }).map(function(s) { return plate(state, s); }).join("");
      var decider = steps.find(function(s) { return s.type === "DECIDER"; });
      var el = document.getElementById("decider");
      el.style.transform = "translate(calc(-50% + " + (design.deciderOffsetX || 0) + "px), " + (design.deciderOffsetY || 0) + "px)";
      el.innerHTML = decider && (state.visibleSteps || []).indexOf(decider.id) !== -1 ? plate(state, decider) : "";
    }

    function poll() {
      fetch(base + "/api/state")
        .then(function(r) { return r.json(); })
        .then(function(state) {
          if (state.mapUpdateTs !== mapVersion) {
            // 이미지 묶음은 자산 버전이 바뀔 때만 다시 받는다
            return fetch(base + "/api/maps").then(function(r) { return r.json(); }).then(function(list) {
              maps = Array.isArray(list) ? list : [];
              mapVersion = state.mapUpdateTs;
              render(state);
            });
          }
          render(state);
        })
        .catch(function(err) { console.error("Polling error", err); });
    }

    poll();
    setInterval(poll, 500);
  </script>
</body>
</html>
"""
