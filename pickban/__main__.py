"""
픽/밴 컨트롤러 서버 실행.

.env 에 PICKBAN_PORT, VMIX_HOST, VMIX_PORT 등 설정 후 실행 (pickban/config.py 참고).
실행: python -m pickban  (프로젝트 루트에서)

오버레이: vMix/OBS 브라우저 소스 URL에 http://127.0.0.1:3000/overlay 입력.
vMix 명령은 http://127.0.0.1:3000/api/vmix 릴레이를 거쳐 VMIX_HOST:VMIX_PORT 로 나간다.
"""

import logging
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from pickban.config import ServerConfig
from pickban.overlay.server import create_app
from pickban.utils import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    root = Path(__file__).resolve().parent.parent
    load_dotenv(root / ".env")
    log_dir = setup_logging(root / "logs")
    config = ServerConfig.from_env()
    app = create_app(config=config)

    print(f"컨트롤러 API: http://{config.host}:{config.port}/api/state")
    print(f"오버레이:     http://{config.host}:{config.port}/overlay")
    print(f"vMix:         {config.vmix_host}:{config.vmix_port} (릴레이 {config.effective_relay_url}/api/vmix)")
    print(f"로그:         {log_dir}")
    logger.info("서버 시작: %s:%s", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level="warning")


if __name__ == "__main__":
    main()
