"""FastAPI control surface for the Tomcat launcher."""
import logging
import os
import socket
import sys
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from tomcat_launcher import __version__
from tomcat_launcher.config import SCOPES, ConfigManager
from tomcat_launcher.dev_loop import DevLoop
from tomcat_launcher.models import BuildVerb, Configuration
from tomcat_launcher.output import OutputSink

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8765


# API Models
class SettingRequest(BaseModel):
    key: str
    value: str
    scope: str = "workspace"


async def _run(dev_loop: DevLoop, operation: Callable[[], Awaitable[bool]], default_message: str) -> dict:
    """Run a dev loop operation and report its summary notification."""
    before = dev_loop.notifier.last()
    success = await operation()
    last = dev_loop.notifier.last()
    message = last.message if last is not None and last is not before else default_message
    return {"status": "success" if success else "error", "message": message}


def create_app(dev_loop: Optional[DevLoop] = None) -> FastAPI:
    """Build the launcher API around a dev loop."""
    if dev_loop is None:
        log_dir = os.environ.get("LAUNCHER_LOG_DIR", "logs")
        dev_loop = DevLoop(ConfigManager(), sink=OutputSink(log_dir=log_dir))

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        logger.info("Shutting down, disposing managed processes")
        await dev_loop.dispose()

    app = FastAPI(
        title="Tomcat Launcher",
        description="Build, deploy and debug a Maven web application on Tomcat",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.dev_loop = dev_loop

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint for launcher itself."""
        return {"status": "ok", "message": "Launcher is running"}

    @app.get("/api/config")
    async def get_config():
        return {"config": dev_loop.config.model_dump(by_alias=True)}

    @app.post("/api/config")
    async def update_config(request: SettingRequest):
        if request.key not in Configuration.keys():
            raise HTTPException(status_code=400, detail=f"Unknown setting: {request.key}")
        if request.scope not in SCOPES:
            raise HTTPException(status_code=400, detail=f"Unknown scope: {request.scope}")

        config = await dev_loop.update_setting(request.key, request.value, request.scope)
        return {"status": "success", "message": f"{request.key} updated", "config": config.model_dump(by_alias=True)}

    @app.post("/api/environment/setup")
    async def setup_environment():
        return await _run(dev_loop, dev_loop.setup_environment, "Environment checked")

    @app.post("/api/server/context")
    async def create_context():
        return await _run(dev_loop, dev_loop.create_context, "Context created")

    @app.get("/api/server/status")
    async def server_status():
        return dev_loop.status()

    @app.post("/api/server/start")
    async def start_server():
        result = await _run(dev_loop, dev_loop.start_server, "Tomcat started")
        return {**result, "server": dev_loop.status()}

    @app.post("/api/server/stop")
    async def stop_server():
        result = await _run(dev_loop, dev_loop.stop_server, "Tomcat stopped")
        return {**result, "server": dev_loop.status()}

    @app.post("/api/build/{verb}")
    async def build(verb: str):
        operations = {
            "rebuild": dev_loop.full_rebuild,
            BuildVerb.COMPILE.value: dev_loop.update_classes,
            BuildVerb.CLEAN.value: dev_loop.clean,
            BuildVerb.PACKAGE.value: dev_loop.package,
        }
        if verb not in operations:
            raise HTTPException(status_code=404, detail=f"Unknown build verb: {verb}")
        return await _run(dev_loop, operations[verb], f"Maven {verb} completed")

    @app.post("/api/resources/sync")
    async def sync_resources():
        return await _run(dev_loop, dev_loop.update_resources, "Resources updated")

    @app.get("/api/logs")
    async def get_logs(lines: int = 2000):
        return {"logs": dev_loop.sink.read_log(lines)}

    @app.get("/api/notifications")
    async def get_notifications():
        return {"notifications": [n.model_dump() for n in dev_loop.notifier.history]}

    return app


def is_port_available(check_host: str, check_port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((check_host, check_port))
        except OSError:
            return False
        return True


def pick_port(check_host: str, start_port: int, explicit: bool, max_tries: int = 20) -> int:
    if is_port_available(check_host, start_port):
        return start_port
    if explicit:
        print(
            f"[ERROR] Port {start_port} is already in use. "
            f"Either stop the process using it or choose another port with LAUNCHER_PORT."
        )
        sys.exit(1)
    for p in range(start_port + 1, start_port + 1 + max_tries):
        if is_port_available(check_host, p):
            print(f"[WARN] Port {start_port} is in use. Using {p} instead.")
            return p
    print(f"[ERROR] No free port found in range {start_port}-{start_port + max_tries}.")
    sys.exit(1)


def main():
    """Run the launcher."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    host = os.environ.get("LAUNCHER_HOST", "127.0.0.1").strip() or "127.0.0.1"

    env_port = os.environ.get("LAUNCHER_PORT", "").strip()
    if env_port:
        try:
            preferred_port = int(env_port)
        except ValueError:
            print(f"[ERROR] Invalid LAUNCHER_PORT: {env_port!r}. Must be an integer.")
            sys.exit(2)
    else:
        preferred_port = DEFAULT_PORT

    port = pick_port(host, preferred_port, explicit=bool(env_port))

    print("=" * 60)
    print("  Tomcat Launcher")
    print("=" * 60)
    print()
    print(f"  Starting launcher at http://{host}:{port}")
    print("  Press Ctrl+C to stop")
    print()
    print("=" * 60)

    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level="info"
    )


if __name__ == "__main__":
    main()
