"""Development preview server and live-reload notification channel."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional, Set

import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, PlainTextResponse, RedirectResponse, Response
from watchfiles import Change, awatch

from .config import SiteConfig
from .logging import get_logger
from .releases import LATEST_DIRNAME

NOT_FOUND_PAGE = "/404.html"
LIVERELOAD_PROTOCOL = "http://livereload.com/protocols/official-7"
RELOAD_EXTENSIONS = frozenset(
    {".html", ".css", ".js", ".json", ".png", ".gif", ".jpg", ".jpeg", ".svg"}
)

LIVERELOAD_JS = """(function () {
  var script = document.currentScript;
  var host = script ? new URL(script.src).host : location.host;
  var socket = new WebSocket("ws://" + host + "/livereload");
  socket.onopen = function () {
    socket.send(JSON.stringify({command: "hello", protocols: ["%s"]}));
  };
  socket.onmessage = function (event) {
    var message = JSON.parse(event.data);
    if (message.command === "reload") {
      window.location.reload();
    }
  };
})();
""" % LIVERELOAD_PROTOCOL


def create_preview_app(output_dir: Path, latest: str) -> FastAPI:
    """Create the static preview application for ``output_dir``.

    Paths under the latest version are redirected to the alias directory the
    way the production edge rewrites them; unknown paths go to the 404 page.
    """
    root = output_dir.resolve()
    app = FastAPI(title="docsite preview", docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def serve(path: str, request: Request) -> Response:
        target = _resolve_static(root, path)
        if target is not None:
            if target.is_dir():
                if not request.url.path.endswith("/"):
                    return RedirectResponse(url=f"{request.url.path}/", status_code=301)
                index = target / "index.html"
                if index.is_file():
                    return FileResponse(index)
            else:
                return FileResponse(target)

        if path == latest or path.startswith(f"{latest}/"):
            return RedirectResponse(url=f"/{LATEST_DIRNAME}/", status_code=307)
        if f"/{path}" == NOT_FOUND_PAGE:
            return PlainTextResponse("Not Found", status_code=404)
        return RedirectResponse(url=NOT_FOUND_PAGE, status_code=307)

    return app


def _resolve_static(root: Path, path: str) -> Optional[Path]:
    parts = [part for part in path.split("/") if part]
    if any(part.startswith(".") for part in parts):
        return None
    candidate = root.joinpath(*parts).resolve()
    if not candidate.is_relative_to(root) or not candidate.exists():
        return None
    return candidate


class LiveReloadHub:
    """Tracks connected preview clients and tells them to reload."""

    def __init__(self) -> None:
        self._clients: Set[Any] = set()
        self.logger = get_logger("server")

    def __len__(self) -> int:
        return len(self._clients)

    def add(self, websocket: Any) -> None:
        self._clients.add(websocket)

    def discard(self, websocket: Any) -> None:
        self._clients.discard(websocket)

    async def broadcast(self, path: str) -> int:
        message = {"command": "reload", "path": path, "liveCSS": True}
        delivered = 0
        for client in list(self._clients):
            try:
                await client.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                self.logger.debug("Dropping live-reload client: %s", exc)
                self.discard(client)
            else:
                delivered += 1
        return delivered


def hello_message() -> Dict[str, Any]:
    return {
        "command": "hello",
        "protocols": [LIVERELOAD_PROTOCOL],
        "serverName": "docsite",
    }


def create_livereload_app(hub: LiveReloadHub) -> FastAPI:
    app = FastAPI(title="docsite live reload", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/livereload.js")
    async def client_script() -> Response:
        return Response(content=LIVERELOAD_JS, media_type="application/javascript")

    @app.websocket("/livereload")
    async def livereload(websocket: WebSocket) -> None:
        await websocket.accept()
        hub.add(websocket)
        try:
            while True:
                message = await websocket.receive_json()
                if isinstance(message, dict) and message.get("command") == "hello":
                    await websocket.send_json(hello_message())
        except WebSocketDisconnect:
            pass
        finally:
            hub.discard(websocket)

    return app


def is_reload_asset(change: Change, path: str) -> bool:
    return Path(path).suffix.lower() in RELOAD_EXTENSIONS


class OutputReloader:
    """Broadcasts one reload per batch of changes under the output tree."""

    def __init__(self, output_dir: Path, hub: LiveReloadHub) -> None:
        self.output_dir = output_dir
        self.hub = hub
        self.logger = get_logger("server")

    async def notify(self, paths: Set[str]) -> int:
        changed = sorted(paths)
        try:
            relative = Path(changed[0]).resolve().relative_to(self.output_dir.resolve())
            path = f"/{relative.as_posix()}"
        except ValueError:
            path = changed[0]
        self.logger.debug("Output changed (%d file(s)), reloading clients", len(changed))
        return await self.hub.broadcast(path)

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        async for changes in awatch(
            self.output_dir, watch_filter=is_reload_asset, stop_event=stop_event
        ):
            await self.notify({path for _, path in changes})


class DevPreviewServer:
    """Serves the output tree and the live-reload channel on their own ports."""

    def __init__(
        self,
        config: SiteConfig,
        latest: str,
        *,
        hub: Optional[LiveReloadHub] = None,
    ) -> None:
        self.config = config
        self.hub = hub or LiveReloadHub()
        self.preview_app = create_preview_app(config.output_dir, latest)
        self.livereload_app = create_livereload_app(self.hub)
        self.logger = get_logger("server")

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run until either server exits or ``stop_event`` is set."""
        stop = stop_event or asyncio.Event()
        servers = [
            self._server(self.preview_app, self.config.port),
            self._server(self.livereload_app, self.config.live_reload_port),
        ]
        reloader = OutputReloader(self.config.output_dir, self.hub)

        async def _serve(server: uvicorn.Server) -> None:
            try:
                await server.serve()
            finally:
                stop.set()

        async def _shutdown_on_stop() -> None:
            await stop.wait()
            for server in servers:
                server.should_exit = True

        self.logger.info("Dev server is ready at http://localhost:%d", self.config.port)
        await asyncio.gather(
            *(_serve(server) for server in servers),
            reloader.run(stop),
            _shutdown_on_stop(),
        )

    def _server(self, app: FastAPI, port: int) -> uvicorn.Server:
        return uvicorn.Server(
            uvicorn.Config(app, host=self.config.host, port=port, log_level="warning")
        )


__all__ = [
    "DevPreviewServer",
    "LiveReloadHub",
    "OutputReloader",
    "create_livereload_app",
    "create_preview_app",
]
