"""Status web interface for hue-daylight.

Exposes the state of all lights over HTTP and WebSocket. Runs in its own
thread with its own asyncio event loop next to the control loop; changes are
handed to the control loop as requests, never applied here.

Endpoints:
    GET  /api/lights                 Status of every light
    GET  /api/lights/{id}/schedule   Today's waypoints of one light
    POST /api/lights/{id}/enable     Resume automatic control of a light
    POST /api/reload                 Reload configuration, rebuild schedules
    GET  /ws                         Status pushed every STATUS_INTERVAL seconds
"""

import asyncio
import logging
import threading
from typing import TYPE_CHECKING

from aiohttp import web, WSMsgType

if TYPE_CHECKING:
    from .loop import ControlLoop

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
STATUS_INTERVAL = 1.0


class StatusServer:
    """HTTP/WebSocket server for inspecting and nudging the control loop."""

    def __init__(
        self,
        control_loop: "ControlLoop",
        host: str = "localhost",
        port: int = DEFAULT_PORT,
    ):
        self.control_loop = control_loop
        self.host = host
        self.port = port

        self._runner: web.AppRunner | None = None
        self._clients: set[web.WebSocketResponse] = set()
        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/lights", self._handle_lights)
        app.router.add_get("/api/lights/{light_id}/schedule", self._handle_schedule)
        app.router.add_post("/api/lights/{light_id}/enable", self._handle_enable)
        app.router.add_post("/api/reload", self._handle_reload)
        app.router.add_get("/ws", self._handle_websocket)
        return app

    def _get_status(self) -> dict:
        return {"type": "status", "lights": self.control_loop.status()}

    async def _handle_lights(self, request: web.Request) -> web.Response:
        return web.json_response(self._get_status())

    async def _handle_schedule(self, request: web.Request) -> web.Response:
        light = self.control_loop.context.lights.get(request.match_info["light_id"])
        if light is None:
            raise web.HTTPNotFound(text="Unknown light")

        schedule = light.schedule
        if schedule is None:
            return web.json_response({"id": light.id, "day": None, "waypoints": []})

        waypoints = []
        for point in schedule.waypoints:
            entry = {"time": point.time.isoformat(), "color_temperature": None, "brightness": None}
            if point.values is not None:
                entry["color_temperature"] = point.values.color_temperature
                entry["brightness"] = point.values.brightness
            if point is schedule.sunrise:
                entry["label"] = "sunrise"
            elif point is schedule.sunset:
                entry["label"] = "sunset"
            waypoints.append(entry)

        return web.json_response({
            "id": light.id,
            "day": schedule.day.isoformat(),
            "end_of_day": schedule.end_of_day.isoformat(),
            "enable_when_lights_appear": schedule.enable_when_lights_appear,
            "waypoints": waypoints,
        })

    async def _handle_enable(self, request: web.Request) -> web.Response:
        light_id = request.match_info["light_id"]
        if light_id not in self.control_loop.context.lights:
            raise web.HTTPNotFound(text="Unknown light")
        self.control_loop.request_enable(light_id)
        return web.json_response({"type": "enable_requested", "id": light_id}, status=202)

    async def _handle_reload(self, request: web.Request) -> web.Response:
        self.control_loop.request_reload()
        return web.json_response({"type": "reload_requested"}, status=202)

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle incoming WebSocket connection."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._clients.add(ws)
        logger.debug("Client connected (%d total)", len(self._clients))

        try:
            await ws.send_json(self._get_status())
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            self._clients.discard(ws)
            logger.debug("Client disconnected (%d total)", len(self._clients))

        return ws

    async def _broadcast_status(self) -> None:
        """Broadcast status to all connected clients."""
        if not self._clients:
            return

        status = self._get_status()
        dead_clients = set()

        for ws in self._clients:
            try:
                await ws.send_json(status)
            except (ConnectionError, RuntimeError):
                dead_clients.add(ws)

        self._clients -= dead_clients

    async def _status_loop(self) -> None:
        """Periodically broadcast status to all clients."""
        while self._running:
            await self._broadcast_status()
            await asyncio.sleep(STATUS_INTERVAL)

    async def _start_async(self) -> None:
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        self._running = True
        logger.info("Web interface running on http://%s:%d/", self.host, self.port)

        asyncio.create_task(self._status_loop())

    async def _stop_async(self) -> None:
        self._running = False

        for ws in list(self._clients):
            await ws.close()
        self._clients.clear()

        if self._runner:
            await self._runner.cleanup()

    def start_in_thread(self) -> threading.Thread:
        """Start the server in a background thread.

        Returns the thread so caller can join it on shutdown.
        """
        def run():
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)

            try:
                self._loop.run_until_complete(self._start_async())
                self._loop.run_forever()
            finally:
                self._loop.run_until_complete(self._stop_async())
                self._loop.close()

        thread = threading.Thread(target=run, daemon=True, name="StatusServer")
        thread.start()
        return thread

    def stop(self) -> None:
        """Signal the server to stop."""
        self._running = False
        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)
