"""Monitoring Routes - start and stop microphone monitoring."""

from aiohttp import web

from ..controller import APIController


def setup_monitoring_routes(app: web.Application, controller: APIController) -> None:
    """Register monitoring lifecycle routes."""
    app.router.add_post("/api/v1/monitoring/start", start_monitoring_handler)
    app.router.add_post("/api/v1/monitoring/stop", stop_monitoring_handler)


def _success_status(result: dict) -> int:
    return 200 if result.get("success") else 500


async def start_monitoring_handler(request: web.Request) -> web.Response:
    """POST /api/v1/monitoring/start - Start monitoring (idempotent)."""
    controller: APIController = request.app["controller"]
    result = await controller.start_monitoring()
    return web.json_response(result, status=_success_status(result))


async def stop_monitoring_handler(request: web.Request) -> web.Response:
    """POST /api/v1/monitoring/stop - Stop monitoring, sealing any open session."""
    controller: APIController = request.app["controller"]
    result = await controller.stop_monitoring()
    return web.json_response(result, status=_success_status(result))
