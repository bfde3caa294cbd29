"""
System Routes - Health and status endpoints.
"""

from aiohttp import web

from ..controller import APIController


def setup_system_routes(app: web.Application, controller: APIController) -> None:
    """Register system routes."""
    app.router.add_get("/api/v1/health", health_handler)
    app.router.add_get("/api/v1/status", status_handler)


async def health_handler(request: web.Request) -> web.Response:
    """GET /api/v1/health - Health check."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.health_check())


async def status_handler(request: web.Request) -> web.Response:
    """GET /api/v1/status - Monitor, attribution and history status."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.get_status())
