"""Session Routes - recorded session history."""

from aiohttp import web

from ..controller import APIController
from ..middleware import create_error_response, parse_int_query


def setup_session_routes(app: web.Application, controller: APIController) -> None:
    """Register session history routes."""
    app.router.add_get("/api/v1/sessions", list_sessions_handler)
    app.router.add_delete("/api/v1/sessions", clear_sessions_handler)
    app.router.add_get("/api/v1/sessions/{session_id}", get_session_handler)


async def list_sessions_handler(request: web.Request) -> web.Response:
    """GET /api/v1/sessions?limit=N - Newest-first session history."""
    controller: APIController = request.app["controller"]
    limit = parse_int_query(request, "limit")
    return web.json_response(await controller.list_sessions(limit))


async def clear_sessions_handler(request: web.Request) -> web.Response:
    """DELETE /api/v1/sessions - Clear the session history."""
    controller: APIController = request.app["controller"]
    return web.json_response(await controller.clear_sessions())


async def get_session_handler(request: web.Request) -> web.Response:
    """GET /api/v1/sessions/{session_id} - One recorded session."""
    controller: APIController = request.app["controller"]
    raw_id = request.match_info["session_id"]
    if not raw_id.isdigit():
        return create_error_response("INVALID_SESSION_ID", f"Invalid session id: {raw_id}", status=400)

    result = await controller.get_session(int(raw_id))
    if result is None:
        return create_error_response("SESSION_NOT_FOUND", f"Session {raw_id} not found", status=404)
    return web.json_response(result)
