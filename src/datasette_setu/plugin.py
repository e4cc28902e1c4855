"""
Datasette plugin exposing the setu-gateway actions as JSON routes.

Routes:
- POST /-/setu/translate                       {"voice_text": "..."}
- POST /-/setu/catalogs                        {"farmer_id": "...", "catalog": {...}}
- GET  /-/setu/catalogs/<catalog_id>
- POST /-/setu/catalogs/<catalog_id>/broadcast
- GET  /-/setu/farmers/<farmer_id>/catalogs
- GET  /-/setu/network-logs?type=INCOMING_BID&page=1
"""

import json
import weakref
from pathlib import Path
from typing import Any

from datasette import Response, hookimpl
from datasette.utils.asgi import Request

from setu_gateway.config import PLUGIN_NAME, GatewayConfig
from setu_gateway.migrations import run_migrations
from setu_gateway.models import GatewayDatabase
from setu_gateway.service import ActionError, ActionResult, GatewayService

# One service per Datasette instance so pending broadcasts are shared
_services: "weakref.WeakKeyDictionary[Any, GatewayService]" = weakref.WeakKeyDictionary()

# -----------------------------------------------------------------------------
# Plugin Configuration
# -----------------------------------------------------------------------------


def get_plugin_config(datasette) -> GatewayConfig:
    """Get gateway configuration from datasette.yaml."""
    return GatewayConfig.from_dict(datasette.plugin_config(PLUGIN_NAME) or {})


def get_db_path(datasette) -> Path:
    """Get the path to the gateway database."""
    return get_plugin_config(datasette).db_path


def ensure_db_exists(db_path: Path) -> None:
    """Create or upgrade the gateway database. Safe to call repeatedly."""
    run_migrations(db_path, verbose=False)


def get_service(datasette) -> GatewayService:
    """Get or create the gateway service for this Datasette instance."""
    service = _services.get(datasette)
    if service is None:
        config = get_plugin_config(datasette)
        ensure_db_exists(config.db_path)
        service = GatewayService(config, GatewayDatabase(config.db_path))
        _services[datasette] = service
    return service


# -----------------------------------------------------------------------------
# Response Helpers
# -----------------------------------------------------------------------------


ERROR_STATUS = {
    ActionError.INVALID: 400,
    ActionError.NOT_FOUND: 404,
    ActionError.NOT_READY: 409,
    ActionError.STORE: 500,
}


def json_response(result: ActionResult) -> Response:
    """Render an ActionResult with a matching HTTP status."""
    if result.success:
        status = 200
    else:
        status = ERROR_STATUS.get(result.error, 400)
    return Response.json(result.to_dict(), status=status)


async def read_json_body(request: Request) -> dict | None:
    """Parse the request body as a JSON object, or None if it isn't one."""
    body = await request.post_body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def method_not_allowed() -> Response:
    return Response.json({"success": False, "message": "Method not allowed"}, status=405)


def bad_json() -> Response:
    return Response.json(
        {"success": False, "message": "Request body must be a JSON object"}, status=400
    )


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


async def setu_translate(request: Request, datasette) -> Response:
    """Translate voice text into a catalog item."""
    if request.method != "POST":
        return method_not_allowed()

    data = await read_json_body(request)
    if data is None:
        return bad_json()

    result = await get_service(datasette).translate_voice(data.get("voice_text"))
    return json_response(result)


async def setu_save_catalog(request: Request, datasette) -> Response:
    """Save a catalog as a draft for a farmer."""
    if request.method != "POST":
        return method_not_allowed()

    data = await read_json_body(request)
    if data is None:
        return bad_json()

    result = get_service(datasette).save_catalog(data.get("farmer_id"), data.get("catalog"))
    return json_response(result)


async def setu_get_catalog(request: Request, datasette) -> Response:
    """Fetch a single catalog."""
    catalog_id = request.url_vars.get("catalog_id")
    return json_response(get_service(datasette).get_catalog(catalog_id))


async def setu_broadcast(request: Request, datasette) -> Response:
    """Broadcast a catalog and return the simulated buyer bid."""
    if request.method != "POST":
        return method_not_allowed()

    catalog_id = request.url_vars.get("catalog_id")
    result = await get_service(datasette).broadcast_catalog(catalog_id)
    return json_response(result)


async def setu_farmer_catalogs(request: Request, datasette) -> Response:
    """List a farmer's catalogs."""
    farmer_id = request.url_vars.get("farmer_id")
    return json_response(get_service(datasette).get_catalogs_by_farmer(farmer_id))


async def setu_network_logs(request: Request, datasette) -> Response:
    """List network log entries with type filter and pagination."""
    try:
        page = int(request.args.get("page", "1"))
        page_size = int(request.args.get("page_size", "10"))
    except ValueError:
        return Response.json(
            {"success": False, "message": "page and page_size must be integers"}, status=400
        )

    result = get_service(datasette).get_network_logs(
        request.args.get("type"),
        page=page,
        page_size=max(1, min(page_size, 100)),
    )
    return json_response(result)


# -----------------------------------------------------------------------------
# Datasette Hooks
# -----------------------------------------------------------------------------


@hookimpl
def register_routes():
    """Register plugin routes with Datasette."""
    return [
        (r"^/-/setu/translate$", setu_translate),
        (r"^/-/setu/catalogs$", setu_save_catalog),
        (r"^/-/setu/catalogs/(?P<catalog_id>[^/]+)$", setu_get_catalog),
        (r"^/-/setu/catalogs/(?P<catalog_id>[^/]+)/broadcast$", setu_broadcast),
        (r"^/-/setu/farmers/(?P<farmer_id>[^/]+)/catalogs$", setu_farmer_catalogs),
        (r"^/-/setu/network-logs$", setu_network_logs),
    ]


@hookimpl
def skip_csrf(datasette, scope):
    """Gateway routes are JSON API calls, not form posts."""
    if scope.get("path", "").startswith("/-/setu/"):
        return True
    return None


@hookimpl
def startup(datasette):
    """Create or upgrade the gateway database on startup."""
    ensure_db_exists(get_db_path(datasette))
