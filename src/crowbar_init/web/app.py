"""HTTP front end for crowbar-init.

Apache proxies to this application while Crowbar is not installed yet. The
routes trigger the bootstrap transitions and database provisioning, and proxy
the installer's status document.
"""

from __future__ import annotations

import time
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from .. import __version__
from ..bootstrap import BootstrapOrchestrator, DatabaseAttributes, InstallerStatusClient
from ..config import InitConfig
from ..errors import BootstrapError, Busy, ValidationError
from ..shared.logging import log_request

logger = structlog.get_logger(__name__)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

LANDING_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>Crowbar</title>
  </head>
  <body>
    <h1>Crowbar</h1>
    <p>Crowbar is not installed yet.</p>
    <form method="post" action="/init">
      <button type="submit">Start installation</button>
    </form>
  </body>
</html>
"""


async def read_params(request: Request) -> dict[str, Any]:
    """Collect request parameters from query string, form data or JSON body."""
    params: dict[str, Any] = dict(request.query_params)
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            raise ValidationError(message="Request body is not valid JSON") from e
        if not isinstance(body, dict):
            raise ValidationError(message="Request body must be a JSON object")
        params.update(body)
    elif content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        params.update({key: value for key, value in form.items() if isinstance(value, str)})

    return params


def default_mode(params: dict[str, Any]) -> str:
    """Database mode implied by the supplied fields: connect if a host or port is given."""
    return "connect" if params.get("host") or params.get("port") else "create"


def database_attributes(params: dict[str, Any], mode: str) -> DatabaseAttributes:
    """Build validated database attributes from request parameters.

    Raises:
        ValidationError: If required fields are missing.
    """
    if mode == "create":
        return DatabaseAttributes.create(params.get("username"), params.get("password"))
    if mode == "connect":
        return DatabaseAttributes.connect(
            params.get("username"),
            params.get("password"),
            params.get("host"),
            params.get("port"),
        )
    raise ValidationError(message=f"Unknown database mode: {mode!r}")


def error_response(error: BootstrapError) -> JSONResponse:
    """Render a bootstrap error as ``{code, body: {error, step}}``."""
    return JSONResponse({"code": error.code, "body": error.to_dict()}, status_code=error.code)


def database_error_response(error: BootstrapError) -> JSONResponse:
    """Render a database endpoint error as ``{code, body: {error}}``."""
    return JSONResponse(
        {"code": error.code, "body": {"error": error.message}},
        status_code=error.code,
    )


def create_app(
    config: InitConfig | None = None,
    orchestrator: BootstrapOrchestrator | None = None,
    status_client: InstallerStatusClient | None = None,
) -> FastAPI:
    """Create the crowbar-init web application.

    Args:
        config: Configuration (default: InitConfig defaults)
        orchestrator: Orchestrator (default: built from config)
        status_client: Installer status client (default: built from config)

    Returns:
        FastAPI application
    """
    config = config or InitConfig()
    orchestrator = orchestrator or BootstrapOrchestrator.from_config(config)
    status_client = status_client or InstallerStatusClient(config.installer_url)

    app = FastAPI(title="crowbar-init", version=__version__, docs_url=None, redoc_url=None)
    app.state.config = config
    app.state.orchestrator = orchestrator
    app.state.status_client = status_client

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        log_request(
            request.method,
            request.url.path,
            response.status_code,
            time.perf_counter() - start,
            client=request.client.host if request.client else None,
        )
        return response

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        """Landing page."""
        return LANDING_PAGE

    @app.post("/init")
    async def init(request: Request) -> Response:
        """Bring Crowbar up and send the browser to the installer."""
        try:
            params = await read_params(request)
            attrs = None
            if params.get("username"):
                attrs = database_attributes(params, params.get("mode") or default_mode(params))
            attempt = await orchestrator.init(attrs)
        except (Busy, ValidationError) as e:
            return error_response(e)

        if attempt.succeeded and attempt.redirect_to:
            return RedirectResponse(attempt.redirect_to, status_code=303)
        return error_response(attempt.error or BootstrapError(message="Init failed"))

    @app.post("/reset")
    async def reset() -> Response:
        """Tear Crowbar down and send the browser to the landing page."""
        try:
            attempt = await orchestrator.reset()
        except Busy as e:
            return error_response(e)

        if attempt.succeeded and attempt.redirect_to:
            return RedirectResponse(attempt.redirect_to, status_code=303)
        return error_response(attempt.error or BootstrapError(message="Reset failed"))

    @app.get("/status")
    async def status() -> JSONResponse:
        """Installer status document, or ``{code: 500, body: null}``."""
        return JSONResponse(await status_client.fetch("json"))

    @app.post("/database/new")
    async def database_new(request: Request) -> JSONResponse:
        """Create a local Crowbar database."""
        return await _provision(request, "create")

    @app.post("/database/connect")
    async def database_connect(request: Request) -> JSONResponse:
        """Connect Crowbar to an external database."""
        return await _provision(request, "connect")

    async def _provision(request: Request, mode: str) -> JSONResponse:
        try:
            attrs = database_attributes(await read_params(request), mode)
            await orchestrator.provision_database(attrs)
        except BootstrapError as e:
            logger.warning("Database request failed", mode=mode, error=e.message)
            return database_error_response(e)
        return JSONResponse({"code": 200, "body": None})

    return app
