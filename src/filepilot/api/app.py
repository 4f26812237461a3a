"""Application factory for the filepilot share server."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from ..observability import get_logger, metrics_text
from ..observability.middleware import ShareRequestMiddleware
from .config import FilePilotConfig
from .error_codes import FilePilotError
from .modules.share import create_share_router
from .share_registry import ShareRegistry

logger = get_logger(__name__)


def create_app(
    config: FilePilotConfig | None = None,
    registry: ShareRegistry | None = None,
    include_metrics: bool = True,
) -> FastAPI:
    """Create a pre-wired FastAPI application.

    All dependencies are injectable for testing.

    Args:
        config: Configuration. Defaults to environment-derived values.
        registry: Share registry. The share server passes the registry the
            UI registers into; tests usually pass a fresh one.
        include_metrics: Mount ``GET /metrics`` (default: True)

    Returns:
        Configured FastAPI application with share routes mounted.

    Example:
        registry = ShareRegistry()
        app = create_app(FilePilotConfig(), registry)
        token = registry.register('/tmp/movie.mp4')
        # GET /file/{token} now streams the movie
    """
    config = config or FilePilotConfig()
    registry = registry if registry is not None else ShareRegistry()

    app = FastAPI(
        title='FilePilot Share Server',
        description='Serves files shared from a FilePilot session to the local network',
        version='0.1.0',
        docs_url=None,
        redoc_url=None,
    )

    app.add_middleware(ShareRequestMiddleware)

    @app.exception_handler(FilePilotError)
    async def filepilot_error_handler(request: Request, exc: FilePilotError) -> JSONResponse:
        logger.info(
            'request_failed',
            path=request.url.path,
            error_code=exc.code.value,
            message=exc.message,
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    app.include_router(create_share_router(config, registry))

    if include_metrics:
        @app.get('/metrics', include_in_schema=False)
        async def metrics() -> Response:
            body, content_type = metrics_text()
            return Response(content=body, media_type=content_type)

    app.state.config = config
    app.state.registry = registry
    return app
