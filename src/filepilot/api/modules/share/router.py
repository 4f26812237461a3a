"""Share routes for the filepilot server."""
from fastapi import APIRouter, Header, Request

from ...config import FilePilotConfig
from ...share_registry import ShareRegistry
from .schemas import ShareListResponse
from .service import ShareService


def create_share_router(config: FilePilotConfig, registry: ShareRegistry) -> APIRouter:
    """Create the share router.

    Args:
        config: Configuration (size limits, chunk size)
        registry: Registry shared with the UI thread

    Returns:
        Configured APIRouter with share endpoints
    """
    router = APIRouter(tags=['share'])
    service = ShareService(config, registry)

    # Sync handlers: FastAPI runs them in its thread pool, so stat, sniff
    # and formatting never block the event loop.

    @router.get('/file/{token}')
    def get_shared_file(token: str, range_header: str | None = Header(default=None, alias='Range')):
        """Serve a shared file according to its rendering strategy."""
        return service.serve(token, range_header)

    @router.get('/raw/{token}')
    def get_raw_file(token: str, range_header: str | None = Header(default=None, alias='Range')):
        """Serve a shared file as a download, bypassing classification."""
        return service.serve_raw(token, range_header)

    @router.get('/list', response_model=ShareListResponse)
    def list_shares(request: Request):
        """List active shares with their URLs and strategies."""
        return service.list_shares(str(request.base_url))

    @router.get('/health')
    def health():
        return {'status': 'ok', 'shares': len(registry)}

    return router
