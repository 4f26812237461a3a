"""Share serving service: resolve a token, classify, and dispatch.

Dispatch is a closed table over RenderStrategy; a strategy without a
handler fails at import time rather than at request time.
"""
from __future__ import annotations

import os
import stat
from typing import Callable

from fastapi.responses import JSONResponse
from starlette.responses import Response

from ....observability import get_logger
from ...config import FilePilotConfig
from ...content_classifier import Classification, RenderStrategy, classify, media_type_for
from ...error_codes import FormatError, SharedFileMissingError
from ...share_registry import ShareEntry, ShareRegistry
from .formatter import diagnostic_document, format_document
from .schemas import ShareListItem, ShareListResponse
from .streaming import stream_file

logger = get_logger(__name__)

_ACTIVE_TEXT_TYPES = frozenset({'text/html', 'application/javascript'})


class ShareService:
    """Serve registered shares over HTTP.

    Handles token resolution, content classification, range streaming
    and server-side formatting.
    """

    def __init__(self, config: FilePilotConfig, registry: ShareRegistry):
        self.config = config
        self.registry = registry

    def stat_entry(self, token: str) -> tuple[ShareEntry, os.stat_result]:
        """Resolve ``token`` and stat its file.

        Raises:
            ShareNotFoundError: Unknown token
            SharedFileMissingError: File removed or replaced by a directory
        """
        entry = self.registry.resolve(token)
        try:
            st = os.stat(entry.path)
        except OSError:
            raise SharedFileMissingError(token, str(entry.path))
        if not stat.S_ISREG(st.st_mode):
            raise SharedFileMissingError(token, str(entry.path))
        return entry, st

    def classify_entry(self, entry: ShareEntry, size: int) -> Classification:
        return classify(entry.path, size, self.config.limits)

    def serve(self, token: str, range_header: str | None) -> Response:
        """Respond to ``GET /file/{token}`` according to the file's strategy."""
        entry, st = self.stat_entry(token)
        classification = self.classify_entry(entry, st.st_size)
        logger.debug(
            'share_dispatch',
            token=token,
            strategy=classification.strategy.value,
            reason=classification.reason,
            size=st.st_size,
        )
        handler = _HANDLERS[classification.strategy]
        try:
            return handler(self, entry, classification, range_header)
        except FileNotFoundError:
            raise SharedFileMissingError(token, str(entry.path))

    def serve_raw(self, token: str, range_header: str | None) -> Response:
        """Respond to ``GET /raw/{token}``: always a download."""
        entry, _ = self.stat_entry(token)
        classification = Classification(
            RenderStrategy.DOWNLOAD_ONLY,
            media_type_for(entry.path),
            'raw route',
        )
        try:
            return self._stream(entry, classification, range_header)
        except FileNotFoundError:
            raise SharedFileMissingError(token, str(entry.path))

    def list_shares(self, base_url: str) -> ShareListResponse:
        items = []
        for entry in self.registry.entries():
            try:
                size = entry.path.stat().st_size
                strategy = self.classify_entry(entry, size).strategy.value
            except OSError:
                size, strategy = None, None
            items.append(ShareListItem(
                token=entry.token,
                name=entry.name,
                size=size,
                strategy=strategy,
                url=f'{base_url.rstrip("/")}/file/{entry.token}',
                created_at=entry.created_at,
            ))
        return ShareListResponse(shares=items)

    # ── Strategy handlers ──

    def _stream(
        self,
        entry: ShareEntry,
        classification: Classification,
        range_header: str | None,
    ) -> Response:
        media_type = classification.media_type
        if classification.strategy is RenderStrategy.HIGHLIGHT_CODE and media_type in _ACTIVE_TEXT_TYPES:
            # shared source is displayed, never executed by the viewer
            media_type = 'text/plain'
        return stream_file(
            entry.path,
            media_type,
            range_header,
            attachment=classification.strategy is RenderStrategy.DOWNLOAD_ONLY,
            strategy=classification.strategy.value,
            chunk_size=self.config.limits.stream_chunk_size,
        )

    def _format(
        self,
        entry: ShareEntry,
        classification: Classification,
        range_header: str | None,
    ) -> Response:
        strategy = classification.strategy
        try:
            document = format_document(entry.path, strategy, self.config.limits)
        except FormatError as e:
            logger.warning(
                'format_failed',
                token=entry.token,
                path=str(entry.path),
                strategy=strategy.value,
                reason=e.reason,
            )
            document = diagnostic_document(entry.path, strategy, e, f'/raw/{entry.token}')
        return JSONResponse(
            content=document.model_dump(),
            headers={'X-Render-Strategy': strategy.value, 'Cache-Control': 'no-store'},
        )


_Handler = Callable[..., Response]

_HANDLERS: dict[RenderStrategy, _Handler] = {
    RenderStrategy.STREAM_RAW: ShareService._stream,
    RenderStrategy.STREAM_MEDIA: ShareService._stream,
    RenderStrategy.DISPLAY_IMAGE: ShareService._stream,
    RenderStrategy.HIGHLIGHT_CODE: ShareService._stream,
    RenderStrategy.RENDER_MARKDOWN: ShareService._stream,
    RenderStrategy.DOWNLOAD_ONLY: ShareService._stream,
    RenderStrategy.FORMAT_STRUCTURED: ShareService._format,
    RenderStrategy.RENDER_TABULAR: ShareService._format,
    RenderStrategy.RENDER_NOTEBOOK: ShareService._format,
}

_unhandled = set(RenderStrategy) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f'No share handler for: {sorted(s.value for s in _unhandled)}')
