"""Share module for the filepilot server.

Serves registered files: token lookup, content classification, range
streaming and server-side formatting.
"""
from .router import create_share_router
from .schemas import FormattedDocument, NotebookCell, ShareNotification
from .service import ShareService

__all__ = [
    'create_share_router',
    'FormattedDocument',
    'NotebookCell',
    'ShareNotification',
    'ShareService',
]
