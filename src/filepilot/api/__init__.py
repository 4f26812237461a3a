"""Share server for filepilot.

Example:
    # Serve one file to the local network
    from filepilot.api import FilePilotConfig, ShareServer
    server = ShareServer(FilePilotConfig.load())
    print(server.share('notes.md').url)

    # Mount the routes in a test app
    from filepilot.api import ShareRegistry, create_app
    registry = ShareRegistry()
    app = create_app(registry=registry)
"""

# Configuration
from .config import FilePilotConfig, SizeLimits

# Errors
from .error_codes import (
    ErrorCode,
    FilePilotError,
    NoPortAvailableError,
    ShareNotFoundError,
    SharedFileMissingError,
    InvalidSharePathError,
    RangeNotSatisfiableError,
    FormatError,
    SearchRootError,
    UnknownProfileError,
    ConfigError,
)

# Sharing
from .port_allocator import PortAllocator, AllocatedPort
from .share_registry import ShareRegistry, ShareEntry
from .content_classifier import RenderStrategy, Classification, classify
from .range_resolver import ByteRange, resolve_range
from .notifier import ShareNotifier

# App factory and server
from .app import create_app
from .share_server import ShareServer, ShareResult

__all__ = [
    'FilePilotConfig',
    'SizeLimits',
    'ErrorCode',
    'FilePilotError',
    'NoPortAvailableError',
    'ShareNotFoundError',
    'SharedFileMissingError',
    'InvalidSharePathError',
    'RangeNotSatisfiableError',
    'FormatError',
    'SearchRootError',
    'UnknownProfileError',
    'ConfigError',
    'PortAllocator',
    'AllocatedPort',
    'ShareRegistry',
    'ShareEntry',
    'RenderStrategy',
    'Classification',
    'classify',
    'ByteRange',
    'resolve_range',
    'ShareNotifier',
    'create_app',
    'ShareServer',
    'ShareResult',
]
