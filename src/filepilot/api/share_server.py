"""Share server lifecycle: port allocation, uvicorn thread, share URLs.

The server is started lazily on the first share. uvicorn runs on a daemon
thread with its own event loop and is handed the already-listening socket
from :class:`PortAllocator`.
"""
from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path

import uvicorn

from ..observability import get_logger
from ..observability.metrics import SHARES_REGISTERED_TOTAL
from .app import create_app
from .config import FilePilotConfig
from .error_codes import InvalidSharePathError
from .notifier import ShareNotifier, build_notification
from .port_allocator import AllocatedPort, PortAllocator
from .share_registry import ShareRegistry

logger = get_logger(__name__)

STARTUP_TIMEOUT_SECONDS = 10.0
GRACEFUL_SHUTDOWN_SECONDS = 1


@dataclass(frozen=True)
class ShareResult:
    url: str
    token: str
    path: Path
    port: int


class _ThreadedServer(uvicorn.Server):
    """uvicorn server that reports readiness and its event loop."""

    def __init__(self, config: uvicorn.Config):
        super().__init__(config)
        self.ready = threading.Event()
        self.loop: asyncio.AbstractEventLoop | None = None

    async def startup(self, sockets=None) -> None:
        self.loop = asyncio.get_running_loop()
        await super().startup(sockets=sockets)
        self.ready.set()


class ShareServer:
    """Own the HTTP server that serves shared files on the local network.

    Args:
        config: Configuration (ports, hosts, notification settings)
        registry: Share table; a fresh one when omitted
        notifier: Webhook notifier; built from ``config`` when omitted

    Example:
        server = ShareServer(FilePilotConfig.load())
        result = server.share('~/Videos/talk.mp4')
        print(result.url)  # http://192.168.1.20:8080/file/3f2a...
        server.stop()
    """

    def __init__(
        self,
        config: FilePilotConfig,
        registry: ShareRegistry | None = None,
        notifier: ShareNotifier | None = None,
    ):
        self.config = config
        self.registry = registry if registry is not None else ShareRegistry()
        self.notifier = notifier or ShareNotifier(config)
        self._lock = threading.Lock()
        self._server: _ThreadedServer | None = None
        self._thread: threading.Thread | None = None
        self._allocated: AllocatedPort | None = None
        self._advertise_host: str | None = None

    @property
    def running(self) -> bool:
        return self._server is not None and self._server.ready.is_set()

    @property
    def port(self) -> int | None:
        return self._allocated.port if self._allocated else None

    @property
    def base_url(self) -> str:
        if self._allocated is None:
            raise RuntimeError('Share server is not running')
        return f'http://{self._advertise_host}:{self._allocated.port}'

    def start(self) -> int:
        """Bind a port and start serving. Idempotent.

        Returns:
            The bound port.

        Raises:
            NoPortAvailableError: If every candidate port is occupied
            RuntimeError: If uvicorn fails to come up in time
        """
        with self._lock:
            if self._server is not None:
                return self._allocated.port

            self.config.validate()
            allocator = PortAllocator(self.config.port_range, host=self.config.bind_host)
            allocated = allocator.allocate()

            app = create_app(self.config, self.registry)
            uv_config = uvicorn.Config(
                app,
                log_config=None,
                access_log=False,
                lifespan='off',
                timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
            )
            server = _ThreadedServer(uv_config)
            thread = threading.Thread(
                target=server.run,
                kwargs={'sockets': [allocated.sock]},
                name=f'filepilot-share-{allocated.port}',
                daemon=True,
            )
            thread.start()

            if not server.ready.wait(STARTUP_TIMEOUT_SECONDS):
                server.should_exit = True
                thread.join(timeout=GRACEFUL_SHUTDOWN_SECONDS + 1)
                allocated.close()
                raise RuntimeError(f'Share server did not start on port {allocated.port}')

            self._server = server
            self._thread = thread
            self._allocated = allocated
            self._advertise_host = self.config.resolve_advertise_host()

        logger.info(
            'share_server_started',
            bind_host=self.config.bind_host,
            port=allocated.port,
            advertise_host=self._advertise_host,
        )
        return allocated.port

    def share(self, path: Path | str) -> ShareResult:
        """Register ``path`` and return its share URL.

        Raises:
            InvalidSharePathError: If the path is missing or is a directory
            NoPortAvailableError: If the server had to start and no port was free
        """
        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise InvalidSharePathError(str(resolved), 'no such file')
        if resolved.is_dir():
            raise InvalidSharePathError(str(resolved), 'directories cannot be shared')

        port = self.start()
        token = self.registry.register(resolved)
        url = f'{self.base_url}/file/{token}'
        SHARES_REGISTERED_TOTAL.inc()
        logger.info('share_registered', token=token, path=str(resolved), url=url)

        self._notify(token, resolved, url)
        return ShareResult(url=url, token=token, path=resolved, port=port)

    def _notify(self, token: str, path: Path, url: str) -> None:
        if not self.notifier.enabled:
            return
        loop = self._server.loop if self._server else None
        if loop is None or loop.is_closed():
            logger.warning('share_notification_skipped', token=token, reason='server loop unavailable')
            return
        notification = build_notification(token, path, url)
        # fire and forget: the future is never awaited
        asyncio.run_coroutine_threadsafe(self.notifier.send(notification), loop)

    def stop(self) -> None:
        """Stop serving and forget every share. Safe to call twice."""
        with self._lock:
            server, thread, allocated = self._server, self._thread, self._allocated
            self._server = self._thread = self._allocated = None
            if server is None:
                self.registry.clear()
                return

            server.should_exit = True
            thread.join(timeout=GRACEFUL_SHUTDOWN_SECONDS + 2)
            allocated.close()
            self.registry.clear()

        logger.info('share_server_stopped', port=allocated.port)

    def __enter__(self) -> 'ShareServer':
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
