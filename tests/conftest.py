"""Pytest configuration for filepilot tests."""
import socket
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from filepilot.api.config import FilePilotConfig


@pytest.fixture
def workspace_root(tmp_path):
    """Create a temporary workspace root for testing."""
    workspace = tmp_path / 'workspace'
    workspace.mkdir()
    return workspace


@pytest.fixture
def config(monkeypatch):
    """Configuration isolated from the developer's FILEPILOT_* environment."""
    for name in (
        'FILEPILOT_BIND_HOST',
        'FILEPILOT_ADVERTISE_HOST',
        'FILEPILOT_PORT_START',
        'FILEPILOT_PORT_COUNT',
        'FILEPILOT_NOTIFICATION_ENDPOINT',
        'FILEPILOT_NOTIFICATION_ENABLED',
        'FILEPILOT_NOTIFICATION_TIMEOUT',
        'FILEPILOT_PROFILE',
        'FILEPILOT_CONFIG',
    ):
        monkeypatch.delenv(name, raising=False)
    return FilePilotConfig(bind_host='127.0.0.1', advertise_host='127.0.0.1')


def _can_listen(port: int) -> bool:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind(('127.0.0.1', port))
        sock.listen(1)
    except OSError:
        return False
    finally:
        sock.close()
    return True


@pytest.fixture
def free_block():
    """First port of four consecutive ports that were all free when checked."""
    for base in range(20000, 40000, 7):
        if all(_can_listen(base + i) for i in range(4)):
            return base
    pytest.skip('no block of four free ports')
