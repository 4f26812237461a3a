"""Configuration for filepilot.

Every field defaults from a ``FILEPILOT_*`` environment variable. A JSON
config file, validated by :class:`ConfigFile`, may override any of them::

    {
        "notification_endpoint": "http://nas.local:9000/hooks/share",
        "notification_enabled": true,
        "port_start": 8080,
        "ignore_patterns": ["*.iso", "build/"],
        "profiles": {"deep": {"max_depth": 16, "deadline_seconds": 120}}
    }
"""
import json
import os
import socket
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..search.profiles import SearchProfile, default_profiles
from .error_codes import ConfigError, UnknownProfileError

MiB = 1024 * 1024
GiB = 1024 * MiB

DEFAULT_CONFIG_PATH = Path.home() / '.config' / 'filepilot' / 'config.json'

DEFAULT_IGNORE_PATTERNS = [
    '.git/',
    'node_modules/',
    '__pycache__/',
    '.venv/',
    'target/',
    '.DS_Store',
]


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name}='{raw}': expected an integer")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name}='{raw}': expected a number")


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, '').strip().lower()
    if not raw:
        return default
    return raw in {'1', 'true', 'yes', 'on'}


def detect_local_ip() -> str:
    """Best-effort LAN address of this host.

    Connecting a UDP socket sends no packets; it only makes the kernel pick
    the outbound interface. Falls back to loopback when there is no route.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(('10.255.255.255', 1))
        return sock.getsockname()[0]
    except OSError:
        return '127.0.0.1'
    finally:
        sock.close()


@dataclass(frozen=True)
class SizeLimits:
    """Size thresholds for the content classifier and formatter."""
    structured_client_max: int = 5 * MiB  # below this the client formats JSON/XML/YAML itself
    structured_server_max: int = 100 * MiB
    markdown_max: int = 5 * MiB
    spreadsheet_max: int = 10 * MiB
    notebook_max: int = 50 * MiB
    max_table_rows: int = 1000
    hard_ceiling: int = 8 * GiB
    stream_chunk_size: int = 64 * 1024


class ProfileOverride(BaseModel):
    model_config = ConfigDict(extra='forbid')

    max_depth: int = Field(ge=1)
    deadline_seconds: float = Field(gt=0)
    follow_ignore_rules: bool = True
    max_results: int = Field(default=1000, ge=1)
    max_file_size: int = Field(default=100 * MiB, ge=0)


class ConfigFile(BaseModel):
    """Schema of the JSON config file. Unset fields keep their defaults."""
    model_config = ConfigDict(extra='forbid')

    notification_endpoint: Optional[str] = None
    notification_enabled: Optional[bool] = None
    notification_timeout: Optional[float] = Field(default=None, gt=0)
    bind_host: Optional[str] = None
    advertise_host: Optional[str] = None
    port_start: Optional[int] = Field(default=None, ge=1, le=65535)
    port_count: Optional[int] = Field(default=None, ge=1)
    ignore_patterns: Optional[list[str]] = None
    default_profile: Optional[str] = None
    profiles: dict[str, ProfileOverride] = Field(default_factory=dict)
    limits: dict[str, int] = Field(default_factory=dict)


@dataclass
class FilePilotConfig:
    """Central configuration passed to the share server, search engine and
    orchestrator, avoiding global state."""

    bind_host: str = field(default_factory=lambda: os.environ.get('FILEPILOT_BIND_HOST', '0.0.0.0'))
    # None means detect the LAN address when a URL is first built
    advertise_host: str | None = field(default_factory=lambda: os.environ.get('FILEPILOT_ADVERTISE_HOST') or None)
    port_start: int = field(default_factory=lambda: _env_int('FILEPILOT_PORT_START', 8080))
    port_count: int = field(default_factory=lambda: _env_int('FILEPILOT_PORT_COUNT', 10))

    notification_endpoint: str | None = field(default_factory=lambda: os.environ.get('FILEPILOT_NOTIFICATION_ENDPOINT') or None)
    notification_enabled: bool = field(default_factory=lambda: _env_flag('FILEPILOT_NOTIFICATION_ENABLED'))
    notification_timeout: float = field(default_factory=lambda: _env_float('FILEPILOT_NOTIFICATION_TIMEOUT', 3.0))

    limits: SizeLimits = field(default_factory=SizeLimits)
    ignore_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    profiles: dict[str, SearchProfile] = field(default_factory=default_profiles)
    default_profile: str = field(default_factory=lambda: os.environ.get('FILEPILOT_PROFILE', 'interactive'))

    @property
    def port_range(self) -> range:
        return range(self.port_start, self.port_start + self.port_count)

    @property
    def notifications_active(self) -> bool:
        return bool(self.notification_enabled and self.notification_endpoint)

    def resolve_advertise_host(self) -> str:
        return self.advertise_host or detect_local_ip()

    def get_profile(self, name: str | None = None) -> SearchProfile:
        """Look up a search profile by name (default profile when None)."""
        name = name or self.default_profile
        try:
            return self.profiles[name]
        except KeyError:
            raise UnknownProfileError(name, sorted(self.profiles))

    def validate(self) -> None:
        """Validate configuration at startup.

        Raises:
            ConfigError: If the port range or profiles are unusable
        """
        if self.port_count < 1:
            raise ConfigError(f'port_count must be >= 1, got {self.port_count}')
        last_port = self.port_start + self.port_count - 1
        if self.port_start < 1 or last_port > 65535:
            raise ConfigError(
                f'Port range {self.port_start}-{last_port} is outside 1-65535'
            )
        if self.notification_enabled and not self.notification_endpoint:
            raise ConfigError(
                'notification_enabled is set but notification_endpoint is empty'
            )
        if self.default_profile not in self.profiles:
            raise ConfigError(
                f"default_profile '{self.default_profile}' is not one of: "
                f"{', '.join(sorted(self.profiles))}"
            )

    @classmethod
    def load(cls, path: Path | str | None = None) -> 'FilePilotConfig':
        """Build a config from the environment plus an optional JSON file.

        Lookup order: ``path``, then ``FILEPILOT_CONFIG``, then
        ``~/.config/filepilot/config.json``. A missing file means defaults;
        a malformed one raises ConfigError naming the file.
        """
        config = cls()
        explicit = path or os.environ.get('FILEPILOT_CONFIG')
        config_path = Path(explicit) if explicit else DEFAULT_CONFIG_PATH
        if not config_path.is_file():
            if explicit:
                raise ConfigError(f'Config file not found: {config_path}')
            return config

        try:
            raw = json.loads(config_path.read_text(encoding='utf-8'))
            parsed = ConfigFile.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f'Invalid config file {config_path}: {e}')

        config.apply(parsed)
        return config

    def apply(self, parsed: ConfigFile) -> None:
        """Overlay the fields set in a parsed config file."""
        for name in (
            'notification_endpoint', 'notification_enabled', 'notification_timeout',
            'bind_host', 'advertise_host', 'port_start', 'port_count',
            'ignore_patterns', 'default_profile',
        ):
            value = getattr(parsed, name)
            if value is not None:
                setattr(self, name, value)

        for name, override in parsed.profiles.items():
            self.profiles[name] = SearchProfile(name=name, **override.model_dump())

        if parsed.limits:
            known = set(SizeLimits.__dataclass_fields__)
            unknown = set(parsed.limits) - known
            if unknown:
                raise ConfigError(f"Unknown size limits: {', '.join(sorted(unknown))}")
            self.limits = replace(self.limits, **parsed.limits)
