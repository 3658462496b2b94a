"""Server configuration. Durations are in seconds."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass
class CORSConfig:
    allowed_origins: list[str] = field(default_factory=list)
    allowed_methods: list[str] = field(default_factory=list)
    allowed_headers: list[str] = field(default_factory=list)
    exposed_headers: list[str] = field(default_factory=list)
    allow_credentials: bool = False
    max_age: float = 0.0


@dataclass
class HTTPTimeouts:
    read_timeout: float = 0.0
    read_header_timeout: float = 0.0
    write_timeout: float = 0.0
    idle_timeout: float = 0.0


@dataclass
class LogConfig:
    access_file: str = ""
    error_file: str = ""
    rotate_max_size_bytes: int = 0  # 0 disables rotation
    rotate_backups: int = 0


@dataclass
class AuthConfig:
    auth_header: str = ""
    bearer_prefix: str = ""
    access_cookie: str = ""
    refresh_cookie: str = ""
    enable_access_middleware: bool = False
    enable_refresh_middleware: bool = False


@dataclass
class TimeoutConfig:
    request_timeout: float = 0.0  # 0 disables the per-request deadline
    gateway_timeout_status: int = 0


@dataclass
class Config:
    addr: int = 0
    release: bool = False
    base_path: str = ""
    cors: CORSConfig = field(default_factory=CORSConfig)
    timeouts: HTTPTimeouts = field(default_factory=HTTPTimeouts)
    log: LogConfig = field(default_factory=LogConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    per_request: TimeoutConfig = field(default_factory=TimeoutConfig)
    shutdown_wait: float = 0.0
    print_routes: bool = False

    def with_defaults(self) -> Config:
        """Return a copy with unset address, shutdown wait and timeouts filled in."""
        t = self.timeouts
        return replace(
            self,
            addr=self.addr if self.addr > 0 else 8080,
            shutdown_wait=self.shutdown_wait if self.shutdown_wait > 0 else 10.0,
            timeouts=HTTPTimeouts(
                t.read_timeout or 10.0,
                t.read_header_timeout or 5.0,
                t.write_timeout or 15.0,
                t.idle_timeout or 60.0,
            ),
        )