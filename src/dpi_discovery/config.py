"""
Configuration dataclasses for the discovery console.

This module defines all configuration structures used throughout the
console: how to reach the Discovery Service, how to poll it, retry
behaviour for best-effort calls, session persistence, logging, and the
discovery log stream.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class ServiceConfig:
    """Where and how to reach the Discovery Service."""

    base_url: str = "http://127.0.0.1:7000"
    api_prefix: str = "/api"
    timeout_seconds: float = 10.0
    api_token: Optional[str] = None
    verify_tls: bool = True

    @property
    def ws_base_url(self) -> str:
        """Base URL with the scheme switched to ws/wss."""
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://"):]
        if self.base_url.startswith("http://"):
            return "ws://" + self.base_url[len("http://"):]
        return self.base_url


@dataclass
class PollConfig:
    """Status tracking behaviour."""

    interval_seconds: float = 1.5
    resume_failure_limit: int = 5
    use_push: bool = False
    reconnect_delay_seconds: float = 3.0


@dataclass
class RetryConfig:
    """Retry behaviour for best-effort remote calls."""

    max_retries: int = 2
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 5.0
    retryable_errors: list[str] = field(
        default_factory=lambda: ["timeout", "network_error", "server_error"]
    )


@dataclass
class PersistenceConfig:
    """Where the active session id is kept between runs."""

    session_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class LogStreamConfig:
    """Discovery log stream configuration."""

    max_lines: int = 500
    reconnect_delay_seconds: float = 3.0


@dataclass
class ConsoleConfig:
    """Main configuration combining all sub-configurations."""

    service: ServiceConfig
    poll: PollConfig
    retry: RetryConfig
    persistence: PersistenceConfig
    logging: LoggingConfig
    log_stream: LogStreamConfig = field(default_factory=LogStreamConfig)
    language: str = "en"  # 'en' or 'ru'
