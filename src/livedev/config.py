"""Server configuration loaded from environment variables."""
from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from livedev.schemas import CommandTrigger, ProxyRule, RedirectRule, RewriteRule


class Settings(BaseSettings):
    """Server configuration loaded from environment variables.

    Rule lists are read as JSON, e.g.
    ``LIVEDEV_PROXY_RULES='[{"prefix": "/api", "target": "http://localhost:8000"}]'``.

    Attributes:
        root: Directory served and watched.
        host: Bind address for the server.
        port: Port number for the server.
        debug: Enable debug-level logging.
        log_file: Append logs to this file instead of stdout.
        log_format: JSON lines or human-readable console output.
        shutdown_timeout: Seconds to drain in-flight requests on shutdown.
        debounce_ms: Debounce window for filesystem events.
        excluded_dirs_raw: Comma-separated directories ignored by the watcher.
        subscriber_capacity: Undelivered messages held per subscriber.
        max_subscribers: Maximum number of concurrent subscribers.
        sse_heartbeat_interval: Seconds between SSE heartbeat events.
        live_reload: Inject the live-reload client into HTML pages.
        inject_js: File whose contents are injected as a script.
        inject_css: File whose contents are injected as a stylesheet.
        spa_fallback: Serve index.html for unmatched extensionless routes.
        directory_listing: Render listings for directories without an index.
        compression: Gzip responses for clients that accept it.
        custom_404: HTML file served for not-found responses.
        webhook_url: URL receiving a POST for every change.
        webhook_timeout: Seconds before a webhook POST is abandoned.
        admin_token: Bearer token protecting the admin API.
        proxy_rules: Path prefixes forwarded to other origins.
        rewrite_rules: Path prefixes rewritten before static lookup.
        redirect_rules: Path prefixes answered with a redirect.
        command_triggers: Commands spawned on matching changes.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIVEDEV_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    root: Path = Path("www")
    host: str = "127.0.0.1"
    port: int = 5571
    debug: bool = False
    log_file: str = ""
    log_format: Literal["json", "console"] = "json"
    shutdown_timeout: float = 5.0

    debounce_ms: int = 100
    excluded_dirs_raw: str = "node_modules,.git"
    subscriber_capacity: int = 16
    max_subscribers: int = 256
    sse_heartbeat_interval: float = 15.0

    live_reload: bool = True
    inject_js: str = ""
    inject_css: str = ""
    spa_fallback: bool = False
    directory_listing: bool = False
    compression: bool = False
    custom_404: str = ""

    webhook_url: str = ""
    webhook_timeout: float = 5.0
    admin_token: str = ""

    proxy_rules: list[ProxyRule] = []
    rewrite_rules: list[RewriteRule] = []
    redirect_rules: list[RedirectRule] = []
    command_triggers: list[CommandTrigger] = []

    @computed_field
    @property
    def excluded_dirs(self) -> list[str]:
        """Parse excluded directories from comma-separated string.

        Returns:
            Directory names or paths ignored by the watcher.
        """
        return [
            entry.strip()
            for entry in self.excluded_dirs_raw.split(",")
            if entry.strip()
        ]

    def resolve_under_root(self, value: str) -> Path:
        """Resolve a configured file path, relative paths against the root."""
        path = Path(value)
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()
