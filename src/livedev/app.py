"""FastAPI application factory and lifespan management."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from livedev.config import Settings
from livedev.events import BroadcastHub, ChangeNotifier, EventBus, FilesystemWatcher
from livedev.middleware.auth import AdminTokenMiddleware
from livedev.middleware.compression import configure_compression
from livedev.middleware.fallback import CustomErrorPageMiddleware, SPAFallbackMiddleware
from livedev.middleware.inject import HTMLInjector, LiveReloadMiddleware
from livedev.middleware.logging import RequestLoggingMiddleware
from livedev.middleware.nocache import NoCacheMiddleware
from livedev.middleware.routing import ReverseProxyMiddleware, RewriteRedirectMiddleware
from livedev.routes import admin, livereload
from livedev.static import SiteFiles

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Initializes the event system (event bus, notifier, broadcast hub,
    filesystem watcher) and the shared HTTP client on startup. Ensures
    clean shutdown of all subsystems.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info(
        "server_startup",
        host=settings.host,
        port=settings.port,
        root=str(settings.root),
    )

    http_client = httpx.AsyncClient(follow_redirects=False)
    event_bus = EventBus(
        capacity=settings.subscriber_capacity,
        max_subscribers=settings.max_subscribers,
    )
    notifier = ChangeNotifier(
        client=http_client,
        webhook_url=settings.webhook_url,
        webhook_timeout=settings.webhook_timeout,
        triggers=settings.command_triggers,
    )
    broadcast_hub = BroadcastHub(
        event_bus,
        notifier=notifier,
        heartbeat_interval=settings.sse_heartbeat_interval,
    )

    loop = asyncio.get_running_loop()
    watcher = FilesystemWatcher(
        root=settings.root,
        loop=loop,
        on_change=broadcast_hub.on_file_change,
        excluded=settings.excluded_dirs,
        debounce_ms=settings.debounce_ms,
    )

    app.state.http_client = http_client
    app.state.event_bus = event_bus
    app.state.broadcast_hub = broadcast_hub
    app.state.watcher = watcher

    watcher.start()

    try:
        yield
    finally:
        watcher.stop()
        await broadcast_hub.shutdown()
        await http_client.aclose()
        logger.info("server_shutdown")


def configure_pipeline(app: FastAPI, settings: Settings) -> None:
    """Install the response pipeline middlewares.

    Middlewares added later wrap those added earlier, so they are added
    innermost first. Requests traverse: logging, compression, no-cache,
    admin auth, custom 404, SPA fallback, live-reload injection, reverse
    proxy, rewrite/redirect, then the routes and static files.

    Args:
        app: FastAPI application instance.
        settings: Server configuration.
    """
    injector: HTMLInjector | None = None
    if settings.live_reload:
        injector = HTMLInjector.from_files(settings.inject_js, settings.inject_css)

    if settings.redirect_rules or settings.rewrite_rules:
        app.add_middleware(
            RewriteRedirectMiddleware,
            redirects=settings.redirect_rules,
            rewrites=settings.rewrite_rules,
        )
    if settings.proxy_rules:
        app.add_middleware(ReverseProxyMiddleware, rules=settings.proxy_rules)
    if injector is not None:
        app.add_middleware(LiveReloadMiddleware, injector=injector)
    if settings.spa_fallback:
        app.add_middleware(
            SPAFallbackMiddleware,
            index_path=settings.resolve_under_root("index.html"),
            injector=injector,
        )
    if settings.custom_404:
        app.add_middleware(
            CustomErrorPageMiddleware,
            page_path=settings.resolve_under_root(settings.custom_404),
        )
    if settings.admin_token:
        app.add_middleware(AdminTokenMiddleware, token=settings.admin_token)
    app.add_middleware(NoCacheMiddleware)
    if settings.compression:
        configure_compression(app)
    app.add_middleware(RequestLoggingMiddleware)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="livedev",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings

    configure_pipeline(app, settings)

    app.include_router(livereload.router)
    app.include_router(admin.router)
    app.mount(
        "/",
        SiteFiles(directory=settings.root, directory_listing=settings.directory_listing),
        name="site",
    )

    return app
