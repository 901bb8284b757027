"""Fixed paths served by livedev itself rather than the site root."""

WS_PATH = "/ws"
SSE_PATH = "/livereload-events"
ADMIN_PREFIX = "/__livedev"

SUBSCRIPTION_PATHS = frozenset({WS_PATH, SSE_PATH})


def is_internal_path(path: str) -> bool:
    """Check whether a path belongs to a subscription endpoint or the admin API."""
    return (
        path in SUBSCRIPTION_PATHS
        or path == ADMIN_PREFIX
        or path.startswith(ADMIN_PREFIX + "/")
    )
