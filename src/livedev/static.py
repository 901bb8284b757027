"""Static file serving that never exposes directory contents by accident."""
import html
import os
import stat
from pathlib import Path
from urllib.parse import quote

import anyio
from starlette.datastructures import URL
from starlette.exceptions import HTTPException
from starlette.responses import HTMLResponse, RedirectResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

EXCLUDED_PATTERNS: frozenset[str] = frozenset({
    "node_modules",
    "__pycache__",
})

SECRET_EXTENSIONS: frozenset[str] = frozenset({
    ".key",
    ".pem",
    ".env",
})


def is_excluded(name: str) -> bool:
    """Check if a filename should be excluded from directory listings.

    Args:
        name: Filename to check.

    Returns:
        True if the file should be excluded.
    """
    if name in EXCLUDED_PATTERNS:
        return True

    if name.startswith("."):
        return True

    suffix = Path(name).suffix.lower()
    if suffix in SECRET_EXTENSIONS:
        return True

    return False


def render_listing(url_path: str, directory: str) -> str:
    """Render an HTML index of a directory's visible entries.

    Args:
        url_path: Request path of the directory, ending in "/".
        directory: Filesystem path of the directory.

    Returns:
        HTML document listing subdirectories first, then files.
    """
    entries = []
    with os.scandir(directory) as it:
        for entry in it:
            if is_excluded(entry.name):
                continue
            entries.append((not entry.is_dir(), entry.name))
    entries.sort()

    title = html.escape(url_path)
    items = []
    if url_path != "/":
        items.append('<li><a href="../">../</a></li>')
    for is_file, name in entries:
        label = name if is_file else name + "/"
        items.append(
            f'<li><a href="{quote(label)}">{html.escape(label)}</a></li>'
        )

    return (
        "<!DOCTYPE html>\n<html>\n<head><meta charset=\"utf-8\">"
        f"<title>Index of {title}</title></head>\n<body>\n"
        f"<h1>Index of {title}</h1>\n<ul>\n" + "\n".join(items) + "\n</ul>\n</body>\n</html>\n"
    )


class SiteFiles(StaticFiles):
    """StaticFiles that serves a directory only through its index.html.

    Directories without an index are reported as not found unless
    listings are enabled.
    """

    def __init__(self, *, directory: str | Path, directory_listing: bool = False) -> None:
        super().__init__(directory=directory, html=False, check_dir=True)
        self.directory_listing = directory_listing

    async def get_response(self, path: str, scope: Scope) -> Response:
        """Return the response for a normalized path below the root.

        Args:
            path: Path relative to the root, as produced by ``get_path``.
            scope: ASGI scope of the request.

        Raises:
            HTTPException: 404 for missing files and unlisted directories,
                405 for methods other than GET and HEAD.
        """
        if scope["method"] not in ("GET", "HEAD"):
            raise HTTPException(status_code=405)

        full_path, stat_result = await self._lookup(path)
        if stat_result is None:
            raise HTTPException(status_code=404)

        if stat.S_ISREG(stat_result.st_mode):
            return self.file_response(full_path, stat_result, scope)

        if not stat.S_ISDIR(stat_result.st_mode):
            raise HTTPException(status_code=404)

        index_path, index_stat = await self._lookup(os.path.join(path, "index.html"))
        has_index = index_stat is not None and stat.S_ISREG(index_stat.st_mode)
        if not has_index and not self.directory_listing:
            raise HTTPException(status_code=404)

        if not scope["path"].endswith("/"):
            url = URL(scope=scope)
            return RedirectResponse(url=url.replace(path=url.path + "/"))

        if has_index:
            return self.file_response(index_path, index_stat, scope)  # type: ignore[arg-type]

        content = await anyio.to_thread.run_sync(render_listing, scope["path"], full_path)
        return HTMLResponse(content)

    async def _lookup(self, path: str) -> tuple[str, os.stat_result | None]:
        try:
            return await anyio.to_thread.run_sync(self.lookup_path, path)
        except PermissionError:
            raise HTTPException(status_code=401) from None
        except OSError:
            raise HTTPException(status_code=404) from None
