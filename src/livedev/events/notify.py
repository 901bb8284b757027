"""Best-effort side effects for file changes: webhooks and command triggers."""

import asyncio
import contextlib
import re
from collections.abc import Coroutine
from typing import Any

import httpx
import structlog

from livedev.events.types import FileChange
from livedev.schemas import CommandTrigger

logger = structlog.get_logger()

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def substitute(argument: str, values: dict[str, str]) -> str:
    """Replace ``{{key}}`` placeholders with values from a metadata map.

    Unknown keys are left as written.
    """
    return PLACEHOLDER_PATTERN.sub(
        lambda m: values.get(m.group(1), m.group(0)),
        argument,
    )


class ChangeNotifier:
    """Fires webhook POSTs and command triggers for each change.

    Every side effect runs as its own task; failures are logged and never
    reach the watcher or the publisher.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        webhook_url: str = "",
        webhook_timeout: float = 5.0,
        triggers: list[CommandTrigger] | None = None,
    ) -> None:
        """Initialize notifier.

        Args:
            client: HTTP client used for webhook delivery.
            webhook_url: URL receiving change notifications; empty disables.
            webhook_timeout: Seconds before a webhook POST is abandoned.
            triggers: Commands to spawn on matching changes.
        """
        self._client = client
        self._webhook_url = webhook_url
        self._webhook_timeout = webhook_timeout
        self._triggers = triggers or []
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_tasks(self) -> int:
        """Number of side effects still running."""
        return len(self._tasks)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def dispatch(self, change: FileChange) -> None:
        """Start every side effect configured for a change.

        Args:
            change: Classified change with metadata.
        """
        metadata = change.metadata()

        if self._webhook_url and self._client is not None:
            self._spawn(self.send_webhook(metadata))

        for trigger in self._triggers:
            if trigger.matches(metadata["event"], metadata["relative_path"]):
                command = [substitute(arg, metadata) for arg in trigger.command]
                self._spawn(self.run_command(command))

    async def send_webhook(self, metadata: dict[str, str]) -> None:
        """POST change metadata to the configured webhook.

        Args:
            metadata: Flattened change metadata.
        """
        if self._client is None:
            return
        try:
            response = await self._client.post(
                self._webhook_url,
                json=metadata,
                timeout=self._webhook_timeout,
            )
            response.raise_for_status()
            logger.debug(
                "webhook_delivered",
                url=self._webhook_url,
                status=response.status_code,
            )
        except httpx.HTTPError as e:
            logger.warning("webhook_failed", url=self._webhook_url, error=str(e))

    async def run_command(self, command: list[str]) -> None:
        """Run a triggered command to completion.

        Args:
            command: Program and substituted arguments.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.error("command_trigger_failed", command=command, error=str(e))
            return

        logger.info("command_trigger_spawned", command=command, pid=process.pid)
        try:
            returncode = await process.wait()
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
                logger.info("command_trigger_killed", command=command, pid=process.pid)
        if returncode != 0:
            logger.warning(
                "command_trigger_exit",
                command=command,
                returncode=returncode,
            )

    async def join(self) -> None:
        """Wait for the side effects currently in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel side effects still in flight.

        Triggered commands that are still running are killed.
        """
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
