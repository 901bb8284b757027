"""Configuration rule models for routing and command triggers."""
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field, field_validator


def _validate_prefix(v: str) -> str:
    if not v.startswith("/"):
        raise ValueError("Prefix must start with '/'")
    return v


PathPrefix = Annotated[str, Field(min_length=1), AfterValidator(_validate_prefix)]


class ProxyRule(BaseModel):
    """Forward requests under a path prefix to another origin.

    Attributes:
        prefix: URL path prefix to match; stripped before forwarding.
        target: Origin (and optional base path) to forward to.
    """

    prefix: PathPrefix
    target: str = Field(min_length=1)

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Proxy target must be an http(s) URL")
        return v.rstrip("/")


class RewriteRule(BaseModel):
    """Replace a path prefix before the request reaches the static files.

    Attributes:
        prefix: URL path prefix to match.
        replacement: Text substituted for the prefix.
    """

    prefix: PathPrefix
    replacement: str


class RedirectRule(BaseModel):
    """Redirect requests under a path prefix.

    Attributes:
        prefix: URL path prefix to match.
        target: Text substituted for the prefix to build the location.
        status_code: Redirect status code.
    """

    prefix: PathPrefix
    target: str = Field(min_length=1)
    status_code: Literal[301, 302, 303, 307, 308] = 302


class CommandTrigger(BaseModel):
    """External command spawned when a matching file changes.

    Arguments may contain ``{{key}}`` placeholders filled from the change
    metadata (event, type, path, relative_path, operation, timestamp).

    Attributes:
        event: Event kind the trigger reacts to.
        match: How ``pattern`` is compared to the relative path.
        pattern: Path prefix or substring; empty matches every path.
        command: Program and arguments.
    """

    event: Literal["file_change"] = "file_change"
    match: Literal["any", "prefix", "contains"] = "any"
    pattern: str = ""
    command: list[str] = Field(min_length=1)

    def matches(self, event: str, relative_path: str) -> bool:
        """Check whether a change should fire this trigger."""
        if event != self.event:
            return False
        if not self.pattern or self.match == "any":
            return True
        if self.match == "prefix":
            return relative_path.startswith(self.pattern)
        return self.pattern in relative_path
