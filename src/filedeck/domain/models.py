"""Core domain models for filedeck.

These models represent the data flowing through both stream handlers:
the caller's identity context (filesystem root, command whitelist and
path rules), parsed search options, and the result each handler hands
back to the HTTP layer.
"""

from __future__ import annotations

import enum
import re
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class MessageKind(str, enum.Enum):
    """Frame type of a message sent over a duplex channel."""

    TEXT = "text"
    BINARY = "binary"


# ---------------------------------------------------------------------------
# Identity / Authorization Models
# ---------------------------------------------------------------------------


class AccessRule(BaseModel):
    """A single allow/deny rule over scope-relative paths.

    Plain rules match by prefix, regex rules match anywhere in the path.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Path prefix, or a regular expression when regex is set")
    allow: bool = Field(default=False, description="Whether a matching path is accessible")
    regex: bool = Field(default=False, description="Treat path as a regular expression")

    @model_validator(mode="after")
    def _check_pattern(self) -> AccessRule:
        if self.regex:
            try:
                re.compile(self.path)
            except re.error as e:
                raise ValueError(f"Invalid rule pattern {self.path!r}: {e}") from e
        return self

    def matches(self, path: str) -> bool:
        if self.regex:
            return re.search(self.path, path) is not None
        return path.startswith(self.path)


class UserContext(BaseModel):
    """The caller's identity and authorization context.

    Built once per request by the HTTP layer and never mutated while a
    handler runs.
    """

    model_config = ConfigDict(frozen=True)

    filesystem: str = Field(default=".", description="Root directory of the user's scope")
    commands: list[str] = Field(
        default_factory=lambda: ["git", "svn", "hg"],
        description="Program names the user may run, matched exactly",
    )
    rules: list[AccessRule] = Field(
        default_factory=list, description="Path rules; later rules take precedence"
    )

    def allowed(self, path: str) -> bool:
        """Return whether the user may see the given scope-relative path.

        Rules are checked from last to first and the first match wins.
        A path no rule matches is allowed.
        """
        for rule in reversed(self.rules):
            if rule.matches(path):
                return rule.allow
        return True


# ---------------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------------


class SearchOptions(BaseModel):
    """Matching options parsed from a raw search query."""

    model_config = ConfigDict(frozen=True)

    case_insensitive: bool = Field(default=False)
    terms: tuple[str, ...] = Field(description="Substrings; a path matches if it contains any")


# ---------------------------------------------------------------------------
# Handler Results
# ---------------------------------------------------------------------------


class HandlerResult(NamedTuple):
    """What a stream handler reports back to the HTTP layer.

    A status of 0 means nothing further is required of the HTTP layer.
    """

    status: int
    error: BaseException | None = None
