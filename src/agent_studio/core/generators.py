"""Plan and content generator boundaries used by the orchestrator."""

import asyncio
from collections.abc import Awaitable
from typing import Protocol, TypeVar

from agent_studio.db.models import FileRecord, ProjectConfig, Task

T = TypeVar("T")


class PlanningFailed(Exception):
    """Raised when a plan could not be produced."""


class GenerationFailed(Exception):
    """Raised when file content could not be produced for a task."""


class ParseError(Exception):
    """Mixin for failures caused by a malformed generator response."""


class PlanParseError(PlanningFailed, ParseError):
    """The plan response could not be parsed into tasks."""


class ContentParseError(GenerationFailed, ParseError):
    """The content response was empty or malformed."""


class PlanGenerator(Protocol):
    async def generate_plan(
        self,
        goal: str,
        files: list[FileRecord],
        config: ProjectConfig | None,
    ) -> list[Task]: ...


class ContentGenerator(Protocol):
    async def generate_content(
        self,
        task: Task,
        goal: str,
        files: list[FileRecord],
        config: ProjectConfig | None,
    ) -> str: ...


async def call_with_timeout(
    call: Awaitable[T],
    timeout: float | None,
    error_cls: type[Exception],
    what: str,
) -> T:
    """Await a generator call, turning a timeout into error_cls."""
    if timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as e:
        raise error_cls(f"{what} timed out after {timeout:g}s") from e
