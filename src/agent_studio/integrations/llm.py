"""Anthropic Messages API client and the LLM-backed generators."""

import json
import logging
import re

import anthropic
import httpx

from agent_studio.config import Config
from agent_studio.core.generators import (
    ContentParseError,
    GenerationFailed,
    PlanningFailed,
    PlanParseError,
)
from agent_studio.core.tasks import InvalidTask, build_tasks
from agent_studio.db.models import FileRecord, ProjectConfig, Task
from agent_studio.integrations import prompts

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[\w.+-]*[ \t]*\n(.*?)\n?```\s*$", re.DOTALL)


class LLMError(Exception):
    """Raised when a completion request fails."""


class LLMClient:
    """Thin async wrapper around the Anthropic Messages API.

    The SDK client is created on first use so a missing API key only
    surfaces when a request is actually made.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 8192,
        base_url: str | None = None,
        timeout: float | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config: Config) -> "LLMClient":
        return cls(
            api_key=config.anthropic_api_key,
            model=config.model,
            max_tokens=config.max_tokens,
            base_url=config.anthropic_base_url,
            timeout=config.request_timeout,
        )

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            kwargs = {"api_key": self.api_key}
            if self.base_url:
                kwargs["base_url"] = self.base_url
                logger.info("Using custom Anthropic base URL: %s", self.base_url)
            if self.timeout:
                kwargs["timeout"] = httpx.Timeout(self.timeout, connect=10.0)
            self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send a single-turn prompt and return the concatenated text reply."""
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise LLMError(f"{type(e).__name__}: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )


class LLMPlanGenerator:
    def __init__(self, client: LLMClient):
        self.client = client

    async def generate_plan(
        self,
        goal: str,
        files: list[FileRecord],
        config: ProjectConfig | None,
    ) -> list[Task]:
        prompt = prompts.plan_prompt(goal, files, config)
        try:
            text = await self.client.complete(prompt, system=prompts.PLANNER_SYSTEM)
        except LLMError as e:
            raise PlanningFailed(str(e)) from e
        tasks = parse_plan(text)
        logger.info("Planned %d task(s) for goal %r", len(tasks), goal)
        return tasks


class LLMContentGenerator:
    def __init__(self, client: LLMClient, context_chars: int = 1000):
        self.client = client
        self.context_chars = context_chars

    async def generate_content(
        self,
        task: Task,
        goal: str,
        files: list[FileRecord],
        config: ProjectConfig | None,
    ) -> str:
        prompt = prompts.content_prompt(task, goal, files, config, self.context_chars)
        try:
            text = await self.client.complete(prompt, system=prompts.role_system_prompt(task.role))
        except LLMError as e:
            raise GenerationFailed(str(e)) from e

        content = strip_code_fences(text)
        if not content.strip():
            raise ContentParseError(f"Empty response for {task.target_file}")
        return content


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around the whole reply."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return text
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1)
    # Opening fence without a closing one
    _, _, rest = stripped.partition("\n")
    return rest


def parse_json_reply(text: str):
    """Parse a JSON reply, tolerating code fences and surrounding prose."""
    body = strip_code_fences(text).strip()
    try:
        return json.loads(body)
    except ValueError:
        pass
    starts = [i for i in (body.find("{"), body.find("[")) if i != -1]
    if not starts:
        raise ValueError("no JSON value found")
    start = min(starts)
    end = max(body.rfind("}"), body.rfind("]"))
    if end <= start:
        raise ValueError("unterminated JSON value")
    return json.loads(body[start:end + 1])


def parse_plan(text: str) -> list[Task]:
    """Turn a plan reply into validated Tasks. Raises PlanParseError."""
    try:
        data = parse_json_reply(text)
    except ValueError as e:
        raise PlanParseError(f"Plan response is not valid JSON: {e}") from e

    raw_tasks = data.get("tasks") if isinstance(data, dict) else data
    if not isinstance(raw_tasks, list):
        raise PlanParseError("Plan response has no 'tasks' array")
    try:
        return build_tasks(raw_tasks)
    except InvalidTask as e:
        raise PlanParseError(str(e)) from e
