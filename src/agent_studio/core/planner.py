"""Single-file implementation planner.

Breaks a goal for one open file into steps, then applies a step at a time
by asking the model for the full modified file.
"""

import logging
import uuid

from agent_studio.core.files import NotFound, ProjectFileStore
from agent_studio.core.generators import (
    ContentParseError,
    GenerationFailed,
    PlanningFailed,
    PlanParseError,
)
from agent_studio.core.tasks import slugify, unique_id
from agent_studio.db.models import FilePlan, PlanStep
from agent_studio.integrations import prompts
from agent_studio.integrations.llm import LLMClient, LLMError, parse_json_reply, strip_code_fences

logger = logging.getLogger(__name__)


class ImplementationPlanner:
    def __init__(self, client: LLMClient, files: ProjectFileStore):
        self.client = client
        self.files = files

    async def create_plan(self, goal: str, file_name: str) -> FilePlan:
        """Ask the model for an ordered list of steps for one file."""
        goal = (goal or "").strip()
        if not goal:
            raise ValueError("Goal must not be empty")
        file = self.files.get(file_name)
        if file is None:
            raise NotFound(f"File not found: {file_name}")

        try:
            text = await self.client.complete(prompts.file_plan_prompt(goal, file))
        except LLMError as e:
            raise PlanningFailed(str(e)) from e

        steps = parse_steps(text)
        logger.info("Planned %d step(s) for %s", len(steps), file_name)
        return FilePlan(id=uuid.uuid4().hex[:12], goal=goal, file_name=file_name, steps=steps)

    async def apply_step(self, plan: FilePlan, step_id: str) -> PlanStep:
        """Apply one step to the plan's file.

        On failure the step goes back to pending so it can be retried.
        """
        step = next((s for s in plan.steps if s.id == step_id), None)
        if step is None:
            raise ValueError(f"Step not found: {step_id}")
        if step.status == "completed":
            return step

        file = self.files.get(plan.file_name)
        if file is None:
            raise NotFound(f"File not found: {plan.file_name}")

        step.status = "generating"
        try:
            text = await self.client.complete(prompts.modification_prompt(file, step.description))
            code = strip_code_fences(text)
            if not code.strip():
                raise ContentParseError(f"Empty response for step {step.id}")
            self.files.update(plan.file_name, code)
        except LLMError as e:
            step.status = "pending"
            raise GenerationFailed(str(e)) from e
        except Exception:
            step.status = "pending"
            raise

        step.status = "completed"
        return step


def parse_steps(text: str) -> list[PlanStep]:
    try:
        data = parse_json_reply(text)
    except ValueError as e:
        raise PlanParseError(f"Plan response is not valid JSON: {e}") from e

    raw_steps = data.get("steps") if isinstance(data, dict) else data
    if not isinstance(raw_steps, list):
        raise PlanParseError("Plan response has no 'steps' array")

    steps = []
    taken: set[str] = set()
    for index, raw in enumerate(raw_steps, start=1):
        if not isinstance(raw, dict) or not str(raw.get("description") or "").strip():
            raise PlanParseError(f"Step #{index} has no description")
        step_id = unique_id(slugify(str(raw.get("id") or "")) or f"step-{index}", taken)
        taken.add(step_id)
        steps.append(PlanStep(id=step_id, description=str(raw["description"]).strip()))
    return steps
