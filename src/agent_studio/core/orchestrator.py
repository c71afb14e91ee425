"""Agent build orchestration: plan, then execute file tasks one by one.

The orchestrator is the only writer of a Run. Runs live in a RunStore that
belongs to the session, not to any view, so observers can unsubscribe and
come back later to the same run. Tasks execute strictly in plan order: the
content for task N is generated against the file set produced by tasks
1..N-1, and the first failure ends the run.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from agent_studio.core.files import ProjectFileStore
from agent_studio.core.generators import (
    ContentGenerator,
    ContentParseError,
    GenerationFailed,
    PlanGenerator,
    PlanningFailed,
    call_with_timeout,
)
from agent_studio.core.tasks import role_label, set_task_status
from agent_studio.db.models import LogEntry, ProjectConfig, Run, Task

logger = logging.getLogger(__name__)

RunCallback = Callable[[Run], None]


class RunInProgress(Exception):
    """Raised when a run is started while another one is still working."""


class FileVanished(Exception):
    """Raised when a task's target file disappeared or was replaced mid-task."""


class RunStore:
    """Session-scoped holder of the live run for one project."""

    def __init__(self):
        self._run = Run(id="idle")
        self._subscribers: list[RunCallback] = []

    @property
    def current(self) -> Run:
        return self._run

    def replace(self, run: Run):
        self._run = run
        self.publish()

    def publish(self):
        for callback in list(self._subscribers):
            try:
                callback(self._run)
            except Exception:
                logger.exception("Run subscriber failed")

    def subscribe(self, callback: RunCallback) -> Callable[[], None]:
        """Register an observer. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


class Orchestrator:
    def __init__(
        self,
        files: ProjectFileStore,
        runs: RunStore,
        plan_generator: PlanGenerator,
        content_generator: ContentGenerator,
        on_complete: RunCallback | None = None,
        on_finish: RunCallback | None = None,
        timeout: float | None = None,
    ):
        self.files = files
        self.runs = runs
        self.plan_generator = plan_generator
        self.content_generator = content_generator
        self.on_complete = on_complete
        self.on_finish = on_finish
        self.timeout = timeout

    # ── Public API ───────────────────────────────────────────────────────────

    def start_run(self, goal: str, config: ProjectConfig | None = None) -> Run:
        """Begin a fresh run in the planning state.

        Raises RunInProgress, leaving the live run untouched, if it is still
        planning or executing.
        """
        goal = (goal or "").strip()
        if not goal:
            raise ValueError("Goal must not be empty")

        current = self.runs.current
        if current.working:
            raise RunInProgress(
                f"Run '{current.id}' is still {current.status}; cancel it first"
            )

        run = Run(
            id=uuid.uuid4().hex[:12],
            goal=goal,
            status="planning",
            config=config,
            started_at=datetime.now(),
        )
        self.runs.replace(run)
        self._log(run, f"Build started: {goal}")
        return run

    async def execute(self, run: Run) -> Run:
        """Drive a run started with start_run to a terminal state.

        A run cancelled before execution begins is returned unchanged.
        """
        if run is self.runs.current and run.status == "cancelled":
            logger.info("Skipping cancelled run %s", run.id)
            return run
        if run is not self.runs.current or run.status != "planning" or run.tasks:
            raise ValueError(f"Run '{run.id}' is not awaiting a plan")

        self._log(run, "Architect is planning the build...")
        try:
            tasks = await call_with_timeout(
                self.plan_generator.generate_plan(run.goal, self.files.list(), run.config),
                self.timeout,
                PlanningFailed,
                "Planning",
            )
        except Exception as e:
            if self._is_stale(run):
                return run
            self._fail(run, f"Planning failed: {e}")
            return run

        if self._is_stale(run):
            logger.info("Discarding plan for cancelled run %s", run.id)
            return run

        run.tasks = list(tasks)
        run.status = "executing"
        run.active_role = run.tasks[0].role if run.tasks else None
        self._log(run, f"Plan ready: {len(run.tasks)} task(s)")

        for task in run.tasks:
            if not await self._execute_task(run, task):
                return run

        run.status = "completed"
        run.active_role = None
        run.completed_at = datetime.now()
        self._log(run, "Build complete")
        self._notify(self.on_complete, run)
        self._notify(self.on_finish, run)
        return run

    async def run(self, goal: str, config: ProjectConfig | None = None) -> Run:
        """Start a run and execute it to completion."""
        return await self.execute(self.start_run(goal, config))

    def cancel_run(self) -> Run | None:
        """Cancel the live run if it is working.

        A generator response still in flight is discarded when it arrives.
        """
        run = self.runs.current
        if not run.working:
            return None

        for task in run.tasks:
            if task.status == "in-progress":
                set_task_status(task, "failed")
                self._log(run, f"{task.target_file}: cancelled", task_id=task.id, level="warning")

        run.status = "cancelled"
        run.active_role = None
        run.completed_at = datetime.now()
        self._log(run, "Build cancelled", level="warning")
        self._notify(self.on_finish, run)
        return run

    # ── Task execution ───────────────────────────────────────────────────────

    async def _execute_task(self, run: Run, task: Task) -> bool:
        set_task_status(task, "in-progress")
        run.active_role = task.role
        self._log(
            run,
            f"{role_label(task.role)} started {task.operation} {task.target_file}",
            task_id=task.id,
        )

        try:
            expected_id = None
            if task.operation in ("update", "delete"):
                expected_id = self.files.resolve(task.target_file)
                if expected_id is None:
                    raise FileVanished(f"{task.target_file} does not exist")

            content = None
            if task.operation != "delete":
                content = await call_with_timeout(
                    self.content_generator.generate_content(
                        task, run.goal, self.files.list(), run.config
                    ),
                    self.timeout,
                    GenerationFailed,
                    f"Generating {task.target_file}",
                )
                if self._is_stale(run):
                    logger.info("Discarding content for %s (run %s)", task.target_file, run.id)
                    return False
                if not isinstance(content, str):
                    raise ContentParseError(f"Generator returned no text for {task.target_file}")

            self._apply(task, content, expected_id)
        except Exception as e:
            if self._is_stale(run):
                return False
            set_task_status(task, "failed")
            self._fail(run, f"{task.target_file} failed: {e}", task_id=task.id)
            return False

        set_task_status(task, "completed")
        self._log(run, f"{task.target_file} {_past(task.operation)}", task_id=task.id)
        return True

    def _apply(self, task: Task, content: str | None, expected_id: str | None):
        """Apply a task result as a whole-file change."""
        if task.operation == "create":
            self.files.create(task.target_file, content or "")
            return

        current_id = self.files.resolve(task.target_file)
        if current_id is None or current_id != expected_id:
            raise FileVanished(
                f"{task.target_file} was removed or replaced while the task was running"
            )
        if task.operation == "update":
            self.files.update_by_id(current_id, content or "")
        else:
            self.files.delete_by_id(current_id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _is_stale(self, run: Run) -> bool:
        return run is not self.runs.current or run.status == "cancelled"

    def _fail(self, run: Run, message: str, task_id: str | None = None):
        run.status = "error"
        run.error = message
        run.active_role = None
        run.completed_at = datetime.now()
        self._log(run, message, task_id=task_id, level="error")
        self._notify(self.on_finish, run)

    def _log(self, run: Run, message: str, task_id: str | None = None, level: str = "info"):
        run.logs.append(
            LogEntry(timestamp=datetime.now(), message=message, task_id=task_id, level=level)
        )
        logger.log(logging.getLevelName(level.upper()), "[run %s] %s", run.id, message)
        self.runs.publish()

    def _notify(self, callback: RunCallback | None, run: Run):
        if callback is None:
            return
        try:
            callback(run)
        except Exception:
            logger.exception("Run hook failed for run %s", run.id)


def _past(operation: str) -> str:
    return {"create": "created", "update": "updated", "delete": "deleted"}[operation]
