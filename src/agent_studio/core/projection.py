"""Read-only view model derived from a Run."""

from dataclasses import dataclass

from agent_studio.core.tasks import role_label
from agent_studio.db.models import Run


@dataclass(frozen=True)
class TaskView:
    id: str
    operation: str
    target_file: str
    role: str
    description: str
    status: str


@dataclass(frozen=True)
class RunView:
    run_id: str
    goal: str
    status: str
    completed: int
    total: int
    progress: float
    active_role: str | None
    summary: str
    error: str | None
    tasks: tuple[TaskView, ...]
    log_tail: tuple[str, ...]
    log_count: int

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "goal": self.goal,
            "status": self.status,
            "completed": self.completed,
            "total": self.total,
            "progress": self.progress,
            "active_role": self.active_role,
            "summary": self.summary,
            "error": self.error,
            "tasks": [
                {
                    "id": t.id,
                    "operation": t.operation,
                    "target_file": t.target_file,
                    "role": t.role,
                    "description": t.description,
                    "status": t.status,
                }
                for t in self.tasks
            ],
            "logs": list(self.log_tail),
            "log_count": self.log_count,
        }


def progress_ratio(run: Run) -> float:
    total = len(run.tasks)
    if total == 0:
        return 0.0
    return sum(1 for t in run.tasks if t.status == "completed") / total


def summary_line(run: Run) -> str:
    completed = sum(1 for t in run.tasks if t.status == "completed")
    total = len(run.tasks)
    if run.status == "planning":
        return "Agent working... generating plan"
    if run.status == "executing":
        current = role_label(run.active_role).upper() if run.active_role else "IDLE"
        return f"Agent working... {completed}/{total} tasks - current: {current}"
    if run.status == "completed":
        return f"Build complete ({completed}/{total} tasks)"
    if run.status == "error":
        return f"Build failed ({completed}/{total} tasks)"
    if run.status == "cancelled":
        return f"Build cancelled ({completed}/{total} tasks)"
    return "Idle"


def project_run(run: Run, log_limit: int | None = 50) -> RunView:
    """Build a RunView. The run is only read."""
    logs = run.logs
    if log_limit is not None:
        logs = run.logs[-log_limit:] if log_limit > 0 else []
    return RunView(
        run_id=run.id,
        goal=run.goal,
        status=run.status,
        completed=sum(1 for t in run.tasks if t.status == "completed"),
        total=len(run.tasks),
        progress=progress_ratio(run),
        active_role=run.active_role,
        summary=summary_line(run),
        error=run.error,
        tasks=tuple(
            TaskView(t.id, t.operation, t.target_file, t.role, t.description, t.status)
            for t in run.tasks
        ),
        log_tail=tuple(str(entry) for entry in logs),
        log_count=len(run.logs),
    )
