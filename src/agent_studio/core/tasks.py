"""Task model: roles, operations, plan normalization and status transitions."""

import re
from pathlib import PurePosixPath

from agent_studio.db.models import Task

OPERATIONS = ("create", "update", "delete")
ROLES = ("planner", "designer", "frontend", "backend", "lead")
TASK_STATUSES = ("pending", "in-progress", "completed", "failed")

AGENT_ROLES = {
    "planner": ("Architect", "Plans system architecture and file structure."),
    "designer": ("UI/UX Lead", "Handles styling, CSS, and component design."),
    "frontend": ("Frontend Dev", "Implements client-side logic and React components."),
    "backend": ("Backend Dev", "Handles API, database, and server logic."),
    "lead": ("Tech Lead", "Reviews code, refactors, and merges changes."),
}

_TRANSITIONS = {
    "pending": {"in-progress"},
    "in-progress": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}

_STYLE_SUFFIXES = {".css", ".scss", ".sass", ".less"}
_BACKEND_SUFFIXES = {".py", ".go", ".java", ".sql", ".rs", ".cpp", ".lua", ".rb", ".php"}
_LEAD_SUFFIXES = {".md", ".txt", ".yml", ".yaml", ".toml", ".ini", ".cfg"}
_BACKEND_NAMES = {"server", "api", "backend", "routes", "db", "database", "models"}


class InvalidTask(ValueError):
    """Raised when a planned task does not satisfy the task contract."""


class InvalidTransition(ValueError):
    """Raised when a task status change would move backwards."""


def slugify(title: str) -> str:
    """Convert a title to a URL-friendly slug."""
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")[:60]


def unique_id(base: str, taken: set[str]) -> str:
    """Return base, or base with a numeric suffix, so it is not in taken."""
    if base not in taken:
        return base
    i = 2
    while f"{base}-{i}" in taken:
        i += 1
    return f"{base}-{i}"


def is_valid_file_name(name: str) -> bool:
    """Relative, forward-slash file name without empty or parent segments."""
    if not name or name != name.strip() or len(name) > 255:
        return False
    if "\\" in name or "\x00" in name or name.startswith("/"):
        return False
    parts = name.split("/")
    return all(part and part not in (".", "..") for part in parts)


def infer_role(file_name: str) -> str:
    """Guess the responsible role for a file when the plan does not say."""
    path = PurePosixPath(file_name.lower())
    if path.suffix in _STYLE_SUFFIXES:
        return "designer"
    if path.suffix in _LEAD_SUFFIXES or path.name in ("package.json", "dockerfile"):
        return "lead"
    if path.suffix in _BACKEND_SUFFIXES or path.stem in _BACKEND_NAMES:
        return "backend"
    if any(part in _BACKEND_NAMES for part in path.parts[:-1]):
        return "backend"
    return "frontend"


def build_tasks(raw_tasks: list[dict]) -> list[Task]:
    """Validate raw plan entries and turn them into pending Tasks.

    Each entry needs 'type' (or 'operation'), 'fileName' (or 'target_file')
    and optionally 'id', 'role' and 'description'. Ids are made unique
    within the plan; unknown or missing roles are inferred from the file.
    """
    tasks = []
    taken: set[str] = set()
    for index, raw in enumerate(raw_tasks, start=1):
        if not isinstance(raw, dict):
            raise InvalidTask(f"Task #{index} is not an object")

        operation = str(raw.get("type") or raw.get("operation") or "").strip().lower()
        if operation not in OPERATIONS:
            raise InvalidTask(f"Task #{index} has invalid operation: {operation!r}")

        target = str(raw.get("fileName") or raw.get("target_file") or "").strip()
        if not is_valid_file_name(target):
            raise InvalidTask(f"Task #{index} has invalid file name: {target!r}")

        role = str(raw.get("role") or "").strip().lower()
        if role not in ROLES:
            role = infer_role(target)

        base_id = slugify(str(raw.get("id") or "")) or f"task-{index}"
        task_id = unique_id(base_id, taken)
        taken.add(task_id)

        tasks.append(
            Task(
                id=task_id,
                operation=operation,
                target_file=target,
                role=role,
                description=str(raw.get("description") or "").strip(),
            )
        )
    return tasks


def set_task_status(task: Task, status: str) -> Task:
    """Advance a task's status. Transitions are monotonic."""
    if status not in TASK_STATUSES:
        raise InvalidTransition(f"Unknown task status: {status}")
    if status not in _TRANSITIONS[task.status]:
        raise InvalidTransition(
            f"Task '{task.id}' cannot move from {task.status} to {status}"
        )
    task.status = status
    return task


def role_label(role: str | None) -> str:
    if not role:
        return "Idle"
    name, _ = AGENT_ROLES.get(role, (role, ""))
    return name
