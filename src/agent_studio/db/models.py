"""Data models for agent studio."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class FileRecord:
    id: str
    name: str
    language: str = "plaintext"
    content: str = ""
    dirty: bool = True


@dataclass(frozen=True)
class ProjectConfig:
    """Target stack snapshot passed to every generation call of a run."""

    platform: str = "web"
    languages: tuple[str, ...] = ()
    tools: tuple[str, ...] = ()

    def describe(self) -> str:
        parts = [f"Platform: {self.platform}"]
        if self.languages:
            parts.append(f"Stack: {', '.join(self.languages)}")
        if self.tools:
            parts.append(f"Tools: {', '.join(self.tools)}")
        return "\n".join(parts)


@dataclass
class Project:
    id: str
    name: str
    description: str = ""
    config: ProjectConfig | None = None
    files: list[FileRecord] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Task:
    id: str
    operation: str
    target_file: str
    role: str = "frontend"
    description: str = ""
    status: str = "pending"


@dataclass
class LogEntry:
    timestamp: datetime
    message: str
    task_id: str | None = None
    level: str = "info"

    def __str__(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


@dataclass
class Run:
    id: str
    goal: str = ""
    status: str = "idle"
    tasks: list[Task] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)
    active_role: str | None = None
    config: ProjectConfig | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def working(self) -> bool:
        return self.status in ("planning", "executing")

    @property
    def terminal(self) -> bool:
        return self.status in ("completed", "error", "cancelled")


@dataclass
class PlanStep:
    id: str
    description: str
    status: str = "pending"


@dataclass
class FilePlan:
    id: str
    goal: str
    file_name: str
    steps: list[PlanStep] = field(default_factory=list)


@dataclass
class PreviewResult:
    output: str
    error: str | None = None
    entry_file: str | None = None
