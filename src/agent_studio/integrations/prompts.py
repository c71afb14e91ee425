"""Prompt templates for the LLM-backed generators."""

from agent_studio.core.tasks import AGENT_ROLES, ROLES
from agent_studio.db.models import FileRecord, ProjectConfig, Task

PLANNER_SYSTEM = (
    "You are an autonomous senior software architect leading a team of agents. "
    "You answer with JSON only."
)


def role_system_prompt(role: str) -> str:
    name, desc = AGENT_ROLES.get(role, AGENT_ROLES["frontend"])
    return (
        f"You are the {name} of an autonomous coding team. {desc} "
        "You write complete, production-ready files and answer with file content only."
    )


def plan_prompt(goal: str, files: list[FileRecord], config: ProjectConfig | None) -> str:
    file_list = ", ".join(f.name for f in files) or "(empty project)"
    roles = "\n".join(
        f'- "{role}": {AGENT_ROLES[role][0]} - {AGENT_ROLES[role][1]}' for role in ROLES
    )
    parts = [
        f'GOAL: "{goal}"',
        f"EXISTING FILES: [{file_list}]",
    ]
    if config:
        parts.append(f"PROJECT SPEC:\n{config.describe()}")
    parts.append(
        "Create a complete implementation plan to achieve the goal. Decide exactly "
        "which files need to be created, updated, or deleted, in the order they "
        "should be written. Later files may rely on earlier ones.\n\n"
        "For a new web application you should typically create at least "
        "index.html, style.css and script.js.\n\n"
        f"Assign each task to one of these agents:\n{roles}\n\n"
        'Return a JSON object with a "tasks" array. Each task must have:\n'
        '- "id" (unique string)\n'
        '- "type" ("create" | "update" | "delete")\n'
        '- "fileName" (relative path, e.g. "index.html")\n'
        '- "role" (one of the agent keys above)\n'
        '- "description" (what exactly goes in this file)'
    )
    return "\n\n".join(parts)


def content_prompt(
    task: Task,
    goal: str,
    files: list[FileRecord],
    config: ProjectConfig | None,
    context_chars: int = 1000,
) -> str:
    context = "\n".join(_file_context(f, context_chars) for f in files) or "(no files yet)"
    parts = [
        f"GLOBAL GOAL: {goal}",
        f'CURRENT TASK: {task.operation} file "{task.target_file}"',
        f"TASK DESCRIPTION: {task.description or '(none)'}",
    ]
    if config:
        parts.append(f"PROJECT SPEC:\n{config.describe()}")
    parts.append(f"CONTEXT OF OTHER FILES:\n{context}")
    parts.append(
        f"Write the FULL, COMPLETE content for {task.target_file}. "
        'Do not use placeholders like "// ...rest of code". '
        "If it is HTML, link the CSS and JS files of the project. "
        "Return ONLY the file content. No markdown backticks."
    )
    return "\n\n".join(parts)


def file_plan_prompt(goal: str, file: FileRecord) -> str:
    return (
        f"GOAL: {goal}\n"
        f"FILE CONTEXT ({file.name}, {file.language}):\n"
        f"```{file.language}\n{file.content}\n```\n\n"
        "Create a step-by-step implementation plan to achieve the goal in this file. "
        'Return a JSON object with a "steps" array. Each step has "id" (unique string) '
        'and "description" (a concise instruction for what to change).'
    )


def modification_prompt(file: FileRecord, instruction: str) -> str:
    return (
        f"INSTRUCTION: {instruction}\n\n"
        f"ORIGINAL CODE ({file.language}):\n"
        f"```{file.language}\n{file.content}\n```\n\n"
        "Apply the instruction to the code. Return ONLY the full modified code, "
        "without markdown backticks. Do not remove existing functionality unless asked."
    )


def execution_prompt(files: list[FileRecord], entry: FileRecord) -> str:
    sources = "\n".join(_file_context(f, None) for f in files)
    return (
        f"Act as a runtime for this project and simulate running {entry.name} "
        f"({entry.language}).\n\n{sources}\n\n"
        'Return a JSON object with "output" (exactly what the program prints to '
        'stdout) and "error" (the error message it fails with, or null).'
    )


def _file_context(f: FileRecord, limit: int | None) -> str:
    body = f.content
    if limit is not None and len(body) > limit:
        body = body[:limit] + "\n... (truncated)"
    return f"--- FILE: {f.name} ---\n{body}"
