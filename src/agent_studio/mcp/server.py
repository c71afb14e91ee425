"""MCP server exposing agent studio tools."""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from mcp.server.fastmcp import Context, FastMCP

from agent_studio.config import Config, get_config
from agent_studio.core import files as files_mod
from agent_studio.core import preview as preview_mod
from agent_studio.core import projects as projects_mod
from agent_studio.core.generators import GenerationFailed, PlanningFailed
from agent_studio.core.orchestrator import RunInProgress
from agent_studio.core.planner import ImplementationPlanner
from agent_studio.core.projection import project_run
from agent_studio.core.session import SessionRegistry
from agent_studio.db.engine import init_db
from agent_studio.db.models import FilePlan, ProjectConfig
from agent_studio.integrations import slack as slack_mod
from agent_studio.integrations.llm import LLMClient, LLMContentGenerator, LLMPlanGenerator


@dataclass
class AppContext:
    db: sqlite3.Connection
    config: Config
    client: LLMClient
    registry: SessionRegistry
    plans: dict[str, tuple[str, FilePlan]] = field(default_factory=dict)
    builds: set[asyncio.Task] = field(default_factory=set)


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Open the database and session registry on startup, flush on shutdown."""
    config = get_config()
    db = init_db(config.db_path)
    client = LLMClient.from_config(config)

    def notify(run):
        project = registry.project_for_run(run)
        slack_mod.notify_run_finished(
            config.slack_bot_token,
            config.slack_channel,
            run,
            project.name if project else "agent studio",
        )

    registry = SessionRegistry(
        config.db_path,
        LLMPlanGenerator(client),
        LLMContentGenerator(client, context_chars=config.context_chars),
        sync_delay=config.sync_delay,
        timeout=config.request_timeout,
        on_finish=notify,
    )

    try:
        yield AppContext(db=db, config=config, client=client, registry=registry)
    finally:
        registry.close_all()
        db.close()


mcp = FastMCP("agent-studio", lifespan=app_lifespan)


def _ctx(ctx: Context) -> AppContext:
    """Extract AppContext from MCP Context."""
    return ctx.request_context.lifespan_context


def _session(ctx: Context, project: str):
    return _ctx(ctx).registry.get(project)


# ── Project Tools ─────────────────────────────────────────────────────────────


@mcp.tool()
def list_projects(ctx: Context) -> list[dict]:
    """List all projects, most recently updated first."""
    app = _ctx(ctx)
    return [_project_to_dict(p) for p in projects_mod.load_projects(app.db)]


@mcp.tool()
def create_project(
    ctx: Context,
    name: str,
    description: str = "",
    platform: str = "web",
    languages: list[str] | None = None,
    tools: list[str] | None = None,
) -> dict:
    """Create a project. Platform is one of web, mobile, desktop."""
    if platform not in ("web", "mobile", "desktop"):
        return {"error": f"Unknown platform: {platform}"}
    app = _ctx(ctx)
    config = None
    if languages or tools or platform != "web":
        config = ProjectConfig(
            platform=platform, languages=tuple(languages or ()), tools=tuple(tools or ())
        )
    project = projects_mod.create_project(app.db, name, description, config=config)
    return _project_to_dict(project)


# ── File Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def list_files(ctx: Context, project: str) -> list[dict] | dict:
    """List the files of a project with their languages."""
    session = _session(ctx, project)
    if not session:
        return {"error": f"Project not found: {project}"}
    return [
        {"name": f.name, "language": f.language, "size": len(f.content)}
        for f in session.files.list()
    ]


@mcp.tool()
def read_file(ctx: Context, project: str, name: str) -> dict:
    """Read a file's content."""
    session = _session(ctx, project)
    if not session:
        return {"error": f"Project not found: {project}"}
    record = session.files.get(name)
    if not record:
        return {"error": f"File not found: {name}"}
    return {"name": record.name, "language": record.language, "content": record.content}


@mcp.tool()
def write_file(ctx: Context, project: str, name: str, content: str) -> dict:
    """Create a file or replace its content."""
    session = _session(ctx, project)
    if not session:
        return {"error": f"Project not found: {project}"}
    try:
        record = session.files.create(name, content)
    except files_mod.FileStoreError as e:
        return {"error": str(e)}
    return {"name": record.name, "language": record.language, "saved": True}


@mcp.tool()
def delete_file(ctx: Context, project: str, name: str) -> dict:
    """Delete a file."""
    session = _session(ctx, project)
    if not session:
        return {"error": f"Project not found: {project}"}
    try:
        session.files.delete(name)
    except files_mod.NotFound as e:
        return {"error": str(e)}
    return {"deleted": name}


@mcp.tool()
def rename_file(ctx: Context, project: str, old_name: str, new_name: str) -> dict:
    """Rename a file. Fails if the new name is already taken."""
    session = _session(ctx, project)
    if not session:
        return {"error": f"Project not found: {project}"}
    try:
        record = session.files.rename(old_name, new_name)
    except files_mod.FileStoreError as e:
        return {"error": str(e)}
    return {"name": record.name, "language": record.language}


# ── Build Tools ───────────────────────────────────────────────────────────────


@mcp.tool()
async def start_build(ctx: Context, project: str, goal: str) -> dict:
    """Start an agent build for a goal. Poll get_build_status for progress."""
    app = _ctx(ctx)
    session = app.registry.get(project)
    if not session:
        return {"error": f"Project not found: {project}"}
    try:
        run = session.orchestrator.start_run(goal, session.project.config)
    except (RunInProgress, ValueError) as e:
        return {"error": str(e)}

    task = asyncio.create_task(session.orchestrator.execute(run))
    app.builds.add(task)
    task.add_done_callback(app.builds.discard)
    return project_run(run).to_dict()


@mcp.tool()
def get_build_status(ctx: Context, project: str, logs: int = 20) -> dict:
    """Get the progress, tasks and recent log lines of a project's build."""
    session = _session(ctx, project)
    if not session:
        return {"error": f"Project not found: {project}"}
    return project_run(session.runs.current, log_limit=logs).to_dict()


@mcp.tool()
def cancel_build(ctx: Context, project: str) -> dict:
    """Cancel the running build of a project."""
    session = _session(ctx, project)
    if not session:
        return {"error": f"Project not found: {project}"}
    run = session.orchestrator.cancel_run()
    if run is None:
        return {"error": "No build in progress"}
    return project_run(run).to_dict()


# ── Single-file Plan Tools ────────────────────────────────────────────────────


@mcp.tool()
async def plan_file(ctx: Context, project: str, file_name: str, goal: str) -> dict:
    """Break a change to one file into steps. Apply them with apply_plan_step."""
    app = _ctx(ctx)
    session = app.registry.get(project)
    if not session:
        return {"error": f"Project not found: {project}"}
    planner = ImplementationPlanner(app.client, session.files)
    try:
        plan = await planner.create_plan(goal, file_name)
    except (ValueError, files_mod.NotFound, PlanningFailed) as e:
        return {"error": str(e)}
    app.plans[plan.id] = (project, plan)
    return _plan_to_dict(plan)


@mcp.tool()
async def apply_plan_step(ctx: Context, plan_id: str, step_id: str) -> dict:
    """Apply one step of a file plan by rewriting the file."""
    app = _ctx(ctx)
    if plan_id not in app.plans:
        return {"error": f"Plan not found: {plan_id}"}
    project, plan = app.plans[plan_id]
    session = app.registry.get(project)
    if not session:
        return {"error": f"Project not found: {project}"}
    planner = ImplementationPlanner(app.client, session.files)
    try:
        await planner.apply_step(plan, step_id)
    except (ValueError, files_mod.NotFound, GenerationFailed) as e:
        result = _plan_to_dict(plan)
        result["error"] = str(e)
        return result
    return _plan_to_dict(plan)


# ── Preview Tools ─────────────────────────────────────────────────────────────


@mcp.tool()
async def preview(ctx: Context, project: str, entry_file: str | None = None) -> dict:
    """Bundle a web project into HTML, or simulate running any other project."""
    app = _ctx(ctx)
    session = app.registry.get(project)
    if not session:
        return {"error": f"Project not found: {project}"}
    result = await preview_mod.preview_project(app.client, session.files.list(), entry_file)
    return {"output": result.output, "error": result.error, "entry_file": result.entry_file}


# ── Helpers ───────────────────────────────────────────────────────────────────


def _project_to_dict(project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "config": project.config.describe() if project.config else None,
        "files": [f.name for f in project.files],
    }


def _plan_to_dict(plan: FilePlan) -> dict:
    return {
        "plan_id": plan.id,
        "file_name": plan.file_name,
        "goal": plan.goal,
        "steps": [{"id": s.id, "description": s.description, "status": s.status} for s in plan.steps],
    }
