"""CLI entry point for agent studio."""

import asyncio
import json
import sys
import zipfile
from pathlib import Path

import click

from agent_studio.config import get_config
from agent_studio.core import files as files_mod
from agent_studio.core import preview as preview_mod
from agent_studio.core import projects as projects_mod
from agent_studio.core.planner import ImplementationPlanner
from agent_studio.core.projection import project_run
from agent_studio.core.session import open_session
from agent_studio.db.engine import get_db
from agent_studio.db.models import ProjectConfig
from agent_studio.integrations import slack as slack_mod
from agent_studio.integrations.llm import LLMClient, LLMContentGenerator, LLMPlanGenerator


def _get_db():
    config = get_config()
    return get_db(config.db_path)


def _load_project(db, project_id):
    project = projects_mod.get_project(db, project_id)
    if not project:
        click.echo(f"Project not found: {project_id}", err=True)
        sys.exit(1)
    return project


def _project_config(platform, languages, tools):
    if not (platform or languages or tools):
        return None
    return ProjectConfig(
        platform=platform or "web",
        languages=tuple(languages),
        tools=tuple(tools),
    )


@click.group()
def main():
    """studio - Agent Studio CLI"""
    pass


# ── Project Commands ──────────────────────────────────────────────────────────


@main.command("init")
@click.argument("project_name")
@click.option("--description", "-d", default="", help="Project description")
@click.option("--platform", type=click.Choice(["web", "mobile", "desktop"]), default=None)
@click.option("--lang", "languages", multiple=True, help="Target language (repeatable)")
@click.option("--tool", "tools", multiple=True, help="Tooling, e.g. tailwind (repeatable)")
def init_project(project_name, description, platform, languages, tools):
    """Create a new project."""
    with _get_db() as db:
        project = projects_mod.create_project(
            db,
            project_name,
            description,
            config=_project_config(platform, languages, tools),
        )
        click.echo(f"Project created: {project.id} ({project.name})")
        if project.config:
            for line in project.config.describe().splitlines():
                click.echo(f"  {line}")


@main.group("project")
def project_group():
    """Manage projects."""
    pass


@project_group.command("list")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def project_list(json_output):
    """List projects."""
    with _get_db() as db:
        projects = projects_mod.load_projects(db)

    if json_output:
        click.echo(json.dumps([_project_dict(p) for p in projects], indent=2))
        return
    if not projects:
        click.echo("No projects found.")
        return
    for p in projects:
        click.echo(f"  {p.id}: {p.name} ({len(p.files)} files)")


@project_group.command("show")
@click.argument("project_id")
def project_show(project_id):
    """Show project details."""
    with _get_db() as db:
        project = _load_project(db, project_id)

    click.echo(f"Project: {project.id}")
    click.echo(f"  Name: {project.name}")
    if project.description:
        click.echo(f"  Description: {project.description}")
    if project.config:
        for line in project.config.describe().splitlines():
            click.echo(f"  {line}")
    if project.updated_at:
        click.echo(f"  Updated: {project.updated_at}")
    click.echo(f"  Files: {len(project.files)}")
    for f in project.files:
        click.echo(f"    - {f.name} [{f.language}] {len(f.content)} chars")


@project_group.command("config")
@click.argument("project_id")
@click.option("--platform", type=click.Choice(["web", "mobile", "desktop"]), default=None)
@click.option("--lang", "languages", multiple=True, help="Target language (repeatable)")
@click.option("--tool", "tools", multiple=True, help="Tooling (repeatable)")
@click.option("--clear", is_flag=True, help="Remove the project config")
def project_config(project_id, platform, languages, tools, clear):
    """Set the target stack a build is generated for."""
    config = None if clear else _project_config(platform, languages, tools)
    with _get_db() as db:
        _load_project(db, project_id)
        project = projects_mod.update_project_config(db, project_id, config)
    if project.config:
        click.echo(f"Updated {project_id}:")
        for line in project.config.describe().splitlines():
            click.echo(f"  {line}")
    else:
        click.echo(f"Cleared config for {project_id}")


@project_group.command("delete")
@click.argument("project_id")
def project_delete(project_id):
    """Delete a project and its files."""
    with _get_db() as db:
        _load_project(db, project_id)
        remaining = projects_mod.delete_project(db, project_id)
    click.echo(f"Deleted project: {project_id} ({len(remaining)} remaining)")


@project_group.command("export")
@click.argument("project_id")
@click.argument("output", type=click.Path(dir_okay=False))
def project_export(project_id, output):
    """Write all project files into a zip archive."""
    with _get_db() as db:
        project = _load_project(db, project_id)
    with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as zf:
        for f in project.files:
            zf.writestr(f.name, f.content)
    click.echo(f"Exported {len(project.files)} files to {output}")


# ── File Commands ─────────────────────────────────────────────────────────────


@main.group("file")
def file_group():
    """Manage project files."""
    pass


@file_group.command("add")
@click.argument("project_id")
@click.argument("name")
@click.option("--content", "-c", default=None, help="File content")
@click.option("--from-file", "source", type=click.Path(exists=True, dir_okay=False), default=None)
def file_add(project_id, name, content, source):
    """Create a file, or replace the content of an existing one."""
    if source:
        content = Path(source).read_text()
    with _get_db() as db:
        project = _load_project(db, project_id)
        store = files_mod.ProjectFileStore(project.files)
        existed = name in store
        record = store.create(name, content or "")
        projects_mod.sync_project_files(db, project_id, store.list())
    verb = "Updated" if existed else "Created"
    click.echo(f"{verb} {record.name} [{record.language}]")


@file_group.command("list")
@click.argument("project_id")
def file_list(project_id):
    """List the files of a project."""
    with _get_db() as db:
        project = _load_project(db, project_id)
    if not project.files:
        click.echo("No files.")
        return
    for f in project.files:
        click.echo(f"  {f.name} [{f.language}]")


@file_group.command("show")
@click.argument("project_id")
@click.argument("name")
def file_show(project_id, name):
    """Print a file's content."""
    with _get_db() as db:
        project = _load_project(db, project_id)
    record = files_mod.ProjectFileStore(project.files).get(name)
    if not record:
        click.echo(f"File not found: {name}", err=True)
        sys.exit(1)
    click.echo(record.content)


@file_group.command("rm")
@click.argument("project_id")
@click.argument("name")
def file_rm(project_id, name):
    """Delete a file."""
    with _get_db() as db:
        project = _load_project(db, project_id)
        store = files_mod.ProjectFileStore(project.files)
        try:
            store.delete(name)
        except files_mod.NotFound as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        projects_mod.sync_project_files(db, project_id, store.list())
    click.echo(f"Deleted {name}")


@file_group.command("rename")
@click.argument("project_id")
@click.argument("old_name")
@click.argument("new_name")
def file_rename(project_id, old_name, new_name):
    """Rename a file."""
    with _get_db() as db:
        project = _load_project(db, project_id)
        store = files_mod.ProjectFileStore(project.files)
        try:
            record = store.rename(old_name, new_name)
        except files_mod.FileStoreError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        projects_mod.sync_project_files(db, project_id, store.list())
    click.echo(f"Renamed {old_name} -> {record.name} [{record.language}]")


# ── Build Commands ────────────────────────────────────────────────────────────


@main.command("build")
@click.argument("project_id")
@click.argument("goal")
@click.option("--platform", type=click.Choice(["web", "mobile", "desktop"]), default=None)
@click.option("--lang", "languages", multiple=True, help="Target language (repeatable)")
@click.option("--tool", "tools", multiple=True, help="Tooling (repeatable)")
@click.option("--preview", "preview_path", type=click.Path(dir_okay=False), default=None,
              help="Write a web preview here when the build completes")
@click.option("--json-output", "--json", is_flag=True, help="Print the final run as JSON")
def build(project_id, goal, platform, languages, tools, preview_path, json_output):
    """Let the agent team plan and write files for GOAL."""
    config = get_config()
    with _get_db() as db:
        project = _load_project(db, project_id)

    client = LLMClient.from_config(config)

    def write_preview(run):
        if preview_path:
            html = preview_mod.build_web_preview(session.files.list())
            Path(preview_path).write_text(html)
            click.echo(f"Preview written to {preview_path}")

    def notify(run):
        slack_mod.notify_run_finished(
            config.slack_bot_token, config.slack_channel, run, project.name
        )

    session = open_session(
        project,
        LLMPlanGenerator(client),
        LLMContentGenerator(client, context_chars=config.context_chars),
        timeout=config.request_timeout,
        on_complete=write_preview,
        on_finish=notify,
    )

    shown = {"run": None, "count": 0}

    def echo_logs(run):
        if shown["run"] != run.id:
            shown["run"], shown["count"] = run.id, 0
        for entry in run.logs[shown["count"]:]:
            click.echo(f"  {entry}", err=entry.level == "error")
        shown["count"] = len(run.logs)

    if not json_output:
        session.runs.subscribe(echo_logs)

    run_config = _project_config(platform, languages, tools) or project.config
    try:
        run = asyncio.run(session.orchestrator.run(goal, run_config))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        run = session.orchestrator.cancel_run() or session.runs.current

    # Partial progress is kept even when the run failed
    with _get_db() as db:
        projects_mod.sync_project_files(db, project_id, session.files.list())

    view = project_run(run)
    if json_output:
        click.echo(json.dumps(view.to_dict(), indent=2))
    else:
        click.echo(view.summary)
    if run.status != "completed":
        sys.exit(1)


@main.command("plan")
@click.argument("project_id")
@click.argument("file_name")
@click.argument("goal")
@click.option("--apply", "apply_steps", is_flag=True, help="Apply every step after planning")
def plan(project_id, file_name, goal, apply_steps):
    """Plan changes to a single file, optionally applying them."""
    config = get_config()
    with _get_db() as db:
        project = _load_project(db, project_id)

    store = files_mod.ProjectFileStore(project.files)
    planner = ImplementationPlanner(LLMClient.from_config(config), store)

    async def _run():
        file_plan = await planner.create_plan(goal, file_name)
        click.echo(f"Plan for {file_name}:")
        for i, step in enumerate(file_plan.steps, start=1):
            click.echo(f"  {i}. {step.description}")
        if apply_steps:
            for step in file_plan.steps:
                await planner.apply_step(file_plan, step.id)
                click.echo(f"  ✓ {step.id}")
        return file_plan

    try:
        asyncio.run(_run())
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        if apply_steps:
            with _get_db() as db:
                projects_mod.sync_project_files(db, project_id, store.list())


@main.command("preview")
@click.argument("project_id")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None)
def preview(project_id, output):
    """Bundle a web project into a single HTML document."""
    with _get_db() as db:
        project = _load_project(db, project_id)
    if not preview_mod.is_web_project(project.files):
        click.echo("Not a web project; use 'studio execute' instead.", err=True)
        sys.exit(1)
    html = preview_mod.build_web_preview(project.files)
    if output:
        Path(output).write_text(html)
        click.echo(f"Preview written to {output}")
    else:
        click.echo(html)


@main.command("execute")
@click.argument("project_id")
@click.option("--entry", default=None, help="Entry file (auto-detected by default)")
def execute(project_id, entry):
    """Simulate running a project and print its output."""
    config = get_config()
    with _get_db() as db:
        project = _load_project(db, project_id)
    result = asyncio.run(
        preview_mod.simulate_execution(LLMClient.from_config(config), project.files, entry)
    )
    if result.entry_file:
        click.echo(f"Running {result.entry_file}...")
    if result.output:
        click.echo(result.output)
    if result.error:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)


# ── Web Command ──────────────────────────────────────────────────────────────


@main.command("ui")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8787, type=int, help="Port to listen on")
def ui_command(host, port):
    """Serve the agent studio web API."""
    from agent_studio.web.app import run_server

    click.echo(f"Starting agent studio at http://{host}:{port}")
    run_server(host=host, port=port)


# ── MCP Server Command ───────────────────────────────────────────────────────


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from agent_studio.mcp.server import mcp
    from agent_studio.mcp import prompts  # noqa: F401 - registers prompts

    mcp.run(transport="stdio")


# ── Helpers ───────────────────────────────────────────────────────────────────


def _project_dict(project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "files": [f.name for f in project.files],
        "config": project.config.describe() if project.config else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
    }


if __name__ == "__main__":
    main()
