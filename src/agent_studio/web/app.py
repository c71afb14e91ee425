"""Web API for agent studio."""

import contextlib
import logging

import uvicorn
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import Route

from agent_studio.config import Config, get_config
from agent_studio.core import files as files_mod
from agent_studio.core import preview as preview_mod
from agent_studio.core import projects as projects_mod
from agent_studio.core.orchestrator import RunInProgress
from agent_studio.core.projection import project_run
from agent_studio.core.session import SessionRegistry
from agent_studio.db.engine import init_db
from agent_studio.db.models import ProjectConfig
from agent_studio.integrations import slack as slack_mod
from agent_studio.integrations.llm import LLMClient, LLMContentGenerator, LLMPlanGenerator
from agent_studio.web.dashboard import get_dashboard_html

logger = logging.getLogger(__name__)


def _get_db(request: Request):
    return init_db(request.app.state.config.db_path)


def _session(request: Request):
    return request.app.state.registry.get(request.path_params["project_id"])


async def _json_body(request: Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _not_found(what: str = "Project") -> JSONResponse:
    return JSONResponse({"error": f"{what} not found"}, status_code=404)


# ── Handlers ──────────────────────────────────────────────────────────────────


async def index(request: Request):
    return HTMLResponse(get_dashboard_html())


async def api_list_projects(request: Request):
    db = _get_db(request)
    try:
        projects = projects_mod.load_projects(db)
        return JSONResponse([_project_dict(p) for p in projects])
    finally:
        db.close()


async def api_create_project(request: Request):
    body = await _json_body(request)
    if not body or not str(body.get("name") or "").strip():
        return JSONResponse({"error": "name is required"}, status_code=400)
    try:
        config = _parse_config(body.get("config"))
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    db = _get_db(request)
    try:
        project = projects_mod.create_project(
            db, body["name"].strip(), body.get("description", ""), config=config
        )
        return JSONResponse(_project_dict(project), status_code=201)
    finally:
        db.close()


async def api_get_project(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    data = _project_dict(session.project)
    data["files"] = [f.name for f in session.files.list()]
    return JSONResponse(data)


async def api_delete_project(request: Request):
    project_id = request.path_params["project_id"]
    db = _get_db(request)
    try:
        if not projects_mod.get_project(db, project_id):
            return _not_found()
        request.app.state.registry.discard(project_id)
        projects_mod.delete_project(db, project_id)
        return JSONResponse({"deleted": project_id})
    finally:
        db.close()


async def api_update_config(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    body = await _json_body(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    try:
        config = _parse_config(body.get("config"))
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    db = _get_db(request)
    try:
        project = projects_mod.update_project_config(db, session.project.id, config)
    finally:
        db.close()
    session.project.config = project.config
    return JSONResponse(_project_dict(session.project))


async def api_list_files(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    return JSONResponse([_file_dict(f) for f in session.files.list()])


async def api_get_file(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    record = session.files.get(request.path_params["name"])
    if not record:
        return _not_found("File")
    return JSONResponse(_file_dict(record))


async def api_put_file(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    body = await _json_body(request)
    if body is None or not isinstance(body.get("content", ""), str):
        return JSONResponse({"error": "content must be a string"}, status_code=400)

    name = request.path_params["name"]
    existed = name in session.files
    try:
        record = session.files.create(name, body.get("content", ""), body.get("language"))
    except files_mod.FileStoreError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    return JSONResponse(_file_dict(record), status_code=200 if existed else 201)


async def api_delete_file(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    try:
        session.files.delete(request.path_params["name"])
    except files_mod.NotFound as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    return JSONResponse({"deleted": request.path_params["name"]})


async def api_rename_file(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    body = await _json_body(request)
    if not body or not body.get("from") or not body.get("to"):
        return JSONResponse({"error": "'from' and 'to' are required"}, status_code=400)
    try:
        record = session.files.rename(body["from"], body["to"])
    except files_mod.NotFound as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    except files_mod.FileStoreError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return JSONResponse(_file_dict(record))


async def api_start_run(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    body = await _json_body(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    try:
        config = _parse_config(body.get("config")) or session.project.config
        run = session.orchestrator.start_run(str(body.get("goal") or ""), config)
    except RunInProgress as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    logger.info("Started run %s for project %s", run.id, session.project.id)
    return JSONResponse(
        project_run(run).to_dict(),
        status_code=202,
        background=BackgroundTask(session.orchestrator.execute, run),
    )


async def api_get_run(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    try:
        log_limit = int(request.query_params.get("logs", 50))
    except ValueError:
        return JSONResponse({"error": "logs must be an integer"}, status_code=400)
    return JSONResponse(project_run(session.runs.current, log_limit=log_limit).to_dict())


async def api_cancel_run(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    run = session.orchestrator.cancel_run()
    if run is None:
        return JSONResponse({"error": "No build in progress"}, status_code=409)
    return JSONResponse(project_run(run).to_dict())


async def api_preview(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    files = session.files.list()
    if not preview_mod.is_web_project(files):
        return JSONResponse(
            {"error": "Not a web project; use the execute endpoint"}, status_code=400
        )
    return HTMLResponse(preview_mod.build_web_preview(files))


async def api_execute(request: Request):
    session = _session(request)
    if not session:
        return _not_found()
    body = await _json_body(request) or {}
    result = await preview_mod.simulate_execution(
        request.app.state.llm_client, session.files.list(), body.get("entry")
    )
    return JSONResponse({
        "output": result.output,
        "error": result.error,
        "entry_file": result.entry_file,
    })


# ── Serialization ─────────────────────────────────────────────────────────────


def _parse_config(raw) -> ProjectConfig | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError("config must be an object")
    platform = raw.get("platform", "web")
    if platform not in ("web", "mobile", "desktop"):
        raise ValueError(f"Unknown platform: {platform}")
    return ProjectConfig(
        platform=platform,
        languages=_string_list(raw, "languages"),
        tools=_string_list(raw, "tools"),
    )


def _string_list(raw: dict, key: str) -> tuple[str, ...]:
    value = raw.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{key} must be a list of strings")
    return tuple(value)


def _config_dict(c) -> dict | None:
    if c is None:
        return None
    return {"platform": c.platform, "languages": list(c.languages), "tools": list(c.tools)}


def _project_dict(p) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "config": _config_dict(p.config),
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def _file_dict(f) -> dict:
    return {
        "id": f.id,
        "name": f.name,
        "language": f.language,
        "content": f.content,
        "dirty": f.dirty,
    }


# ── App ───────────────────────────────────────────────────────────────────────


def create_app(
    plan_generator=None,
    content_generator=None,
    config: Config | None = None,
    llm_client: LLMClient | None = None,
) -> Starlette:
    config = config or get_config()
    llm_client = llm_client or LLMClient.from_config(config)
    plan_generator = plan_generator or LLMPlanGenerator(llm_client)
    content_generator = content_generator or LLMContentGenerator(
        llm_client, context_chars=config.context_chars
    )

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
        plan_generator,
        content_generator,
        sync_delay=config.sync_delay,
        timeout=config.request_timeout,
        on_finish=notify,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app):
        yield
        registry.close_all()

    routes = [
        Route("/", index),
        Route("/api/projects", api_list_projects, methods=["GET"]),
        Route("/api/projects", api_create_project, methods=["POST"]),
        Route("/api/projects/{project_id}", api_get_project, methods=["GET"]),
        Route("/api/projects/{project_id}", api_delete_project, methods=["DELETE"]),
        Route("/api/projects/{project_id}/config", api_update_config, methods=["PUT"]),
        Route("/api/projects/{project_id}/files", api_list_files, methods=["GET"]),
        Route("/api/projects/{project_id}/files/{name:path}", api_get_file, methods=["GET"]),
        Route("/api/projects/{project_id}/files/{name:path}", api_put_file, methods=["PUT"]),
        Route("/api/projects/{project_id}/files/{name:path}", api_delete_file, methods=["DELETE"]),
        Route("/api/projects/{project_id}/rename", api_rename_file, methods=["POST"]),
        Route("/api/projects/{project_id}/runs", api_start_run, methods=["POST"]),
        Route("/api/projects/{project_id}/run", api_get_run, methods=["GET"]),
        Route("/api/projects/{project_id}/run/cancel", api_cancel_run, methods=["POST"]),
        Route("/api/projects/{project_id}/preview", api_preview, methods=["GET"]),
        Route("/api/projects/{project_id}/execute", api_execute, methods=["POST"]),
    ]
    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.config = config
    app.state.registry = registry
    app.state.llm_client = llm_client
    return app


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    uvicorn.run(app, host=host, port=port)
