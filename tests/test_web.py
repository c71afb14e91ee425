"""Tests for the web API."""

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.testclient import TestClient

from agent_studio.config import Config
from agent_studio.core import projects as projects_mod
from agent_studio.core.generators import GenerationFailed
from agent_studio.core.tasks import build_tasks
from agent_studio.db.engine import get_db, init_db
from agent_studio.db.models import FileRecord
from agent_studio.web.app import create_app


class FakePlanGenerator:
    async def generate_plan(self, goal, files, config):
        return build_tasks([
            {"type": "create", "role": "planner", "fileName": "index.html"},
            {"type": "create", "role": "frontend", "fileName": "app.js"},
        ])


class FakeContentGenerator:
    def __init__(self):
        self.fail = False

    async def generate_content(self, task, goal, files, config):
        if self.fail:
            raise GenerationFailed("model overloaded")
        if task.target_file == "index.html":
            return "<html><head></head><body></body></html>"
        return "console.log('todo');"


@pytest.fixture
def web_env():
    """Set up a temp database with one project and an app over it."""
    with tempfile.TemporaryDirectory() as tmp:
        db_path = Path(tmp) / "test.db"
        db = init_db(db_path)
        projects_mod.create_project(
            db,
            "Todo",
            "Todo app",
            files=[FileRecord(id="f1", name="README.md", content="# Todo")],
        )
        db.close()

        writer = FakeContentGenerator()
        llm_client = MagicMock()
        app = create_app(
            FakePlanGenerator(),
            writer,
            config=Config(db_path=db_path, sync_delay=60),
            llm_client=llm_client,
        )
        yield app, db_path, writer, llm_client


@pytest.fixture
def client(web_env):
    app = web_env[0]
    with TestClient(app) as c:
        yield c


class TestProjectsAPI:
    def test_index(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "Agent Studio" in resp.text

    def test_index_opens_preview_on_completion(self, client):
        html = client.get("/").text
        assert "if (wasWorking && run.status === 'completed') openPreview();" in html

    def test_list_projects(self, client):
        resp = client.get("/api/projects")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 1
        assert data[0]["id"] == "todo"
        assert data[0]["config"] is None

    def test_create_project(self, client):
        resp = client.post(
            "/api/projects",
            json={"name": "Shop", "config": {"platform": "mobile", "languages": ["Swift"]}},
        )
        assert resp.status_code == 201
        assert resp.json()["config"] == {"platform": "mobile", "languages": ["Swift"], "tools": []}

    def test_create_project_validation(self, client):
        assert client.post("/api/projects", json={}).status_code == 400
        resp = client.post("/api/projects", json={"name": "x", "config": {"platform": "tv"}})
        assert resp.status_code == 400

    def test_config_lists_must_hold_strings(self, client):
        resp = client.post("/api/projects", json={"name": "x", "config": {"languages": "python"}})
        assert resp.status_code == 400
        assert resp.json() == {"error": "languages must be a list of strings"}
        resp = client.put("/api/projects/todo/config", json={"config": {"tools": [1]}})
        assert resp.status_code == 400
        assert client.get("/api/projects/todo").json()["config"] is None

    def test_get_project(self, client):
        resp = client.get("/api/projects/todo")
        assert resp.status_code == 200
        assert resp.json()["files"] == ["README.md"]

    def test_get_project_not_found(self, client):
        assert client.get("/api/projects/ghost").status_code == 404

    def test_update_config(self, client):
        resp = client.put("/api/projects/todo/config", json={"config": {"platform": "desktop"}})
        assert resp.status_code == 200
        assert resp.json()["config"]["platform"] == "desktop"

    def test_delete_project(self, client):
        assert client.delete("/api/projects/todo").status_code == 200
        assert client.get("/api/projects/todo").status_code == 404
        assert client.delete("/api/projects/todo").status_code == 404


class TestFilesAPI:
    def test_put_creates_then_updates(self, client):
        resp = client.put("/api/projects/todo/files/src/app.js", json={"content": "let a;"})
        assert resp.status_code == 201
        assert resp.json()["language"] == "javascript"

        resp = client.put("/api/projects/todo/files/src/app.js", json={"content": "let b;"})
        assert resp.status_code == 200
        assert client.get("/api/projects/todo/files/src/app.js").json()["content"] == "let b;"

    def test_put_invalid_name(self, client):
        resp = client.put("/api/projects/todo/files/%20app.js", json={"content": ""})
        assert resp.status_code == 400

    def test_delete_file(self, client):
        assert client.delete("/api/projects/todo/files/README.md").status_code == 200
        assert client.get("/api/projects/todo/files").json() == []
        assert client.delete("/api/projects/todo/files/README.md").status_code == 404

    def test_rename(self, client):
        client.put("/api/projects/todo/files/a.js", json={"content": ""})
        resp = client.post("/api/projects/todo/rename", json={"from": "a.js", "to": "b.ts"})
        assert resp.status_code == 200
        assert resp.json()["language"] == "typescript"

        resp = client.post("/api/projects/todo/rename", json={"from": "b.ts", "to": "README.md"})
        assert resp.status_code == 409
        resp = client.post("/api/projects/todo/rename", json={"from": "ghost.js", "to": "x.js"})
        assert resp.status_code == 404

    def test_edits_are_saved_on_shutdown(self, web_env):
        app, db_path, _, _ = web_env
        with TestClient(app) as c:
            c.put("/api/projects/todo/files/index.html", json={"content": "<p>hi</p>"})
        with get_db(db_path) as db:
            names = [f.name for f in projects_mod.list_project_files(db, "todo")]
        assert names == ["README.md", "index.html"]


class TestRunsAPI:
    def test_idle_run(self, client):
        data = client.get("/api/projects/todo/run").json()
        assert data["status"] == "idle"
        assert data["summary"] == "Idle"

    def test_build(self, client):
        resp = client.post("/api/projects/todo/runs", json={"goal": "Create a todo app"})
        assert resp.status_code == 202
        assert resp.json()["status"] == "planning"

        run = client.get("/api/projects/todo/run").json()
        assert run["status"] == "completed"
        assert run["progress"] == 1.0
        assert run["summary"] == "Build complete (2/2 tasks)"
        assert [t["status"] for t in run["tasks"]] == ["completed", "completed"]

        names = [f["name"] for f in client.get("/api/projects/todo/files").json()]
        assert names == ["README.md", "index.html", "app.js"]

    def test_failed_build(self, web_env, client):
        web_env[2].fail = True
        client.post("/api/projects/todo/runs", json={"goal": "Create a todo app"})
        run = client.get("/api/projects/todo/run").json()
        assert run["status"] == "error"
        assert "model overloaded" in run["error"]

    def test_log_limit(self, client):
        client.post("/api/projects/todo/runs", json={"goal": "Create a todo app"})
        run = client.get("/api/projects/todo/run?logs=2").json()
        assert len(run["logs"]) == 2
        assert run["logs"][-1].endswith("Build complete")
        assert run["log_count"] > 2
        assert client.get("/api/projects/todo/run?logs=abc").status_code == 400

    def test_empty_goal(self, client):
        assert client.post("/api/projects/todo/runs", json={"goal": " "}).status_code == 400

    def test_run_in_progress_and_cancel(self, web_env, client):
        app = web_env[0]
        session = app.state.registry.get("todo")
        session.orchestrator.start_run("Long build")

        resp = client.post("/api/projects/todo/runs", json={"goal": "Another"})
        assert resp.status_code == 409

        resp = client.post("/api/projects/todo/run/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        assert client.post("/api/projects/todo/run/cancel").status_code == 409

    def test_unknown_project(self, client):
        assert client.post("/api/projects/ghost/runs", json={"goal": "x"}).status_code == 404


class TestPreviewAPI:
    def test_preview_after_build(self, client):
        client.post("/api/projects/todo/runs", json={"goal": "Create a todo app"})
        resp = client.get("/api/projects/todo/preview")
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert "console.log('todo');" in resp.text

    def test_preview_non_web(self, client):
        assert client.get("/api/projects/todo/preview").status_code == 400

    def test_execute(self, web_env, client):
        llm_client = web_env[3]
        llm_client.complete = AsyncMock(return_value='{"output": "# Todo", "error": null}')
        resp = client.post("/api/projects/todo/execute", json={"entry": "README.md"})
        assert resp.status_code == 200
        assert resp.json() == {"output": "# Todo", "error": None, "entry_file": "README.md"}
