"""Tests for project persistence and file sync."""

import tempfile
import time
from pathlib import Path

import pytest

from agent_studio.core import projects as projects_mod
from agent_studio.core.session import SessionRegistry, open_session
from agent_studio.db.engine import get_db, init_db
from agent_studio.db.models import FileRecord, ProjectConfig


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp) / "test.db"


@pytest.fixture
def db(db_path):
    conn = init_db(db_path)
    yield conn
    conn.close()


class TestProjectCRUD:
    def test_create_project(self, db):
        project = projects_mod.create_project(db, "Todo App", "A todo app")
        assert project.id == "todo-app"
        assert project.description == "A todo app"
        assert project.config is None
        assert project.files == []
        assert project.created_at is not None

    def test_duplicate_name_gets_suffix(self, db):
        projects_mod.create_project(db, "Todo App")
        assert projects_mod.create_project(db, "Todo App").id == "todo-app-2"

    def test_create_with_config_and_files(self, db):
        config = ProjectConfig(platform="desktop", languages=("Python",), tools=("tkinter",))
        files = [FileRecord(id="f1", name="main.py", language="python", content="print(1)")]
        project = projects_mod.create_project(db, "Desk", config=config, files=files)
        assert project.config == config
        assert project.files[0].name == "main.py"
        assert project.files[0].dirty is False

    def test_get_nonexistent(self, db):
        assert projects_mod.get_project(db, "nope") is None

    def test_load_projects(self, db):
        projects_mod.create_project(db, "One")
        projects_mod.create_project(db, "Two")
        assert {p.id for p in projects_mod.load_projects(db)} == {"one", "two"}

    def test_save_project_upserts(self, db):
        project = projects_mod.create_project(db, "One")
        project.description = "changed"
        project.files = [FileRecord(id="f1", name="a.js", content="x")]
        projects = projects_mod.save_project(db, project)
        assert len(projects) == 1
        stored = projects_mod.get_project(db, "one")
        assert stored.description == "changed"
        assert [f.name for f in stored.files] == ["a.js"]

    def test_update_config(self, db):
        projects_mod.create_project(db, "One")
        config = ProjectConfig(platform="mobile", languages=("Swift",))
        assert projects_mod.update_project_config(db, "one", config).config == config
        assert projects_mod.update_project_config(db, "one", None).config is None
        assert projects_mod.update_project_config(db, "nope", config) is None

    def test_delete_project(self, db):
        projects_mod.create_project(db, "One", files=[FileRecord(id="f1", name="a.js")])
        projects_mod.create_project(db, "Two")
        remaining = projects_mod.delete_project(db, "one")
        assert [p.id for p in remaining] == ["two"]
        assert projects_mod.list_project_files(db, "one") == []


class TestFileSync:
    def test_sync_replaces_files_in_order(self, db):
        projects_mod.create_project(db, "One", files=[FileRecord(id="f1", name="old.js")])
        files = [
            FileRecord(id="f2", name="index.html", content="<html>"),
            FileRecord(id="f3", name="app.js", content="js"),
        ]
        assert projects_mod.sync_project_files(db, "one", files) is True
        stored = projects_mod.list_project_files(db, "one")
        assert [(f.id, f.name) for f in stored] == [("f2", "index.html"), ("f3", "app.js")]

    def test_sync_unknown_project(self, db):
        assert projects_mod.sync_project_files(db, "ghost", []) is False


class TestProjectSyncer:
    def test_flush_writes_latest_snapshot(self, db, db_path):
        projects_mod.create_project(db, "One")
        saved = []
        syncer = projects_mod.ProjectSyncer(db_path, "one", delay=60, on_saved=saved.append)
        syncer.schedule([FileRecord(id="f1", name="a.js", content="v1")])
        syncer.schedule([FileRecord(id="f1", name="a.js", content="v2")])
        assert syncer.flush() is True
        assert projects_mod.list_project_files(db, "one")[0].content == "v2"
        assert len(saved) == 1
        assert syncer.flush() is False

    def test_debounced_write(self, db, db_path):
        projects_mod.create_project(db, "One")
        syncer = projects_mod.ProjectSyncer(db_path, "one", delay=0.01)
        syncer.schedule([FileRecord(id="f1", name="a.js", content="x")])
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            with get_db(db_path) as conn:
                if projects_mod.list_project_files(conn, "one"):
                    break
            time.sleep(0.02)
        with get_db(db_path) as conn:
            assert [f.name for f in projects_mod.list_project_files(conn, "one")] == ["a.js"]

    def test_cancel_drops_pending(self, db, db_path):
        projects_mod.create_project(db, "One")
        syncer = projects_mod.ProjectSyncer(db_path, "one", delay=60)
        syncer.schedule([FileRecord(id="f1", name="a.js")])
        syncer.cancel()
        assert syncer.flush() is False
        assert projects_mod.list_project_files(db, "one") == []


class _NoGenerator:
    async def generate_plan(self, goal, files, config):
        return []

    async def generate_content(self, task, goal, files, config):
        return ""


class TestSessions:
    def test_session_edits_are_saved_on_close(self, db, db_path):
        project = projects_mod.create_project(db, "One")
        session = open_session(
            project, _NoGenerator(), _NoGenerator(), db_path=db_path, sync_delay=60
        )
        session.files.create("index.html", "<html></html>")
        assert session.files.get("index.html").dirty is True
        session.close()
        assert [f.name for f in projects_mod.list_project_files(db, "one")] == ["index.html"]
        assert session.files.get("index.html").dirty is False

    def test_registry_reuses_sessions(self, db, db_path):
        projects_mod.create_project(db, "One")
        registry = SessionRegistry(db_path, _NoGenerator(), _NoGenerator(), sync_delay=60)
        first = registry.get("one")
        assert registry.get("one") is first
        assert registry.get("ghost") is None
        assert registry.project_for_run(first.runs.current) is first.project
        registry.discard("one")
        assert registry.get("one") is not first
        registry.close_all()

    def test_run_survives_unsubscribing_observers(self, db, db_path):
        projects_mod.create_project(db, "One")
        registry = SessionRegistry(db_path, _NoGenerator(), _NoGenerator(), sync_delay=60)
        session = registry.get("one")
        seen = []
        unsubscribe = session.runs.subscribe(seen.append)
        run = session.orchestrator.start_run("Build")
        unsubscribe()
        assert registry.get("one").runs.current is run
        assert seen
        registry.close_all()
