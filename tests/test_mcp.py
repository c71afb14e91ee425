"""Tests for the MCP tools."""

import asyncio
import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_studio.config import Config
from agent_studio.core.session import SessionRegistry
from agent_studio.core.tasks import build_tasks
from agent_studio.db.engine import init_db
from agent_studio.mcp import server


class FakePlanGenerator:
    async def generate_plan(self, goal, files, config):
        return build_tasks([{"type": "create", "fileName": "index.html"}])


class FakeContentGenerator:
    async def generate_content(self, task, goal, files, config):
        return "<h1>Todo</h1>"


@pytest.fixture
def ctx():
    with tempfile.TemporaryDirectory() as tmp:
        config = Config(db_path=Path(tmp) / "test.db", sync_delay=60)
        db = init_db(config.db_path)
        client = MagicMock()
        registry = SessionRegistry(config.db_path, FakePlanGenerator(), FakeContentGenerator(), sync_delay=60)
        app = server.AppContext(db=db, config=config, client=client, registry=registry)
        yield SimpleNamespace(request_context=SimpleNamespace(lifespan_context=app))
        registry.close_all()
        db.close()


def _app(ctx):
    return ctx.request_context.lifespan_context


class TestProjectTools:
    def test_create_and_list(self, ctx):
        project = server.create_project(ctx, "Todo", languages=["JavaScript"])
        assert project["id"] == "todo"
        assert "Stack: JavaScript" in project["config"]
        assert [p["id"] for p in server.list_projects(ctx)] == ["todo"]

    def test_unknown_platform(self, ctx):
        assert "error" in server.create_project(ctx, "Todo", platform="tv")


class TestFileTools:
    def test_file_flow(self, ctx):
        server.create_project(ctx, "Todo")
        assert server.write_file(ctx, "todo", "app.js", "let a;")["saved"] is True
        assert server.read_file(ctx, "todo", "app.js")["content"] == "let a;"
        assert server.rename_file(ctx, "todo", "app.js", "app.ts")["language"] == "typescript"
        assert server.list_files(ctx, "todo") == [{"name": "app.ts", "language": "typescript", "size": 6}]
        assert server.delete_file(ctx, "todo", "app.ts") == {"deleted": "app.ts"}
        assert "error" in server.read_file(ctx, "todo", "app.ts")

    def test_unknown_project(self, ctx):
        assert "error" in server.list_files(ctx, "ghost")
        assert "error" in server.write_file(ctx, "ghost", "a.js", "")


class TestBuildTools:
    def test_build_and_status(self, ctx):
        server.create_project(ctx, "Todo")

        async def scenario():
            started = await server.start_build(ctx, "todo", "Create a todo app")
            await asyncio.gather(*_app(ctx).builds)
            return started

        started = asyncio.run(scenario())
        assert started["status"] == "planning"
        status = server.get_build_status(ctx, "todo")
        assert status["status"] == "completed"
        assert server.read_file(ctx, "todo", "index.html")["content"] == "<h1>Todo</h1>"

    def test_cancel_without_build(self, ctx):
        server.create_project(ctx, "Todo")
        assert server.cancel_build(ctx, "todo") == {"error": "No build in progress"}

    def test_empty_goal(self, ctx):
        server.create_project(ctx, "Todo")
        result = asyncio.run(server.start_build(ctx, "todo", ""))
        assert result == {"error": "Goal must not be empty"}


class TestPlanTools:
    def test_plan_and_apply(self, ctx):
        server.create_project(ctx, "Todo")
        server.write_file(ctx, "todo", "app.js", "// v1")
        _app(ctx).client.complete = AsyncMock(side_effect=[
            '{"steps": [{"id": "s1", "description": "Add a counter"}]}',
            "// v2",
        ])

        plan = asyncio.run(server.plan_file(ctx, "todo", "app.js", "Count clicks"))
        assert plan["steps"] == [{"id": "s1", "description": "Add a counter", "status": "pending"}]

        result = asyncio.run(server.apply_plan_step(ctx, plan["plan_id"], "s1"))
        assert result["steps"][0]["status"] == "completed"
        assert server.read_file(ctx, "todo", "app.js")["content"] == "// v2"

    def test_unknown_plan(self, ctx):
        assert "error" in asyncio.run(server.apply_plan_step(ctx, "nope", "s1"))


def test_preview_web_project(ctx):
    server.create_project(ctx, "Todo")
    server.write_file(ctx, "todo", "index.html", "<p>hi</p>")
    result = asyncio.run(server.preview(ctx, "todo"))
    assert result == {"output": "<p>hi</p>", "error": None, "entry_file": "index.html"}
