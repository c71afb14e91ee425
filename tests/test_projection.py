"""Tests for the run view model."""

from datetime import datetime

from agent_studio.core import projection
from agent_studio.db.models import LogEntry, Run, Task


def _run(status="executing", statuses=("completed", "in-progress", "pending"), **kwargs):
    tasks = [
        Task(id=f"t{i}", operation="create", target_file=f"f{i}.js", status=s)
        for i, s in enumerate(statuses)
    ]
    return Run(id="r1", goal="Build it", status=status, tasks=tasks, **kwargs)


class TestSummary:
    def test_idle(self):
        assert projection.summary_line(Run(id="idle")) == "Idle"

    def test_planning(self):
        assert projection.summary_line(_run("planning", ())) == "Agent working... generating plan"

    def test_executing_names_active_role(self):
        run = _run(active_role="frontend")
        assert projection.summary_line(run) == "Agent working... 1/3 tasks - current: FRONTEND DEV"

    def test_terminal_states(self):
        assert projection.summary_line(_run("completed", ("completed",))) == "Build complete (1/1 tasks)"
        assert projection.summary_line(_run("error")) == "Build failed (1/3 tasks)"
        assert projection.summary_line(_run("cancelled")) == "Build cancelled (1/3 tasks)"


class TestProjectRun:
    def test_counts_and_progress(self):
        view = projection.project_run(_run())
        assert view.completed == 1
        assert view.total == 3
        assert view.progress == 1 / 3
        assert [t.status for t in view.tasks] == ["completed", "in-progress", "pending"]

    def test_log_tail(self):
        logs = [LogEntry(timestamp=datetime(2024, 1, 1, 12, 0, i), message=f"m{i}") for i in range(5)]
        view = projection.project_run(_run(logs=logs), log_limit=2)
        assert view.log_tail == ("[12:00:03] m3", "[12:00:04] m4")
        assert view.log_count == 5
        assert projection.project_run(_run(logs=logs), log_limit=0).log_tail == ()
        assert len(projection.project_run(_run(logs=logs), log_limit=None).log_tail) == 5

    def test_does_not_mutate_run(self):
        run = _run(active_role="backend")
        before = (run.status, [t.status for t in run.tasks], run.active_role, len(run.logs))
        projection.project_run(run)
        assert (run.status, [t.status for t in run.tasks], run.active_role, len(run.logs)) == before

    def test_to_dict(self):
        data = projection.project_run(_run(error=None)).to_dict()
        assert data["run_id"] == "r1"
        assert data["tasks"][0] == {
            "id": "t0",
            "operation": "create",
            "target_file": "f0.js",
            "role": "frontend",
            "description": "",
            "status": "completed",
        }
        assert data["logs"] == []


def test_progress_ratio_empty_run():
    assert projection.progress_ratio(Run(id="idle")) == 0.0
