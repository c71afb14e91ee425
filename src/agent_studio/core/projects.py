"""Project persistence: projects, their files and debounced file sync."""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from agent_studio.core.tasks import slugify, unique_id
from agent_studio.db.engine import get_db
from agent_studio.db.models import FileRecord, Project, ProjectConfig

logger = logging.getLogger(__name__)


def create_project(
    db: sqlite3.Connection,
    name: str,
    description: str = "",
    config: ProjectConfig | None = None,
    files: list[FileRecord] | None = None,
    project_id: str | None = None,
) -> Project:
    """Create a new project. The id defaults to a unique slug of the name."""
    if project_id is None:
        taken = {r["id"] for r in db.execute("SELECT id FROM projects").fetchall()}
        project_id = unique_id(slugify(name) or "project", taken)

    db.execute(
        "INSERT INTO projects (id, name, description, config) VALUES (?, ?, ?, ?)",
        (project_id, name, description, _dump_config(config)),
    )
    _write_files(db, project_id, files or [])
    db.commit()
    return get_project(db, project_id)


def get_project(db: sqlite3.Connection, project_id: str) -> Project | None:
    """Get a project by ID, including its files."""
    row = db.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    if not row:
        return None
    project = _row_to_project(row)
    project.files = list_project_files(db, project_id)
    return project


def load_projects(db: sqlite3.Connection) -> list[Project]:
    """List all projects, most recently updated first."""
    rows = db.execute(
        "SELECT * FROM projects ORDER BY updated_at DESC, created_at DESC"
    ).fetchall()
    projects = []
    for row in rows:
        project = _row_to_project(row)
        project.files = list_project_files(db, project.id)
        projects.append(project)
    return projects


def save_project(db: sqlite3.Connection, project: Project) -> list[Project]:
    """Insert or replace a project and its files. Returns all projects."""
    db.execute(
        """INSERT INTO projects (id, name, description, config)
           VALUES (?, ?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET
               name = excluded.name,
               description = excluded.description,
               config = excluded.config,
               updated_at = datetime('now')""",
        (project.id, project.name, project.description, _dump_config(project.config)),
    )
    _write_files(db, project.id, project.files)
    db.commit()
    return load_projects(db)


def update_project_config(
    db: sqlite3.Connection,
    project_id: str,
    config: ProjectConfig | None,
) -> Project | None:
    """Set or clear a project's target stack configuration."""
    if not get_project(db, project_id):
        return None
    db.execute(
        "UPDATE projects SET config = ?, updated_at = datetime('now') WHERE id = ?",
        (_dump_config(config), project_id),
    )
    db.commit()
    return get_project(db, project_id)


def delete_project(db: sqlite3.Connection, project_id: str) -> list[Project]:
    """Delete a project and its files. Returns the remaining projects."""
    db.execute("DELETE FROM project_files WHERE project_id = ?", (project_id,))
    db.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    db.commit()
    return load_projects(db)


def sync_project_files(
    db: sqlite3.Connection,
    project_id: str,
    files: list[FileRecord],
) -> bool:
    """Replace the stored files of a project. Unknown projects are ignored."""
    exists = db.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,)).fetchone()
    if not exists:
        return False
    _write_files(db, project_id, files)
    db.execute(
        "UPDATE projects SET updated_at = datetime('now') WHERE id = ?", (project_id,)
    )
    db.commit()
    return True


def list_project_files(db: sqlite3.Connection, project_id: str) -> list[FileRecord]:
    rows = db.execute(
        "SELECT * FROM project_files WHERE project_id = ? ORDER BY position",
        (project_id,),
    ).fetchall()
    return [
        FileRecord(
            id=r["id"],
            name=r["name"],
            language=r["language"],
            content=r["content"],
            dirty=False,
        )
        for r in rows
    ]


class ProjectSyncer:
    """Debounced writer of a project's files.

    Every schedule() call restarts the timer; only the latest snapshot is
    written, on a background thread with its own connection.
    """

    def __init__(self, db_path: Path, project_id: str, delay: float = 1.0, on_saved=None):
        self.db_path = db_path
        self.project_id = project_id
        self.delay = delay
        self.on_saved = on_saved
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: list[FileRecord] | None = None

    def schedule(self, files: list[FileRecord]):
        with self._lock:
            self._pending = files
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Write the pending snapshot now, if there is one."""
        with self._lock:
            files, self._pending = self._pending, None
            if self._timer:
                self._timer.cancel()
                self._timer = None
        if files is None:
            return False

        try:
            with get_db(self.db_path) as db:
                synced = sync_project_files(db, self.project_id, files)
        except Exception:
            logger.exception("Auto-sync failed for project %s", self.project_id)
            return False

        if synced and self.on_saved:
            self.on_saved(files)
        return synced

    def cancel(self):
        with self._lock:
            self._pending = None
            if self._timer:
                self._timer.cancel()
                self._timer = None


def _write_files(db: sqlite3.Connection, project_id: str, files: list[FileRecord]):
    db.execute("DELETE FROM project_files WHERE project_id = ?", (project_id,))
    for position, f in enumerate(files):
        db.execute(
            """INSERT INTO project_files (id, project_id, name, language, content, position)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (f.id, project_id, f.name, f.language, f.content, position),
        )


def _dump_config(config: ProjectConfig | None) -> str | None:
    if config is None:
        return None
    return json.dumps({
        "platform": config.platform,
        "languages": list(config.languages),
        "tools": list(config.tools),
    })


def _load_config(raw: str | None) -> ProjectConfig | None:
    if not raw:
        return None
    data = json.loads(raw)
    return ProjectConfig(
        platform=data.get("platform", "web"),
        languages=tuple(data.get("languages", [])),
        tools=tuple(data.get("tools", [])),
    )


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        config=_load_config(row["config"]),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def _parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    return datetime.fromisoformat(val)
