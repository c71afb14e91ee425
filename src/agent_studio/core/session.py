"""Session-scoped state for open projects."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from agent_studio.core.files import ProjectFileStore
from agent_studio.core.generators import ContentGenerator, PlanGenerator
from agent_studio.core.orchestrator import Orchestrator, RunCallback, RunStore
from agent_studio.core.projects import ProjectSyncer, get_project
from agent_studio.db.engine import get_db
from agent_studio.db.models import Project

logger = logging.getLogger(__name__)


@dataclass
class StudioSession:
    project: Project
    files: ProjectFileStore
    runs: RunStore
    orchestrator: Orchestrator
    syncer: ProjectSyncer | None = None
    _unsubscribers: list[Callable[[], None]] = field(default_factory=list)

    def close(self):
        """Detach the syncer and write any pending changes."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self.syncer:
            self.syncer.flush()


class SessionRegistry:
    """Open sessions keyed by project id, created on first use."""

    def __init__(
        self,
        db_path: Path,
        plan_generator: PlanGenerator,
        content_generator: ContentGenerator,
        sync_delay: float = 1.0,
        timeout: float | None = None,
        on_complete: RunCallback | None = None,
        on_finish: RunCallback | None = None,
    ):
        self.db_path = db_path
        self.plan_generator = plan_generator
        self.content_generator = content_generator
        self.sync_delay = sync_delay
        self.timeout = timeout
        self.on_complete = on_complete
        self.on_finish = on_finish
        self._sessions: dict[str, StudioSession] = {}

    def get(self, project_id: str) -> StudioSession | None:
        """Return the open session for a project, opening it if needed."""
        session = self._sessions.get(project_id)
        if session:
            return session

        with get_db(self.db_path) as db:
            project = get_project(db, project_id)
        if not project:
            return None

        session = open_session(
            project,
            self.plan_generator,
            self.content_generator,
            db_path=self.db_path,
            sync_delay=self.sync_delay,
            timeout=self.timeout,
            on_complete=self.on_complete,
            on_finish=self.on_finish,
        )
        self._sessions[project_id] = session
        logger.info("Opened session for project %s", project_id)
        return session

    def project_for_run(self, run) -> Project | None:
        for session in self._sessions.values():
            if session.runs.current is run:
                return session.project
        return None

    def discard(self, project_id: str):
        """Drop a session without flushing, e.g. after its project was deleted."""
        session = self._sessions.pop(project_id, None)
        if session:
            if session.syncer:
                session.syncer.cancel()
            session.orchestrator.cancel_run()

    def close_all(self):
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()


def open_session(
    project: Project,
    plan_generator: PlanGenerator,
    content_generator: ContentGenerator,
    db_path: Path | None = None,
    sync_delay: float = 1.0,
    timeout: float | None = None,
    on_complete: RunCallback | None = None,
    on_finish: RunCallback | None = None,
) -> StudioSession:
    """Build the in-memory state for a project.

    With a db_path, file changes are synced back to the database after
    sync_delay seconds of inactivity.
    """
    files = ProjectFileStore(project.files)
    runs = RunStore()
    orchestrator = Orchestrator(
        files,
        runs,
        plan_generator,
        content_generator,
        on_complete=on_complete,
        on_finish=on_finish,
        timeout=timeout,
    )
    session = StudioSession(project=project, files=files, runs=runs, orchestrator=orchestrator)

    if db_path is not None:
        syncer = ProjectSyncer(db_path, project.id, delay=sync_delay, on_saved=files.mark_saved)
        session.syncer = syncer
        session._unsubscribers.append(files.subscribe(lambda store: syncer.schedule(store.list())))

    return session
