"""Project store backends with whole-collection and per-entity access."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from lumina_schemas import Project

from .errors import PersistenceFailure, ProjectNotFound
from .kv import PROJECTS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class ProjectStore(ABC):
    """Durable collection of projects, newest first.

    Backends only implement whole-collection ``list``/``save_all``; the
    per-entity helpers are read-modify-write cycles serialized by a lock.
    """

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    @abstractmethod
    async def list(self) -> list[Project]:
        ...

    @abstractmethod
    async def save_all(self, projects: Iterable[Project]) -> None:
        ...

    async def get(self, project_id: str) -> Project:
        for project in await self.list():
            if project.id == project_id:
                return project
        raise ProjectNotFound(project_id)

    async def create(self, project: Project) -> Project:
        async with self._write_lock:
            projects = [p for p in await self.list() if p.id != project.id]
            await self._save(
                [project, *projects], action="create", project_id=project.id
            )
        return project

    async def update(self, project: Project) -> Project:
        async with self._write_lock:
            projects = await self.list()
            for index, existing in enumerate(projects):
                if existing.id == project.id:
                    projects[index] = project
                    break
            else:
                raise ProjectNotFound(project.id)
            await self._save(projects, action="update", project_id=project.id)
        return project

    async def modify(self, project_id: str, mutate: Callable[[Project], Project]) -> Project:
        """Apply ``mutate`` to the stored project and save the result.

        The project is re-read under the write lock, so concurrent edits to
        other fields or pages are kept.
        """

        async with self._write_lock:
            projects = await self.list()
            for index, existing in enumerate(projects):
                if existing.id == project_id:
                    projects[index] = mutate(existing)
                    break
            else:
                raise ProjectNotFound(project_id)
            await self._save(projects, action="update", project_id=project_id)
        return projects[index]

    async def delete(self, project_id: str) -> None:
        async with self._write_lock:
            projects = await self.list()
            remaining = [p for p in projects if p.id != project_id]
            if len(remaining) == len(projects):
                raise ProjectNotFound(project_id)
            await self._save(remaining, action="delete", project_id=project_id)

    async def _save(self, projects: list[Project], *, action: str, project_id: str) -> None:
        try:
            await self.save_all(projects)
        except PersistenceFailure:
            raise
        except Exception as exc:
            logger.exception(
                "Project store write failed",
                extra={"project_id": project_id, "action": action},
            )
            raise PersistenceFailure(f"Could not {action} project {project_id}") from exc


def _serialise(projects: Iterable[Project]) -> list[dict[str, Any]]:
    return [project.model_dump(mode="json") for project in projects]


def _deserialise(payload: Any) -> list[Project]:
    if not payload:
        return []
    return [Project.model_validate(item) for item in payload]


class KeyValueProjectStore(ProjectStore):
    """Stores the entire collection as one JSON value under ``all_projects``."""

    def __init__(self, store: KeyValueStore, *, key: str = PROJECTS_KEY) -> None:
        super().__init__()
        self._store = store
        self._key = key

    async def list(self) -> list[Project]:
        return _deserialise(await self._store.get(self._key))

    async def save_all(self, projects: Iterable[Project]) -> None:
        await self._store.set(self._key, _serialise(projects))


class PostgresProjectStore(ProjectStore):
    """Keeps the collection in a single JSONB row keyed by collection name."""

    _DDL = """
    CREATE TABLE IF NOT EXISTS lumina_collections (
        key TEXT PRIMARY KEY,
        payload JSONB NOT NULL DEFAULT '[]'::jsonb,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
    )
    """

    def __init__(self, pool: ConnectionPool, *, key: str = PROJECTS_KEY) -> None:
        super().__init__()
        self._pool = pool
        self._key = key

    @classmethod
    def from_url(cls, database_url: str, *, key: str = PROJECTS_KEY) -> "PostgresProjectStore":
        # psycopg connection URLs do not use SQLAlchemy's driver suffix.
        conninfo = database_url.replace("+psycopg", "")
        pool = ConnectionPool(conninfo, min_size=1, max_size=5, open=True)
        store = cls(pool, key=key)
        store.initialise_schema()
        return store

    def initialise_schema(self) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(self._DDL)
            conn.commit()

    def _fetch(self) -> Any:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute("SELECT payload FROM lumina_collections WHERE key = %s", (self._key,))
            row = cur.fetchone()
        return row[0] if row else None

    def _upsert(self, payload: list[dict[str, Any]]) -> None:
        with self._pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO lumina_collections (key, payload, updated_at)
                VALUES (%s, %s, NOW())
                ON CONFLICT (key) DO UPDATE
                SET payload = EXCLUDED.payload,
                    updated_at = NOW()
                """,
                (self._key, Jsonb(payload)),
            )
            conn.commit()

    async def list(self) -> list[Project]:
        return _deserialise(await asyncio.to_thread(self._fetch))

    async def save_all(self, projects: Iterable[Project]) -> None:
        await asyncio.to_thread(self._upsert, _serialise(projects))

    def close(self) -> None:
        self._pool.close()
