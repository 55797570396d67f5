"""Workspace API for Lumina Studio: accounts, files, folders, notes and team."""
from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
import secrets
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import bcrypt
from cryptography.fernet import Fernet
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from pydantic import BaseModel, Field, field_validator

from lumina_observability import log_context, setup_fastapi_metrics, setup_logging
from lumina_schemas import FileDoc, FolderDoc, NoteDoc, SubscriptionTier, TeamMemberDoc
from lumina_schemas.utils.validators import ensure_max_word_count, ensure_not_blank

from .storage import ObjectStorage, safe_filename


DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")

# psycopg connection URLs do not use SQLAlchemy's driver suffix.
PG_CONNINFO = DATABASE_URL.replace("+psycopg", "")

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("LUMINA_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

STORAGE_ROOT = os.getenv("STORAGE_ROOT", os.path.join(os.getcwd(), "storage"))
FREE_FILE_LIMIT = int(os.getenv("LUMINA_FREE_FILE_LIMIT", "5"))
MAX_UPLOAD_BYTES = int(os.getenv("LUMINA_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

AUTH_COOKIE_NAME = os.getenv("LUMINA_SESSION_COOKIE_NAME", "lumina_session")
SESSION_TTL_MINUTES = int(os.getenv("LUMINA_SESSION_TTL_MINUTES", "720"))
SESSION_TTL = timedelta(minutes=max(SESSION_TTL_MINUTES, 1))
SESSION_COOKIE_SECURE = os.getenv("LUMINA_SESSION_COOKIE_SECURE", "0") == "1"
SESSION_COOKIE_SAMESITE = os.getenv("LUMINA_SESSION_COOKIE_SAMESITE", "lax")
SESSION_COOKIE_DOMAIN = os.getenv("LUMINA_SESSION_COOKIE_DOMAIN")

ENCRYPTION_KEY = os.getenv("LUMINA_ENCRYPTION_KEY")
if not ENCRYPTION_KEY:
    raise RuntimeError(
        "LUMINA_ENCRYPTION_KEY environment variable is required. Generate a Fernet key and set it before starting the API."
    )

try:
    FERNET = Fernet(ENCRYPTION_KEY)
except ValueError as exc:  # pragma: no cover - configuration error
    raise RuntimeError("LUMINA_ENCRYPTION_KEY must be a valid Fernet key") from exc

# Shared connection pool for lightweight data access.
POOL = ConnectionPool(PG_CONNINFO, min_size=1, max_size=10, open=True)
STORAGE = ObjectStorage(STORAGE_ROOT, FERNET)

SERVICE_NAME = "api"
setup_logging(SERVICE_NAME)
logger = logging.getLogger(__name__)


class SessionUser(BaseModel):
    id: UUID
    email: str
    display_name: str
    tier: SubscriptionTier = SubscriptionTier.FREE


class SessionResponse(BaseModel):
    user: SessionUser


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: str) -> str:
        return value.strip().lower()


class RegisterRequest(LoginRequest):
    password: str = Field(..., min_length=8, max_length=128)
    display_name: Optional[str] = Field(None, max_length=120)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        cleaned = value.strip().lower()
        if "@" not in cleaned or cleaned.startswith("@") or cleaned.endswith("@"):
            raise ValueError("A valid email address is required")
        return cleaned


class TierUpdateRequest(BaseModel):
    tier: SubscriptionTier


class FolderCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return ensure_not_blank(value, field_name="Folder name")


class NoteCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field("", max_length=20000)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        return ensure_not_blank(value, field_name="Note title")

    @field_validator("content")
    @classmethod
    def validate_content(cls, value: str) -> str:
        ensure_max_word_count(value, limit=2000, field_name="Note content")
        return value


class TeamMemberCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    role: str = Field("Member", max_length=80)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return ensure_not_blank(value, field_name="Team member name")


class FileUploadRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content_base64: str
    content_type: str = Field("application/octet-stream", max_length=120)
    folder_id: Optional[UUID] = None


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:  # pragma: no cover - corrupt hash
        return False


def _generate_session_token() -> str:
    return secrets.token_urlsafe(48)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _file_limit_for(user: SessionUser) -> Optional[int]:
    """Return the maximum number of stored files, or ``None`` when unlimited."""

    if user.tier == SubscriptionTier.FREE:
        return FREE_FILE_LIMIT
    return None


def _download_url(file_id: UUID) -> str:
    return f"/files/{file_id}/download"


def _initialise_schema() -> None:
    ddl = """
    CREATE TABLE IF NOT EXISTS app_users (
        id UUID PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        display_name TEXT NOT NULL,
        tier TEXT NOT NULL DEFAULT 'free',
        created_at TIMESTAMP WITHOUT TIME ZONE DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS user_sessions (
        id UUID PRIMARY KEY,
        user_id UUID REFERENCES app_users(id) ON DELETE CASCADE,
        token_hash TEXT NOT NULL UNIQUE,
        expires_at TIMESTAMP WITHOUT TIME ZONE NOT NULL,
        created_at TIMESTAMP WITHOUT TIME ZONE DEFAULT NOW(),
        last_seen_at TIMESTAMP WITHOUT TIME ZONE DEFAULT NOW(),
        ip_address TEXT,
        user_agent TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_user_sessions_user_id
        ON user_sessions(user_id);

    CREATE TABLE IF NOT EXISTS workspace_folders (
        id UUID PRIMARY KEY,
        user_id UUID NOT NULL REFERENCES app_users(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        created_at TIMESTAMP WITHOUT TIME ZONE DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS workspace_files (
        id UUID PRIMARY KEY,
        user_id UUID NOT NULL REFERENCES app_users(id) ON DELETE CASCADE,
        folder_id UUID REFERENCES workspace_folders(id) ON DELETE SET NULL,
        name TEXT NOT NULL,
        size BIGINT NOT NULL,
        content_type TEXT NOT NULL,
        storage_path TEXT NOT NULL,
        created_at TIMESTAMP WITHOUT TIME ZONE DEFAULT NOW()
    );

    CREATE INDEX IF NOT EXISTS idx_workspace_files_user_id
        ON workspace_files(user_id);

    CREATE TABLE IF NOT EXISTS workspace_notes (
        id UUID PRIMARY KEY,
        user_id UUID NOT NULL REFERENCES app_users(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        content TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMP WITHOUT TIME ZONE DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS team_members (
        id UUID PRIMARY KEY,
        user_id UUID NOT NULL REFERENCES app_users(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'Member',
        created_at TIMESTAMP WITHOUT TIME ZONE DEFAULT NOW()
    );
    """
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute(ddl)
        conn.commit()


def _purge_expired_sessions() -> None:
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute("DELETE FROM user_sessions WHERE expires_at < NOW()")
        conn.commit()


def _create_session_record(
    user_id: UUID,
    token: str,
    expires_at: datetime,
    ip_address: Optional[str],
    user_agent: Optional[str],
) -> None:
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO user_sessions (id, user_id, token_hash, expires_at, ip_address, user_agent)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (uuid4(), user_id, _hash_token(token), expires_at, ip_address, (user_agent or "")[:512]),
        )
        conn.commit()


def _delete_session_record(token: str) -> None:
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute("DELETE FROM user_sessions WHERE token_hash = %s", (_hash_token(token),))
        conn.commit()


def _lookup_session_user(token: str) -> Optional[SessionUser]:
    now = datetime.utcnow()
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT s.id AS session_id, s.expires_at, u.id AS user_id, u.email, u.display_name, u.tier
            FROM user_sessions s
            JOIN app_users u ON u.id = s.user_id
            WHERE s.token_hash = %s
            """,
            (_hash_token(token),),
        )
        row = cur.fetchone()
        if not row:
            return None
        if row["expires_at"] < now:
            cur.execute("DELETE FROM user_sessions WHERE id = %s", (row["session_id"],))
            conn.commit()
            return None
        cur.execute("UPDATE user_sessions SET last_seen_at = NOW() WHERE id = %s", (row["session_id"],))
        conn.commit()
    return SessionUser(
        id=row["user_id"], email=row["email"], display_name=row["display_name"], tier=row["tier"]
    )


def _get_user_by_email(email: str) -> Optional[dict[str, Any]]:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            "SELECT id, email, password_hash, display_name, tier FROM app_users WHERE email = %s",
            (email,),
        )
        return cur.fetchone()


def _create_user(email: str, password: str, display_name: str) -> SessionUser:
    user_id = uuid4()
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute(
            "INSERT INTO app_users (id, email, password_hash, display_name) VALUES (%s, %s, %s, %s)",
            (user_id, email, _hash_password(password), display_name),
        )
        conn.commit()
    return SessionUser(id=user_id, email=email, display_name=display_name)


def _set_user_tier(user_id: UUID, tier: SubscriptionTier) -> None:
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute("UPDATE app_users SET tier = %s WHERE id = %s", (tier.value, user_id))
        conn.commit()


def require_user() -> Callable[[Request], Any]:
    async def dependency(request: Request) -> SessionUser:
        token = request.cookies.get(AUTH_COOKIE_NAME)
        if not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
        user = await run_in_threadpool(_lookup_session_user, token)
        if not user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or invalid")
        return user

    return dependency


app = FastAPI(title="Lumina Studio Workspace API", version="0.1.0")
setup_fastapi_metrics(app, service_name=SERVICE_NAME)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _start_session(user_id: UUID, request: Request, response: Response) -> None:
    token = _generate_session_token()
    expires_at = datetime.utcnow() + SESSION_TTL
    client = request.client
    await run_in_threadpool(
        _create_session_record,
        user_id,
        token,
        expires_at,
        client.host if client else None,
        request.headers.get("user-agent"),
    )
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=int(SESSION_TTL.total_seconds()),
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite=SESSION_COOKIE_SAMESITE,
        domain=SESSION_COOKIE_DOMAIN,
        path="/",
    )


@app.post("/auth/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED, tags=["auth"])
async def register(payload: RegisterRequest, response: Response, request: Request) -> SessionResponse:
    existing = await run_in_threadpool(_get_user_by_email, payload.email)
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    display_name = (payload.display_name or "").strip() or payload.email.split("@")[0]
    user = await run_in_threadpool(_create_user, payload.email, payload.password, display_name)
    await _start_session(user.id, request, response)
    logger.info("User registered", extra={"user_id": str(user.id)})
    return SessionResponse(user=user)


@app.post("/auth/login", response_model=SessionResponse, tags=["auth"])
async def login(payload: LoginRequest, response: Response, request: Request) -> SessionResponse:
    user_row = await run_in_threadpool(_get_user_by_email, payload.email)
    if not user_row or not _verify_password(payload.password, user_row["password_hash"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    await _start_session(user_row["id"], request, response)
    user = SessionUser(
        id=user_row["id"],
        email=user_row["email"],
        display_name=user_row["display_name"],
        tier=user_row["tier"],
    )
    logger.info("User logged in", extra={"user_id": str(user.id)})
    return SessionResponse(user=user)


@app.post("/auth/logout", tags=["auth"])
async def logout(
    response: Response,
    request: Request,
    current_user: SessionUser = Depends(require_user()),
) -> dict[str, str]:
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        await run_in_threadpool(_delete_session_record, token)
    response.delete_cookie(AUTH_COOKIE_NAME, domain=SESSION_COOKIE_DOMAIN, path="/")
    logger.info("User logged out", extra={"user_id": str(current_user.id)})
    return {"status": "logged_out"}


@app.get("/auth/session", response_model=SessionResponse, tags=["auth"])
async def session(current_user: SessionUser = Depends(require_user())) -> SessionResponse:
    return SessionResponse(user=current_user)


@app.post("/account/tier", response_model=SessionResponse, tags=["auth"])
async def update_tier(
    payload: TierUpdateRequest, current_user: SessionUser = Depends(require_user())
) -> SessionResponse:
    # Upgrades are simulated; no payment processor is involved.
    await run_in_threadpool(_set_user_tier, current_user.id, payload.tier)
    logger.info("Workspace tier changed", extra={"user_id": str(current_user.id), "tier": payload.tier.value})
    return SessionResponse(user=current_user.model_copy(update={"tier": payload.tier}))


@app.on_event("startup")
def _on_startup() -> None:
    _initialise_schema()
    _purge_expired_sessions()
    Path(STORAGE_ROOT).mkdir(parents=True, exist_ok=True)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    """Simple readiness check."""

    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Folders


def _fetch_folders(user_id: UUID) -> list[FolderDoc]:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            "SELECT id, name, created_at FROM workspace_folders WHERE user_id = %s ORDER BY created_at DESC",
            (user_id,),
        )
        return [FolderDoc(**row) for row in cur.fetchall()]


def _insert_folder(user_id: UUID, name: str) -> FolderDoc:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            INSERT INTO workspace_folders (id, user_id, name)
            VALUES (%s, %s, %s)
            RETURNING id, name, created_at
            """,
            (uuid4(), user_id, name),
        )
        row = cur.fetchone()
        conn.commit()
    return FolderDoc(**row)


def _delete_owned(table: str, user_id: UUID, item_id: UUID) -> bool:
    if table not in {"workspace_folders", "workspace_notes", "team_members"}:
        raise ValueError(f"Unsupported table: {table}")
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute(f"DELETE FROM {table} WHERE id = %s AND user_id = %s", (item_id, user_id))
        deleted = cur.rowcount > 0
        conn.commit()
    return deleted


@app.get("/folders", response_model=list[FolderDoc], tags=["workspace"])
async def list_folders(current_user: SessionUser = Depends(require_user())) -> list[FolderDoc]:
    return await run_in_threadpool(_fetch_folders, current_user.id)


@app.post("/folders", response_model=FolderDoc, status_code=status.HTTP_201_CREATED, tags=["workspace"])
async def create_folder(
    payload: FolderCreateRequest, current_user: SessionUser = Depends(require_user())
) -> FolderDoc:
    return await run_in_threadpool(_insert_folder, current_user.id, payload.name)


@app.delete("/folders/{folder_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["workspace"])
async def delete_folder(folder_id: UUID, current_user: SessionUser = Depends(require_user())) -> Response:
    if not await run_in_threadpool(_delete_owned, "workspace_folders", current_user.id, folder_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Folder not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Notes


def _fetch_notes(user_id: UUID) -> list[NoteDoc]:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            "SELECT id, title, content, created_at FROM workspace_notes WHERE user_id = %s ORDER BY created_at DESC",
            (user_id,),
        )
        return [NoteDoc(**row) for row in cur.fetchall()]


def _insert_note(user_id: UUID, payload: NoteCreateRequest) -> NoteDoc:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            INSERT INTO workspace_notes (id, user_id, title, content)
            VALUES (%s, %s, %s, %s)
            RETURNING id, title, content, created_at
            """,
            (uuid4(), user_id, payload.title, payload.content),
        )
        row = cur.fetchone()
        conn.commit()
    return NoteDoc(**row)


@app.get("/notes", response_model=list[NoteDoc], tags=["workspace"])
async def list_notes(current_user: SessionUser = Depends(require_user())) -> list[NoteDoc]:
    return await run_in_threadpool(_fetch_notes, current_user.id)


@app.post("/notes", response_model=NoteDoc, status_code=status.HTTP_201_CREATED, tags=["workspace"])
async def create_note(
    payload: NoteCreateRequest, current_user: SessionUser = Depends(require_user())
) -> NoteDoc:
    return await run_in_threadpool(_insert_note, current_user.id, payload)


@app.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["workspace"])
async def delete_note(note_id: UUID, current_user: SessionUser = Depends(require_user())) -> Response:
    if not await run_in_threadpool(_delete_owned, "workspace_notes", current_user.id, note_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Team


def _fetch_team(user_id: UUID) -> list[TeamMemberDoc]:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            "SELECT id, name, role, created_at FROM team_members WHERE user_id = %s ORDER BY created_at ASC",
            (user_id,),
        )
        return [TeamMemberDoc(**row) for row in cur.fetchall()]


def _insert_team_member(user_id: UUID, payload: TeamMemberCreateRequest) -> TeamMemberDoc:
    role = payload.role.strip() or "Member"
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            INSERT INTO team_members (id, user_id, name, role)
            VALUES (%s, %s, %s, %s)
            RETURNING id, name, role, created_at
            """,
            (uuid4(), user_id, payload.name, role),
        )
        row = cur.fetchone()
        conn.commit()
    return TeamMemberDoc(**row)


@app.get("/team", response_model=list[TeamMemberDoc], tags=["workspace"])
async def list_team(current_user: SessionUser = Depends(require_user())) -> list[TeamMemberDoc]:
    return await run_in_threadpool(_fetch_team, current_user.id)


@app.post("/team", response_model=TeamMemberDoc, status_code=status.HTTP_201_CREATED, tags=["workspace"])
async def add_team_member(
    payload: TeamMemberCreateRequest, current_user: SessionUser = Depends(require_user())
) -> TeamMemberDoc:
    return await run_in_threadpool(_insert_team_member, current_user.id, payload)


@app.delete("/team/{member_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["workspace"])
async def remove_team_member(member_id: UUID, current_user: SessionUser = Depends(require_user())) -> Response:
    if not await run_in_threadpool(_delete_owned, "team_members", current_user.id, member_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team member not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Files


def _row_to_file(row: dict[str, Any]) -> FileDoc:
    return FileDoc(**row, download_url=_download_url(row["id"]))


def _count_files(user_id: UUID) -> int:
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute("SELECT COUNT(*) FROM workspace_files WHERE user_id = %s", (user_id,))
        row = cur.fetchone()
    return int(row[0]) if row else 0


def _fetch_files(user_id: UUID, folder_id: Optional[UUID]) -> list[FileDoc]:
    query = """
        SELECT id, name, size, content_type, storage_path, folder_id, created_at
        FROM workspace_files
        WHERE user_id = %s
    """
    params: list[Any] = [user_id]
    if folder_id is not None:
        query += " AND folder_id = %s"
        params.append(folder_id)
    query += " ORDER BY created_at DESC"
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(query, params)
        return [_row_to_file(row) for row in cur.fetchall()]


def _fetch_file(user_id: UUID, file_id: UUID) -> Optional[FileDoc]:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT id, name, size, content_type, storage_path, folder_id, created_at
            FROM workspace_files
            WHERE id = %s AND user_id = %s
            """,
            (file_id, user_id),
        )
        row = cur.fetchone()
    return _row_to_file(row) if row else None


def _insert_file(
    user_id: UUID,
    file_id: UUID,
    name: str,
    size: int,
    content_type: str,
    storage_path: str,
    folder_id: Optional[UUID],
) -> FileDoc:
    with POOL.connection() as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            INSERT INTO workspace_files (id, user_id, folder_id, name, size, content_type, storage_path)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING id, name, size, content_type, storage_path, folder_id, created_at
            """,
            (file_id, user_id, folder_id, name, size, content_type, storage_path),
        )
        row = cur.fetchone()
        conn.commit()
    return _row_to_file(row)


def _delete_file_record(user_id: UUID, file_id: UUID) -> None:
    with POOL.connection() as conn, conn.cursor() as cur:
        cur.execute("DELETE FROM workspace_files WHERE id = %s AND user_id = %s", (file_id, user_id))
        conn.commit()


async def _enforce_file_quota(user: SessionUser) -> None:
    limit = _file_limit_for(user)
    if limit is None:
        return
    count = await run_in_threadpool(_count_files, user.id)
    if count >= limit:
        logger.info("File quota reached", extra={"user_id": str(user.id), "file_count": count})
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=f"Upgrade required: free workspaces hold up to {limit} files",
        )


async def _handle_file_upload(user: SessionUser, payload: FileUploadRequest) -> FileDoc:
    with log_context(user_id=str(user.id)):
        await _enforce_file_quota(user)
        try:
            raw_bytes = base64.b64decode(payload.content_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.warning("Rejected upload with invalid encoding", extra={"upload_name": payload.filename})
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file encoding") from exc
        if len(raw_bytes) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File is too large")

        file_id = uuid4()
        name = safe_filename(payload.filename)
        storage_path = await run_in_threadpool(STORAGE.save, user.id, file_id, name, raw_bytes)
        try:
            record = await run_in_threadpool(
                _insert_file,
                user.id,
                file_id,
                name,
                len(raw_bytes),
                payload.content_type,
                storage_path,
                payload.folder_id,
            )
        except Exception:
            logger.exception("Failed to record upload; removing stored object")
            await run_in_threadpool(STORAGE.delete, storage_path)
            raise
        logger.info("File uploaded", extra={"file_id": str(file_id), "size": len(raw_bytes)})
        return record


async def _handle_file_delete(user: SessionUser, file_id: UUID) -> None:
    record = await run_in_threadpool(_fetch_file, user.id, file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    await run_in_threadpool(_delete_file_record, user.id, file_id)
    # Object removal is best-effort; the metadata row is already gone.
    removed = await run_in_threadpool(STORAGE.delete, record.storage_path)
    logger.info("File deleted", extra={"file_id": str(file_id), "object_removed": removed})


@app.get("/files", response_model=list[FileDoc], tags=["workspace"])
async def list_files(
    folder_id: Optional[UUID] = None, current_user: SessionUser = Depends(require_user())
) -> list[FileDoc]:
    return await run_in_threadpool(_fetch_files, current_user.id, folder_id)


@app.post("/files", response_model=FileDoc, status_code=status.HTTP_201_CREATED, tags=["workspace"])
async def upload_file(
    payload: FileUploadRequest, current_user: SessionUser = Depends(require_user())
) -> FileDoc:
    return await _handle_file_upload(current_user, payload)


@app.get("/files/{file_id}/download", tags=["workspace"])
async def download_file(file_id: UUID, current_user: SessionUser = Depends(require_user())) -> Response:
    record = await run_in_threadpool(_fetch_file, current_user.id, file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    try:
        content = await run_in_threadpool(STORAGE.read, record.storage_path)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stored file is missing") from exc
    return Response(
        content=content,
        media_type=record.content_type,
        headers={"Content-Disposition": f'attachment; filename="{record.name}"'},
    )


@app.delete("/files/{file_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["workspace"])
async def delete_file(file_id: UUID, current_user: SessionUser = Depends(require_user())) -> Response:
    await _handle_file_delete(current_user, file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
