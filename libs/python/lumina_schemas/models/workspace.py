"""Workspace documents stored per user (files, folders, notes, team)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FileDoc(BaseModel):
    id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    size: int = Field(..., ge=0)
    content_type: str
    storage_path: str
    download_url: str
    folder_id: Optional[UUID] = None
    created_at: datetime


class FolderDoc(BaseModel):
    id: UUID
    name: str = Field(..., min_length=1, max_length=120)
    created_at: datetime


class NoteDoc(BaseModel):
    id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    content: str = ""
    created_at: datetime


class TeamMemberDoc(BaseModel):
    id: UUID
    name: str = Field(..., min_length=1, max_length=120)
    role: str = Field(default="Member", max_length=80)
    created_at: datetime
