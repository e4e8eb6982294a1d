"""Pydantic schemas for broadcast groups."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    member_ids: list[str] = Field(default_factory=list)


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class GroupRead(BaseModel):
    id: UUID
    owner_id: str
    name: str
    description: Optional[str] = None
    member_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GroupMemberRead(BaseModel):
    member_id: str
    added_at: datetime

    model_config = {"from_attributes": True}


class GroupMembersAdd(BaseModel):
    member_ids: list[str] = Field(min_length=1)


class GroupMembersAdded(BaseModel):
    added: list[str]
    skipped: list[str]
