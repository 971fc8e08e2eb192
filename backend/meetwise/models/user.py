from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: Optional[str] = Field(default=None, index=True)
    role: str = Field(default="MEMBER")  # MEMBER|ADMIN
