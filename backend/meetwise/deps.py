from __future__ import annotations

from typing import Iterator, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlmodel import Session

from meetwise.config import Settings
from meetwise.models.user import User
from meetwise.repositories.users import UsersRepository
from meetwise.services.llm_gateway import LlmGateway
from meetwise.services.notification_dispatcher import Dispatcher


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> LlmGateway:
    return request.app.state.gateway


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
) -> User:
    # Identity comes from the upstream session layer as a plain user id
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = UsersRepository(session).get(int(x_user_id.strip()))
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
