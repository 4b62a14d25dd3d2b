from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from chatroom.session import ChatSessionHandler


router = APIRouter()


class OnlineUsersResponse(BaseModel):
    users: list[str] = Field(..., description="Named users currently online, alphabetical")
    count: int
    connections: int = Field(..., description="Open connections, including anonymous ones")


@router.get("/api/users")
def get_users(request: Request) -> OnlineUsersResponse:
    handler: ChatSessionHandler = request.app.state.chat
    users = handler.online_users()
    return OnlineUsersResponse(users=users, count=len(users), connections=handler.connection_count())
