"""
jsonhttp — Example routes
    GET  /users   list users
    POST /users   echo a valid User back with 201
"""

import structlog
from pydantic import BaseModel

from .models import Method, Request
from .response import Response

log = structlog.get_logger()


class User(BaseModel):
    id: int
    name: str


USERS: list[User] = [
    User(id=1, name="Alice"),
    User(id=2, name="Bob"),
]


# ── Route handlers ────────────────────────────────────────────────────────────

def list_users(request: Request) -> Response:
    return Response(200).json([u.model_dump() for u in USERS])


def create_user(request: Request) -> Response:
    user = request.get_json(User)
    if user is None:
        log.info("jsonhttp.invalid_json", route=request.route, body_length=len(request.body))
        return Response(400).json("Invalid JSON")
    return Response(201).json(user)


# ── Router ────────────────────────────────────────────────────────────────────

_ROUTES = {
    (Method.GET, "/users"): list_users,
    (Method.POST, "/users"): create_user,
}


def dispatch(request: Request) -> Response:
    handler = _ROUTES.get((request.method, request.route))
    if handler is None:
        return Response(404).json("Not Found")
    return handler(request)
