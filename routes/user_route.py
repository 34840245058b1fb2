"""FastAPI routes for user registration and personal statistics."""

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from controllers.user_controller import get_me, my_annotations, my_stats, register_user
from utils.http_errors import call_controller

router = APIRouter(prefix="/users", tags=["users"])


class RegisterPayload(BaseModel):
    username: str
    role: str = "annotator"
    institution: str = ""
    verification_code: Optional[str] = None


@router.post("", status_code=201)
async def register_route(request: Request, payload: RegisterPayload):
    return await call_controller(
        register_user(request, payload.username, payload.role, payload.institution, payload.verification_code)
    )


@router.get("/me")
async def me_route(request: Request):
    return await call_controller(get_me(request))


@router.get("/me/stats")
async def my_stats_route(request: Request):
    return await call_controller(my_stats(request))


@router.get("/me/annotations")
async def my_annotations_route(request: Request):
    return await call_controller(my_annotations(request))
