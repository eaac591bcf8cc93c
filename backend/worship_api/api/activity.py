"""Client-reported activity (button actions, page visits)"""
from fastapi import APIRouter, Depends, Request, status

from worship_api.api.deps import authenticate_request, get_client_ip, get_container
from worship_api.container import ServiceContainer
from worship_api.schemas.audit import ActionRequest, PageAccessRequest
from worship_api.services.session import AuthenticatedUser
from worship_api.utils.errors import AppError, ErrorCode

router = APIRouter(prefix="/api/activity", tags=["activity"])

MAX_ACTION_LENGTH = 180
MAX_PATH_LENGTH = 120


@router.post("/action", status_code=status.HTTP_201_CREATED)
async def record_action(
    payload: ActionRequest,
    request: Request,
    user: AuthenticatedUser = Depends(authenticate_request),
    container: ServiceContainer = Depends(get_container),
):
    action = (payload.action or "").strip()[:MAX_ACTION_LENGTH]
    if not action:
        raise AppError(ErrorCode.MISSING_ACTION, "Action is required.")

    await container.audit.record_user_action(user.username, action, get_client_ip(request))
    return {"ok": True}


@router.post("/page-access", status_code=status.HTTP_201_CREATED)
async def record_page_access(
    payload: PageAccessRequest,
    request: Request,
    user: AuthenticatedUser = Depends(authenticate_request),
    container: ServiceContainer = Depends(get_container),
):
    path = (payload.path or "").strip()[:MAX_PATH_LENGTH]
    if not path:
        raise AppError(ErrorCode.MISSING_PATH, "Path is required.")

    await container.audit.record_user_action(user.username, f"page_access:{path}", get_client_ip(request))
    return {"ok": True}
