"""
User API Routes

Sign-in happens with the identity provider in the browser; the client
then posts the provider profile here. The portal finds or creates the
user by uid and issues a signed session cookie.

Users are never hard-deleted: DELETE deactivates.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request, Response

from portal.core import PortalError
from portal.core.service import utc_now
from portal.observability import get_logger, get_metrics
from portal.schemas import (
    ApiResponse,
    Page,
    User,
    UserLogin,
    UserStats,
    UserUpdate,
    ok,
)
from portal.web.auth import (
    SessionUser,
    clear_session_cookie_response,
    set_session_cookie_response,
)
from portal.web.deps import get_service, get_session_user, http_error


router = APIRouter(prefix="/api/users", tags=["Users"])
logger = get_logger(__name__)


# ============================================================
# Auth Endpoints
# ============================================================

@router.post("/login", response_model=ApiResponse[User])
async def login(request: Request, response: Response, body: UserLogin):
    """
    Record a sign-in.

    Creates the user on first sight of the uid (201), otherwise refreshes
    name, email, image and last login (200). Sets the session cookie.
    """
    doc, created = get_service(request).login_user(body, utc_now())
    user = User.model_validate(doc)

    set_session_cookie_response(
        response,
        SessionUser(uid=user.uid, email=user.email, role=user.role.value),
    )
    get_metrics().record_login()
    if created:
        response.status_code = 201
        get_metrics().record_write()

    logger.info("User signed in", uid=user.uid, new_user=created)
    return ok(
        user,
        message="User created successfully" if created else "User updated successfully",
    )


@router.post("/logout", response_model=ApiResponse[None])
async def logout(response: Response):
    """Clear the session cookie."""
    clear_session_cookie_response(response)
    return ok(message="Logged out")


@router.get("/me", response_model=ApiResponse[User])
async def get_me(request: Request):
    """The signed-in user, read fresh from the store."""
    session = get_session_user(request)
    try:
        return ok(User.model_validate(get_service(request).get_user(session.uid)))
    except PortalError as e:
        raise http_error(e)


# ============================================================
# User Management
# ============================================================

@router.get("/stats/overview", response_model=ApiResponse[UserStats])
async def user_stats(request: Request):
    return ok(get_service(request).user_stats(utc_now()))


@router.get("", response_model=ApiResponse[Page[User]])
async def list_users(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
):
    """List users, newest first. Search covers name and email."""
    docs, total = get_service(request).list_users(
        page=page, limit=limit, search=search, is_active=is_active
    )
    return ok(Page.build([User.model_validate(d) for d in docs], total, page, limit))


@router.get("/{uid}", response_model=ApiResponse[User])
async def get_user(request: Request, uid: str):
    try:
        return ok(User.model_validate(get_service(request).get_user(uid)))
    except PortalError as e:
        raise http_error(e)


@router.put("/{uid}", response_model=ApiResponse[User])
async def update_user(request: Request, uid: str, body: UserUpdate):
    """Update name, email, image, role or active flag."""
    try:
        doc = get_service(request).update_user(uid, body)
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    return ok(User.model_validate(doc), message="User updated successfully")


@router.delete("/{uid}", response_model=ApiResponse[User])
async def deactivate_user(request: Request, uid: str):
    """Soft delete: the user is kept with isActive=false."""
    try:
        doc = get_service(request).deactivate_user(uid)
    except PortalError as e:
        raise http_error(e)
    get_metrics().record_write()
    logger.info("User deactivated", uid=uid)
    return ok(User.model_validate(doc), message="User deactivated successfully")
