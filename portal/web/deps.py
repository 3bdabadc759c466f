"""
Dependency injection for API routes.

The store lives on app.state; routes get a PortalService bound to it and
a single "today" sampled once per request.
"""

from datetime import date

from fastapi import HTTPException, Request

from portal.core import ConflictError, NotFoundError, PortalError, PortalService
from portal.core.clock import today
from portal.web.auth import SESSION_COOKIE, SessionUser, read_session_cookie


def get_service(request: Request) -> PortalService:
    """PortalService over the application's document store."""
    return PortalService(request.app.state.store)


def get_today() -> date:
    """Current calendar date in the portal zone, sampled once per request."""
    return today()


def get_session_user(request: Request) -> SessionUser:
    """Get the current session user from cookie."""
    user = read_session_cookie(request.cookies.get(SESSION_COOKIE))
    if not user:
        raise HTTPException(status_code=401, detail="Not logged in")
    return user


def http_error(e: PortalError) -> HTTPException:
    """Translate a portal rule violation into an HTTP error."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
