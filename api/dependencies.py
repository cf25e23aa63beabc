"""FastAPI dependencies for dependency injection."""

from typing import Optional
from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.abuse_control import AbuseControl
from core.config import settings
from core.security import AuthenticationError, verify_jwt_token
from database.engine import get_db
from database.models.users import User


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to an active user who accepted their invitation.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Authentication required")

    try:
        payload = verify_jwt_token(credentials.credentials)
    except AuthenticationError as e:
        raise _unauthorized(str(e))

    user = await db.get(User, payload.user_id)
    if user is None or not user.is_active or not user.invitation_accepted:
        raise _unauthorized("Invalid token")
    return user


async def get_company_scope(
    current_user: User = Depends(get_current_user),
    x_company_id: Optional[int] = Header(None, alias="X-Company-Id"),
) -> Optional[int]:
    """
    Company the request operates on.

    Regular users always act on their own company. Super admins may pick one
    with `X-Company-Id`; without it they fall back to their own company, or
    None for platform-wide access.
    """
    if current_user.is_super_admin:
        return x_company_id if x_company_id is not None else current_user.company_id

    if current_user.company_id is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User has no company assigned",
        )
    return current_user.company_id


async def require_company_scope(
    company_id: Optional[int] = Depends(get_company_scope),
) -> int:
    """Company scope for endpoints that cannot run platform-wide."""
    if company_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Company could not be determined; send X-Company-Id",
        )
    return company_id


async def require_report_viewer(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reports are limited to admins, HR admins and super admins."""
    if not current_user.can_view_reports:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to view reports",
        )
    return current_user


async def get_report_scope(
    company_id: Optional[int] = Query(None, description="Company to report on (super admins only)"),
    current_user: User = Depends(require_report_viewer),
    scope: Optional[int] = Depends(get_company_scope),
) -> Optional[int]:
    """
    Company a report is computed for; None means platform-wide.

    A non-super-admin asking for another company is refused.
    """
    if current_user.is_super_admin:
        return company_id if company_id is not None else scope

    if company_id is not None and company_id != scope:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot view reports of another company",
        )
    return scope


def get_abuse_control(request: Request) -> AbuseControl:
    """Abuse control shared by the process, created on first use."""
    abuse_control = getattr(request.app.state, "abuse_control", None)
    if abuse_control is None:
        abuse_control = AbuseControl.from_settings(settings)
        request.app.state.abuse_control = abuse_control
    return abuse_control
