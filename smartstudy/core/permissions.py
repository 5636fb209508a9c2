"""Request authentication, role checks and ownership checks.

Three postures are available to routes:

- no dependency: public;
- ``get_optional_user``: caller attached when a valid token is sent, any token
  problem is ignored and the request continues anonymously;
- ``get_current_user`` (and the role helpers built on it): request rejected
  with 401 unless a valid token for an active account is sent.
"""
import logging
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from smartstudy.core.exceptions import AuthenticationError, AuthorizationError, StudyPlatformError
from smartstudy.core.security import decode_token
from smartstudy.db.lookup import get_or_404, parse_uuid
from smartstudy.db.sessions import get_context, get_db
from smartstudy.models.user import STUDENT, TEACHER, User

logger = logging.getLogger("smartstudy.auth")

# JWT bearer token scheme; missing headers are reported by us, not by FastAPI
security = HTTPBearer(auto_error=False)


def _resolve_user(request: Request, token: str, db: Session) -> User:
    payload = decode_token(token, get_context(request).settings)

    user_id = parse_uuid(payload.get("sub"))
    if user_id is None:
        raise AuthenticationError("Invalid token. User not found.")

    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Invalid token. User not found.")

    if not user.is_active:
        raise AuthenticationError("Account has been deactivated.")

    request.state.user = user
    return user


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user from the JWT token.

    Usage:
        @router.get("/protected")
        def protected_route(current_user: User = Depends(get_current_user)):
            return {"user_id": current_user.id}
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access denied. No token provided.")
    return _resolve_user(request, credentials.credentials, db)


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like ``get_current_user`` but never fails."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return _resolve_user(request, credentials.credentials, db)
    except StudyPlatformError as exc:
        logger.debug("Ignoring bad token on optional-auth route: %s", exc.message)
        return None


def require_role(role: str) -> Callable[..., User]:
    """Dependency factory rejecting authenticated callers of any other role."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role != role:
            raise AuthorizationError(f"Access denied. {role.capitalize()} access required.")
        return current_user

    dependency.__name__ = f"require_{role}"
    return dependency


require_teacher = require_role(TEACHER)
require_student = require_role(STUDENT)


def owned_by_caller(
    model,
    owner_field: str,
    *,
    resource_name: str,
    message: str,
    user_dependency: Callable[..., User] = get_current_user,
    path_param: str = "id",
):
    """
    Dependency factory for "caller must own this resource".

    Resolves the resource from the ``path_param`` route parameter, compares
    ``resource.<owner_field>`` with the caller's id and returns the resource.
    Unknown ids give 404, a different owner gives 403.
    """

    def dependency(
        request: Request,
        current_user: User = Depends(user_dependency),
        db: Session = Depends(get_db),
    ):
        resource = get_or_404(db, model, request.path_params.get(path_param), resource_name)
        if getattr(resource, owner_field) != current_user.id:
            raise AuthorizationError(message)
        request.state.resource = resource
        return resource

    return dependency
