from typing import Optional, Sequence

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.approval import get_user_by_external_id, require_approved
from schooladmin.auth.identity import IdentityMetadataStore, verify_identity_token
from schooladmin.auth.impersonation import get_active_impersonation
from schooladmin.auth.models import User
from schooladmin.auth.roles import is_super_admin, require_role
from schooladmin.auth.schemas import IdentityClaims, RequestMeta, ServiceContext
from schooladmin.core.enums import Role
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.db.session import get_db

bearer_scheme = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> IdentityClaims:
    """Verified identity-provider subject for this request."""
    if credentials is None or not credentials.credentials:
        raise ServiceError(ErrorKind.AUTHENTICATION, "Not authenticated")
    return verify_identity_token(credentials.credentials)


def get_identity_metadata_store(request: Request) -> IdentityMetadataStore:
    return request.app.state.identity_metadata


def get_request_meta(request: Request) -> RequestMeta:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = (
        (forwarded.split(",")[0].strip() if forwarded else None)
        or request.headers.get("x-real-ip")
        or (request.client.host if request.client else None)
        or "unknown"
    )
    return RequestMeta(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent") or "unknown",
    )


async def get_current_user(
    identity: IdentityClaims = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Persisted user for the caller, whatever its approval status."""
    user = await get_user_by_external_id(db, identity.subject)
    if not user:
        raise ServiceError(
            ErrorKind.AUTHENTICATION, "User account not found. Complete sign-up first."
        )
    return user


async def get_approved_user(user: User = Depends(get_current_user)) -> User:
    require_approved(user)
    return user


def _context_for(user: User) -> ServiceContext:
    return ServiceContext(
        user_id=user.id,
        external_id=user.external_id,
        role=Role(user.role),
        school_id=user.school_id,
    )


async def get_actor_context(user: User = Depends(get_approved_user)) -> ServiceContext:
    """The caller's own role and school, ignoring any impersonation."""
    return _context_for(user)


async def get_service_context(
    user: User = Depends(get_approved_user),
    db: AsyncSession = Depends(get_db),
    store: IdentityMetadataStore = Depends(get_identity_metadata_store),
) -> ServiceContext:
    """Effective context: a SUPER_ADMIN with an active impersonation takes the target's role and school."""
    context = _context_for(user)
    if not is_super_admin(user.role):
        return context
    impersonation = await get_active_impersonation(db, store, user.external_id)
    if impersonation is None:
        return context
    return context.model_copy(
        update={
            "role": impersonation.target_role,
            "school_id": impersonation.target_school_id,
            "impersonation_session_id": impersonation.session_id,
        }
    )


def require_roles(allowed_roles: Sequence[Role]):
    """
    Dependency factory gating a route on the effective role.

    Example:
        Depends(require_roles(RoleGroups.SCHOOL_ADMINS))
    """

    async def _checker(context: ServiceContext = Depends(get_service_context)) -> ServiceContext:
        require_role(context, allowed_roles)
        return context

    return _checker


def require_actor_roles(allowed_roles: Sequence[Role]):
    """Like require_roles, but on the caller's real role."""

    async def _checker(context: ServiceContext = Depends(get_actor_context)) -> ServiceContext:
        require_role(context, allowed_roles)
        return context

    return _checker
