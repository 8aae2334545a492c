from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth import approval
from schooladmin.auth.dependencies import get_current_user, get_identity, require_roles
from schooladmin.auth.models import User
from schooladmin.auth.roles import RoleGroups, is_super_admin
from schooladmin.auth.schemas import IdentityClaims, ServiceContext
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import (
    ApprovalStatus,
    CancelRequest,
    MeResponse,
    MessageResponse,
    PendingRequestResponse,
    ProvisionResponse,
    SchoolSummary,
    TransitionRequest,
    UserProvisionRequest,
    UserResponse,
)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


def _user(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


# ----- Self-service -----

@router.post(
    "/provision",
    response_model=SuccessResponse[ProvisionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def provision_user(
    payload: UserProvisionRequest,
    identity: IdentityClaims = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[ProvisionResponse]:
    """Create the caller's user record after identity-provider sign-up. Starts PENDING."""
    if is_super_admin(payload.role):
        raise ServiceError(
            ErrorKind.AUTHORIZATION, "Super Administrator accounts cannot be self-provisioned"
        )
    result = await approval.create_user_with_approval(
        db,
        external_id=identity.subject,
        email=identity.email or payload.email,
        role=payload.role,
        school_id=payload.school_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return SuccessResponse(
        data=ProvisionResponse(
            user=_user(result.user),
            was_auto_approved=result.was_auto_approved,
            message=result.message,
        )
    )


@router.get("/me", response_model=SuccessResponse[MeResponse])
async def get_me(user: User = Depends(get_current_user)) -> SuccessResponse[MeResponse]:
    """Own profile plus approval status (works for pending, rejected and suspended users)."""
    return SuccessResponse(
        data=MeResponse(
            user=_user(user),
            approval=ApprovalStatus(**approval.check_approval_status(user)),
        )
    )


@router.get("/me/pending-request", response_model=SuccessResponse[PendingRequestResponse])
async def get_pending_request(
    identity: IdentityClaims = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[PendingRequestResponse]:
    """Own PENDING or REJECTED access request; polled by the waiting-approval page."""
    user = await approval.get_pending_request(db, identity.subject)
    return SuccessResponse(
        data=PendingRequestResponse(
            id=user.id,
            role=user.role,
            status=user.status,
            school=SchoolSummary.model_validate(user.school) if user.school else None,
            requested_at=user.created_at,
        )
    )


@router.post("/me/cancel-request", response_model=SuccessResponse[MessageResponse])
async def cancel_pending_request(
    payload: CancelRequest,
    identity: IdentityClaims = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[MessageResponse]:
    """Withdraw own pending access request. Deletes the user record."""
    await approval.cancel_pending_request(db, identity.subject, payload.user_id)
    return SuccessResponse(data=MessageResponse(message="Access request cancelled successfully"))


# ----- Approval workflow -----

@router.get("/pending", response_model=SuccessResponse[List[UserResponse]])
async def list_pending_users(
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[UserResponse]]:
    """Pending users: all of them for SUPER_ADMIN, own school otherwise."""
    users = await approval.list_pending_users(db, context)
    return SuccessResponse(data=[_user(u) for u in users])


@router.post("/{user_id}/approve", response_model=SuccessResponse[UserResponse])
async def approve_user(
    user_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[UserResponse]:
    user = await approval.approve_user(db, user_id, context)
    return SuccessResponse(data=_user(user))


@router.post("/{user_id}/reject", response_model=SuccessResponse[UserResponse])
async def reject_user(
    user_id: UUID,
    payload: Optional[TransitionRequest] = None,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[UserResponse]:
    reason = payload.reason if payload else None
    user = await approval.reject_user(db, user_id, context, reason=reason)
    return SuccessResponse(data=_user(user))


@router.post("/{user_id}/suspend", response_model=SuccessResponse[UserResponse])
async def suspend_user(
    user_id: UUID,
    payload: Optional[TransitionRequest] = None,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[UserResponse]:
    reason = payload.reason if payload else None
    user = await approval.suspend_user(db, user_id, context, reason=reason)
    return SuccessResponse(data=_user(user))


@router.post("/{user_id}/reactivate", response_model=SuccessResponse[UserResponse])
async def reactivate_user(
    user_id: UUID,
    context: ServiceContext = Depends(require_roles(RoleGroups.SCHOOL_ADMINS)),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[UserResponse]:
    user = await approval.reactivate_user(db, user_id, context)
    return SuccessResponse(data=_user(user))
