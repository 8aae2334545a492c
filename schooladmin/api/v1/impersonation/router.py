from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth import impersonation
from schooladmin.auth.dependencies import (
    get_identity,
    get_identity_metadata_store,
    get_request_meta,
    require_actor_roles,
)
from schooladmin.auth.identity import IdentityMetadataStore
from schooladmin.auth.roles import RoleGroups
from schooladmin.auth.schemas import (
    IdentityClaims,
    ImpersonationContext,
    ImpersonationStatus,
    RequestMeta,
    ServiceContext,
)
from schooladmin.core.schemas import SuccessResponse
from schooladmin.db.session import get_db

from .schemas import (
    EndImpersonation,
    ExitResponse,
    ImpersonationSessionResponse,
    StartSchoolImpersonation,
    StartUserImpersonation,
)

router = APIRouter(prefix="/api/v1/impersonation", tags=["impersonation"])

# Impersonation is always decided on the caller's real role, never an impersonated one.
super_admin_only = require_actor_roles(RoleGroups.PLATFORM_ADMINS)


@router.post(
    "/start",
    response_model=SuccessResponse[ImpersonationContext],
    status_code=status.HTTP_201_CREATED,
)
async def start_user_impersonation(
    payload: StartUserImpersonation,
    admin: ServiceContext = Depends(super_admin_only),
    db: AsyncSession = Depends(get_db),
    store: IdentityMetadataStore = Depends(get_identity_metadata_store),
    meta: RequestMeta = Depends(get_request_meta),
) -> SuccessResponse[ImpersonationContext]:
    """Start acting as an APPROVED, non-SUPER_ADMIN user for up to 4 hours."""
    context = await impersonation.start_user_impersonation(
        db, store, admin, payload.target_user_id, meta
    )
    return SuccessResponse(data=context)


@router.post(
    "/school",
    response_model=SuccessResponse[ImpersonationContext],
    status_code=status.HTTP_201_CREATED,
)
async def start_school_impersonation(
    payload: StartSchoolImpersonation,
    admin: ServiceContext = Depends(super_admin_only),
    db: AsyncSession = Depends(get_db),
    store: IdentityMetadataStore = Depends(get_identity_metadata_store),
    meta: RequestMeta = Depends(get_request_meta),
) -> SuccessResponse[ImpersonationContext]:
    """Start acting as an ADMIN of a school."""
    context = await impersonation.start_school_impersonation(
        db, store, admin, payload.school_id, meta
    )
    return SuccessResponse(data=context)


@router.post("/end", response_model=SuccessResponse[ImpersonationStatus])
async def end_impersonation(
    payload: EndImpersonation,
    admin: ServiceContext = Depends(super_admin_only),
    db: AsyncSession = Depends(get_db),
    store: IdentityMetadataStore = Depends(get_identity_metadata_store),
    meta: RequestMeta = Depends(get_request_meta),
) -> SuccessResponse[ImpersonationStatus]:
    await impersonation.end_impersonation(db, store, admin, payload.session_id, meta)
    result = await impersonation.get_impersonation_status(db, store, admin.external_id)
    return SuccessResponse(data=result)


@router.post("/exit", response_model=SuccessResponse[ExitResponse])
async def exit_impersonation(
    admin: ServiceContext = Depends(super_admin_only),
    db: AsyncSession = Depends(get_db),
    store: IdentityMetadataStore = Depends(get_identity_metadata_store),
    meta: RequestMeta = Depends(get_request_meta),
) -> SuccessResponse[ExitResponse]:
    """End the current session, if any. Safe to call repeatedly."""
    ended = await impersonation.exit_impersonation(db, store, admin, meta)
    return SuccessResponse(data=ExitResponse(ended=ended))


@router.get("/status", response_model=SuccessResponse[ImpersonationStatus])
async def impersonation_status(
    identity: IdentityClaims = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    store: IdentityMetadataStore = Depends(get_identity_metadata_store),
) -> SuccessResponse[ImpersonationStatus]:
    result = await impersonation.get_impersonation_status(db, store, identity.subject)
    return SuccessResponse(data=result)


@router.get("/history", response_model=SuccessResponse[List[ImpersonationSessionResponse]])
async def impersonation_history(
    admin_id: Optional[UUID] = Query(None, description="Only sessions started by this admin"),
    admin: ServiceContext = Depends(super_admin_only),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse[List[ImpersonationSessionResponse]]:
    sessions = await impersonation.list_impersonation_history(db, admin_id)
    return SuccessResponse(
        data=[ImpersonationSessionResponse.model_validate(s) for s in sessions]
    )
