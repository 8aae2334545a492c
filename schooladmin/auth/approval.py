"""
User approval lifecycle.

New users start PENDING (SUPER_ADMIN is auto-approved). Status then moves only
along the edges in TRANSITIONS; each transition is one conditional UPDATE plus
one audit row, committed together.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.models import User
from schooladmin.auth.roles import is_super_admin, validate_super_admin_constraints
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.audit_service import log_audit
from schooladmin.core.enums import Role, SchoolStatus, UserStatus
from schooladmin.core.exceptions import ErrorKind, ServiceError
from schooladmin.core.models import School

logger = logging.getLogger(__name__)

USER_ENTITY = "USER"


# ----- Permission predicates -----

def _same_school_rule(verb: str) -> Callable[[ServiceContext, User], None]:
    """SUPER_ADMIN may act on anyone; others only on non-SUPER_ADMIN users of their school."""

    def _check(actor: ServiceContext, target: User) -> None:
        if is_super_admin(actor.role):
            return
        if is_super_admin(target.role):
            raise ServiceError(
                ErrorKind.AUTHORIZATION, f"You cannot {verb} Super Administrator users"
            )
        if target.school_id != actor.school_id:
            raise ServiceError(
                ErrorKind.AUTHORIZATION, f"You can only {verb} users in your school"
            )

    return _check


# ----- Transition table -----

@dataclass(frozen=True)
class Transition:
    action: str
    verb: str
    from_status: UserStatus
    to_status: UserStatus
    check_permission: Callable[[ServiceContext, User], None]
    changes: Callable[[ServiceContext, datetime], dict]
    describe: str


TRANSITIONS: Dict[str, Transition] = {
    "approve": Transition(
        action="APPROVE_USER",
        verb="approve",
        from_status=UserStatus.PENDING,
        to_status=UserStatus.APPROVED,
        check_permission=_same_school_rule("approve"),
        changes=lambda actor, now: {"approved_at": now, "approved_by_id": actor.user_id},
        describe="Approved",
    ),
    "reject": Transition(
        action="REJECT_USER",
        verb="reject",
        from_status=UserStatus.PENDING,
        to_status=UserStatus.REJECTED,
        check_permission=_same_school_rule("reject"),
        changes=lambda actor, now: {"approved_by_id": actor.user_id},
        describe="Rejected",
    ),
    "suspend": Transition(
        action="SUSPEND_USER",
        verb="suspend",
        from_status=UserStatus.APPROVED,
        to_status=UserStatus.SUSPENDED,
        check_permission=_same_school_rule("suspend"),
        changes=lambda actor, now: {"is_active": False},
        describe="Suspended",
    ),
    "reactivate": Transition(
        action="REACTIVATE_USER",
        verb="reactivate",
        from_status=UserStatus.SUSPENDED,
        to_status=UserStatus.APPROVED,
        check_permission=_same_school_rule("reactivate"),
        changes=lambda actor, now: {"is_active": True},
        describe="Reactivated",
    ),
}


async def apply_transition(
    db: AsyncSession,
    name: str,
    target_user_id: UUID,
    actor: ServiceContext,
    reason: Optional[str] = None,
) -> User:
    """Run one named transition for target_user_id on behalf of actor."""
    transition = TRANSITIONS[name]

    user = await db.get(User, target_user_id)
    if not user:
        raise ServiceError(ErrorKind.NOT_FOUND, "User not found")

    if user.status != transition.from_status.value:
        logger.warning(
            "Refused %s of user %s: status is %s", name, target_user_id, user.status
        )
        raise ServiceError(
            ErrorKind.CONFLICT,
            f"User cannot be {transition.verb}d. Current status: {user.status}",
        )

    try:
        transition.check_permission(actor, user)
    except ServiceError:
        logger.warning(
            "Refused %s of user %s by %s (%s)", name, target_user_id, actor.user_id, actor.role.value
        )
        raise

    now = datetime.now(timezone.utc)
    values = {"status": transition.to_status.value, "updated_at": now}
    values.update(transition.changes(actor, now))

    # Only rows still in the expected state are updated, so two racing
    # requests cannot both transition the same user.
    result = await db.execute(
        update(User)
        .where(User.id == target_user_id, User.status == transition.from_status.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise ServiceError(
            ErrorKind.CONFLICT, "User status was changed by another request. Please retry."
        )

    details = f"{transition.describe} user {user.email}"
    if reason:
        details = f"{details}: {reason}"
    log_audit(
        db,
        transition.action,
        USER_ENTITY,
        user.id,
        user_id=actor.user_id,
        school_id=user.school_id,
        details=details,
    )
    await db.commit()
    await db.refresh(user)
    logger.info(
        "%s user %s (%s -> %s) by %s",
        transition.action,
        user.id,
        transition.from_status.value,
        transition.to_status.value,
        actor.user_id,
    )
    return user


async def approve_user(db: AsyncSession, target_user_id: UUID, actor: ServiceContext) -> User:
    return await apply_transition(db, "approve", target_user_id, actor)


async def reject_user(
    db: AsyncSession, target_user_id: UUID, actor: ServiceContext, reason: Optional[str] = None
) -> User:
    return await apply_transition(db, "reject", target_user_id, actor, reason=reason)


async def suspend_user(
    db: AsyncSession, target_user_id: UUID, actor: ServiceContext, reason: Optional[str] = None
) -> User:
    return await apply_transition(db, "suspend", target_user_id, actor, reason=reason)


async def reactivate_user(db: AsyncSession, target_user_id: UUID, actor: ServiceContext) -> User:
    return await apply_transition(db, "reactivate", target_user_id, actor)


# ----- Provisioning -----

@dataclass
class ProvisionResult:
    user: User
    was_auto_approved: bool
    message: str


def determine_initial_status(role: Role) -> UserStatus:
    if is_super_admin(role):
        return UserStatus.APPROVED
    return UserStatus.PENDING


async def create_user_with_approval(
    db: AsyncSession,
    *,
    external_id: str,
    email: str,
    role: Role,
    school_id: Optional[UUID] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> ProvisionResult:
    """Create a user mirroring an identity-provider account. SUPER_ADMIN is auto-approved."""
    validate_super_admin_constraints(role, school_id)

    existing = (
        await db.execute(
            select(User.id)
            .where((User.external_id == external_id) | (User.email == email))
            .limit(1)
        )
    ).scalars().first()
    if existing:
        raise ServiceError(ErrorKind.CONFLICT, "A user with this identity or email already exists")

    if school_id is not None:
        school = await db.get(School, school_id)
        if not school:
            raise ServiceError(ErrorKind.NOT_FOUND, "School not found")
        if school.status == SchoolStatus.SUSPENDED.value:
            raise ServiceError(
                ErrorKind.CONFLICT,
                "School is currently suspended and not accepting new access requests",
            )

    initial_status = determine_initial_status(role)
    was_auto_approved = initial_status == UserStatus.APPROVED
    user = User(
        external_id=external_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=Role(role).value,
        school_id=school_id,
        status=initial_status.value,
        approved_at=datetime.now(timezone.utc) if was_auto_approved else None,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    if was_auto_approved:
        log_audit(
            db,
            "AUTO_APPROVE_USER",
            USER_ENTITY,
            user.id,
            user_id=user.id,
            details=f"SUPER_ADMIN user {email} was automatically approved",
        )
    await db.commit()
    await db.refresh(user)
    logger.info("Provisioned user %s role=%s status=%s", user.id, user.role, user.status)

    return ProvisionResult(
        user=user,
        was_auto_approved=was_auto_approved,
        message=(
            "SUPER_ADMIN user automatically approved"
            if was_auto_approved
            else "User created with PENDING status, awaiting approval"
        ),
    )


# ----- Queries and checks -----

async def list_pending_users(db: AsyncSession, context: ServiceContext) -> List[User]:
    """SUPER_ADMIN sees every pending user; others only those of their school."""
    stmt = select(User).where(User.status == UserStatus.PENDING.value)
    if not is_super_admin(context.role):
        stmt = stmt.where(User.school_id == context.school_id)
    stmt = stmt.order_by(User.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_user_by_external_id(db: AsyncSession, external_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.external_id == external_id))
    return result.scalar_one_or_none()


def is_user_approved(user: User) -> bool:
    return user.status == UserStatus.APPROVED.value and bool(user.is_active)


PENDING_MESSAGE = (
    "Your account is pending approval. Please wait for an administrator to approve your access."
)
REJECTED_MESSAGE = "Your account registration has been rejected."
SUSPENDED_MESSAGE = "Your account has been suspended. Please contact an administrator."
INACTIVE_MESSAGE = "Your account is inactive."


def _not_approved_message(user: User) -> Optional[str]:
    if is_user_approved(user):
        return None
    if user.status == UserStatus.PENDING.value:
        return PENDING_MESSAGE
    if user.status == UserStatus.REJECTED.value:
        return REJECTED_MESSAGE
    if user.status == UserStatus.SUSPENDED.value:
        return SUSPENDED_MESSAGE
    return INACTIVE_MESSAGE


def require_approved(user: User) -> None:
    message = _not_approved_message(user)
    if message:
        raise ServiceError(ErrorKind.AUTHORIZATION, message)


def check_approval_status(user: User) -> dict:
    """Non-raising form of require_approved, for status pages."""
    message = _not_approved_message(user)
    return {
        "is_approved": message is None,
        "status": user.status,
        "message": message,
    }


# ----- Self-service on a pending request -----

async def get_pending_request(db: AsyncSession, external_id: str) -> User:
    """The caller's own PENDING or REJECTED access request."""
    result = await db.execute(
        select(User).where(
            User.external_id == external_id,
            User.status.in_([UserStatus.PENDING.value, UserStatus.REJECTED.value]),
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise ServiceError(ErrorKind.NOT_FOUND, "No pending request found")
    return user


async def cancel_pending_request(db: AsyncSession, external_id: str, user_id: UUID) -> None:
    """Delete the caller's own PENDING user record; the audit row outlives it."""
    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.external_id == external_id,
            User.status == UserStatus.PENDING.value,
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise ServiceError(ErrorKind.NOT_FOUND, "Pending request not found or already processed")

    log_audit(
        db,
        "CANCEL_ACCESS_REQUEST",
        USER_ENTITY,
        user.id,
        user_id=user.id,
        school_id=user.school_id,
        details=f"User {user.email} cancelled their access request",
    )
    await db.delete(user)
    await db.commit()
    logger.info("User %s cancelled their access request", user_id)
