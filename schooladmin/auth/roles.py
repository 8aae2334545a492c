"""
Role hierarchy checks. Pure functions, no I/O.

Lower rank means more privilege: SUPER_ADMIN is 0, STUDENT is 5.
"""

from typing import Optional, Sequence, Union
from uuid import UUID

from schooladmin.core.enums import Role
from schooladmin.core.exceptions import ErrorKind, ServiceError

ROLE_HIERARCHY = (
    Role.SUPER_ADMIN,
    Role.ADMIN,
    Role.TEACHER,
    Role.ACCOUNTANT,
    Role.PARENT,
    Role.STUDENT,
)


class RoleGroups:
    """Predefined role sets for common permission patterns."""

    PLATFORM_ADMINS = (Role.SUPER_ADMIN,)
    SCHOOL_ADMINS = (Role.SUPER_ADMIN, Role.ADMIN)
    ACADEMIC_STAFF = (Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER)
    FINANCIAL_STAFF = (Role.SUPER_ADMIN, Role.ADMIN, Role.ACCOUNTANT)
    ALL_STAFF = (Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER, Role.ACCOUNTANT)
    NON_STUDENTS = (Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER, Role.ACCOUNTANT, Role.PARENT)
    ALL_USERS = ROLE_HIERARCHY


def rank(role: Union[Role, str]) -> int:
    return ROLE_HIERARCHY.index(Role(role))


def has_role(user_role: Union[Role, str], minimum_role: Union[Role, str]) -> bool:
    """True if user_role is minimum_role or more privileged."""
    return rank(user_role) <= rank(minimum_role)


def is_super_admin(role: Union[Role, str, None]) -> bool:
    return role is not None and Role(role) == Role.SUPER_ADMIN


def require_role(user, allowed_roles: Sequence[Role]) -> None:
    """
    Require user.role to be literally one of allowed_roles.

    Membership, not rank: a SUPER_ADMIN is refused when only ADMIN is listed.
    """
    if user is None:
        raise ServiceError(ErrorKind.AUTHORIZATION, "Authentication required")
    allowed = {Role(r) for r in allowed_roles}
    if Role(user.role) not in allowed:
        names = ", ".join(Role(r).value for r in allowed_roles)
        raise ServiceError(
            ErrorKind.AUTHORIZATION,
            f"Access denied. Required role(s): {names}. Your role: {Role(user.role).value}",
        )


def require_minimum_role(user, minimum_role: Role) -> None:
    if user is None:
        raise ServiceError(ErrorKind.AUTHORIZATION, "Authentication required")
    if not has_role(user.role, minimum_role):
        raise ServiceError(
            ErrorKind.AUTHORIZATION,
            f"Access denied. Minimum required role: {Role(minimum_role).value}. "
            f"Your role: {Role(user.role).value}",
        )


def require_school_context(context) -> None:
    if not context.school_id:
        raise ServiceError(ErrorKind.AUTHORIZATION, "User must be associated with a school")


def can_access_school_resource(context, resource_school_id: Optional[UUID]) -> bool:
    if is_super_admin(context.role):
        return True
    return context.school_id == resource_school_id


def require_school_access(context, resource_school_id: Optional[UUID]) -> None:
    if not can_access_school_resource(context, resource_school_id):
        raise ServiceError(
            ErrorKind.AUTHORIZATION, "You do not have access to this school's resources"
        )


def validate_super_admin_constraints(role: Union[Role, str], school_id: Optional[UUID]) -> None:
    """SUPER_ADMIN never belongs to a school; every other role must."""
    if is_super_admin(role):
        if school_id is not None:
            raise ServiceError(
                ErrorKind.VALIDATION,
                "Cannot assign school to SUPER_ADMIN. SUPER_ADMIN users must have no school.",
            )
    elif school_id is None:
        raise ServiceError(ErrorKind.VALIDATION, f"A school is required for role {Role(role).value}")
