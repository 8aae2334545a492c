import uuid

import pytest

from schooladmin.auth.roles import (
    ROLE_HIERARCHY,
    RoleGroups,
    can_access_school_resource,
    has_role,
    rank,
    require_minimum_role,
    require_role,
    require_school_access,
    require_school_context,
    validate_super_admin_constraints,
)
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.enums import Role
from schooladmin.core.exceptions import ErrorKind, ServiceError


def _ctx(role: Role, school_id=None) -> ServiceContext:
    return ServiceContext(
        user_id=uuid.uuid4(), external_id="idp_x", role=role, school_id=school_id
    )


def test_rank_orders_roles_by_privilege() -> None:
    assert [rank(r) for r in ROLE_HIERARCHY] == [0, 1, 2, 3, 4, 5]
    assert rank("SUPER_ADMIN") == 0
    assert rank(Role.STUDENT) == 5


def test_has_role_is_reflexive_and_follows_rank() -> None:
    for role in Role:
        assert has_role(role, role)
    assert has_role(Role.SUPER_ADMIN, Role.STUDENT)
    assert has_role(Role.ADMIN, Role.TEACHER)
    assert not has_role(Role.TEACHER, Role.ADMIN)
    assert not has_role(Role.STUDENT, Role.PARENT)


def test_require_role_is_membership_not_rank() -> None:
    with pytest.raises(ServiceError) as exc:
        require_role(_ctx(Role.SUPER_ADMIN), [Role.ADMIN])
    assert exc.value.kind == ErrorKind.AUTHORIZATION
    assert exc.value.status_code == 403
    assert "Required role(s): ADMIN" in exc.value.message
    assert "Your role: SUPER_ADMIN" in exc.value.message

    require_role(_ctx(Role.ADMIN), RoleGroups.SCHOOL_ADMINS)


def test_require_role_without_user() -> None:
    with pytest.raises(ServiceError) as exc:
        require_role(None, RoleGroups.ALL_USERS)
    assert exc.value.kind == ErrorKind.AUTHORIZATION
    assert exc.value.message == "Authentication required"


def test_require_minimum_role() -> None:
    require_minimum_role(_ctx(Role.SUPER_ADMIN), Role.ADMIN)
    require_minimum_role(_ctx(Role.TEACHER), Role.TEACHER)
    with pytest.raises(ServiceError) as exc:
        require_minimum_role(_ctx(Role.PARENT), Role.ACCOUNTANT)
    assert exc.value.kind == ErrorKind.AUTHORIZATION
    assert "Minimum required role: ACCOUNTANT" in exc.value.message


def test_school_access() -> None:
    school_a, school_b = uuid.uuid4(), uuid.uuid4()

    assert can_access_school_resource(_ctx(Role.SUPER_ADMIN), school_a)
    assert can_access_school_resource(_ctx(Role.ADMIN, school_a), school_a)
    assert not can_access_school_resource(_ctx(Role.ADMIN, school_a), school_b)
    assert not can_access_school_resource(_ctx(Role.TEACHER, None), school_a)

    with pytest.raises(ServiceError) as exc:
        require_school_access(_ctx(Role.TEACHER, school_a), school_b)
    assert exc.value.kind == ErrorKind.AUTHORIZATION
    assert exc.value.message == "You do not have access to this school's resources"


def test_super_admin_school_constraints() -> None:
    validate_super_admin_constraints(Role.SUPER_ADMIN, None)
    validate_super_admin_constraints(Role.STUDENT, uuid.uuid4())

    with pytest.raises(ServiceError) as exc:
        validate_super_admin_constraints(Role.SUPER_ADMIN, uuid.uuid4())
    assert exc.value.kind == ErrorKind.VALIDATION

    with pytest.raises(ServiceError) as exc:
        validate_super_admin_constraints(Role.TEACHER, None)
    assert exc.value.kind == ErrorKind.VALIDATION
    assert exc.value.status_code == 400


def test_role_groups() -> None:
    assert RoleGroups.PLATFORM_ADMINS == (Role.SUPER_ADMIN,)
    assert Role.STUDENT not in RoleGroups.NON_STUDENTS
    assert Role.ACCOUNTANT in RoleGroups.FINANCIAL_STAFF
    assert Role.TEACHER not in RoleGroups.FINANCIAL_STAFF
    assert set(RoleGroups.ALL_USERS) == set(Role)


def test_require_school_context() -> None:
    require_school_context(_ctx(Role.TEACHER, uuid.uuid4()))
    with pytest.raises(ServiceError) as exc:
        require_school_context(_ctx(Role.SUPER_ADMIN))
    assert exc.value.kind == ErrorKind.AUTHORIZATION
