import pytest
from httpx import AsyncClient
from sqlalchemy import select

from schooladmin.core.enums import Role
from schooladmin.core.models import AuditLog, School


@pytest.mark.asyncio
async def test_super_admin_creates_school(
    client: AsyncClient, db_session, make_user, auth_headers
) -> None:
    super_admin = await make_user(Role.SUPER_ADMIN)
    payload = {
        "name": "Maple Leaf School",
        "slug": "maple-leaf",
        "email": "office@mapleleaf.example.com",
    }

    response = await client.post("/api/v1/schools", json=payload, headers=auth_headers(super_admin))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["slug"] == "maple-leaf"
    assert data["status"] == "ACTIVE"

    school = (
        await db_session.execute(select(School).where(School.slug == "maple-leaf"))
    ).scalar_one()
    audit = (
        await db_session.execute(select(AuditLog).where(AuditLog.entity_id == school.id))
    ).scalar_one()
    assert audit.action == "CREATE_SCHOOL"
    assert audit.user_id == super_admin.id


@pytest.mark.asyncio
async def test_duplicate_slug_conflicts(
    client: AsyncClient, make_school, make_user, auth_headers
) -> None:
    await make_school("Existing", slug="taken-slug")
    super_admin = await make_user(Role.SUPER_ADMIN)

    response = await client.post(
        "/api/v1/schools",
        json={"name": "Another", "slug": "taken-slug"},
        headers=auth_headers(super_admin),
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_bad_slug_is_a_validation_error(
    client: AsyncClient, make_user, auth_headers
) -> None:
    super_admin = await make_user(Role.SUPER_ADMIN)

    response = await client.post(
        "/api/v1/schools",
        json={"name": "Bad Slug", "slug": "Not A Slug"},
        headers=auth_headers(super_admin),
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_admin_cannot_create_school(
    client: AsyncClient, make_school, make_user, auth_headers
) -> None:
    school = await make_school()
    admin = await make_user(Role.ADMIN, school=school)

    response = await client.post(
        "/api/v1/schools",
        json={"name": "Rogue School", "slug": "rogue"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_school_access_is_scoped(
    client: AsyncClient, make_school, make_user, auth_headers
) -> None:
    own = await make_school("Own")
    other = await make_school("Other")
    teacher = await make_user(Role.TEACHER, school=own)
    super_admin = await make_user(Role.SUPER_ADMIN)

    listed = await client.get("/api/v1/schools", headers=auth_headers(teacher))
    assert [s["id"] for s in listed.json()["data"]] == [str(own.id)]

    allowed = await client.get(f"/api/v1/schools/{own.id}", headers=auth_headers(teacher))
    assert allowed.status_code == 200

    denied = await client.get(f"/api/v1/schools/{other.id}", headers=auth_headers(teacher))
    assert denied.status_code == 403
    assert denied.json() == {
        "success": False,
        "error": "You do not have access to this school's resources",
    }

    anywhere = await client.get(f"/api/v1/schools/{other.id}", headers=auth_headers(super_admin))
    assert anywhere.json()["data"]["name"] == "Other"
