import pytest
from httpx import AsyncClient
from sqlalchemy import select

from schooladmin.core.enums import Role
from schooladmin.core.models import AuditLog, Student


@pytest.mark.asyncio
async def test_admin_creates_student_and_teacher_reads(
    client: AsyncClient, make_school, make_user, auth_headers
) -> None:
    school = await make_school()
    admin = await make_user(Role.ADMIN, school=school)
    teacher = await make_user(Role.TEACHER, school=school)
    payload = {
        "first_name": "Zawadi",
        "last_name": "Mwangi",
        "date_of_birth": "2015-03-14",
        "gender": "FEMALE",
        "admission_number": "ADM-001",
    }

    created = await client.post("/api/v1/students", json=payload, headers=auth_headers(admin))
    assert created.status_code == 201
    student = created.json()["data"]
    assert student["school_id"] == str(school.id)
    assert student["gender"] == "FEMALE"

    fetched = await client.get(f"/api/v1/students/{student['id']}", headers=auth_headers(teacher))
    assert fetched.status_code == 200
    assert fetched.json()["data"]["admission_number"] == "ADM-001"

    by_teacher = await client.post("/api/v1/students", json=payload, headers=auth_headers(teacher))
    assert by_teacher.status_code == 403


@pytest.mark.asyncio
async def test_admission_number_unique_within_school(
    client: AsyncClient, make_school, make_user, make_student, auth_headers
) -> None:
    school = await make_school()
    other = await make_school("Elsewhere")
    admin = await make_user(Role.ADMIN, school=school)
    await make_student(school, admission_number="ADM-7")
    await make_student(other, admission_number="ADM-8")

    duplicate = await client.post(
        "/api/v1/students",
        json={"first_name": "Dup", "last_name": "Licate", "admission_number": "ADM-7"},
        headers=auth_headers(admin),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Admission number already exists"

    # numbers are per school
    reused = await client.post(
        "/api/v1/students",
        json={"first_name": "Re", "last_name": "Used", "admission_number": "ADM-8"},
        headers=auth_headers(admin),
    )
    assert reused.status_code == 201


@pytest.mark.asyncio
async def test_list_filters_and_paginates(
    client: AsyncClient, make_school, make_user, make_student, auth_headers
) -> None:
    school = await make_school()
    other = await make_school("Elsewhere")
    teacher = await make_user(Role.TEACHER, school=school)
    for last_name in ("Achieng", "Baraka", "Chebet"):
        await make_student(school, "Kid", last_name)
    await make_student(other, "Kid", "Foreign")
    headers = auth_headers(teacher)

    page = await client.get("/api/v1/students", params={"limit": 2}, headers=headers)
    body = page.json()["data"]
    assert [s["last_name"] for s in body["students"]] == ["Achieng", "Baraka"]
    assert body["pagination"]["total_count"] == 3
    assert body["pagination"]["total_pages"] == 2
    assert body["pagination"]["has_next_page"] is True

    searched = await client.get("/api/v1/students", params={"search": "cheb"}, headers=headers)
    assert [s["last_name"] for s in searched.json()["data"]["students"]] == ["Chebet"]

    unlinked = await client.get(
        "/api/v1/students", params={"has_guardian": "false"}, headers=headers
    )
    assert unlinked.json()["data"]["pagination"]["total_count"] == 3


@pytest.mark.asyncio
async def test_soft_delete_and_restore(
    client: AsyncClient, db_session, make_school, make_user, make_student, auth_headers
) -> None:
    school = await make_school()
    admin = await make_user(Role.ADMIN, school=school)
    student = await make_student(school)
    student_id = student.id
    headers = auth_headers(admin)

    deleted = await client.delete(f"/api/v1/students/{student_id}", headers=headers)
    assert deleted.status_code == 204
    row = await db_session.get(Student, student_id)
    assert row is not None and row.deleted_at is not None

    gone = await client.get(f"/api/v1/students/{student_id}", headers=headers)
    assert gone.status_code == 404
    listed = await client.get("/api/v1/students", headers=headers)
    assert listed.json()["data"]["students"] == []

    restored = await client.post(f"/api/v1/students/{student_id}/restore", headers=headers)
    assert restored.status_code == 200
    assert restored.json()["data"]["deleted_at"] is None
    again = await client.post(f"/api/v1/students/{student_id}/restore", headers=headers)
    assert again.status_code == 409

    actions = (
        await db_session.execute(select(AuditLog.action).where(AuditLog.entity_id == student_id))
    ).scalars().all()
    assert sorted(actions) == ["DELETE_STUDENT", "RESTORE_STUDENT"]


@pytest.mark.asyncio
async def test_delete_refused_with_active_enrollment(
    client: AsyncClient,
    make_school,
    make_user,
    make_year,
    make_class,
    make_student,
    make_enrollment,
    auth_headers,
) -> None:
    school = await make_school()
    admin = await make_user(Role.ADMIN, school=school)
    student = await make_student(school)
    await make_enrollment(student, await make_class(await make_year(school)))

    response = await client.delete(f"/api/v1/students/{student.id}", headers=auth_headers(admin))

    assert response.status_code == 409
    assert "active enrollments" in response.json()["error"]


@pytest.mark.asyncio
async def test_other_school_student_is_forbidden(
    client: AsyncClient, make_school, make_user, make_student, auth_headers
) -> None:
    school = await make_school()
    other = await make_school("Elsewhere")
    admin = await make_user(Role.ADMIN, school=school)
    foreign = await make_student(other)

    response = await client.patch(
        f"/api/v1/students/{foreign.id}", json={"first_name": "Hacked"}, headers=auth_headers(admin)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_guardian_links_parent_to_students(
    client: AsyncClient, make_school, make_user, make_student, auth_headers
) -> None:
    school = await make_school()
    admin = await make_user(Role.ADMIN, school=school)
    parent = await make_user(Role.PARENT, school=school, email="mama.otieno@example.com")
    teacher = await make_user(Role.TEACHER, school=school)
    child = await make_student(school, "Amina", "Otieno")
    await make_student(school, "Other", "Kid")
    headers = auth_headers(admin)

    not_parent = await client.post(
        "/api/v1/guardians", json={"user_id": str(teacher.id)}, headers=headers
    )
    assert not_parent.status_code == 400

    created = await client.post(
        "/api/v1/guardians",
        json={"user_id": str(parent.id), "phone": "+254700000000"},
        headers=headers,
    )
    assert created.status_code == 201
    guardian = created.json()["data"]
    assert guardian["email"] == "mama.otieno@example.com"

    duplicate = await client.post(
        "/api/v1/guardians", json={"user_id": str(parent.id)}, headers=headers
    )
    assert duplicate.status_code == 409

    linked = await client.patch(
        f"/api/v1/students/{child.id}", json={"guardian_id": guardian["id"]}, headers=headers
    )
    assert linked.json()["data"]["guardian_id"] == guardian["id"]

    detail = await client.get(f"/api/v1/guardians/{guardian['id']}", headers=headers)
    assert detail.json()["data"]["student_count"] == 1

    mine = await client.get("/api/v1/guardians/me/students", headers=auth_headers(parent))
    assert [s["first_name"] for s in mine.json()["data"]] == ["Amina"]

    with_guardian = await client.get(
        "/api/v1/students", params={"has_guardian": "true"}, headers=headers
    )
    assert with_guardian.json()["data"]["pagination"]["total_count"] == 1
