import pytest
from httpx import AsyncClient

from schooladmin.core.enums import Role, UserStatus
from schooladmin.core.models import SchoolClass


@pytest.mark.asyncio
async def test_create_class_with_teacher(
    client: AsyncClient, make_school, make_user, make_year, auth_headers
) -> None:
    school = await make_school()
    admin = await make_user(Role.ADMIN, school=school)
    teacher = await make_user(Role.TEACHER, school=school)
    year = await make_year(school)

    response = await client.post(
        "/api/v1/classes",
        json={
            "academic_year_id": str(year.id),
            "name": "Grade 5 West",
            "grade": "5",
            "stream": "West",
            "class_teacher_id": str(teacher.id),
        },
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["academic_year_name"] == "2025-2026"
    assert data["class_teacher_id"] == str(teacher.id)
    assert data["active_enrollments"] == 0


@pytest.mark.asyncio
async def test_class_teacher_must_be_teacher_of_school(
    client: AsyncClient, make_school, make_user, make_year, auth_headers
) -> None:
    school = await make_school()
    other = await make_school("Elsewhere")
    admin = await make_user(Role.ADMIN, school=school)
    accountant = await make_user(Role.ACCOUNTANT, school=school)
    outsider = await make_user(Role.TEACHER, school=other)
    pending = await make_user(Role.TEACHER, UserStatus.PENDING, school=school)
    year = await make_year(school)

    for candidate in (accountant, outsider, pending):
        response = await client.post(
            "/api/v1/classes",
            json={
                "academic_year_id": str(year.id),
                "name": f"Class {candidate.id.hex[:6]}",
                "grade": "3",
                "class_teacher_id": str(candidate.id),
            },
            headers=auth_headers(admin),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Class teacher must be an approved TEACHER of this school"


@pytest.mark.asyncio
async def test_class_needs_year_of_own_school(
    client: AsyncClient, make_school, make_user, make_year, auth_headers
) -> None:
    school = await make_school()
    other = await make_school("Elsewhere")
    admin = await make_user(Role.ADMIN, school=school)
    foreign_year = await make_year(other)

    response = await client.post(
        "/api/v1/classes",
        json={"academic_year_id": str(foreign_year.id), "name": "Grade 1", "grade": "1"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_class_name_conflicts(
    client: AsyncClient, make_school, make_user, make_year, make_class, auth_headers
) -> None:
    school = await make_school()
    admin = await make_user(Role.ADMIN, school=school)
    year = await make_year(school)
    await make_class(year, name="Grade 4 East")

    response = await client.post(
        "/api/v1/classes",
        json={"academic_year_id": str(year.id), "name": "Grade 4 East", "grade": "4"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_teacher_lists_classes_with_counts(
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
    teacher = await make_user(Role.TEACHER, school=school)
    year = await make_year(school)
    east = await make_class(year, name="Grade 4 East", grade="4")
    await make_class(year, name="Grade 3 North", grade="3")
    await make_enrollment(await make_student(school, "Ann"), east)
    await make_enrollment(await make_student(school, "Ben"), east)
    await make_enrollment(await make_student(school, "Cal"), east, status="DROPPED")

    listed = await client.get("/api/v1/classes", headers=auth_headers(teacher))
    assert listed.status_code == 200
    assert [(c["name"], c["active_enrollments"]) for c in listed.json()["data"]] == [
        ("Grade 3 North", 0),
        ("Grade 4 East", 2),
    ]

    by_grade = await client.get(
        "/api/v1/classes", params={"grade": "4"}, headers=auth_headers(teacher)
    )
    assert [c["name"] for c in by_grade.json()["data"]] == ["Grade 4 East"]

    created = await client.post(
        "/api/v1/classes",
        json={"academic_year_id": str(year.id), "name": "Grade 6", "grade": "6"},
        headers=auth_headers(teacher),
    )
    assert created.status_code == 403


@pytest.mark.asyncio
async def test_delete_class_refused_with_enrollments(
    client: AsyncClient,
    db_session,
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
    year = await make_year(school)
    busy = await make_class(year, name="Busy")
    empty = await make_class(year, name="Empty")
    empty_id = empty.id
    await make_enrollment(await make_student(school), busy)

    refused = await client.delete(f"/api/v1/classes/{busy.id}", headers=auth_headers(admin))
    assert refused.status_code == 409
    assert refused.json()["error"] == (
        "Cannot delete class with existing enrollments. Transfer or remove students first."
    )

    deleted = await client.delete(f"/api/v1/classes/{empty_id}", headers=auth_headers(admin))
    assert deleted.status_code == 204
    assert await db_session.get(SchoolClass, empty_id) is None
