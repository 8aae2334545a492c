from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient

from schooladmin.api.v1.finance.service import invoice_status_after_payment
from schooladmin.core.enums import InvoiceStatus, Role
from schooladmin.core.models import Invoice


@pytest.fixture()
def enrolled_class(make_school, make_year, make_term, make_class, make_student, make_enrollment):
    """A school with one term and two ACTIVE enrollments."""

    async def _setup():
        school = await make_school()
        year = await make_year(school)
        term = await make_term(year)
        school_class = await make_class(year)
        first = await make_enrollment(await make_student(school, "Ann"), school_class)
        second = await make_enrollment(await make_student(school, "Ben"), school_class)
        return school, term, [first, second]

    return _setup


async def _generate(client, headers, term, enrollments, amount="1500.00", due_date=None):
    payload = {
        "enrollment_ids": [str(e.id) for e in enrollments],
        "term_id": str(term.id),
        "amount": amount,
    }
    if due_date:
        payload["due_date"] = due_date
    response = await client.post("/api/v1/finance/invoices/generate", json=payload, headers=headers)
    return response


@pytest.mark.asyncio
async def test_generate_reports_per_enrollment_errors(
    client: AsyncClient, make_user, enrolled_class, auth_headers
) -> None:
    school, term, enrollments = await enrolled_class()
    accountant = await make_user(Role.ACCOUNTANT, school=school)
    headers = auth_headers(accountant)

    first = await _generate(client, headers, term, enrollments[:1])
    assert first.status_code == 201
    assert len(first.json()["data"]["invoices"]) == 1

    second = await _generate(client, headers, term, enrollments)
    data = second.json()["data"]
    assert [i["enrollment_id"] for i in data["invoices"]] == [str(enrollments[1].id)]
    assert data["errors"] == [
        {"enrollment_id": str(enrollments[0].id), "error": "Invoice already exists for this term"}
    ]
    invoice = data["invoices"][0]
    assert Decimal(invoice["amount"]) == Decimal("1500")
    assert Decimal(invoice["balance"]) == Decimal("1500")
    assert invoice["status"] == "PENDING"


@pytest.mark.asyncio
async def test_generate_validates_amount_and_enrollment(
    client: AsyncClient,
    make_user,
    make_year,
    make_class,
    make_student,
    make_enrollment,
    enrolled_class,
    auth_headers,
) -> None:
    school, term, enrollments = await enrolled_class()
    accountant = await make_user(Role.ACCOUNTANT, school=school)
    admin_headers = auth_headers(await make_user(Role.ADMIN, school=school))
    headers = auth_headers(accountant)

    zero = await _generate(client, headers, term, enrollments, amount="0")
    assert zero.status_code == 400
    assert zero.json()["error"] == "Amount must be greater than 0"

    dropped = enrollments[0]
    await client.post(f"/api/v1/enrollments/{dropped.id}/drop", headers=admin_headers)
    next_year = await make_year(school, name="2026-2027", is_current=False)
    elsewhere = await make_enrollment(await make_student(school, "Cy"), await make_class(next_year))
    response = await _generate(client, headers, term, [dropped, elsewhere])
    assert [e["error"] for e in response.json()["data"]["errors"]] == [
        "Enrollment not found or not active",
        "Enrollment is not in the term's academic year",
    ]
    assert response.json()["data"]["invoices"] == []

    await client.post(f"/api/v1/academic-years/terms/{term.id}/lock", headers=admin_headers)
    locked = await _generate(client, headers, term, enrollments[1:])
    assert locked.status_code == 400
    assert locked.json()["error"] == "Term is locked and cannot be invoiced"


@pytest.mark.asyncio
async def test_payments_move_invoice_to_paid(
    client: AsyncClient, make_user, enrolled_class, auth_headers
) -> None:
    school, term, enrollments = await enrolled_class()
    accountant = await make_user(Role.ACCOUNTANT, school=school)
    headers = auth_headers(accountant)
    generated = await _generate(client, headers, term, enrollments[:1], amount="1000.00")
    invoice_id = generated.json()["data"]["invoices"][0]["id"]

    partial = await client.post(
        f"/api/v1/finance/invoices/{invoice_id}/payments",
        json={"amount": "400.00", "method": "Cash", "reference": "RCPT-1"},
        headers=headers,
    )
    assert partial.status_code == 201
    body = partial.json()["data"]
    assert body["payment"]["method"] == "cash"
    assert body["payment"]["recorded_by_id"] == str(accountant.id)
    assert Decimal(body["invoice"]["paid_amount"]) == Decimal("400")
    assert Decimal(body["invoice"]["balance"]) == Decimal("600")
    assert body["invoice"]["status"] == "PARTIAL"

    too_much = await client.post(
        f"/api/v1/finance/invoices/{invoice_id}/payments", json={"amount": "600.01"}, headers=headers
    )
    assert too_much.status_code == 400
    assert too_much.json()["error"] == "Payment amount (600.01) exceeds invoice balance (600.00)"

    negative = await client.post(
        f"/api/v1/finance/invoices/{invoice_id}/payments", json={"amount": "-5"}, headers=headers
    )
    assert negative.json()["error"] == "Payment amount must be greater than 0"

    paid = await client.post(
        f"/api/v1/finance/invoices/{invoice_id}/payments", json={"amount": "600"}, headers=headers
    )
    assert paid.json()["data"]["invoice"]["status"] == "PAID"
    assert Decimal(paid.json()["data"]["invoice"]["balance"]) == Decimal("0")

    detail = await client.get(f"/api/v1/finance/invoices/{invoice_id}", headers=headers)
    assert len(detail.json()["data"]["payments"]) == 2


@pytest.mark.asyncio
async def test_past_due_partial_payment_is_overdue(
    client: AsyncClient, make_user, enrolled_class, auth_headers
) -> None:
    school, term, enrollments = await enrolled_class()
    accountant = await make_user(Role.ACCOUNTANT, school=school)
    headers = auth_headers(accountant)
    generated = await _generate(
        client, headers, term, enrollments[:1], amount="500", due_date="2020-01-31"
    )
    invoice_id = generated.json()["data"]["invoices"][0]["id"]

    response = await client.post(
        f"/api/v1/finance/invoices/{invoice_id}/payments", json={"amount": "100"}, headers=headers
    )

    assert response.json()["data"]["invoice"]["status"] == "OVERDUE"


def test_invoice_status_after_payment() -> None:
    due = date(2025, 10, 1)
    assert invoice_status_after_payment(Decimal("0"), due, date(2025, 12, 1)) == InvoiceStatus.PAID
    assert invoice_status_after_payment(Decimal("10"), due, date(2025, 9, 1)) == InvoiceStatus.PARTIAL
    assert invoice_status_after_payment(Decimal("10"), due, date(2025, 10, 2)) == InvoiceStatus.OVERDUE
    assert invoice_status_after_payment(Decimal("10"), None) == InvoiceStatus.PARTIAL


@pytest.mark.asyncio
async def test_summary_and_student_summary(
    client: AsyncClient, make_user, enrolled_class, auth_headers
) -> None:
    school, term, enrollments = await enrolled_class()
    accountant = await make_user(Role.ACCOUNTANT, school=school)
    headers = auth_headers(accountant)
    generated = await _generate(client, headers, term, enrollments, amount="800")
    first_invoice = generated.json()["data"]["invoices"][0]
    await client.post(
        f"/api/v1/finance/invoices/{first_invoice['id']}/payments",
        json={"amount": "300"},
        headers=headers,
    )

    summary = (await client.get("/api/v1/finance/summary", headers=headers)).json()["data"]
    assert Decimal(summary["total_invoiced"]) == Decimal("1600")
    assert Decimal(summary["total_paid"]) == Decimal("300")
    assert Decimal(summary["total_balance"]) == Decimal("1300")
    assert summary["invoice_count"] == 2
    assert summary["partial_count"] == 1
    assert summary["pending_count"] == 1

    student_summary = await client.get(
        f"/api/v1/finance/students/{first_invoice['student_id']}/summary", headers=headers
    )
    data = student_summary.json()["data"]
    assert Decimal(data["total_balance"]) == Decimal("500")
    assert [i["id"] for i in data["invoices"]] == [first_invoice["id"]]


@pytest.mark.asyncio
async def test_delete_invoice_rules(
    client: AsyncClient, db_session, make_user, enrolled_class, auth_headers
) -> None:
    school, term, enrollments = await enrolled_class()
    accountant = await make_user(Role.ACCOUNTANT, school=school)
    admin = await make_user(Role.ADMIN, school=school)
    generated = await _generate(client, auth_headers(accountant), term, enrollments, amount="200")
    paid_id, unpaid_id = [i["id"] for i in generated.json()["data"]["invoices"]]
    await client.post(
        f"/api/v1/finance/invoices/{paid_id}/payments",
        json={"amount": "50"},
        headers=auth_headers(accountant),
    )

    by_accountant = await client.delete(
        f"/api/v1/finance/invoices/{unpaid_id}", headers=auth_headers(accountant)
    )
    assert by_accountant.status_code == 403

    refused = await client.delete(f"/api/v1/finance/invoices/{paid_id}", headers=auth_headers(admin))
    assert refused.status_code == 409
    assert refused.json()["error"] == (
        "Cannot delete invoice with associated payments. Void the invoice instead."
    )

    deleted = await client.delete(f"/api/v1/finance/invoices/{unpaid_id}", headers=auth_headers(admin))
    assert deleted.status_code == 204
    rows = (await db_session.execute(Invoice.__table__.select())).all()
    assert [str(r.id) for r in rows] == [paid_id]

    # an invoiced enrollment can no longer be deleted
    blocked = await client.delete(
        f"/api/v1/enrollments/{enrollments[0].id}", headers=auth_headers(admin)
    )
    assert blocked.status_code == 409


@pytest.mark.asyncio
async def test_teacher_has_no_finance_access(
    client: AsyncClient, make_user, enrolled_class, auth_headers
) -> None:
    school, term, enrollments = await enrolled_class()
    teacher = await make_user(Role.TEACHER, school=school)

    response = await client.get("/api/v1/finance/invoices", headers=auth_headers(teacher))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_impersonated_school_admin_can_invoice(
    client: AsyncClient, make_user, enrolled_class, auth_headers
) -> None:
    school, term, enrollments = await enrolled_class()
    super_admin = await make_user(Role.SUPER_ADMIN)
    headers = auth_headers(super_admin)
    await client.post("/api/v1/impersonation/school", json={"school_id": str(school.id)}, headers=headers)

    response = await _generate(client, headers, term, enrollments[:1])

    assert response.status_code == 201
    assert response.json()["data"]["invoices"][0]["school_id"] == str(school.id)
