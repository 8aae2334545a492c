import os
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("IDENTITY_JWT_SECRET", "test-identity-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from schooladmin.auth.dependencies import get_identity_metadata_store
from schooladmin.auth.identity import InMemoryIdentityMetadataStore
from schooladmin.auth.models import User
from schooladmin.auth.schemas import ServiceContext
from schooladmin.core.config import settings
from schooladmin.core.enums import Role, UserStatus
from schooladmin.core.models import AcademicYear, Enrollment, School, SchoolClass, Student, Term
from schooladmin.db.session import Base, get_db
from schooladmin.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; also overrides the FastAPI dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
def metadata_store() -> InMemoryIdentityMetadataStore:
    store = InMemoryIdentityMetadataStore()
    app.dependency_overrides[get_identity_metadata_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_identity_metadata_store, None)


@pytest.fixture()
async def client(
    db_session: AsyncSession, metadata_store: InMemoryIdentityMetadataStore
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def make_token(subject: str, email: Optional[str] = None, expires_in: int = 3600) -> str:
    """Sign a token the way the identity provider would."""
    claims = {
        "sub": subject,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    if email:
        claims["email"] = email
    if settings.identity_audience:
        claims["aud"] = settings.identity_audience
    if settings.identity_issuer:
        claims["iss"] = settings.identity_issuer
    return jwt.encode(claims, settings.identity_jwt_secret, algorithm=settings.identity_jwt_algorithm)


@pytest.fixture()
def auth_headers():
    def _headers(user_or_subject, email: Optional[str] = None) -> dict:
        subject = getattr(user_or_subject, "external_id", user_or_subject)
        return {"Authorization": f"Bearer {make_token(subject, email=email)}"}

    return _headers


@pytest.fixture()
def make_school(db_session: AsyncSession):
    async def _make(name: str = "Green Valley School", slug: Optional[str] = None) -> School:
        school = School(
            name=name,
            slug=slug or f"school-{uuid.uuid4().hex[:8]}",
            status="ACTIVE",
        )
        db_session.add(school)
        await db_session.commit()
        await db_session.refresh(school)
        return school

    return _make


@pytest.fixture()
def make_user(db_session: AsyncSession):
    async def _make(
        role: Role = Role.TEACHER,
        status: UserStatus = UserStatus.APPROVED,
        school: Optional[School] = None,
        is_active: bool = True,
        email: Optional[str] = None,
    ) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            external_id=f"idp_{suffix}",
            email=email or f"{role.value.lower()}-{suffix}@example.com",
            first_name=role.value.title(),
            last_name="Tester",
            role=role.value,
            status=status.value,
            school_id=school.id if school else None,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


def context_for(user: User) -> ServiceContext:
    return ServiceContext(
        user_id=user.id,
        external_id=user.external_id,
        role=Role(user.role),
        school_id=user.school_id,
    )


@pytest.fixture()
def as_context():
    return context_for


@pytest.fixture()
def make_year(db_session: AsyncSession):
    async def _make(school: School, name: str = "2025-2026", is_current: bool = True) -> AcademicYear:
        year = AcademicYear(
            school_id=school.id,
            name=name,
            start_date=date(2025, 9, 1),
            end_date=date(2026, 7, 31),
            is_current=is_current,
            status="ACTIVE",
        )
        db_session.add(year)
        await db_session.commit()
        await db_session.refresh(year)
        return year

    return _make


@pytest.fixture()
def make_term(db_session: AsyncSession):
    async def _make(year: AcademicYear, name: str = "Term 1") -> Term:
        term = Term(
            school_id=year.school_id,
            academic_year_id=year.id,
            name=name,
            start_date=date(2025, 9, 1),
            end_date=date(2025, 12, 15),
            status="ACTIVE",
        )
        db_session.add(term)
        await db_session.commit()
        await db_session.refresh(term)
        return term

    return _make


@pytest.fixture()
def make_class(db_session: AsyncSession):
    async def _make(year: AcademicYear, name: str = "Grade 4 East", grade: str = "4") -> SchoolClass:
        school_class = SchoolClass(
            school_id=year.school_id,
            academic_year_id=year.id,
            name=name,
            grade=grade,
        )
        db_session.add(school_class)
        await db_session.commit()
        await db_session.refresh(school_class)
        return school_class

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession):
    async def _make(
        school: School,
        first_name: str = "Amina",
        last_name: str = "Otieno",
        admission_number: Optional[str] = None,
    ) -> Student:
        student = Student(
            school_id=school.id,
            first_name=first_name,
            last_name=last_name,
            admission_number=admission_number,
        )
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return student

    return _make


@pytest.fixture()
def make_enrollment(db_session: AsyncSession):
    async def _make(student: Student, school_class: SchoolClass, status: str = "ACTIVE") -> Enrollment:
        enrollment = Enrollment(
            school_id=student.school_id,
            student_id=student.id,
            academic_year_id=school_class.academic_year_id,
            class_id=school_class.id,
            status=status,
            enrollment_date=date(2025, 9, 1),
        )
        db_session.add(enrollment)
        await db_session.commit()
        await db_session.refresh(enrollment)
        return enrollment

    return _make
