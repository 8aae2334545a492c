from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Register tables on Base.metadata
import schooladmin.auth.models  # noqa: F401
import schooladmin.core.models  # noqa: F401

from schooladmin.api.v1.academic_years.router import router as academic_years_router
from schooladmin.api.v1.audit_logs.router import router as audit_logs_router
from schooladmin.api.v1.classes.router import router as classes_router
from schooladmin.api.v1.enrollments.router import router as enrollments_router
from schooladmin.api.v1.finance.router import router as finance_router
from schooladmin.api.v1.guardians.router import router as guardians_router
from schooladmin.api.v1.impersonation.router import router as impersonation_router
from schooladmin.api.v1.schools.router import router as schools_router
from schooladmin.api.v1.students.router import router as students_router
from schooladmin.api.v1.users.router import router as users_router
from schooladmin.auth.identity import IdentityMetadataStore, InMemoryIdentityMetadataStore
from schooladmin.core.exception_handler import setup_exception_handlers
from schooladmin.core.logging import configure_logging


def create_app(identity_metadata: IdentityMetadataStore = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="School Admin Backend")

    # Private metadata on identities (impersonation claim lives here)
    app.state.identity_metadata = identity_metadata or InMemoryIdentityMetadataStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    # Routers
    app.include_router(users_router)
    app.include_router(impersonation_router)
    app.include_router(schools_router)
    app.include_router(audit_logs_router)
    app.include_router(academic_years_router)
    app.include_router(classes_router)
    app.include_router(guardians_router)
    app.include_router(students_router)
    app.include_router(enrollments_router)
    app.include_router(finance_router)

    return app


app = create_app()
