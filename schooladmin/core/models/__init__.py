from schooladmin.core.models.school import School
from schooladmin.core.models.audit_log import AuditLog
from schooladmin.core.models.impersonation_session import ImpersonationSession
from schooladmin.core.models.academic_year import AcademicYear, Term
from schooladmin.core.models.class_model import SchoolClass
from schooladmin.core.models.guardian import Guardian
from schooladmin.core.models.student import Student
from schooladmin.core.models.enrollment import Enrollment
from schooladmin.core.models.invoice import Invoice, Payment

__all__ = [
    "AcademicYear",
    "AuditLog",
    "Enrollment",
    "Guardian",
    "ImpersonationSession",
    "Invoice",
    "Payment",
    "School",
    "SchoolClass",
    "Student",
    "Term",
]
