"""
Services module: sessions, role-scoped operations and the consistency engine.
"""

from .session import SessionContext, ANONYMOUS, AuthService
from .validation import AccountValidator, resolve_password
from .consistency import ConsistencyEngine
from .account_service import AccountService
from .course_service import CourseService
from .department_service import DepartmentService
from .enrollment_service import EnrollmentService
from .reporting_service import ReportingService

__all__ = [
    "SessionContext",
    "ANONYMOUS",
    "AuthService",
    "AccountValidator",
    "resolve_password",
    "ConsistencyEngine",
    "AccountService",
    "CourseService",
    "DepartmentService",
    "EnrollmentService",
    "ReportingService",
]
