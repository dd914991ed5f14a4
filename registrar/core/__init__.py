"""
Core module containing records, filters and the error model.
"""

from .entities import *
from .filters import *
from .interfaces import *
from .exceptions import *
from .enums import *

__all__ = [
    # Entities
    "Record",
    "User",
    "StudentAccount",
    "TeacherAccount",
    "Course",
    "StudentCourse",
    "Department",
    "RECORD_TYPES",
    "RELATIONS",
    "record_type_for",
    "join_columns",

    # Filters
    "Filter",
    "UserFilter",
    "StudentAccountFilter",
    "TeacherAccountFilter",
    "CourseFilter",
    "StudentCourseFilter",
    "DepartmentFilter",
    "FILTER_TYPES",
    "check_filters",
    "build_condition",

    # Interfaces
    "WriteHook",
    "Clock",
    "SystemClock",

    # Enums
    "Role",
    "EntityKind",
    "Associativity",
    "JoinKind",
    "WriteAction",
    "Semester",
    "UNGRADED",
    "UNASSIGNED_DEPARTMENT",
    "PASSWORD_SYMBOLS",

    # Exceptions
    "RegistrarException",
    "NotFoundError",
    "ConflictError",
    "UnauthenticatedError",
    "ForbiddenError",
    "ValidationError",
    "InvalidFilterError",
    "StorageFailure",
    "DecodeError",
    "AuthenticationError",
    "SuspendedError",
    "MustChangePasswordError",
    "InvalidCredentialError",
    "ConfigurationError",
]
