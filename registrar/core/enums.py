"""
Enumerations and constants for the Registrar core.
"""

from enum import Enum


class Role(Enum):
    """Roles a user can hold."""
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Parse a stored role string, ignoring case."""
        return cls(value.strip().lower())


class EntityKind(Enum):
    """The closed set of record types handled by the dispatcher."""
    USER = "user"
    STUDENT_ACCOUNT = "student_account"
    TEACHER_ACCOUNT = "teacher_account"
    COURSE = "course"
    STUDENT_COURSE = "student_course"
    DEPARTMENT = "department"


class Associativity(Enum):
    """Combinator applied uniformly across the filters of one query."""
    AND = "AND"
    OR = "OR"

    @property
    def separator(self) -> str:
        return f" {self.value} "


class JoinKind(Enum):
    """Supported two-table join types."""
    INNER = "INNER JOIN"
    LEFT = "LEFT OUTER JOIN"
    RIGHT = "RIGHT OUTER JOIN"
    FULL = "FULL OUTER JOIN"


class WriteAction(Enum):
    """Write operations observed by write hooks."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class Semester(Enum):
    """Semester labels assigned at enrollment time."""
    FALL = "Fall"
    SPRING = "Spring"

    @classmethod
    def for_month(cls, month: int) -> "Semester":
        """Months June through December belong to the fall semester."""
        return cls.FALL if 6 <= month <= 12 else cls.SPRING


UNGRADED = -1.0
UNASSIGNED_DEPARTMENT = 0
PASSWORD_SYMBOLS = "@$!%*?&"
