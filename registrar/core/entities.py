"""
Typed records for every entity kind.

Each record declares its columns in storage order, its key columns and the
table it lives in, so the dispatcher can find, insert, update and delete any
of them without per-entity code.
"""

from typing import Any, ClassVar, Dict, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .enums import EntityKind, Role, UNGRADED, UNASSIGNED_DEPARTMENT
from .exceptions import DecodeError, InvalidFilterError


class Record(BaseModel):
    """Base record: kind tag, key extraction and column-order decoding."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    KIND: ClassVar[EntityKind]
    TABLE: ClassVar[str]
    KEY_COLUMNS: ClassVar[Tuple[str, ...]] = ("id",)
    GENERATED_KEY: ClassVar[Optional[str]] = "id"

    @classmethod
    def columns(cls) -> Tuple[str, ...]:
        """Column names in declared storage order."""
        return tuple(cls.model_fields)

    @classmethod
    def data_columns(cls) -> Tuple[str, ...]:
        """Columns written on insert (the generated key is left to the store)."""
        return tuple(c for c in cls.columns() if c != cls.GENERATED_KEY)

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Record":
        """Decode a positional row whose values follow ``columns()``."""
        columns = cls.columns()
        if len(row) != len(columns):
            raise DecodeError(
                f"Could not decode {cls.KIND.value} row",
                details={"kind": cls.KIND.value, "expected": len(columns), "received": len(row)},
            )
        try:
            return cls.model_validate(dict(zip(columns, row)))
        except PydanticValidationError as e:
            raise DecodeError(
                f"Could not decode {cls.KIND.value} row",
                details={"kind": cls.KIND.value, "errors": e.error_count()},
            ) from e

    def key(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, column) for column in self.KEY_COLUMNS)

    def to_row(self, columns: Optional[Sequence[str]] = None) -> Tuple[Any, ...]:
        return tuple(getattr(self, column) for column in (columns or self.columns()))

    def replace(self, **changes: Any) -> "Record":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)


class User(Record):
    KIND: ClassVar[EntityKind] = EntityKind.USER
    TABLE: ClassVar[str] = "USERS"

    id: int = 0
    username: str
    password: str = Field(default="", repr=False)
    email: str
    phone: str = ""
    verified: bool = False
    suspended: bool = False
    forcenewpw: bool = False
    role: str = Role.STUDENT.value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("role")
    @classmethod
    def _check_role(cls, value: str) -> str:
        return Role.parse(value).value

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def public_dict(self) -> Dict[str, Any]:
        """Representation without the password hash."""
        return self.model_dump(exclude={"password"})


class StudentAccount(Record):
    KIND: ClassVar[EntityKind] = EntityKind.STUDENT_ACCOUNT
    TABLE: ClassVar[str] = "STUDENT_ACCOUNT"

    id: int = 0
    student_id: int
    advisor_id: int = 0
    discipline: str = ""
    enrollment: str = ""
    cgpa: float = Field(default=0.0, ge=0.0, le=4.0)
    can_grad: bool = False
    cur_credit: int = 0
    cum_credit: int = 0


class TeacherAccount(Record):
    KIND: ClassVar[EntityKind] = EntityKind.TEACHER_ACCOUNT
    TABLE: ClassVar[str] = "TEACHER_ACCOUNT"

    id: int = 0
    teacher_id: int
    dept_id: int = UNASSIGNED_DEPARTMENT


class Course(Record):
    KIND: ClassVar[EntityKind] = EntityKind.COURSE
    TABLE: ClassVar[str] = "COURSES"

    id: int = 0
    teacher_id: int
    course: str
    course_nr: str = ""
    description: str = ""
    cr_cost: int = Field(gt=0)
    timeslots: str = ""


class StudentCourse(Record):
    KIND: ClassVar[EntityKind] = EntityKind.STUDENT_COURSE
    TABLE: ClassVar[str] = "STUDENT_COURSES"
    KEY_COLUMNS: ClassVar[Tuple[str, ...]] = ("student_id", "course_id")
    GENERATED_KEY: ClassVar[Optional[str]] = None

    student_id: int
    course_id: int
    grade: float = UNGRADED
    semester: str = ""

    @field_validator("grade")
    @classmethod
    def _check_grade(cls, value: float) -> float:
        if value == UNGRADED or 0.0 <= value <= 4.0:
            return value
        raise ValueError("grade must be -1 (in progress) or between 0.0 and 4.0")

    @property
    def is_graded(self) -> bool:
        return self.grade >= 0


class Department(Record):
    KIND: ClassVar[EntityKind] = EntityKind.DEPARTMENT
    TABLE: ClassVar[str] = "DEPARTMENTS"

    id: int = 0
    name: str = Field(min_length=1)


RECORD_TYPES: Dict[EntityKind, Type[Record]] = {
    record_type.KIND: record_type
    for record_type in (User, StudentAccount, TeacherAccount, Course, StudentCourse, Department)
}

# (left kind, right kind) -> (left column, right column)
RELATIONS: Dict[Tuple[EntityKind, EntityKind], Tuple[str, str]] = {
    (EntityKind.USER, EntityKind.STUDENT_ACCOUNT): ("id", "student_id"),
    (EntityKind.USER, EntityKind.TEACHER_ACCOUNT): ("id", "teacher_id"),
    (EntityKind.USER, EntityKind.COURSE): ("id", "teacher_id"),
    (EntityKind.USER, EntityKind.STUDENT_COURSE): ("id", "student_id"),
    (EntityKind.COURSE, EntityKind.STUDENT_COURSE): ("id", "course_id"),
    (EntityKind.DEPARTMENT, EntityKind.TEACHER_ACCOUNT): ("id", "dept_id"),
    (EntityKind.TEACHER_ACCOUNT, EntityKind.COURSE): ("teacher_id", "teacher_id"),
    (EntityKind.STUDENT_ACCOUNT, EntityKind.STUDENT_COURSE): ("student_id", "student_id"),
}


def record_type_for(kind: EntityKind) -> Type[Record]:
    """Look up the record class for an entity kind."""
    return RECORD_TYPES[kind]


def join_columns(left: EntityKind, right: EntityKind) -> Tuple[str, str]:
    """Columns relating two entity kinds, in (left, right) order."""
    if (left, right) in RELATIONS:
        return RELATIONS[(left, right)]
    if (right, left) in RELATIONS:
        right_column, left_column = RELATIONS[(right, left)]
        return left_column, right_column
    raise InvalidFilterError(
        f"No relation between {left.value} and {right.value}",
        details={"kinds": [left.value, right.value]},
    )
