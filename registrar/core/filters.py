"""
Per-entity filter predicates.

A filter is one equality predicate over one column of one entity kind, or
the match-everything predicate. Values are always bound as parameters.
"""

from typing import Any, ClassVar, List, Optional, Sequence, Tuple, Type

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .entities import (
    Record, User, StudentAccount, TeacherAccount, Course, StudentCourse, Department,
)
from .enums import Associativity, EntityKind
from .exceptions import InvalidFilterError


class Filter:
    """Base predicate. Subclasses bind ``record_type``."""

    record_type: ClassVar[Type[Record]]

    def __init__(self, column: Optional[str] = None, value: Any = None):
        if column is not None:
            field = self.record_type.model_fields.get(column)
            if field is None:
                raise InvalidFilterError(
                    f"{column!r} is not a column of {self.kind.value}",
                    details={"kind": self.kind.value, "column": column},
                )
            try:
                value = TypeAdapter(field.annotation).validate_python(value)
            except PydanticValidationError as e:
                raise InvalidFilterError(
                    f"Invalid value for {self.kind.value}.{column}",
                    details={"kind": self.kind.value, "column": column},
                ) from e
            if column in ("email", "role"):
                value = value.strip().lower()
        self.column = column
        self.value = value

    @classmethod
    def all(cls) -> "Filter":
        """Predicate matching every row."""
        return cls()

    @classmethod
    def matching(cls, **columns: Any) -> List["Filter"]:
        """One predicate per keyword, e.g. ``UserFilter.matching(role="teacher")``."""
        return [cls(column, value) for column, value in columns.items()]

    @property
    def kind(self) -> EntityKind:
        return self.record_type.KIND

    @property
    def matches_all(self) -> bool:
        return self.column is None

    def to_sql(self, placeholder: str = "?", table: Optional[str] = None) -> Tuple[str, Tuple[Any, ...]]:
        """Render as ``"column" = <placeholder>`` plus bound parameters."""
        if self.column is None:
            return "1 = 1", ()
        column = f'"{self.column}"' if table is None else f'"{table}"."{self.column}"'
        return f"{column} = {placeholder}", (self.value,)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return (type(self), self.column, self.value) == (type(other), other.column, other.value)

    def __hash__(self) -> int:
        return hash((type(self), self.column, self.value))

    def __repr__(self) -> str:
        if self.column is None:
            return f"{self.__class__.__name__}.all()"
        return f"{self.__class__.__name__}({self.column!r}, {self.value!r})"


class UserFilter(Filter):
    record_type = User


class StudentAccountFilter(Filter):
    record_type = StudentAccount


class TeacherAccountFilter(Filter):
    record_type = TeacherAccount


class CourseFilter(Filter):
    record_type = Course


class StudentCourseFilter(Filter):
    record_type = StudentCourse


class DepartmentFilter(Filter):
    record_type = Department


def check_filters(kinds: Sequence[EntityKind], filters: Sequence[Filter]) -> None:
    """Fail fast when a filter targets an entity kind outside ``kinds``."""
    for f in filters:
        if not isinstance(f, Filter) or f.kind not in kinds:
            raise InvalidFilterError(
                "Invalid filter for table.",
                details={
                    "expected": [k.value for k in kinds],
                    "received": getattr(getattr(f, "kind", None), "value", type(f).__name__),
                },
            )


def build_condition(
    filters: Sequence[Filter],
    associativity: Associativity = Associativity.AND,
    placeholder: str = "?",
    qualify: bool = False,
) -> Tuple[str, Tuple[Any, ...]]:
    """
    Combine filters into one condition clause.

    An empty filter set yields an empty clause, meaning an unconditional
    scan; it never yields a condition that matches nothing.
    """
    if not filters:
        return "", ()
    clauses = []
    params: List[Any] = []
    for f in filters:
        clause, values = f.to_sql(placeholder, f.record_type.TABLE if qualify else None)
        clauses.append(clause)
        params.extend(values)
    return associativity.separator.join(clauses), tuple(params)


FILTER_TYPES = {
    filter_type.record_type.KIND: filter_type
    for filter_type in (
        UserFilter, StudentAccountFilter, TeacherAccountFilter,
        CourseFilter, StudentCourseFilter, DepartmentFilter,
    )
}
