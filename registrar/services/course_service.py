"""
Course management and grading.
"""

import logging
from typing import Iterable, List, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from ..core.entities import Course, StudentCourse, TeacherAccount, User
from ..core.enums import Associativity, Role
from ..core.exceptions import ForbiddenError, ValidationError
from ..core.filters import CourseFilter, Filter, StudentCourseFilter, TeacherAccountFilter
from ..persistence.dispatcher import QueryDispatcher
from .session import SessionContext

logger = logging.getLogger(__name__)


class CourseService:
    """Service for the course catalog. Teachers manage only the courses they own."""

    def __init__(self, dispatcher: QueryDispatcher):
        self._dispatcher = dispatcher

    def create_courses(self, context: SessionContext, courses: Sequence[Course]) -> List[Course]:
        actor = context.require_role(Role.ADMIN, Role.TEACHER)
        courses = list(courses)
        if not context.is_admin:
            self._check_owned(actor, [c.teacher_id for c in courses])
        self._check_teachers(c.teacher_id for c in courses)
        created = self._dispatcher.insert(courses)
        logger.info("User %s created %d course(s)", actor.id, len(created))
        return created

    def update_courses(self, context: SessionContext, courses: Sequence[Course]) -> List[Course]:
        """
        Update courses as a batch.

        A teacher must own every course both as stored and as submitted;
        any violation rejects the whole batch before anything is written.
        """
        actor = context.require_role(Role.ADMIN, Role.TEACHER)
        courses = list(courses)
        stored = [self.get_course(c.id) for c in courses]
        if not context.is_admin:
            self._check_owned(actor, [c.teacher_id for c in stored] + [c.teacher_id for c in courses])
        self._check_teachers(c.teacher_id for c in courses)
        updated = self._dispatcher.update(courses)
        logger.info("User %s updated %d course(s)", actor.id, len(updated))
        return updated

    def remove_courses(self, context: SessionContext,
                       courses: Sequence[Union[Course, int]]) -> List[Course]:
        """Remove courses by record or id; their enrollments go with them."""
        actor = context.require_role(Role.ADMIN, Role.TEACHER)
        stored = [self.get_course(c.id if isinstance(c, Course) else c) for c in courses]
        if not context.is_admin:
            self._check_owned(actor, [c.teacher_id for c in stored])
        removed = self._dispatcher.delete(stored)
        logger.info("User %s removed %d course(s)", actor.id, len(removed))
        return removed

    def assign_grade(self, context: SessionContext, course_id: int, student_id: int,
                     grade: float) -> StudentCourse:
        """Grade an enrollment; teachers may grade only their own courses."""
        actor = context.require_role(Role.ADMIN, Role.TEACHER)
        course = self.get_course(course_id)
        if not context.is_admin:
            self._check_owned(actor, [course.teacher_id])
        enrollment = self._dispatcher.find_one(
            StudentCourse, StudentCourseFilter.matching(student_id=student_id, course_id=course_id)
        )
        try:
            graded = enrollment.replace(grade=grade)
        except PydanticValidationError as e:
            raise ValidationError(
                "Grade must be -1 (in progress) or between 0.0 and 4.0.", details={"field": "grade"}
            ) from e
        self._dispatcher.update([graded])
        logger.info("User %s graded student %s in course %s", actor.id, student_id, course_id)
        return graded

    def get_course(self, course_id: int) -> Course:
        return self._dispatcher.find_one(Course, [CourseFilter("id", course_id)])

    def list_courses(self, filters: Sequence[Filter] = (),
                     associativity: Associativity = Associativity.AND) -> List[Course]:
        return self._dispatcher.find(Course, filters, associativity)

    def course_catalog(self) -> List[Course]:
        """Every course on offer."""
        return self.list_courses()

    def courses_taught_by(self, teacher_id: int) -> List[Course]:
        return self.list_courses(CourseFilter.matching(teacher_id=teacher_id))

    def _check_owned(self, actor: User, teacher_ids: Sequence[int]) -> None:
        foreign = sorted({t for t in teacher_ids if t != actor.id})
        if foreign:
            logger.info("Teacher %s denied access to courses of %s", actor.id, foreign)
            raise ForbiddenError("You can only manage your own courses.")

    def _check_teachers(self, teacher_ids: Iterable[int]) -> None:
        for teacher_id in sorted(set(teacher_ids)):
            if not self._dispatcher.count(TeacherAccount, TeacherAccountFilter.matching(teacher_id=teacher_id)):
                raise ValidationError(
                    f"User {teacher_id} is not a teacher.", details={"field": "teacher_id"}
                )

