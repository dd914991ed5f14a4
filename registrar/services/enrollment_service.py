"""
Student enrollment in courses.
"""

import logging
from typing import List, Optional, Sequence

from ..core.entities import Course, StudentAccount, StudentCourse
from ..core.enums import Role, Semester, UNGRADED
from ..core.exceptions import ConflictError
from ..core.filters import CourseFilter, StudentAccountFilter, StudentCourseFilter
from ..core.interfaces import Clock, SystemClock
from ..persistence.dispatcher import QueryDispatcher
from .session import SessionContext

logger = logging.getLogger(__name__)


class EnrollmentService:
    """
    Service for a student's own enrollments.

    The student is always the signed-in user; callers cannot name another
    student.
    """

    def __init__(self, dispatcher: QueryDispatcher, clock: Optional[Clock] = None):
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()

    def current_semester(self) -> Semester:
        return Semester.for_month(self._clock.now().month)

    def enroll_courses(self, context: SessionContext, course_ids: Sequence[int]) -> List[StudentCourse]:
        student = context.require_role(Role.STUDENT)
        semester = self.current_semester().value
        enrollments = []
        for course_id in course_ids:
            self._dispatcher.find_one(Course, [CourseFilter("id", course_id)])
            if self._find(student.id, course_id):
                raise ConflictError(
                    "Already enrolled in this course.", details={"course_id": course_id}
                )
            enrollments.append(StudentCourse(
                student_id=student.id, course_id=course_id, grade=UNGRADED, semester=semester,
            ))
        created = self._dispatcher.insert(enrollments)
        logger.info("Student %s enrolled in %d course(s)", student.id, len(created))
        return created

    def drop_courses(self, context: SessionContext, course_ids: Sequence[int]) -> List[StudentCourse]:
        student = context.require_role(Role.STUDENT)
        enrollments = [
            self._dispatcher.find_one(
                StudentCourse, StudentCourseFilter.matching(student_id=student.id, course_id=course_id)
            )
            for course_id in course_ids
        ]
        dropped = self._dispatcher.delete(enrollments)
        logger.info("Student %s dropped %d course(s)", student.id, len(dropped))
        return dropped

    def list_enrollments(self, context: SessionContext) -> List[StudentCourse]:
        student = context.require_role(Role.STUDENT)
        return self._dispatcher.find(StudentCourse, StudentCourseFilter.matching(student_id=student.id))

    def get_student_standing(self, context: SessionContext) -> StudentAccount:
        """The signed-in student's account, with cgpa and credit totals."""
        student = context.require_role(Role.STUDENT)
        return self._dispatcher.find_one(
            StudentAccount, StudentAccountFilter.matching(student_id=student.id)
        )

    def _find(self, student_id: int, course_id: int) -> List[StudentCourse]:
        return self._dispatcher.find(
            StudentCourse, StudentCourseFilter.matching(student_id=student_id, course_id=course_id)
        )
