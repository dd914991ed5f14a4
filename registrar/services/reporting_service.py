"""
Read-only reports: statistics, profiles and course rosters.
"""

import logging
from typing import Any, Dict, List

from ..core.entities import (
    Course, Department, StudentAccount, StudentCourse, TeacherAccount, User,
)
from ..core.enums import Associativity, EntityKind, Role
from ..core.exceptions import ForbiddenError
from ..core.filters import (
    CourseFilter, StudentAccountFilter, StudentCourseFilter, TeacherAccountFilter, UserFilter,
)
from ..persistence.dispatcher import QueryDispatcher
from .session import SessionContext

logger = logging.getLogger(__name__)

# Joined columns never reported
HIDDEN_COLUMNS = frozenset({f"{User.TABLE}.password"})


class ReportingService:
    """Service for statistics and per-user summaries."""

    def __init__(self, dispatcher: QueryDispatcher):
        self._dispatcher = dispatcher

    def generate_statistics(self, context: SessionContext) -> Dict[str, int]:
        context.require_role(Role.ADMIN)
        students = self._dispatcher.count(User, [UserFilter("role", Role.STUDENT.value)])
        suspended_students = self._dispatcher.count(
            User, UserFilter.matching(role=Role.STUDENT.value, suspended=True)
        )
        return {
            "registered_users": self._dispatcher.count(User),
            "suspended_users": self._dispatcher.count(User, [UserFilter("suspended", True)]),
            "faculty_members": self._dispatcher.count(User, [UserFilter("role", Role.TEACHER.value)]),
            "active_students": students - suspended_students,
            "graduated_students": self._dispatcher.count(
                StudentAccount, [StudentAccountFilter("can_grad", True)]
            ),
            "courses": self._dispatcher.count(Course),
            "departments": self._dispatcher.count(Department),
        }

    def get_profile(self, context: SessionContext) -> Dict[str, Any]:
        """
        Summary of the signed-in user.

        Teachers also get their account and the courses they teach; students
        get their standing, enrollments and the enrolled courses.
        """
        user = context.require_authenticated()
        user = self._dispatcher.find_one(User, [UserFilter("id", user.id)])
        profile: Dict[str, Any] = {"user": user.public_dict()}

        if user.role_enum is Role.TEACHER:
            accounts = self._dispatcher.find(TeacherAccount, TeacherAccountFilter.matching(teacher_id=user.id))
            profile["account"] = accounts[0].model_dump() if accounts else None
            profile["courses"] = [
                c.model_dump() for c in self._dispatcher.find(Course, CourseFilter.matching(teacher_id=user.id))
            ]
        elif user.role_enum is Role.STUDENT:
            accounts = self._dispatcher.find(StudentAccount, StudentAccountFilter.matching(student_id=user.id))
            enrollments = self._dispatcher.find(StudentCourse, StudentCourseFilter.matching(student_id=user.id))
            courses: List[Course] = []
            if enrollments:
                courses = self._dispatcher.find(
                    Course, [CourseFilter("id", e.course_id) for e in enrollments], Associativity.OR
                )
            profile["standing"] = accounts[0].model_dump() if accounts else None
            profile["enrollments"] = [e.model_dump() for e in enrollments]
            profile["courses"] = [c.model_dump() for c in courses]
        return profile

    def course_roster(self, context: SessionContext, course_id: int) -> List[Dict[str, str]]:
        """Students enrolled in a course, joined with their user rows."""
        actor = context.require_role(Role.ADMIN, Role.TEACHER)
        course = self._dispatcher.find_one(Course, [CourseFilter("id", course_id)])
        if not context.is_admin and course.teacher_id != actor.id:
            logger.info("Teacher %s denied roster of course %s", actor.id, course_id)
            raise ForbiddenError("You can only view rosters of your own courses.")
        rows = self._dispatcher.join_find(
            (EntityKind.USER, EntityKind.STUDENT_COURSE),
            [StudentCourseFilter("course_id", course_id)],
        )
        return [{k: v for k, v in row.items() if k not in HIDDEN_COLUMNS} for row in rows]
