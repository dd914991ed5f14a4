"""
Consistency engine.

Keeps derived state in step with the writes that affect it:

* student/teacher accounts exist exactly when the owning user holds that role,
* a student's cgpa, graduation eligibility and credit totals follow their
  enrollments,
* deleting a user, course or department cleans up the rows that point at it.

The engine is a write hook, so every adjustment runs inside the transaction
of the write that caused it.
"""

import logging
from typing import List, Optional

from ..core.entities import (
    Course, Department, Record, StudentAccount, StudentCourse, TeacherAccount, User,
)
from ..core.enums import Associativity, EntityKind, Role, WriteAction, UNASSIGNED_DEPARTMENT
from ..core.exceptions import ConflictError
from ..core.filters import (
    CourseFilter, StudentAccountFilter, StudentCourseFilter, TeacherAccountFilter,
)
from ..core.interfaces import WriteHook
from ..persistence.dispatcher import QueryDispatcher

logger = logging.getLogger(__name__)


class ConsistencyEngine(WriteHook):
    """Maintains accounts, academic standing and cascades on write."""

    HANDLED_KINDS = frozenset({
        EntityKind.USER, EntityKind.STUDENT_COURSE, EntityKind.COURSE, EntityKind.DEPARTMENT,
    })

    def __init__(self, graduation_credits: int = 120):
        self._graduation_credits = graduation_credits

    def can_handle(self, kind: EntityKind) -> bool:
        return kind in self.HANDLED_KINDS

    def after_write(self, dispatcher: QueryDispatcher, action: WriteAction,
                    record: Record, previous: Optional[Record]) -> None:
        if isinstance(record, User):
            self._on_user(dispatcher, action, record)
        elif isinstance(record, StudentCourse):
            self.recompute_student(dispatcher, record.student_id)
        elif isinstance(record, Course):
            self._on_course(dispatcher, action, record, previous)
        elif isinstance(record, Department):
            self._on_department(dispatcher, action, record)

    # Users

    def _on_user(self, dispatcher: QueryDispatcher, action: WriteAction, user: User) -> None:
        if action is WriteAction.DELETE:
            enrollments = dispatcher.find(StudentCourse, StudentCourseFilter.matching(student_id=user.id))
            if enrollments:
                dispatcher.delete(enrollments)
            self._remove_accounts(dispatcher, user.id, student=True, teacher=True)
            logger.debug("Removed accounts and enrollments of deleted user %s", user.id)
            return
        self.sync_accounts(dispatcher, user)

    def sync_accounts(self, dispatcher: QueryDispatcher, user: User) -> None:
        """Make the user's accounts match their role. Existing accounts are kept."""
        role = user.role_enum
        if role is not Role.TEACHER:
            self._check_no_courses(dispatcher, user)
        if role is Role.STUDENT:
            if not dispatcher.find(StudentAccount, StudentAccountFilter.matching(student_id=user.id)):
                dispatcher.insert([StudentAccount(student_id=user.id)])
                logger.info("Created student account for user %s", user.id)
                # Enrollments outlive a change of role
                self.recompute_student(dispatcher, user.id)
            self._remove_accounts(dispatcher, user.id, teacher=True)
        elif role is Role.TEACHER:
            if not dispatcher.find(TeacherAccount, TeacherAccountFilter.matching(teacher_id=user.id)):
                dispatcher.insert([TeacherAccount(teacher_id=user.id, dept_id=UNASSIGNED_DEPARTMENT)])
                logger.info("Created teacher account for user %s", user.id)
            self._remove_accounts(dispatcher, user.id, student=True)
        else:
            self._remove_accounts(dispatcher, user.id, student=True, teacher=True)

    def _check_no_courses(self, dispatcher: QueryDispatcher, user: User) -> None:
        owned = dispatcher.count(Course, CourseFilter.matching(teacher_id=user.id))
        if owned:
            raise ConflictError(
                "User still teaches courses and cannot leave the teacher role",
                details={"user_id": user.id, "courses": owned},
            )

    def _remove_accounts(self, dispatcher: QueryDispatcher, user_id: int,
                         student: bool = False, teacher: bool = False) -> None:
        stale: List[Record] = []
        if student:
            stale.extend(dispatcher.find(StudentAccount, StudentAccountFilter.matching(student_id=user_id)))
        if teacher:
            stale.extend(dispatcher.find(TeacherAccount, TeacherAccountFilter.matching(teacher_id=user_id)))
        if stale:
            dispatcher.delete(stale)
            logger.info("Removed %d account(s) of user %s", len(stale), user_id)

    # Academic standing

    def recompute_student(self, dispatcher: QueryDispatcher, student_id: int) -> Optional[StudentAccount]:
        """
        Recompute a student's derived standing from their enrollments.

        cgpa is the credit-weighted mean of graded enrollments (0.0 with no
        graded credits); cum_credit counts graded credits and cur_credit the
        credits still in progress.
        """
        accounts = dispatcher.find(StudentAccount, StudentAccountFilter.matching(student_id=student_id))
        if not accounts:
            return None
        account = accounts[0]

        enrollments = dispatcher.find(StudentCourse, StudentCourseFilter.matching(student_id=student_id))
        credits = self._course_credits(dispatcher, [e.course_id for e in enrollments])

        graded_credits = 0
        current_credits = 0
        weighted = 0.0
        for enrollment in enrollments:
            cost = credits.get(enrollment.course_id)
            if cost is None:
                continue
            if enrollment.is_graded:
                graded_credits += cost
                weighted += enrollment.grade * cost
            else:
                current_credits += cost

        cgpa = weighted / graded_credits if graded_credits else 0.0
        recomputed = account.replace(
            cgpa=min(max(cgpa, 0.0), 4.0),
            can_grad=graded_credits >= self._graduation_credits,
            cum_credit=graded_credits,
            cur_credit=current_credits,
        )
        if recomputed != account:
            dispatcher.update([recomputed])
            logger.debug("Student %s standing: cgpa=%.2f credits=%d", student_id, recomputed.cgpa, graded_credits)
        return recomputed

    def _course_credits(self, dispatcher: QueryDispatcher, course_ids: List[int]) -> dict:
        if not course_ids:
            return {}
        filters = [CourseFilter("id", course_id) for course_id in sorted(set(course_ids))]
        courses = dispatcher.find(Course, filters, Associativity.OR)
        return {course.id: course.cr_cost for course in courses}

    # Courses and departments

    def _on_course(self, dispatcher: QueryDispatcher, action: WriteAction,
                   course: Course, previous: Optional[Record]) -> None:
        if action is WriteAction.DELETE:
            enrollments = dispatcher.find(StudentCourse, StudentCourseFilter.matching(course_id=course.id))
            if enrollments:
                dispatcher.delete(enrollments)
                logger.info("Dropped %d enrollment(s) of removed course %s", len(enrollments), course.id)
        elif action is WriteAction.UPDATE and previous is not None and previous.cr_cost != course.cr_cost:
            enrollments = dispatcher.find(StudentCourse, StudentCourseFilter.matching(course_id=course.id))
            for student_id in sorted({e.student_id for e in enrollments}):
                self.recompute_student(dispatcher, student_id)

    def _on_department(self, dispatcher: QueryDispatcher, action: WriteAction, department: Department) -> None:
        if action is not WriteAction.DELETE:
            return
        teachers = dispatcher.find(TeacherAccount, TeacherAccountFilter.matching(dept_id=department.id))
        if teachers:
            dispatcher.update([t.replace(dept_id=UNASSIGNED_DEPARTMENT) for t in teachers])
            logger.info("Unassigned %d teacher(s) from removed department %s", len(teachers), department.id)
