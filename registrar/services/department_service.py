"""
Departments and teacher assignments. Changes are limited to administrators.
"""

import logging
from typing import List, Optional

from ..core.entities import Department, TeacherAccount
from ..core.enums import Role, UNASSIGNED_DEPARTMENT
from ..core.exceptions import NotFoundError
from ..core.filters import DepartmentFilter, TeacherAccountFilter
from ..persistence.dispatcher import QueryDispatcher
from .session import SessionContext

logger = logging.getLogger(__name__)


class DepartmentService:
    """Service for departments and the teachers assigned to them."""

    def __init__(self, dispatcher: QueryDispatcher):
        self._dispatcher = dispatcher

    def create_department(self, context: SessionContext, name: str) -> Department:
        actor = context.require_role(Role.ADMIN)
        department = self._dispatcher.insert([Department(name=name.strip())])[0]
        logger.info("User %s created department %s", actor.id, department.id)
        return department

    def remove_department(self, context: SessionContext, department_id: int) -> Department:
        """Remove a department; its teachers become unassigned."""
        actor = context.require_role(Role.ADMIN)
        removed = self._dispatcher.delete([self.get_department(department_id)])[0]
        logger.info("User %s removed department %s", actor.id, department_id)
        return removed

    def get_department(self, department_id: int) -> Department:
        return self._dispatcher.find_one(Department, [DepartmentFilter("id", department_id)])

    def list_departments(self) -> List[Department]:
        return self._dispatcher.find(Department)

    def get_teacher_account(self, teacher_id: int) -> TeacherAccount:
        return self._dispatcher.find_one(
            TeacherAccount, TeacherAccountFilter.matching(teacher_id=teacher_id)
        )

    def update_teacher_account(self, context: SessionContext, account: TeacherAccount) -> TeacherAccount:
        context.require_role(Role.ADMIN)
        stored = self.get_teacher_account(account.teacher_id)
        if account.dept_id != UNASSIGNED_DEPARTMENT:
            self.get_department(account.dept_id)
        return self._dispatcher.update([account.replace(id=stored.id)])[0]

    def assign_department(self, context: SessionContext, teacher_id: int,
                          department_id: int) -> TeacherAccount:
        context.require_role(Role.ADMIN)
        account = self.get_teacher_account(teacher_id)
        return self.update_teacher_account(context, account.replace(dept_id=department_id))

    def unassign_department(self, context: SessionContext, teacher_id: int,
                            department_id: Optional[int] = None) -> TeacherAccount:
        """Unassign a teacher, optionally only from ``department_id``."""
        context.require_role(Role.ADMIN)
        account = self.get_teacher_account(teacher_id)
        if department_id is not None and account.dept_id != department_id:
            raise NotFoundError(
                "Teacher is not assigned to this department.",
                details={"teacher_id": teacher_id, "department_id": department_id},
            )
        return self.update_teacher_account(context, account.replace(dept_id=UNASSIGNED_DEPARTMENT))
