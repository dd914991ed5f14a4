import os
import shutil
import sqlite3
import tempfile
import unittest
from unittest.mock import patch

from registrar.core.entities import (
    Course, Department, StudentAccount, StudentCourse, TeacherAccount, User,
)
from registrar.core.enums import Associativity, EntityKind, JoinKind, WriteAction
from registrar.core.exceptions import ConflictError, InvalidFilterError, NotFoundError
from registrar.core.filters import (
    FILTER_TYPES, CourseFilter, DepartmentFilter, StudentCourseFilter, UserFilter,
)
from registrar.core.interfaces import WriteHook
from registrar.persistence import QueryDispatcher, SQLiteDatabase, SQLITE_SCHEMA
from registrar.persistence.database import SQLITE_OUTER_JOIN_VERSION

HAS_OUTER_JOINS = sqlite3.sqlite_version_info >= SQLITE_OUTER_JOIN_VERSION


def make_user(email, role="student"):
    return User(username=email.split("@")[0], email=email, password="$argon2id$stub", role=role)


class RecordingHook(WriteHook):
    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def can_handle(self, kind):
        return kind is EntityKind.DEPARTMENT

    def after_write(self, dispatcher, action, record, previous):
        self.calls.append((action, record, previous))
        if self.fail_on is not None and record.name == self.fail_on:
            raise RuntimeError("hook failed")


class DispatcherTestCase(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.database = SQLiteDatabase(os.path.join(self.test_dir, "dispatcher.db"))
        self.database.create_tables(SQLITE_SCHEMA)
        self.dispatcher = QueryDispatcher(self.database)

    def tearDown(self):
        self.database.close()
        shutil.rmtree(self.test_dir)


class TestFind(DispatcherTestCase):

    def setUp(self):
        super().setUp()
        self.ana, self.bo, self.cy = self.dispatcher.insert([
            make_user("ana@inst.edu"),
            make_user("bo@inst.edu", role="teacher"),
            make_user("cy@inst.edu"),
        ])

    def test_insert_assigns_keys_and_round_trips(self):
        self.assertGreater(self.ana.id, 0)
        self.assertEqual(len({self.ana.id, self.bo.id, self.cy.id}), 3)
        found = self.dispatcher.find(User, [UserFilter("id", self.bo.id)])
        self.assertEqual(found, [self.bo])

    def test_caller_supplied_generated_key_is_ignored(self):
        stored = self.dispatcher.insert([Department(id=999, name="Physics")])[0]
        self.assertNotEqual(stored.id, 999)
        self.assertEqual(self.dispatcher.find(Department), [stored])

    def test_empty_filters_scan_everything(self):
        self.assertEqual(len(self.dispatcher.find(User)), 3)
        self.assertEqual(len(self.dispatcher.find(EntityKind.USER, [])), 3)

    def test_and_requires_every_predicate(self):
        found = self.dispatcher.find(User, UserFilter.matching(role="student", email="cy@inst.edu"))
        self.assertEqual(found, [self.cy])

    def test_or_accepts_any_predicate(self):
        found = self.dispatcher.find(
            User, [UserFilter("email", "ana@inst.edu"), UserFilter("email", "bo@inst.edu")],
            Associativity.OR,
        )
        self.assertEqual({u.id for u in found}, {self.ana.id, self.bo.id})

    def test_no_match_is_empty(self):
        self.assertEqual(self.dispatcher.find(User, [UserFilter("email", "nobody@inst.edu")]), [])

    def test_find_one_raises_when_absent(self):
        with self.assertRaises(NotFoundError):
            self.dispatcher.find_one(User, [UserFilter("id", 12345)])

    def test_count(self):
        self.assertEqual(self.dispatcher.count(User), 3)
        self.assertEqual(self.dispatcher.count(User, [UserFilter("role", "teacher")]), 1)

    def test_foreign_filters_rejected_for_every_kind(self):
        for kind in EntityKind:
            for filter_kind, filter_type in FILTER_TYPES.items():
                if filter_kind is kind:
                    continue
                with self.assertRaises(InvalidFilterError):
                    self.dispatcher.find(kind, [filter_type.all()])

    def test_duplicate_email_conflicts(self):
        with self.assertRaises(ConflictError):
            self.dispatcher.insert([make_user("ANA@inst.edu")])


class TestWrites(DispatcherTestCase):

    def test_batch_rolls_back_on_first_failure(self):
        with self.assertRaises(ConflictError):
            self.dispatcher.insert([
                make_user("dee@inst.edu"),
                make_user("eve@inst.edu"),
                make_user("dee@inst.edu"),
            ])
        self.assertEqual(self.dispatcher.find(User), [])

    def test_update_matches_by_key(self):
        user = self.dispatcher.insert([make_user("fay@inst.edu")])[0]
        self.dispatcher.update([user.replace(phone="+359 1234 5678")])
        self.assertEqual(self.dispatcher.find_one(User, [UserFilter("id", user.id)]).phone, "+359 1234 5678")

    def test_update_of_absent_row_raises(self):
        with self.assertRaises(NotFoundError):
            self.dispatcher.update([Department(id=41, name="Ghost")])

    def test_delete_of_absent_row_raises(self):
        with self.assertRaises(NotFoundError):
            self.dispatcher.delete([Department(id=41, name="Ghost")])

    def test_composite_key_update_and_delete(self):
        teacher, student = self.dispatcher.insert([
            make_user("gus@inst.edu", role="teacher"), make_user("hal@inst.edu"),
        ])
        course = self.dispatcher.insert([Course(teacher_id=teacher.id, course="Logic", cr_cost=3)])[0]
        enrollment = self.dispatcher.insert([
            StudentCourse(student_id=student.id, course_id=course.id, semester="Fall")
        ])[0]

        self.dispatcher.update([enrollment.replace(grade=3.0)])
        stored = self.dispatcher.find_one(
            StudentCourse, StudentCourseFilter.matching(student_id=student.id, course_id=course.id)
        )
        self.assertEqual(stored.grade, 3.0)

        self.dispatcher.delete([stored])
        self.assertEqual(self.dispatcher.count(StudentCourse), 0)

    def test_dangling_reference_fails_at_commit(self):
        with self.assertRaises(ConflictError):
            self.dispatcher.insert([Course(teacher_id=404, course="Orphan", cr_cost=1)])
        self.assertEqual(self.dispatcher.count(Course), 0)

    def test_hooks_run_with_previous_state(self):
        hook = RecordingHook()
        self.dispatcher.add_hook(hook)
        department = self.dispatcher.insert([Department(name="Maths")])[0]
        self.dispatcher.update([department.replace(name="Mathematics")])
        self.dispatcher.delete([department])

        actions = [call[0] for call in hook.calls]
        self.assertEqual(actions, [WriteAction.INSERT, WriteAction.UPDATE, WriteAction.DELETE])
        self.assertIsNone(hook.calls[0][2])
        self.assertEqual(hook.calls[1][2].name, "Maths")
        self.assertEqual(hook.calls[2][1].name, "Mathematics")

    def test_hook_failure_rolls_back_the_write(self):
        self.dispatcher.add_hook(RecordingHook(fail_on="Alchemy"))
        with self.assertRaises(RuntimeError):
            self.dispatcher.insert([Department(name="Chemistry"), Department(name="Alchemy")])
        self.assertEqual(self.dispatcher.find(Department), [])

    def test_hooks_ignore_other_kinds(self):
        hook = RecordingHook()
        self.dispatcher.add_hook(hook)
        self.dispatcher.insert([make_user("ida@inst.edu")])
        self.assertEqual(hook.calls, [])


class TestJoinFind(DispatcherTestCase):

    def setUp(self):
        super().setUp()
        self.teacher, self.student = self.dispatcher.insert([
            make_user("jo@inst.edu", role="teacher"), make_user("kim@inst.edu"),
        ])
        self.dispatcher.insert([StudentAccount(student_id=self.student.id, cgpa=3.5)])
        self.department = self.dispatcher.insert([Department(name="Biology")])[0]
        self.dispatcher.insert([TeacherAccount(teacher_id=self.teacher.id, dept_id=self.department.id)])

    def test_keys_are_table_qualified_text(self):
        rows = self.dispatcher.join_find(
            (EntityKind.USER, EntityKind.STUDENT_ACCOUNT), [UserFilter("id", self.student.id)]
        )
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["USERS.email"], "kim@inst.edu")
        self.assertEqual(rows[0]["STUDENT_ACCOUNT.cgpa"], "3.5")
        self.assertEqual(rows[0]["STUDENT_ACCOUNT.student_id"], str(self.student.id))

    def test_left_join_renders_nulls(self):
        rows = self.dispatcher.join_find(
            (User, StudentAccount), [UserFilter("id", self.teacher.id)], JoinKind.LEFT
        )
        self.assertEqual(rows[0]["STUDENT_ACCOUNT.id"], "NULL")

    @unittest.skipUnless(HAS_OUTER_JOINS, "SQLite before 3.39 has no RIGHT/FULL OUTER JOIN")
    def test_right_join_renders_nulls(self):
        rows = self.dispatcher.join_find(
            (StudentAccount, User), [UserFilter("id", self.teacher.id)], JoinKind.RIGHT
        )
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["USERS.email"], "jo@inst.edu")
        self.assertEqual(rows[0]["STUDENT_ACCOUNT.id"], "NULL")
        self.assertEqual(rows[0]["STUDENT_ACCOUNT.cgpa"], "NULL")

    @unittest.skipUnless(HAS_OUTER_JOINS, "SQLite before 3.39 has no RIGHT/FULL OUTER JOIN")
    def test_full_join_keeps_both_unmatched_sides(self):
        self.dispatcher.insert([Department(name="Art")])
        lee = self.dispatcher.insert([make_user("lee@inst.edu", role="teacher")])[0]
        self.dispatcher.insert([TeacherAccount(teacher_id=lee.id, dept_id=0)])

        rows = self.dispatcher.join_find((Department, TeacherAccount), join_kind=JoinKind.FULL)

        self.assertEqual(len(rows), 3)
        by_name = {row["DEPARTMENTS.name"]: row for row in rows}
        self.assertEqual(by_name["Biology"]["TEACHER_ACCOUNT.teacher_id"], str(self.teacher.id))
        self.assertEqual(by_name["Art"]["TEACHER_ACCOUNT.teacher_id"], "NULL")
        self.assertEqual(by_name["NULL"]["TEACHER_ACCOUNT.teacher_id"], str(lee.id))
        self.assertEqual(by_name["NULL"]["DEPARTMENTS.id"], "NULL")

    def test_outer_joins_on_old_sqlite_are_rejected(self):
        with patch.object(sqlite3, "sqlite_version_info", (3, 31, 1)):
            for join_kind in (JoinKind.RIGHT, JoinKind.FULL):
                with self.assertRaises(InvalidFilterError) as raised:
                    self.dispatcher.join_find((StudentAccount, User), join_kind=join_kind)
                self.assertIn("OUTER JOIN", raised.exception.message)
            self.assertEqual(len(self.dispatcher.join_find((User, StudentAccount), join_kind=JoinKind.LEFT)), 2)

    def test_filters_may_target_either_side(self):
        rows = self.dispatcher.join_find(
            (EntityKind.DEPARTMENT, EntityKind.TEACHER_ACCOUNT),
            [DepartmentFilter("name", "Biology")],
        )
        self.assertEqual(rows[0]["TEACHER_ACCOUNT.teacher_id"], str(self.teacher.id))

    def test_filter_for_third_kind_rejected(self):
        with self.assertRaises(InvalidFilterError):
            self.dispatcher.join_find((EntityKind.USER, EntityKind.STUDENT_ACCOUNT), [CourseFilter.all()])

    def test_unrelated_pair_rejected(self):
        with self.assertRaises(InvalidFilterError):
            self.dispatcher.join_find((EntityKind.DEPARTMENT, EntityKind.COURSE))


if __name__ == "__main__":
    unittest.main()
