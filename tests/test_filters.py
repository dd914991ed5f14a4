import unittest

from registrar.core.entities import (
    Course, StudentAccount, StudentCourse, User, join_columns, RECORD_TYPES,
)
from registrar.core.enums import Associativity, EntityKind
from registrar.core.exceptions import DecodeError, InvalidFilterError
from registrar.core.filters import (
    FILTER_TYPES, CourseFilter, StudentAccountFilter, UserFilter, build_condition, check_filters,
)


class TestFilterRendering(unittest.TestCase):

    def test_predicate_binds_value_as_parameter(self):
        clause, params = CourseFilter("course", "Robert'); DROP TABLE COURSES;--").to_sql()
        self.assertEqual(clause, '"course" = ?')
        self.assertEqual(params, ("Robert'); DROP TABLE COURSES;--",))

    def test_match_all_renders_tautology(self):
        self.assertEqual(UserFilter.all().to_sql(), ("1 = 1", ()))

    def test_qualified_rendering_uses_table_name(self):
        clause, _ = CourseFilter("id", 4).to_sql("%s", "COURSES")
        self.assertEqual(clause, '"COURSES"."id" = %s')

    def test_value_coerced_to_column_type(self):
        self.assertEqual(UserFilter("id", "5").value, 5)
        self.assertIs(StudentAccountFilter("can_grad", True).value, True)

    def test_email_value_is_lowercased(self):
        self.assertEqual(UserFilter("email", " Ana@Inst.EDU ").value, "ana@inst.edu")

    def test_unknown_column_rejected(self):
        with self.assertRaises(InvalidFilterError):
            UserFilter("shoe_size", 44)

    def test_uncoercible_value_rejected(self):
        with self.assertRaises(InvalidFilterError):
            UserFilter("id", "not a number")

    def test_matching_builds_one_filter_per_column(self):
        filters = UserFilter.matching(role="teacher", suspended=False)
        self.assertEqual(filters, [UserFilter("role", "teacher"), UserFilter("suspended", False)])


class TestBuildCondition(unittest.TestCase):

    def test_empty_filter_set_is_unconditional(self):
        self.assertEqual(build_condition([]), ("", ()))

    def test_and_is_default(self):
        clause, params = build_condition(UserFilter.matching(role="student", suspended=True))
        self.assertEqual(clause, '"role" = ? AND "suspended" = ?')
        self.assertEqual(params, ("student", True))

    def test_or_applies_uniformly(self):
        clause, _ = build_condition(
            [UserFilter("id", 1), UserFilter("id", 2), UserFilter("id", 3)], Associativity.OR
        )
        self.assertEqual(clause, '"id" = ? OR "id" = ? OR "id" = ?')


class TestFilterKinds(unittest.TestCase):

    def test_every_mismatched_pair_is_rejected(self):
        for filter_kind, filter_type in FILTER_TYPES.items():
            for kind in EntityKind:
                if kind is filter_kind:
                    check_filters([kind], [filter_type.all()])
                    continue
                with self.assertRaises(InvalidFilterError):
                    check_filters([kind], [filter_type.all()])

    def test_non_filter_objects_are_rejected(self):
        with self.assertRaises(InvalidFilterError):
            check_filters([EntityKind.USER], ["id = 1"])

    def test_join_columns_work_in_both_orders(self):
        self.assertEqual(join_columns(EntityKind.USER, EntityKind.STUDENT_ACCOUNT), ("id", "student_id"))
        self.assertEqual(join_columns(EntityKind.STUDENT_ACCOUNT, EntityKind.USER), ("student_id", "id"))

    def test_unrelated_kinds_have_no_join(self):
        with self.assertRaises(InvalidFilterError):
            join_columns(EntityKind.DEPARTMENT, EntityKind.STUDENT_COURSE)


class TestRecords(unittest.TestCase):

    def test_registry_covers_every_kind(self):
        self.assertEqual(set(RECORD_TYPES), set(EntityKind))

    def test_decode_follows_declared_column_order(self):
        course = Course.from_row([7, 2, "Algorithms", "CS 201", "", 3, "MWF 10:00"])
        self.assertEqual(course.key(), (7,))
        self.assertEqual(course.cr_cost, 3)
        self.assertEqual(course.to_row(), (7, 2, "Algorithms", "CS 201", "", 3, "MWF 10:00"))

    def test_wrong_arity_fails_to_decode(self):
        with self.assertRaises(DecodeError):
            User.from_row([1, "ana"])

    def test_out_of_range_values_fail_to_decode(self):
        with self.assertRaises(DecodeError):
            StudentCourse.from_row([1, 2, 7.5, "Fall"])
        with self.assertRaises(DecodeError):
            StudentAccount.from_row([1, 2, 0, "", "", 4.5, False, 0, 0])

    def test_composite_key(self):
        enrollment = StudentCourse(student_id=3, course_id=9, semester="Fall")
        self.assertEqual(enrollment.key(), (3, 9))
        self.assertFalse(enrollment.is_graded)

    def test_public_dict_omits_password(self):
        user = User(username="ana", email="ana@inst.edu", password="secret")
        self.assertNotIn("password", user.public_dict())
        self.assertNotIn("secret", repr(user))


if __name__ == "__main__":
    unittest.main()
