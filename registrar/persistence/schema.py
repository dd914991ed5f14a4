"""
Table definitions for the six entity tables.

Statements are idempotent. Foreign keys are checked at commit so the
consistency engine can clean up dependent rows inside the same transaction.
Derived state is maintained in-process (see ``services.consistency``), so no
triggers are declared.
"""

from typing import Dict

from ..core.exceptions import ConfigurationError

_DEFERRED = "DEFERRABLE INITIALLY DEFERRED"

SQLITE_SCHEMA: Dict[str, str] = {
    "USERS": """
        CREATE TABLE IF NOT EXISTS "USERS" (
            "id" INTEGER PRIMARY KEY AUTOINCREMENT,
            "username" TEXT NOT NULL,
            "password" TEXT NOT NULL,
            "email" TEXT NOT NULL UNIQUE,
            "phone" TEXT NOT NULL DEFAULT '',
            "verified" BOOLEAN NOT NULL,
            "suspended" BOOLEAN NOT NULL,
            "forcenewpw" BOOLEAN NOT NULL,
            "role" TEXT NOT NULL
        )
    """,
    "STUDENT_ACCOUNT": f"""
        CREATE TABLE IF NOT EXISTS "STUDENT_ACCOUNT" (
            "id" INTEGER PRIMARY KEY AUTOINCREMENT,
            "student_id" INTEGER NOT NULL UNIQUE REFERENCES "USERS"("id") {_DEFERRED},
            "advisor_id" INTEGER NOT NULL,
            "discipline" TEXT NOT NULL,
            "enrollment" TEXT NOT NULL,
            "cgpa" REAL NOT NULL,
            "can_grad" BOOLEAN NOT NULL,
            "cur_credit" INTEGER NOT NULL,
            "cum_credit" INTEGER NOT NULL
        )
    """,
    "TEACHER_ACCOUNT": f"""
        CREATE TABLE IF NOT EXISTS "TEACHER_ACCOUNT" (
            "id" INTEGER PRIMARY KEY AUTOINCREMENT,
            "teacher_id" INTEGER NOT NULL UNIQUE REFERENCES "USERS"("id") {_DEFERRED},
            "dept_id" INTEGER NOT NULL
        )
    """,
    "COURSES": f"""
        CREATE TABLE IF NOT EXISTS "COURSES" (
            "id" INTEGER PRIMARY KEY AUTOINCREMENT,
            "teacher_id" INTEGER NOT NULL REFERENCES "USERS"("id") {_DEFERRED},
            "course" TEXT NOT NULL,
            "course_nr" TEXT NOT NULL DEFAULT '',
            "description" TEXT NOT NULL DEFAULT '',
            "cr_cost" INTEGER NOT NULL CHECK ("cr_cost" > 0),
            "timeslots" TEXT NOT NULL DEFAULT ''
        )
    """,
    "STUDENT_COURSES": f"""
        CREATE TABLE IF NOT EXISTS "STUDENT_COURSES" (
            "student_id" INTEGER NOT NULL REFERENCES "USERS"("id") {_DEFERRED},
            "course_id" INTEGER NOT NULL REFERENCES "COURSES"("id") {_DEFERRED},
            "grade" REAL NOT NULL,
            "semester" TEXT NOT NULL,
            PRIMARY KEY ("student_id", "course_id")
        )
    """,
    "DEPARTMENTS": """
        CREATE TABLE IF NOT EXISTS "DEPARTMENTS" (
            "id" INTEGER PRIMARY KEY AUTOINCREMENT,
            "name" TEXT NOT NULL
        )
    """,
}

POSTGRESQL_SCHEMA: Dict[str, str] = {
    "USERS": """
        CREATE TABLE IF NOT EXISTS "USERS" (
            "id" SERIAL PRIMARY KEY,
            "username" VARCHAR(255) NOT NULL,
            "password" VARCHAR(255) NOT NULL,
            "email" VARCHAR(255) NOT NULL UNIQUE,
            "phone" VARCHAR(32) NOT NULL DEFAULT '',
            "verified" BOOLEAN NOT NULL,
            "suspended" BOOLEAN NOT NULL,
            "forcenewpw" BOOLEAN NOT NULL,
            "role" VARCHAR(16) NOT NULL
        )
    """,
    "STUDENT_ACCOUNT": f"""
        CREATE TABLE IF NOT EXISTS "STUDENT_ACCOUNT" (
            "id" SERIAL PRIMARY KEY,
            "student_id" INTEGER NOT NULL UNIQUE REFERENCES "USERS"("id") {_DEFERRED},
            "advisor_id" INTEGER NOT NULL,
            "discipline" VARCHAR(255) NOT NULL,
            "enrollment" VARCHAR(255) NOT NULL,
            "cgpa" DOUBLE PRECISION NOT NULL,
            "can_grad" BOOLEAN NOT NULL,
            "cur_credit" INTEGER NOT NULL,
            "cum_credit" INTEGER NOT NULL
        )
    """,
    "TEACHER_ACCOUNT": f"""
        CREATE TABLE IF NOT EXISTS "TEACHER_ACCOUNT" (
            "id" SERIAL PRIMARY KEY,
            "teacher_id" INTEGER NOT NULL UNIQUE REFERENCES "USERS"("id") {_DEFERRED},
            "dept_id" INTEGER NOT NULL
        )
    """,
    "COURSES": f"""
        CREATE TABLE IF NOT EXISTS "COURSES" (
            "id" SERIAL PRIMARY KEY,
            "teacher_id" INTEGER NOT NULL REFERENCES "USERS"("id") {_DEFERRED},
            "course" VARCHAR(255) NOT NULL,
            "course_nr" VARCHAR(64) NOT NULL DEFAULT '',
            "description" TEXT NOT NULL DEFAULT '',
            "cr_cost" INTEGER NOT NULL CHECK ("cr_cost" > 0),
            "timeslots" TEXT NOT NULL DEFAULT ''
        )
    """,
    "STUDENT_COURSES": f"""
        CREATE TABLE IF NOT EXISTS "STUDENT_COURSES" (
            "student_id" INTEGER NOT NULL REFERENCES "USERS"("id") {_DEFERRED},
            "course_id" INTEGER NOT NULL REFERENCES "COURSES"("id") {_DEFERRED},
            "grade" DOUBLE PRECISION NOT NULL,
            "semester" VARCHAR(16) NOT NULL,
            PRIMARY KEY ("student_id", "course_id")
        )
    """,
    "DEPARTMENTS": """
        CREATE TABLE IF NOT EXISTS "DEPARTMENTS" (
            "id" SERIAL PRIMARY KEY,
            "name" VARCHAR(255) NOT NULL
        )
    """,
}


def schema_for(dialect: str) -> Dict[str, str]:
    """Return the schema statements for a database dialect."""
    if dialect == "sqlite":
        return SQLITE_SCHEMA
    if dialect == "postgresql":
        return POSTGRESQL_SCHEMA
    raise ConfigurationError(f"No schema for dialect: {dialect}")
