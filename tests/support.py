"""
Shared fixtures: a throwaway platform on a temporary SQLite file.
"""

import os
import shutil
import tempfile
import unittest
from datetime import datetime

from registrar.core.entities import Course, User
from registrar.core.enums import Role
from registrar.core.interfaces import Clock
from registrar.main import RegistrarPlatform
from registrar.services import SessionContext

PASSWORD = "Abcd123!"
ACCESS_CODE = "registrar-setup"


class FixedClock(Clock):
    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


class PlatformTestCase(unittest.TestCase):
    """Builds a fresh platform per test with cheap password hashing."""

    graduation_credits = 120
    today = datetime(2024, 9, 2)

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.clock = FixedClock(self.today)
        self.platform = RegistrarPlatform(
            {
                "database_type": "sqlite",
                "database_path": os.path.join(self.test_dir, "registrar.db"),
                "institution_email_domain": "inst.edu",
                "admin_access_code": ACCESS_CODE,
                "graduation_credits": self.graduation_credits,
                "password_time_cost": 1,
                "password_memory_cost": 1024,
                "password_parallelism": 1,
            },
            clock=self.clock,
        )
        self.dispatcher = self.platform.dispatcher

    def tearDown(self):
        self.platform.stop_platform()
        shutil.rmtree(self.test_dir)

    def add_user(self, email: str, role: Role = Role.STUDENT, password: str = PASSWORD, **fields) -> User:
        user = User(
            username=email.split("@")[0],
            email=email,
            password=self.platform.hasher.hash(password),
            role=role.value,
            **fields,
        )
        return self.dispatcher.insert([user])[0]

    def add_course(self, teacher: User, name: str = "Algorithms", cr_cost: int = 3) -> Course:
        return self.dispatcher.insert([Course(teacher_id=teacher.id, course=name, cr_cost=cr_cost)])[0]

    @staticmethod
    def session_for(user: User) -> SessionContext:
        return SessionContext(user)
