"""
REST API implementation for the Registrar using FastAPI.

Credentials travel as HTTP Basic (email, password) on every request; each
request logs in afresh and passes the resulting session context to the
service layer.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .. import __version__
from ..core.entities import Course, User
from ..core.exceptions import (
    AuthenticationError, ConflictError, ForbiddenError, InvalidCredentialError,
    InvalidFilterError, MustChangePasswordError, NotFoundError, RegistrarException,
    StorageFailure, SuspendedError, UnauthenticatedError, ValidationError,
)
from ..core.filters import CourseFilter
from ..services import (
    ANONYMOUS, AccountService, AuthService, CourseService, DepartmentService,
    EnrollmentService, ReportingService, SessionContext,
)

logger = logging.getLogger(__name__)

# Most specific classes first
ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (InvalidCredentialError, status.HTTP_401_UNAUTHORIZED),
    (SuspendedError, status.HTTP_403_FORBIDDEN),
    (MustChangePasswordError, status.HTTP_403_FORBIDDEN),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (ValidationError, 422),
    (InvalidFilterError, status.HTTP_400_BAD_REQUEST),
    (StorageFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(error: RegistrarException) -> int:
    for error_class, code in ERROR_STATUS:
        if isinstance(error, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# Pydantic models for API
class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)
    phone: str = Field(default="", max_length=32)


class AdminCreate(UserCreate):
    access_code: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    verified: Optional[bool] = None
    suspended: Optional[bool] = None
    forcenewpw: Optional[bool] = None
    role: Optional[str] = None


class PasswordChange(BaseModel):
    email: str
    old_password: str
    new_password: str


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class CourseCreate(BaseModel):
    teacher_id: Optional[int] = None
    course: str = Field(..., min_length=1, max_length=255)
    course_nr: str = ""
    description: str = ""
    cr_cost: int = Field(..., gt=0)
    timeslots: str = ""


class CourseUpdate(BaseModel):
    teacher_id: Optional[int] = None
    course: Optional[str] = None
    course_nr: Optional[str] = None
    description: Optional[str] = None
    cr_cost: Optional[int] = Field(default=None, gt=0)
    timeslots: Optional[str] = None


class GradeAssignment(BaseModel):
    grade: float


class RegistrarRestAPI:
    """REST API implementation for the Registrar."""

    def __init__(self, auth_service: AuthService, account_service: AccountService,
                 course_service: CourseService, department_service: DepartmentService,
                 enrollment_service: EnrollmentService, reporting_service: ReportingService):
        self._auth = auth_service
        self._accounts = account_service
        self._courses = course_service
        self._departments = department_service
        self._enrollments = enrollment_service
        self._reports = reporting_service
        self._security = HTTPBasic(auto_error=False)

        # Create FastAPI app
        self.app = FastAPI(
            title="Registrar API",
            description="Academic records with role-scoped access",
            version=__version__,
            docs_url="/docs",
            redoc_url="/redoc",
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_exception_handlers()
        self._setup_routes()

    def _session(self, credentials: Optional[HTTPBasicCredentials]) -> SessionContext:
        if credentials is None:
            return ANONYMOUS
        try:
            return self._auth.login(credentials.username, credentials.password)
        except NotFoundError as e:
            # Unknown emails answer like wrong passwords
            raise InvalidCredentialError("Invalid email or password") from e

    def _setup_exception_handlers(self):
        @self.app.exception_handler(RegistrarException)
        async def registrar_error(request: Request, exc: RegistrarException):
            code = status_for(exc)
            if code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            headers = {"WWW-Authenticate": "Basic"} if code == status.HTTP_401_UNAUTHORIZED else None
            body: Dict[str, Any] = {"error": exc.error_code, "message": exc.message}
            if code < 500 and exc.details:
                body["details"] = exc.details
            return JSONResponse(status_code=code, content=body, headers=headers)

        @self.app.exception_handler(PydanticValidationError)
        async def record_validation_error(request: Request, exc: PydanticValidationError):
            return JSONResponse(
                status_code=422,
                content={
                    "error": ValidationError.default_code,
                    "message": "Invalid record data",
                    "details": {"fields": [".".join(str(p) for p in e["loc"]) for e in exc.errors()]},
                },
            )

    def _setup_routes(self):
        """Setup API routes."""
        session = self._session_dependency()

        @self.app.get("/", response_model=Dict[str, str])
        async def root():
            """Root endpoint."""
            return {"message": "Registrar API", "version": __version__, "docs": "/docs"}

        # Accounts
        @self.app.post("/register", status_code=status.HTTP_201_CREATED)
        def register(data: UserCreate, ctx: SessionContext = Depends(session)):
            user = self._accounts.register_user(ctx, User(**data.model_dump()))
            return user.public_dict()

        @self.app.post("/admin/register", status_code=status.HTTP_201_CREATED)
        def register_admin(data: AdminCreate, ctx: SessionContext = Depends(session)):
            user = self._accounts.register_admin(
                ctx, User(**data.model_dump(exclude={"access_code"})), data.access_code
            )
            return user.public_dict()

        @self.app.post("/login")
        def login(ctx: SessionContext = Depends(session)):
            user = ctx.require_authenticated()
            return {"success": True, "user": user.public_dict()}

        @self.app.post("/logout")
        def logout(ctx: SessionContext = Depends(session)):
            return {"success": self._auth.logout(ctx)}

        @self.app.post("/password")
        def change_password(data: PasswordChange):
            user = self._auth.change_password(data.email, data.old_password, data.new_password)
            return {"success": True, "user": user.public_dict()}

        @self.app.get("/account")
        def get_account(ctx: SessionContext = Depends(session)):
            return self._reports.get_profile(ctx)

        @self.app.patch("/account")
        def update_account(data: UserUpdate, ctx: SessionContext = Depends(session)):
            user = ctx.require_authenticated()
            return self._update_user(ctx, user.id, data)

        @self.app.get("/account/enrollments")
        def list_enrollments(ctx: SessionContext = Depends(session)):
            return [e.model_dump() for e in self._enrollments.list_enrollments(ctx)]

        @self.app.get("/account/standing")
        def get_standing(ctx: SessionContext = Depends(session)):
            return self._enrollments.get_student_standing(ctx).model_dump()

        # Users
        @self.app.get("/users")
        def list_users(ctx: SessionContext = Depends(session)):
            return [u.public_dict() for u in self._accounts.list_users(ctx)]

        @self.app.get("/students")
        def list_students(ctx: SessionContext = Depends(session)):
            return [u.public_dict() for u in self._accounts.list_students(ctx)]

        @self.app.get("/teachers")
        def list_teachers(ctx: SessionContext = Depends(session)):
            return [u.public_dict() for u in self._accounts.list_teachers(ctx)]

        @self.app.patch("/users/{user_id}")
        def update_user(user_id: int, data: UserUpdate, ctx: SessionContext = Depends(session)):
            return self._update_user(ctx, user_id, data)

        @self.app.delete("/users/{user_id}")
        def delete_user(user_id: int, ctx: SessionContext = Depends(session)):
            return self._accounts.delete_user(ctx, user_id).public_dict()

        # Departments
        @self.app.get("/departments")
        def list_departments():
            return [d.model_dump() for d in self._departments.list_departments()]

        @self.app.post("/departments", status_code=status.HTTP_201_CREATED)
        def create_department(data: DepartmentCreate, ctx: SessionContext = Depends(session)):
            return self._departments.create_department(ctx, data.name).model_dump()

        @self.app.get("/departments/{department_id}")
        def get_department(department_id: int):
            return self._departments.get_department(department_id).model_dump()

        @self.app.delete("/departments/{department_id}")
        def remove_department(department_id: int, ctx: SessionContext = Depends(session)):
            return self._departments.remove_department(ctx, department_id).model_dump()

        @self.app.post("/admin/department/{department_id}")
        def assign_department(department_id: int, teacher_id: int, ctx: SessionContext = Depends(session)):
            return self._departments.assign_department(ctx, teacher_id, department_id).model_dump()

        @self.app.delete("/admin/department/{department_id}")
        def unassign_department(department_id: int, teacher_id: int, ctx: SessionContext = Depends(session)):
            return self._departments.unassign_department(ctx, teacher_id, department_id).model_dump()

        # Courses
        @self.app.get("/courses")
        def list_courses(teacher_id: Optional[int] = None):
            filters = CourseFilter.matching(teacher_id=teacher_id) if teacher_id is not None else []
            return [c.model_dump() for c in self._courses.list_courses(filters)]

        @self.app.post("/courses", status_code=status.HTTP_201_CREATED)
        def create_course(data: CourseCreate, ctx: SessionContext = Depends(session)):
            user = ctx.require_authenticated()
            values = data.model_dump()
            if values["teacher_id"] is None:
                values["teacher_id"] = user.id
            return self._courses.create_courses(ctx, [Course(**values)])[0].model_dump()

        @self.app.get("/courses/{course_id}")
        def get_course(course_id: int):
            return self._courses.get_course(course_id).model_dump()

        @self.app.patch("/courses/{course_id}")
        def update_course(course_id: int, data: CourseUpdate, ctx: SessionContext = Depends(session)):
            ctx.require_authenticated()
            stored = self._courses.get_course(course_id)
            course = stored.replace(**data.model_dump(exclude_none=True))
            return self._courses.update_courses(ctx, [course])[0].model_dump()

        @self.app.delete("/courses/{course_id}")
        def remove_course(course_id: int, ctx: SessionContext = Depends(session)):
            return self._courses.remove_courses(ctx, [course_id])[0].model_dump()

        @self.app.post("/courses/{course_id}/enroll", status_code=status.HTTP_201_CREATED)
        def enroll(course_id: int, ctx: SessionContext = Depends(session)):
            return self._enrollments.enroll_courses(ctx, [course_id])[0].model_dump()

        @self.app.delete("/courses/{course_id}/enroll")
        def drop(course_id: int, ctx: SessionContext = Depends(session)):
            return self._enrollments.drop_courses(ctx, [course_id])[0].model_dump()

        @self.app.put("/courses/{course_id}/grades/{student_id}")
        def assign_grade(course_id: int, student_id: int, data: GradeAssignment,
                         ctx: SessionContext = Depends(session)):
            return self._courses.assign_grade(ctx, course_id, student_id, data.grade).model_dump()

        @self.app.get("/courses/{course_id}/roster", response_model=List[Dict[str, str]])
        def course_roster(course_id: int, ctx: SessionContext = Depends(session)):
            return self._reports.course_roster(ctx, course_id)

        # Administration
        @self.app.get("/admin/stats", response_model=Dict[str, int])
        def statistics(ctx: SessionContext = Depends(session)):
            return self._reports.generate_statistics(ctx)

    def _session_dependency(self):
        security = self._security

        def session(credentials: Optional[HTTPBasicCredentials] = Depends(security)) -> SessionContext:
            return self._session(credentials)

        return session

    def _update_user(self, ctx: SessionContext, user_id: int, data: UserUpdate) -> Dict[str, Any]:
        stored = self._accounts.get_user(ctx, user_id)
        changes = data.model_dump(exclude_none=True)
        # Omitted passwords keep the stored hash
        changes.setdefault("password", "")
        user = self._accounts.update_user(ctx, stored.replace(**changes))
        return user.public_dict()
