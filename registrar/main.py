"""
Main entry point for the Registrar.
"""

import json
import logging
import threading
import time
from typing import Any, Dict, Optional

from .config import Settings, load_settings
from .core.credentials import PasswordHasher
from .core.interfaces import Clock
from .persistence import DatabaseFactory, DatabaseManager, QueryDispatcher, schema_for
from .services import (
    AccountService, AccountValidator, AuthService, ConsistencyEngine, CourseService,
    DepartmentService, EnrollmentService, ReportingService,
)
from .api.rest_api import RegistrarRestAPI

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a console log format for the command line."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


class RegistrarPlatform:
    """Main platform class that wires storage, services and the REST API."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, clock: Optional[Clock] = None):
        self._settings: Settings = load_settings(config)
        self._clock = clock
        self._database: Optional[DatabaseManager] = None
        self._dispatcher: Optional[QueryDispatcher] = None
        self._rest_api: Optional[RegistrarRestAPI] = None
        self._rest_thread: Optional[threading.Thread] = None

        # Initialize platform
        self._initialize_platform()

    def _initialize_platform(self):
        """Initialize the platform with all services."""
        settings = self._settings
        logger.info("Initializing Registrar platform...")

        self._database = DatabaseFactory.create_database(
            settings.DATABASE_TYPE, **settings.database_options()
        )
        self._database.create_tables(schema_for(self._database.dialect))
        logger.info("Database initialized: %s", settings.DATABASE_TYPE)

        self._dispatcher = QueryDispatcher(self._database)
        self._consistency = ConsistencyEngine(graduation_credits=settings.GRADUATION_CREDITS)
        self._dispatcher.add_hook(self._consistency)

        self._hasher = PasswordHasher(
            time_cost=settings.PASSWORD_TIME_COST,
            memory_cost=settings.PASSWORD_MEMORY_COST,
            parallelism=settings.PASSWORD_PARALLELISM,
        )
        self._validator = AccountValidator(settings.INSTITUTION_EMAIL_DOMAIN)

        self.auth_service = AuthService(self._dispatcher, self._hasher, self._validator)
        self.account_service = AccountService(
            self._dispatcher, self._hasher, self._validator, settings.ADMIN_ACCESS_CODE
        )
        self.course_service = CourseService(self._dispatcher)
        self.department_service = DepartmentService(self._dispatcher)
        self.enrollment_service = EnrollmentService(self._dispatcher, self._clock)
        self.reporting_service = ReportingService(self._dispatcher)
        logger.info("Services initialized")

        self._rest_api = RegistrarRestAPI(
            self.auth_service,
            self.account_service,
            self.course_service,
            self.department_service,
            self.enrollment_service,
            self.reporting_service,
        )
        logger.info("Registrar platform initialized")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def database(self) -> DatabaseManager:
        return self._database

    @property
    def dispatcher(self) -> QueryDispatcher:
        return self._dispatcher

    @property
    def consistency(self) -> ConsistencyEngine:
        return self._consistency

    @property
    def hasher(self) -> PasswordHasher:
        return self._hasher

    @property
    def app(self):
        """The FastAPI application."""
        return self._rest_api.app

    def start_rest_server(self, host: Optional[str] = None, port: Optional[int] = None):
        """Start the REST server on a background thread."""
        if self._rest_thread is not None and self._rest_thread.is_alive():
            logger.warning("REST server already running")
            return

        import uvicorn

        host = host or self._settings.REST_HOST
        port = port or self._settings.REST_PORT

        def run_server():
            uvicorn.run(self.app, host=host, port=port, log_level=self._settings.LOG_LEVEL.lower())

        self._rest_thread = threading.Thread(target=run_server, daemon=True)
        self._rest_thread.start()
        logger.info("REST server started on %s:%s", host, port)

    def stop_platform(self):
        """Release the database connection."""
        if self._database is not None:
            self._database.close()
        logger.info("Registrar platform stopped")


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Registrar academic records service")
    parser.add_argument("--host", type=str, default=None, help="REST server host")
    parser.add_argument("--port", type=int, default=None, help="REST server port")
    parser.add_argument("--config", type=str, help="JSON file of configuration overrides")

    args = parser.parse_args()

    # Load configuration
    config = {}
    if args.config:
        with open(args.config, "r") as f:
            config = json.load(f)

    configure_logging(load_settings(config).LOG_LEVEL)
    platform = RegistrarPlatform(config)

    try:
        platform.start_rest_server(args.host, args.port)
        logger.info("Platform is running. Press Ctrl+C to stop.")
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        platform.stop_platform()


if __name__ == "__main__":
    main()
