from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from earlypulse.api.contracts import HealthResponse
from earlypulse.api.http_setup import register_exception_handlers, register_http_middleware
from earlypulse.auth.middleware import create_auth_middleware
from earlypulse.auth.router import create_auth_router
from earlypulse.auth.service import AuthService
from earlypulse.core.config import AppConfig
from earlypulse.core.logging import setup_logging
from earlypulse.core.mongo import apply_mongo_migrations, open_database
from earlypulse.pharmacy.repository import PharmacyRepository
from earlypulse.pharmacy.router import create_pharmacy_router
from earlypulse.pharmacy.service import PharmacyService
from earlypulse.principals.directory import DoctorDirectory, LabDirectory
from earlypulse.principals.models import PrincipalType
from earlypulse.principals.repository import build_principal_repositories
from earlypulse.principals.router import (
    create_doctor_directory_router,
    create_lab_router,
    create_principal_router,
)
from earlypulse.principals.service import PrincipalService

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


def _runtime_dir(config: AppConfig) -> Path:
    path = Path(config.storage.runtime_dir)
    return path if path.is_absolute() else APP_ROOT / path


def create_app(
    config: AppConfig | None = None,
    *,
    db: Any | None = None,
    runtime_dir: Path | None = None,
) -> FastAPI:
    config = config or APP_CONFIG
    app = FastAPI(title="EarlyPulse API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    if db is None:
        db = open_database(config.storage)
        if db is not None:
            apply_mongo_migrations(db)
    runtime_dir = runtime_dir or _runtime_dir(config)
    runtime_dir.mkdir(parents=True, exist_ok=True)

    stores = build_principal_repositories(db, runtime_dir)
    auth_service = AuthService(stores, config.auth)
    cookie_secure = config.auth.cookie_secure
    for principal_type in PrincipalType:
        app.include_router(
            create_auth_router(auth_service, principal_type, cookie_secure=cookie_secure)
        )
        app.include_router(
            create_principal_router(
                PrincipalService(stores[principal_type]), cookie_secure=cookie_secure
            )
        )
    app.include_router(create_doctor_directory_router(DoctorDirectory(stores[PrincipalType.DOCTOR])))
    app.include_router(create_lab_router(LabDirectory(stores[PrincipalType.LAB])))

    pharmacy_repo = PharmacyRepository(db=db, fallback_dir=runtime_dir / "pharmacy_store")
    app.include_router(create_pharmacy_router(PharmacyService(pharmacy_repo)))

    app.middleware("http")(create_auth_middleware(auth_service))

    @app.get("/api/v1/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    LOGGER.info("app_started storage=%s", "mongodb" if db is not None else "file")
    return app


app = create_app()
