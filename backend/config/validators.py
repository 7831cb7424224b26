"""Startup checks run from the server lifespan before the store is opened."""

import logging
from typing import Dict


logger = logging.getLogger(__name__)

_SUPPORTED_JWT_ALGORITHMS = ("HS256", "HS384", "HS512")


def _require_jwt_secret(settings) -> None:
    """Every request is authenticated, so an unset secret is fatal."""
    if not settings.JWT_SECRET or not settings.JWT_SECRET.strip():
        raise RuntimeError(
            "STARTUP FAILED — JWT_SECRET is required and cannot be empty. "
            "Set JWT_SECRET in backend/.env or the container environment."
        )
    algorithm = getattr(settings, "JWT_ALGORITHM", "HS256")
    if algorithm not in _SUPPORTED_JWT_ALGORITHMS:
        raise RuntimeError(
            f"STARTUP FAILED — JWT_ALGORITHM={algorithm} is not supported "
            f"(expected one of {', '.join(_SUPPORTED_JWT_ALGORITHMS)})."
        )


def _reject_dev_doubles(settings) -> None:
    if settings.STORE_BACKEND == "memory":
        raise RuntimeError(
            "STARTUP FAILED — STORE_BACKEND=memory is not allowed in production."
        )
    if settings.MOCK_STORAGE or settings.MOCK_SPEECH:
        raise RuntimeError(
            "STARTUP FAILED — MOCK_STORAGE and MOCK_SPEECH must be False in production."
        )


def _backing_services(settings) -> Dict[str, str]:
    """Env vars the enabled real backends cannot run without."""
    needed: Dict[str, str] = {}
    if settings.STORE_BACKEND == "mongo":
        needed["MONGO_URL"] = settings.MONGO_URL
    if not settings.MOCK_STORAGE:
        needed["GCS_BUCKET"] = settings.GCS_BUCKET
    return needed


def validate_startup_config(settings) -> None:
    _require_jwt_secret(settings)

    if settings.ENV == "prod":
        _reject_dev_doubles(settings)

    missing = sorted(name for name, value in _backing_services(settings).items() if not value)
    if missing:
        raise RuntimeError(
            f"STARTUP FAILED — missing required env vars: {', '.join(missing)}"
        )

    if settings.STORE_BACKEND == "memory":
        logger.warning("CONFIG WARNING: STORE_BACKEND=memory, transcripts are lost on restart")
    if settings.MOCK_SPEECH:
        logger.warning("CONFIG WARNING: MOCK_SPEECH is set, speech operations are simulated")
    if settings.MOCK_STORAGE:
        logger.warning("CONFIG WARNING: MOCK_STORAGE is set, upload URLs are not signed by GCS")
