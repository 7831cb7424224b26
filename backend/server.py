"""Transcript Backend: HTTP entry point.

Clients upload audio, an external speech service transcribes it, and the
transcript repository records progress and paragraphs as they arrive.
"""
from contextlib import asynccontextmanager
from pathlib import Path
import logging

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

# Load env before anything else
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / ".env")

from api import operations, transcripts
from api.deps import Services, get_services
from auth.tokens import build_identity_verifier
from config.settings import get_settings
from config.validators import validate_startup_config
from core.exceptions import (
    AuthError,
    AuthorizationError,
    ExportFormatError,
    StoreError,
    TranscriptBackendError,
    UpstreamServiceError,
    ValidationError,
    serialize_error,
)
from core.logging_config import setup_logging
from storage.signer import build_upload_signer
from store.factory import build_document_store
from stt.orchestrator import build_speech_provider
from transcripts.repository import TranscriptRepository

# ---- Setup logging ----
setup_logging()
logger = logging.getLogger(__name__)


def build_services(settings) -> Services:
    """Construct every long-lived collaborator once."""
    store = build_document_store(settings)
    repository = TranscriptRepository(
        store,
        delete_batch_size=settings.DELETE_BATCH_SIZE,
        stuck_window_days=settings.STUCK_TRANSCRIPT_WINDOW_DAYS,
    )
    return Services(
        settings=settings,
        store=store,
        repository=repository,
        speech=build_speech_provider(settings),
        signer=build_upload_signer(settings),
        verifier=build_identity_verifier(settings),
    )


# ---- Lifespan ----
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Transcript BE starting: env=%s store=%s", settings.ENV, settings.STORE_BACKEND)
    validate_startup_config(settings)
    services = build_services(settings)
    await services.store.initialize()
    app.state.services = services
    logger.info("Transcript BE ready")
    yield
    await services.store.close()
    logger.info("Transcript BE shutdown complete")


# ---- App ----
app = FastAPI(
    title="Transcript Backend",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# =====================================================
#  Error mapping
# =====================================================

def _strip_stacks(payload: dict) -> dict:
    payload.pop("stack", None)
    if "cause" in payload:
        _strip_stacks(payload["cause"])
    return payload


def _failure_payload(error: TranscriptBackendError) -> dict:
    payload = serialize_error(error)
    if get_settings().ENV == "prod":
        _strip_stacks(payload)
    return payload


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse({"detail": exc.message, "code": exc.code}, status_code=422)


@app.exception_handler(ExportFormatError)
async def export_format_error_handler(request: Request, exc: ExportFormatError):
    return JSONResponse({"detail": exc.message, "code": exc.code}, status_code=422)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse({"detail": "Unauthorized"}, status_code=403)


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse({"detail": "Not found"}, status_code=404)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure: path=%s error=%s", request.url.path, exc)
    return JSONResponse(_failure_payload(exc), status_code=500)


@app.exception_handler(UpstreamServiceError)
async def upstream_error_handler(request: Request, exc: UpstreamServiceError):
    logger.error("Speech service failure: path=%s error=%s", request.url.path, exc)
    return JSONResponse(_failure_payload(exc), status_code=500)


@app.exception_handler(TranscriptBackendError)
async def backend_error_handler(request: Request, exc: TranscriptBackendError):
    logger.error("Unhandled backend error: path=%s error=%s", request.url.path, exc)
    return JSONResponse(_failure_payload(exc), status_code=500)


# =====================================================
#  REST Endpoints
# =====================================================

api_router = APIRouter(prefix="/api")


# ---- Health ----
@api_router.get("/health")
async def health(services: Services = Depends(get_services)):
    return {
        "status": "ok",
        "env": services.settings.ENV,
        "version": "0.1.0",
        "store_backend": services.settings.STORE_BACKEND,
        "speech_provider": type(services.speech).__name__,
        "speech_healthy": await services.speech.is_healthy(),
        "mock_speech": services.settings.MOCK_SPEECH,
        "mock_storage": services.settings.MOCK_STORAGE,
    }


api_router.include_router(transcripts.router)
api_router.include_router(operations.router)
app.include_router(api_router)
