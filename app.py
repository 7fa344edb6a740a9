import os
import time
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from loguru import logger
from sqlalchemy.orm import Session

# Load environment variables
load_dotenv()

from auth import get_current_user, get_optional_user
from config import Settings, get_settings
from db.contacts import contact_to_dict, delete_contact, list_contacts
from db.database import get_db
from db.models import User
from db.workspace import (
    WorkspaceWithRole, ensure_user_has_workspace, get_default_workspace,
    get_user_workspace_role, require_action,
)
from errors import UpstreamError, ValidationError, VoiceContactError
from graph.workflow import build_submission_workflow, build_transcription_workflow
from template.index import index
from tools.crm_webhook import CRMForwarder
from tools.whisper import WhisperTranscriber

settings = get_settings()

# Configure logging
logger.add(settings.log_file, rotation="1 day", retention="7 days", level=settings.log_level)

# Initialize FastAPI app
app = FastAPI(
    title=settings.project_name,
    description="Voice-to-contact capture with CRM webhook delivery",
    version=settings.version,
)

transcription_graph = build_transcription_workflow()
submission_graph = build_submission_workflow()


def get_transcriber(settings: Settings = Depends(get_settings)) -> WhisperTranscriber:
    return WhisperTranscriber.from_settings(settings)


def get_forwarder(settings: Settings = Depends(get_settings)) -> CRMForwarder:
    return CRMForwarder.from_settings(settings)


def authorize(db: Session, user: User, action: str) -> WorkspaceWithRole:
    """Resolve the caller's workspace and check their role allows ``action``."""
    workspace = ensure_user_has_workspace(db, user)
    require_action(get_user_workspace_role(db, user.id, workspace.id), action)
    return workspace


@app.get("/", response_class=HTMLResponse)
def home():
    return index


@app.post("/transcribe")
def transcribe_audio(
    audio: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    transcriber: WhisperTranscriber = Depends(get_transcriber),
):
    """
    Transcribe a recording and return a pre-filled contact draft.

    Expects multipart form data with a single ``audio`` file.
    """
    workspace = authorize(db, user, "write")

    state: Dict[str, Any] = {"user_id": user.id, "workspace_id": workspace.id, "errors": []}
    if audio is not None:
        state.update(
            filename=audio.filename or "recording.webm",
            content_type=audio.content_type or "",
            # One byte past the cap is enough to reject oversized uploads
            audio=audio.file.read(settings.max_audio_bytes + 1),
        )

    result = transcription_graph.invoke(
        state,
        config={"configurable": {"settings": settings, "transcriber": transcriber, "db": db}},
    )

    return {
        "transcription": result["transcript"],
        "contactData": result["draft"],
        "success": True,
    }


@app.post("/submit-contact")
def submit_contact(
    payload: Dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    forwarder: CRMForwarder = Depends(get_forwarder),
):
    """
    Deliver a reviewed contact to the CRM webhook.

    Expected payload:
    {
        "name": "John Smith",
        "phone": "+15551234567",
        "email": "john@gmail.com",
        "company": "Acme Corp",
        "notes": "full transcript"
    }
    """
    workspace = authorize(db, user, "write")
    logger.info(f"Received contact submission for workspace {workspace.id}")

    result = submission_graph.invoke(
        {"user_id": user.id, "workspace_id": workspace.id, "raw": payload, "errors": []},
        config={"configurable": {"forwarder": forwarder, "db": db}},
    )

    if result.get("delivery_error") is not None:
        raise result["delivery_error"]

    return {
        "success": True,
        "contactId": result.get("contact_id"),
        "status": result["status"],
        "deliveryStatus": result["delivery"]["status_code"],
        "variant": result["delivery"]["variant"],
    }


@app.get("/contacts")
def get_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query(""),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Paginated, searchable list of the caller's workspace contacts."""
    workspace = authorize(db, user, "read")
    contacts, total = list_contacts(db, workspace.id, page=page, limit=limit, search=search.strip())

    return {
        "contacts": [contact_to_dict(contact) for contact in contacts],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": (total + limit - 1) // limit,
        },
    }


@app.delete("/contacts")
def remove_contact(
    id: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = authorize(db, user, "delete")
    if not id:
        raise ValidationError("Contact ID required")

    delete_contact(db, workspace.id, id)
    return {"success": True}


@app.get("/health")
def health(settings: Settings = Depends(get_settings)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version,
        "services": {
            "transcription": "configured" if WhisperTranscriber.from_settings(settings).configured else "missing",
            "crm_webhook": "configured" if settings.crm_webhook_url else "missing",
        },
    }


@app.get("/debug/auth-status")
def auth_status(user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    """Report whether the caller's session resolves (for debugging sign-in)."""
    if user is None:
        return {"authenticated": False, "user": None, "workspace": None}

    workspace = get_default_workspace(db, user.id)
    return {
        "authenticated": True,
        "user": {"id": user.id, "email": user.email, "name": user.name},
        "workspace": workspace.as_dict() if workspace else None,
    }


# Error handlers
@app.exception_handler(VoiceContactError)
async def voice_contact_error_handler(request: Request, exc: VoiceContactError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error} ({exc.details})")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.error}")

    content = exc.to_dict()
    if isinstance(exc, UpstreamError) and settings.is_development:
        content["rawError"] = repr(exc.__cause__ or exc)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.warning(f"{request.method} {request.url.path} invalid request: {details}")
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": None}
    )


if __name__ == "__main__":
    import uvicorn

    # Create logs directory if it doesn't exist
    os.makedirs(os.path.dirname(settings.log_file) or ".", exist_ok=True)

    logger.info(f"Starting {settings.project_name}")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
