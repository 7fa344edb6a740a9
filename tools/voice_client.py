"""Python client for the voice contact API.

``VoiceContactClient`` wraps the HTTP endpoints. ``ReviewSession`` drives the
same record -> transcribe -> review -> submit flow as the browser page, with
the human confirmation step kept explicit: nothing is sent to the CRM until
``submit()`` is called.
"""
import re
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx
from loguru import logger

CONTACT_FIELDS = ("name", "phone", "email", "company", "notes")
EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mp4": "m4a",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
}


class ClientError(Exception):
    """Non-2xx response (or no response) from the voice contact API."""

    def __init__(self, status_code: Optional[int], error: str, details: Any = None):
        super().__init__(f"{status_code}: {error}" if status_code else error)
        self.status_code = status_code
        self.error = error
        self.details = details


class MicrophoneUnavailable(Exception):
    """Raised by a capturer when microphone access is denied or missing."""


class ReviewStateError(Exception):
    """An action was attempted in a state that does not allow it."""


class ReviewState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    REVIEWING = "reviewing"
    SUBMITTING = "submitting"
    DONE = "done"
    ERROR = "error"


def format_elapsed(seconds: float) -> str:
    """Format a duration as ``MM:SS``."""
    total = max(int(seconds), 0)
    return f"{total // 60:02d}:{total % 60:02d}"


def recording_filename(mime_type: str) -> str:
    base = (mime_type or "").split(";")[0].strip().lower()
    return f"recording.{EXTENSIONS.get(base, 'webm')}"


class VoiceContactClient:
    """Thin httpx client authenticated with a session token."""

    def __init__(
        self,
        base_url: str,
        session_token: str,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {session_token}"},
        )

    def __enter__(self) -> "VoiceContactClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def transcribe(
        self, audio: bytes, filename: str = "recording.webm", content_type: str = "audio/webm"
    ) -> Dict[str, Any]:
        """Upload a recording; returns ``{transcription, contactData, success}``."""
        return self._request("POST", "/transcribe", files={"audio": (filename, audio, content_type)})

    def submit_contact(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/submit-contact", json=dict(fields))

    def list_contacts(self, page: int = 1, limit: int = 20, search: str = "") -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        return self._request("GET", "/contacts", params=params)

    def delete_contact(self, contact_id: str) -> Dict[str, Any]:
        return self._request("DELETE", "/contacts", params={"id": contact_id})

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ClientError(None, "Network connection failed", str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = {"error": response.text or response.reason_phrase, "details": None}

        if response.is_success:
            return data
        if not isinstance(data, dict):
            data = {"error": str(data)}
        raise ClientError(response.status_code, data.get("error") or "Request failed", data.get("details"))


class ReviewSession:
    """
    Human-in-the-loop capture flow.

    IDLE -> RECORDING -> PROCESSING -> REVIEWING -> SUBMITTING -> DONE | ERROR.
    ``reset()`` returns to IDLE from anywhere and discards everything captured.

    The capturer is any object with ``start()``, ``stop() -> (bytes, mime_type)``
    and an ``elapsed_seconds`` attribute; ``start()`` raises
    ``MicrophoneUnavailable`` when access is denied.
    """

    def __init__(self, client: VoiceContactClient, capturer: Any):
        self.client = client
        self.capturer = capturer
        self.state = ReviewState.IDLE
        self.fields: Dict[str, str] = {}
        self.transcript = ""
        self.message: Optional[str] = None
        self.result: Optional[Dict[str, Any]] = None

    def _require(self, *allowed: ReviewState) -> None:
        if self.state not in allowed:
            raise ReviewStateError(
                f"Cannot do that while {self.state.value}; expected {', '.join(s.value for s in allowed)}"
            )

    @property
    def elapsed(self) -> str:
        if self.state != ReviewState.RECORDING:
            return format_elapsed(0)
        return format_elapsed(self.capturer.elapsed_seconds)

    def start_recording(self) -> bool:
        """Acquire the microphone. Returns False (staying IDLE) if access is denied."""
        self._require(ReviewState.IDLE)
        try:
            self.capturer.start()
        except MicrophoneUnavailable as e:
            logger.warning(f"Microphone unavailable: {e}")
            self.message = "Microphone access was denied. Allow microphone permission and try again."
            return False

        self.message = None
        self.state = ReviewState.RECORDING
        return True

    def stop_recording(self) -> ReviewState:
        """Stop capture and transcribe; lands in REVIEWING or ERROR."""
        self._require(ReviewState.RECORDING)
        audio, mime_type = self.capturer.stop()
        self.state = ReviewState.PROCESSING

        try:
            response = self.client.transcribe(audio, recording_filename(mime_type), mime_type)
        except ClientError as e:
            logger.error(f"Transcription failed: {e}")
            self.message = e.error
            self.state = ReviewState.ERROR
            return self.state

        draft = response.get("contactData") or {}
        self.transcript = response.get("transcription", "")
        self.fields = {field: draft.get(field) or "" for field in CONTACT_FIELDS}
        self.state = ReviewState.REVIEWING
        return self.state

    def edit(self, **fields: str) -> Dict[str, str]:
        """Overwrite draft fields before submitting."""
        self._require(ReviewState.REVIEWING)
        unknown = set(fields) - set(CONTACT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown contact fields: {sorted(unknown)}")
        self.fields.update({key: value or "" for key, value in fields.items()})
        return dict(self.fields)

    def check_fields(self) -> Tuple[bool, Optional[str]]:
        name = self.fields.get("name", "").strip()
        phone = self.fields.get("phone", "").strip()
        email = self.fields.get("email", "").strip()

        if len(name) < 2:
            return False, "Name must be at least 2 characters"
        if len(phone) < 10:
            return False, "Phone must be at least 10 characters"
        if email and not EMAIL_SHAPE.match(email):
            return False, "Email address looks invalid"
        return True, None

    def submit(self) -> ReviewState:
        """
        Send the reviewed contact. Only allowed from REVIEWING.

        A draft that fails the local checks stays in REVIEWING with
        ``message`` set; nothing is sent.
        """
        self._require(ReviewState.REVIEWING)
        ok, problem = self.check_fields()
        if not ok:
            self.message = problem
            return self.state

        self.state = ReviewState.SUBMITTING
        try:
            self.result = self.client.submit_contact(self.fields)
        except ClientError as e:
            logger.error(f"Contact submission failed: {e}")
            self.message = e.error
            self.state = ReviewState.ERROR
            return self.state

        self.message = None
        self.state = ReviewState.DONE
        return self.state

    def reset(self) -> None:
        if self.state == ReviewState.RECORDING:
            self.capturer.stop()
        self.state = ReviewState.IDLE
        self.fields = {}
        self.transcript = ""
        self.message = None
        self.result = None
