import re
from typing import Any, Dict

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError
from graph.state import SubmissionState
from tools.extractor import MAX_INPUT_LENGTH, sanitize_input

REQUIRED_FIELDS = ["name", "phone"]

PHONE_PATTERN = re.compile(r"^\+?[\d\s().-]{7,20}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ContactSubmission(BaseModel):
    """A reviewed contact, as accepted for CRM delivery."""

    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=20)
    email: str = Field("", max_length=254)
    company: str = Field("", max_length=100)
    notes: str = Field("", max_length=MAX_INPUT_LENGTH)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value) or len(re.sub(r"\D", "", value)) < 7:
            raise ValueError("Invalid phone number format")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if value and not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email format")
        return value.lower()


def sanitize_submission(raw: Dict[str, Any]) -> Dict[str, str]:
    return {
        "name": sanitize_input(raw.get("name")),
        "phone": sanitize_input(raw.get("phone"), preserve_email=True),
        "email": sanitize_input(raw.get("email"), preserve_email=True),
        "company": sanitize_input(raw.get("company")),
        "notes": sanitize_input(raw.get("notes"), preserve_email=True),
    }


def validate(state: SubmissionState) -> SubmissionState:
    """Sanitize and validate the reviewed contact. Nothing is sent if this fails."""
    raw = state.get("raw") or {}
    cleaned = sanitize_submission(raw)

    missing = [field for field in REQUIRED_FIELDS if not cleaned[field]]
    if missing:
        logger.warning(f"Contact submission missing fields: {missing}")
        raise ValidationError("Missing required fields", {"required": REQUIRED_FIELDS, "missing": missing})

    try:
        submission = ContactSubmission(**cleaned)
    except PydanticValidationError as e:
        problems = {str(err["loc"][0]): err["msg"] for err in e.errors()}
        logger.warning(f"Contact submission rejected: {problems}")
        raise ValidationError("Invalid contact data", problems) from e

    state["contact"] = submission.model_dump()
    state.setdefault("errors", [])
    logger.info(f"Validated contact submission for {submission.name}")
    return state
