from typing import TypedDict, Optional, List, Dict, Any

class TranscriptionState(TypedDict, total=False):
    """State shape for the audio → draft workflow."""
    user_id: str
    workspace_id: Optional[str]
    filename: str
    content_type: str
    audio: bytes
    transcript: str
    draft: Dict[str, str]            # ContactDraft.as_dict()
    errors: List[str]                # best-effort bookkeeping failures

class SubmissionState(TypedDict, total=False):
    """State shape for the reviewed draft → CRM workflow."""
    user_id: str
    workspace_id: str
    raw: Dict[str, Any]              # submitted JSON body
    contact: Dict[str, str]          # sanitized and validated fields
    delivery: Dict[str, Any]         # variant, status_code, body of the accepting attempt
    delivery_error: Optional[Any]    # DeliveryError when every variant failed
    contact_id: Optional[str]
    status: str                      # ContactStatus value
    errors: List[str]
