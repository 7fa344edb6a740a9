from loguru import logger

from graph.state import TranscriptionState
from tools.extractor import extract_contact

def extract(state: TranscriptionState) -> TranscriptionState:
    """Turn the transcript into a pre-filled contact draft."""
    draft = extract_contact(state.get("transcript", ""))
    state["draft"] = draft.as_dict()

    found = [field for field in ("name", "phone", "email", "company") if state["draft"][field]]
    logger.info(f"Extracted fields: {found or 'none'}")
    return state
