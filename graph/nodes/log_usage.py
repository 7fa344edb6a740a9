from langchain_core.runnables import RunnableConfig
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from db.workspace import record_usage
from graph.state import TranscriptionState

def log_usage(state: TranscriptionState, config: RunnableConfig) -> TranscriptionState:
    """Append a usage record for the caller's workspace (best effort)."""
    workspace_id = state.get("workspace_id")
    if not workspace_id:
        logger.warning("No workspace for transcription usage log")
        return state

    db = config["configurable"]["db"]
    draft = state.get("draft", {})

    try:
        record_usage(
            db,
            workspace_id,
            state.get("user_id"),
            "transcribe",
            {
                "transcriptionLength": len(state.get("transcript", "")),
                "contactDataExtracted": bool(draft.get("name") and draft.get("phone")),
            },
        )
    except SQLAlchemyError as e:
        db.rollback()
        error_msg = f"Usage log failed: {e}"
        logger.error(error_msg)
        state.setdefault("errors", []).append(error_msg)

    return state
