from langchain_core.runnables import RunnableConfig
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from db.contacts import create_contact
from db.models import ContactStatus
from db.workspace import adjust_contact_count, record_usage
from graph.state import SubmissionState

def record(state: SubmissionState, config: RunnableConfig) -> SubmissionState:
    """
    Persist the outcome locally.

    The contact row, the workspace counter and the usage log are written
    independently. A failure in any of them is logged and swallowed: once the
    webhook has the lead, the request is reported as delivered.
    """
    db = config["configurable"]["db"]
    workspace_id = state["workspace_id"]
    status = ContactStatus(state["status"])
    delivery = state.get("delivery") or {}
    error = state.get("delivery_error")

    status_code = delivery.get("status_code") if delivery else getattr(error, "upstream_status", None)
    variant = delivery.get("variant") if delivery else getattr(error, "variant", None)

    state["contact_id"] = None
    try:
        contact = create_contact(db, workspace_id, state["contact"], status, status_code, variant)
        state["contact_id"] = contact.id
        logger.info(f"Stored contact {contact.id} as {status.value}")
    except SQLAlchemyError as e:
        db.rollback()
        error_msg = f"Contact persistence failed: {e}"
        logger.error(error_msg)
        state.setdefault("errors", []).append(error_msg)

    # The workspace counter tracks delivered contacts only
    if state["contact_id"] and status == ContactStatus.PROCESSED:
        try:
            adjust_contact_count(db, workspace_id, 1)
        except SQLAlchemyError as e:
            db.rollback()
            error_msg = f"Contact counter update failed: {e}"
            logger.error(error_msg)
            state.setdefault("errors", []).append(error_msg)

    try:
        record_usage(
            db,
            workspace_id,
            state.get("user_id"),
            "submit_contact",
            {"status": status.value, "deliveryStatus": status_code, "variant": variant},
        )
    except SQLAlchemyError as e:
        db.rollback()
        error_msg = f"Usage log failed: {e}"
        logger.error(error_msg)
        state.setdefault("errors", []).append(error_msg)

    return state
