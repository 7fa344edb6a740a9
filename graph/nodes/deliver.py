from langchain_core.runnables import RunnableConfig
from loguru import logger

from db.models import ContactStatus
from errors import DeliveryError
from graph.state import SubmissionState

def deliver(state: SubmissionState, config: RunnableConfig) -> SubmissionState:
    """Forward the validated contact to the CRM webhook."""
    forwarder = config["configurable"]["forwarder"]
    logger.info(f"Starting CRM delivery for workspace: {state.get('workspace_id', 'unknown')}")

    try:
        result = forwarder.deliver(state["contact"])
    except DeliveryError as e:
        logger.error(f"CRM delivery failed after all variants: {e.upstream_status} {e.details}")
        state["delivery_error"] = e
        state["status"] = ContactStatus.FAILED.value
        return state

    state["delivery"] = {
        "variant": result.variant,
        "status_code": result.status_code,
        "body": result.body,
    }
    state["status"] = ContactStatus.PROCESSED.value
    return state
