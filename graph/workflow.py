from langgraph.graph import StateGraph, START, END

from graph.state import TranscriptionState, SubmissionState
from graph.nodes.receive import receive
from graph.nodes.transcribe import transcribe
from graph.nodes.extract import extract
from graph.nodes.log_usage import log_usage
from graph.nodes.validate import validate
from graph.nodes.deliver import deliver
from graph.nodes.record import record

def build_transcription_workflow():
    """Build the audio → contact draft workflow.

    Collaborators are supplied per invocation through
    ``config["configurable"]``: ``settings``, ``transcriber`` and ``db``.
    """
    workflow = StateGraph(TranscriptionState)

    workflow.add_node("receive", receive)
    workflow.add_node("transcribe", transcribe)
    workflow.add_node("extract", extract)
    workflow.add_node("log_usage", log_usage)

    workflow.add_edge(START, "receive")
    workflow.add_edge("receive", "transcribe")
    workflow.add_edge("transcribe", "extract")
    workflow.add_edge("extract", "log_usage")
    workflow.add_edge("log_usage", END)

    return workflow.compile()

def build_submission_workflow():
    """Build the reviewed contact → CRM workflow.

    Collaborators: ``forwarder`` and ``db``. Delivery failure does not raise
    out of the graph; it is left in ``delivery_error`` after the FAILED
    record is written.
    """
    workflow = StateGraph(SubmissionState)

    workflow.add_node("validate", validate)
    workflow.add_node("deliver", deliver)
    workflow.add_node("record", record)

    workflow.add_edge(START, "validate")
    workflow.add_edge("validate", "deliver")
    workflow.add_edge("deliver", "record")
    workflow.add_edge("record", END)

    return workflow.compile()
