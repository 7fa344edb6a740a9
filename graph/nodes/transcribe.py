from langchain_core.runnables import RunnableConfig
from loguru import logger

from graph.state import TranscriptionState

def transcribe(state: TranscriptionState, config: RunnableConfig) -> TranscriptionState:
    """Forward the audio to the speech-to-text API."""
    transcriber = config["configurable"]["transcriber"]
    logger.info(f"Starting transcription for user: {state.get('user_id', 'unknown')}")

    state["transcript"] = transcriber.transcribe(
        state.get("filename") or "recording.webm",
        state["audio"],
        state["content_type"],
    )

    logger.info(f"Transcription completed: {len(state['transcript'])} characters")
    return state
