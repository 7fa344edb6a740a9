from langchain_core.runnables import RunnableConfig
from loguru import logger

from errors import ValidationError
from graph.state import TranscriptionState

def receive(state: TranscriptionState, config: RunnableConfig) -> TranscriptionState:
    """Validate the uploaded audio before anything is sent upstream."""
    settings = config["configurable"]["settings"]

    if "audio" not in state:
        raise ValidationError("No audio file provided", "Attach the recording as the 'audio' form field")

    audio = state["audio"] or b""
    content_type = (state.get("content_type") or "").lower()

    logger.info(
        f"Audio file received: {state.get('filename')} ({len(audio)} bytes, {content_type or 'no type'})"
    )

    if not audio:
        raise ValidationError(
            "Empty audio file",
            "The audio file is empty. Please record some audio before submitting.",
        )

    if len(audio) > settings.max_audio_bytes:
        limit_mb = settings.max_audio_bytes / (1024 * 1024)
        raise ValidationError("Audio file too large", f"Recordings are limited to {limit_mb:g} MB")

    if not content_type.startswith("audio/"):
        raise ValidationError("Unsupported file type", "Only audio/* uploads are accepted")

    state["content_type"] = content_type
    state.setdefault("errors", [])
    return state
