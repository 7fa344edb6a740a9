from typing import Optional

import openai
from loguru import logger

from config import Settings
from errors import ConfigurationError, UpstreamError

PLACEHOLDER_KEYS = {"your_openai_api_key_here", "sk-your-key-here"}


class WhisperTranscriber:
    """Speech-to-text client for the OpenAI transcription API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "whisper-1",
        language: str = "en",
        timeout: float = 60.0,
        client: Optional[openai.OpenAI] = None,
    ):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.language = language
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhisperTranscriber":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.transcription_model,
            language=settings.transcription_language,
            timeout=settings.transcription_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and self.api_key not in PLACEHOLDER_KEYS

    def _check_credentials(self) -> None:
        if not self.configured:
            logger.error(f"OpenAI API key {'placeholder' if self.api_key else 'missing'}")
            raise ConfigurationError(
                "OpenAI API key not configured",
                "Server configuration error - please contact administrator",
            )
        if not self.api_key.startswith("sk-"):
            logger.error("Invalid OpenAI API key format")
            raise ConfigurationError("Invalid API key format", "OpenAI API key must start with sk-")

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def transcribe(self, filename: str, audio: bytes, content_type: str) -> str:
        """
        Send audio bytes to the speech-to-text API.

        Args:
            filename: Original upload name; the API infers the codec from its extension
            audio: Encoded audio
            content_type: MIME type of the upload

        Returns:
            Plain-text transcript
        """
        self._check_credentials()
        logger.info(f"Transcribing {filename} ({len(audio)} bytes, {content_type}) with {self.model}")

        try:
            result = self._get_client().audio.transcriptions.create(
                model=self.model,
                file=(filename, audio, content_type),
                language=self.language,
            )
        except openai.APIStatusError as e:
            logger.error(f"Transcription API returned {e.status_code}: {e.message}")
            raise _status_error(e) from e
        except openai.APITimeoutError as e:
            logger.error(f"Transcription API timed out: {e}")
            raise UpstreamError("Network connection failed", "Timed out waiting for speech-to-text API") from e
        except openai.APIConnectionError as e:
            logger.error(f"Transcription API unreachable: {e}")
            raise UpstreamError("Network connection failed", "Unable to connect to speech-to-text API") from e

        text = result.text or ""
        logger.info(f"Transcription received: {text[:100]!r}")
        return text


def _status_error(e: openai.APIStatusError) -> UpstreamError:
    message = e.message or ""
    status = e.status_code

    if status == 401:
        return UpstreamError(
            "OpenAI API authentication failed",
            "Invalid API key or insufficient credits - check your OpenAI billing",
            status,
        )
    if status == 403:
        return UpstreamError(
            "OpenAI API access denied",
            "API key does not have access to the transcription API or billing not set up",
            status,
        )
    if "quota" in message.lower() or "insufficient" in message.lower():
        return UpstreamError(
            "OpenAI API quota exceeded", "Insufficient credits or billing limits reached", status
        )
    if status == 429:
        return UpstreamError("Rate limit exceeded", "Too many requests, please try again later", status)
    return UpstreamError("Failed to transcribe audio", message or f"Upstream status {status}", status)
