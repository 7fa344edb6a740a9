from unittest.mock import MagicMock

import httpx
import openai
import pytest

from errors import ConfigurationError, UpstreamError
from tools.whisper import WhisperTranscriber

API_URL = "https://api.openai.com/v1/audio/transcriptions"


def status_error(status, message, cls=openai.APIStatusError):
    request = httpx.Request("POST", API_URL)
    response = httpx.Response(status, request=request, json={"error": {"message": message}})
    return cls(message, response=response, body=None)


class TestWhisperTranscriber:
    """Test transcription calls and upstream error mapping."""

    def setup_method(self):
        self.client = MagicMock()
        self.client.audio.transcriptions.create.return_value = MagicMock(text="hello there")
        self.transcriber = WhisperTranscriber("sk-test-key", client=self.client)

    def test_transcribe(self):
        text = self.transcriber.transcribe("recording.webm", b"audio-bytes", "audio/webm")

        assert text == "hello there"
        self.client.audio.transcriptions.create.assert_called_once_with(
            model="whisper-1",
            file=("recording.webm", b"audio-bytes", "audio/webm"),
            language="en",
        )

    def test_missing_api_key(self):
        transcriber = WhisperTranscriber(None, client=self.client)

        assert transcriber.configured is False
        with pytest.raises(ConfigurationError) as exc_info:
            transcriber.transcribe("recording.webm", b"x", "audio/webm")

        assert exc_info.value.error == "OpenAI API key not configured"
        self.client.audio.transcriptions.create.assert_not_called()

    def test_placeholder_api_key(self):
        transcriber = WhisperTranscriber("your_openai_api_key_here", client=self.client)

        with pytest.raises(ConfigurationError):
            transcriber.transcribe("recording.webm", b"x", "audio/webm")

    def test_malformed_api_key(self):
        transcriber = WhisperTranscriber("not-a-key", client=self.client)

        with pytest.raises(ConfigurationError) as exc_info:
            transcriber.transcribe("recording.webm", b"x", "audio/webm")

        assert exc_info.value.error == "Invalid API key format"

    @pytest.mark.parametrize("status,message,expected", [
        (401, "Incorrect API key provided", "OpenAI API authentication failed"),
        (403, "Forbidden", "OpenAI API access denied"),
        (429, "You exceeded your current quota", "OpenAI API quota exceeded"),
        (429, "Rate limit reached", "Rate limit exceeded"),
        (500, "Server error", "Failed to transcribe audio"),
    ])
    def test_status_errors(self, status, message, expected):
        self.client.audio.transcriptions.create.side_effect = status_error(status, message)

        with pytest.raises(UpstreamError) as exc_info:
            self.transcriber.transcribe("recording.webm", b"x", "audio/webm")

        assert exc_info.value.error == expected
        assert exc_info.value.upstream_status == status
        assert exc_info.value.to_dict()["status"] == status

    def test_connection_error(self):
        request = httpx.Request("POST", API_URL)
        self.client.audio.transcriptions.create.side_effect = openai.APIConnectionError(request=request)

        with pytest.raises(UpstreamError) as exc_info:
            self.transcriber.transcribe("recording.webm", b"x", "audio/webm")

        assert exc_info.value.error == "Network connection failed"
        assert exc_info.value.upstream_status is None

    def test_timeout(self):
        request = httpx.Request("POST", API_URL)
        self.client.audio.transcriptions.create.side_effect = openai.APITimeoutError(request=request)

        with pytest.raises(UpstreamError) as exc_info:
            self.transcriber.transcribe("recording.webm", b"x", "audio/webm")

        assert exc_info.value.error == "Network connection failed"

    def test_from_settings(self, settings):
        transcriber = WhisperTranscriber.from_settings(settings)

        assert transcriber.configured is True
        assert transcriber.model == settings.transcription_model
        assert transcriber.language == settings.transcription_language
