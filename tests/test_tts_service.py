from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from relaybot.services.tts_service import OUTPUT_FORMAT, AzureTTSProvider, TTSError, build_ssml, escape_xml


class TestSSML:
    def test_escape_ampersand_first(self):
        assert escape_xml("a & <b>") == "a &amp; &lt;b&gt;"

    def test_escape_quotes(self):
        assert escape_xml("\"it's\"") == "&quot;it&apos;s&quot;"

    def test_build_ssml_contains_voice_and_text(self):
        ssml = build_ssml("Hi & bye", "en-US-EmmaMultilingualNeural")
        assert "name='en-US-EmmaMultilingualNeural'" in ssml
        assert "Hi &amp; bye" in ssml
        assert ssml.startswith("<speak")


class TestAzureTTSProvider:
    def test_missing_key_raises(self):
        with pytest.raises(TTSError):
            AzureTTSProvider(api_key=None).synthesize("Hello")

    @patch("relaybot.services.tts_service.httpx.Client")
    def test_synthesize_returns_audio(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        response = Mock(status_code=200, is_success=True, content=b"OggS-audio")
        mock_client.post.return_value = response

        audio = AzureTTSProvider(api_key="key", region="westeurope").synthesize("Hello")

        assert audio == b"OggS-audio"
        url = mock_client.post.call_args[0][0]
        assert url == "https://westeurope.tts.speech.microsoft.com/cognitiveservices/v1"
        headers = mock_client.post.call_args[1]["headers"]
        assert headers["Ocp-Apim-Subscription-Key"] == "key"
        assert headers["X-Microsoft-OutputFormat"] == OUTPUT_FORMAT
        assert b"Hello" in mock_client.post.call_args[1]["content"]

    @patch("relaybot.services.tts_service.httpx.Client")
    def test_error_status_raises(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = Mock(status_code=401, is_success=False, text="unauthorized")

        with pytest.raises(TTSError) as exc_info:
            AzureTTSProvider(api_key="key").synthesize("Hello")
        assert exc_info.value.status_code == 401

    @patch("relaybot.services.tts_service.httpx.Client")
    def test_network_error_raises(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.side_effect = httpx.ConnectError("down")

        with pytest.raises(TTSError):
            AzureTTSProvider(api_key="key").synthesize("Hello")
