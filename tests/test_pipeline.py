from unittest.mock import Mock, patch

import pytest

from relaybot.services.media_bridge import TranscriptionError
from relaybot.services.pipeline import (
    EMPTY_TRANSCRIPT,
    FAILED,
    HUMAN_IN_CONTROL,
    MEDIA_DOWNLOAD_FAILED,
    NOT_ACTIONABLE,
    NOT_ALLOWED,
    REPLIED,
    TRANSCRIPTION_FAILED,
    InboundPipeline,
    PipelineState,
)
from relaybot.services.reply_dispatcher import ReplyDispatcher
from relaybot.services.result import DispatchResult, Result
from relaybot.services.whatsapp_service import MediaBlob


@pytest.fixture
def history():
    store = Mock()
    store.append.return_value = Result.success(None)
    return store


@pytest.fixture
def arbiter():
    gates = Mock()
    gates.is_allowed_for_automation.return_value = True
    gates.is_human_in_control.return_value = False
    return gates


@pytest.fixture
def whatsapp():
    client = Mock()
    client.send_text.return_value = DispatchResult.sent()
    client.send_audio.return_value = DispatchResult.sent(media_id="reply-media")
    return client


@pytest.fixture
def media():
    bridge = Mock()
    bridge.download.return_value = MediaBlob(content=b"OggS", mime_type="audio/ogg")
    bridge.transcribe.return_value = "what time do you open"
    bridge.synthesize.return_value = b"OggS-reply"
    return bridge


@pytest.fixture
def agent():
    reply_agent = Mock()
    reply_agent.generate_reply.return_value = "Hello Alice"
    return reply_agent


@pytest.fixture
def pipeline(history, arbiter, media, whatsapp, agent):
    return InboundPipeline(
        history=history,
        arbiter=arbiter,
        media=media,
        dispatcher=ReplyDispatcher(whatsapp, media),
        agent=agent,
    )


class TestTextTurn:
    def test_end_to_end_text_reply(self, pipeline, history, whatsapp, agent, text_payload):
        outcome = pipeline.process(text_payload)

        assert outcome.reason == REPLIED
        assert outcome.state == PipelineState.DONE
        assert outcome.session_id == "APP-27821234567"
        assert outcome.reply_sent is True

        assert history.append.call_count == 2
        inbound, outbound = history.append.call_args_list
        assert inbound[0][:3] == ("APP-27821234567", "human", "Hi")
        assert inbound[0][3].name == "Alice"
        assert outbound[0][:3] == ("APP-27821234567", "ai", "Hello Alice")
        assert outbound[1]["metadata"] == {"delivery": {"ok": True, "channel": "text"}}

        agent.generate_reply.assert_called_once_with("APP-27821234567", "Hi", "27821234567", "Alice")
        whatsapp.send_text.assert_called_once_with("27821234567", "Hello Alice")
        whatsapp.send_audio.assert_not_called()

    def test_voice_request_in_text_replies_with_audio(self, pipeline, history, whatsapp, text_payload):
        text_payload["messages"][0]["text"]["body"] = "Please send a voice note"

        outcome = pipeline.process(text_payload)

        assert outcome.dispatch.channel == "audio"
        whatsapp.send_audio.assert_called_once_with("27821234567", b"OggS-reply", "audio/ogg")
        whatsapp.send_text.assert_not_called()
        assert history.append.call_args_list[1][1]["media_id"] == "reply-media"

    def test_not_actionable_payload(self, pipeline, history, agent):
        outcome = pipeline.process({"statuses": []})

        assert outcome.reason == NOT_ACTIONABLE
        history.append.assert_not_called()
        agent.generate_reply.assert_not_called()


class TestGates:
    def test_not_allowed_logs_inbound_only(self, pipeline, history, arbiter, whatsapp, agent, text_payload):
        arbiter.is_allowed_for_automation.return_value = False

        outcome = pipeline.process(text_payload)

        assert outcome.reason == NOT_ALLOWED
        assert history.append.call_count == 1
        assert history.append.call_args[0][1] == "human"
        agent.generate_reply.assert_not_called()
        whatsapp.send_text.assert_not_called()
        whatsapp.send_audio.assert_not_called()
        arbiter.is_allowed_for_automation.assert_called_once_with("27821234567")

    def test_human_in_control_logs_inbound_only(self, pipeline, history, arbiter, whatsapp, agent, text_payload):
        arbiter.is_human_in_control.return_value = True

        outcome = pipeline.process(text_payload)

        assert outcome.reason == HUMAN_IN_CONTROL
        assert history.append.call_count == 1
        agent.generate_reply.assert_not_called()
        whatsapp.send_text.assert_not_called()
        arbiter.is_human_in_control.assert_called_once_with("APP-27821234567")


class TestAudioTurn:
    def test_voice_note_gets_voice_reply(self, pipeline, history, media, whatsapp, agent, audio_payload):
        outcome = pipeline.process(audio_payload)

        assert outcome.reason == REPLIED
        media.download.assert_called_once_with("media-123")
        agent.generate_reply.assert_called_once_with(
            "APP-27821234567", "what time do you open", "27821234567", "Alice"
        )
        inbound, outbound = history.append.call_args_list
        assert inbound[1]["media_id"] == "media-123"
        assert outbound[1]["media_id"] == "reply-media"
        whatsapp.send_audio.assert_called_once()
        whatsapp.send_text.assert_not_called()

    def test_voice_failure_falls_back_to_text_once(self, pipeline, history, whatsapp, audio_payload):
        whatsapp.send_audio.return_value = DispatchResult.failed("upload 500: oops")

        outcome = pipeline.process(audio_payload)

        assert outcome.reason == REPLIED
        assert outcome.dispatch.channel == "text_fallback"
        whatsapp.send_text.assert_called_once_with("27821234567", "Hello Alice")
        outbound = [c for c in history.append.call_args_list if c[0][1] == "ai"]
        assert len(outbound) == 1
        assert outbound[0][1]["media_id"] is None
        assert outbound[0][1]["metadata"]["delivery"]["voice_error"] == "upload 500: oops"

    def test_empty_transcript_ends_turn(self, pipeline, history, media, agent, whatsapp, audio_payload):
        media.transcribe.return_value = "   "

        outcome = pipeline.process(audio_payload)

        assert outcome.reason == EMPTY_TRANSCRIPT
        history.append.assert_not_called()
        agent.generate_reply.assert_not_called()
        whatsapp.send_text.assert_not_called()

    def test_download_failure_ends_turn(self, pipeline, history, media, audio_payload):
        media.download.return_value = None

        outcome = pipeline.process(audio_payload)

        assert outcome.reason == MEDIA_DOWNLOAD_FAILED
        history.append.assert_not_called()
        media.transcribe.assert_not_called()

    def test_transcription_error_ends_turn(self, pipeline, history, media, audio_payload):
        media.transcribe.side_effect = TranscriptionError("whisper down")

        outcome = pipeline.process(audio_payload)

        assert outcome.reason == TRANSCRIPTION_FAILED
        history.append.assert_not_called()


class TestFailures:
    def test_send_failure_still_logs_outbound(self, pipeline, history, whatsapp, text_payload):
        whatsapp.send_text.return_value = DispatchResult.failed("401: expired token")

        outcome = pipeline.process(text_payload)

        assert outcome.reason == REPLIED
        assert outcome.reply_sent is False
        assert history.append.call_count == 2
        assert history.append.call_args_list[1][1]["metadata"]["delivery"]["ok"] is False

    def test_history_failure_does_not_stop_reply(self, pipeline, history, whatsapp, text_payload):
        history.append.return_value = Result.failure("db down", "db_error")

        outcome = pipeline.process(text_payload)

        assert outcome.reason == REPLIED
        whatsapp.send_text.assert_called_once()
        assert history.append.call_count == 2

    @patch("relaybot.services.pipeline.alert_error")
    def test_agent_exception_caught(self, mock_alert, pipeline, agent, history, text_payload):
        agent.generate_reply.side_effect = RuntimeError("LLM exploded")

        outcome = pipeline.process(text_payload)

        assert outcome.reason == FAILED
        assert outcome.failed_at == PipelineState.AGENT_REPLYING
        assert history.append.call_count == 1
        mock_alert.assert_called_once()

    @patch("relaybot.services.pipeline.alert_error")
    def test_missing_agent_fails_turn(self, mock_alert, history, arbiter, media, whatsapp, text_payload):
        pipeline = InboundPipeline(
            history=history,
            arbiter=arbiter,
            media=media,
            dispatcher=ReplyDispatcher(whatsapp, media),
            agent=None,
        )

        outcome = pipeline.process(text_payload)

        assert outcome.reason == FAILED
        whatsapp.send_text.assert_not_called()
