"""Inbound message pipeline.

One call to ``InboundPipeline.process`` handles one webhook delivery:

    received -> normalized -> (audio_pending -> transcribed)? -> logged_inbound
      -> allow_check -> human_check
      -> (agent_replying -> replying -> logged_outbound)? -> done

The inbound message is logged before either gate so the dashboard always shows
inbound traffic. Nothing raised inside a turn escapes ``process``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from relaybot.logging_config import TurnLogger, get_logger
from relaybot.services.agent_service import LLMReplyAgent, ReplyAgent, get_llm_provider
from relaybot.services.alert_service import alert_error
from relaybot.services.control_service import ControlArbiter
from relaybot.services.credentials_service import resolve_credentials
from relaybot.services.history_service import AI, HUMAN, Customer, HistoryStore
from relaybot.services.media_bridge import MediaBridge, MediaError, wants_voice_reply
from relaybot.services.payload_parser import NormalizedMessage, normalize
from relaybot.services.reply_dispatcher import DispatchOutcome, ReplyDispatcher
from relaybot.services.session_keys import build_session_id, customer_number
from relaybot.services.tts_service import get_tts_provider
from relaybot.services.whatsapp_service import WhatsAppService

logger = get_logger("pipeline")


class PipelineState(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    AUDIO_PENDING = "audio_pending"
    TRANSCRIBED = "transcribed"
    LOGGED_INBOUND = "logged_inbound"
    ALLOW_CHECK = "allow_check"
    HUMAN_CHECK = "human_check"
    AGENT_REPLYING = "agent_replying"
    REPLYING = "replying"
    LOGGED_OUTBOUND = "logged_outbound"
    DONE = "done"


# Reasons a turn ended
NOT_ACTIONABLE = "not_actionable"
MEDIA_DOWNLOAD_FAILED = "media_download_failed"
TRANSCRIPTION_FAILED = "transcription_failed"
EMPTY_TRANSCRIPT = "empty_transcript"
NOT_ALLOWED = "not_allowed"
HUMAN_IN_CONTROL = "human_in_control"
REPLIED = "replied"
FAILED = "failed"


@dataclass
class PipelineOutcome:
    turn_id: str
    state: PipelineState = PipelineState.RECEIVED
    reason: Optional[str] = None
    session_id: Optional[str] = None
    dispatch: Optional[DispatchOutcome] = None
    failed_at: Optional[PipelineState] = None

    @property
    def reply_sent(self) -> bool:
        return bool(self.dispatch and self.dispatch.ok)

    def finish(self, reason: str) -> "PipelineOutcome":
        self.state = PipelineState.DONE
        self.reason = reason
        return self


class InboundPipeline:
    def __init__(
        self,
        *,
        history: HistoryStore,
        arbiter: ControlArbiter,
        media: MediaBridge,
        dispatcher: ReplyDispatcher,
        agent: Optional[ReplyAgent],
    ):
        self.history = history
        self.arbiter = arbiter
        self.media = media
        self.dispatcher = dispatcher
        self.agent = agent

    def process(self, body: Any) -> PipelineOutcome:
        outcome = PipelineOutcome(turn_id=uuid4().hex[:12])
        log = TurnLogger(logger, {"turn_id": outcome.turn_id})
        try:
            return self._run(body, outcome, log)
        except Exception as e:
            outcome.failed_at = outcome.state
            log.exception(
                "Pipeline failed",
                context={"state": outcome.state.value, "error": str(e)},
            )
            alert_error(
                "Inbound pipeline failed",
                {"turn_id": outcome.turn_id, "session_id": outcome.session_id, "state": outcome.state.value},
            )
            return outcome.finish(FAILED)

    def _transcribe(self, message: NormalizedMessage, outcome: PipelineOutcome, log: TurnLogger) -> Optional[str]:
        outcome.state = PipelineState.AUDIO_PENDING
        blob = self.media.download(message.media_id)
        if blob is None:
            log.error("Failed to download voice note", context={"media_id": message.media_id})
            outcome.finish(MEDIA_DOWNLOAD_FAILED)
            return None

        try:
            text = self.media.transcribe(blob)
        except MediaError as e:
            log.error("Transcription failed", context={"media_id": message.media_id, "error": str(e)})
            outcome.finish(TRANSCRIPTION_FAILED)
            return None

        if not text or not text.strip():
            log.info("Empty transcription, skipping", context={"media_id": message.media_id})
            outcome.finish(EMPTY_TRANSCRIPT)
            return None

        outcome.state = PipelineState.TRANSCRIBED
        log.info("Voice note transcribed", context={"media_id": message.media_id, "text_len": len(text)})
        return text

    def _append(
        self,
        log: TurnLogger,
        session_id: str,
        direction: str,
        content: str,
        customer: Customer,
        media_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        result = self.history.append(session_id, direction, content, customer, media_id=media_id, metadata=metadata)
        if not result.ok:
            log.error("History append failed", context={"error": result.error, "direction": direction})

    def _run(self, body: Any, outcome: PipelineOutcome, log: TurnLogger) -> PipelineOutcome:
        message = normalize(body)
        if message is None:
            log.info("No actionable message in payload")
            return outcome.finish(NOT_ACTIONABLE)
        outcome.state = PipelineState.NORMALIZED

        session_id = build_session_id(message.sender_id)
        outcome.session_id = session_id
        log.bind(session_id=session_id)
        number = customer_number(message.sender_id)
        customer = Customer(number=number, name=message.sender_name)

        text = message.text
        inbound_media_id = None
        if message.kind == "audio":
            text = self._transcribe(message, outcome, log)
            if text is None:
                return outcome
            inbound_media_id = message.media_id
            respond_with_voice = True
        else:
            respond_with_voice = wants_voice_reply(text)

        self._append(log, session_id, HUMAN, text, customer, media_id=inbound_media_id)
        outcome.state = PipelineState.LOGGED_INBOUND
        log.info("Inbound message logged", context={"kind": message.kind, "voice_reply": respond_with_voice})

        outcome.state = PipelineState.ALLOW_CHECK
        if not self.arbiter.is_allowed_for_automation(number):
            log.info("Number not allowed for AI, skipping reply")
            return outcome.finish(NOT_ALLOWED)

        outcome.state = PipelineState.HUMAN_CHECK
        if self.arbiter.is_human_in_control(session_id):
            log.info("Human in control, AI skipped")
            return outcome.finish(HUMAN_IN_CONTROL)

        outcome.state = PipelineState.AGENT_REPLYING
        if self.agent is None:
            raise RuntimeError("No reply agent configured (OPENAI_API_KEY)")
        reply_text = self.agent.generate_reply(session_id, text, number, message.sender_name)

        outcome.state = PipelineState.REPLYING
        try:
            dispatch = self.dispatcher.dispatch_reply(
                message.sender_id, reply_text, voice=respond_with_voice, log=log
            )
        except Exception as e:
            log.exception("Reply dispatch raised", context={"error": str(e)})
            dispatch = DispatchOutcome(ok=False, channel="audio" if respond_with_voice else "text", error=str(e))
        outcome.dispatch = dispatch

        self._append(
            log,
            session_id,
            AI,
            reply_text,
            customer,
            media_id=dispatch.media_id,
            metadata=dispatch.as_metadata(),
        )
        outcome.state = PipelineState.LOGGED_OUTBOUND
        log.info("Turn complete", context={"delivered": dispatch.ok, "channel": dispatch.channel})
        return outcome.finish(REPLIED)


def build_pipeline(db: Session) -> InboundPipeline:
    """Wire the pipeline for one unit of work. Credentials are resolved per call."""
    credentials = resolve_credentials(db)
    whatsapp = WhatsAppService(credentials) if credentials else None
    llm = get_llm_provider()
    media = MediaBridge(whatsapp, transcriber=llm, synthesizer=get_tts_provider())
    return InboundPipeline(
        history=HistoryStore(db),
        arbiter=ControlArbiter(db),
        media=media,
        dispatcher=ReplyDispatcher(whatsapp, media),
        agent=LLMReplyAgent(db, llm) if llm else None,
    )
