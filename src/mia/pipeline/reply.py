"""Reply pipeline: utterance in, spoken and animated persona reply out.

Stages run strictly in order, each with its own failure policy::

    input      data-URL audio -> transcription (essential)
               empty          -> canned greeting, skip to synthesis
    sentiment  optional, defaults to "neutral"
    emotion    optional, defaults to "default"
    generate   essential (summary + recent turns + current turn)
    visuals    pure mapping, never fails
    speak      synthesis + viseme extraction (essential)
    persist    append turn, then best-effort rolling summary
    assemble   ReplyResult

Essential failures become a single ErrorResult and nothing is persisted.
Missing credentials produce a degraded reply that explains the problem.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Optional, Union

from mia.collaborators import (
    EmotionPredictor,
    SentimentClassifier,
    SpeechSynthesizer,
    TextGenerator,
    Transcriber,
    VisemeExtractor,
)
from mia.config import Settings, get_settings
from mia.errors import (
    ConfigurationError,
    EssentialStageError,
    GenerationError,
    SynthesisError,
)
from mia.interface.avatar.visuals import Visuals, map_emotion_to_visuals
from mia.interface.voice.stt import is_audio_data_url, parse_data_url
from mia.models import ErrorResult, ReplyMessage, ReplyResult, SessionExpiredResult
from mia.pipeline.outcome import StageOutcome
from mia.session.context import ContextComposer
from mia.session.state import Session
from mia.session.summarizer import RollingSummarizer

logger = logging.getLogger(__name__)

NEUTRAL_SENTIMENT = "neutral"
DEFAULT_EMOTION = "default"

REPLY_SYSTEM_PROMPT = """\
You are "MIA", an empathetic AI companion for emotional support.
Always reply in {language}, with warmth and clarity, in 2 to 4 sentences.
Validate the user's feelings and keep them company. Never give clinical or \
medical advice.
Do not use emojis or decorative symbols."""

DEGRADED_TEXT = "Ahora mismo no puedo responderte como me gustaría. ({detail})"

SubmitResult = Union[ReplyResult, SessionExpiredResult, ErrorResult]


class ReplyPipeline:
    """Orchestrates one reply round trip against a Session."""

    def __init__(
        self,
        session: Session,
        transcriber: Transcriber,
        sentiment: SentimentClassifier,
        emotion: EmotionPredictor,
        generator: TextGenerator,
        synthesizer: SpeechSynthesizer,
        visemes: VisemeExtractor,
        voice_id: str = "5vkxOzoz40FrElmLP4P7",
        language: str = "Spanish",
        greeting: str = "Estoy aquí. ¿Qué te gustaría contarme?",
        recent_turns: int = 6,
        summary_threshold_chars: int = 10_000,
    ) -> None:
        self.session = session
        self.transcriber = transcriber
        self.sentiment = sentiment
        self.emotion = emotion
        self.generator = generator
        self.synthesizer = synthesizer
        self.visemes = visemes
        self.voice_id = voice_id
        self.language = language
        self.greeting = greeting
        self.composer = ContextComposer(session.turns, session.summary, recent_turns)
        self.summarizer = RollingSummarizer(
            session.turns,
            session.summary,
            generator,
            threshold_chars=summary_threshold_chars,
            language=language,
        )

    @classmethod
    def from_settings(cls, session: Session, settings: Optional[Settings] = None) -> ReplyPipeline:
        """Wire the production collaborators selected by configuration."""
        from mia.classifiers import ModelServiceClient
        from mia.compute import ComputeClient
        from mia.interface.voice.lipsync import create_viseme_extractor
        from mia.interface.voice.stt import create_transcriber
        from mia.interface.voice.tts import create_synthesizer

        settings = settings or get_settings()
        classifier = ModelServiceClient(settings=settings)
        return cls(
            session=session,
            transcriber=create_transcriber(settings),
            sentiment=classifier,
            emotion=classifier,
            generator=ComputeClient(settings),
            synthesizer=create_synthesizer(settings),
            visemes=create_viseme_extractor(settings),
            voice_id=settings.voice_id,
            language=settings.language,
            greeting=settings.greeting,
            recent_turns=settings.recent_turns,
            summary_threshold_chars=settings.summary_threshold_chars,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def submit(self, message: Optional[str]) -> SubmitResult:
        """Run one request under the session lock."""
        with self.session.lock:
            if self.session.expired:
                logger.info("Reply requested on an expired session, confirming wipe")
                self.session.wipe("expired")
                self.session.touch()
                return SessionExpiredResult()

            self.session.touch()
            self.session.ensure_dirs()
            try:
                return self._run(message)
            except ConfigurationError as exc:
                logger.warning("Collaborator not configured: %s", exc)
                return self._degraded(str(exc))
            except EssentialStageError as exc:
                logger.error("Reply aborted at %s stage: %s", exc.stage, exc)
                return ErrorResult(error=str(exc), stage=exc.stage)
            finally:
                # Idle time is measured from the end of the request.
                self.session.touch()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _run(self, message: Optional[str]) -> ReplyResult:
        transcript = self._read_input(message)
        if not transcript:
            return self._greet()

        sentiment = StageOutcome.attempt(
            "sentiment", lambda: self.sentiment.classify(transcript)
        ).or_default(NEUTRAL_SENTIMENT)
        emotion = StageOutcome.attempt(
            "emotion", lambda: self.emotion.predict(transcript, sentiment)
        ).or_default(DEFAULT_EMOTION)

        next_index = self.session.turns.next_index()
        reply_text = self._generate(transcript, sentiment, emotion)
        visuals = map_emotion_to_visuals(emotion, next_index)
        spoken = self._speak(reply_text, visuals)

        turn = self.session.turns.append(transcript, sentiment, emotion, reply_text)
        logger.info("Reply complete, stored as %s", turn.key)
        self._refresh_summary()

        return ReplyResult(
            transcript=transcript,
            sentiment=sentiment,
            reply_emotion=emotion,
            messages=[spoken],
        )

    def _read_input(self, message: Optional[str]) -> str:
        if not message:
            return ""
        if is_audio_data_url(message):
            logger.info("Audio received, transcribing")
            payload = parse_data_url(message)
            return self.transcriber.transcribe(payload.data, payload.mime_type).strip()
        return message.strip()

    def _generate(self, transcript: str, sentiment: str, emotion: str) -> str:
        context = self.composer.build()
        user_prompt = context.to_prompt_block(transcript, sentiment, emotion)
        text = self.generator.generate(
            REPLY_SYSTEM_PROMPT.format(language=self.language), user_prompt
        ).strip()
        if not text:
            raise GenerationError("Text generation returned an empty reply")
        return text

    def _speak(self, text: str, visuals: Visuals) -> ReplyMessage:
        audio_path = self.synthesizer.synthesize(
            text, self.voice_id, self.session.audio_dir / "message_0"
        )
        lipsync = self.visemes.extract(audio_path)
        return ReplyMessage(
            text=text,
            audio=_encode_audio(audio_path),
            lipsync=lipsync,
            facial_expression=visuals.facial_expression,
            animation=visuals.animation,
        )

    def _greet(self) -> ReplyResult:
        """Canned greeting; falls back to text only when it cannot be voiced."""
        visuals = map_emotion_to_visuals(DEFAULT_EMOTION, self.session.turns.next_index())
        try:
            message = self._speak(self.greeting, visuals)
        except (EssentialStageError, ConfigurationError) as exc:
            logger.warning("Greeting sent without audio: %s", exc)
            message = ReplyMessage(
                text=self.greeting,
                facial_expression=visuals.facial_expression,
                animation=visuals.animation,
            )
        return ReplyResult(messages=[message])

    def _refresh_summary(self) -> None:
        try:
            self.summarizer.maybe_update()
        except Exception:
            logger.exception("Summary refresh failed; reply unaffected")

    def _degraded(self, detail: str) -> ReplyResult:
        visuals = map_emotion_to_visuals(DEFAULT_EMOTION, self.session.turns.next_index())
        return ReplyResult(
            degraded=True,
            messages=[ReplyMessage(
                text=DEGRADED_TEXT.format(detail=detail),
                facial_expression=visuals.facial_expression,
                animation=visuals.animation,
            )],
        )


def _encode_audio(path: Path) -> str:
    try:
        return base64.b64encode(Path(path).read_bytes()).decode("ascii")
    except OSError as exc:
        raise SynthesisError(f"Synthesized audio missing: {exc}") from exc
