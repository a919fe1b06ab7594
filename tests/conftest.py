"""Shared fakes for the MIA test suite.

Every external collaborator is replaced by an in-memory fake that records
its calls, so no test needs network access, API keys or audio binaries.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mia.errors import (
    ClassificationError,
    GenerationError,
    SynthesisError,
    TranscriptionError,
    VisemeError,
)
from mia.pipeline.reply import ReplyPipeline
from mia.session.state import Session


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTranscriber:
    def __init__(self, text: str = "tengo un mal día", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.calls: list[tuple[bytes, str]] = []

    def transcribe(self, audio: bytes, mime_type: str) -> str:
        self.calls.append((audio, mime_type))
        if self.fail:
            raise TranscriptionError("whisper unreachable")
        return self.text


class FakeClassifier:
    def __init__(self, sentiment: str = "negativo", emotion: str = "tristeza",
                 fail_sentiment: bool = False, fail_emotion: bool = False) -> None:
        self.sentiment = sentiment
        self.emotion = emotion
        self.fail_sentiment = fail_sentiment
        self.fail_emotion = fail_emotion
        self.calls: list[tuple] = []

    def classify(self, text: str) -> str:
        self.calls.append(("classify", text))
        if self.fail_sentiment:
            raise ClassificationError("sentiment 503")
        return self.sentiment

    def predict(self, text: str, sentiment: str) -> str:
        self.calls.append(("predict", text, sentiment))
        if self.fail_emotion:
            raise ClassificationError("mia_predict 503")
        return self.emotion


class FakeGenerator:
    def __init__(self, reply: str = "Siento que hoy sea un día difícil. Estoy aquí contigo.",
                 summary: str = "  Resumen breve.  ", fail: bool = False,
                 fail_summary: bool = False) -> None:
        self.reply = reply
        self.summary = summary
        self.fail = fail
        self.fail_summary = fail_summary
        self.calls: list[tuple[str, str]] = []

    @staticmethod
    def _is_summary(system_prompt: str) -> bool:
        return "summarize" in system_prompt

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self._is_summary(system_prompt):
            if self.fail_summary:
                raise GenerationError("summary model down")
            return self.summary
        if self.fail:
            raise GenerationError("model down")
        return self.reply

    @property
    def reply_calls(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if not self._is_summary(c[0])]

    @property
    def summary_calls(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if self._is_summary(c[0])]


class FakeSynthesizer:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    def synthesize(self, text: str, voice_id: str, dest: Path) -> Path:
        self.calls.append((text, voice_id))
        if self.fail:
            raise SynthesisError("tts quota exceeded")
        target = Path(dest).with_suffix(".mp3")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"ID3fake-mp3")
        return target


class FakeVisemes:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[Path] = []

    def extract(self, audio_path: Path) -> dict:
        self.calls.append(audio_path)
        if self.fail:
            raise VisemeError("rhubarb crashed")
        return {
            "metadata": {"soundFile": str(audio_path), "duration": 0.3},
            "mouthCues": [{"start": 0.0, "end": 0.3, "value": "B"}],
        }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(tmp_path, clock) -> Session:
    return Session(
        history_path=tmp_path / "history" / "history.json",
        summary_path=tmp_path / "history" / "summary.json",
        audio_dir=tmp_path / "audio",
        clock=clock,
    )


@pytest.fixture
def fakes():
    class Fakes:
        transcriber = FakeTranscriber()
        classifier = FakeClassifier()
        generator = FakeGenerator()
        synthesizer = FakeSynthesizer()
        visemes = FakeVisemes()

        def all_calls(self) -> int:
            return sum(len(c.calls) for c in (
                self.transcriber, self.classifier, self.generator,
                self.synthesizer, self.visemes,
            ))

    return Fakes()


@pytest.fixture
def make_pipeline(session, fakes):
    def _make(**overrides) -> ReplyPipeline:
        kwargs = dict(
            session=session,
            transcriber=fakes.transcriber,
            sentiment=fakes.classifier,
            emotion=fakes.classifier,
            generator=fakes.generator,
            synthesizer=fakes.synthesizer,
            visemes=fakes.visemes,
            voice_id="voice-test",
        )
        kwargs.update(overrides)
        return ReplyPipeline(**kwargs)

    return _make
