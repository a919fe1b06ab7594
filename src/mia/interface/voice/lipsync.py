"""Viseme extraction for avatar lip-sync.

The frontend consumes Rhubarb Lip Sync's JSON format::

    {"metadata": {"soundFile": ..., "duration": 1.23},
     "mouthCues": [{"start": 0.0, "end": 0.12, "value": "X"}, ...]}

Two extractors produce it:

1. **Rhubarb**: phonetic recognition via the ``rhubarb`` binary, after
   converting the synthesized audio to WAV with ``ffmpeg``.
2. **Amplitude**: pure-Python RMS envelope of the WAV audio, bucketed into
   mouth shapes.  Coarser, but needs no external recognizer.
"""

from __future__ import annotations

import io
import json
import logging
import math
import struct
import subprocess
import time
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from mia.config import Settings, get_settings
from mia.errors import ConfigurationError, VisemeError

logger = logging.getLogger(__name__)


def _run(command: list[str]) -> None:
    try:
        subprocess.run(command, check=True, capture_output=True)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Lip-sync tool not installed: {command[0]}") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or b"").decode("utf-8", "replace").strip()
        raise VisemeError(f"{command[0]} failed: {stderr or exc}") from exc


def ensure_wav(audio_path: Path, ffmpeg_path: str = "ffmpeg") -> Path:
    """Return a WAV version of ``audio_path``, converting with ffmpeg if needed."""
    audio_path = Path(audio_path)
    if audio_path.suffix.lower() == ".wav":
        return audio_path
    wav_path = audio_path.with_suffix(".wav")
    _run([ffmpeg_path, "-y", "-i", str(audio_path), str(wav_path)])
    return wav_path


# ---------------------------------------------------------------------------
# Rhubarb
# ---------------------------------------------------------------------------

class RhubarbLipSync:
    """Phonetic viseme extraction via Rhubarb Lip Sync."""

    def __init__(self, rhubarb_path: str = "rhubarb", ffmpeg_path: str = "ffmpeg") -> None:
        self.rhubarb_path = rhubarb_path
        self.ffmpeg_path = ffmpeg_path

    def extract(self, audio_path: Path) -> dict[str, Any]:
        started = time.monotonic()
        wav_path = ensure_wav(audio_path, self.ffmpeg_path)
        json_path = Path(audio_path).with_suffix(".json")
        _run([
            self.rhubarb_path, "-f", "json", "-o", str(json_path),
            str(wav_path), "-r", "phonetic",
        ])
        try:
            data = json.loads(json_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise VisemeError(f"Unreadable Rhubarb output: {exc}") from exc
        logger.info("Lip sync done in %dms", (time.monotonic() - started) * 1000)
        return data


# ---------------------------------------------------------------------------
# Amplitude envelope
# ---------------------------------------------------------------------------

@dataclass
class LipSyncFrame:
    """Single frame of amplitude data for avatar mouth animation."""

    time_ms: float
    amplitude: float  # 0.0 – 1.0 normalized


def extract_lip_sync(
    wav_data: bytes,
    frame_duration_ms: float = 50.0,
) -> list[LipSyncFrame]:
    """Extract per-frame normalized RMS amplitudes from 16-bit WAV audio."""
    buf = io.BytesIO(wav_data)
    try:
        with wave.open(buf, "rb") as wf:
            n_channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            sample_rate = wf.getframerate()
            raw = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError):
        return []

    if sample_width != 2:
        return []

    n_samples = len(raw) // 2
    samples = struct.unpack(f"<{n_samples}h", raw[:n_samples * 2])
    if n_channels == 2:
        mono = [
            (samples[i] + samples[i + 1]) // 2
            for i in range(0, len(samples) - 1, 2)
        ]
    else:
        mono = list(samples)

    if not mono:
        return []

    samples_per_frame = max(1, int(sample_rate * frame_duration_ms / 1000))
    raw_rms: list[float] = []
    for start in range(0, len(mono), samples_per_frame):
        chunk = mono[start : start + samples_per_frame]
        raw_rms.append(math.sqrt(sum(s * s for s in chunk) / len(chunk)))

    peak_rms = max(raw_rms)
    return [
        LipSyncFrame(
            time_ms=i * frame_duration_ms,
            amplitude=min(1.0, rms / peak_rms) if peak_rms > 0 else 0.0,
        )
        for i, rms in enumerate(raw_rms)
    ]


# Amplitude ceilings for each Rhubarb mouth shape, smallest first.
_SHAPE_THRESHOLDS = ((0.08, "X"), (0.3, "B"), (0.55, "C"), (0.8, "D"))
_WIDEST_SHAPE = "E"


def _shape_for(amplitude: float) -> str:
    for ceiling, shape in _SHAPE_THRESHOLDS:
        if amplitude < ceiling:
            return shape
    return _WIDEST_SHAPE


def frames_to_mouth_cues(
    frames: list[LipSyncFrame],
    frame_duration_ms: float = 50.0,
) -> list[dict[str, Any]]:
    """Collapse consecutive frames with the same mouth shape into cues."""
    cues: list[dict[str, Any]] = []
    for frame in frames:
        shape = _shape_for(frame.amplitude)
        start = round(frame.time_ms / 1000, 3)
        end = round((frame.time_ms + frame_duration_ms) / 1000, 3)
        if cues and cues[-1]["value"] == shape:
            cues[-1]["end"] = end
        else:
            cues.append({"start": start, "end": end, "value": shape})
    return cues


class AmplitudeLipSync:
    """Rhubarb-compatible cues derived from the audio's loudness envelope."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", frame_duration_ms: float = 50.0) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.frame_duration_ms = frame_duration_ms

    def extract(self, audio_path: Path) -> dict[str, Any]:
        wav_path = ensure_wav(audio_path, self.ffmpeg_path)
        try:
            wav_data = wav_path.read_bytes()
        except OSError as exc:
            raise VisemeError(f"Cannot read audio for lip sync: {exc}") from exc
        frames = extract_lip_sync(wav_data, self.frame_duration_ms)
        if not frames:
            raise VisemeError(f"No 16-bit PCM audio in {wav_path.name}")
        return {
            "metadata": {
                "soundFile": str(wav_path),
                "duration": round(len(frames) * self.frame_duration_ms / 1000, 3),
            },
            "mouthCues": frames_to_mouth_cues(frames, self.frame_duration_ms),
        }


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_viseme_extractor(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    if settings.lipsync_backend == "amplitude":
        return AmplitudeLipSync(ffmpeg_path=settings.ffmpeg_path)
    return RhubarbLipSync(
        rhubarb_path=settings.rhubarb_path,
        ffmpeg_path=settings.ffmpeg_path,
    )
