"""MIA interface layer: voice I/O, avatar annotation and the HTTP server.

Data flow::

    Browser recording (data URL) → Whisper STT → transcript
      → sentiment / reply-emotion classification
      → ReplyPipeline (summary + recent turns → LLM)
      → reply text → ElevenLabs/Piper TTS → audio
      → Rhubarb visemes + facial expression / animation → browser avatar
"""

from mia.interface.avatar.visuals import Visuals, map_emotion_to_visuals

__all__ = [
    "Visuals",
    "map_emotion_to_visuals",
]
