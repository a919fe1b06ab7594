"""HTTP client for the local sentiment / reply-emotion model service.

The service exposes two endpoints::

    POST /sentiment    {"text": ...}                    -> {"sentimiento": ...}
    POST /mia_predict  {"text": ..., "sentimiento": ...} -> {"mia_emocion": ...}

Both stages are optional for the reply pipeline, so every failure is
reported as :class:`~mia.errors.ClassificationError` and the caller falls
back to a default label.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from mia.config import Settings, get_settings
from mia.errors import ClassificationError

logger = logging.getLogger(__name__)


class ModelServiceClient:
    """Sentiment classifier and emotion predictor over one HTTP service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = settings or get_settings()
        self.base_url = (base_url or settings.models_url).rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.classifier_timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def classify(self, text: str) -> str:
        """Return the user's sentiment label, lower-cased."""
        data = self._call("/sentiment", {"text": text})
        return str(data.get("sentimiento") or "").lower()

    def predict(self, text: str, sentiment: str) -> str:
        """Return the emotion MIA should reply with, lower-cased."""
        data = self._call("/mia_predict", {"text": text, "sentimiento": sentiment})
        return str(data.get("mia_emocion") or "").lower()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _call(self, path: str, payload: dict) -> dict:
        try:
            resp = self._post(path, payload)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ClassificationError(f"{path.lstrip('/')}: {exc}") from exc
        if not isinstance(data, dict):
            raise ClassificationError(f"{path.lstrip('/')}: unexpected response body")
        return data

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, max=2),
        reraise=True,
    )
    def _post(self, path: str, payload: dict) -> httpx.Response:
        resp = self.client.post(path, json=payload)
        resp.raise_for_status()
        return resp

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
