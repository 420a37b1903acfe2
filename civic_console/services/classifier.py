"""
Image classifier client.

Evidence photos are sent to an external model that labels what it sees
(pothole, overflowing garbage, broken street light, or their resolved
counterparts). The model is a black box: one multipart POST, one JSON answer.

Unlike geocoding, a failed classification is NOT swallowed: resolving a
report without a confirmed label is not allowed, so failures raise
ClassificationError and the caller decides.
"""

import logging
from typing import Dict, Optional

import requests

from civic_console.core.errors import ClassificationError
from civic_console.core.settings import settings

logger = logging.getLogger(__name__)

# Labels that mean "the issue is no longer there"
RESOLVED_CLASSES = frozenset({"NoPotHole", "GarbageNotOverflow", "NotBrokenStreetLight"})

CLASS_DESCRIPTIONS: Dict[str, str] = {
    "BrokenStreetLight": "Broken Street Light",
    "DrainageOverFlow": "Drainage Overflow",
    "GarbageNotOverflow": "Garbage Not Overflowing (Resolved)",
    "GarbageOverflow": "Garbage Overflowing",
    "NoPotHole": "No Pothole (Resolved)",
    "NotBrokenStreetLight": "Street Light Working (Resolved)",
    "PotHole": "Pothole",
}


def is_resolved_class(predicted_class: Optional[str]) -> bool:
    return predicted_class in RESOLVED_CLASSES


def describe_class(predicted_class: str) -> str:
    return CLASS_DESCRIPTIONS.get(predicted_class, predicted_class)


class Prediction:
    """Classifier answer for one image."""

    def __init__(self, predicted_class: str, confidence: float):
        self.predicted_class = predicted_class
        self.confidence = confidence

    @property
    def is_resolved(self) -> bool:
        return is_resolved_class(self.predicted_class)

    def to_dict(self) -> Dict:
        return {
            "predicted_class": self.predicted_class,
            "confidence": self.confidence,
            "description": describe_class(self.predicted_class),
        }

    def __repr__(self) -> str:
        return f"Prediction({self.predicted_class!r}, {self.confidence:.3f})"


class ImageClassifier:
    """
    HTTP client for the `/predict` endpoint.

    - Sends the image as multipart field "image"
    - Enforces a network timeout
    - Validates the response shape before trusting it
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, session=None):
        self.base_url = (base_url or settings.ML_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.ML_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def predict(self, image: bytes, filename: str = "evidence.jpg", content_type: str = "image/jpeg") -> Prediction:
        """
        Classify raw image bytes.

        Raises:
            ClassificationError: transport failure, non-2xx answer, or malformed body
        """
        url = f"{self.base_url}/predict"
        try:
            resp = self.session.post(
                url,
                files={"image": (filename, image, content_type)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Classifier request failed: {e}")
            raise ClassificationError(f"Failed to get ML prediction: {e}")

        if not 200 <= resp.status_code < 300:
            logger.error(f"Classifier answered {resp.status_code}: {resp.text[:200]}")
            raise ClassificationError(
                f"ML API request failed: {resp.status_code}. {resp.text[:200]}"
            )

        try:
            data = resp.json()
        except ValueError:
            raise ClassificationError("Invalid response format from ML API")

        predicted_class = data.get("predicted_class") if isinstance(data, dict) else None
        confidence = data.get("confidence") if isinstance(data, dict) else None
        if not predicted_class or isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ClassificationError("Invalid response format from ML API")

        prediction = Prediction(str(predicted_class), float(confidence))
        logger.info(f"Classifier predicted {prediction}")
        return prediction

    def predict_url(self, image_url: str) -> Prediction:
        """Download an already-uploaded evidence photo and classify it."""
        try:
            resp = self.session.get(image_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ClassificationError(f"Could not download evidence photo: {e}")
        if not 200 <= resp.status_code < 300:
            raise ClassificationError(f"Could not download evidence photo: HTTP {resp.status_code}")

        content_type = resp.headers.get("Content-Type", "image/jpeg").split(";")[0]
        filename = image_url.rsplit("/", 1)[-1].split("?")[0] or "evidence.jpg"
        return self.predict(resp.content, filename=filename, content_type=content_type)


# Global classifier instance (singleton pattern)
_classifier: Optional[ImageClassifier] = None


def get_classifier() -> ImageClassifier:
    global _classifier
    if _classifier is None:
        _classifier = ImageClassifier()
    return _classifier
