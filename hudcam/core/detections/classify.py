"""Per-person classification labels.

The label only drives color-coding of boxes and panels. No real classifier is
bundled: `UnknownClassifier` is the default and `AlternatingClassifier` is a demo
placeholder that labels people by their position in the list.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from hudcam.core.types import UNKNOWN_LABEL, PersonDetection

FEMALE_LABEL = "FEMALE"
MALE_LABEL = "MALE"


class PersonClassifier(Protocol):
    def classify(self, index: int, detection: PersonDetection) -> str:
        """Return the label for the detection at `index`."""


class UnknownClassifier:
    def classify(self, index: int, detection: PersonDetection) -> str:
        return UNKNOWN_LABEL


class AlternatingClassifier:
    """Demo placeholder: even positions FEMALE, odd positions MALE."""

    def classify(self, index: int, detection: PersonDetection) -> str:
        return FEMALE_LABEL if index % 2 == 0 else MALE_LABEL


def make_classifier(name: str) -> PersonClassifier:
    if name == "alternating":
        return AlternatingClassifier()
    if name == "unknown":
        return UnknownClassifier()
    raise ValueError(f"Unknown classifier: {name}")


def label_persons(
    persons: tuple[PersonDetection, ...], classifier: PersonClassifier
) -> tuple[PersonDetection, ...]:
    """Return copies of `persons` with `label` filled in by `classifier`."""

    return tuple(
        replace(det, label=classifier.classify(i, det)) for i, det in enumerate(persons)
    )
