"""
Dart Tracker - Stateful dart tracking across frames.

Merges per-frame dart detections into a persistent list so that the same
physical dart re-detected on later frames is kept once, at its most
confident box.

Matching is greedy: each incoming detection is compared against the tracked
darts in insertion order and the first one overlapping by more than the IoU
threshold is treated as the same dart.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from app.core.detection import DART_CLASS_ID, BoundingBox, Detection

logger = logging.getLogger(__name__)

DEFAULT_IOU_THRESHOLD = 0.7


@dataclass
class TrackedDart:
    """A dart kept across frames until the throw is finalized."""
    box: BoundingBox
    confidence: float
    class_id: int = DART_CLASS_ID

    @property
    def center(self):
        return self.box.center

    @classmethod
    def from_detection(cls, detection: Detection) -> "TrackedDart":
        return cls(box=detection.box, confidence=detection.confidence)


def iou(box_a: BoundingBox, box_b: BoundingBox) -> float:
    """
    Intersection over Union of two boxes.

    0 when the boxes do not overlap.
    """
    inter = box_a.intersection(box_b)
    if inter is None:
        return 0.0

    inter_area = inter.area
    union = box_a.area + box_b.area - inter_area
    if union <= 0.0:
        return 0.0

    return inter_area / union


def merge_detections(
    current: List[TrackedDart],
    incoming: List[TrackedDart],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD
) -> List[TrackedDart]:
    """
    Merge incoming darts into the tracked list and return the merged list.

    A match replaces the tracked entry only when the incoming confidence is
    strictly greater. Unmatched darts are appended.
    """
    merged = list(current)

    for new_dart in incoming:
        matched = False
        for index, existing in enumerate(merged):
            if iou(existing.box, new_dart.box) > iou_threshold:
                if new_dart.confidence > existing.confidence:
                    merged[index] = new_dart
                matched = True
                break

        if not matched:
            merged.append(new_dart)

    return merged


class DartTracker:
    """
    Tracked darts for a single session.

    Cleared after every finalized throw and on session reset.
    """

    def __init__(self, iou_threshold: float = DEFAULT_IOU_THRESHOLD):
        self.iou_threshold = iou_threshold
        self._darts: List[TrackedDart] = []

    def reset(self) -> None:
        """Clear all tracked darts."""
        self._darts = []

    @property
    def dart_count(self) -> int:
        return len(self._darts)

    @property
    def darts(self) -> List[TrackedDart]:
        """Get copy of current dart list."""
        return list(self._darts)

    def merge(self, detections: List[Detection]) -> List[TrackedDart]:
        """Merge this frame's dart detections; non-dart detections are ignored."""
        incoming = [TrackedDart.from_detection(d) for d in detections if d.is_dart]
        if not incoming:
            return self.darts

        before = len(self._darts)
        self._darts = merge_detections(self._darts, incoming, self.iou_threshold)
        logger.debug(f"Merged {len(incoming)} detections: {before} -> {len(self._darts)} tracked darts")
        return self.darts

    def top_darts(self, count: int = 3) -> List[TrackedDart]:
        """Most confident darts first; ties keep insertion order."""
        return sorted(self._darts, key=lambda d: d.confidence, reverse=True)[:count]

    def get_state(self) -> Dict[str, Any]:
        return {
            "dart_count": len(self._darts),
            "darts": [
                {
                    "box": [d.box.x1, d.box.y1, d.box.x2, d.box.y2],
                    "confidence": d.confidence,
                    "class_id": d.class_id,
                }
                for d in self._darts
            ],
        }
