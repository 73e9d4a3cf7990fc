"""
Detection Module

Types for per-frame detector output and the YOLO-backed detector that
produces them. The detector finds darts plus four calibration markers
(calib_1..calib_4) and, separately, the dartboard itself so the frame can
be cropped to the board before scoring.

All boxes are normalized to [0, 1] image space.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Get the models directory
MODELS_DIR = Path(__file__).parent.parent.parent / "models"

BOARD_MODEL_PATH = MODELS_DIR / "dartboard_detector.pt"
DART_MODEL_PATH = MODELS_DIR / "dart_detector.pt"


class DetectionLabel(str, Enum):
    CALIB_1 = "calib_1"
    CALIB_2 = "calib_2"
    CALIB_3 = "calib_3"
    CALIB_4 = "calib_4"
    DART = "dart"


# Class ids of the exported dart model (ids 2 and 3 are swapped in the export)
MODEL_CLASS_LABELS: Dict[int, DetectionLabel] = {
    0: DetectionLabel.CALIB_1,
    1: DetectionLabel.CALIB_2,
    2: DetectionLabel.CALIB_4,
    3: DetectionLabel.CALIB_3,
    4: DetectionLabel.DART,
}

DART_CLASS_ID = 4

# Marker identity -> canonical anchor index
CALIBRATION_ANCHOR_INDEX: Dict[DetectionLabel, int] = {
    DetectionLabel.CALIB_1: 0,
    DetectionLabel.CALIB_2: 1,
    DetectionLabel.CALIB_3: 2,
    DetectionLabel.CALIB_4: 3,
}

# anchor index -> (x, y), may be partially populated
CalibrationSet = Dict[int, Tuple[float, float]]


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned box in normalized image coordinates.
    (x1, y1) = top-left, (x2, y2) = bottom-right
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return max(0.0, self.x2 - self.x1)

    @property
    def height(self) -> float:
        return max(0.0, self.y2 - self.y1)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    def intersection(self, other: "BoundingBox") -> Optional["BoundingBox"]:
        """Overlapping box, or None when the boxes do not overlap."""
        x1 = max(self.x1, other.x1)
        y1 = max(self.y1, other.y1)
        x2 = min(self.x2, other.x2)
        y2 = min(self.y2, other.y2)
        if x2 <= x1 or y2 <= y1:
            return None
        return BoundingBox(x1, y1, x2, y2)

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        return cls(x, y, x + w, y + h)


@dataclass(frozen=True)
class Detection:
    """Single detection output by the detector for one object."""
    box: BoundingBox
    confidence: float
    label: DetectionLabel

    @property
    def is_dart(self) -> bool:
        return self.label == DetectionLabel.DART


class DartDetector(Protocol):
    """Interface of the object-detection collaborator."""

    def detect(self, image: np.ndarray) -> List[Detection]:
        ...

    def locate_board(self, image: np.ndarray) -> Optional[BoundingBox]:
        ...


def filter_by_confidence(detections: List[Detection], floor: float) -> List[Detection]:
    """Keep detections at or above the confidence floor."""
    return [d for d in detections if d.confidence >= floor]


def dart_detections(detections: List[Detection]) -> List[Detection]:
    return [d for d in detections if d.is_dart]


def calibration_points(detections: List[Detection]) -> CalibrationSet:
    """
    Map calibration marker detections to their anchor index.

    Duplicates: the last calib_1/3/4 detection wins, the first calib_2 wins.
    """
    points: CalibrationSet = {}
    for det in detections:
        index = CALIBRATION_ANCHOR_INDEX.get(det.label)
        if index is None:
            continue
        if det.label == DetectionLabel.CALIB_2 and index in points:
            continue
        points[index] = det.box.center
    return points


def crop_to_board(image: np.ndarray, box: Optional[BoundingBox], size: int = 800) -> np.ndarray:
    """
    Crop the frame to the located board and resize to a square reference size.

    Returns the original image when no board was located or the crop is empty.
    """
    if box is None:
        return image

    h, w = image.shape[:2]
    x1 = int(round(max(0.0, box.x1) * w))
    y1 = int(round(max(0.0, box.y1) * h))
    x2 = int(round(min(1.0, box.x2) * w))
    y2 = int(round(min(1.0, box.y2) * h))

    if x2 <= x1 or y2 <= y1:
        logger.warning(f"Empty board crop {box}, using full frame")
        return image

    cropped = image[y1:y2, x1:x2]
    return cv2.resize(cropped, (size, size))


class YOLODartDetector:
    """
    Uses YOLO to detect darts and calibration markers.

    Two models: one locating the dartboard (used for cropping), one
    detecting darts and the four calibration markers on the cropped board.
    """

    def __init__(
        self,
        board_model_path: Optional[Path] = None,
        dart_model_path: Optional[Path] = None,
        image_size: int = 800
    ):
        self.board_model_path = Path(board_model_path or BOARD_MODEL_PATH)
        self.dart_model_path = Path(dart_model_path or DART_MODEL_PATH)
        self.image_size = image_size
        self.board_model = None
        self.dart_model = None
        self.is_initialized = False
        self._load_models()

    def _load_models(self):
        """Load the YOLO models."""
        try:
            from ultralytics import YOLO

            if not self.dart_model_path.exists():
                logger.warning(f"Dart model not found at {self.dart_model_path}")
                return

            self.dart_model = YOLO(str(self.dart_model_path), task="detect")
            if self.board_model_path.exists():
                self.board_model = YOLO(str(self.board_model_path), task="detect")
            else:
                logger.warning(f"Board model not found at {self.board_model_path}, frames will not be cropped")

            self.is_initialized = True
            logger.info(f"Loaded dart model from {self.dart_model_path}")

        except Exception as e:
            logger.warning(f"Failed to load YOLO models: {e}")

    def locate_board(self, image: np.ndarray) -> Optional[BoundingBox]:
        """Bounding box of the most confident dartboard detection."""
        if self.board_model is None:
            return None

        try:
            results = self.board_model(image, imgsz=self.image_size, verbose=False)
        except Exception as e:
            logger.error(f"Dartboard detection error: {e}", exc_info=True)
            return None

        best: Optional[Tuple[float, BoundingBox]] = None
        for result in results:
            if result.boxes is None:
                continue
            for i in range(len(result.boxes)):
                conf = float(result.boxes.conf[i])
                x1, y1, x2, y2 = result.boxes.xyxyn[i].cpu().numpy()
                if best is None or conf > best[0]:
                    best = (conf, BoundingBox(float(x1), float(y1), float(x2), float(y2)))

        if best is None:
            logger.debug("No dartboard detected")
            return None
        return best[1]

    def detect(self, image: np.ndarray) -> List[Detection]:
        """
        Detect darts and calibration markers.

        Returns an empty list when the model is unavailable or inference fails.
        """
        if not self.is_initialized or self.dart_model is None:
            return []

        try:
            results = self.dart_model(image, imgsz=self.image_size, verbose=False)
        except Exception as e:
            logger.error(f"Dart detection error: {e}", exc_info=True)
            return []

        detections = []
        for result in results:
            if result.boxes is None:
                continue

            boxes = result.boxes
            for i in range(len(boxes)):
                label = MODEL_CLASS_LABELS.get(int(boxes.cls[i]))
                if label is None:
                    continue

                x1, y1, x2, y2 = boxes.xyxyn[i].cpu().numpy()
                detections.append(Detection(
                    box=BoundingBox(float(x1), float(y1), float(x2), float(y2)),
                    confidence=float(boxes.conf[i]),
                    label=label
                ))

        return detections
