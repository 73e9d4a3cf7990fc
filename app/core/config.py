# all pipeline configuration in one place

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from app.core.detection import BOARD_MODEL_PATH, DART_MODEL_PATH

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DARTSCORE_CONFIG"

# env var -> field name
ENV_OVERRIDES = {
    "DETECTION_INTERVAL": "detection_interval",
    "THROW_DELAY": "throw_delay",
    "IOU_THRESHOLD": "iou_threshold",
    "CONFIDENCE_FLOOR": "confidence_floor",
    "FINALIZE_ON_OCCLUSION": "finalize_on_occlusion",
    "SCORE_WEBHOOK_URL": "score_webhook_url",
    "BOARD_MODEL_PATH": "board_model_path",
    "DART_MODEL_PATH": "dart_model_path",
}


@dataclass
class PipelineConfig:
    detection_interval: float = 1.0     # seconds between processed frames
    throw_delay: float = 7.0            # seconds after a finalized throw before processing resumes
    iou_threshold: float = 0.7          # same-dart overlap threshold
    confidence_floor: float = 0.2       # minimum detection confidence
    max_darts_per_throw: int = 3
    min_live_calibration_points: int = 3
    min_homography_points: int = 4
    reference_size: int = 800           # square crop size the homography is solved at
    finalize_on_occlusion: bool = False
    board_model_path: Path = BOARD_MODEL_PATH
    dart_model_path: Path = DART_MODEL_PATH
    score_webhook_url: Optional[str] = None

    def with_overrides(self, overrides: Dict[str, Any]) -> "PipelineConfig":
        """Copy with the given fields replaced; None values and unknown keys are ignored."""
        known = {f.name for f in fields(self)}
        values = {}
        for key, value in overrides.items():
            if value is None:
                continue
            if key not in known:
                logger.warning(f"Ignoring unknown config key '{key}'")
                continue
            values[key] = _coerce(getattr(self, key), value)
        return replace(self, **values)


def _coerce(current: Any, value: Any) -> Any:
    """Convert a raw (string) value to the type of the field's current value."""
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, Path):
        return Path(value)
    return value


def load_config(path: Optional[str] = None) -> PipelineConfig:
    """
    Build the pipeline config.

    Precedence: defaults < TOML file ([pipeline] table) < environment variables.
    """
    config = PipelineConfig()

    path = path or os.getenv(CONFIG_ENV_VAR)
    if path:
        data = toml.load(path)
        config = config.with_overrides(data.get("pipeline", {}))
        logger.info(f"Loaded pipeline config from {path}")

    env_values = {
        field_name: os.getenv(env_name)
        for env_name, field_name in ENV_OVERRIDES.items()
    }
    return config.with_overrides(env_values)
