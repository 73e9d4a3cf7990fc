"""
Count-down game state.

Starts from a target score (301 / 501) and subtracts each finalized throw.
A throw that would take the remaining score below zero is a bust and is not
counted. Without a target score the session runs in free play.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SUPPORTED_MODES = (301, 501)


class ThrowOutcome(str, Enum):
    FREE_PLAY = "free_play"
    SCORED = "scored"
    BUST = "bust"
    COMPLETED = "completed"


def describe_throw(labels: List[str], total: int) -> str:
    return f"{', '.join(labels)} scored {total}"


@dataclass
class GameState:
    mode: Optional[int] = None
    remaining_score: int = 0
    last_throw_description: str = ""
    all_throw_descriptions: List[str] = field(default_factory=list)

    @property
    def is_game(self) -> bool:
        return self.mode is not None

    @property
    def is_finished(self) -> bool:
        return self.is_game and self.remaining_score == 0

    def new_game(self, mode: Optional[int]) -> str:
        """
        Reset to a fresh game; None switches to free play.

        Returns the status text to display.
        """
        if mode is not None and mode <= 0:
            raise ValueError(f"Starting score must be positive, got {mode}")

        self.mode = mode
        self.remaining_score = mode or 0
        self.last_throw_description = ""
        self.all_throw_descriptions = []

        if mode is None:
            logger.info("Free play started")
            return ""

        logger.info(f"Game started from {mode}")
        return f"Game started. Score: {mode}"

    def clear_history(self) -> None:
        self.last_throw_description = ""
        self.all_throw_descriptions = []

    def apply_throw(self, labels: List[str], total: int) -> ThrowOutcome:
        """
        Apply one finalized throw (up to three darts).

        Game state is unchanged on a bust.
        """
        if not self.is_game:
            return ThrowOutcome.FREE_PLAY

        if total > self.remaining_score:
            logger.info(f"Bust: {total} exceeds remaining {self.remaining_score}")
            return ThrowOutcome.BUST

        self.remaining_score -= total
        description = describe_throw(labels, total)
        self.last_throw_description = description
        self.all_throw_descriptions.append(description)

        if self.remaining_score == 0:
            logger.info(f"Game from {self.mode} finished after {len(self.all_throw_descriptions)} throws")
            return ThrowOutcome.COMPLETED

        return ThrowOutcome.SCORED

    def score_text(self, outcome: ThrowOutcome, labels: List[str], total: int) -> str:
        """Display text for a throw outcome."""
        if outcome == ThrowOutcome.FREE_PLAY:
            return f"Score: {total} ({', '.join(labels)})"

        if outcome == ThrowOutcome.BUST:
            return f"Bust! Throw not counted. Score remains: {self.remaining_score}"

        text = f"Score: {self.remaining_score}\nLast throw: {self.last_throw_description}"
        if outcome == ThrowOutcome.COMPLETED:
            text += "\nCongratulations, you finished the game!"
        return text

    def get_state(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "remaining_score": self.remaining_score,
            "last_throw": self.last_throw_description,
            "history": list(self.all_throw_descriptions),
        }
