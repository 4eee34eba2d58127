"""Liveness screening over captured frame summaries."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from smart_attendance.utils.exceptions import InvalidInput

logger = logging.getLogger(__name__)

EXPRESSION_CHANNELS = ('neutral', 'happy', 'sad', 'angry')

class LivenessMode(Enum):
    """Liveness screening modes."""
    GENERAL = "general"  # enrollment-time expression variation
    BLINK = "blink"      # verification-time blink check

@dataclass
class FrameSample:
    """Summary of one captured frame, produced by the capture layer."""
    expressions: Dict[str, float] = field(default_factory=dict)
    detected: bool = True
    offset_ms: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'FrameSample':
        if not isinstance(data, dict):
            raise InvalidInput("Each frame must be an object")

        expressions = data.get('expressions') or {}
        if not isinstance(expressions, dict):
            raise InvalidInput("Frame expressions must be an object")
        try:
            expressions = {k: float(v) for k, v in expressions.items()}
        except (TypeError, ValueError):
            raise InvalidInput("Frame expression values must be numeric")

        offset_ms = data.get('offset_ms')
        if offset_ms is not None:
            try:
                offset_ms = int(offset_ms)
            except (TypeError, ValueError):
                raise InvalidInput(f"Invalid frame offset: {offset_ms!r}")

        return cls(
            expressions=expressions,
            detected=bool(data.get('detected', True)),
            offset_ms=offset_ms
        )

@dataclass
class LivenessResult:
    """Liveness screening result."""
    mode: LivenessMode
    score: float
    passed: bool
    threshold: float
    valid_frames: int

    def to_dict(self):
        return {
            'mode': self.mode.value,
            'score': round(self.score, 4),
            'passed': self.passed,
            'threshold': self.threshold,
            'valid_frames': self.valid_frames
        }

BlinkScorer = Callable[[List[FrameSample]], float]

class LivenessScreener:
    """
    Rejects static-image replay by looking for natural variation.

    GENERAL mode sums frame-to-frame expression changes and forces scores
    at or under the variation floor to zero. BLINK mode is a coarse
    placeholder: any valid frame in the window scores ``BLINK_SCORE``. A
    stronger eye-closure detector can be supplied as ``blink_scorer``; it
    receives the valid frames and must return a score in [0, 1].

    Missing frames are data, not errors: they always produce a zero score.
    """

    # =================== CONSTANTS ===================

    GENERAL_WINDOW_MS = 2000
    GENERAL_INTERVAL_MS = 100
    BLINK_WINDOW_MS = 1000
    BLINK_INTERVAL_MS = 50
    BLINK_SCORE = 0.8

    def __init__(
        self,
        general_threshold: float = 0.4,
        variation_floor: float = 0.1,
        blink_threshold: float = 0.5,
        channels: Sequence[str] = EXPRESSION_CHANNELS,
        blink_scorer: Optional[BlinkScorer] = None
    ):
        self.general_threshold = general_threshold
        self.variation_floor = variation_floor
        self.blink_threshold = blink_threshold
        self.channels = tuple(channels)
        self.blink_scorer = blink_scorer

    def screen(self, frames: Sequence[FrameSample], mode: LivenessMode = LivenessMode.GENERAL) -> LivenessResult:
        """Screen a frame sequence in the given mode."""
        if mode == LivenessMode.GENERAL:
            return self.check_general(frames)
        return self.check_blink(frames)

    def check_general(self, frames: Sequence[FrameSample]) -> LivenessResult:
        valid = self._valid_frames(frames, self.GENERAL_WINDOW_MS)
        score = self.expression_variation_score(valid)
        result = LivenessResult(
            mode=LivenessMode.GENERAL,
            score=score,
            passed=score >= self.general_threshold,
            threshold=self.general_threshold,
            valid_frames=len(valid)
        )
        logger.debug("General liveness: %d valid frames, score %.3f", len(valid), score)
        return result

    def check_blink(self, frames: Sequence[FrameSample]) -> LivenessResult:
        valid = self._valid_frames(frames, self.BLINK_WINDOW_MS)
        if not valid:
            score = 0.0
        elif self.blink_scorer is not None:
            score = min(1.0, max(0.0, float(self.blink_scorer(valid))))
        else:
            score = self.BLINK_SCORE

        return LivenessResult(
            mode=LivenessMode.BLINK,
            score=score,
            passed=score >= self.blink_threshold,
            threshold=self.blink_threshold,
            valid_frames=len(valid)
        )

    def expression_variation_score(self, frames: List[FrameSample]) -> float:
        """Normalized frame-to-frame expression variation."""
        if len(frames) < 2:
            return 0.0

        variation = 0.0
        for previous, current in zip(frames, frames[1:]):
            for channel in self.channels:
                variation += abs(
                    current.expressions.get(channel, 0.0) -
                    previous.expressions.get(channel, 0.0)
                )

        normalized = min(1.0, variation / (len(frames) * len(self.channels)))
        # Too little variation looks like a photo
        return normalized if normalized > self.variation_floor else 0.0

    @staticmethod
    def _valid_frames(frames: Sequence[FrameSample], window_ms: int) -> List[FrameSample]:
        """Detected frames captured inside the window."""
        return [
            frame for frame in frames or []
            if frame.detected and (frame.offset_ms is None or 0 <= frame.offset_ms <= window_ms)
        ]
