from dataclasses import dataclass
from typing import Dict, Any
import numpy as np

AUTO_ADJUST_CONSTANTS: Dict[str, Any] = {
    "target_samples": 180000,  # Sampling budget per estimation
    "edge_threshold": 1e-5,  # Minimum gradient counted as an edge
    "target_p95": 0.90,  # Highlight anchor for exposure
    "target_mid": 0.40,  # Midtone anchor for exposure
    "clip_p99": 0.995,  # Above this p99 exposure is forced down
    "wb_mix_base": 0.35,  # Gray-edge share at zero edge confidence
    "wb_mix_range": 0.5,  # Extra gray-edge share at full confidence
}


@dataclass
class RenderStatistics:
    """
    Accumulators for one auto-adjust pass. `luminance` is a preallocated
    arena filled by index; only the first `count` entries are valid.
    """

    luminance: np.ndarray
    sum_r: float = 0.0
    sum_g: float = 0.0
    sum_b: float = 0.0
    sum_sat: float = 0.0
    edge_weighted_r: float = 0.0
    edge_weighted_g: float = 0.0
    edge_weighted_b: float = 0.0
    edge_weight: float = 0.0
    count: int = 0
    stride: int = 1

    @property
    def samples(self) -> np.ndarray:
        return self.luminance[: self.count]


@dataclass(frozen=True)
class LuminancePercentiles:
    p1: float
    p5: float
    p10: float
    p50: float
    p90: float
    p95: float
    p99: float


@dataclass(frozen=True)
class WhiteBalanceEstimate:
    """Gray-world / gray-edge blend of the sampled channel means."""

    r: float
    g: float
    b: float
    edge_confidence: float
