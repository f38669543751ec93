"""Sea-state classification by significant wave height."""

from enum import Enum


class SeaState(str, Enum):
    """Douglas-style sea state bands used across the pipeline."""
    CALM = "Calm"
    SLIGHT = "Slight"
    MODERATE = "Moderate"
    ROUGH = "Rough"
    VERY_ROUGH = "Very Rough"
    HIGH = "High"


# Upper bounds (exclusive) in metres, ascending
SEA_STATE_BANDS = (
    (0.5, SeaState.CALM),
    (1.25, SeaState.SLIGHT),
    (2.5, SeaState.MODERATE),
    (4.0, SeaState.ROUGH),
    (6.0, SeaState.VERY_ROUGH),
)

SEVERITY_ORDER = [
    SeaState.CALM,
    SeaState.SLIGHT,
    SeaState.MODERATE,
    SeaState.ROUGH,
    SeaState.VERY_ROUGH,
    SeaState.HIGH,
]


def classify_sea_state(wave_height_m: float) -> SeaState:
    """Map a wave height to its sea state; each bound belongs to the band above."""
    for upper, state in SEA_STATE_BANDS:
        if wave_height_m < upper:
            return state
    return SeaState.HIGH


def is_at_least(state: SeaState, threshold: SeaState) -> bool:
    return SEVERITY_ORDER.index(state) >= SEVERITY_ORDER.index(threshold)
