"""X-11 decomposition engine and simpler seasonal decompositions."""

from seasx11.decomposition.structs import (
    DecompositionMode,
    X11Config,
    SpanChoice,
    SeasonalChoice,
    StageOutput,
    DecompositionResult,
)
from seasx11.decomposition.x11 import X11Decomposer, x11, decompose_frame, modify_for_extremes
from seasx11.decomposition.simple import method1, seas, fixed_seasonal

__all__ = [
    "DecompositionMode",
    "X11Config",
    "SpanChoice",
    "SeasonalChoice",
    "StageOutput",
    "DecompositionResult",
    "X11Decomposer",
    "x11",
    "decompose_frame",
    "modify_for_extremes",
    "method1",
    "seas",
    "fixed_seasonal",
]
