from .kernel import (
    accumulate_visibility,
    direction_corrections,
    kernel_source,
    predict_group,
    predict_visibility,
)
from .executor import (
    CupyBackend,
    ExtractionResult,
    TorchBackend,
    VisibilityPredictor,
    extract_visibilities,
    select_backend,
)

__all__ = [
    "CupyBackend",
    "ExtractionResult",
    "TorchBackend",
    "VisibilityPredictor",
    "accumulate_visibility",
    "direction_corrections",
    "extract_visibilities",
    "kernel_source",
    "predict_group",
    "predict_visibility",
    "select_backend",
]
