from .loader import load_config
from .schema import PipelineConfig, ReferenceVersions, ReferenceInputs, EvaluationConfig

__all__ = [
    "load_config",
    "PipelineConfig",
    "ReferenceVersions",
    "ReferenceInputs",
    "EvaluationConfig",
]
