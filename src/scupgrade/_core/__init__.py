# Core implementation modules
# These are the actual implementations that power the high-level API

from scupgrade._core import types, utils

# Expose configuration and validation utilities
from scupgrade._core.types import (
    AnnDataKeys,
    ATACWorkflowConfig,
    ClusteringConfig,
    CommunicationConfig,
    LSIConfig,
    NormalizationConfig,
    PeakQCConfig,
    QCConfig,
    WorkflowConfig,
    validate_results,
)

__all__ = [
    "types",
    "utils",
    # Configuration
    "QCConfig",
    "PeakQCConfig",
    "NormalizationConfig",
    "ClusteringConfig",
    "LSIConfig",
    "CommunicationConfig",
    "WorkflowConfig",
    "ATACWorkflowConfig",
    # Validation utilities
    "validate_results",
    "AnnDataKeys",
]
