"""scupgrade: Single-cell genomics workshop pipelines.

This package wraps the scverse ecosystem into the analysis steps taught in
the Coder Upgrade sessions, following scverse conventions.

The package can be imported as `import scupgrade as su` and provides:
- High-level API: su.pp, su.tl, su.pl (preprocessing, tools, plotting)
- Example data: su.datasets
- Core implementations: su._core (configuration types, statistics, validation)
- Direct access to the configuration models: su.QCConfig, su.WorkflowConfig, etc.
"""

# High-level API modules
# Core implementation modules
from . import _core, datasets, pl, pp, tl

# Expose configuration models for convenience
from ._core.types import (
    AnnDataKeys,
    ATACWorkflowConfig,
    ClusteringConfig,
    CommunicationConfig,
    LSIConfig,
    NormalizationConfig,
    PeakQCConfig,
    QCConfig,
    WorkflowConfig,
)

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "pp",
    "tl",
    "pl",
    "datasets",
    # Core modules
    "_core",
    # Configuration
    "QCConfig",
    "NormalizationConfig",
    "ClusteringConfig",
    "PeakQCConfig",
    "LSIConfig",
    "CommunicationConfig",
    "WorkflowConfig",
    "ATACWorkflowConfig",
    "AnnDataKeys",
]

# Result validation available via su._core.types
# Example: from scupgrade._core.types import validate_results
