#!/usr/bin/env python
"""
WORKFLOW 03: Multi-sample Integration
======================================

Load several samples, run the full RNA pipeline with Harmony, and compare
the embedding before and after correction.

Harmony corrects the PCA embedding (adata.obsm['X_pca_harmony']); ComBat
corrects expression before PCA. Set integration_method="combat" to switch.

Example usage:
    python WORKFLOW_03_INTEGRATION.py

Requirements:
    - scupgrade[integration] (harmonypy)
"""

import scupgrade as su

# =============================================================================
# Configuration
# =============================================================================

samples = {
    "healthy": "data/healthy_filtered_feature_bc_matrix.h5",
    "disease": "data/disease_filtered_feature_bc_matrix.h5",
}

config = su.WorkflowConfig(
    qc=su.QCConfig.from_preset("default"),
    batch_key="sample",
    integration_method="harmony",
)

# =============================================================================
# Load and run
# =============================================================================

adata = su.pp.load_samples(samples, batch_key="sample")
adata = su.tl.rna_workflow(adata, config)

print(adata.uns["workflow"]["steps"])

# =============================================================================
# Before / after
# =============================================================================

su.pl.embedding(adata, "pca", color="sample", save_path="pca_by_sample.png")
su.pl.embedding(adata, "pca_harmony", color="sample", save_path="harmony_by_sample.png")
su.pl.embedding(adata, color=["sample", "leiden"], save_path="umap.png")

adata.write_h5ad("integrated.h5ad")
