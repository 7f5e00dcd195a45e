#!/usr/bin/env python
"""
WORKFLOW 04: Cell-cell Communication
=====================================

Infer ligand-receptor interactions between annotated cell types with liana
and summarize them.

AnnData keys created:
    - adata.uns['liana_res']: liana result table (one row per
      source/target/ligand/receptor combination)

Example usage:
    python WORKFLOW_04_COMMUNICATION.py

Requirements:
    - scupgrade[communication] (liana)
    - Output of WORKFLOW 02 (annotated PBMCs)
"""

import scanpy as sc

import scupgrade as su

# =============================================================================
# Configuration
# =============================================================================

data_path = "pbmc_annotated.h5ad"
groupby = "cell_type"
config = su.CommunicationConfig(method="rank_aggregate", resource_name="consensus", expr_prop=0.1)
cutoff = 0.01  # magnitude_rank threshold

# =============================================================================
# Inference
# =============================================================================

adata = sc.read_h5ad(data_path)
# Scored on adata.raw, the log-normalized matrix kept by su.pp.normalize
results = su.tl.infer_communication(adata, groupby, config)

# =============================================================================
# Summaries
# =============================================================================

counts = su.tl.communication_summary(adata, cutoff=cutoff)
print("\nInteractions per sender (rows) and receiver (columns):")
print(counts)

top = su.tl.top_interactions(adata, n=10, source_labels=["CD14 Mono"], target_labels=["CD4 T", "CD8 T"])
print(top[["source", "target", "ligand_complex", "receptor_complex", "magnitude_rank"]])

su.pl.communication_heatmap(adata, cutoff=cutoff, save_path="communication_heatmap.html")
su.pl.interaction_dotplot(adata, n=25, source_labels=["CD14 Mono", "B"], save_path="interactions.png")
