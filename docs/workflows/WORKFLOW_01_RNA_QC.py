#!/usr/bin/env python
"""
WORKFLOW 01: Loading Data and Quality Control
==============================================

This workflow covers the first scRNA-seq session:
1. Load a 10x count matrix (or a workshop dataset by name)
2. Flag mitochondrial, ribosomal and hemoglobin genes and compute QC metrics
3. Inspect the metric distributions
4. Filter cells with a QC preset and genes by detection
5. Score doublets

AnnData keys created:
    - adata.var['mt'], ['ribo'], ['hb']:       Gene flags
    - adata.obs['n_genes_by_counts'], ['total_counts'], ['pct_counts_mt']: QC metrics
    - adata.obs['qc_pass']:                     Cell passed filtering
    - adata.uns['qc']:                          Thresholds and removal counts
    - adata.obs['doublet_score'], ['predicted_doublet']: Scrublet output

Example usage:
    python WORKFLOW_01_RNA_QC.py

Requirements:
    - scupgrade
    - scupgrade[doublets] for automatic doublet thresholds (scikit-image)
"""

import scupgrade as su

# =============================================================================
# Configuration
# =============================================================================

dataset = "pbmc3k"            # Workshop dataset name, or a path to .h5ad/.h5/10x directory
qc_preset = "default"         # 'default', 'stringent' or 'permissive'
expected_doublet_rate = 0.06  # ~0.8% per 1,000 cells loaded

# =============================================================================
# Step 1: Load Data
# =============================================================================

print("Loading data...")
adata = su.datasets.load_dataset(dataset)
print(f"  Shape: {adata.n_obs:,} cells x {adata.n_vars:,} genes")

# =============================================================================
# Step 2: QC Metrics
# =============================================================================

su.pp.qc_metrics(adata)
print(adata.obs[["n_genes_by_counts", "total_counts", "pct_counts_mt"]].describe())

# =============================================================================
# Step 3: Inspect
# =============================================================================

qc = su.QCConfig.from_preset(qc_preset)
su.pl.qc_violin(adata, thresholds={"pct_counts_mt": qc.max_pct_mt, "n_genes_by_counts": qc.min_genes})
su.pl.qc_scatter(adata, "total_counts", "n_genes_by_counts", color="pct_counts_mt")

# =============================================================================
# Step 4: Filter
# =============================================================================

adata = su.pp.filter_cells(adata, qc)
adata = su.pp.filter_genes(adata, min_cells=qc.min_cells)

print("\nCells removed per criterion (criteria can overlap):")
for criterion, n in adata.uns["qc"]["removed"].items():
    print(f"  {criterion:12s} {n:,}")

# =============================================================================
# Step 5: Doublets
# =============================================================================

adata = su.pp.detect_doublets(adata, expected_doublet_rate=expected_doublet_rate, remove=True)

adata.write_h5ad("pbmc_qc.h5ad")
print(f"\nSaved {adata.n_obs:,} cells to pbmc_qc.h5ad")
