#!/usr/bin/env python
"""
WORKFLOW 05: scATAC-seq Clustering and Motif Enrichment
========================================================

This workflow demonstrates the chromatin accessibility session:
1. Load a scATAC-seq peak count matrix
2. Peak QC and filtering
3. TF-IDF + LSI preprocessing (replaces normalization + PCA for RNA)
4. Clustering on LSI
5. Differentially accessible peaks per cluster
6. Motif enrichment in the cluster-specific peaks

Key difference from scRNA-seq:
    scATAC-seq uses TF-IDF normalization + LSI (Truncated SVD) instead of
    log-normalization + PCA. The first LSI component tracks sequencing depth
    and is dropped before building the neighbor graph.

AnnData keys created:
    - adata.layers['tfidf']:  TF-IDF matrix
    - adata.obsm['X_lsi']:    LSI embeddings [n_cells, n_components]
    - adata.uns['lsi']:       Variance ratio and depth correlation per component
    - adata.obs['leiden']:    Clusters

Example usage:
    python WORKFLOW_05_SCATAC.py

Requirements:
    - Data file: data/pbmc_atac_peaks.h5ad with peaks named chr:start-end
    - Motif matches per peak in adata.varm['motif_matches'] and
      adata.uns['motif_names'] (e.g. from a FIMO or chromVAR motif scan)
"""

from pathlib import Path

import scupgrade as su

# =============================================================================
# Configuration
# =============================================================================

data_path = Path("data/pbmc_atac_peaks.h5ad")

config = su.ATACWorkflowConfig(
    qc=su.PeakQCConfig(min_counts=1000, max_counts=50000, min_cells=10),
    lsi=su.LSIConfig(n_components=50, drop_first=True),
)

# =============================================================================
# Steps 1-5
# =============================================================================

if data_path.exists():
    adata = su.datasets.load_dataset(data_path)
else:
    print(f"{data_path} not found; using synthetic peaks")
    adata = su.datasets.synthetic_peaks(n_cells=1000, n_peaks=20000)
    config = config.updated(qc=su.PeakQCConfig(min_counts=100, min_cells=10))

adata = su.tl.atac_workflow(adata, config)

su.pl.lsi_depth(adata)
su.pl.embedding(adata, color="leiden")

# =============================================================================
# Step 6: Motif enrichment per cluster
# =============================================================================

peaks = adata.uns["differential_peaks"]
for cluster in sorted(peaks["group"].unique()):
    foreground = peaks[(peaks["group"] == cluster) & peaks["significant"] & (peaks["score"] > 0)]
    if foreground.empty:
        continue
    print(f"\nCluster {cluster}: {len(foreground)} specific peaks")
    motifs = su.tl.motif_enrichment(adata, foreground)
    su.pl.motif_barplot(motifs, n=15, save_path=f"motifs_cluster_{cluster}.png")
