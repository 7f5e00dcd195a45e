#!/usr/bin/env python
"""
WORKFLOW 02: Normalization, Clustering and Annotation
======================================================

Continues from WORKFLOW 01:
1. Library-size normalization and log1p
2. Highly variable genes, scaling and PCA
3. Neighbor graph, UMAP and Leiden clustering
4. Marker genes per cluster
5. Marker-based cell type annotation

AnnData keys created:
    - adata.layers['counts']:      Raw counts
    - adata.raw:                   Log-normalized expression (all genes)
    - adata.obsm['X_pca'], ['X_umap']
    - adata.obs['leiden']:         Cluster labels
    - adata.obs['score_<type>']:   Marker scores
    - adata.obs['cell_type']:      Annotation
    - adata.uns['annotation']:     Cluster x cell type mean scores

Example usage:
    python WORKFLOW_02_CLUSTERING.py
"""

import scanpy as sc

import scupgrade as su

# =============================================================================
# Configuration
# =============================================================================

data_path = "pbmc_qc.h5ad"
n_top_genes = 2000
n_pcs = 30
resolution = 0.5

# PBMC markers used in the session
markers = {
    "CD4 T": ["IL7R", "CD3E", "CD4"],
    "CD8 T": ["CD8A", "CD8B", "CD3E"],
    "NK": ["GNLY", "NKG7", "KLRD1"],
    "B": ["MS4A1", "CD79A", "CD79B"],
    "CD14 Mono": ["CD14", "LYZ", "S100A8"],
    "FCGR3A Mono": ["FCGR3A", "MS4A7"],
    "DC": ["FCER1A", "CST3"],
    "Platelet": ["PPBP", "PF4"],
}

# =============================================================================
# Step 1-2: Normalize and reduce
# =============================================================================

adata = sc.read_h5ad(data_path)
su.pp.normalize(adata)
su.pp.highly_variable(adata, n_top_genes=n_top_genes)
su.pp.reduce_dimensions(adata, n_comps=50, regress_out=["total_counts", "pct_counts_mt"])
su.pl.pca_variance(adata, log=True)

# =============================================================================
# Step 3: Cluster
# =============================================================================

su.tl.cluster(adata, n_pcs=n_pcs, resolution=resolution)
su.pl.embedding(adata, color=["leiden", "pct_counts_mt"])

# =============================================================================
# Step 4: Markers
# =============================================================================

marker_table = su.tl.find_markers(adata, "leiden", n_genes=100)
su.pl.marker_dotplot(marker_table, n_genes=3)

print("\nTop markers per cluster:")
for cluster, genes in su.tl.top_markers(marker_table, n=5).items():
    print(f"  {cluster}: {', '.join(genes)}")

# =============================================================================
# Step 5: Annotate
# =============================================================================

table = su.tl.annotate_clusters(adata, markers)
print(table.round(2))
su.pl.embedding(adata, color="cell_type", legend_loc="on data")

adata.write_h5ad("pbmc_annotated.h5ad")
