"""Example datasets for scupgrade tutorials and testing.

Functions
---------
load_dataset
    Load a workshop dataset by name (e.g. 'pbmc3k') or path
synthetic_counts
    Generate scRNA-seq counts with known groups, batches and marker genes
synthetic_peaks
    Generate scATAC-seq peak counts with known groups and motif matches
"""

import os
from pathlib import Path

import numpy as np
import pandas as pd
import scanpy as sc
import scipy.sparse as sp
from anndata import AnnData

from ..pp.basic import read

# Datasets fetched through scanpy.datasets
_SCANPY_DATASETS = {
    "pbmc3k": sc.datasets.pbmc3k,
    "pbmc3k_processed": sc.datasets.pbmc3k_processed,
    "pbmc68k_reduced": sc.datasets.pbmc68k_reduced,
}

_MT_GENES = [
    "MT-ND1", "MT-ND2", "MT-CO1", "MT-CO2", "MT-ATP8", "MT-ATP6", "MT-CO3",
    "MT-ND3", "MT-ND4L", "MT-ND4", "MT-ND5", "MT-ND6", "MT-CYB",
]  # fmt: skip


def _data_dir(data_dir: str | Path | None = None) -> Path:
    if data_dir is not None:
        return Path(data_dir)
    env = os.environ.get("SCUPGRADE_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".cache" / "scupgrade" / "datasets"


def load_dataset(
    name_or_path: str | Path,
    *,
    data_dir: str | Path | None = None,
    n_cells: int | None = None,
    random_state: int = 0,
) -> AnnData:
    """Load a workshop dataset.

    Parameters
    ----------
    name_or_path : str or Path
        'pbmc3k' (and the other scanpy example sets) are downloaded through
        ``scanpy.datasets``. Any other name is looked up as
        ``<data_dir>/<name>.h5ad``. An existing path is read with ``su.pp.read``.
    data_dir : str or Path, optional
        Where named datasets live. Defaults to ``$SCUPGRADE_DATA_DIR`` or
        ``~/.cache/scupgrade/datasets``.
    n_cells : int, optional
        Subsample to this many cells (useful for quick testing).
    random_state : int, default: 0
        Random seed for subsampling reproducibility.

    Returns
    -------
    AnnData

    Examples
    --------
    >>> import scupgrade as su
    >>> adata = su.datasets.load_dataset("pbmc3k", n_cells=500)
    """
    name = str(name_or_path)
    if name in _SCANPY_DATASETS:
        adata = _SCANPY_DATASETS[name]()
    else:
        path = Path(name_or_path)
        if not path.exists() and path.suffix == "" and len(path.parts) == 1:
            path = _data_dir(data_dir) / f"{name}.h5ad"
        if not path.exists():
            raise FileNotFoundError(
                f"Dataset '{name}' not found at {path}\n\n"
                f"Download it into {path.parent} or set SCUPGRADE_DATA_DIR.\n"
                f"Built-in datasets: {sorted(_SCANPY_DATASETS)}"
            )
        adata = read(path)

    if n_cells is not None and n_cells < adata.n_obs:
        adata = sc.pp.subsample(adata, n_obs=n_cells, random_state=random_state, copy=True)

    return adata


def _balanced_labels(rng: np.random.Generator, n: int, k: int, prefix: str) -> pd.Categorical:
    labels = np.arange(n) % k
    rng.shuffle(labels)
    return pd.Categorical([f"{prefix}_{i}" for i in labels], categories=[f"{prefix}_{i}" for i in range(k)])


def synthetic_counts(
    n_cells: int = 600,
    n_genes: int = 1000,
    n_groups: int = 3,
    n_batches: int = 2,
    n_markers: int = 15,
    library_size: float = 3000.0,
    low_quality_fraction: float = 0.05,
    seed: int = 0,
) -> AnnData:
    """Generate scRNA-seq counts with known structure.

    Counts are negative binomial around a gene-wise baseline. Each group
    up-regulates its own ``n_markers`` genes, each batch rescales every gene
    by a small random factor, and a ``low_quality_fraction`` of cells get a
    small library with a high mitochondrial share.

    Parameters
    ----------
    n_cells, n_genes : int
        Matrix size.
    n_groups : int, default: 3
        Number of cell populations.
    n_batches : int, default: 2
        Number of samples, stored in ``obs['batch']``.
    n_markers : int, default: 15
        Up-regulated genes per group.
    library_size : float, default: 3000
        Median counts per healthy cell.
    low_quality_fraction : float, default: 0.05
        Fraction of damaged cells.
    seed : int, default: 0
        Random seed.

    Returns
    -------
    AnnData
        - `.X` : sparse raw counts (float32)
        - `.obs['true_group']`, `.obs['batch']`, `.obs['low_quality']`
        - `.var_names` : 13 ``MT-`` genes, ``RPS``/``RPL`` genes, markers
          (``MARKER<group>-<i>``) and others; no name contains ``_``, which
          liana reads as a complex separator
        - `.uns['true_markers']` : group → marker genes
    """
    n_ribo = 20
    n_fixed = len(_MT_GENES) + n_ribo + n_groups * n_markers
    if n_genes <= n_fixed:
        raise ValueError(f"n_genes must be > {n_fixed} for {n_groups} groups with {n_markers} markers each")

    rng = np.random.default_rng(seed)
    ribo = [f"RPS{i}" for i in range(1, n_ribo // 2 + 1)] + [f"RPL{i}" for i in range(1, n_ribo // 2 + 1)]
    markers = {f"group_{g}": [f"MARKER{g}-{i}" for i in range(n_markers)] for g in range(n_groups)}
    other = [f"GENE{i:05d}" for i in range(n_genes - n_fixed)]
    genes = _MT_GENES + ribo + [m for ms in markers.values() for m in ms] + other

    groups = _balanced_labels(rng, n_cells, n_groups, "group")
    batches = _balanced_labels(rng, n_cells, n_batches, "batch")
    low_quality = rng.random(n_cells) < low_quality_fraction

    # Gene proportions: 5% mitochondrial, 15% ribosomal, rest log-normal
    is_mt = np.zeros(n_genes, dtype=bool)
    is_mt[: len(_MT_GENES)] = True
    is_ribo = np.zeros(n_genes, dtype=bool)
    is_ribo[len(_MT_GENES) : len(_MT_GENES) + n_ribo] = True
    base = rng.lognormal(0.0, 1.0, n_genes)
    base[is_mt] *= 0.05 / base[is_mt].sum()
    base[is_ribo] *= 0.15 / base[is_ribo].sum()
    rest = ~(is_mt | is_ribo)
    base[rest] *= 0.80 / base[rest].sum()

    props = np.tile(base, (n_cells, 1))
    gene_index = {g: i for i, g in enumerate(genes)}
    for group in groups.categories:
        cols = [gene_index[m] for m in markers[group]]
        props[np.ix_(np.asarray(groups == group), cols)] *= 8.0
    batch_effect = rng.lognormal(0.0, 0.2, (n_batches, n_genes))
    props *= batch_effect[batches.codes]
    props[np.ix_(low_quality, is_mt)] *= 10.0
    props /= props.sum(axis=1, keepdims=True)

    library = rng.lognormal(np.log(library_size), 0.3, n_cells)
    library[low_quality] /= 6.0
    mu = props * library[:, None]

    dispersion = 2.0
    counts = rng.negative_binomial(dispersion, dispersion / (dispersion + mu)).astype(np.float32)

    adata = AnnData(sp.csr_matrix(counts))
    adata.obs_names = [f"cell_{i}" for i in range(n_cells)]
    adata.var_names = genes
    adata.obs["true_group"] = groups
    adata.obs["batch"] = batches
    adata.obs["low_quality"] = low_quality
    adata.uns["true_markers"] = markers
    adata.uns["synthetic_params"] = {
        "n_groups": n_groups,
        "n_batches": n_batches,
        "n_markers": n_markers,
        "seed": seed,
    }
    return adata


def synthetic_peaks(
    n_cells: int = 300,
    n_peaks: int = 3000,
    n_groups: int = 3,
    n_specific: int = 100,
    n_motifs: int = 10,
    seed: int = 0,
) -> AnnData:
    """Generate a sparse scATAC-seq peak count matrix with known structure.

    Each group opens its own ``n_specific`` peaks. Motif ``MOTIF<g>`` (for
    ``g < n_groups``) occurs preferentially in the peaks specific to group g;
    the remaining motifs are spread uniformly.

    Returns
    -------
    AnnData
        - `.X` : sparse counts (float32), peaks named ``chrN:start-end``
        - `.obs['true_group']`
        - `.uns['true_peaks']` : group → specific peaks
        - `.varm['motif_matches']` / `.uns['motif_names']` : peak × motif hits
    """
    if n_peaks <= n_groups * n_specific:
        raise ValueError(f"n_peaks must be > {n_groups * n_specific}")
    rng = np.random.default_rng(seed)

    n_chrom = 5
    chrom = np.sort(rng.integers(1, n_chrom + 1, n_peaks))
    starts = np.empty(n_peaks, dtype=np.int64)
    for c in range(1, n_chrom + 1):
        idx = np.flatnonzero(chrom == c)
        starts[idx] = np.cumsum(rng.integers(1000, 20000, len(idx)))
    widths = rng.integers(200, 1500, n_peaks)
    peaks = [f"chr{c}:{s}-{s + w}" for c, s, w in zip(chrom, starts, widths, strict=True)]

    groups = _balanced_labels(rng, n_cells, n_groups, "group")
    specific = rng.permutation(n_peaks)[: n_groups * n_specific].reshape(n_groups, n_specific)

    prob = np.tile(rng.beta(1.0, 12.0, n_peaks), (n_cells, 1))
    for g, group in enumerate(groups.categories):
        prob[np.ix_(np.asarray(groups == group), specific[g])] = 0.6
    depth = rng.lognormal(0.0, 0.4, n_cells)
    prob = np.clip(prob * depth[:, None], 0.0, 1.0)

    open_ = rng.random((n_cells, n_peaks)) < prob
    counts = open_ * (1 + rng.poisson(0.5, (n_cells, n_peaks)))

    motif_prob = np.full((n_peaks, n_motifs), 0.05)
    for g in range(min(n_groups, n_motifs)):
        motif_prob[specific[g], g] = 0.6
    motif_hits = rng.random((n_peaks, n_motifs)) < motif_prob

    adata = AnnData(sp.csr_matrix(counts.astype(np.float32)))
    adata.obs_names = [f"cell_{i}" for i in range(n_cells)]
    adata.var_names = peaks
    adata.obs["true_group"] = groups
    adata.uns["true_peaks"] = {group: [peaks[i] for i in specific[g]] for g, group in enumerate(groups.categories)}
    adata.varm["motif_matches"] = motif_hits
    adata.uns["motif_names"] = [f"MOTIF{i}" for i in range(n_motifs)]
    return adata


__all__ = [
    "load_dataset",
    "synthetic_counts",
    "synthetic_peaks",
]
