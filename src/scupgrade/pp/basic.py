"""
Single-cell object construction.

This module reads the count matrices used in the workshops into AnnData
objects and concatenates per-sample objects into one.

Main Functions:
- read(): Load one matrix, format chosen by file suffix
- load_samples(): Read several samples and concatenate them with a batch column
"""

from pathlib import Path

import anndata as ad
import scanpy as sc
from anndata import AnnData

_TEXT_SUFFIXES = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def read(
    path: str | Path,
    *,
    var_names: str = "gene_symbols",
    make_unique: bool = True,
    transpose_text: bool = True,
) -> AnnData:
    """Read a count matrix into AnnData.

    Parameters
    ----------
    path : str or Path
        ``.h5ad`` (AnnData), ``.h5`` (10x HDF5), a directory holding 10x
        ``matrix.mtx[.gz]``/``features.tsv[.gz]``/``barcodes.tsv[.gz]``,
        ``.loom`` (needs ``scupgrade[loom]``), or delimited text (``.csv``, ``.tsv``, ``.txt``, optionally ``.gz``).
    var_names : str, default: "gene_symbols"
        For 10x inputs: use 'gene_symbols' or 'gene_ids' as variable names.
    make_unique : bool, default: True
        Deduplicate variable names (repeated gene symbols are common in 10x data).
    transpose_text : bool, default: True
        Text matrices are usually genes × cells; transpose to cells × genes.

    Returns
    -------
    AnnData
        Cells × features count matrix.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No such file or directory: {path}")

    suffixes = [s.lower() for s in path.suffixes]
    if suffixes and suffixes[-1] == ".gz":
        suffixes = suffixes[:-1]
    suffix = suffixes[-1] if suffixes else ""

    if path.is_dir():
        adata = sc.read_10x_mtx(path, var_names=var_names)
    elif suffix == ".h5ad":
        adata = sc.read_h5ad(path)
    elif suffix == ".h5":
        adata = sc.read_10x_h5(path)
        if var_names == "gene_ids" and "gene_ids" in adata.var.columns:
            adata.var["gene_symbols"] = adata.var_names
            adata.var_names = adata.var["gene_ids"].astype(str)
    elif suffix == ".loom":
        adata = sc.read_loom(path)
    elif suffix in _TEXT_SUFFIXES:
        adata = sc.read_text(path, delimiter=_TEXT_SUFFIXES[suffix], first_column_names=True)
        if transpose_text:
            adata = adata.T
    else:
        raise ValueError(
            f"Unsupported file type '{''.join(path.suffixes)}' for {path}. "
            f"Expected .h5ad, .h5, .loom, {sorted(_TEXT_SUFFIXES)} or a 10x mtx directory."
        )

    if make_unique:
        adata.var_names_make_unique()
    return adata


def load_samples(
    paths: dict[str, str | Path],
    *,
    batch_key: str = "batch",
    join: str = "outer",
    verbose: bool = True,
    **read_kwargs,
) -> AnnData:
    """Read several samples and concatenate them into one AnnData.

    Parameters
    ----------
    paths : dict[str, str or Path]
        Sample name → path, each readable by :func:`read`.
    batch_key : str, default: "batch"
        Column in ``adata.obs`` recording the sample of each cell.
    join : str, default: "outer"
        'outer' keeps every gene (missing values become 0), 'inner' keeps shared genes.
    verbose : bool, default: True
        Print one line per sample.
    **read_kwargs
        Passed to :func:`read`.

    Returns
    -------
    AnnData
        Concatenated object; cell names are suffixed with ``-<sample>``.
    """
    if not paths:
        raise ValueError("No samples given: paths must map at least one sample name to a file")

    samples = {}
    for name, path in paths.items():
        sample = read(path, **read_kwargs)
        if verbose:
            print(f"  Loaded {name}: {sample.n_obs:,} cells x {sample.n_vars:,} features")
        samples[name] = sample

    adata = ad.concat(samples, label=batch_key, join=join, index_unique="-", merge="same", fill_value=0)
    adata.obs[batch_key] = adata.obs[batch_key].astype("category")

    if verbose:
        print(f"[OK] Combined {len(samples)} samples: {adata.n_obs:,} cells x {adata.n_vars:,} features")
    return adata
