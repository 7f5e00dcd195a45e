"""Shared fixtures for scupgrade tests."""

import matplotlib

matplotlib.use("Agg")  # Use non-interactive backend

import numpy as np
import pandas as pd
import pytest

import scupgrade as su


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: end-to-end workflow tests")


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    import matplotlib.pyplot as plt

    plt.close("all")


@pytest.fixture
def counts_adata():
    """Raw synthetic counts: 400 cells, 600 genes, 3 groups, 2 batches."""
    return su.datasets.synthetic_counts(n_cells=400, n_genes=600, n_groups=3, n_batches=2, seed=0)


@pytest.fixture(scope="session")
def _processed_rna():
    adata = su.datasets.synthetic_counts(n_cells=400, n_genes=600, n_groups=3, n_batches=2, seed=0)
    su.pp.qc_metrics(adata)
    adata = su.pp.filter_cells(adata, verbose=False)
    adata = su.pp.filter_genes(adata, min_cells=3, verbose=False)
    su.pp.normalize(adata, verbose=False)
    su.pp.highly_variable(adata, n_top_genes=300, verbose=False)
    su.pp.reduce_dimensions(adata, n_comps=20, verbose=False)
    return adata


@pytest.fixture
def processed_adata(_processed_rna):
    """QC-filtered, normalized data with PCA (20 components)."""
    return _processed_rna.copy()


@pytest.fixture(scope="session")
def _clustered_rna(_processed_rna):
    adata = _processed_rna.copy()
    su.tl.cluster(adata, n_pcs=20, verbose=False)
    return adata


@pytest.fixture
def clustered_adata(_clustered_rna):
    """Processed data with neighbors, UMAP and Leiden clusters."""
    return _clustered_rna.copy()


@pytest.fixture
def peaks_adata():
    """Raw synthetic peak counts: 240 cells, 2000 peaks, 3 groups, 10 motifs."""
    return su.datasets.synthetic_peaks(n_cells=240, n_peaks=2000, n_groups=3, n_specific=80, seed=0)


@pytest.fixture(scope="session")
def _lsi_atac():
    adata = su.datasets.synthetic_peaks(n_cells=240, n_peaks=2000, n_groups=3, n_specific=80, seed=0)
    adata = su.pp.filter_peaks(adata, min_counts=50, min_cells=5, verbose=False)
    su.pp.prepare_atacseq(adata, n_components=20, verbose=False)
    su.tl.cluster(adata, use_rep="X_lsi", n_pcs=None, verbose=False)
    return adata


@pytest.fixture
def lsi_adata(_lsi_atac):
    """Filtered peaks with TF-IDF, LSI (20 components) and Leiden clusters."""
    return _lsi_atac.copy()


@pytest.fixture
def liana_results():
    """A liana-shaped rank_aggregate result table over three groups."""
    rng = np.random.default_rng(0)
    groups = ["B", "Mono", "T"]
    rows = []
    for source in groups:
        for target in groups:
            for i in range(6):
                rows.append(
                    {
                        "source": source,
                        "target": target,
                        "ligand_complex": f"LIG{i}",
                        "receptor_complex": f"REC{i}",
                        "magnitude_rank": rng.uniform(0, 1),
                        "specificity_rank": rng.uniform(0, 1),
                    }
                )
    df = pd.DataFrame(rows)
    # Fixed strong interactions: Mono -> T on LIG0/REC0, B -> T on LIG1/REC1
    df.loc[(df["source"] == "Mono") & (df["target"] == "T") & (df["ligand_complex"] == "LIG0"), "magnitude_rank"] = 1e-4
    df.loc[(df["source"] == "B") & (df["target"] == "T") & (df["ligand_complex"] == "LIG1"), "magnitude_rank"] = 1e-3
    return df


@pytest.fixture
def communication_adata(liana_results):
    """Small AnnData holding ``liana_results`` in ``uns['liana_res']``."""
    from anndata import AnnData

    adata = AnnData(np.zeros((6, 3), dtype=np.float32))
    adata.obs["cell_type"] = pd.Categorical(["B", "B", "Mono", "Mono", "T", "T"])
    adata.uns["liana_res"] = liana_results
    return adata
