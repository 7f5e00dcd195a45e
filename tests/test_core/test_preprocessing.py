"""Tests for object construction, QC and normalization."""

import gzip
import shutil

import h5py
import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp
from anndata import AnnData
from scipy.io import mmwrite

import scupgrade as su


class TestRead:
    def test_h5ad(self, tmp_path, counts_adata):
        path = tmp_path / "sample.h5ad"
        counts_adata.write_h5ad(path)
        adata = su.pp.read(path)
        assert adata.shape == counts_adata.shape
        assert list(adata.var_names) == list(counts_adata.var_names)

    def test_csv_genes_as_rows(self, tmp_path):
        df = pd.DataFrame(
            [[1, 0, 3], [0, 2, 0], [5, 1, 1], [0, 0, 4]],
            index=pd.Index(["GENE_A", "GENE_B", "GENE_C", "GENE_D"], name="gene"),
            columns=["cell_1", "cell_2", "cell_3"],
        )
        path = tmp_path / "counts.csv"
        df.to_csv(path)
        adata = su.pp.read(path)
        assert adata.shape == (3, 4)
        assert list(adata.obs_names) == ["cell_1", "cell_2", "cell_3"]
        assert adata[:, "GENE_C"].X.ravel().tolist() == [5, 1, 1]

    def test_duplicate_names_made_unique(self, tmp_path):
        adata = AnnData(np.ones((3, 3), dtype=np.float32))
        adata.var_names = ["A", "A", "B"]
        path = tmp_path / "dup.h5ad"
        adata.write_h5ad(path)
        out = su.pp.read(path)
        assert out.var_names.is_unique

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            su.pp.read(tmp_path / "nope.h5ad")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "matrix.xyz"
        path.write_text("not a matrix")
        with pytest.raises(ValueError, match="Unsupported file type"):
            su.pp.read(path)


def _write_10x_mtx(directory, X, gene_ids, symbols, barcodes):
    """Write a cells × genes matrix in the Cell Ranger v3 mtx layout."""
    directory.mkdir()
    mtx = directory / "matrix.mtx"
    # 10x stores features × barcodes
    mmwrite(mtx, sp.csr_matrix(X).T.tocoo())
    with open(mtx, "rb") as src, gzip.open(directory / "matrix.mtx.gz", "wb") as dst:
        shutil.copyfileobj(src, dst)
    mtx.unlink()
    with gzip.open(directory / "features.tsv.gz", "wt") as fh:
        for gene_id, symbol in zip(gene_ids, symbols):
            fh.write(f"{gene_id}\t{symbol}\tGene Expression\n")
    with gzip.open(directory / "barcodes.tsv.gz", "wt") as fh:
        fh.write("\n".join(barcodes) + "\n")


def _write_10x_h5(path, X, gene_ids, symbols, barcodes):
    """Write a cells × genes matrix in the Cell Ranger v3 HDF5 layout."""
    X = sp.csr_matrix(X, dtype=np.float32)
    with h5py.File(path, "w") as f:
        matrix = f.create_group("matrix")
        matrix.create_dataset("barcodes", data=np.array(barcodes, dtype="S"))
        matrix.create_dataset("data", data=X.data)
        matrix.create_dataset("indices", data=X.indices.astype(np.int64))
        matrix.create_dataset("indptr", data=X.indptr.astype(np.int64))
        matrix.create_dataset("shape", data=np.array([X.shape[1], X.shape[0]], dtype=np.int32))
        features = matrix.create_group("features")
        features.create_dataset("id", data=np.array(gene_ids, dtype="S"))
        features.create_dataset("name", data=np.array(symbols, dtype="S"))
        features.create_dataset("feature_type", data=np.array(["Gene Expression"] * len(gene_ids), dtype="S"))
        features.create_dataset("genome", data=np.array(["GRCh38"] * len(gene_ids), dtype="S"))
        features.create_dataset("_all_tag_keys", data=np.array(["genome"], dtype="S"))


@pytest.fixture
def tenx_matrix():
    """Small 10x-style matrix with a repeated gene symbol."""
    X = np.array(
        [
            [1, 0, 3, 0],
            [0, 2, 0, 1],
            [4, 0, 0, 2],
        ],
        dtype=np.float32,
    )
    gene_ids = ["ENSG0001", "ENSG0002", "ENSG0003", "ENSG0004"]
    symbols = ["CD3E", "MS4A1", "LYZ", "LYZ"]
    barcodes = ["AAAC-1", "AAAG-1", "AAAT-1"]
    return X, gene_ids, symbols, barcodes


class TestRead10x:
    def test_mtx_directory(self, tmp_path, tenx_matrix):
        X, gene_ids, symbols, barcodes = tenx_matrix
        _write_10x_mtx(tmp_path / "filtered_feature_bc_matrix", X, gene_ids, symbols, barcodes)

        adata = su.pp.read(tmp_path / "filtered_feature_bc_matrix")
        assert adata.shape == (3, 4)
        assert list(adata.obs_names) == barcodes
        assert list(adata.var_names) == ["CD3E", "MS4A1", "LYZ", "LYZ-1"]
        assert adata.var["gene_ids"].tolist() == gene_ids
        np.testing.assert_array_equal(adata.X.toarray(), X)

    def test_mtx_directory_gene_ids(self, tmp_path, tenx_matrix):
        X, gene_ids, symbols, barcodes = tenx_matrix
        _write_10x_mtx(tmp_path / "mtx", X, gene_ids, symbols, barcodes)

        adata = su.pp.read(tmp_path / "mtx", var_names="gene_ids")
        assert list(adata.var_names) == gene_ids

    def test_h5(self, tmp_path, tenx_matrix):
        X, gene_ids, symbols, barcodes = tenx_matrix
        path = tmp_path / "filtered_feature_bc_matrix.h5"
        _write_10x_h5(path, X, gene_ids, symbols, barcodes)

        adata = su.pp.read(path)
        assert adata.shape == (3, 4)
        assert list(adata.var_names) == ["CD3E", "MS4A1", "LYZ", "LYZ-1"]
        np.testing.assert_array_equal(adata.X.toarray(), X)

    def test_h5_gene_ids(self, tmp_path, tenx_matrix):
        X, gene_ids, symbols, barcodes = tenx_matrix
        path = tmp_path / "filtered_feature_bc_matrix.h5"
        _write_10x_h5(path, X, gene_ids, symbols, barcodes)

        adata = su.pp.read(path, var_names="gene_ids")
        assert list(adata.var_names) == gene_ids
        assert adata.var["gene_symbols"].tolist() == symbols

    def test_loom(self, tmp_path, counts_adata):
        pytest.importorskip("loompy")
        path = tmp_path / "sample.loom"
        plain = AnnData(
            counts_adata.X,
            obs=pd.DataFrame(index=counts_adata.obs_names),
            var=pd.DataFrame(index=counts_adata.var_names),
        )
        plain.write_loom(path)

        adata = su.pp.read(path)
        assert adata.shape == counts_adata.shape
        assert list(adata.var_names) == list(counts_adata.var_names)
        np.testing.assert_allclose(adata.X.sum(), counts_adata.X.sum(), rtol=1e-5)


class TestLoadSamples:
    def test_concatenates_with_batch(self, tmp_path):
        s1 = su.datasets.synthetic_counts(n_cells=50, n_genes=200, seed=1)
        s2 = su.datasets.synthetic_counts(n_cells=60, n_genes=200, seed=2)
        p1, p2 = tmp_path / "s1.h5ad", tmp_path / "s2.h5ad"
        s1.write_h5ad(p1)
        s2.write_h5ad(p2)

        adata = su.pp.load_samples({"ctrl": p1, "treated": p2}, batch_key="sample", verbose=False)
        assert adata.n_obs == 110
        assert adata.obs_names.is_unique
        assert set(adata.obs["sample"].cat.categories) == {"ctrl", "treated"}
        assert (adata.obs["sample"] == "treated").sum() == 60

    def test_empty(self):
        with pytest.raises(ValueError, match="No samples"):
            su.pp.load_samples({})


class TestQC:
    def test_qc_metrics(self, counts_adata):
        su.pp.qc_metrics(counts_adata)
        assert counts_adata.var["mt"].sum() == 13
        assert counts_adata.var["ribo"].sum() == 20
        for key in ["n_genes_by_counts", "total_counts", "pct_counts_mt", "pct_counts_ribo"]:
            assert key in counts_adata.obs.columns
        # Damaged cells carry a high mitochondrial share
        low = counts_adata.obs["low_quality"].to_numpy()
        pct_mt = counts_adata.obs["pct_counts_mt"].to_numpy()
        assert pct_mt[low].mean() > pct_mt[~low].mean()

    def test_qc_metrics_case_insensitive(self):
        adata = AnnData(np.ones((5, 3), dtype=np.float32))
        adata.var_names = ["mt-Co1", "Rps3", "Actb"]
        su.pp.qc_metrics(adata)
        assert adata.var["mt"].tolist() == [True, False, False]
        assert adata.var["ribo"].tolist() == [False, True, False]

    def test_no_mt_genes_warns(self):
        adata = AnnData(np.ones((5, 2), dtype=np.float32))
        adata.var_names = ["ACTB", "GAPDH"]
        with pytest.warns(UserWarning, match="No mitochondrial genes"):
            su.pp.qc_metrics(adata)

    def test_mad_outliers(self):
        adata = AnnData(np.zeros((6, 1), dtype=np.float32))
        adata.obs["metric"] = [10.0, 11.0, 9.0, 10.0, 10.5, 100.0]
        outliers = su.pp.mad_outliers(adata, "metric", nmads=3)
        assert outliers.tolist() == [False, False, False, False, False, True]
        assert outliers.index.equals(adata.obs_names)

    def test_filter_cells(self, counts_adata):
        filtered = su.pp.filter_cells(counts_adata, verbose=False)
        assert 0 < filtered.n_obs < counts_adata.n_obs
        assert filtered.obs["qc_pass"].all()
        assert "qc_pass" in counts_adata.obs.columns
        assert filtered.obs["pct_counts_mt"].max() <= 20.0
        assert filtered.obs["n_genes_by_counts"].min() >= 200

        record = filtered.uns["qc"]
        assert record["n_cells_before"] == counts_adata.n_obs
        assert record["n_cells_after"] == filtered.n_obs
        assert record["removed"]["max_pct_mt"] > 0

    def test_filter_cells_overrides(self, counts_adata):
        config = su.QCConfig.from_preset("permissive")
        filtered = su.pp.filter_cells(counts_adata, config, max_pct_mt=100.0, min_genes=0, verbose=False)
        assert filtered.n_obs == counts_adata.n_obs
        assert filtered.uns["qc"]["config"]["max_pct_mt"] == 100.0

    def test_filter_cells_none_disables_threshold(self, counts_adata):
        filtered = su.pp.filter_cells(counts_adata, min_genes=None, max_pct_mt=None, verbose=False)
        assert filtered.n_obs == counts_adata.n_obs
        assert filtered.uns["qc"]["removed"] == {}

    def test_filter_cells_nmads(self, counts_adata):
        filtered = su.pp.filter_cells(counts_adata, nmads=3.0, verbose=False)
        assert "mad_counts" in filtered.uns["qc"]["removed"]

    def test_filter_cells_all_fail(self, counts_adata):
        with pytest.raises(ValueError, match="All .* cells failed QC"):
            su.pp.filter_cells(counts_adata, min_genes=100000, verbose=False)

    def test_filter_genes(self, counts_adata):
        counts_adata.X[:, 0] = 0
        filtered = su.pp.filter_genes(counts_adata, min_cells=3, verbose=False)
        assert counts_adata.var_names[0] not in filtered.var_names
        assert filtered.n_obs == counts_adata.n_obs

    def test_detect_doublets(self, counts_adata):
        pytest.importorskip("skimage")
        adata = su.pp.filter_cells(counts_adata, verbose=False)
        out = su.pp.detect_doublets(adata, verbose=False)
        assert out is adata
        assert "doublet_score" in adata.obs.columns
        assert "predicted_doublet" in adata.obs.columns

    def test_detect_doublets_remove(self, counts_adata):
        adata = su.pp.filter_cells(counts_adata, verbose=False)
        out = su.pp.detect_doublets(adata, threshold=0.0, remove=True, verbose=False)
        # Doublet scores are strictly positive, so a zero threshold removes cells
        assert out.n_obs < adata.n_obs
        assert not out.obs["predicted_doublet"].any()

    def test_detect_doublets_per_batch(self, counts_adata):
        adata = su.pp.filter_cells(counts_adata, verbose=False)
        su.pp.detect_doublets(adata, batch_key="batch", threshold=0.5, verbose=False)
        assert adata.obs["doublet_score"].notna().all()
        called = adata.obs["predicted_doublet"].astype(bool)
        assert (called == (adata.obs["doublet_score"] > 0.5)).all()
        assert "scrublet" in adata.uns

    def test_detect_doublets_unknown_batch(self, counts_adata):
        with pytest.raises(ValueError, match="not found in adata.obs"):
            su.pp.detect_doublets(counts_adata, batch_key="sample", verbose=False)


class TestNormalize:
    def test_normalize(self, counts_adata):
        su.pp.normalize(counts_adata, verbose=False)
        assert "counts" in counts_adata.layers
        assert counts_adata.raw is not None
        assert "log1p" in counts_adata.uns
        totals = np.expm1(counts_adata.X.toarray()).sum(axis=1)
        assert np.allclose(totals, 1e4, rtol=1e-3)
        assert sp.issparse(counts_adata.layers["counts"])

    def test_normalize_twice_fails(self, counts_adata):
        su.pp.normalize(counts_adata, verbose=False)
        with pytest.raises(ValueError, match="already log-transformed"):
            su.pp.normalize(counts_adata, verbose=False)

    def test_normalize_warns_on_non_counts(self):
        adata = AnnData(np.full((4, 3), 0.5, dtype=np.float32))
        with pytest.warns(UserWarning, match="does not look like raw counts"):
            su.pp.normalize(adata, verbose=False)

    def test_highly_variable(self, counts_adata):
        su.pp.normalize(counts_adata, verbose=False)
        su.pp.highly_variable(counts_adata, n_top_genes=100, verbose=False)
        assert counts_adata.var["highly_variable"].sum() == 100

    def test_highly_variable_warns_without_log(self):
        rng = np.random.default_rng(0)
        adata = AnnData(rng.poisson(1.0, (50, 40)).astype(np.float32))
        with pytest.warns(UserWarning, match="expects log-normalized data"):
            su.pp.highly_variable(adata, n_top_genes=10, verbose=False)

    def test_reduce_dimensions(self, processed_adata):
        assert processed_adata.obsm["X_pca"].shape == (processed_adata.n_obs, 20)
        ratio = processed_adata.uns["pca"]["variance_ratio"]
        assert np.all(np.diff(ratio) <= 1e-8)

    def test_reduce_dimensions_caps_components(self, counts_adata):
        adata = counts_adata[:30].copy()
        su.pp.normalize(adata, verbose=False)
        with pytest.warns(UserWarning, match="Capped PCA components"):
            su.pp.reduce_dimensions(adata, n_comps=50, verbose=False)
        assert adata.obsm["X_pca"].shape[1] == 29

    def test_reduce_dimensions_missing_regress_key(self, counts_adata):
        su.pp.normalize(counts_adata, verbose=False)
        with pytest.raises(ValueError, match="not found in adata.obs"):
            su.pp.reduce_dimensions(counts_adata, regress_out=["nope"], verbose=False)
