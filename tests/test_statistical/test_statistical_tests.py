"""Tests for FDR correction and hypergeometric enrichment."""

import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp
from scipy.stats import hypergeom

from scupgrade._core.types import FDRMethod
from scupgrade._core.utils.statistical_tests import apply_fdr_correction, hypergeometric_enrichment


class TestFDR:
    def test_benjamini_hochberg(self):
        df = pd.DataFrame({"pvalue": [0.01, 0.04, 0.03, 0.5]})
        out = apply_fdr_correction(df)
        # sorted p: 0.01, 0.03, 0.04, 0.5 -> 0.04, 0.0533, 0.0533, 0.5
        assert np.allclose(out["fdr_pvalue"], [0.04, 0.04 * 4 / 3, 0.04 * 4 / 3, 0.5])
        assert out["significant"].tolist() == [True, False, False, False]
        assert "fdr_pvalue" not in df.columns  # input untouched

    def test_bonferroni(self):
        df = pd.DataFrame({"pvalue": [0.01, 0.3]})
        out = apply_fdr_correction(df, method="bonferroni")
        assert out["fdr_pvalue"].tolist() == [0.02, 0.6]

    def test_method_enum_and_case(self):
        df = pd.DataFrame({"pvalue": [0.01, 0.3]})
        by_enum = apply_fdr_correction(df, method=FDRMethod.BONFERRONI)
        by_name = apply_fdr_correction(df, method="Bonferroni")
        assert by_enum["fdr_pvalue"].tolist() == by_name["fdr_pvalue"].tolist() == [0.02, 0.6]

    def test_invalid_pvalues_become_one(self):
        df = pd.DataFrame({"pvalue": [np.nan, -0.1, 2.0, 0.001]})
        out = apply_fdr_correction(df, method="bonferroni")
        assert out["fdr_pvalue"].tolist()[:3] == [1.0, 1.0, 1.0]
        assert out["fdr_pvalue"].iloc[3] == pytest.approx(0.004)

    def test_empty(self):
        out = apply_fdr_correction(pd.DataFrame({"pvalue": []}))
        assert list(out.columns) == ["pvalue", "fdr_pvalue", "significant"]
        assert len(out) == 0

    def test_errors(self):
        with pytest.raises(ValueError, match="not found"):
            apply_fdr_correction(pd.DataFrame({"p": [0.1]}))
        with pytest.raises(ValueError, match="Unknown FDR method"):
            apply_fdr_correction(pd.DataFrame({"pvalue": [0.1]}), method="storey")


class TestHypergeometric:
    def test_against_scipy(self):
        # 20 rows, rows 0-4 foreground; feature A hits rows 0-3 and 10, feature B hits rows 10-15
        hits = np.zeros((20, 2), dtype=bool)
        hits[[0, 1, 2, 3, 10], 0] = True
        hits[10:16, 1] = True
        fg = np.zeros(20, dtype=bool)
        fg[:5] = True

        out = hypergeometric_enrichment(hits, fg, feature_names=["A", "B"]).set_index("feature")
        assert out.loc["A", "observed"] == 4
        assert out.loc["A", "n_background_hits"] == 5
        assert out.loc["A", "expected"] == pytest.approx(5 * 5 / 20)
        assert out.loc["A", "fold_enrichment"] == pytest.approx(4 / 1.25)
        assert out.loc["A", "pvalue"] == pytest.approx(hypergeom.sf(3, 20, 5, 5))
        assert out.loc["B", "observed"] == 0
        assert out.loc["B", "pvalue"] == pytest.approx(1.0)
        assert out.index[0] == "A"  # sorted by p-value

    def test_sparse_and_indices(self):
        hits = sp.csr_matrix(np.array([[1, 0], [1, 0], [0, 1], [0, 1]]))
        out = hypergeometric_enrichment(hits, [0, 1])
        assert set(out["feature"]) == {"feature_0", "feature_1"}
        assert out.set_index("feature").loc["feature_0", "observed"] == 2

    def test_background_includes_foreground(self):
        hits = np.array([[1], [0], [1], [0]], dtype=bool)
        fg = np.array([True, False, False, False])
        bg = np.array([False, False, True, True])
        out = hypergeometric_enrichment(hits, fg, background=bg)
        # background = rows 0, 2, 3
        assert out.loc[0, "n_background_hits"] == 2
        assert out.loc[0, "expected"] == pytest.approx(2 / 3)

    def test_min_hits(self):
        hits = np.array([[1, 0], [0, 0], [1, 0]], dtype=bool)
        out = hypergeometric_enrichment(hits, [0], min_hits=1)
        assert out["feature"].tolist() == ["feature_0"]

    def test_empty_foreground(self):
        with pytest.raises(ValueError, match="empty"):
            hypergeometric_enrichment(np.ones((3, 1)), np.zeros(3, dtype=bool))
