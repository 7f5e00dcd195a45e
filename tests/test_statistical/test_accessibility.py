"""Tests for differential accessibility and motif enrichment."""

import numpy as np
import pandas as pd
import pytest

import scupgrade as su


class TestDifferentialPeaks:
    def test_differential_peaks(self, lsi_adata):
        peaks = su.tl.differential_peaks(lsi_adata, "true_group", n_peaks=100)
        assert "peak" in peaks.columns
        assert "gene" not in peaks.columns
        assert set(peaks["group"]) == {"group_0", "group_1", "group_2"}
        assert "rank_peaks_groups" in lsi_adata.uns

    def test_recovers_specific_peaks(self, lsi_adata):
        peaks = su.tl.differential_peaks(lsi_adata, "true_group", n_peaks=20)
        truth = lsi_adata.uns["true_peaks"]
        top = peaks[peaks["group"] == "group_0"]["peak"]
        assert top.isin(truth["group_0"]).mean() > 0.8

    def test_requires_tfidf_layer(self, peaks_adata):
        peaks_adata.obs["true_group"] = peaks_adata.obs["true_group"].astype(str)
        with pytest.raises(ValueError, match="Layer 'tfidf' not found"):
            su.tl.differential_peaks(peaks_adata, "true_group")


class TestMotifEnrichment:
    def test_from_varm(self, lsi_adata):
        truth = lsi_adata.uns["true_peaks"]
        foreground = [p for p in truth["group_1"] if p in lsi_adata.var_names]
        results = su.tl.motif_enrichment(lsi_adata, foreground, verbose=False)

        assert list(results.columns[:2]) == ["motif", "observed"]
        assert {"fdr_pvalue", "significant", "fold_enrichment"} <= set(results.columns)
        assert results.iloc[0]["motif"] == "MOTIF1"
        assert results.iloc[0]["significant"]
        assert results["pvalue"].is_monotonic_increasing

    def test_from_differential_table(self, lsi_adata):
        peaks = su.tl.differential_peaks(lsi_adata, "true_group", n_peaks=30)
        fg = peaks[(peaks["group"] == "group_2") & (peaks["score"] > 0)]
        results = su.tl.motif_enrichment(lsi_adata, fg, verbose=False)
        assert results.iloc[0]["motif"] == "MOTIF2"

    def test_motif_dataframe(self, lsi_adata):
        names = list(lsi_adata.var_names[:40])
        motifs = pd.DataFrame({"CTCF": [True] * 20 + [False] * 20}, index=names)
        results = su.tl.motif_enrichment(lsi_adata, names[:20], motifs=motifs, verbose=False)
        row = results.set_index("motif").loc["CTCF"]
        assert row["observed"] == 20
        assert row["n_background_hits"] == 20
        assert row["pvalue"] < 1e-10

    def test_boolean_mask_and_background(self, lsi_adata):
        mask = np.zeros(lsi_adata.n_vars, dtype=bool)
        mask[:50] = True
        background = np.zeros(lsi_adata.n_vars, dtype=bool)
        background[50:500] = True
        results = su.tl.motif_enrichment(lsi_adata, mask, background=background, verbose=False)
        assert (results["n_foreground"] == 50).all()

    def test_unknown_peaks(self, lsi_adata):
        with pytest.raises(ValueError, match="not found in adata.var_names"):
            su.tl.motif_enrichment(lsi_adata, ["chr99:1-2"], verbose=False)

    def test_missing_motifs(self, lsi_adata):
        del lsi_adata.varm["motif_matches"]
        with pytest.raises(ValueError, match="No motif matches"):
            su.tl.motif_enrichment(lsi_adata, list(lsi_adata.var_names[:5]), verbose=False)

    def test_motif_names_mismatch(self, lsi_adata):
        lsi_adata.uns["motif_names"] = ["only_one"]
        with pytest.raises(ValueError, match="motif_names"):
            su.tl.motif_enrichment(lsi_adata, list(lsi_adata.var_names[:5]), verbose=False)
