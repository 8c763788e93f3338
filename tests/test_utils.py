import numpy as np
import pandas as pd
import pytest

from stemness_index.core.exceptions import DegenerateScoreError
from stemness_index.core.utils import (
    drop_duplicate_rows,
    mean_center,
    rescale_min_max,
    restrict_to_genes,
    spearman_complete,
    spearman_to_columns,
    split_tcga_gene_ids,
)


def test_mean_center_zeroes_row_means():
    rng = np.random.default_rng(0)
    df = pd.DataFrame(rng.normal(loc=5.0, size=(4, 6)), index=list("ABCD"))
    centered = mean_center(df)
    assert np.allclose(centered.mean(axis=1), 0.0)


def test_mean_center_ignores_per_gene_offsets():
    rng = np.random.default_rng(1)
    df = pd.DataFrame(rng.normal(size=(3, 5)), index=list("ABC"))
    shifted = df.add(pd.Series([10.0, -2.0, 0.5], index=df.index), axis=0)
    pd.testing.assert_frame_equal(mean_center(df), mean_center(shifted))


def test_drop_duplicate_rows_keeps_first_and_is_idempotent():
    df = pd.DataFrame({"s1": [1.0, 2.0, 9.0], "s2": [3.0, 4.0, 9.0]}, index=["A", "B", "A"])
    once = drop_duplicate_rows(df)
    assert list(once.index) == ["A", "B"]
    assert once.loc["A", "s1"] == 1.0
    pd.testing.assert_frame_equal(drop_duplicate_rows(once), once)


def test_split_tcga_gene_ids_drops_unnamed_rows():
    df = pd.DataFrame({"s1": [1.0, 2.0, 3.0]}, index=["TP53|7157", "?|100130426", "SOX2|6657"])
    result = split_tcga_gene_ids(df)
    assert list(result.index) == ["TP53", "SOX2"]
    assert result.loc["SOX2", "s1"] == 3.0


def test_restrict_to_genes_keeps_matrix_order():
    df = pd.DataFrame({"s1": [1.0, 2.0, 3.0]}, index=["C", "A", "B"])
    result = restrict_to_genes(df, ["B", "A", "Z"])
    assert list(result.index) == ["A", "B"]


def test_spearman_complete_uses_complete_pairs():
    x = np.array([1.0, 2.0, 3.0, np.nan])
    y = np.array([10.0, 20.0, 30.0, 0.0])
    assert spearman_complete(x, y) == pytest.approx(1.0)


def test_spearman_complete_undefined_cases():
    assert np.isnan(spearman_complete(np.array([1.0, np.nan]), np.array([1.0, 2.0])))
    assert np.isnan(spearman_complete(np.array([1.0, 1.0, 1.0]), np.array([1.0, 2.0, 3.0])))


def test_spearman_to_columns_aligns_weights_by_gene():
    df = pd.DataFrame({"up": [1.0, 2.0, 3.0], "down": [3.0, 2.0, 1.0]}, index=["A", "B", "C"])
    weights = pd.Series({"C": 3.0, "A": 1.0, "B": 2.0})
    result = spearman_to_columns(df, weights)
    assert result["up"] == pytest.approx(1.0)
    assert result["down"] == pytest.approx(-1.0)


def test_rescale_min_max_hits_both_bounds():
    scores = pd.Series([0.2, -0.4, 0.8, np.nan], index=list("wxyz"))
    result = rescale_min_max(scores)
    assert result.min() == 0.0
    assert result.max() == 1.0
    assert result["w"] == pytest.approx(0.5)
    assert np.isnan(result["z"])


def test_rescale_min_max_rejects_constant_scores():
    with pytest.raises(DegenerateScoreError):
        rescale_min_max(pd.Series([0.3, 0.3, 0.3]))
    with pytest.raises(DegenerateScoreError):
        rescale_min_max(pd.Series([np.nan, np.nan]))
