# stemness_index/core/utils.py
"""Matrix helpers shared by training, scoring and the explorer."""

import warnings

import numpy as np
import pandas as pd
from scipy import stats

from stemness_index.core.exceptions import DegenerateScoreError


def drop_duplicate_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Keep only the first row for each duplicated index label.

    Identifier collisions after symbol mapping (e.g. two Ensembl ids that
    both map to SLC35E2) leave several rows under one label.
    """
    return df.loc[~df.index.duplicated(keep="first")]


def split_tcga_gene_ids(df: pd.DataFrame) -> pd.DataFrame:
    """Reduce TCGA-style `SYMBOL|ENTREZ` row ids to the symbol.

    Rows without an official symbol (`?|100130426`) are dropped. Duplicate
    symbols are left in place for the caller to resolve.
    """
    symbols = df.index.astype(str).str.split("|", n=1).str[0]
    keep = symbols != "?"
    result = df.loc[keep].copy()
    result.index = symbols[keep]
    return result


def mean_center(df: pd.DataFrame) -> pd.DataFrame:
    """Subtract each gene's mean across samples (genes are rows)."""
    return df.sub(df.mean(axis=1), axis=0)


def restrict_to_genes(df: pd.DataFrame, genes: list[str]) -> pd.DataFrame:
    """Subset rows to the given genes, keeping the matrix's own row order.

    Args:
        df: Matrix with genes as rows.
        genes: Genes to keep. Genes absent from `df` are ignored.

    Returns:
        Row subset of `df`.
    """
    keep = df.index.intersection(pd.Index(genes), sort=False)
    return df.loc[keep]


def spearman_complete(x: np.ndarray, y: np.ndarray) -> float:
    """Spearman correlation over positions where both vectors are observed.

    Returns NaN when fewer than two complete pairs remain or either vector
    is constant on them.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    mask = np.isfinite(x) & np.isfinite(y)
    if mask.sum() < 2:
        return np.nan
    x_obs, y_obs = x[mask], y[mask]
    if np.ptp(x_obs) == 0 or np.ptp(y_obs) == 0:
        return np.nan
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)
        rho, _ = stats.spearmanr(x_obs, y_obs)
    return float(rho)


def spearman_to_columns(df: pd.DataFrame, weights: pd.Series) -> pd.Series:
    """Spearman correlation of every column of `df` with `weights`.

    `weights` is aligned to `df`'s row index before correlating.
    """
    w = weights.reindex(df.index).to_numpy(dtype=float)
    values = df.to_numpy(dtype=float)
    scores = [spearman_complete(values[:, j], w) for j in range(values.shape[1])]
    return pd.Series(scores, index=df.columns, dtype=float)


def rescale_min_max(scores: pd.Series) -> pd.Series:
    """Linearly map scores so the cohort minimum is 0 and the maximum is 1.

    NaN entries are ignored for the bounds and stay NaN.

    Raises:
        DegenerateScoreError: If no finite score exists or all finite scores
            are identical.
    """
    finite = scores[np.isfinite(scores)]
    if finite.empty:
        msg = "Cannot rescale scores: no finite score in the cohort."
        raise DegenerateScoreError(msg)
    low, high = finite.min(), finite.max()
    if high == low:
        msg = f"Cannot rescale scores: all {len(finite)} scores equal {low!r}."
        raise DegenerateScoreError(msg)
    return (scores - low) / (high - low)
