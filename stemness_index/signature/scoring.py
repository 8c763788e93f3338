# stemness_index/signature/scoring.py
"""Applying a trained signature to a target cohort."""

import logging

import pandas as pd

from stemness_index.core.exceptions import SignatureMismatchError
from stemness_index.core.utils import drop_duplicate_rows, rescale_min_max, spearman_to_columns

logger = logging.getLogger(__name__)


class SignatureScorer:
    """Scores samples by their rank correlation with a signature.

    Scores are min-max rescaled within the scored cohort, so they compare
    samples of one run only.
    """

    def __init__(self, signature: pd.Series):
        if signature.empty:
            msg = "Cannot score with an empty signature"
            raise ValueError(msg)
        self.signature = signature

    def reduce_signature(self, matrix: pd.DataFrame) -> pd.Series:
        """Index the signature down to the matrix's genes, in matrix order.

        Raises:
            SignatureMismatchError: If any matrix gene is not in the signature.
        """
        missing = matrix.index.difference(self.signature.index)
        if len(missing) > 0:
            preview = ", ".join(map(str, missing[:10]))
            msg = (
                f"{len(missing)} target genes are absent from the signature "
                f"(first: {preview})"
            )
            raise SignatureMismatchError(msg)
        return self.signature.loc[matrix.index]

    def raw_scores(self, matrix: pd.DataFrame) -> pd.Series:
        """Spearman correlation of each sample with the signature, before rescaling."""
        matrix = drop_duplicate_rows(matrix)
        weights = self.reduce_signature(matrix)
        return spearman_to_columns(matrix, weights)

    def score(self, matrix: pd.DataFrame) -> pd.Series:
        """Score every sample (column) of a genes x samples matrix into [0, 1].

        Raises:
            SignatureMismatchError: If target genes are missing from the signature.
            DegenerateScoreError: If every sample gets the same raw score.
        """
        n_rows = matrix.shape[0]
        deduped = drop_duplicate_rows(matrix)
        if deduped.shape[0] < n_rows:
            dupes = matrix.index[matrix.index.duplicated()].unique()
            logger.warning(
                f"Kept first occurrence of {len(dupes)} duplicated genes: {list(dupes[:5])}"
            )
        raw = self.raw_scores(deduped)
        n_undefined = int(raw.isna().sum())
        if n_undefined:
            logger.warning(f"{n_undefined} samples have no defined correlation and stay NaN.")
        scores = rescale_min_max(raw)
        scores.name = "score"
        logger.info(
            f"Scored {len(scores)} samples on {deduped.shape[0]} signature genes."
        )
        return scores
