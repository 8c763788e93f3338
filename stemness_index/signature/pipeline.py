# stemness_index/signature/pipeline.py
"""Batch entry points: train a signature, score a cohort."""

import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from stemness_index.core.config import get_scoring_config, get_training_config
from stemness_index.core.data_loader import DataLoader
from stemness_index.core.exceptions import DegenerateClassError
from stemness_index.core.utils import (
    drop_duplicate_rows,
    mean_center,
    restrict_to_genes,
    split_tcga_gene_ids,
)
from stemness_index.signature.identity import (
    GeneIdentityResolver,
    IdentifierScheme,
    TableGeneIdentityResolver,
    align_to_symbols,
)
from stemness_index.signature.persistence import load_signature, save_scores, save_signature
from stemness_index.signature.scoring import SignatureScorer
from stemness_index.signature.trainer import OneClassSignatureTrainer
from stemness_index.signature.validation import LeaveOneOutResult, LeaveOneOutValidator

logger = logging.getLogger(__name__)

PASSTHROUGH_SCHEMES = {"symbol", "none", ""}


@dataclass(frozen=True)
class TrainingResult:
    signature: pd.Series
    validation: LeaveOneOutResult
    signature_path: Path | None = None

    @property
    def auc(self) -> pd.Series:
        return self.validation.auc


def split_classes(
    matrix: pd.DataFrame, labels: pd.Series, foreground_label: str
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Split a genes x samples matrix into foreground and background columns.

    Samples without a label are dropped. Background is every labelled
    sample whose label differs from `foreground_label`.

    Raises:
        DegenerateClassError: If fewer than two distinct labels are present
            or either side of the split is empty.
    """
    labels = labels.astype(str)
    repeated = labels.index.duplicated(keep="first")
    if repeated.any():
        logger.warning(
            f"Keeping the first label of {int(repeated.sum())} repeated sample ids."
        )
        labels = labels[~repeated]
    labelled = [s for s in matrix.columns if s in labels.index]
    n_unlabelled = matrix.shape[1] - len(labelled)
    if n_unlabelled:
        logger.warning(f"Dropping {n_unlabelled} samples without a class label.")
    sample_labels = labels.loc[labelled]
    if sample_labels.nunique() < 2:
        msg = (
            f"Need at least 2 distinct labels to split classes, found "
            f"{sorted(sample_labels.unique())}"
        )
        raise DegenerateClassError(msg)
    is_fg = sample_labels == foreground_label
    if not is_fg.any():
        msg = f"No samples carry the foreground label '{foreground_label}'"
        raise DegenerateClassError(msg)
    foreground = matrix[sample_labels.index[is_fg]]
    background = matrix[sample_labels.index[~is_fg]]
    logger.info(
        f"Class split: {foreground.shape[1]} '{foreground_label}' samples, "
        f"{background.shape[1]} background samples."
    )
    return foreground, background


def prepare_reference(
    matrix: pd.DataFrame,
    labels: pd.Series,
    foreground_label: str,
    genes: list[str] | None = None,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Restrict, mean-center and split an aligned reference matrix.

    Centering uses every labelled sample, foreground and background alike.
    """
    matrix = drop_duplicate_rows(matrix)
    if genes is not None:
        n_before = matrix.shape[0]
        matrix = restrict_to_genes(matrix, genes)
        logger.info(f"Restricted reference to {matrix.shape[0]}/{n_before} listed genes.")
    labelled = [s for s in matrix.columns if s in labels.index]
    centered = mean_center(matrix[labelled])
    return split_classes(centered, labels, foreground_label)


def fit_signature(
    matrix: pd.DataFrame,
    labels: pd.Series,
    foreground_label: str,
    genes: list[str] | None = None,
    trainer: OneClassSignatureTrainer | None = None,
    n_jobs: int | None = None,
    show_progress: bool = True,
) -> TrainingResult:
    """Train on a symbol-indexed reference matrix and validate by leave-one-out."""
    trainer = trainer if trainer is not None else OneClassSignatureTrainer.from_config()
    foreground, background = prepare_reference(matrix, labels, foreground_label, genes)
    signature = trainer.fit(foreground.T).signature()
    validation = LeaveOneOutValidator(
        trainer=trainer, n_jobs=n_jobs, show_progress=show_progress
    ).validate(foreground, background)
    return TrainingResult(signature=signature, validation=validation)


def _align(
    matrix: pd.DataFrame,
    scheme: str,
    resolver: GeneIdentityResolver | None,
    gene_map_path: str | Path | None,
    loader: DataLoader,
) -> pd.DataFrame:
    scheme = str(scheme).lower()
    if scheme in PASSTHROUGH_SCHEMES:
        return matrix
    if scheme == "tcga":
        return split_tcga_gene_ids(matrix)
    if resolver is None:
        resolver = TableGeneIdentityResolver(loader.load_gene_map(gene_map_path))
    return align_to_symbols(matrix, resolver, IdentifierScheme(scheme))


def train_signature(
    output_path: str | Path,
    genes_path: str | Path | None = None,
    expression_path: str | Path | None = None,
    labels_path: str | Path | None = None,
    identifier_scheme: str | None = None,
    gene_map_path: str | Path | None = None,
    resolver: GeneIdentityResolver | None = None,
    trainer: OneClassSignatureTrainer | None = None,
    n_jobs: int | None = None,
    show_progress: bool = True,
) -> TrainingResult:
    """Train a signature from the reference cohort and write it to `output_path`.

    Args:
        output_path: Where to write the signature TSV.
        genes_path: Optional one-gene-per-line list restricting the genes used.
        expression_path: Reference genes x samples matrix; defaults to config.
        labels_path: Sample label table; defaults to config.
        identifier_scheme: Naming scheme of the reference row ids; defaults to config.
        gene_map_path: Identifier map used when no resolver is given.
        resolver: Identity resolver for the reference row identifiers.
        trainer: Trainer carrying the penalties; defaults to config.
        n_jobs: Leave-one-out worker count; defaults to config.
        show_progress: Show a progress bar for the leave-one-out loop.

    Returns:
        TrainingResult with the signature and the full leave-one-out AUCs.
    """
    config = get_training_config()
    loader = DataLoader()
    matrix = loader.load_expression_matrix(expression_path, file_key="reference_expression")
    labels = loader.load_labels(
        labels_path, label_column=config["label_column"], sample_column=config["sample_column"]
    )
    if identifier_scheme is None:
        identifier_scheme = config["identifier_scheme"]
    matrix = _align(matrix, identifier_scheme, resolver, gene_map_path, loader)
    genes = loader.load_gene_list(genes_path) if genes_path is not None else None

    result = fit_signature(
        matrix,
        labels,
        config["foreground_label"],
        genes=genes,
        trainer=trainer,
        n_jobs=n_jobs,
        show_progress=show_progress,
    )
    signature_path = save_signature(result.signature, output_path)
    return TrainingResult(
        signature=result.signature, validation=result.validation, signature_path=signature_path
    )


def score_samples(
    signature_path: str | Path,
    output_path: str | Path,
    expression_path: str | Path | None = None,
    identifier_scheme: str | None = None,
    gene_map_path: str | Path | None = None,
    resolver: GeneIdentityResolver | None = None,
    restrict_to_signature: bool | None = None,
) -> None:
    """Score the target cohort with a saved signature and write the scores.

    Nothing is written if scoring fails.

    Raises:
        SignatureMismatchError: If target genes are absent from the signature
            and `restrict_to_signature` is off.
        DegenerateScoreError: If all samples score the same.
    """
    config = get_scoring_config()
    if identifier_scheme is None:
        identifier_scheme = config["identifier_scheme"]
    if restrict_to_signature is None:
        restrict_to_signature = config["restrict_to_signature"]

    loader = DataLoader()
    signature = load_signature(signature_path)
    matrix = loader.load_expression_matrix(expression_path, file_key="target_expression")
    matrix = _align(matrix, identifier_scheme, resolver, gene_map_path, loader)
    if restrict_to_signature:
        n_before = matrix.shape[0]
        matrix = restrict_to_genes(matrix, signature.index.tolist())
        logger.info(f"Restricted target to {matrix.shape[0]}/{n_before} signature genes.")

    scores = SignatureScorer(signature).score(matrix)
    save_scores(scores, output_path)
