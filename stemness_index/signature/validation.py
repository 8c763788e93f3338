# stemness_index/signature/validation.py
"""Leave-one-out validation of the one-class signature."""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from rich.progress import (
    BarColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from sklearn.base import clone
from sklearn.model_selection import LeaveOneOut

from stemness_index.core.config import get_performance_config
from stemness_index.core.exceptions import DegenerateClassError
from stemness_index.core.utils import spearman_complete, spearman_to_columns
from stemness_index.signature.trainer import OneClassSignatureTrainer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveOneOutResult:
    """Per-sample AUC values from a leave-one-out run.

    `auc` is indexed by the held-out foreground sample, in foreground order.
    """

    auc: pd.Series

    @property
    def running_mean(self) -> pd.Series:
        return self.auc.expanding().mean()

    @property
    def mean_auc(self) -> float:
        return float(self.auc.mean())

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"auc": self.auc, "running_mean": self.running_mean})


def held_out_auc(
    trainer: OneClassSignatureTrainer,
    train: pd.DataFrame,
    held_out: pd.Series,
    background: pd.DataFrame,
) -> float:
    """Retrain without one sample and rank it against the background.

    Args:
        trainer: Unfitted trainer carrying the penalty configuration.
        train: Remaining foreground samples, genes x samples.
        held_out: The withheld foreground sample, indexed by gene.
        background: Background samples, genes x samples.

    Returns:
        Fraction of background samples the held-out sample outscores.
    """
    w = clone(trainer).fit(train.T).coef_
    s_bk = spearman_to_columns(background, w)
    s_i = spearman_complete(held_out.reindex(w.index).to_numpy(), w.to_numpy())
    # NaN never outscores anything
    return float(np.sum(s_i > s_bk.to_numpy()) / len(s_bk))


class LeaveOneOutValidator:
    """Estimates how well the signature separates foreground from background.

    Every foreground sample is withheld in turn, the trainer is refit on the
    rest, and the withheld sample's Spearman score is compared with the
    score of every background sample. Background samples never take part
    in fitting.
    """

    def __init__(
        self,
        trainer: OneClassSignatureTrainer | None = None,
        n_jobs: int | None = None,
        show_progress: bool = True,
    ):
        self.trainer = trainer if trainer is not None else OneClassSignatureTrainer.from_config()
        if n_jobs is None:
            n_jobs = get_performance_config()["max_cpu_cores"]
        self.n_jobs = n_jobs if n_jobs not in (0, None) else 1
        self.show_progress = show_progress

    def validate(self, foreground: pd.DataFrame, background: pd.DataFrame) -> LeaveOneOutResult:
        """Run the leave-one-out loop.

        Args:
            foreground: Mean-centered foreground samples, genes x samples.
            background: Mean-centered background samples on the same genes.

        Returns:
            LeaveOneOutResult with one AUC per foreground sample.

        Raises:
            DegenerateClassError: If there are fewer than two foreground
                samples or no background samples.
        """
        n_fg, n_bk = foreground.shape[1], background.shape[1]
        if n_fg < 2:
            msg = f"Leave-one-out needs at least 2 foreground samples, got {n_fg}"
            raise DegenerateClassError(msg, stage="validation")
        if n_bk < 1:
            msg = "Leave-one-out needs at least 1 background sample"
            raise DegenerateClassError(msg, stage="validation")
        background = background.reindex(foreground.index)

        logger.info(
            f"Leave-one-out validation: {n_fg} foreground vs {n_bk} background samples "
            f"(n_jobs={self.n_jobs})"
        )
        splits = list(LeaveOneOut().split(foreground.columns))
        jobs = (
            delayed(held_out_auc)(
                self.trainer,
                foreground.iloc[:, train_idx],
                foreground.iloc[:, test_idx[0]],
                background,
            )
            for train_idx, test_idx in splits
        )

        aucs = np.full(n_fg, np.nan)
        progress_columns = [
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("• Samples: [cyan]{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            TimeRemainingColumn(),
        ]
        with Progress(*progress_columns, transient=True, disable=not self.show_progress) as progress:
            task_id = progress.add_task("[cyan]Leave-one-out", total=n_fg)
            results = Parallel(n_jobs=self.n_jobs, return_as="generator")(jobs)
            for i, auc in enumerate(results):
                aucs[i] = auc
                logger.debug(
                    f"{foreground.columns[i]}: AUC={auc:.3f} "
                    f"(running mean {np.mean(aucs[: i + 1]):.3f})"
                )
                progress.update(task_id, advance=1)

        result = LeaveOneOutResult(auc=pd.Series(aucs, index=foreground.columns, name="auc"))
        logger.info(f"Leave-one-out mean AUC: {result.mean_auc:.3f}")
        return result
