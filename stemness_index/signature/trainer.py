# stemness_index/signature/trainer.py
"""One-class elastic-net signature training.

The model is a one-class logistic regression: only foreground samples are
seen, and the weight vector maximises their log-likelihood of belonging to
the class under an elastic-net penalty,

    minimise  -(1/n) * sum_i log(sigmoid(x_i . w)) + l1 * |w|_1 + (l2 / 2) * |w|_2^2

Each Newton step turns this into a weighted least-squares problem which is
handed to scikit-learn's coordinate-descent `ElasticNet`.
"""

import logging
import warnings

import numpy as np
import pandas as pd
from scipy.special import expit, log_expit
from sklearn.base import BaseEstimator
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import ElasticNet

from stemness_index.core.config import get_training_config
from stemness_index.core.exceptions import DegenerateClassError, NonFiniteInputError

logger = logging.getLogger(__name__)


class OneClassSignatureTrainer(BaseEstimator):
    """Fits a gene-weight signature from foreground samples only.

    Args:
        l1: L1 penalty coefficient (sparsity).
        l2: L2 penalty coefficient (shrinkage).
        max_iter: Maximum number of Newton iterations.
        max_inner_iter: Coordinate-descent passes allowed per Newton step.
        tol: Relative objective change below which Newton iterations stop.
    """

    def __init__(
        self,
        l1: float = 0.0,
        l2: float = 1.0,
        max_iter: int = 100,
        max_inner_iter: int = 100,
        tol: float = 1e-5,
    ):
        self.l1 = l1
        self.l2 = l2
        self.max_iter = max_iter
        self.max_inner_iter = max_inner_iter
        self.tol = tol

    @classmethod
    def from_config(cls) -> "OneClassSignatureTrainer":
        config = get_training_config()
        return cls(
            l1=config["l1"],
            l2=config["l2"],
            max_iter=config["max_iter"],
            max_inner_iter=config["max_inner_iter"],
            tol=config["tolerance"],
        )

    def _objective(self, X: np.ndarray, w: np.ndarray) -> float:
        loss = -np.mean(log_expit(X @ w))
        return float(loss + self.l1 * np.abs(w).sum() + 0.5 * self.l2 * np.dot(w, w))

    def _check_input(self, X: pd.DataFrame) -> np.ndarray:
        if self.l1 < 0 or self.l2 < 0:
            msg = f"Penalties must be non-negative (l1={self.l1}, l2={self.l2})"
            raise ValueError(msg)
        if self.l1 + self.l2 == 0:
            msg = "At least one of l1 and l2 must be positive; the unpenalised problem is unbounded"
            raise ValueError(msg)
        if X.shape[0] == 0:
            msg = "Training matrix has no foreground samples"
            raise DegenerateClassError(msg, stage="training")
        if X.shape[1] == 0:
            msg = "Training matrix has no genes"
            raise DegenerateClassError(msg, stage="training")
        values = X.to_numpy(dtype=float)
        if not np.isfinite(values).all():
            n_bad = int((~np.isfinite(values)).sum())
            msg = f"Training matrix contains {n_bad} non-finite values after centering"
            raise NonFiniteInputError(msg)
        return values

    def fit(self, X: pd.DataFrame, y=None) -> "OneClassSignatureTrainer":
        """Fit the signature.

        Args:
            X: Mean-centered matrix, samples as rows and genes as columns.
            y: Ignored; present for scikit-learn API compatibility.

        Returns:
            The fitted trainer, with `coef_` holding a gene-indexed Series.
        """
        values = self._check_input(X)
        n_samples, n_genes = values.shape
        l1_ratio = self.l1 / (self.l1 + self.l2)
        solver = ElasticNet(
            l1_ratio=l1_ratio,
            fit_intercept=False,
            max_iter=self.max_inner_iter,
            tol=self.tol,
            warm_start=True,
            selection="cyclic",
        )
        w = np.zeros(n_genes)
        objective = self._objective(values, w)
        converged = False

        for iteration in range(1, self.max_iter + 1):
            s = values @ w
            pr = np.clip(expit(s), 1e-10, 1.0 - 1e-10)
            weights = pr * (1.0 - pr) / n_samples
            z = s + 1.0 / pr
            # sklearn rescales sample weights to sum to n_samples, so the
            # penalty is divided by the total weight to keep the objective intact
            total_weight = weights.sum()
            solver.set_params(alpha=(self.l1 + self.l2) / total_weight)
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", category=ConvergenceWarning)
                solver.fit(values, z, sample_weight=weights)
            w = solver.coef_.copy()

            new_objective = self._objective(values, w)
            change = abs(objective - new_objective) / max(abs(objective), np.finfo(float).eps)
            logger.debug(f"Newton iteration {iteration}: objective={new_objective:.6g}")
            objective = new_objective
            if change < self.tol:
                converged = True
                break

        if not converged:
            logger.warning(
                f"One-class trainer did not converge in {self.max_iter} iterations "
                f"(last relative change {change:.3g})."
            )
        self.n_iter_ = iteration
        self.objective_ = objective
        self.coef_ = pd.Series(w, index=X.columns, name="weight")
        logger.debug(
            f"Trained signature on {n_samples} samples x {n_genes} genes "
            f"in {iteration} iterations (l1={self.l1}, l2={self.l2})."
        )
        return self

    def signature(self) -> pd.Series:
        """Return the fitted gene -> coefficient Series."""
        if not hasattr(self, "coef_"):
            msg = "Trainer has not been fitted"
            raise RuntimeError(msg)
        return self.coef_.copy()
