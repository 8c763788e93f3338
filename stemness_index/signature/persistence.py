# stemness_index/signature/persistence.py
"""Reading and writing signature and score files.

Both formats are header-less, unquoted TSV with two columns: an identifier
and a number.
"""

import csv
import logging
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)


def _write_two_column(series: pd.Series, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    series.to_csv(
        path,
        sep="\t",
        header=False,
        index=True,
        quoting=csv.QUOTE_NONE,
        float_format="%.17g",
    )
    return path


def _read_two_column(path: str | Path, description: str) -> pd.Series:
    path = Path(path)
    try:
        df = pd.read_csv(
            path,
            sep="\t",
            header=None,
            names=["id", "value"],
            dtype={"id": str, "value": float},
            # identifiers such as "NA" or "NULL" are gene names, not missing values
            keep_default_na=False,
            na_values={"value": ["", "NA", "NaN", "nan"]},
            quoting=csv.QUOTE_NONE,
        )
    except FileNotFoundError:
        msg = f"{description} file not found: {path}"
        logger.error(msg)
        raise FileNotFoundError(msg) from None
    except (pd.errors.EmptyDataError, pd.errors.ParserError, ValueError) as e:
        msg = f"{description} file is empty or invalid: {path}. Error: {e!s}"
        logger.error(msg)
        raise ValueError(msg) from e
    if df["id"].duplicated().any():
        msg = f"{description} file has duplicated identifiers: {path}"
        raise ValueError(msg)
    return df.set_index("id")["value"].rename_axis(None)


def save_signature(signature: pd.Series, path: str | Path) -> Path:
    """Write a gene -> coefficient signature.

    Rows keep the signature's order. An existing file is never rewritten:
    a signature artifact is written once.

    Raises:
        FileExistsError: If `path` already exists.
        ValueError: If the signature is empty.
    """
    if signature.empty:
        msg = "Refusing to save an empty signature"
        raise ValueError(msg)
    path = Path(path)
    if path.exists():
        msg = f"Signature file already exists: {path}"
        raise FileExistsError(msg)
    _write_two_column(signature, path)
    logger.info(f"Saved signature with {len(signature)} genes to {path.resolve()}")
    return path


def load_signature(path: str | Path) -> pd.Series:
    """Read a signature written by `save_signature`, indexed by gene."""
    signature = _read_two_column(path, "Signature").rename("weight")
    logger.info(f"Loaded signature with {len(signature)} genes from {path}")
    return signature


def save_scores(scores: pd.Series, path: str | Path) -> Path:
    """Write a sample -> score table."""
    path = _write_two_column(scores, path)
    logger.info(f"Saved {len(scores)} scores to {path.resolve()}")
    return path


def load_scores(path: str | Path) -> pd.Series:
    return _read_two_column(path, "Scores").rename("score")
