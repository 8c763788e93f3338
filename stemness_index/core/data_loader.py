# stemness_index/core/data_loader.py
"""Data loading utilities for reference and target cohorts."""

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from stemness_index.core.config import get_file_path

logger = logging.getLogger(__name__)


class DataLoader:
    """Class for loading the tab-separated tables the pipeline consumes.

    Each loader accepts an explicit path; when omitted, the path is taken
    from the files configuration.
    """

    def _resolve(self, path: str | Path | None, file_key: str) -> Path:
        return Path(path) if path is not None else get_file_path(file_key)

    def _read_table(self, path: Path, description: str, **kwargs) -> pd.DataFrame:
        try:
            df = pd.read_csv(path, sep="\t", **kwargs)
        except FileNotFoundError:
            msg = f"{description} file not found: {path}"
            logger.error(msg)
            raise FileNotFoundError(msg) from None
        except pd.errors.EmptyDataError as e:
            msg = f"{description} file is empty: {path}. Error: {e!s}"
            logger.error(msg)
            raise ValueError(msg) from e
        except pd.errors.ParserError as e:
            msg = f"Error parsing {description.lower()} file: {path}. Error: {e!s}"
            logger.error(msg)
            raise ValueError(msg) from e
        if df.empty:
            logger.warning(f"{description} file has no rows: {path}")
        return df

    def load_expression_matrix(
        self, path: str | Path | None = None, file_key: str = "reference_expression"
    ) -> pd.DataFrame:
        """Load a genes x samples matrix; the first column holds row identifiers."""
        matrix_path = self._resolve(path, file_key)
        logger.info(f"Loading expression matrix from {matrix_path}...")
        # Row ids like "NA" stay strings; missing values are coerced below
        df = self._read_table(
            matrix_path, "Expression matrix", index_col=0, keep_default_na=False
        )
        df.index = df.index.astype(str)
        df.columns = df.columns.astype(str)
        non_numeric = df.select_dtypes(exclude=np.number).columns
        if len(non_numeric) > 0:
            logger.warning(
                f"Coercing {len(non_numeric)} non-numeric columns to numbers: {list(non_numeric[:5])}"
            )
            df[non_numeric] = df[non_numeric].apply(pd.to_numeric, errors="coerce")
        logger.info(f"Loaded expression matrix: {df.shape[0]} rows x {df.shape[1]} samples")
        return df

    def load_labels(
        self,
        path: str | Path | None = None,
        label_column: str = "Diffname_short",
        sample_column: str = "UID",
    ) -> pd.Series:
        """Load the sample -> class label table as a Series."""
        labels_path = self._resolve(path, "reference_labels")
        logger.info(f"Loading sample labels from {labels_path}...")
        df = self._read_table(labels_path, "Labels", dtype=str)
        missing = [c for c in (sample_column, label_column) if c not in df.columns]
        if missing:
            msg = f"Labels file '{labels_path}' missing required columns: {missing}"
            logger.error(msg)
            raise ValueError(msg)
        labels = df.set_index(sample_column)[label_column]
        labels.index = labels.index.astype(str)
        duplicated = labels.index.duplicated(keep="first")
        if duplicated.any():
            logger.warning(
                f"Labels file '{labels_path}' repeats {int(duplicated.sum())} sample ids; "
                f"keeping the first label of each: {list(labels.index[duplicated].unique()[:5])}"
            )
            labels = labels[~duplicated]
        logger.info(
            f"Loaded {len(labels)} labels ({labels.nunique()} classes) from {labels_path}"
        )
        return labels

    def load_gene_list(self, path: str | Path) -> list[str]:
        """Load a header-less, one-identifier-per-line gene list."""
        gene_path = Path(path)
        logger.info(f"Loading gene restriction list from {gene_path}...")
        df = self._read_table(
            gene_path, "Gene list", header=None, usecols=[0], dtype=str, keep_default_na=False
        )
        genes = df.iloc[:, 0].dropna().str.strip()
        genes = genes[genes != ""].tolist()
        logger.info(f"Loaded {len(genes)} genes from {gene_path}")
        return genes

    def load_gene_map(self, path: str | Path | None = None) -> pd.DataFrame:
        """Load an identifier mapping table (one column per naming scheme)."""
        map_path = self._resolve(path, "gene_map")
        logger.info(f"Loading gene identifier map from {map_path}...")
        df = self._read_table(map_path, "Gene map", dtype=str)
        logger.info(f"Loaded gene map: {df.shape[0]} rows, columns {list(df.columns)}")
        return df

    def load_sample_annotations(self, path: str | Path | None = None) -> pd.DataFrame:
        """Load the per-sample annotation table used by the explorer."""
        annotations_path = self._resolve(path, "sample_annotations")
        logger.info(f"Loading sample annotations from {annotations_path}...")
        df = self._read_table(
            annotations_path,
            "Sample annotations",
            dtype={"TCGAlong.id": str, "sample.type": str, "cancer.type": str},
        )
        logger.info(
            f"Loaded sample annotations: {df.shape[0]} samples with {df.shape[1]} attributes"
        )
        return df
