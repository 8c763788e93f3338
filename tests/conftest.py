import os

os.environ.setdefault("STEMNESS_LOGGING_FILE_LOGGING", "false")

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from stemness_index.explorer.enrichment import RESULT_COLUMNS
from stemness_index.explorer.modality import METHYLATION, RNA, ModalityData


class FakeEnrichmentBackend:
    """Records every call and reports a fixed NES per level."""

    def __init__(self):
        self.calls = []

    def run(self, stats, sets, nperm, min_size, max_size, seed):
        self.calls.append({"stats": stats, "sets": sets, "nperm": nperm, "seed": seed})
        rows = []
        for level, members in sets.items():
            mutant = level == "Mutant"
            rows.append(
                {
                    "pathway": level,
                    "pval": 0.001 if mutant else 0.4,
                    "padj": 0.01 if mutant else 0.5,
                    "ES": 0.6 if mutant else -0.6,
                    "NES": 1.5 if mutant else -1.5,
                    "size": len(members),
                }
            )
        return pd.DataFrame(rows, columns=RESULT_COLUMNS)


@pytest.fixture
def fake_backend():
    return FakeEnrichmentBackend()


@pytest.fixture
def reference_data():
    """Symbol-indexed reference matrix with 5 'SC' and 5 'EB' samples."""
    rng = np.random.default_rng(7)
    genes = [f"G{i}" for i in range(6)]
    fg = rng.normal(size=(6, 5))
    fg[0] += 3.0
    fg[1] -= 3.0
    bg = rng.normal(size=(6, 5))
    bg[0] -= 3.0
    bg[1] += 3.0
    fg_ids = [f"SC{i}" for i in range(5)]
    bg_ids = [f"EB{i}" for i in range(5)]
    matrix = pd.DataFrame(np.hstack([fg, bg]), index=genes, columns=fg_ids + bg_ids)
    labels = pd.Series(["SC"] * 5 + ["EB"] * 5, index=fg_ids + bg_ids)
    return matrix, labels


def _modality_tables(score_column, index_name, scores):
    ids = [f"TCGA-{i:02d}" for i in range(1, 10)]
    samples = pd.DataFrame(
        {
            "TCGAlong.id": ids,
            "cancer.type": ["BRCA"] * 8 + ["LUAD"],
            "sample.type": ["01"] * 6 + ["03", "11", "01"],
            score_column: scores,
            index_name: scores,
            "grade": ["G1", "G2"] * 4 + ["G1"],
        }
    )
    mutations = pd.DataFrame(
        {
            "TCGAlong.id": ids,
            "cancer.type": ["BRCA"] * 8 + ["LUAD"],
            score_column: scores,
            index_name: scores,
            "TP53": ["Mutant"] * 4 + ["WT"] * 4 + ["Mutant"],
            "KRAS": ["WT"] * 9,
        }
    )
    return samples, mutations


@pytest.fixture
def rna_data():
    scores = [0.9, 0.8, 0.7, 0.6, 0.4, 0.3, 0.2, 0.1, 0.5]
    samples, mutations = _modality_tables("RNAss", "mRNAsi", scores)
    return ModalityData(modality=RNA, samples=samples, mutations=mutations)


@pytest.fixture
def dna_data():
    scores = [0.2, 0.1, 0.4, 0.3, 0.9, 0.6, 0.8, 0.7, 0.5]
    samples, mutations = _modality_tables("DNAss", "mDNAsi", scores)
    return ModalityData(modality=METHYLATION, samples=samples, mutations=mutations)
