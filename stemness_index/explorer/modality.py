# stemness_index/explorer/modality.py
"""The two stemness modalities and the tables that feed each of them.

A modality is chosen once, at the boundary, and carries everything the
enrichment code needs: which table to read, which score column to rank by
and how many permutations to run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import pandas as pd

from stemness_index.core.config import get_enrichment_config

SAMPLE_ID_COLUMN = "TCGAlong.id"
CANCER_TYPE_COLUMN = "cancer.type"
SAMPLE_TYPE_COLUMN = "sample.type"


class ModalityKind(str, Enum):
    RNA = "rna"
    METHYLATION = "methylation"


@dataclass(frozen=True)
class Modality:
    kind: ModalityKind
    score_column: str
    index_name: str
    label: str


RNA = Modality(ModalityKind.RNA, score_column="RNAss", index_name="mRNAsi", label="RNA")
METHYLATION = Modality(
    ModalityKind.METHYLATION, score_column="DNAss", index_name="mDNAsi", label="DNA"
)


@dataclass(frozen=True)
class ModalityData:
    """Per-sample tables for one modality.

    Attributes:
        modality: Which modality the tables belong to.
        samples: One row per sample with id, cancer type, sample type, the
            score columns and any non-mutation features.
        mutations: One row per sample with id, cancer type, the score
            columns and one WT/Mutant column per gene.
    """

    modality: Modality
    samples: pd.DataFrame
    mutations: pd.DataFrame

    def primary_samples(self, sample_types: list[str] | None = None) -> set[str]:
        """Ids of primary tumour samples (sample types 01 and 03 by default)."""
        if sample_types is None:
            sample_types = get_enrichment_config()["primary_sample_types"]
        is_primary = self.samples[SAMPLE_TYPE_COLUMN].astype(str).isin(sample_types)
        return set(self.samples.loc[is_primary, SAMPLE_ID_COLUMN].astype(str))

    def is_mutation_feature(self, feature: str) -> bool:
        return feature in self.mutations.columns


@dataclass(frozen=True)
class EnrichmentInputs:
    """Everything one enrichment run needs, fixed for one modality and feature."""

    modality: Modality
    table: pd.DataFrame
    feature: str
    nperm: int
    primary_ids: frozenset[str]


def select_inputs(
    data: ModalityData, feature: str, config: dict[str, Any] | None = None
) -> EnrichmentInputs:
    """Choose the table and permutation count for `feature`.

    Mutation features come from the mutation table with the smaller
    permutation budget; anything else comes from the sample table.

    Raises:
        KeyError: If neither table has a `feature` column.
    """
    config = config or get_enrichment_config()
    if data.is_mutation_feature(feature):
        table, nperm = data.mutations, config["mutation_nperm"]
    elif feature in data.samples.columns:
        table, nperm = data.samples, config["feature_nperm"]
    else:
        msg = f"Feature '{feature}' not found for modality {data.modality.label}"
        raise KeyError(msg)
    return EnrichmentInputs(
        modality=data.modality,
        table=table,
        feature=feature,
        nperm=int(nperm),
        primary_ids=frozenset(data.primary_samples(config["primary_sample_types"])),
    )
