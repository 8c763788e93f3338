# stemness_index/explorer/enrichment.py
"""Enrichment of stemness scores across mutation status and sample features.

Samples are ranked by a stemness score and every level of a categorical
feature (e.g. WT / Mutant for one gene) becomes a sample set. The enrichment
statistic itself is delegated to an `EnrichmentBackend`; the default one
runs gseapy's pre-ranked GSEA.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import gseapy
import numpy as np
import pandas as pd

from stemness_index.core.config import get_enrichment_config
from stemness_index.core.exceptions import DegenerateClassError
from stemness_index.explorer.modality import (
    CANCER_TYPE_COLUMN,
    METHYLATION,
    RNA,
    SAMPLE_ID_COLUMN,
    SAMPLE_TYPE_COLUMN,
    EnrichmentInputs,
    ModalityData,
    select_inputs,
)

logger = logging.getLogger(__name__)

RESULT_COLUMNS = ["pathway", "pval", "padj", "ES", "NES", "size"]
DEGENERATE_SPLIT_MESSAGE = (
    "There are not two levels for this combination. "
    "We cannot execute Gene Set Enrichment Analysis for this case."
)


class EnrichmentBackend(Protocol):
    def run(
        self,
        stats: pd.Series,
        sets: dict[str, list[str]],
        nperm: int,
        min_size: int,
        max_size: int,
        seed: int,
    ) -> pd.DataFrame:
        """Return one row per set with the columns in `RESULT_COLUMNS`."""
        ...


class GseapyPrerankBackend:
    """Pre-ranked GSEA through `gseapy.prerank`."""

    def __init__(self, threads: int = 1):
        self.threads = threads

    def run(
        self,
        stats: pd.Series,
        sets: dict[str, list[str]],
        nperm: int,
        min_size: int,
        max_size: int,
        seed: int,
    ) -> pd.DataFrame:
        rnk = pd.DataFrame({"sample": stats.index, "score": stats.to_numpy()})
        result = gseapy.prerank(
            rnk=rnk,
            gene_sets=sets,
            permutation_num=nperm,
            min_size=min_size,
            max_size=max_size,
            seed=seed,
            threads=self.threads,
            outdir=None,
            no_plot=True,
            verbose=False,
        )
        res = result.res2d
        if res is None or res.empty:
            return pd.DataFrame(columns=RESULT_COLUMNS)
        ranked = set(stats.index)
        table = pd.DataFrame(
            {
                "pathway": res["Term"].astype(str),
                "pval": pd.to_numeric(res["NOM p-val"], errors="coerce"),
                "padj": pd.to_numeric(res["FDR q-val"], errors="coerce"),
                "ES": pd.to_numeric(res["ES"], errors="coerce"),
                "NES": pd.to_numeric(res["NES"], errors="coerce"),
            }
        )
        table["size"] = [len(ranked.intersection(sets[t])) for t in table["pathway"]]
        return table.reset_index(drop=True)


@dataclass(frozen=True)
class EnrichmentResult:
    """Ranked scores, sample sets and the enrichment table for one modality."""

    inputs: EnrichmentInputs
    stats: pd.Series
    sets: dict[str, list[str]]
    table: pd.DataFrame


@dataclass
class EnrichmentOutcome:
    """Result of comparing both modalities, or the reason there is none."""

    feature: str
    cancer_types: list[str]
    results: dict[str, EnrichmentResult] = field(default_factory=dict)
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.message is None


def ranked_scores(table: pd.DataFrame, score_column: str) -> pd.Series:
    """Scores sorted ascending, indexed by sample id; samples without a score dropped."""
    scored = table.dropna(subset=[score_column]).sort_values(score_column, kind="mergesort")
    return pd.Series(
        scored[score_column].to_numpy(dtype=float),
        index=scored[SAMPLE_ID_COLUMN].astype(str).to_numpy(),
        name=score_column,
    )


def feature_sets(table: pd.DataFrame, feature: str) -> dict[str, list[str]]:
    """Group sample ids by their level of `feature`.

    Raises:
        DegenerateClassError: If fewer than two distinct levels are present.
    """
    levels = table[feature].dropna()
    if levels.nunique() < 2:
        raise DegenerateClassError(DEGENERATE_SPLIT_MESSAGE, stage="enrichment")
    ids = table.loc[levels.index, SAMPLE_ID_COLUMN].astype(str)
    return {str(level): ids[levels == level].tolist() for level in sorted(levels.unique(), key=str)}


def subset_cohort(
    table: pd.DataFrame, cancer_types: list[str], primary_ids: frozenset[str] | set[str]
) -> pd.DataFrame:
    in_cancer = table[CANCER_TYPE_COLUMN].isin(cancer_types)
    is_primary = table[SAMPLE_ID_COLUMN].astype(str).isin(primary_ids)
    return table.loc[in_cancer & is_primary]


def run_enrichment(
    inputs: EnrichmentInputs,
    cancer_types: list[str],
    backend: EnrichmentBackend | None = None,
    config: dict[str, Any] | None = None,
) -> EnrichmentResult:
    """Enrichment of one modality's score across the levels of one feature.

    Raises:
        DegenerateClassError: If the selected samples show fewer than two
            levels of the feature.
    """
    config = config or get_enrichment_config()
    backend = backend if backend is not None else GseapyPrerankBackend()
    cohort = subset_cohort(inputs.table, cancer_types, inputs.primary_ids)
    score_column = inputs.modality.score_column
    stats = ranked_scores(cohort, score_column)
    sets = feature_sets(cohort, inputs.feature)
    logger.info(
        f"{inputs.modality.label} enrichment of '{inputs.feature}' over {len(stats)} samples "
        f"({', '.join(f'{k}: {len(v)}' for k, v in sets.items())}, nperm={inputs.nperm})"
    )
    table = backend.run(
        stats=stats,
        sets=sets,
        nperm=inputs.nperm,
        min_size=int(config["min_size"]),
        max_size=int(config["max_size"]),
        seed=int(config["seed"]),
    )
    return EnrichmentResult(inputs=inputs, stats=stats, sets=sets, table=table)


def compare_modalities(
    rna: ModalityData,
    dna: ModalityData,
    cancer_types: list[str] | str,
    feature: str | None,
    backend: EnrichmentBackend | None = None,
    config: dict[str, Any] | None = None,
) -> EnrichmentOutcome:
    """Run RNA then DNA enrichment for one feature.

    Problems a user can fix (no feature chosen, a feature with a single
    level) come back as a message on the outcome instead of an exception.
    """
    if isinstance(cancer_types, str):
        cancer_types = [cancer_types]
    outcome = EnrichmentOutcome(feature=feature or "", cancer_types=list(cancer_types))
    if not feature:
        outcome.message = "Please select Feature"
        return outcome
    try:
        selected = [select_inputs(data, feature, config) for data in (rna, dna)]
    except KeyError as e:
        logger.warning(f"Enrichment skipped: {e}")
        outcome.message = f"Feature '{feature}' is not available for this selection"
        return outcome
    try:
        for inputs in selected:
            outcome.results[inputs.modality.label] = run_enrichment(
                inputs, outcome.cancer_types, backend=backend, config=config
            )
    except DegenerateClassError as e:
        logger.warning(f"Enrichment skipped for '{feature}' in {outcome.cancer_types}: {e}")
        outcome.results = {}
        outcome.message = str(e)
    return outcome


def scan_mutations(
    rna: ModalityData,
    dna: ModalityData,
    cancer_type: str,
    features: list[str] | None = None,
    backend: EnrichmentBackend | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, EnrichmentOutcome]:
    """Compare both modalities for every mutation feature of a cancer type."""
    if features is None:
        features = list_features(rna, [cancer_type])
    outcomes = {}
    for feature in features:
        outcomes[feature] = compare_modalities(
            rna, dna, [cancer_type], feature, backend=backend, config=config
        )
    n_ok = sum(o.ok for o in outcomes.values())
    logger.info(f"Mutation scan for {cancer_type}: {n_ok}/{len(outcomes)} features enriched.")
    return outcomes


def butterfly_table(
    outcomes: dict[str, EnrichmentOutcome],
    level: str = "Mutant",
    padj_threshold: float | None = None,
) -> pd.DataFrame:
    """DNA vs RNA NES for one feature level, one row per feature.

    `significant` is true when either modality's adjusted p-value is below
    the threshold.
    """
    if padj_threshold is None:
        padj_threshold = get_enrichment_config()["padj_threshold"]
    rows = []
    for feature, outcome in outcomes.items():
        if not outcome.ok:
            continue
        row: dict[str, Any] = {"ID": feature}
        for label in (RNA.label, METHYLATION.label):
            table = outcome.results[label].table
            hit = table[table["pathway"] == level]
            row[f"NES.{label}"] = float(hit["NES"].iloc[0]) if not hit.empty else np.nan
            row[f"padj.{label}"] = float(hit["padj"].iloc[0]) if not hit.empty else np.nan
        rows.append(row)
    columns = ["ID", "NES.RNA", "padj.RNA", "NES.DNA", "padj.DNA"]
    df = pd.DataFrame(rows, columns=columns)
    df["significant"] = (df["padj.DNA"] < padj_threshold) | (df["padj.RNA"] < padj_threshold)
    return df


def list_cancer_types(data: ModalityData) -> list[str]:
    return sorted(data.samples[CANCER_TYPE_COLUMN].dropna().astype(str).unique())


def list_features(data: ModalityData, cancer_types: list[str]) -> list[str]:
    """Mutation features observed (non-missing) for the given cancer types."""
    meta = {
        SAMPLE_ID_COLUMN,
        CANCER_TYPE_COLUMN,
        SAMPLE_TYPE_COLUMN,
        RNA.score_column,
        METHYLATION.score_column,
        RNA.index_name,
        METHYLATION.index_name,
    }
    subset = data.mutations[data.mutations[CANCER_TYPE_COLUMN].isin(cancer_types)]
    candidates = [c for c in subset.columns if c not in meta]
    return sorted(c for c in candidates if subset[c].notna().any())


def feature_levels(
    rna: ModalityData, dna: ModalityData, cancer_types: list[str], feature: str
) -> list[str]:
    """Distinct levels of `feature` across both modalities' tables."""
    levels: list[str] = []
    for data in (rna, dna):
        table = data.mutations if data.is_mutation_feature(feature) else data.samples
        if feature not in table.columns:
            continue
        values = table.loc[table[CANCER_TYPE_COLUMN].isin(cancer_types), feature].dropna()
        for value in values.astype(str).unique():
            if value not in levels:
                levels.append(value)
    return levels


def score_by_status(
    rna: ModalityData,
    dna: ModalityData,
    cancer_types: list[str],
    feature: str,
    levels: tuple[str, str] = ("WT", "Mutant"),
) -> pd.DataFrame:
    """Long table of stemness index by feature status for both modalities.

    Columns: `index` (mRNAsi / mDNAsi), `status`, `value`. Samples whose
    status is missing or outside `levels` are dropped.
    """
    frames = []
    for data in (rna, dna):
        modality = data.modality
        if feature not in data.mutations.columns:
            continue
        status = data.mutations[[SAMPLE_ID_COLUMN, CANCER_TYPE_COLUMN, feature]]
        scores = data.samples[[SAMPLE_ID_COLUMN, modality.index_name]]
        merged = status.merge(scores, on=SAMPLE_ID_COLUMN, how="inner")
        merged = merged[merged[CANCER_TYPE_COLUMN].isin(cancer_types)]
        merged = merged[merged[feature].isin(levels)]
        frames.append(
            pd.DataFrame(
                {
                    "index": modality.index_name,
                    "status": pd.Categorical(merged[feature], categories=list(levels)),
                    "value": merged[modality.index_name].to_numpy(dtype=float),
                }
            )
        )
    if not frames:
        return pd.DataFrame(columns=["index", "status", "value"])
    return pd.concat(frames, ignore_index=True)
