import numpy as np
import pandas as pd
import pytest

from stemness_index.core.config import get_enrichment_config
from stemness_index.core.exceptions import DegenerateClassError
from stemness_index.explorer.enrichment import (
    DEGENERATE_SPLIT_MESSAGE,
    butterfly_table,
    compare_modalities,
    feature_levels,
    feature_sets,
    list_cancer_types,
    list_features,
    ranked_scores,
    run_enrichment,
    scan_mutations,
    score_by_status,
)
from stemness_index.explorer.modality import select_inputs


def test_mutation_features_use_smaller_permutation_budget(rna_data):
    mutation = select_inputs(rna_data, "TP53")
    other = select_inputs(rna_data, "grade")
    assert mutation.nperm == 1000
    assert mutation.table is rna_data.mutations
    assert other.nperm == 10000
    assert other.table is rna_data.samples


def test_unknown_feature_is_a_key_error(rna_data):
    with pytest.raises(KeyError):
        select_inputs(rna_data, "BRAF")


def test_primary_samples_exclude_normals(rna_data):
    primary = rna_data.primary_samples()
    assert "TCGA-07" in primary
    assert "TCGA-08" not in primary
    assert len(primary) == 8


def test_ranked_scores_ascending_without_missing():
    table = pd.DataFrame({"TCGAlong.id": ["a", "b", "c"], "RNAss": [0.5, np.nan, 0.1]})
    stats = ranked_scores(table, "RNAss")
    assert list(stats.index) == ["c", "a"]
    assert stats.is_monotonic_increasing


def test_feature_sets_group_samples_by_level():
    table = pd.DataFrame(
        {"TCGAlong.id": ["a", "b", "c", "d"], "TP53": ["WT", "Mutant", None, "WT"]}
    )
    assert feature_sets(table, "TP53") == {"Mutant": ["b"], "WT": ["a", "d"]}


def test_single_level_feature_is_degenerate():
    table = pd.DataFrame({"TCGAlong.id": ["a", "b"], "KRAS": ["WT", "WT"]})
    with pytest.raises(DegenerateClassError) as excinfo:
        feature_sets(table, "KRAS")
    assert str(excinfo.value) == DEGENERATE_SPLIT_MESSAGE


def test_run_enrichment_uses_primary_samples_of_selected_cancer(rna_data, fake_backend):
    result = run_enrichment(select_inputs(rna_data, "TP53"), ["BRCA"], backend=fake_backend)
    call = fake_backend.calls[0]
    assert call["nperm"] == 1000
    assert call["seed"] == get_enrichment_config()["seed"]
    assert set(call["stats"].index) == {f"TCGA-0{i}" for i in range(1, 8)}
    assert sorted(call["sets"]["Mutant"]) == ["TCGA-01", "TCGA-02", "TCGA-03", "TCGA-04"]
    assert sorted(call["sets"]["WT"]) == ["TCGA-05", "TCGA-06", "TCGA-07"]
    assert list(result.table["pathway"]) == ["Mutant", "WT"]


def test_compare_modalities_runs_both(rna_data, dna_data, fake_backend):
    outcome = compare_modalities(rna_data, dna_data, "BRCA", "TP53", backend=fake_backend)
    assert outcome.ok
    assert set(outcome.results) == {"RNA", "DNA"}
    assert outcome.results["RNA"].stats.name == "RNAss"
    assert outcome.results["DNA"].stats.name == "DNAss"
    assert len(fake_backend.calls) == 2


def test_compare_modalities_reports_degenerate_split(rna_data, dna_data, fake_backend):
    outcome = compare_modalities(rna_data, dna_data, ["BRCA"], "KRAS", backend=fake_backend)
    assert not outcome.ok
    assert outcome.message == DEGENERATE_SPLIT_MESSAGE
    assert outcome.results == {}
    assert fake_backend.calls == []


def test_compare_modalities_requires_a_feature(rna_data, dna_data, fake_backend):
    outcome = compare_modalities(rna_data, dna_data, ["BRCA"], None, backend=fake_backend)
    assert outcome.message == "Please select Feature"
    outcome = compare_modalities(rna_data, dna_data, ["BRCA"], "BRAF", backend=fake_backend)
    assert "not available" in outcome.message


def test_butterfly_table_from_mutation_scan(rna_data, dna_data, fake_backend):
    outcomes = scan_mutations(rna_data, dna_data, "BRCA", backend=fake_backend)
    assert set(outcomes) == {"KRAS", "TP53"}
    table = butterfly_table(outcomes)
    assert list(table["ID"]) == ["TP53"]
    row = table.iloc[0]
    assert row["NES.RNA"] == pytest.approx(1.5)
    assert row["NES.DNA"] == pytest.approx(1.5)
    assert bool(row["significant"])


def test_butterfly_threshold_is_strict(rna_data, dna_data, fake_backend):
    outcomes = scan_mutations(rna_data, dna_data, "BRCA", features=["TP53"], backend=fake_backend)
    table = butterfly_table(outcomes, padj_threshold=0.01)
    assert not table["significant"].any()


def test_listing_helpers(rna_data, dna_data):
    assert list_cancer_types(rna_data) == ["BRCA", "LUAD"]
    assert list_features(rna_data, ["BRCA"]) == ["KRAS", "TP53"]
    assert sorted(feature_levels(rna_data, dna_data, ["BRCA"], "TP53")) == ["Mutant", "WT"]
    assert sorted(feature_levels(rna_data, dna_data, ["BRCA"], "grade")) == ["G1", "G2"]


def test_score_by_status_long_table(rna_data, dna_data):
    long_df = score_by_status(rna_data, dna_data, ["BRCA"], "TP53")
    assert list(long_df.columns) == ["index", "status", "value"]
    assert set(long_df["index"]) == {"mRNAsi", "mDNAsi"}
    assert len(long_df) == 16
    mutant_rna = long_df[(long_df["index"] == "mRNAsi") & (long_df["status"] == "Mutant")]
    assert mutant_rna["value"].min() > 0.5
