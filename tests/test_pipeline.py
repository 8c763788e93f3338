import numpy as np
import pandas as pd
import pytest

from stemness_index.core.exceptions import DegenerateClassError, SignatureMismatchError
from stemness_index.signature.persistence import load_scores, load_signature, save_signature
from stemness_index.signature.pipeline import (
    prepare_reference,
    score_samples,
    split_classes,
    train_signature,
)


@pytest.fixture
def reference_files(tmp_path, reference_data):
    matrix, labels = reference_data
    expression_path = tmp_path / "reference_expression.tsv"
    labels_path = tmp_path / "reference_labels.tsv"
    matrix.to_csv(expression_path, sep="\t", index_label="gene")
    pd.DataFrame({"UID": labels.index, "Diffname_short": labels.to_numpy()}).to_csv(
        labels_path, sep="\t", index=False
    )
    return expression_path, labels_path


@pytest.fixture
def signature_path(tmp_path):
    signature = pd.Series([1.5, -1.2, 0.3, 0.8, -0.1, 0.05], index=[f"G{i}" for i in range(6)])
    return save_signature(signature, tmp_path / "signature.tsv")


def test_train_signature_writes_signature_and_validates(tmp_path, reference_files):
    expression_path, labels_path = reference_files
    output = tmp_path / "signature.tsv"
    result = train_signature(
        output,
        expression_path=expression_path,
        labels_path=labels_path,
        identifier_scheme="symbol",
        n_jobs=1,
        show_progress=False,
    )
    assert result.signature_path == output
    assert list(result.signature.index) == [f"G{i}" for i in range(6)]
    assert list(result.auc.index) == [f"SC{i}" for i in range(5)]
    assert ((result.auc >= 0.0) & (result.auc <= 1.0)).all()
    assert result.signature["G0"] > 0
    assert result.signature["G1"] < 0
    np.testing.assert_allclose(load_signature(output).to_numpy(), result.signature.to_numpy())


def test_train_signature_restricts_to_gene_list(tmp_path, reference_files):
    expression_path, labels_path = reference_files
    genes_path = tmp_path / "genes.txt"
    genes_path.write_text("G3\nG0\n\nG1\nNOT_A_GENE\n")
    result = train_signature(
        tmp_path / "signature.tsv",
        genes_path=genes_path,
        expression_path=expression_path,
        labels_path=labels_path,
        identifier_scheme="symbol",
        n_jobs=1,
        show_progress=False,
    )
    assert list(result.signature.index) == ["G0", "G1", "G3"]


def test_train_signature_maps_ensembl_rows(tmp_path, reference_data):
    matrix, labels = reference_data
    ensembl = matrix.copy()
    ensembl.index = [f"ENSG0000{i}.1" for i in range(6)]
    expression_path = tmp_path / "reference_expression.tsv"
    ensembl.to_csv(expression_path, sep="\t", index_label="gene")
    labels_path = tmp_path / "labels.tsv"
    pd.DataFrame({"UID": labels.index, "Diffname_short": labels.to_numpy()}).to_csv(
        labels_path, sep="\t", index=False
    )
    gene_map_path = tmp_path / "gene_map.tsv"
    pd.DataFrame(
        {
            "ensembl_gene_id": [f"ENSG0000{i}" for i in range(6)],
            "hgnc_symbol": [f"G{i}" for i in range(6)],
        }
    ).to_csv(gene_map_path, sep="\t", index=False)
    result = train_signature(
        tmp_path / "signature.tsv",
        expression_path=expression_path,
        labels_path=labels_path,
        identifier_scheme="ensembl",
        gene_map_path=gene_map_path,
        n_jobs=1,
        show_progress=False,
    )
    assert list(result.signature.index) == [f"G{i}" for i in range(6)]


def test_score_samples_writes_unit_interval_scores(tmp_path, reference_data, signature_path):
    matrix, _ = reference_data
    target_path = tmp_path / "target.tsv"
    matrix.to_csv(target_path, sep="\t", index_label="gene")
    output = tmp_path / "scores.tsv"
    score_samples(signature_path, output, expression_path=target_path, identifier_scheme="symbol")
    scores = load_scores(output)
    assert list(scores.index) == list(matrix.columns)
    assert scores.min() == pytest.approx(0.0)
    assert scores.max() == pytest.approx(1.0)


def test_score_samples_accepts_tcga_row_ids(tmp_path, reference_data, signature_path):
    matrix, _ = reference_data
    tcga = matrix.copy()
    tcga.index = [f"G{i}|{100 + i}" for i in range(6)]
    tcga.loc["?|999"] = 1.0
    target_path = tmp_path / "target.tsv"
    tcga.to_csv(target_path, sep="\t", index_label="gene_id")
    output = tmp_path / "scores.tsv"
    score_samples(signature_path, output, expression_path=target_path, identifier_scheme="tcga")
    assert len(load_scores(output)) == matrix.shape[1]


def test_score_samples_mismatch_writes_nothing(tmp_path, reference_data, signature_path):
    matrix, _ = reference_data
    target = matrix.copy()
    target.loc["G9"] = 0.5
    target_path = tmp_path / "target.tsv"
    target.to_csv(target_path, sep="\t", index_label="gene")
    output = tmp_path / "scores.tsv"
    with pytest.raises(SignatureMismatchError):
        score_samples(
            signature_path, output, expression_path=target_path, identifier_scheme="symbol"
        )
    assert not output.exists()

    score_samples(
        signature_path,
        output,
        expression_path=target_path,
        identifier_scheme="symbol",
        restrict_to_signature=True,
    )
    assert output.exists()


def test_prepare_reference_centers_labelled_samples(reference_data):
    matrix, labels = reference_data
    matrix = matrix.assign(UNLABELLED=100.0)
    foreground, background = prepare_reference(matrix, labels, "SC")
    combined = pd.concat([foreground, background], axis=1)
    assert "UNLABELLED" not in combined.columns
    assert np.allclose(combined.mean(axis=1), 0.0)


def test_split_classes_needs_two_labels(reference_data):
    matrix, labels = reference_data
    with pytest.raises(DegenerateClassError):
        split_classes(matrix, pd.Series("SC", index=labels.index), "SC")
    with pytest.raises(DegenerateClassError):
        split_classes(matrix, labels, "ESC")


def test_split_classes_counts_repeated_sample_once(reference_data):
    matrix, labels = reference_data
    repeated = pd.concat([labels, pd.Series(["EB"], index=["SC0"])])
    foreground, background = split_classes(matrix, repeated, "SC")
    assert list(foreground.columns) == [f"SC{i}" for i in range(5)]
    assert not background.columns.duplicated().any()
    assert "SC0" not in background.columns
