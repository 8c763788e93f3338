import threading

from stemness_index.core.exceptions import DegenerateScoreError
from stemness_index.explorer.session import EnrichmentRequest, ExplorerSession, enrichment_session


def test_stale_result_is_not_published():
    session = ExplorerSession(lambda request: request)
    first = session.begin()
    second = session.begin()
    assert not session.publish(first, "old")
    assert session.latest is None
    assert session.publish(second, "new")
    assert session.latest.result == "new"
    assert session.latest.generation == second
    session.close()


def test_submit_publishes_current_result():
    with ExplorerSession(lambda request: request * 2) as session:
        published = session.submit(21)
        assert published.result == 42
        assert published.error is None
        assert session.is_current(published.generation)


def test_pipeline_errors_are_published_as_messages():
    def compute(request):
        raise DegenerateScoreError("all scores equal")

    with ExplorerSession(compute) as session:
        published = session.submit("anything")
        assert published.result is None
        assert published.error == "all scores equal"


def test_slow_request_cannot_overwrite_newer_one():
    release = threading.Event()

    def compute(request):
        if request == "slow":
            release.wait(timeout=5)
        return request

    with ExplorerSession(compute, max_workers=2) as session:
        slow = session.submit_async("slow")
        fast = session.submit_async("fast")
        assert fast.result(timeout=5).result == "fast"
        release.set()
        assert slow.result(timeout=5) is None
        assert session.latest.result == "fast"


def test_enrichment_session_recomputes_per_request(rna_data, dna_data, fake_backend):
    with enrichment_session(rna_data, dna_data, backend=fake_backend) as session:
        published = session.submit(EnrichmentRequest(cancer_types=("BRCA",), feature="TP53"))
        assert published.result.ok
        published = session.submit(EnrichmentRequest(cancer_types=("BRCA",), feature="KRAS"))
        assert not published.result.ok
        assert session.generation == 2
