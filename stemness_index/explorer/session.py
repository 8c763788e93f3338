# stemness_index/explorer/session.py
"""Request/response wrapper for interactive recomputation.

Every new request bumps a generation counter. A result is only published
if the generation it was computed for is still the latest one, so a slow
computation that finishes late never overwrites a newer answer.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from stemness_index.core.exceptions import StemnessError
from stemness_index.explorer.enrichment import (
    EnrichmentBackend,
    EnrichmentOutcome,
    compare_modalities,
)
from stemness_index.explorer.modality import ModalityData

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")
ResultT = TypeVar("ResultT")


@dataclass(frozen=True)
class Published(Generic[ResultT]):
    generation: int
    result: ResultT | None
    error: str | None = None


class ExplorerSession(Generic[RequestT, ResultT]):
    """Runs `compute` for each request and keeps only the freshest result.

    Args:
        compute: Function turning a request into a result.
        max_workers: Worker threads used by `submit_async`.
    """

    def __init__(self, compute: Callable[[RequestT], ResultT], max_workers: int = 1):
        self.compute = compute
        self._generation = 0
        self._latest: Published[ResultT] | None = None
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> Published[ResultT] | None:
        return self._latest

    def begin(self) -> int:
        """Start a new request; earlier in-flight requests become stale."""
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def _store(
        self, token: int, result: ResultT | None, error: str | None
    ) -> Published[ResultT] | None:
        with self._lock:
            if token != self._generation:
                logger.debug(
                    f"Dropping stale result for generation {token} (current {self._generation})"
                )
                return None
            self._latest = Published(generation=token, result=result, error=error)
            return self._latest

    def publish(self, token: int, result: ResultT | None, error: str | None = None) -> bool:
        """Store a result unless a newer request has started since `token`."""
        return self._store(token, result, error) is not None

    def _run(self, token: int, request: RequestT) -> Published[ResultT] | None:
        try:
            result = self.compute(request)
        except StemnessError as e:
            logger.warning(f"Request {token} failed at stage '{e.stage}': {e}")
            return self._store(token, None, str(e))
        return self._store(token, result, None)

    def submit(self, request: RequestT) -> Published[ResultT] | None:
        """Compute synchronously; returns the published entry or None if stale."""
        return self._run(self.begin(), request)

    def submit_async(self, request: RequestT) -> Future:
        """Compute on the session's worker pool."""
        token = self.begin()
        return self._executor.submit(self._run, token, request)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "ExplorerSession[RequestT, ResultT]":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass(frozen=True)
class EnrichmentRequest:
    cancer_types: tuple[str, ...]
    feature: str | None


def enrichment_session(
    rna: ModalityData,
    dna: ModalityData,
    backend: EnrichmentBackend | None = None,
    config: dict[str, Any] | None = None,
) -> ExplorerSession[EnrichmentRequest, EnrichmentOutcome]:
    """Session recomputing the RNA/DNA mutation enrichment per request."""

    def compute(request: EnrichmentRequest) -> EnrichmentOutcome:
        return compare_modalities(
            rna, dna, list(request.cancer_types), request.feature, backend=backend, config=config
        )

    return ExplorerSession(compute)
