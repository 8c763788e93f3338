# stemness_index/signature/identity.py
"""Gene identifier resolution onto HUGO symbols.

The pipeline only depends on the `GeneIdentityResolver` protocol; the
table-backed resolver here reads a mapping export (for example a BioMart
download with `ensembl_gene_id`, `entrezgene_id` and `hgnc_symbol` columns).
"""

import logging
import re
from collections.abc import Iterable
from enum import Enum
from typing import Protocol

import pandas as pd

from stemness_index.core.exceptions import IdentityResolutionError
from stemness_index.core.utils import drop_duplicate_rows

logger = logging.getLogger(__name__)

SYMBOL_COLUMN = "hgnc_symbol"
_VERSION_SUFFIX = re.compile(r"\.\d+$")


class IdentifierScheme(str, Enum):
    """Naming schemes a source identifier can come from."""

    ENSEMBL = "ensembl"
    ENTREZ = "entrez"

    @property
    def column(self) -> str:
        return {"ensembl": "ensembl_gene_id", "entrez": "entrezgene_id"}[self.value]

    def normalize(self, identifier: str) -> str:
        identifier = str(identifier).strip()
        if self is IdentifierScheme.ENSEMBL:
            return _VERSION_SUFFIX.sub("", identifier)
        return identifier


class IdentityCache:
    """Memo of resolved identifiers keyed by (identifier, scheme).

    Misses are cached as None. Entries are never invalidated; a mapping is
    treated as fixed for the lifetime of the cache.
    """

    def __init__(self):
        self._entries: dict[tuple[str, IdentifierScheme], str | None] = {}

    def __contains__(self, key: tuple[str, IdentifierScheme]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, identifier: str, scheme: IdentifierScheme) -> str | None:
        return self._entries.get((identifier, scheme))

    def put(self, identifier: str, scheme: IdentifierScheme, symbol: str | None) -> None:
        self._entries[(identifier, scheme)] = symbol


class GeneIdentityResolver(Protocol):
    def resolve(
        self, identifiers: Iterable[str], scheme: IdentifierScheme
    ) -> dict[str, str]: ...


class TableGeneIdentityResolver:
    """Resolve identifiers through an in-memory mapping table."""

    def __init__(self, gene_map: pd.DataFrame, cache: IdentityCache | None = None):
        if SYMBOL_COLUMN not in gene_map.columns:
            msg = f"Gene map is missing the '{SYMBOL_COLUMN}' column"
            raise ValueError(msg)
        self.gene_map = gene_map
        self.cache = cache if cache is not None else IdentityCache()
        self._lookups: dict[IdentifierScheme, tuple[dict[str, str], dict[str, str]]] = {}
        self.n_backend_lookups = 0

    def _lookup_tables(self, scheme: IdentifierScheme) -> tuple[dict[str, str], dict[str, str]]:
        if scheme not in self._lookups:
            if scheme.column not in self.gene_map.columns:
                msg = f"Gene map has no '{scheme.column}' column for scheme '{scheme.value}'"
                raise ValueError(msg)
            pairs = self.gene_map[[scheme.column, SYMBOL_COLUMN]].dropna()
            pairs = pairs[pairs[SYMBOL_COLUMN].str.strip() != ""]
            exact: dict[str, str] = {}
            folded: dict[str, str] = {}
            for source, symbol in pairs.itertuples(index=False):
                key = scheme.normalize(source)
                # First row wins when a source id maps to several symbols
                exact.setdefault(key, symbol.strip())
                folded.setdefault(key.lower(), symbol.strip())
            self._lookups[scheme] = (exact, folded)
        return self._lookups[scheme]

    def _lookup(self, identifier: str, scheme: IdentifierScheme) -> str | None:
        self.n_backend_lookups += 1
        exact, folded = self._lookup_tables(scheme)
        key = scheme.normalize(identifier)
        return exact.get(key) or folded.get(key.lower())

    def resolve(self, identifiers: Iterable[str], scheme: IdentifierScheme | str) -> dict[str, str]:
        """Map identifiers to symbols.

        Args:
            identifiers: Source identifiers, in caller order.
            scheme: Naming scheme of `identifiers`.

        Returns:
            Mapping from each resolvable input identifier to its symbol.
            Identifiers without a symbol are left out.

        Raises:
            IdentityResolutionError: If no identifier could be mapped.
        """
        scheme = IdentifierScheme(scheme)
        identifiers = [str(i) for i in identifiers]
        mapping: dict[str, str] = {}
        for identifier in identifiers:
            if (identifier, scheme) in self.cache:
                symbol = self.cache.get(identifier, scheme)
            else:
                symbol = self._lookup(identifier, scheme)
                self.cache.put(identifier, scheme, symbol)
            if symbol:
                mapping[identifier] = symbol

        if not mapping:
            msg = f"None of {len(identifiers)} {scheme.value} identifiers mapped to a gene symbol"
            logger.error(msg)
            raise IdentityResolutionError(msg)
        if len(mapping) < len(identifiers):
            logger.warning(
                f"Resolved {len(mapping)}/{len(identifiers)} {scheme.value} identifiers; "
                f"{len(identifiers) - len(mapping)} left unmapped."
            )
        else:
            logger.debug(f"Resolved all {len(mapping)} {scheme.value} identifiers.")
        return mapping


def align_to_symbols(
    matrix: pd.DataFrame, resolver: GeneIdentityResolver, scheme: IdentifierScheme | str
) -> pd.DataFrame:
    """Re-index a genes x samples matrix by gene symbol.

    Unmapped rows are dropped; rows that collide on the same symbol are
    reduced to their first occurrence.
    """
    mapping = resolver.resolve(matrix.index, IdentifierScheme(scheme))
    mapped = matrix.loc[matrix.index.isin(list(mapping))]
    mapped = mapped.rename(index=mapping)
    n_before = mapped.shape[0]
    aligned = drop_duplicate_rows(mapped)
    if aligned.shape[0] < n_before:
        logger.info(
            f"Dropped {n_before - aligned.shape[0]} rows sharing a symbol with an earlier row."
        )
    logger.info(f"Aligned matrix to {aligned.shape[0]} gene symbols.")
    return aligned
