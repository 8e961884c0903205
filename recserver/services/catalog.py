"""
Catalog and Candidate Provider abstractions.

A Catalog is the read-only store of rankable entities (one collection per
entity type). A CandidateProvider pulls a bounded, filtered candidate pool
for one entity type out of a Catalog, page by page.
Implementations: in-memory, JSON file, Firestore.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Set, Union

from pydantic import BaseModel, Field

from recengine.models import Candidate, TransientCatalogError

from .firestore import firestore_client

logger = logging.getLogger(__name__)

DEFAULT_COLLECTIONS = {
    "creator": "creators",
    "opportunity": "campaigns",
    "partner": "brands",
    "content": "content",
}


class FilterSpec(BaseModel):
    """What a provider should fetch: equality filters plus ids to leave out."""

    entity_type: str
    filters: Dict[str, Any] = Field(default_factory=dict)
    exclude_ids: Set[str] = Field(default_factory=set)


class Catalog(Protocol):
    """Protocol for read-only catalog access."""

    def query(
        self,
        entity_type: str,
        filters: Dict[str, Any],
        limit: int,
        offset: int = 0,
    ) -> List[Dict]:
        """Return up to limit raw records of entity_type matching all equality filters."""
        ...


def _matches(record: Dict, filters: Dict[str, Any]) -> bool:
    return all(record.get(k) == v for k, v in filters.items())


class InMemoryCatalog:
    """Catalog backed by in-process lists. Used for local runs and tests."""

    def __init__(self, records: Optional[Dict[str, List[Dict]]] = None):
        self._records: Dict[str, List[Dict]] = {}
        for entity_type, items in (records or {}).items():
            self.add(entity_type, items)

    def add(self, entity_type: str, items: List[Dict]) -> None:
        self._records.setdefault(entity_type, []).extend(dict(i) for i in items)

    def query(
        self,
        entity_type: str,
        filters: Dict[str, Any],
        limit: int,
        offset: int = 0,
    ) -> List[Dict]:
        items = [r for r in self._records.get(entity_type, []) if _matches(r, filters)]
        return items[offset:offset + limit]

    def count(self, entity_type: str) -> int:
        return len(self._records.get(entity_type, []))


class JsonCatalog(InMemoryCatalog):
    """
    Catalog loaded from a JSON file mapping entity type to a list of records.
    Used when DATA_SOURCE=json; path comes from CATALOG_JSON_PATH.
    """

    def __init__(self, path: Union[Path, str]):
        self._path = Path(path)
        if not self._path.exists():
            raise FileNotFoundError(f"Catalog JSON not found: {self._path}")
        with open(self._path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Catalog JSON must map entity type to records: {self._path}")
        super().__init__({k: v for k, v in data.items() if isinstance(v, list)})


class FirestoreCatalog:
    """Catalog backed by Cloud Firestore; one collection per entity type."""

    def __init__(
        self,
        project_id: Optional[str] = None,
        credentials_path: Optional[Union[Path, str]] = None,
        collections: Optional[Dict[str, str]] = None,
    ):
        self._db = firestore_client(project_id, credentials_path)
        self._collections = dict(DEFAULT_COLLECTIONS, **(collections or {}))

    def query(
        self,
        entity_type: str,
        filters: Dict[str, Any],
        limit: int,
        offset: int = 0,
    ) -> List[Dict]:
        query = self._db.collection(self._collections.get(entity_type, entity_type))
        for field, value in filters.items():
            query = query.where(field, "==", value)
        if offset:
            query = query.offset(offset)
        out = []
        for doc in query.limit(limit).stream():
            data = doc.to_dict() or {}
            data.setdefault("id", doc.id)
            out.append(data)
        return out


class CandidateProvider(Protocol):
    """Protocol for fetching the candidate pool of one entity type."""

    entity_type: str

    def fetch(self, spec: FilterSpec, pool_size: int) -> List[Candidate]:
        """Return up to pool_size candidates. Raises TransientCatalogError on catalog failure."""
        ...


class CatalogCandidateProvider:
    """Candidate provider paging through a Catalog until the pool is full."""

    def __init__(
        self,
        entity_type: str,
        catalog: Catalog,
        page_size: int = 50,
        default_filters: Optional[Dict[str, Any]] = None,
    ):
        self.entity_type = entity_type
        self._catalog = catalog
        self._page_size = page_size
        self._default_filters = dict(default_filters or {})

    def _to_candidate(self, record: Dict) -> Optional[Candidate]:
        try:
            return Candidate.model_validate({**record, "entity_type": self.entity_type})
        except ValueError as e:
            logger.debug("[catalog] MALFORMED_RECORD type=%s id=%s err=%s", self.entity_type, record.get("id"), e)
            return None

    def fetch(self, spec: FilterSpec, pool_size: int) -> List[Candidate]:
        filters = {**self._default_filters, **spec.filters}
        out: List[Candidate] = []
        offset = 0
        while len(out) < pool_size:
            try:
                page = self._catalog.query(self.entity_type, filters, self._page_size, offset)
            except Exception as e:
                logger.warning("[catalog] CATALOG_QUERY_FAILED type=%s offset=%d err=%s", self.entity_type, offset, e)
                raise TransientCatalogError(self.entity_type, str(e)) from e
            if not page:
                break
            for record in page:
                candidate = self._to_candidate(record)
                if candidate is None or candidate.id in spec.exclude_ids:
                    continue
                out.append(candidate)
            if len(page) < self._page_size:
                break
            offset += len(page)
        return out[:pool_size]
