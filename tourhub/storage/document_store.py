"""
JSON-backed document store.

Each collection is a list of documents kept in memory and, when the store
has a data directory, persisted to ``<data_dir>/<collection>.json`` with an
atomic temp-file swap after every write. Single-document writes are atomic
under a per-collection lock; there are no multi-document transactions.
"""

from __future__ import annotations

import copy
import json
import re
import secrets
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..utils.logger import get_logger
from .aggregation import run_pipeline
from .errors import CastError, DuplicateKeyError, StorageError
from .matching import get_path, matches, merge_filters, sort_documents

logger = get_logger(__name__)

Document = Dict[str, Any]
SortSpec = List[Tuple[str, int]]

_OBJECT_ID_RE = re.compile(r"^[0-9a-f]{24}$")


def new_object_id() -> str:
    return secrets.token_hex(12)


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode(obj: Dict[str, Any]) -> Any:
    if len(obj) == 1 and "$date" in obj:
        return datetime.fromisoformat(obj["$date"])
    return obj


def parse_sort(spec: Union[str, Sequence[str], SortSpec, None]) -> SortSpec:
    """Accept "-price name", ["-price", "name"] or [("price", -1), ("name", 1)]."""
    if not spec:
        return []
    if isinstance(spec, str):
        spec = spec.replace(",", " ").split()
    out: SortSpec = []
    for item in spec:
        if isinstance(item, tuple):
            out.append((item[0], int(item[1])))
        elif item.startswith("-"):
            out.append((item[1:], -1))
        else:
            out.append((item, 1))
    return out


@dataclass
class FetchRequest:
    """Everything needed to run a find: the storage-level shape of a list query."""

    filter: Dict[str, Any] = field(default_factory=dict)
    sort: SortSpec = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    skip: int = 0
    limit: Optional[int] = None


def apply_projection(doc: Document, include: Iterable[str], exclude: Iterable[str]) -> Document:
    include = list(include)
    exclude = set(exclude)
    if include:
        wanted = {name.split(".")[0] for name in include}
        if "_id" not in exclude:
            wanted.add("_id")
        return {k: v for k, v in doc.items() if k in wanted}
    return {k: v for k, v in doc.items() if k not in exclude}


class Query:
    """Chainable find over a collection, executed lazily by ``to_list``."""

    def __init__(self, collection: "Collection", filter: Optional[Dict[str, Any]] = None):
        self.collection = collection
        self.request = FetchRequest(filter=dict(filter or {}))

    def find(self, extra: Optional[Dict[str, Any]]) -> "Query":
        self.request.filter = merge_filters(self.request.filter, extra)
        return self

    def sort(self, spec: Union[str, Sequence[str], SortSpec]) -> "Query":
        self.request.sort = parse_sort(spec)
        return self

    def select(self, fields: Union[str, Sequence[str]]) -> "Query":
        if isinstance(fields, str):
            fields = fields.replace(",", " ").split()
        self.request.include = [f for f in fields if not f.startswith("-")]
        self.request.exclude = [f[1:] for f in fields if f.startswith("-")]
        return self

    def skip(self, count: int) -> "Query":
        self.request.skip = max(int(count), 0)
        return self

    def limit(self, count: Optional[int]) -> "Query":
        self.request.limit = count
        return self

    def to_list(self) -> List[Document]:
        docs = self.collection._matching(self.request.filter)
        if self.request.sort:
            docs = sort_documents(docs, self.request.sort)
        start = self.request.skip
        end = start + self.request.limit if self.request.limit is not None else None
        return [
            apply_projection(d, self.request.include, self.request.exclude)
            for d in docs[start:end]
        ]

    def first(self) -> Optional[Document]:
        self.request.limit = 1
        rows = self.to_list()
        return rows[0] if rows else None


@dataclass
class Index:
    name: str
    keys: SortSpec
    unique: bool = False
    kind: str = "btree"


class Collection:
    """A named set of documents with indexes"""

    def __init__(self, name: str, path: Optional[Path] = None):
        self.name = name
        self.path = path
        self.indexes: List[Index] = []
        self._lock = threading.RLock()
        self._docs: List[Document] = self._load()

    # --- persistence -------------------------------------------------

    def _load(self) -> List[Document]:
        if not self.path or not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f, object_hook=_decode)
        except (json.JSONDecodeError, OSError) as e:
            raise StorageError(f"Failed to load collection {self.name} from {self.path}: {str(e)}")
        return raw.get("documents", [])

    def _persist(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=str(self.path.parent), delete=False, encoding="utf-8"
        ) as tf:
            json.dump({"documents": self._docs}, tf, indent=2, ensure_ascii=False, default=_encode)
            temp_path = Path(tf.name)
        try:
            shutil.move(str(temp_path), str(self.path))
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Failed to save collection {self.name} to {self.path}: {str(e)}")

    # --- indexes ------------------------------------------------------

    def create_index(self, keys: Union[str, SortSpec], unique: bool = False, kind: str = "btree") -> Index:
        spec = [(keys, 1)] if isinstance(keys, str) else list(keys)
        name = "_".join(f"{k}_{'2dsphere' if kind == '2dsphere' else d}" for k, d in spec)
        with self._lock:
            for existing in self.indexes:
                if existing.name == name:
                    return existing
            index = Index(name=name, keys=spec, unique=unique, kind=kind)
            if unique:
                self._check_unique(index, self._docs)
            self.indexes.append(index)
        return index

    def _check_unique(self, index: Index, docs: List[Document], candidate: Optional[Document] = None) -> None:
        def key_of(doc: Document) -> Optional[Tuple[Any, ...]]:
            values = tuple(get_path(doc, k) for k, _ in index.keys)
            return None if all(v is None for v in values) else values

        seen: Dict[Tuple[Any, ...], str] = {}
        others = docs if candidate is None else [d for d in docs if d["_id"] != candidate["_id"]]
        for doc in others:
            key = key_of(doc)
            if key is not None:
                if candidate is None and key in seen:
                    raise DuplicateKeyError(index.name, dict(zip((k for k, _ in index.keys), key)))
                seen[key] = doc["_id"]
        if candidate is not None:
            key = key_of(candidate)
            if key is not None and key in seen:
                raise DuplicateKeyError(index.name, dict(zip((k for k, _ in index.keys), key)))

    def _check_indexes(self, candidate: Document) -> None:
        for index in self.indexes:
            if index.unique:
                self._check_unique(index, self._docs, candidate)

    # --- reads --------------------------------------------------------

    def _matching(self, filter: Optional[Dict[str, Any]]) -> List[Document]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._docs if matches(d, filter)]

    def find(self, filter: Optional[Dict[str, Any]] = None) -> Query:
        return Query(self, filter)

    def find_one(self, filter: Optional[Dict[str, Any]] = None) -> Optional[Document]:
        with self._lock:
            for doc in self._docs:
                if matches(doc, filter):
                    return copy.deepcopy(doc)
        return None

    def find_by_id(self, doc_id: Any, filter: Optional[Dict[str, Any]] = None) -> Optional[Document]:
        if not is_object_id(doc_id):
            raise CastError("_id", doc_id)
        return self.find_one(merge_filters({"_id": doc_id}, filter))

    def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for d in self._docs if matches(d, filter))

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Document]:
        with self._lock:
            snapshot = list(self._docs)
        return run_pipeline(snapshot, pipeline)

    # --- writes -------------------------------------------------------

    def insert_one(self, doc: Document) -> Document:
        new_doc = copy.deepcopy(doc)
        new_doc.setdefault("_id", new_object_id())
        new_doc.setdefault("__v", 0)
        with self._lock:
            if any(d["_id"] == new_doc["_id"] for d in self._docs):
                raise DuplicateKeyError("_id_", {"_id": new_doc["_id"]})
            self._check_indexes(new_doc)
            self._docs.append(new_doc)
            self._persist()
        logger.debug("Document inserted", collection=self.name, doc_id=new_doc["_id"])
        return copy.deepcopy(new_doc)

    def update_one(
        self,
        filter: Dict[str, Any],
        changes: Optional[Dict[str, Any]] = None,
        unset: Optional[Iterable[str]] = None,
    ) -> Optional[Document]:
        """Apply $set/$unset to the first match and return the updated document."""
        with self._lock:
            for position, doc in enumerate(self._docs):
                if not matches(doc, filter):
                    continue
                updated = copy.deepcopy(doc)
                updated.update(copy.deepcopy(changes or {}))
                for name in unset or ():
                    updated.pop(name, None)
                updated["_id"] = doc["_id"]
                self._check_indexes(updated)
                self._docs[position] = updated
                self._persist()
                return copy.deepcopy(updated)
        return None

    def update_by_id(
        self,
        doc_id: Any,
        changes: Optional[Dict[str, Any]] = None,
        unset: Optional[Iterable[str]] = None,
    ) -> Optional[Document]:
        if not is_object_id(doc_id):
            raise CastError("_id", doc_id)
        return self.update_one({"_id": doc_id}, changes=changes, unset=unset)

    def replace_by_id(self, doc_id: Any, doc: Document) -> Optional[Document]:
        """Replace a whole document, keeping its _id and __v."""
        if not is_object_id(doc_id):
            raise CastError("_id", doc_id)
        with self._lock:
            for position, existing in enumerate(self._docs):
                if existing["_id"] != doc_id:
                    continue
                replacement = copy.deepcopy(doc)
                replacement["_id"] = doc_id
                replacement["__v"] = existing.get("__v", 0)
                self._check_indexes(replacement)
                self._docs[position] = replacement
                self._persist()
                return copy.deepcopy(replacement)
        return None

    def delete_by_id(self, doc_id: Any) -> Optional[Document]:
        if not is_object_id(doc_id):
            raise CastError("_id", doc_id)
        with self._lock:
            for position, doc in enumerate(self._docs):
                if doc["_id"] == doc_id:
                    removed = self._docs.pop(position)
                    self._persist()
                    return removed
        return None


class DocumentStore:
    """Registry of collections sharing one data directory (or none, for in-memory use)"""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self.data_dir = Path(data_dir) if data_dir else None
        self._collections: Dict[str, Collection] = {}
        self._lock = threading.Lock()

    def collection(self, name: str) -> Collection:
        with self._lock:
            if name not in self._collections:
                path = self.data_dir / f"{name}.json" if self.data_dir else None
                self._collections[name] = Collection(name, path)
            return self._collections[name]
