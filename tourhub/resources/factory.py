"""
Generic CRUD handlers.

A ResourceDefinition describes one collection: its schema and validation
function, the filter that hides records from normal reads, relations to
populate, and the explicit stages run around writes:

    payload -> before_write -> validate -> normalize -> store -> after_write

ResourceHandlers executes those stages; it knows nothing about any
particular resource beyond what the definition tells it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Type

from ..models.base import STORE_FIELDS, DocumentModel, normalize
from ..query import APIFeatures
from ..storage import Collection, DocumentStore, DocumentValidationError, Violation
from ..utils.exceptions import NotFound
from ..utils.logger import get_logger

logger = get_logger(__name__)

Document = Dict[str, Any]
BeforeWrite = Callable[[Document, Optional[Document]], Document]
AfterWrite = Callable[[DocumentStore, Document, Optional[Document]], None]

NOT_FOUND_MESSAGE = "No document found with that ID"


@dataclass
class Populate:
    """
    Replace ids in ``field`` with documents from ``collection``.

    With ``foreign_field`` set the relation is virtual: ``field`` is filled
    with every document whose ``foreign_field`` equals this document's _id.
    """
    field: str
    collection: str
    select: Sequence[str] = ()
    foreign_field: Optional[str] = None
    filter: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[Callable[[Document], Document]] = None
    nested: Sequence["Populate"] = ()


@dataclass
class IndexSpec:
    keys: Any
    unique: bool = False
    kind: str = "btree"


@dataclass
class ResourceDefinition:
    name: str
    collection: str
    model: Type[DocumentModel]
    validate: Callable[[Document], List[Violation]]
    default_filter: Dict[str, Any] = field(default_factory=dict)
    hidden_fields: Tuple[str, ...] = ()
    indexes: Sequence[IndexSpec] = ()
    populate: Sequence[Populate] = ()
    populate_detail: Sequence[Populate] = ()
    before_write: Sequence[BeforeWrite] = ()
    after_write: Sequence[AfterWrite] = ()
    virtuals: Dict[str, Callable[[Document], Any]] = field(default_factory=dict)
    repeatable_params: Tuple[str, ...] = ()
    # Boolean flag cleared on delete instead of removing the document
    soft_delete_field: Optional[str] = None


class ListResult(NamedTuple):
    data: List[Document]
    results: int


def ensure_indexes(store: DocumentStore, definition: ResourceDefinition) -> None:
    coll = store.collection(definition.collection)
    for spec in definition.indexes:
        coll.create_index(spec.keys, unique=spec.unique, kind=spec.kind)


class ResourceHandlers:
    """create / get_one / get_all / update / delete for one resource definition"""

    def __init__(self, store: DocumentStore, definition: ResourceDefinition):
        self.store = store
        self.definition = definition
        ensure_indexes(store, definition)

    @property
    def collection(self) -> Collection:
        return self.store.collection(self.definition.collection)

    # --- shaping ------------------------------------------------------

    def _populate(self, doc: Document, specs: Sequence[Populate]) -> Document:
        for spec in specs:
            related = self.store.collection(spec.collection)
            if spec.foreign_field:
                if "_id" not in doc:
                    continue
                rows = related.find({**spec.filter, spec.foreign_field: doc["_id"]}).select(list(spec.select)).to_list()
                rows = [self._shape_related(r, spec) for r in rows]
                doc[spec.field] = rows
                continue
            if spec.field not in doc:
                continue
            value = doc[spec.field]
            if isinstance(value, list):
                loaded = [self._load_related(related, item, spec) for item in value]
                doc[spec.field] = [item for item in loaded if item is not None]
            elif value is not None:
                doc[spec.field] = self._load_related(related, value, spec)
        return doc

    def _load_related(self, related: Collection, ref: Any, spec: Populate) -> Optional[Document]:
        if isinstance(ref, dict):
            return ref
        row = related.find({**spec.filter, "_id": ref}).select(list(spec.select)).first()
        return self._shape_related(row, spec) if row else None

    def _shape_related(self, row: Document, spec: Populate) -> Document:
        if spec.transform:
            row = spec.transform(row)
        if spec.nested:
            row = self._populate(row, spec.nested)
        return _with_id(row)

    def present(self, doc: Document, include: Sequence[str] = ()) -> Document:
        """Hide private fields (unless explicitly selected) and add virtuals."""
        shaped = {k: v for k, v in doc.items() if k not in self.definition.hidden_fields or k in include}
        for name, compute in self.definition.virtuals.items():
            value = compute(shaped)
            if value is not None:
                shaped[name] = value
        return _with_id(shaped)

    # --- write pipeline -------------------------------------------------

    def _prepare(self, doc: Document, existing: Optional[Document]) -> Document:
        for stage in self.definition.before_write:
            doc = stage(doc, existing)
        violations = self.definition.validate(doc)
        if violations:
            raise DocumentValidationError(self.definition.name, violations)
        return normalize(self.definition.model, doc)

    def _after_write(self, doc: Document, previous: Optional[Document]) -> None:
        for effect in self.definition.after_write:
            effect(self.store, doc, previous)

    # --- operations -----------------------------------------------------

    def create(self, payload: Mapping[str, Any]) -> Document:
        doc = {k: v for k, v in payload.items() if k not in STORE_FIELDS}
        stored = self.collection.insert_one(self._prepare(doc, None))
        logger.info("Document created", resource=self.definition.name, doc_id=stored["_id"])
        self._after_write(stored, None)
        return self.present(stored)

    def get_one(self, doc_id: Any, scope: Optional[Dict[str, Any]] = None) -> Document:
        doc = self.collection.find_by_id(doc_id, {**self.definition.default_filter, **(scope or {})})
        if doc is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        doc = self._populate(doc, list(self.definition.populate) + list(self.definition.populate_detail))
        return self.present(doc)

    def get_all(
        self,
        query_string: Optional[Mapping[str, Any]] = None,
        scope: Optional[Dict[str, Any]] = None,
    ) -> ListResult:
        base = self.collection.find(self.definition.default_filter).find(scope)
        features = APIFeatures(base, query_string).apply_all()
        include = features.query.request.include
        rows = [
            self.present(self._populate(doc, self.definition.populate), include)
            for doc in features.query.to_list()
        ]
        return ListResult(data=rows, results=len(rows))

    def update(self, doc_id: Any, patch: Mapping[str, Any]) -> Document:
        existing = self.collection.find_by_id(doc_id, self.definition.default_filter)
        if existing is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        merged = {**existing, **{k: v for k, v in patch.items() if k not in STORE_FIELDS}}
        updated = self.collection.replace_by_id(doc_id, self._prepare(merged, existing))
        if updated is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        logger.info("Document updated", resource=self.definition.name, doc_id=doc_id, fields=sorted(patch))
        self._after_write(updated, existing)
        return self.present(self._populate(updated, self.definition.populate))

    def delete(self, doc_id: Any) -> None:
        existing = self.collection.find_by_id(doc_id, self.definition.default_filter)
        if existing is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        soft = self.definition.soft_delete_field
        if soft:
            removed = self.collection.update_by_id(doc_id, changes={soft: False})
        else:
            removed = self.collection.delete_by_id(doc_id)
        if removed is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        logger.info("Document deleted", resource=self.definition.name, doc_id=doc_id, soft=bool(soft))
        self._after_write(existing, existing)


def _with_id(doc: Document) -> Document:
    if "_id" in doc and "id" not in doc:
        doc = {**doc, "id": doc["_id"]}
    return doc
