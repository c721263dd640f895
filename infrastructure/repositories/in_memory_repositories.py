"""In-Memory Repository Implementations"""
import asyncio
import copy
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from domain.exceptions import NotFoundError
from domain.repositories import Document, DocumentStore, Transaction, WriteBatch

Key = Tuple[str, str]


def _matches(document: Document, equals: Dict[str, Any]) -> bool:
    return all(document.get(field) == value for field, value in equals.items())


class InMemoryTransaction(Transaction):
    """Buffers writes until the owning store commits them"""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        # None marks a pending delete
        self._writes: Dict[Key, Optional[Document]] = {}

    def _current(self, collection: str, doc_id: str) -> Optional[Document]:
        key = (collection, doc_id)
        if key in self._writes:
            return self._writes[key]
        return self._store._collections.get(collection, {}).get(doc_id)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        # yield so concurrent transactions interleave the way a real backend would
        await asyncio.sleep(0)
        return copy.deepcopy(self._current(collection, doc_id))

    async def query(self, collection: str, **equals: Any) -> List[Document]:
        await asyncio.sleep(0)
        doc_ids = set(self._store._collections.get(collection, {}))
        doc_ids.update(doc_id for (name, doc_id) in self._writes if name == collection)
        results = []
        for doc_id in sorted(doc_ids):
            document = self._current(collection, doc_id)
            if document is not None and _matches(document, equals):
                results.append(copy.deepcopy(document))
        return results

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        self._writes[(collection, doc_id)] = copy.deepcopy(data)

    def update(self, collection: str, doc_id: str, changes: Document) -> None:
        current = self._current(collection, doc_id)
        if current is None:
            raise NotFoundError(collection, doc_id)
        merged = copy.deepcopy(current)
        merged.update(copy.deepcopy(changes))
        self._writes[(collection, doc_id)] = merged

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes[(collection, doc_id)] = None


class InMemoryWriteBatch(WriteBatch):
    """Queued writes validated and applied under the store lock"""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._operations: List[Tuple[str, Key, Optional[Document]]] = []

    def set(self, collection: str, doc_id: str, data: Document) -> "InMemoryWriteBatch":
        self._operations.append(("set", (collection, doc_id), copy.deepcopy(data)))
        return self

    def update(self, collection: str, doc_id: str, changes: Document) -> "InMemoryWriteBatch":
        self._operations.append(("update", (collection, doc_id), copy.deepcopy(changes)))
        return self

    def delete(self, collection: str, doc_id: str) -> "InMemoryWriteBatch":
        self._operations.append(("delete", (collection, doc_id), None))
        return self

    async def commit(self) -> None:
        async with self._store._lock:
            staged: Dict[Key, Optional[Document]] = {}
            for operation, (collection, doc_id), data in self._operations:
                key = (collection, doc_id)
                if operation == "set":
                    staged[key] = data
                elif operation == "update":
                    current = staged[key] if key in staged else self._store._collections.get(collection, {}).get(doc_id)
                    if current is None:
                        raise NotFoundError(collection, doc_id)
                    merged = copy.deepcopy(current)
                    merged.update(data)
                    staged[key] = merged
                else:
                    staged[key] = None
            self._store._apply(staged)
        self._operations = []


class InMemoryDocumentStore(DocumentStore):
    """In-memory implementation of DocumentStore

    One lock serialises transactions, batches and single writes. Reads
    outside a transaction are not locked.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = asyncio.Lock()
        self.writes_applied = 0

    def _apply(self, staged: Dict[Key, Optional[Document]]) -> None:
        for (collection, doc_id), document in staged.items():
            documents = self._collections.setdefault(collection, {})
            if document is None:
                documents.pop(doc_id, None)
            else:
                documents[doc_id] = document
            self.writes_applied += 1

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Find document by ID"""
        return copy.deepcopy(self._collections.get(collection, {}).get(doc_id))

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        """Create or replace document"""
        async with self._lock:
            self._apply({(collection, doc_id): copy.deepcopy(data)})

    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        """Merge fields into document"""
        async with self._lock:
            current = self._collections.get(collection, {}).get(doc_id)
            if current is None:
                raise NotFoundError(collection, doc_id)
            merged = copy.deepcopy(current)
            merged.update(copy.deepcopy(changes))
            self._apply({(collection, doc_id): merged})

    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete document"""
        async with self._lock:
            if doc_id not in self._collections.get(collection, {}):
                return False
            self._apply({(collection, doc_id): None})
            return True

    async def query(self, collection: str, **equals: Any) -> List[Document]:
        """Find documents by field equality"""
        documents = self._collections.get(collection, {})
        return [
            copy.deepcopy(document)
            for _, document in sorted(documents.items())
            if _matches(document, equals)
        ]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        """Serialised transaction; an exception in the body discards its writes"""
        async with self._lock:
            txn = InMemoryTransaction(self)
            yield txn
            self._apply(txn._writes)

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)
