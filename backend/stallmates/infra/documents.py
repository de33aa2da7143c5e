"""Document store used for profiles, requests, invites, games and posts.

Documents are JSON objects addressed by (collection, id). Every write bumps an
integer version so callers can do optimistic updates. Two backends exist: a
Postgres JSONB table for deployments and an in-process store for local tools
and tests. Both share the filter and transform semantics defined here.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import asyncpg

from stallmates.infra.postgres import connection, get_pool
from stallmates.settings import settings

logger = logging.getLogger(__name__)

IN_FILTER_LIMIT = 10
_OPERATORS = ("==", "!=", "in", ">", ">=", "<", "<=", "array_contains")


class DocumentStoreError(RuntimeError):
	"""Backend failure while reading or writing documents."""


class DocumentMissing(DocumentStoreError):
	def __init__(self, collection: str, doc_id: str) -> None:
		super().__init__(f"{collection}/{doc_id} not found")
		self.collection = collection
		self.doc_id = doc_id


class DocumentExists(DocumentStoreError):
	def __init__(self, collection: str, doc_id: str) -> None:
		super().__init__(f"{collection}/{doc_id} already exists")
		self.collection = collection
		self.doc_id = doc_id


class WriteConflict(DocumentStoreError):
	def __init__(self, collection: str, doc_id: str, expected: int, actual: int) -> None:
		super().__init__(f"{collection}/{doc_id} version {actual} != expected {expected}")
		self.collection = collection
		self.doc_id = doc_id
		self.expected = expected
		self.actual = actual


@dataclass(slots=True)
class Document:
	collection: str
	id: str
	data: Dict[str, Any]
	version: int = 1

	def get(self, key: str, default: Any = None) -> Any:
		return self.data.get(key, default)


@dataclass(frozen=True, slots=True)
class ArrayUnion:
	values: Tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class ArrayRemove:
	values: Tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class Increment:
	amount: float


def array_union(*values: Any) -> ArrayUnion:
	return ArrayUnion(tuple(values))


def array_remove(*values: Any) -> ArrayRemove:
	return ArrayRemove(tuple(values))


def increment(amount: float = 1) -> Increment:
	return Increment(amount)


@dataclass(frozen=True, slots=True)
class Filter:
	field: str
	op: str
	value: Any

	def __post_init__(self) -> None:
		if self.op not in _OPERATORS:
			raise DocumentStoreError(f"unsupported operator {self.op!r}")
		if self.op == "in":
			values = list(self.value)
			if not values or len(values) > IN_FILTER_LIMIT:
				raise DocumentStoreError(f"'in' filter takes 1..{IN_FILTER_LIMIT} values")

	def matches(self, data: Dict[str, Any]) -> bool:
		if self.field not in data:
			return False
		current = data[self.field]
		if self.op == "==":
			return current == self.value
		if self.op == "!=":
			return current != self.value
		if self.op == "in":
			return current in list(self.value)
		if self.op == "array_contains":
			return isinstance(current, list) and self.value in current
		if current is None or self.value is None:
			return False
		try:
			if self.op == ">":
				return current > self.value
			if self.op == ">=":
				return current >= self.value
			if self.op == "<":
				return current < self.value
			return current <= self.value
		except TypeError:
			return False


def where(field_name: str, op: str, value: Any) -> Filter:
	return Filter(field_name, op, value)


def apply_changes(data: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
	"""Return a copy of ``data`` with plain values and transforms applied."""
	result = copy.deepcopy(data)
	for key, change in changes.items():
		if isinstance(change, ArrayUnion):
			current = list(result.get(key) or [])
			for value in change.values:
				if value not in current:
					current.append(value)
			result[key] = current
		elif isinstance(change, ArrayRemove):
			removed = set(change.values)
			result[key] = [value for value in (result.get(key) or []) if value not in removed]
		elif isinstance(change, Increment):
			result[key] = (result.get(key) or 0) + change.amount
		else:
			result[key] = copy.deepcopy(change)
	return result


def _materialise(data: Dict[str, Any]) -> Dict[str, Any]:
	# set()/create() accept transforms too, applied against an empty document
	return apply_changes({}, data)


def _chunks(values: Sequence[Any], size: int = IN_FILTER_LIMIT) -> Iterable[List[Any]]:
	for start in range(0, len(values), size):
		yield list(values[start:start + size])


@dataclass(slots=True)
class _BatchOp:
	kind: str
	collection: str
	doc_id: str
	data: Dict[str, Any] = field(default_factory=dict)
	expected_version: Optional[int] = None


class WriteBatch:
	"""Collects writes and commits them all-or-nothing."""

	def __init__(self, store: "DocumentStore") -> None:
		self._store = store
		self._ops: List[_BatchOp] = []
		self._committed = False

	def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
		self._ops.append(_BatchOp("create", collection, doc_id, dict(data)))
		return self

	def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
		self._ops.append(_BatchOp("set", collection, doc_id, dict(data)))
		return self

	def update(
		self,
		collection: str,
		doc_id: str,
		changes: Dict[str, Any],
		*,
		expected_version: Optional[int] = None,
	) -> "WriteBatch":
		self._ops.append(_BatchOp("update", collection, doc_id, dict(changes), expected_version))
		return self

	def delete(self, collection: str, doc_id: str) -> "WriteBatch":
		self._ops.append(_BatchOp("delete", collection, doc_id))
		return self

	def __len__(self) -> int:
		return len(self._ops)

	async def commit(self) -> None:
		if self._committed:
			raise DocumentStoreError("batch already committed")
		self._committed = True
		if self._ops:
			await self._store._commit_batch(list(self._ops))


class DocumentStore:
	"""Interface shared by the memory and Postgres backends."""

	supports_batch: bool = True

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		raise NotImplementedError

	async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
		raise NotImplementedError

	async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
		raise NotImplementedError

	async def update(
		self,
		collection: str,
		doc_id: str,
		changes: Dict[str, Any],
		*,
		expected_version: Optional[int] = None,
	) -> Document:
		raise NotImplementedError

	async def delete(self, collection: str, doc_id: str) -> bool:
		raise NotImplementedError

	async def query(
		self,
		collection: str,
		filters: Sequence[Filter] = (),
		*,
		order_by: Optional[str] = None,
		descending: bool = False,
		limit: Optional[int] = None,
		start_after: Optional[Tuple[Any, str]] = None,
	) -> List[Document]:
		raise NotImplementedError

	async def _commit_batch(self, ops: List[_BatchOp]) -> None:
		raise NotImplementedError

	def batch(self) -> WriteBatch:
		if not self.supports_batch:
			raise DocumentStoreError("batched writes are not supported by this store")
		return WriteBatch(self)

	async def get_many(self, collection: str, doc_ids: Iterable[str]) -> List[Document]:
		"""Fetch documents by id in chunks of IN_FILTER_LIMIT; missing ids are skipped."""
		ordered = list(dict.fromkeys(doc_id for doc_id in doc_ids if doc_id))
		found: Dict[str, Document] = {}
		for chunk in _chunks(ordered):
			for doc in await self.query(collection, [where("__id__", "in", chunk)]):
				found[doc.id] = doc
		return [found[doc_id] for doc_id in ordered if doc_id in found]


def _with_id(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
	view = dict(data)
	view["__id__"] = doc_id
	return view


class MemoryDocumentStore(DocumentStore):
	"""Process-local store; every read returns a deep copy."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._collections: Dict[str, Dict[str, Tuple[Dict[str, Any], int]]] = {}

	async def reset(self) -> None:
		async with self._lock:
			self._collections.clear()

	def _table(self, collection: str) -> Dict[str, Tuple[Dict[str, Any], int]]:
		return self._collections.setdefault(collection, {})

	def _doc(self, collection: str, doc_id: str, entry: Tuple[Dict[str, Any], int]) -> Document:
		data, version = entry
		return Document(collection, doc_id, copy.deepcopy(data), version)

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		async with self._lock:
			entry = self._table(collection).get(doc_id)
			return self._doc(collection, doc_id, entry) if entry else None

	async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
		async with self._lock:
			return self._apply(_BatchOp("create", collection, doc_id, data), self._collections)

	async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
		async with self._lock:
			return self._apply(_BatchOp("set", collection, doc_id, data), self._collections)

	async def update(
		self,
		collection: str,
		doc_id: str,
		changes: Dict[str, Any],
		*,
		expected_version: Optional[int] = None,
	) -> Document:
		async with self._lock:
			op = _BatchOp("update", collection, doc_id, changes, expected_version)
			return self._apply(op, self._collections)

	async def delete(self, collection: str, doc_id: str) -> bool:
		async with self._lock:
			return self._table(collection).pop(doc_id, None) is not None

	async def query(
		self,
		collection: str,
		filters: Sequence[Filter] = (),
		*,
		order_by: Optional[str] = None,
		descending: bool = False,
		limit: Optional[int] = None,
		start_after: Optional[Tuple[Any, str]] = None,
	) -> List[Document]:
		async with self._lock:
			matched = [
				(doc_id, entry)
				for doc_id, entry in self._table(collection).items()
				if all(flt.matches(_with_id(doc_id, entry[0])) for flt in filters)
			]
		if order_by:
			matched = [item for item in matched if item[1][0].get(order_by) is not None]
			matched.sort(key=lambda item: (item[1][0][order_by], item[0]), reverse=descending)
			if start_after is not None:
				cursor = (start_after[0], start_after[1])
				if descending:
					matched = [item for item in matched if (item[1][0][order_by], item[0]) < cursor]
				else:
					matched = [item for item in matched if (item[1][0][order_by], item[0]) > cursor]
		else:
			matched.sort(key=lambda item: item[0])
		if limit is not None:
			matched = matched[: max(0, limit)]
		return [self._doc(collection, doc_id, entry) for doc_id, entry in matched]

	async def _commit_batch(self, ops: List[_BatchOp]) -> None:
		async with self._lock:
			staged = {
				name: dict(table) for name, table in self._collections.items()
			}
			for op in ops:
				self._apply(op, staged)
			self._collections = staged

	def _apply(self, op: _BatchOp, collections: Dict[str, Dict[str, Tuple[Dict[str, Any], int]]]) -> Document:
		table = collections.setdefault(op.collection, {})
		existing = table.get(op.doc_id)
		if op.kind == "delete":
			table.pop(op.doc_id, None)
			return Document(op.collection, op.doc_id, {}, 0)
		if op.kind == "create":
			if existing is not None:
				raise DocumentExists(op.collection, op.doc_id)
			entry = (_materialise(op.data), 1)
		elif op.kind == "set":
			entry = (_materialise(op.data), (existing[1] if existing else 0) + 1)
		else:
			if existing is None:
				raise DocumentMissing(op.collection, op.doc_id)
			if op.expected_version is not None and existing[1] != op.expected_version:
				raise WriteConflict(op.collection, op.doc_id, op.expected_version, existing[1])
			entry = (apply_changes(existing[0], op.data), existing[1] + 1)
		table[op.doc_id] = entry
		return self._doc(op.collection, op.doc_id, entry)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
	collection TEXT NOT NULL,
	id TEXT NOT NULL,
	data JSONB NOT NULL,
	version INTEGER NOT NULL DEFAULT 1,
	created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
	updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
	PRIMARY KEY (collection, id)
);
CREATE INDEX IF NOT EXISTS idx_documents_data ON documents USING GIN (data);
"""


def _row_to_document(row: asyncpg.Record) -> Document:
	data = row["data"]
	if isinstance(data, str):
		data = json.loads(data)
	return Document(row["collection"], row["id"], dict(data), int(row["version"]))


class PostgresDocumentStore(DocumentStore):
	"""JSONB-backed store; batches run inside one transaction."""

	def __init__(self, pool: Optional[asyncpg.Pool] = None) -> None:
		self._pool = pool
		self._schema_ready = False

	async def _get_pool(self) -> asyncpg.Pool:
		if self._pool is None:
			self._pool = await get_pool()
		return self._pool

	async def ensure_schema(self) -> None:
		if self._schema_ready:
			return
		async with connection(await self._get_pool()) as conn:
			await conn.execute(SCHEMA_SQL)
		self._schema_ready = True

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		async with connection(await self._get_pool()) as conn:
			row = await conn.fetchrow(
				"SELECT collection, id, data, version FROM documents WHERE collection=$1 AND id=$2",
				collection,
				doc_id,
			)
		return _row_to_document(row) if row else None

	async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
		async with connection(await self._get_pool()) as conn:
			return await self._apply(conn, _BatchOp("create", collection, doc_id, data))

	async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
		async with connection(await self._get_pool()) as conn:
			return await self._apply(conn, _BatchOp("set", collection, doc_id, data))

	async def update(
		self,
		collection: str,
		doc_id: str,
		changes: Dict[str, Any],
		*,
		expected_version: Optional[int] = None,
	) -> Document:
		async with connection(await self._get_pool(), transactional=True) as conn:
			op = _BatchOp("update", collection, doc_id, changes, expected_version)
			return await self._apply(conn, op)

	async def delete(self, collection: str, doc_id: str) -> bool:
		async with connection(await self._get_pool()) as conn:
			result = await conn.execute(
				"DELETE FROM documents WHERE collection=$1 AND id=$2",
				collection,
				doc_id,
			)
		return result.endswith(" 1")

	async def query(
		self,
		collection: str,
		filters: Sequence[Filter] = (),
		*,
		order_by: Optional[str] = None,
		descending: bool = False,
		limit: Optional[int] = None,
		start_after: Optional[Tuple[Any, str]] = None,
	) -> List[Document]:
		clauses = ["collection = $1"]
		args: List[Any] = [collection]

		def param(value: Any) -> str:
			args.append(value)
			return f"${len(args)}"

		for flt in filters:
			if flt.field == "__id__":
				target = "id"
				if flt.op == "in":
					clauses.append(f"id = ANY({param(list(flt.value))}::text[])")
				else:
					clauses.append(f"{target} {flt.op.replace('==', '=')} {param(str(flt.value))}")
				continue
			column = f"(data -> {param(flt.field)})"
			if flt.op == "in":
				encoded = [json.dumps(value) for value in flt.value]
				clauses.append(f"{column} = ANY({param(encoded)}::jsonb[])")
			elif flt.op == "array_contains":
				clauses.append(f"{column} @> {param(json.dumps([flt.value]))}::jsonb")
			else:
				operator = "=" if flt.op == "==" else ("<>" if flt.op == "!=" else flt.op)
				clauses.append(f"{column} {operator} {param(json.dumps(flt.value))}::jsonb")

		order_sql = "ORDER BY id ASC"
		if order_by:
			direction = "DESC" if descending else "ASC"
			order_column = f"(data -> {param(order_by)})"
			clauses.append(f"{order_column} IS NOT NULL AND {order_column} <> 'null'::jsonb")
			if start_after is not None:
				comparator = "<" if descending else ">"
				cursor_value = param(json.dumps(start_after[0]))
				cursor_id = param(start_after[1])
				clauses.append(f"({order_column}, id) {comparator} ({cursor_value}::jsonb, {cursor_id})")
			order_sql = f"ORDER BY {order_column} {direction}, id {direction}"

		sql = (
			"SELECT collection, id, data, version FROM documents WHERE "
			+ " AND ".join(clauses)
			+ f" {order_sql}"
		)
		if limit is not None:
			sql += f" LIMIT {param(max(0, int(limit)))}"
		async with connection(await self._get_pool()) as conn:
			rows = await conn.fetch(sql, *args)
		return [_row_to_document(row) for row in rows]

	async def _commit_batch(self, ops: List[_BatchOp]) -> None:
		async with connection(await self._get_pool(), transactional=True) as conn:
			for op in ops:
				await self._apply(conn, op)

	async def _apply(self, conn: asyncpg.Connection, op: _BatchOp) -> Document:
		if op.kind == "delete":
			await conn.execute(
				"DELETE FROM documents WHERE collection=$1 AND id=$2",
				op.collection,
				op.doc_id,
			)
			return Document(op.collection, op.doc_id, {}, 0)
		if op.kind == "create":
			row = await conn.fetchrow(
				"""
				INSERT INTO documents (collection, id, data, version)
				VALUES ($1, $2, $3::jsonb, 1)
				ON CONFLICT (collection, id) DO NOTHING
				RETURNING collection, id, data, version
				""",
				op.collection,
				op.doc_id,
				json.dumps(_materialise(op.data)),
			)
			if row is None:
				raise DocumentExists(op.collection, op.doc_id)
			return _row_to_document(row)
		if op.kind == "set":
			row = await conn.fetchrow(
				"""
				INSERT INTO documents (collection, id, data, version)
				VALUES ($1, $2, $3::jsonb, 1)
				ON CONFLICT (collection, id) DO UPDATE
				SET data = EXCLUDED.data, version = documents.version + 1, updated_at = NOW()
				RETURNING collection, id, data, version
				""",
				op.collection,
				op.doc_id,
				json.dumps(_materialise(op.data)),
			)
			return _row_to_document(row)
		current = await conn.fetchrow(
			"""
			SELECT collection, id, data, version FROM documents
			WHERE collection=$1 AND id=$2
			FOR UPDATE
			""",
			op.collection,
			op.doc_id,
		)
		if current is None:
			raise DocumentMissing(op.collection, op.doc_id)
		existing = _row_to_document(current)
		if op.expected_version is not None and existing.version != op.expected_version:
			raise WriteConflict(op.collection, op.doc_id, op.expected_version, existing.version)
		row = await conn.fetchrow(
			"""
			UPDATE documents
			SET data = $3::jsonb, version = version + 1, updated_at = NOW()
			WHERE collection=$1 AND id=$2
			RETURNING collection, id, data, version
			""",
			op.collection,
			op.doc_id,
			json.dumps(apply_changes(existing.data, op.data)),
		)
		return _row_to_document(row)


_store: Optional[DocumentStore] = None


def build_store(backend: Optional[str] = None) -> DocumentStore:
	kind = (backend or settings.document_backend).lower()
	if kind == "memory":
		return MemoryDocumentStore()
	if kind == "postgres":
		return PostgresDocumentStore()
	raise DocumentStoreError(f"unknown document backend {kind!r}")


def get_store() -> DocumentStore:
	global _store
	if _store is None:
		_store = build_store()
		logger.info("document store initialised", extra={"backend": type(_store).__name__})
	return _store


def set_store(store: Optional[DocumentStore]) -> None:
	global _store
	_store = store
