"""Key-value store backends for vocabulary and category statistics.

The classifier never touches storage directly: it talks to a
:class:`KeyValueStore`, which exposes the token-set and category-record
operations the statistical core needs. Two backends are provided:

- :class:`MemoryStore` keeps everything in dicts and can be saved to and
  loaded from a JSON snapshot.
- :class:`SQLiteStore` persists to a SQLite database file, running each
  batch of writes in a single transaction.

Neither backend locks. Callers sharing one store between threads or
processes must serialize writers themselves.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .errors import StoreError
from .models import CategoryRecord, Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"


class KeyValueStore(ABC):
    """Abstract storage contract required by the classifier.

    Subclasses implement the primitives; :meth:`get_or_create`,
    :meth:`seen_count`, :meth:`purge_below`, :meth:`to_dict` and
    :meth:`save` are built on top of them and may be overridden when a
    backend can do better.
    """

    # -- token set -----------------------------------------------------

    @abstractmethod
    def has_token(self, token: str) -> bool: ...

    @abstractmethod
    def add_token(self, token: str) -> None: ...

    @abstractmethod
    def remove_token(self, token: str) -> None:
        """Drop the token and its seen counters. Missing tokens are ignored."""

    @abstractmethod
    def token_count(self) -> int: ...

    @abstractmethod
    def tokens(self) -> list[str]:
        """All known tokens, in insertion order, as a fresh list."""

    @abstractmethod
    def increment_seen(self, token: str, category: str) -> None:
        """Bump the per-(token, category) observation counter by one."""

    @abstractmethod
    def seen_counts(self, token: str) -> dict[str, int]: ...

    def seen_count(self, token: str, category: str) -> int:
        return self.seen_counts(token).get(category, 0)

    # -- category records ----------------------------------------------

    @abstractmethod
    def categories(self) -> list[str]:
        """All category names, in creation order, as a fresh list."""

    @abstractmethod
    def get_record(self, category: str) -> CategoryRecord | None:
        """Return a detached copy of the category's record, or None."""

    @abstractmethod
    def create_record(self, category: str) -> None:
        """Create an empty record unless the category already exists."""

    @abstractmethod
    def totals(self, category: str) -> tuple[int, int]:
        """Return ``(total_tokens, examples)``; ``(0, 0)`` when absent."""

    @abstractmethod
    def upsert(self, category: str, token: str) -> None:
        """Record one trained occurrence of ``token`` in ``category``.

        Creates the category when needed, then increments the token count,
        ``total_tokens`` and ``examples`` by one as a single write. The
        token is added to the vocabulary and its seen counter bumped.
        """

    @abstractmethod
    def decrement(self, category: str, token: str) -> None:
        """Decrement the token count, ``total_tokens`` and ``examples`` by one.

        ``examples`` never drops below zero.
        No cleanup happens here; a no-op when the token is not trained in
        the category.
        """

    @abstractmethod
    def delete_token(self, category: str, token: str) -> None:
        """Remove the token entry, subtracting its count from ``total_tokens``."""

    @abstractmethod
    def delete_category(self, category: str) -> None: ...

    @abstractmethod
    def token_frequency(self, token: str, category: str) -> int: ...

    @abstractmethod
    def snapshot(self) -> Snapshot:
        """Read ``(category_count, vocab_size, total_examples)`` at once."""

    @contextmanager
    def batch(self) -> Iterator["KeyValueStore"]:
        """Group several writes. The base implementation is a no-op boundary."""
        yield self

    def close(self) -> None:
        """Release backend resources. Nothing to do by default."""

    # -- derived operations --------------------------------------------

    def get_or_create(self, category: str) -> CategoryRecord:
        record = self.get_record(category)
        if record is None:
            self.create_record(category)
            record = CategoryRecord()
        return record

    def purge_below(self, token: str, threshold: float) -> bool:
        """Remove ``token`` from every category where its count is <= threshold.

        Categories left with no tokens are deleted. Returns True when the
        token is no longer present in any category.
        """
        present = False
        with self.batch():
            for category in self.categories():
                count = self.token_frequency(token, category)
                if count < 1:
                    continue
                if count <= threshold:
                    self.delete_token(category, token)
                    if self.totals(category)[0] < 1:
                        self.delete_category(category)
                else:
                    present = True
        return not present

    def to_dict(self) -> dict:
        """Serialize the whole store to a JSON-compatible dict."""
        categories: dict[str, dict] = {}
        for category in self.categories():
            record = self.get_record(category)
            if record is not None:
                categories[category] = record.to_dict()
        return {
            "version": SNAPSHOT_VERSION,
            "vocab": {token: self.seen_counts(token) for token in self.tokens()},
            "categories": categories,
        }

    def save(self, path: str | Path) -> None:
        """Write a JSON snapshot of the store to ``path``."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug("Saved store snapshot to %s", path)

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class MemoryStore(KeyValueStore):
    """Dict-backed store. Fast, process-local, optionally saved as JSON."""

    def __init__(self) -> None:
        # insertion-ordered token set
        self._tokens: dict[str, None] = {}
        self._seen: dict[str, dict[str, int]] = {}
        self._data: dict[str, CategoryRecord] = {}

    def has_token(self, token: str) -> bool:
        return token in self._tokens

    def add_token(self, token: str) -> None:
        self._tokens.setdefault(token, None)

    def remove_token(self, token: str) -> None:
        self._tokens.pop(token, None)
        self._seen.pop(token, None)

    def token_count(self) -> int:
        return len(self._tokens)

    def tokens(self) -> list[str]:
        return list(self._tokens)

    def increment_seen(self, token: str, category: str) -> None:
        seen = self._seen.setdefault(token, {})
        seen[category] = seen.get(category, 0) + 1

    def seen_counts(self, token: str) -> dict[str, int]:
        return dict(self._seen.get(token, {}))

    def categories(self) -> list[str]:
        return list(self._data)

    def get_record(self, category: str) -> CategoryRecord | None:
        record = self._data.get(category)
        return record.copy() if record is not None else None

    def create_record(self, category: str) -> None:
        self._data.setdefault(category, CategoryRecord())

    def totals(self, category: str) -> tuple[int, int]:
        record = self._data.get(category)
        if record is None:
            return 0, 0
        return record.total_tokens, record.examples

    def upsert(self, category: str, token: str) -> None:
        record = self._data.setdefault(category, CategoryRecord())
        record.tokens[token] = record.tokens.get(token, 0) + 1
        record.total_tokens += 1
        record.examples += 1
        self.add_token(token)
        self.increment_seen(token, category)

    def decrement(self, category: str, token: str) -> None:
        record = self._data.get(category)
        if record is None or token not in record.tokens:
            return
        record.tokens[token] -= 1
        record.total_tokens -= 1
        record.examples = max(record.examples - 1, 0)

    def delete_token(self, category: str, token: str) -> None:
        record = self._data.get(category)
        if record is None:
            return
        count = record.tokens.pop(token, 0)
        record.total_tokens -= count

    def delete_category(self, category: str) -> None:
        self._data.pop(category, None)

    def token_frequency(self, token: str, category: str) -> int:
        record = self._data.get(category)
        return record.frequency(token) if record is not None else 0

    def snapshot(self) -> Snapshot:
        total_examples = sum(r.examples for r in self._data.values())
        return Snapshot(len(self._data), len(self._tokens), total_examples)

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryStore":
        """Rebuild a store from :meth:`KeyValueStore.to_dict` output."""
        if data.get("version") != SNAPSHOT_VERSION:
            raise StoreError(f"Unsupported snapshot version: {data.get('version')!r}")
        store = cls()
        for token, seen in data.get("vocab", {}).items():
            store._tokens[token] = None
            if seen:
                store._seen[token] = {str(c): int(n) for c, n in seen.items()}
        for category, record in data.get("categories", {}).items():
            store._data[category] = CategoryRecord.from_dict(record)
        return store

    @classmethod
    def load(cls, path: str | Path) -> "MemoryStore":
        """Load a store from a JSON snapshot written by :meth:`save`."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"Invalid store snapshot {path}: {e}") from e
        except OSError as e:
            raise StoreError(f"Cannot read store snapshot {path}: {e}") from e
        return cls.from_dict(data)


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

SCHEMA_VERSION = 1

DDL = """
CREATE TABLE IF NOT EXISTS meta (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS vocab (
  token TEXT PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS seen (
  token TEXT NOT NULL,
  category TEXT NOT NULL,
  count INTEGER NOT NULL,
  PRIMARY KEY (token, category)
);

CREATE TABLE IF NOT EXISTS categories (
  name TEXT PRIMARY KEY,
  total_tokens INTEGER NOT NULL DEFAULT 0,
  examples INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS category_tokens (
  category TEXT NOT NULL,
  token TEXT NOT NULL,
  count INTEGER NOT NULL,
  PRIMARY KEY (category, token)
);

CREATE INDEX IF NOT EXISTS idx_category_tokens_token ON category_tokens(token);
"""


class SQLiteStore(KeyValueStore):
    """SQLite-backed store.

    Statements run in autocommit mode; :meth:`batch` opens one
    transaction around everything inside it (nested batches join the
    outer one) and rolls it back if an exception escapes.

    Args:
        path: Database file, or ``":memory:"`` for a throwaway database.
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        try:
            self._conn = sqlite3.connect(self.path, isolation_level=None)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open store {self.path}: {e}") from e
        try:
            self._conn.executescript(DDL)
            self._check_schema()
        except sqlite3.Error as e:
            self._conn.close()
            raise StoreError(f"Cannot open store {self.path}: {e}") from e
        except StoreError:
            self._conn.close()
            raise
        self._depth = 0
        logger.debug("Opened SQLite store at %s", self.path)

    def _check_schema(self) -> None:
        row = self._conn.execute(
            "SELECT value FROM meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO meta(key, value) VALUES('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )
        elif row[0] != str(SCHEMA_VERSION):
            raise StoreError(
                f"Store {self.path} has schema version {row[0]}, expected {SCHEMA_VERSION}"
            )

    @contextmanager
    def batch(self) -> Iterator["SQLiteStore"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._conn.execute("BEGIN")
        self._depth = 1
        try:
            yield self
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        else:
            self._conn.execute("COMMIT")
        finally:
            self._depth = 0

    def close(self) -> None:
        self._conn.close()
        logger.debug("Closed SQLite store at %s", self.path)

    def _scalar(self, sql: str, params: tuple = ()) -> int | None:
        row = self._conn.execute(sql, params).fetchone()
        return row[0] if row is not None else None

    # -- token set -----------------------------------------------------

    def has_token(self, token: str) -> bool:
        return self._scalar("SELECT 1 FROM vocab WHERE token = ?", (token,)) is not None

    def add_token(self, token: str) -> None:
        self._conn.execute("INSERT OR IGNORE INTO vocab(token) VALUES(?)", (token,))

    def remove_token(self, token: str) -> None:
        with self.batch():
            self._conn.execute("DELETE FROM vocab WHERE token = ?", (token,))
            self._conn.execute("DELETE FROM seen WHERE token = ?", (token,))

    def token_count(self) -> int:
        return self._scalar("SELECT COUNT(*) FROM vocab") or 0

    def tokens(self) -> list[str]:
        rows = self._conn.execute("SELECT token FROM vocab ORDER BY rowid")
        return [row[0] for row in rows]

    def increment_seen(self, token: str, category: str) -> None:
        self._conn.execute(
            "INSERT INTO seen(token, category, count) VALUES(?, ?, 1) "
            "ON CONFLICT(token, category) DO UPDATE SET count = count + 1",
            (token, category),
        )

    def seen_counts(self, token: str) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT category, count FROM seen WHERE token = ? ORDER BY rowid", (token,)
        )
        return {category: count for category, count in rows}

    # -- category records ----------------------------------------------

    def categories(self) -> list[str]:
        rows = self._conn.execute("SELECT name FROM categories ORDER BY rowid")
        return [row[0] for row in rows]

    def get_record(self, category: str) -> CategoryRecord | None:
        row = self._conn.execute(
            "SELECT total_tokens, examples FROM categories WHERE name = ?", (category,)
        ).fetchone()
        if row is None:
            return None
        rows = self._conn.execute(
            "SELECT token, count FROM category_tokens WHERE category = ? ORDER BY rowid",
            (category,),
        )
        return CategoryRecord(
            tokens={token: count for token, count in rows},
            total_tokens=row[0],
            examples=row[1],
        )

    def create_record(self, category: str) -> None:
        self._conn.execute("INSERT OR IGNORE INTO categories(name) VALUES(?)", (category,))

    def totals(self, category: str) -> tuple[int, int]:
        row = self._conn.execute(
            "SELECT total_tokens, examples FROM categories WHERE name = ?", (category,)
        ).fetchone()
        return (row[0], row[1]) if row is not None else (0, 0)

    def upsert(self, category: str, token: str) -> None:
        with self.batch():
            self._conn.execute(
                "INSERT INTO categories(name, total_tokens, examples) VALUES(?, 1, 1) "
                "ON CONFLICT(name) DO UPDATE SET "
                "total_tokens = total_tokens + 1, examples = examples + 1",
                (category,),
            )
            self._conn.execute(
                "INSERT INTO category_tokens(category, token, count) VALUES(?, ?, 1) "
                "ON CONFLICT(category, token) DO UPDATE SET count = count + 1",
                (category, token),
            )
            self.add_token(token)
            self.increment_seen(token, category)

    def decrement(self, category: str, token: str) -> None:
        with self.batch():
            cur = self._conn.execute(
                "UPDATE category_tokens SET count = count - 1 "
                "WHERE category = ? AND token = ?",
                (category, token),
            )
            if cur.rowcount:
                self._conn.execute(
                    "UPDATE categories SET total_tokens = total_tokens - 1, "
                    "examples = MAX(examples - 1, 0) WHERE name = ?",
                    (category,),
                )

    def delete_token(self, category: str, token: str) -> None:
        with self.batch():
            count = self._scalar(
                "SELECT count FROM category_tokens WHERE category = ? AND token = ?",
                (category, token),
            )
            if count is None:
                return
            self._conn.execute(
                "DELETE FROM category_tokens WHERE category = ? AND token = ?",
                (category, token),
            )
            self._conn.execute(
                "UPDATE categories SET total_tokens = total_tokens - ? WHERE name = ?",
                (count, category),
            )

    def delete_category(self, category: str) -> None:
        with self.batch():
            self._conn.execute("DELETE FROM category_tokens WHERE category = ?", (category,))
            self._conn.execute("DELETE FROM categories WHERE name = ?", (category,))

    def token_frequency(self, token: str, category: str) -> int:
        count = self._scalar(
            "SELECT count FROM category_tokens WHERE category = ? AND token = ?",
            (category, token),
        )
        return count or 0

    def snapshot(self) -> Snapshot:
        category_count, total_examples = self._conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(examples), 0) FROM categories"
        ).fetchone()
        return Snapshot(category_count, self.token_count(), total_examples)
