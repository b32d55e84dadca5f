"""
Achievement Content Store — document records holding the achievement body.

Two implementations share one interface:

    MongoContentStore     pymongo collection (production / development)
    InMemoryContentStore  process-local dict (tests, MongoDB-less dev)

Document shape (snake_case keys):

    {
        "_id": "<content id>",
        "reference_id": "...", "student_id": "...",
        "achievement_type": "competition", "title": "...", "description": "...",
        "details": {...}, "attachments": [...], "tags": [...],
        "points": 0, "level": "national" | None,
        "status_history": [...], "notifications": [...],
        "created_at": dt, "updated_at": dt, "deleted_at": dt | None,
    }

``status_history``, ``notifications`` and ``attachments`` only ever grow
through the ``append_*`` methods ($push in MongoDB).
"""

import copy
import logging
import threading
from datetime import datetime, timezone

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.exceptions import DependencyError, NotFoundError

logger = logging.getLogger(__name__)

_STORE = "content_store"

# Fields the owner may replace through update_content
EDITABLE_FIELDS = (
    "achievement_type",
    "title",
    "description",
    "details",
    "tags",
    "points",
    "level",
)


def _now():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# MongoDB
# ═══════════════════════════════════════════════════════════════
class MongoContentStore:
    """pymongo-backed content store."""

    def __init__(self, uri: str, db_name: str, collection: str = "achievements",
                 timeout_ms: int = 5000, client: MongoClient | None = None):
        self._client = client or MongoClient(uri, serverSelectionTimeoutMS=timeout_ms, tz_aware=True)
        self._collection = self._client[db_name][collection]
        logger.info("Content store bound to MongoDB %s.%s", db_name, collection)

    def ping(self) -> bool:
        try:
            self._client.admin.command("ping")
        except PyMongoError as exc:
            raise DependencyError(_STORE, "ping", exc) from exc
        return True

    def close(self):
        self._client.close()

    # ── Writes ────────────────────────────────────────────────────────────

    def insert_content(self, document: dict) -> str:
        try:
            self._collection.insert_one(document)
        except DuplicateKeyError:
            # Deterministic ids make a retried insert land on the same key
            logger.info("Content %s already present, treating insert as done", document["_id"])
        except PyMongoError as exc:
            logger.error("insert_content failed for %s: %s", document.get("_id"), exc)
            raise DependencyError(_STORE, "insert_content", exc) from exc
        return document["_id"]

    def update_content(self, content_id: str, fields: dict) -> None:
        changes = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        changes["updated_at"] = _now()
        result = self._write(
            "update_content",
            lambda: self._collection.update_one(
                {"_id": content_id, "deleted_at": None}, {"$set": changes},
            ),
        )
        self._require_match(result, content_id)

    def soft_delete_content(self, content_id: str, deleted_at: datetime | None = None) -> None:
        at = deleted_at or _now()
        result = self._write(
            "soft_delete_content",
            lambda: self._collection.update_one(
                {"_id": content_id}, {"$set": {"deleted_at": at, "updated_at": at}},
            ),
        )
        self._require_match(result, content_id)

    def append_history(self, content_id: str, entry: dict) -> None:
        self._push(content_id, "status_history", entry, "append_history")

    def append_notification(self, content_id: str, notification: dict) -> None:
        self._push(content_id, "notifications", notification, "append_notification")

    def append_attachment(self, content_id: str, attachment: dict) -> None:
        self._push(content_id, "attachments", attachment, "append_attachment")

    def _push(self, content_id, field, value, operation):
        result = self._write(
            operation,
            lambda: self._collection.update_one(
                {"_id": content_id},
                {"$push": {field: value}, "$set": {"updated_at": _now()}},
            ),
        )
        self._require_match(result, content_id)

    def _write(self, operation, fn):
        try:
            return fn()
        except PyMongoError as exc:
            logger.error("%s failed: %s", operation, exc)
            raise DependencyError(_STORE, operation, exc) from exc

    @staticmethod
    def _require_match(result, content_id):
        if result.matched_count == 0:
            raise NotFoundError(resource="AchievementContent", resource_id=content_id)

    # ── Reads ─────────────────────────────────────────────────────────────

    def find_content_by_id(self, content_id: str) -> dict | None:
        """Return the document (soft-deleted ones included) or None."""
        try:
            return self._collection.find_one({"_id": content_id})
        except PyMongoError as exc:
            raise DependencyError(_STORE, "find_content_by_id", exc) from exc

    def find_content_by_ids(self, content_ids) -> dict:
        """Map content id → live document for the given ids."""
        content_ids = list(content_ids)
        if not content_ids:
            return {}
        try:
            cursor = self._collection.find({"_id": {"$in": content_ids}, "deleted_at": None})
            return {doc["_id"]: doc for doc in cursor}
        except PyMongoError as exc:
            raise DependencyError(_STORE, "find_content_by_ids", exc) from exc

    def find_content_by_student_ids(self, student_ids) -> list[dict]:
        student_ids = list(student_ids)
        if not student_ids:
            return []
        try:
            cursor = self._collection.find(
                {"student_id": {"$in": student_ids}, "deleted_at": None}
            ).sort("created_at", -1)
            return list(cursor)
        except PyMongoError as exc:
            raise DependencyError(_STORE, "find_content_by_student_ids", exc) from exc


# ═══════════════════════════════════════════════════════════════
# In-memory
# ═══════════════════════════════════════════════════════════════
class InMemoryContentStore:
    """Dict-backed content store with the same semantics as MongoContentStore.

    Documents are deep-copied on the way in and out so callers can never
    mutate stored state (mirrors a round trip through BSON).
    """

    def __init__(self):
        self._docs: dict[str, dict] = {}
        self._lock = threading.Lock()

    def ping(self) -> bool:
        return True

    def close(self):
        pass

    def clear(self):
        with self._lock:
            self._docs.clear()

    def insert_content(self, document: dict) -> str:
        with self._lock:
            if document["_id"] in self._docs:
                logger.info("Content %s already present, treating insert as done", document["_id"])
            else:
                self._docs[document["_id"]] = copy.deepcopy(document)
        return document["_id"]

    def update_content(self, content_id: str, fields: dict) -> None:
        with self._lock:
            doc = self._docs.get(content_id)
            if doc is None or doc.get("deleted_at") is not None:
                raise NotFoundError(resource="AchievementContent", resource_id=content_id)
            for key, value in fields.items():
                if key in EDITABLE_FIELDS:
                    doc[key] = copy.deepcopy(value)
            doc["updated_at"] = _now()

    def soft_delete_content(self, content_id: str, deleted_at: datetime | None = None) -> None:
        at = deleted_at or _now()
        with self._lock:
            doc = self._get_locked(content_id)
            doc["deleted_at"] = at
            doc["updated_at"] = at

    def append_history(self, content_id: str, entry: dict) -> None:
        self._push(content_id, "status_history", entry)

    def append_notification(self, content_id: str, notification: dict) -> None:
        self._push(content_id, "notifications", notification)

    def append_attachment(self, content_id: str, attachment: dict) -> None:
        self._push(content_id, "attachments", attachment)

    def _push(self, content_id, field, value):
        with self._lock:
            doc = self._get_locked(content_id)
            doc.setdefault(field, []).append(copy.deepcopy(value))
            doc["updated_at"] = _now()

    def _get_locked(self, content_id):
        doc = self._docs.get(content_id)
        if doc is None:
            raise NotFoundError(resource="AchievementContent", resource_id=content_id)
        return doc

    def find_content_by_id(self, content_id: str) -> dict | None:
        with self._lock:
            doc = self._docs.get(content_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find_content_by_ids(self, content_ids) -> dict:
        wanted = set(content_ids)
        with self._lock:
            return {
                cid: copy.deepcopy(doc)
                for cid, doc in self._docs.items()
                if cid in wanted and doc.get("deleted_at") is None
            }

    def find_content_by_student_ids(self, student_ids) -> list[dict]:
        wanted = set(student_ids)
        with self._lock:
            docs = [
                copy.deepcopy(doc)
                for doc in self._docs.values()
                if doc.get("student_id") in wanted and doc.get("deleted_at") is None
            ]
        docs.sort(key=lambda d: d["created_at"], reverse=True)
        return docs


def build_content_store(app_config) -> "MongoContentStore | InMemoryContentStore":
    """Pick the content store backend from CONTENT_STORE_BACKEND."""
    backend = (app_config.get("CONTENT_STORE_BACKEND") or "mongo").lower()
    if backend == "memory":
        logger.info("Content store: in-memory backend")
        return InMemoryContentStore()
    if backend == "mongo":
        return MongoContentStore(
            uri=app_config["MONGODB_URI"],
            db_name=app_config["MONGO_DB_NAME"],
            collection=app_config.get("MONGO_COLLECTION", "achievements"),
            timeout_ms=app_config.get("MONGO_TIMEOUT_MS", 5000),
        )
    raise ValueError(f"Unknown CONTENT_STORE_BACKEND: {backend!r}")
