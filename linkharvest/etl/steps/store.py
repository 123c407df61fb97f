"""MongoDB-backed dedup store for harvested links."""
from __future__ import annotations

import enum
import logging
from typing import Any, Iterable, List, Tuple

from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError
from pymongo.server_api import ServerApi

from linkharvest.domain.documents import LinkDocument, ValidationError

LOGGER = logging.getLogger(__name__)

UNIQUE_INDEX_NAME = "uniq_link"


class AcceptOutcome(str, enum.Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    STORE_ERROR = "store_error"
    FILTERED = "filtered"


class StoreBootstrapError(RuntimeError):
    """Raised when the store cannot be connected or its unique index created."""


class LinkStore:
    """Accepts each distinct link value at most once.

    Uniqueness is enforced by a unique index on ``link`` so that concurrent
    sessions racing on the same value see exactly one ``INSERTED``. The store
    handle is shared by every session and is safe to call from worker threads.
    """

    def __init__(
        self,
        mongo_url: str,
        *,
        db_name: str = "askeladd",
        collection: str = "waitforplot",
        accept_prefix: str | None = None,
        server_selection_timeout_ms: int = 5000,
    ) -> None:
        self.mongo_url = mongo_url
        self.db_name = db_name
        self.collection_name = collection
        self.accept_prefix = accept_prefix or None
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self._client: Any = None
        self._collection: Any = None

    @property
    def connected(self) -> bool:
        return self._collection is not None

    def connect(self) -> None:
        if self._client is not None:
            return
        client = MongoClient(
            self.mongo_url,
            server_api=ServerApi("1", strict=True, deprecation_errors=True),
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
        )
        try:
            client.admin.command("ping")
        except PyMongoError as exc:
            client.close()
            raise StoreBootstrapError(f"Could not connect to MongoDB at {self.mongo_url}") from exc
        self._client = client
        self._collection = client[self.db_name][self.collection_name]
        LOGGER.info("Connected to MongoDB %s.%s", self.db_name, self.collection_name)

    def ensure_unique_index(self, field: str = LinkDocument.unique_field) -> None:
        """Create the unique index on ``field``; failure is fatal to startup."""
        collection = self._require_collection()
        try:
            collection.create_index([(field, ASCENDING)], unique=True, name=UNIQUE_INDEX_NAME)
        except PyMongoError as exc:
            raise StoreBootstrapError(f"Could not create unique index on '{field}'") from exc
        LOGGER.info("Unique index ensured on the '%s' field.", field)

    def accept(self, link: str, category: str | None = None) -> AcceptOutcome:
        """Record ``link`` if it has never been accepted before."""
        if self.accept_prefix and self.accept_prefix not in link:
            LOGGER.debug("Link %s does not match prefix %s; skipping", link, self.accept_prefix)
            return AcceptOutcome.FILTERED
        try:
            document = LinkDocument.from_link(link, category)
        except ValidationError as exc:
            LOGGER.warning("Rejected link %r: %s", link, exc)
            return AcceptOutcome.FILTERED

        collection = self._require_collection()
        try:
            result = collection.insert_one(document.to_mongo())
        except DuplicateKeyError:
            LOGGER.debug("Duplicate link found: %s. Skipping insertion.", link)
            return AcceptOutcome.DUPLICATE
        except PyMongoError as exc:
            LOGGER.warning("Error inserting link %s: %s", link, exc)
            return AcceptOutcome.STORE_ERROR
        LOGGER.debug("New document inserted with _id: %s", result.inserted_id)
        return AcceptOutcome.INSERTED

    def accept_all(
        self, links: Iterable[str], category: str | None = None
    ) -> List[Tuple[str, AcceptOutcome]]:
        return [(link, self.accept(link, category)) for link in links]

    def close(self) -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        self._collection = None
        client.close()
        LOGGER.info("Closed MongoDB connection")

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise StoreBootstrapError("LinkStore.connect() must be called before use.")
        return self._collection
