"""
MongoDB persistence gateway for event records.

Documents are keyed by ``(external_id, source)`` with a unique index, so
writing the same event twice updates it in place. Every write refreshes
``updated_at`` and ``scraped_at``; ``created_at`` is only set on insert.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import certifi
import pytz
from dateutil import parser as date_parser
from pymongo import ASCENDING, MongoClient, ReturnDocument, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from cartelera.config import MongoDBSettings, settings
from cartelera.exceptions import ConfigurationError
from cartelera.schema_adapter import EventRecord

logger = logging.getLogger(__name__)

NATURAL_KEY_INDEX = "idx_external_id_source_unique"


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


def _iso_instant(value: datetime) -> str:
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(pytz.utc).replace(microsecond=0).isoformat()


class MongoEventGateway:
    def __init__(self, collection: Collection, client: Optional[MongoClient] = None,
                 clock: Callable[[], datetime] = _utc_now):
        self.collection = collection
        self.client = client
        self.clock = clock

    @classmethod
    def from_settings(cls, mongo_settings: Optional[MongoDBSettings] = None) -> "MongoEventGateway":
        """Connects using MONGODB_URI. Raises ConfigurationError if it is not set."""
        mongo_settings = mongo_settings or settings.mongodb
        if not mongo_settings.uri:
            raise ConfigurationError("MONGODB_URI is not set; cannot connect to the event store.")

        tls_options = {"tls": True, "tlsCAFile": certifi.where()} if "mongodb+srv" in mongo_settings.uri else {}
        client = MongoClient(
            mongo_settings.uri,
            serverSelectionTimeoutMS=mongo_settings.server_selection_timeout_ms,
            **tls_options,
        )
        collection = client[mongo_settings.database][mongo_settings.events_collection]
        logger.info(f"Using MongoDB collection '{mongo_settings.database}.{mongo_settings.events_collection}'.")
        return cls(collection, client=client)

    def ensure_indexes(self) -> None:
        self.collection.create_index(
            [("external_id", ASCENDING), ("source", ASCENDING)],
            unique=True,
            name=NATURAL_KEY_INDEX,
        )
        self.collection.create_index([("source", ASCENDING), ("start_date", ASCENDING)], name="idx_source_start_date")

    def lookup_known_external_ids(self, source: str, not_before: Optional[datetime] = None) -> Set[str]:
        """
        External ids stored for ``source`` whose start date is on or after
        ``not_before`` (now by default). Past events are left out so that
        re-listed events get scraped again. A failed query yields an empty set.
        """
        threshold = _iso_instant(not_before or self.clock())
        try:
            cursor = self.collection.find(
                {"source": source, "start_date": {"$gte": threshold}},
                {"external_id": 1, "_id": 0},
            )
            return {doc["external_id"] for doc in cursor if doc.get("external_id")}
        except PyMongoError as e:
            logger.error(f"Error fetching existing event ids for '{source}': {e}")
            return set()

    def _update_for(self, record: EventRecord, now: datetime) -> Tuple[Dict, Dict]:
        document = record.to_document()
        key = {"external_id": document["external_id"], "source": document["source"]}
        update = {
            "$set": {**document, "updated_at": now, "scraped_at": now},
            "$setOnInsert": {"created_at": now},
        }
        return key, update

    def upsert(self, record: EventRecord) -> Dict:
        key, update = self._update_for(record, self.clock())
        stored = self.collection.find_one_and_update(
            key, update, upsert=True, return_document=ReturnDocument.AFTER,
        )
        logger.info(f"Upserted event: {record.title} ({record.source}/{record.external_id})")
        return stored

    def bulk_upsert(self, records: Iterable[EventRecord]) -> int:
        now = self.clock()
        operations: List[UpdateOne] = []
        for record in records:
            key, update = self._update_for(record, now)
            operations.append(UpdateOne(key, update, upsert=True))
        if not operations:
            return 0

        result = self.collection.bulk_write(operations, ordered=False)
        written = result.upserted_count + result.matched_count
        logger.info(f"Bulk upserted {written} events")
        return written

    def should_scrape(self, external_id: str, source: str) -> Tuple[bool, str]:
        existing = self.collection.find_one({"external_id": external_id, "source": source}, {"start_date": 1})
        if not existing:
            return True, "new_event"

        start_date = existing.get("start_date")
        if start_date:
            start = date_parser.isoparse(start_date)
            if start.tzinfo is None:
                start = pytz.utc.localize(start)
            now = self.clock()
            if now.tzinfo is None:
                now = pytz.utc.localize(now)
            if start < now:
                return False, "past_event"

        return False, "already_exists"

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            logger.debug("MongoDB client closed.")
