import logging
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeout

from .errors import InvalidInput, NotFound, StoreUnavailable
from .models import JournalEntry, MoodRecord, utcnow
from .sentiment_service import classify

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 10

# Fields a client may overwrite on a journal entry.
UPDATABLE_FIELDS = ("content", "mood")


def validate_content(content):
    """Return the content if it is a string of at least 10 non-blank characters."""
    if not isinstance(content, str) or len(content.strip()) < MIN_CONTENT_LENGTH:
        raise InvalidInput(
            f"Journal content must be at least {MIN_CONTENT_LENGTH} characters"
        )
    return content


def _is_connection_error(exc):
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeout)):
        return True
    return bool(getattr(exc, "connection_invalidated", False))


def validate_mood(mood):
    if not isinstance(mood, str) or not mood.strip():
        raise InvalidInput("Mood is required")
    return mood


class EntryStore:
    """Journal entries and mood records, reached through a ConnectionCache."""

    def __init__(self, cache, classifier=classify, clock=utcnow):
        self._cache = cache
        self._classify = classifier
        self._clock = clock

    @contextmanager
    def _session(self):
        handle = self._cache.get_connection()
        session = handle.session()
        try:
            yield session
        except (DBAPIError, PoolTimeout) as exc:
            session.rollback()
            if not _is_connection_error(exc):
                raise
            logger.error("Store operation failed: %s", exc)
            # Pool exhaustion says nothing about the connection itself.
            if not isinstance(exc, PoolTimeout):
                self._cache.invalidate(handle)
            raise StoreUnavailable(detail={"reason": str(exc)}) from exc
        finally:
            session.close()

    # ---------- Journal entries ----------

    def create_entry(self, content):
        validate_content(content)
        mood = self._classify(content)
        with self._session() as session:
            entry = JournalEntry(content=content, mood=mood.label, created_at=self._clock())
            session.add(entry)
            session.commit()
            logger.info("Created journal entry %s (%s, score=%d)", entry.id, mood.label, mood.score)
            return entry.to_dict()

    def list_entries(self):
        """All entries, newest first."""
        with self._session() as session:
            rows = session.scalars(
                select(JournalEntry).order_by(JournalEntry.created_at.desc())
            ).all()
            return [row.to_dict() for row in rows]

    def get_entry(self, entry_id):
        with self._session() as session:
            entry = session.get(JournalEntry, entry_id)
            if entry is None:
                raise NotFound()
            return entry.to_dict()

    def update_entry(self, entry_id, patch):
        changes = {}
        for name in UPDATABLE_FIELDS:
            if name in patch:
                if not isinstance(patch[name], str):
                    raise InvalidInput(f"'{name}' must be a string")
                if name == "content":
                    validate_content(patch[name])
                changes[name] = patch[name]

        with self._session() as session:
            entry = session.get(JournalEntry, entry_id)
            if entry is None:
                raise NotFound()
            for name, value in changes.items():
                setattr(entry, name, value)
            session.commit()
            return entry.to_dict()

    def delete_entry(self, entry_id):
        with self._session() as session:
            entry = session.get(JournalEntry, entry_id)
            if entry is None:
                raise NotFound()
            session.delete(entry)
            session.commit()
            logger.info("Deleted journal entry %s", entry_id)

    # ---------- Mood records ----------

    def create_mood(self, mood):
        validate_mood(mood)
        with self._session() as session:
            record = MoodRecord(mood=mood, created_at=self._clock())
            session.add(record)
            session.commit()
            return record.to_dict()

    def list_moods(self):
        with self._session() as session:
            rows = session.scalars(
                select(MoodRecord).order_by(MoodRecord.created_at.desc())
            ).all()
            return [row.to_dict() for row in rows]
