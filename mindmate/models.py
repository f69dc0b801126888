import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def _new_id():
    return uuid.uuid4().hex


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(String(32), primary_key=True, default=_new_id)
    content = Column(Text, nullable=False)
    mood = Column(Text, nullable=False, default="Neutral")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "content": self.content,
            "mood": self.mood,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<JournalEntry id={self.id}>"


class MoodRecord(Base):
    __tablename__ = "mood_records"

    id = Column(String(32), primary_key=True, default=_new_id)
    # Free-form: not checked against the classifier's labels.
    mood = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "mood": self.mood,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<MoodRecord id={self.id} mood={self.mood!r}>"
