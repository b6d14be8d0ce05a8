"""
SQL record store (SQLAlchemy).

Schema (one database file per bag):

    topics(id, name, type, serialization_format, bbr_nonce, bbr_digest)
    messages(id, topic_id, timestamp, data, bbr_digest)
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, LargeBinary, String, create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.errors import PersistenceError
from ..core.models import SerializedMessage, TopicMetadata
from .base import BagSummary, RecordStore, StoredMessage, StoredTopic, TopicSummary

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Shared declarative base for bag tables."""

    pass


class TopicRow(Base):
    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    serialization_format: Mapped[str] = mapped_column(String, nullable=False)
    bbr_nonce: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    bbr_digest: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    def to_stored(self) -> StoredTopic:
        return StoredTopic(
            id=self.id,
            topic=TopicMetadata(self.name, self.type, self.serialization_format),
            seed_nonce=self.bbr_nonce,
            digest=self.bbr_digest,
        )


class MessageRow(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    bbr_digest: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class SqlRecordStore(RecordStore):
    """
    Record store on any SQLAlchemy database (SQLite by default).

    Writes are serialized by a store-level lock; each write commits in its
    own transaction before returning.
    """

    def __init__(self, url: str, create: bool = True, echo: bool = False) -> None:
        """
        Args:
            url: SQLAlchemy URL (e.g. "sqlite:///bag/bag.db3")
            create: Create tables if missing
            echo: Log SQL statements
        """
        self.url = url
        if _is_memory_url(url):
            # one shared connection, otherwise each thread sees its own empty database
            self.engine = create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif url.startswith("sqlite"):
            self.engine = create_engine(
                url, echo=echo, connect_args={"check_same_thread": False}
            )
        else:
            self.engine = create_engine(url, echo=echo, pool_pre_ping=True)
        self._sessions = sessionmaker(bind=self.engine, class_=Session, expire_on_commit=False)
        self._lock = threading.Lock()

        if create:
            try:
                Base.metadata.create_all(bind=self.engine)
            except SQLAlchemyError as ex:
                raise PersistenceError(f"cannot initialize schema at {url}: {ex}") from ex

    @classmethod
    def for_path(cls, path: str, create: bool = True) -> "SqlRecordStore":
        return cls(f"sqlite:///{path}", create=create)

    def create_topic(self, topic: TopicMetadata, seed_nonce: bytes, digest: bytes) -> int:
        row = TopicRow(
            name=topic.name,
            type=topic.type,
            serialization_format=topic.serialization_format,
            bbr_nonce=bytes(seed_nonce),
            bbr_digest=bytes(digest),
        )
        with self._lock:
            try:
                with self._sessions.begin() as session:
                    session.add(row)
                    session.flush()
                    return row.id
            except SQLAlchemyError as ex:
                logger.error("Failed to insert topic %s: %s", topic.name, ex)
                raise PersistenceError(f"cannot insert topic '{topic.name}': {ex}") from ex

    def write_message(self, topic_id: int, message: SerializedMessage, digest: bytes) -> int:
        row = MessageRow(
            topic_id=topic_id,
            timestamp=message.time_stamp,
            data=bytes(message.serialized_data),
            bbr_digest=bytes(digest),
        )
        with self._lock:
            try:
                with self._sessions.begin() as session:
                    session.add(row)
                    session.flush()
                    return row.id
            except SQLAlchemyError as ex:
                logger.error("Failed to insert message on topic id %d: %s", topic_id, ex)
                raise PersistenceError(f"cannot insert message: {ex}") from ex

    @contextmanager
    def _reading(self, what: str) -> Iterator[Session]:
        with self._lock, self._sessions() as session:
            try:
                yield session
            except SQLAlchemyError as ex:
                logger.error("Failed to read %s from %s: %s", what, self.url, ex)
                raise PersistenceError(f"cannot read {what}: {ex}") from ex

    def list_topics(self) -> List[StoredTopic]:
        with self._reading("topics") as session:
            rows = session.scalars(select(TopicRow).order_by(TopicRow.id)).all()
            return [row.to_stored() for row in rows]

    def get_topic(self, topic_name: str) -> Optional[StoredTopic]:
        with self._reading(f"topic '{topic_name}'") as session:
            row = session.scalars(
                select(TopicRow).where(TopicRow.name == topic_name).order_by(TopicRow.id)
            ).first()
            return row.to_stored() if row is not None else None

    def _message_query(self):
        return select(
            MessageRow.id,
            MessageRow.topic_id,
            TopicRow.name,
            MessageRow.timestamp,
            MessageRow.data,
            MessageRow.bbr_digest,
        ).join(TopicRow, MessageRow.topic_id == TopicRow.id)

    def read_ordered(self) -> Iterator[StoredMessage]:
        stmt = self._message_query().order_by(MessageRow.timestamp, MessageRow.id)
        with self._reading("messages") as session:
            rows = session.execute(stmt).all()
        for row in rows:
            yield StoredMessage(*row)

    def read_topic_chain(self, topic_name: str) -> List[StoredMessage]:
        stmt = self._message_query().where(TopicRow.name == topic_name).order_by(MessageRow.id)
        with self._reading(f"messages of '{topic_name}'") as session:
            return [StoredMessage(*row) for row in session.execute(stmt).all()]

    def summarize(self) -> BagSummary:
        stmt = (
            select(
                TopicRow.name,
                TopicRow.type,
                TopicRow.serialization_format,
                func.count(MessageRow.id),
                func.min(MessageRow.timestamp),
                func.max(MessageRow.timestamp),
            )
            .outerjoin(MessageRow, MessageRow.topic_id == TopicRow.id)
            .group_by(TopicRow.id)
            .order_by(TopicRow.id)
        )
        with self._reading("summary") as session:
            rows = session.execute(stmt).all()

        topics = []
        total = 0
        min_time: Optional[int] = None
        max_time: Optional[int] = None
        for name, type_, fmt, count, lo, hi in rows:
            topics.append(TopicSummary(topic=TopicMetadata(name, type_, fmt), message_count=count))
            total += count
            if count:
                min_time = lo if min_time is None else min(min_time, lo)
                max_time = hi if max_time is None else max(max_time, hi)

        return BagSummary(
            topics_with_message_count=topics,
            message_count=total,
            starting_time=min_time or 0,
            ending_time=max_time or 0,
        )

    def close(self) -> None:
        self.engine.dispose()
