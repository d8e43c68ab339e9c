"""Database models for the capture pipeline."""

from typing import Optional

from sqlalchemy import JSON, BigInteger, Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from radiocap.db.session import Base

# Talkgroup assigned to uploads whose channel cannot be determined
UNKNOWN_TALKGROUP = -1


class CallRecording(Base):
    """One uploaded recording of a radio transmission."""

    __tablename__ = "call_recordings"

    talkgroup: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    added: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )  # Ingestion time, ms since epoch
    key: Mapped[str] = mapped_column(String(1024), unique=True, index=True)

    # Capture-side clock, seconds since epoch
    start_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    end_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    len: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    freq: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    emergency: Mapped[int] = mapped_column(Integer, default=0)
    tone: Mapped[bool] = mapped_column(Boolean, default=False)
    tone_index: Mapped[str] = mapped_column(String(1), default="n")  # "y" / "n"
    tower: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sources: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)  # Radio IDs

    # Filled in asynchronously
    transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    page_sent: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    usage_counted: Mapped[bool] = mapped_column(Boolean, default=False)  # Counted in the usage index

    __table_args__ = (
        Index("ix_call_recordings_talkgroup_start", "talkgroup", "start_time"),
        Index("ix_call_recordings_tone_index", "tone_index", "added"),
    )

    def __repr__(self) -> str:
        return f"<CallRecording(key={self.key}, talkgroup={self.talkgroup}, added={self.added})>"


class KeyTranslation(Base):
    """Redirect from a deleted duplicate's key to the surviving key."""

    __tablename__ = "key_translations"

    key: Mapped[str] = mapped_column(String(1024), primary_key=True)
    new_key: Mapped[str] = mapped_column(String(1024))
    expires_at: Mapped[int] = mapped_column(
        BigInteger, index=True
    )  # Seconds since epoch


class TalkgroupUsage(Base):
    """Denormalized in-use flag and reference count per talkgroup."""

    __tablename__ = "talkgroup_usage"

    talkgroup: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    in_use: Mapped[str] = mapped_column(String(1), default="N", index=True)  # "Y" / "N"
    count: Mapped[int] = mapped_column(Integer, default=0)


class RadioUsage(Base):
    """Denormalized in-use flag and reference count per radio ID."""

    __tablename__ = "radio_usage"

    radio_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    in_use: Mapped[str] = mapped_column(String(1), default="N", index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
