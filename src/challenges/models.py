"""Challenge ledger database models."""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from src.core.database import Base
from src.verification.constants import DEFAULT_ACTIVITY_TYPE

# Stakes are in the smallest currency unit (wei) and overflow BIGINT
Amount = Numeric(78, 0)


class Challenge(Base):
    """Staking challenge.

    Never deleted; ``finalized`` only ever goes from False to True.
    """

    __tablename__ = "challenges"

    challenge_id = Column(Integer, primary_key=True, autoincrement=True)
    creator = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False)

    # Criteria
    target_distance = Column(Float, nullable=False)  # meters
    required_activity_type = Column(String, nullable=False, default=DEFAULT_ACTIVITY_TYPE)
    min_distance = Column(Float, nullable=True)  # meters
    max_distance = Column(Float, nullable=True)  # meters
    distance_tolerance = Column(Float, nullable=True)  # meters, None = global default

    # Window (Unix seconds)
    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=False)

    # Stakes
    stake_amount = Column(Amount, nullable=False)
    total_staked = Column(Amount, nullable=False, default=0)
    participant_count = Column(Integer, nullable=False, default=0)

    finalized = Column(Boolean, nullable=False, default=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return (
            f"<Challenge(id={self.challenge_id}, target={self.target_distance}, "
            f"finalized={self.finalized})>"
        )


class Participant(Base):
    """A (challenge, identity) pair. Completion columns are write-once."""

    __tablename__ = "participants"

    challenge_id = Column(
        Integer, ForeignKey("challenges.challenge_id"), primary_key=True
    )
    address = Column(String, primary_key=True)  # lowercase identity

    staked_amount = Column(Amount, nullable=False)
    has_completed = Column(Boolean, nullable=False, default=False)

    # Completion metadata
    completion_timestamp = Column(BigInteger, nullable=True)  # Unix seconds
    completion_distance = Column(BigInteger, nullable=True)  # meters
    completion_duration = Column(BigInteger, nullable=True)  # seconds
    source_activity_id = Column(String, nullable=True)

    joined_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return (
            f"<Participant(challenge_id={self.challenge_id}, address='{self.address}', "
            f"completed={self.has_completed})>"
        )


class CompletionEventRecord(Base):
    """Completion event log consumed by downstream indexers."""

    __tablename__ = "completion_events"
    __table_args__ = (
        UniqueConstraint("challenge_id", "participant", name="uq_completion_participant"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(
        Integer, ForeignKey("challenges.challenge_id"), nullable=False, index=True
    )
    participant = Column(String, nullable=False)
    completion_timestamp = Column(BigInteger, nullable=False)
    distance = Column(BigInteger, nullable=False)
    duration = Column(BigInteger, nullable=False)
    source_activity_id = Column(String, nullable=False)
    emitted_at = Column(BigInteger, nullable=False)
