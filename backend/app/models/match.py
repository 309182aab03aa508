"""
Match Model

Stored MashScore for a pair of users. The pair is always written ordered
(user1_id < user2_id) so each pair has exactly one row.
"""

from sqlalchemy import CheckConstraint, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import BaseModel


class Match(BaseModel):
    __tablename__ = "matches"

    user1_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Lower user id of the pair"
    )

    user2_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Higher user id of the pair"
    )

    similarity_score: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="MashScore 0-100"
    )

    shared_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Items present in both libraries"
    )

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
        CheckConstraint("user1_id < user2_id", name="ordered_pair"),
    )

    def other_user_id(self, user_id: int) -> int:
        return self.user2_id if self.user1_id == user_id else self.user1_id

    def __repr__(self) -> str:
        return (
            f"<Match({self.user1_id}<->{self.user2_id}, "
            f"score={self.similarity_score})>"
        )


def ordered_pair(user_a: int, user_b: int) -> tuple[int, int]:
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)
