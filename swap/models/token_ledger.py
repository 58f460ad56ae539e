"""TokenLedgerEntry model - Append-only token movements"""
import enum
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, CheckConstraint, Index, Uuid

from swap.database import Base, utcnow


class LedgerReason(str, enum.Enum):
    """Why a ledger entry was written"""

    INITIAL_GRANT = "INITIAL_GRANT"
    REQUEST_SENT = "REQUEST_SENT"
    REQUEST_REFUNDED = "REQUEST_REFUNDED"
    SESSION_TAUGHT = "SESSION_TAUGHT"
    ADMIN_ADJUST = "ADMIN_ADJUST"


class TokenLedgerEntry(Base):
    """Immutable signed token movement for one user"""

    __tablename__ = "token_ledger"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    delta = Column(Integer, nullable=False)
    reason = Column(String(32), nullable=False)
    request_id = Column(Uuid, ForeignKey("requests.id", ondelete="SET NULL"), nullable=True)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_token_ledger_delta_nonzero"),
        CheckConstraint(
            "reason IN ('INITIAL_GRANT', 'REQUEST_SENT', 'REQUEST_REFUNDED', 'SESSION_TAUGHT', 'ADMIN_ADJUST')",
            name="ck_token_ledger_reason",
        ),
        Index("idx_token_ledger_user_created", "user_id", "created_at"),
        Index("idx_token_ledger_request", "request_id"),
        Index("idx_token_ledger_session", "session_id"),
    )

    def __repr__(self):
        return f"<TokenLedgerEntry(user={self.user_id}, delta={self.delta}, reason={self.reason})>"
