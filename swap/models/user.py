"""User model - Marketplace participant and cached token balance"""
from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint, Uuid
import uuid

from swap.database import Base, utcnow


class User(Base):
    """Swap user identified by lower-cased email"""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False)
    name = Column(String(200), nullable=True)
    university = Column(String(200), nullable=True)
    timezone = Column(String(64), nullable=True)
    image = Column(String(1000), nullable=True)
    # Cached sum of token_ledger.delta; only written alongside a ledger insert
    token_balance = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("token_balance >= 0", name="ck_users_token_balance_nonnegative"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, tokens={self.token_balance})>"
