import enum
import uuid
from sqlalchemy import Column, String, DateTime, Text, Index
from vencura.database import Base, utcnow
from vencura.models.types import Amount


class TransactionType(str, enum.Enum):
    internal = "internal"
    external = "external"
    internal_onchain = "internal-onchain"
    onchain = "onchain"
    deposit = "deposit"


class Transaction(Base):
    """Append-only ledger entry. Rows are inserted, never updated or deleted."""
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_from_wallet", "from_wallet_id"),
        Index("ix_transactions_to_text", "to_text"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    hash = Column(String(66), nullable=False)
    from_wallet_id = Column(String(36), nullable=True)   # null for deposits
    to_text = Column(Text, nullable=False)
    amount = Column(Amount(), nullable=False)
    memo = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
