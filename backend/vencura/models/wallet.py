from sqlalchemy import CheckConstraint, Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from vencura.database import Base, utcnow
from vencura.models.types import Amount

class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance IS NULL OR balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(100), nullable=False)
    address = Column(String(42), unique=True, nullable=False)
    public_key = Column(String(132), nullable=False)
    private_key_encrypted = Column(Text, nullable=False)
    balance = Column(Amount(), nullable=True)   # null in on-chain mode
    chain = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="wallets")
