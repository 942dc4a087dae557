import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from vencura.database import Base, utcnow

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    wallets = relationship("Wallet", back_populates="user")
