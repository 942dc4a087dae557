from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class WalletView(CamelModel):
    """Caller-facing wallet. Owner id and key material are deliberately absent."""
    id: str
    label: str
    address: str
    public_key: str
    balance: Optional[Decimal] = None
    chain: Optional[str] = None
    created_at: datetime


class TransactionView(CamelModel):
    id: str
    hash: str
    from_wallet_id: Optional[str] = None
    to: str
    amount: Decimal
    memo: Optional[str] = None
    type: str
    created_at: datetime

    @classmethod
    def from_row(cls, tx) -> "TransactionView":
        return cls(
            id=tx.id, hash=tx.hash, from_wallet_id=tx.from_wallet_id, to=tx.to_text,
            amount=tx.amount, memo=tx.memo, type=tx.type, created_at=tx.created_at,
        )


class BalanceView(CamelModel):
    wallet_id: str
    balance: Optional[Decimal] = None


class SignatureView(CamelModel):
    wallet_id: str
    message: str
    signature: str
    signed_at: datetime


class SendResult(CamelModel):
    transaction_hash: str
    type: str
    balance: Optional[Decimal] = None


class DepositResult(CamelModel):
    wallet_id: str
    balance: Decimal


class ChainInfo(CamelModel):
    mode: str
    label: str
    deposit_enabled: bool
    rpc_host: Optional[str] = None


# Request bodies: fields stay loose so the engine owns validation messages
class CreateWalletRequest(BaseModel):
    label: Optional[str] = None

class RenameWalletRequest(BaseModel):
    label: Optional[str] = None

class SignRequest(BaseModel):
    message: Optional[Any] = None

class SendRequest(BaseModel):
    to: Optional[Any] = None
    amount: Optional[Any] = None
    memo: Optional[str] = None

class DepositRequest(BaseModel):
    amount: Optional[Any] = None
