"""
Transaction engine: balances, message signing, transfers, deposits and the
transaction log for user-owned wallets.

Every operation checks input first, then wallet existence, then ownership, and
only then touches balances or key material. Mode-dependent behaviour lives in
the ledger strategy handed in at construction.
"""
import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy.ext.asyncio import async_sessionmaker

from vencura import repositories
from vencura.core.vault import KeyVault
from vencura.errors import IntegrityError, ValidationError
from vencura.schemas.wallet import (
    BalanceView, DepositResult, SendResult, SignatureView, TransactionView,
)
from vencura.services.ledger import DEPOSIT_DISABLED_MESSAGE
from vencura.services.signing import sign_message
from vencura.services.units import parse_amount
from vencura.services.wallets import load_owned_wallet

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4096


class TransactionEngine:
    def __init__(self, session_factory: async_sessionmaker, vault: KeyVault, ledger):
        self.session_factory = session_factory
        self.vault = vault
        self.ledger = ledger

    async def _owned_wallet(self, user_id: str, wallet_id: str):
        async with self.session_factory() as db:
            return await load_owned_wallet(db, user_id, wallet_id)

    async def get_balance(self, user_id: str, wallet_id: str) -> BalanceView:
        wallet = await self._owned_wallet(user_id, wallet_id)
        return BalanceView(wallet_id=wallet.id, balance=await self.ledger.balance(wallet))

    async def sign_message(self, user_id: str, wallet_id: str, message) -> SignatureView:
        if not message or not str(message).strip():
            raise ValidationError("Message is required")
        message = str(message)
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")

        wallet = await self._owned_wallet(user_id, wallet_id)
        try:
            private_key = self.vault.decrypt(wallet.private_key_encrypted)
        except IntegrityError:
            logger.warning("[Engine] key material for wallet %s failed verification", wallet.id)
            raise
        return SignatureView(
            wallet_id=wallet.id,
            message=message,
            signature=sign_message(private_key, message),
            signed_at=datetime.now(timezone.utc),
        )

    async def send_transaction(self, user_id: str, wallet_id: str, to=None, amount=None, memo=None) -> SendResult:
        if not to or amount is None or amount == "":
            raise ValidationError("Destination and amount are required")
        amount = parse_amount(amount)
        self.ledger.check_amount(amount)
        to = str(to).strip()
        if not to:
            raise ValidationError("Destination and amount are required")

        wallet = await self._owned_wallet(user_id, wallet_id)
        result = await self.ledger.send(wallet, to, amount, str(memo) if memo else None)
        return SendResult.model_validate(result)

    async def list_transactions(self, user_id: str, wallet_id: str) -> List[TransactionView]:
        async with self.session_factory() as db:
            wallet = await load_owned_wallet(db, user_id, wallet_id)
            rows = await repositories.list_transactions_for_wallet(db, wallet)
        return [TransactionView.from_row(tx) for tx in rows]

    async def deposit(self, user_id: str, wallet_id: str, amount=None) -> DepositResult:
        if not self.ledger.deposit_enabled:
            raise ValidationError(DEPOSIT_DISABLED_MESSAGE)
        amount = parse_amount(amount)
        self.ledger.check_amount(amount)
        wallet = await self._owned_wallet(user_id, wallet_id)
        return DepositResult.model_validate(await self.ledger.deposit(wallet, amount))
