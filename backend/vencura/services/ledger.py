"""
Ledger strategies.

SimulatedLedger keeps balances in the wallets table and moves value with
conditional UPDATEs; OnChainLedger stores no balance and delegates balance
queries and transfers to the chain provider. One of them is selected when the
process starts and the engine never branches on the mode itself.
"""
import hashlib
import logging
import time
from decimal import Decimal
from typing import Optional

from eth_utils import is_address
from sqlalchemy.ext.asyncio import async_sessionmaker

from vencura import repositories
from vencura.core.vault import KeyVault
from vencura.errors import ConsistencyError, IntegrityError, ValidationError
from vencura.models.transaction import Transaction, TransactionType
from vencura.models.wallet import Wallet
from vencura.services.chain_mode import SEPOLIA
from vencura.services.chain_provider import ChainProvider
from vencura.services.units import check_storable, from_wei, to_wei

logger = logging.getLogger(__name__)

DEPOSIT_DISABLED_MESSAGE = (
    "Deposits are not available in on-chain mode. "
    "Fund the wallet from a Sepolia faucet instead."
)


def local_hash(*parts) -> str:
    """Stand-in transaction hash for the simulated ledger (unique, not a chain hash)."""
    payload = ":".join(str(p) for p in (*parts, time.time_ns()))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SimulatedLedger:
    deposit_enabled = True

    def __init__(self, session_factory: async_sessionmaker, initial_balance: Decimal):
        self.session_factory = session_factory
        self.initial_balance = Decimal(initial_balance)

    def new_wallet_fields(self) -> dict:
        return {"balance": self.initial_balance, "chain": None}

    def check_amount(self, amount: Decimal) -> Decimal:
        return check_storable(amount, "Amount must be a positive number")

    async def balance(self, wallet: Wallet) -> Decimal:
        async with self.session_factory() as db:
            return await repositories.get_balance(db, wallet.id)

    async def send(self, wallet: Wallet, to: str, amount: Decimal, memo: Optional[str]) -> dict:
        async with self.session_factory() as db:
            async with db.begin():
                target = await repositories.find_wallet_by_id_or_address(db, to)
                if not await repositories.debit_if_sufficient(db, wallet.id, amount):
                    raise ValidationError("Insufficient balance")

                tx_type = TransactionType.external
                if target is not None:
                    if not await repositories.credit(db, target.id, amount):
                        # Raising inside begin() rolls the debit back
                        logger.error("[Ledger] credit to %s failed after debit of %s", target.id, wallet.id)
                        raise ConsistencyError("Destination wallet could not be credited; transfer rolled back")
                    tx_type = TransactionType.internal

                tx_hash = local_hash(wallet.id, to, amount)
                await repositories.insert_transaction(db, Transaction(
                    hash=tx_hash,
                    from_wallet_id=wallet.id,
                    to_text=to,
                    amount=amount,
                    memo=memo,
                    type=tx_type.value,
                ))
                balance = await repositories.get_balance(db, wallet.id)

        logger.info("[Ledger] %s transfer %s from %s amount=%s", tx_type.value, tx_hash, wallet.id, amount)
        return {"transactionHash": tx_hash, "type": tx_type.value, "balance": balance}

    async def deposit(self, wallet: Wallet, amount: Decimal) -> dict:
        async with self.session_factory() as db:
            async with db.begin():
                if not await repositories.credit(db, wallet.id, amount):
                    raise ConsistencyError("Wallet has no simulated balance to credit")
                await repositories.insert_transaction(db, Transaction(
                    hash=local_hash(wallet.id, "deposit"),
                    from_wallet_id=None,
                    to_text=wallet.id,
                    amount=amount,
                    memo="Deposit",
                    type=TransactionType.deposit.value,
                ))
                balance = await repositories.get_balance(db, wallet.id)

        logger.info("[Ledger] deposit to %s amount=%s", wallet.id, amount)
        return {"walletId": wallet.id, "balance": balance}


class OnChainLedger:
    deposit_enabled = False

    def __init__(self, session_factory: async_sessionmaker, provider: ChainProvider, vault: KeyVault):
        self.session_factory = session_factory
        self.provider = provider
        self.vault = vault

    def new_wallet_fields(self) -> dict:
        return {"balance": None, "chain": SEPOLIA}

    def check_amount(self, amount: Decimal) -> Decimal:
        to_wei(amount)
        return check_storable(amount, "Amount must be a valid decimal value")

    async def balance(self, wallet: Wallet) -> Decimal:
        return from_wei(await self.provider.get_balance(wallet.address))

    async def send(self, wallet: Wallet, to: str, amount: Decimal, memo: Optional[str]) -> dict:
        async with self.session_factory() as db:
            target = await repositories.find_wallet_by_id_or_address(db, to)

        destination = target.address if target is not None else to
        if not is_address(destination):
            raise ValidationError("Destination must be a valid wallet ID or address")

        try:
            private_key = self.vault.decrypt(wallet.private_key_encrypted)
        except IntegrityError:
            logger.warning("[Ledger] key material for wallet %s failed verification", wallet.id)
            raise
        value = to_wei(amount)

        current_balance = await self.provider.get_balance(wallet.address)
        if current_balance < value:
            raise ValidationError("Insufficient on-chain balance")

        result = await self.provider.send_value(private_key, destination, value)
        tx_type = TransactionType.internal_onchain if target is not None else TransactionType.onchain

        async with self.session_factory() as db:
            async with db.begin():
                await repositories.insert_transaction(db, Transaction(
                    hash=result["hash"],
                    from_wallet_id=wallet.id,
                    to_text=destination,
                    amount=amount,
                    memo=memo,
                    type=tx_type.value,
                ))

        logger.info("[Ledger] %s transfer %s from %s", tx_type.value, result["hash"], wallet.id)
        return {"transactionHash": result["hash"], "type": tx_type.value, "balance": None}

    async def deposit(self, wallet: Wallet, amount: Decimal) -> dict:
        raise ValidationError(DEPOSIT_DISABLED_MESSAGE)
