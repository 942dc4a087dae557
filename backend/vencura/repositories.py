"""
Storage queries for wallets and the transaction log.

Balance changes lock the row, then write with a compare-and-swap UPDATE guarded
by the balance that was read, so concurrent writers never both apply a change
computed from the same balance.
"""
from decimal import Decimal, localcontext
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vencura.errors import ConsistencyError, ValidationError
from vencura.models.transaction import Transaction
from vencura.models.wallet import Wallet
from vencura.services.units import MAX_AMOUNT

# Each failed swap means another writer committed in between
BALANCE_SWAP_ATTEMPTS = 5


async def insert_wallet(db: AsyncSession, wallet: Wallet) -> Wallet:
    db.add(wallet)
    await db.flush()
    return wallet


async def get_wallet(db: AsyncSession, wallet_id: str) -> Optional[Wallet]:
    return await db.scalar(select(Wallet).where(Wallet.id == wallet_id))


async def list_wallets_for_user(db: AsyncSession, user_id: str) -> List[Wallet]:
    return list(await db.scalars(
        select(Wallet).where(Wallet.user_id == user_id).order_by(Wallet.created_at.asc())
    ))


async def find_wallet_by_id_or_address(db: AsyncSession, target: str) -> Optional[Wallet]:
    """Resolve a destination by wallet id first, then by case-insensitive address."""
    wallet = await get_wallet(db, target)
    if wallet:
        return wallet
    return await db.scalar(
        select(Wallet).where(func.lower(Wallet.address) == target.lower()).limit(1)
    )


async def rename_wallet(db: AsyncSession, wallet_id: str, label: str) -> None:
    await db.execute(
        update(Wallet)
        .where(Wallet.id == wallet_id)
        .values(label=label)
        .execution_options(synchronize_session=False)
    )


async def _locked_balance(db: AsyncSession, wallet_id: str) -> Optional[Decimal]:
    # Row lock where supported; SQLite ignores it and relies on the compare-and-swap below
    return await db.scalar(select(Wallet.balance).where(Wallet.id == wallet_id).with_for_update())


async def _swap_balance(db: AsyncSession, wallet_id: str, expected: Decimal, new: Decimal) -> bool:
    result = await db.execute(
        update(Wallet)
        .where(Wallet.id == wallet_id, Wallet.balance == expected)
        .values(balance=new)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _apply_delta(db: AsyncSession, wallet_id: str, delta: Decimal, require_funds: bool) -> bool:
    for _ in range(BALANCE_SWAP_ATTEMPTS):
        current = await _locked_balance(db, wallet_id)
        if current is None:
            return False
        with localcontext() as ctx:
            ctx.prec = 100
            new = current + delta
        if require_funds and new < 0:
            return False
        if new > MAX_AMOUNT:
            raise ValidationError("Balance would exceed the maximum supported amount")
        if await _swap_balance(db, wallet_id, current, new):
            return True
    raise ConsistencyError("Balance changed concurrently; please retry")


async def debit_if_sufficient(db: AsyncSession, wallet_id: str, amount: Decimal) -> bool:
    """Subtract `amount` only if the current balance covers it. Returns whether the balance changed."""
    return await _apply_delta(db, wallet_id, -amount, require_funds=True)


async def credit(db: AsyncSession, wallet_id: str, amount: Decimal) -> bool:
    return await _apply_delta(db, wallet_id, amount, require_funds=False)


async def get_balance(db: AsyncSession, wallet_id: str) -> Optional[Decimal]:
    return await db.scalar(select(Wallet.balance).where(Wallet.id == wallet_id))


async def insert_transaction(db: AsyncSession, tx: Transaction) -> Transaction:
    db.add(tx)
    await db.flush()
    return tx


async def list_transactions_for_wallet(db: AsyncSession, wallet: Wallet) -> List[Transaction]:
    return list(await db.scalars(
        select(Transaction)
        .where(or_(
            Transaction.from_wallet_id == wallet.id,
            Transaction.to_text == wallet.id,
            func.lower(Transaction.to_text) == wallet.address.lower(),
        ))
        .order_by(Transaction.created_at.desc())
    ))
