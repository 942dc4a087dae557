"""
Tests for the transaction engine on the simulated ledger.

Covers:
1. Internal, external and deposit scenarios with their recorded transactions
2. Validation order and messages for send/deposit/sign
3. Balance conservation and non-negativity over random transfer sequences
4. Ownership isolation for every wallet operation
5. Rollback when the destination credit fails after the debit
6. Signature determinism and tamper detection on stored keys
7. Exact amount storage and concurrent balance updates
"""
import asyncio
import random
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import select, update

from vencura.errors import (
    ConsistencyError, ForbiddenError, IntegrityError, NotFoundError, ValidationError,
)
from vencura.models.transaction import Transaction
from vencura.models.wallet import Wallet
from vencura.services.signing import recover_signer

from tests.conftest import create_user


async def _balances(services, user_id, wallet_ids):
    return [(await services.engine.get_balance(user_id, wid)).balance for wid in wallet_ids]


async def _transaction_count(session_factory) -> int:
    async with session_factory() as session:
        return len(list(await session.scalars(select(Transaction))))


@pytest_asyncio.fixture
async def owner(session_factory):
    return await create_user(session_factory, "owner@example.com")


@pytest_asyncio.fixture
async def stranger(session_factory):
    return await create_user(session_factory, "stranger@example.com")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_internal_transfer_moves_value_between_wallets(session_factory, services, owner):
    a = await services.registry.create(owner, "A")
    b = await services.registry.create(owner, "B")

    result = await services.engine.send_transaction(owner, a.id, to=b.id, amount=150)

    assert result.type == "internal"
    assert result.balance == Decimal("850")
    assert len(result.transaction_hash) == 64
    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("850"), Decimal("1150")]

    txs = await services.engine.list_transactions(owner, a.id)
    assert len(txs) == 1
    assert txs[0].type == "internal"
    assert txs[0].from_wallet_id == a.id
    assert txs[0].to == b.id
    assert txs[0].amount == Decimal("150")
    assert txs[0].hash == result.transaction_hash


@pytest.mark.asyncio
async def test_internal_transfer_by_address_is_case_insensitive(session_factory, services, owner):
    a = await services.registry.create(owner, "A")
    b = await services.registry.create(owner, "B")

    result = await services.engine.send_transaction(owner, a.id, to=b.address.upper().replace("0X", "0x"), amount="25.5")

    assert result.type == "internal"
    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("974.5"), Decimal("1025.5")]
    # Incoming transfer addressed by address shows up in the destination's log
    incoming = await services.engine.list_transactions(owner, b.id)
    assert [tx.type for tx in incoming] == ["internal"]


@pytest.mark.asyncio
async def test_transfer_to_another_users_wallet_is_internal(session_factory, services, owner, stranger):
    mine = await services.registry.create(owner)
    theirs = await services.registry.create(stranger)

    result = await services.engine.send_transaction(owner, mine.id, to=theirs.id, amount=100, memo="rent")

    assert result.type == "internal"
    assert (await services.engine.get_balance(stranger, theirs.id)).balance == Decimal("1100")
    incoming = await services.engine.list_transactions(stranger, theirs.id)
    assert incoming[0].memo == "rent"


@pytest.mark.asyncio
async def test_external_transfer_only_debits_source(session_factory, services, owner):
    a = await services.registry.create(owner)
    b = await services.registry.create(owner)

    result = await services.engine.send_transaction(owner, a.id, to="external-address", amount=200)

    assert result.type == "external"
    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("800"), Decimal("1000")]
    txs = await services.engine.list_transactions(owner, a.id)
    assert [(tx.type, tx.to) for tx in txs] == [("external", "external-address")]


@pytest.mark.asyncio
async def test_deposit_credits_balance(session_factory, services, owner):
    wallet = await services.registry.create(owner)

    result = await services.engine.deposit(owner, wallet.id, 250)

    assert result.wallet_id == wallet.id
    assert result.balance == Decimal("1250")
    txs = await services.engine.list_transactions(owner, wallet.id)
    assert len(txs) == 1
    assert txs[0].type == "deposit"
    assert txs[0].from_wallet_id is None
    assert txs[0].memo == "Deposit"


@pytest.mark.asyncio
async def test_list_transactions_newest_first(session_factory, services, owner):
    a = await services.registry.create(owner)
    await services.engine.deposit(owner, a.id, 1)
    await services.engine.send_transaction(owner, a.id, to="elsewhere", amount=2)
    await services.engine.deposit(owner, a.id, 3)

    txs = await services.engine.list_transactions(owner, a.id)
    assert [tx.amount for tx in txs] == [Decimal("3"), Decimal("2"), Decimal("1")]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("to, amount", [(None, 10), ("", 10), ("x", None), ("x", "")])
async def test_send_requires_destination_and_amount(session_factory, services, owner, to, amount):
    wallet = await services.registry.create(owner)
    with pytest.raises(ValidationError) as exc_info:
        await services.engine.send_transaction(owner, wallet.id, to=to, amount=amount)
    assert exc_info.value.message == "Destination and amount are required"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5, "abc", "NaN", "Infinity"])
async def test_send_requires_positive_finite_amount(session_factory, services, owner, amount):
    wallet = await services.registry.create(owner)
    with pytest.raises(ValidationError) as exc_info:
        await services.engine.send_transaction(owner, wallet.id, to="x", amount=amount)
    assert exc_info.value.message == "Amount must be a positive number"


@pytest.mark.asyncio
async def test_input_validation_precedes_wallet_lookup(session_factory, services, owner):
    with pytest.raises(ValidationError):
        await services.engine.send_transaction(owner, "missing-wallet", to="x", amount=-1)
    with pytest.raises(NotFoundError):
        await services.engine.send_transaction(owner, "missing-wallet", to="x", amount=1)


@pytest.mark.asyncio
async def test_insufficient_balance_leaves_state_unchanged(session_factory, services, owner):
    a = await services.registry.create(owner)
    b = await services.registry.create(owner)

    with pytest.raises(ValidationError) as exc_info:
        await services.engine.send_transaction(owner, a.id, to=b.id, amount="1000.01")
    assert exc_info.value.message == "Insufficient balance"

    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("1000"), Decimal("1000")]
    assert await _transaction_count(session_factory) == 0


@pytest.mark.asyncio
async def test_entire_balance_can_be_spent(session_factory, services, owner):
    a = await services.registry.create(owner)
    await services.engine.send_transaction(owner, a.id, to="out", amount=1000)
    assert (await services.engine.get_balance(owner, a.id)).balance == Decimal("0")
    with pytest.raises(ValidationError):
        await services.engine.send_transaction(owner, a.id, to="out", amount="0.5")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1, "abc", None])
async def test_deposit_requires_positive_amount(session_factory, services, owner, amount):
    wallet = await services.registry.create(owner)
    with pytest.raises(ValidationError):
        await services.engine.deposit(owner, wallet.id, amount)
    assert (await services.engine.get_balance(owner, wallet.id)).balance == Decimal("1000")


@pytest.mark.asyncio
@pytest.mark.parametrize("message", [None, ""])
async def test_sign_requires_message(session_factory, services, owner, message):
    wallet = await services.registry.create(owner)
    with pytest.raises(ValidationError) as exc_info:
        await services.engine.sign_message(owner, wallet.id, message)
    assert exc_info.value.message == "Message is required"


@pytest.mark.asyncio
async def test_sign_rejects_oversized_message(session_factory, services, owner):
    wallet = await services.registry.create(owner)
    with pytest.raises(ValidationError):
        await services.engine.sign_message(owner, wallet.id, "x" * 4097)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_internal_transfers_conserve_total_and_never_go_negative(session_factory, services, owner):
    wallets = [await services.registry.create(owner) for _ in range(4)]
    ids = [w.id for w in wallets]
    rng = random.Random(1234)

    for _ in range(40):
        src, dst = rng.sample(ids, 2)
        amount = Decimal(rng.randint(1, 900)) / 2
        before = await _balances(services, owner, ids)
        try:
            await services.engine.send_transaction(owner, src, to=dst, amount=amount)
        except ValidationError as exc:
            assert exc.message == "Insufficient balance"
            assert await _balances(services, owner, ids) == before
        balances = await _balances(services, owner, ids)
        assert sum(balances) == Decimal("4000")
        assert all(b >= 0 for b in balances)


@pytest.mark.asyncio
async def test_failed_credit_rolls_back_debit(session_factory, services, owner):
    a = await services.registry.create(owner)
    b = await services.registry.create(owner)

    with patch("vencura.repositories.credit", new=AsyncMock(return_value=False)):
        with pytest.raises(ConsistencyError):
            await services.engine.send_transaction(owner, a.id, to=b.id, amount=150)

    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("1000"), Decimal("1000")]
    assert await _transaction_count(session_factory) == 0


@pytest.mark.asyncio
async def test_crash_during_credit_rolls_back_debit(session_factory, services, owner):
    a = await services.registry.create(owner)
    b = await services.registry.create(owner)

    with patch("vencura.repositories.credit", new=AsyncMock(side_effect=RuntimeError("disk gone"))):
        with pytest.raises(RuntimeError):
            await services.engine.send_transaction(owner, a.id, to=b.id, amount=150)

    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("1000"), Decimal("1000")]


@pytest.mark.asyncio
async def test_ownership_isolation(session_factory, services, owner, stranger):
    wallet = await services.registry.create(owner)
    calls = [
        services.registry.get(stranger, wallet.id),
        services.engine.get_balance(stranger, wallet.id),
        services.engine.sign_message(stranger, wallet.id, "hello"),
        services.engine.send_transaction(stranger, wallet.id, to="out", amount=1),
        services.engine.deposit(stranger, wallet.id, 1),
        services.engine.list_transactions(stranger, wallet.id),
    ]
    for call in calls:
        with pytest.raises(ForbiddenError):
            await call
    assert (await services.engine.get_balance(owner, wallet.id)).balance == Decimal("1000")
    assert await _transaction_count(session_factory) == 0


@pytest.mark.asyncio
async def test_missing_wallet_is_not_found(session_factory, services, owner):
    with pytest.raises(NotFoundError):
        await services.engine.get_balance(owner, "missing-wallet")
    with pytest.raises(NotFoundError):
        await services.engine.deposit(owner, "missing-wallet", 5)
    with pytest.raises(NotFoundError):
        await services.engine.list_transactions(owner, "missing-wallet")


@pytest.mark.asyncio
async def test_signatures_are_deterministic_and_bound_to_wallet(session_factory, services, owner):
    wallet = await services.registry.create(owner)

    first = await services.engine.sign_message(owner, wallet.id, "hello")
    second = await services.engine.sign_message(owner, wallet.id, "hello")
    other = await services.engine.sign_message(owner, wallet.id, "goodbye")

    assert first.signature == second.signature
    assert first.signature != other.signature
    assert first.wallet_id == wallet.id and first.message == "hello"
    assert recover_signer("hello", first.signature) == wallet.address


@pytest.mark.asyncio
async def test_signature_payload_has_no_key_material(session_factory, services, owner):
    wallet = await services.registry.create(owner)
    async with session_factory() as session:
        stored = await session.scalar(select(Wallet).where(Wallet.id == wallet.id))
    plaintext = services.engine.vault.decrypt(stored.private_key_encrypted)

    payload = (await services.engine.sign_message(owner, wallet.id, "hello")).model_dump_json(by_alias=True)
    assert plaintext[2:] not in payload
    assert stored.private_key_encrypted not in payload


@pytest.mark.asyncio
async def test_tampered_key_blob_fails_signing(session_factory, services, owner):
    wallet = await services.registry.create(owner)
    async with session_factory() as session:
        stored = await session.scalar(select(Wallet).where(Wallet.id == wallet.id))
        blob = stored.private_key_encrypted
        tampered = blob[:20] + ("B" if blob[20] == "A" else "A") + blob[21:]
        await session.execute(update(Wallet).where(Wallet.id == wallet.id).values(private_key_encrypted=tampered))
        await session.commit()

    with pytest.raises(IntegrityError) as exc_info:
        await services.engine.sign_message(owner, wallet.id, "hello")
    assert blob not in str(exc_info.value) and tampered not in str(exc_info.value)


# ---------------------------------------------------------------------------
# Exact amounts
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_repeated_fractional_sends_stay_exact(session_factory, services, owner):
    a = await services.registry.create(owner)
    b = await services.registry.create(owner)

    for _ in range(7):
        await services.engine.send_transaction(owner, a.id, to=b.id, amount="0.1")

    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("999.3"), Decimal("1000.7")]
    txs = await services.engine.list_transactions(owner, a.id)
    assert all(tx.amount == Decimal("0.1") for tx in txs)


@pytest.mark.asyncio
async def test_smallest_unit_transfer_moves_exactly_that(session_factory, services, owner):
    a = await services.registry.create(owner)
    b = await services.registry.create(owner)

    await services.engine.send_transaction(owner, a.id, to=b.id, amount="0.000000000000000001")

    assert await _balances(services, owner, [a.id, b.id]) == [
        Decimal("999.999999999999999999"), Decimal("1000.000000000000000001"),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0.0000000000000000015", "1.0000000000000000001", "1000000000000000000"])
async def test_send_rejects_amounts_storage_cannot_hold(session_factory, services, owner, amount):
    a = await services.registry.create(owner)
    b = await services.registry.create(owner)

    with pytest.raises(ValidationError) as exc_info:
        await services.engine.send_transaction(owner, a.id, to=b.id, amount=amount)

    assert exc_info.value.message == "Amount must be a positive number"
    assert await _balances(services, owner, [a.id, b.id]) == [Decimal("1000"), Decimal("1000")]
    assert await _transaction_count(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0.0000000000000000001", "1000000000000000000", "1e30"])
async def test_deposit_rejects_amounts_storage_cannot_hold(session_factory, services, owner, amount):
    wallet = await services.registry.create(owner)

    with pytest.raises(ValidationError) as exc_info:
        await services.engine.deposit(owner, wallet.id, amount)

    assert exc_info.value.message == "Amount must be a positive number"
    assert (await services.engine.get_balance(owner, wallet.id)).balance == Decimal("1000")


@pytest.mark.asyncio
async def test_deposit_past_maximum_balance_is_rejected(session_factory, services, owner):
    wallet = await services.registry.create(owner)

    with pytest.raises(ValidationError):
        await services.engine.deposit(owner, wallet.id, "999999999999999999")

    assert (await services.engine.get_balance(owner, wallet.id)).balance == Decimal("1000")
    assert await _transaction_count(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("message", ["   ", "\n\t", 0, False])
async def test_sign_rejects_blank_or_falsy_message(session_factory, services, owner, message):
    wallet = await services.registry.create(owner)
    with pytest.raises(ValidationError) as exc_info:
        await services.engine.sign_message(owner, wallet.id, message)
    assert exc_info.value.message == "Message is required"


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_concurrent_sends_cannot_overdraw(file_session_factory, file_services):
    owner_id = await create_user(file_session_factory)
    source = await file_services.registry.create(owner_id)
    target = await file_services.registry.create(owner_id)

    results = await asyncio.gather(*[
        file_services.engine.send_transaction(owner_id, source.id, to=target.id, amount=600)
        for _ in range(5)
    ], return_exceptions=True)

    succeeded = [r for r in results if not isinstance(r, BaseException)]
    failed = [r for r in results if isinstance(r, BaseException)]
    assert len(succeeded) == 1
    assert len(failed) == 4
    for exc in failed:
        assert isinstance(exc, ValidationError), repr(exc)
        assert exc.message == "Insufficient balance"

    assert await _balances(file_services, owner_id, [source.id, target.id]) == [Decimal("400"), Decimal("1600")]
    assert await _transaction_count(file_session_factory) == 1


@pytest.mark.asyncio
async def test_concurrent_deposits_are_all_applied(file_session_factory, file_services):
    owner_id = await create_user(file_session_factory)
    wallet = await file_services.registry.create(owner_id)

    results = await asyncio.gather(*[
        file_services.engine.deposit(owner_id, wallet.id, "10.5") for _ in range(5)
    ], return_exceptions=True)

    assert not [r for r in results if isinstance(r, BaseException)], results
    assert (await file_services.engine.get_balance(owner_id, wallet.id)).balance == Decimal("1052.5")
    assert await _transaction_count(file_session_factory) == 5
