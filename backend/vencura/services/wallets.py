import logging
import uuid
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vencura import repositories
from vencura.core.vault import KeyVault
from vencura.errors import ForbiddenError, NotFoundError, ValidationError
from vencura.models.wallet import Wallet
from vencura.schemas.wallet import WalletView
from vencura.services.signing import generate_keypair

logger = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 100


async def load_owned_wallet(db: AsyncSession, user_id: str, wallet_id: str) -> Wallet:
    """Existence first, then ownership; nothing about the wallet is returned before both pass."""
    wallet = await repositories.get_wallet(db, wallet_id)
    if wallet is None:
        raise NotFoundError("Wallet not found")
    if wallet.user_id != user_id:
        raise ForbiddenError("You do not have access to this wallet")
    return wallet


def _clean_label(label) -> Optional[str]:
    if label is None:
        return None
    cleaned = str(label).strip()
    if len(cleaned) > MAX_LABEL_LENGTH:
        raise ValidationError(f"Label must be at most {MAX_LABEL_LENGTH} characters")
    return cleaned or None


class WalletRegistry:
    def __init__(self, session_factory: async_sessionmaker, vault: KeyVault, ledger):
        self.session_factory = session_factory
        self.vault = vault
        self.ledger = ledger

    async def create(self, user_id: str, label: Optional[str] = None) -> WalletView:
        wallet_id = str(uuid.uuid4())
        keypair = generate_keypair()
        wallet = Wallet(
            id=wallet_id,
            user_id=user_id,
            label=_clean_label(label) or f"Wallet {wallet_id[:8]}",
            address=keypair["address"],
            public_key=keypair["public_key"],
            private_key_encrypted=self.vault.encrypt(keypair["private_key"]),
            **self.ledger.new_wallet_fields(),
        )
        async with self.session_factory() as db:
            async with db.begin():
                await repositories.insert_wallet(db, wallet)
        logger.info("[Wallet] created %s for user %s", wallet.id, user_id)
        return WalletView.model_validate(wallet)

    async def list(self, user_id: str) -> List[WalletView]:
        async with self.session_factory() as db:
            wallets = await repositories.list_wallets_for_user(db, user_id)
        return [WalletView.model_validate(w) for w in wallets]

    async def get(self, user_id: str, wallet_id: str) -> WalletView:
        async with self.session_factory() as db:
            wallet = await load_owned_wallet(db, user_id, wallet_id)
        return WalletView.model_validate(wallet)

    async def rename(self, user_id: str, wallet_id: str, label) -> WalletView:
        cleaned = _clean_label(label)
        if not cleaned:
            raise ValidationError("Label is required")
        async with self.session_factory() as db:
            async with db.begin():
                await load_owned_wallet(db, user_id, wallet_id)
                await repositories.rename_wallet(db, wallet_id, cleaned)
            wallet = await repositories.get_wallet(db, wallet_id)
            await db.refresh(wallet)
        return WalletView.model_validate(wallet)
