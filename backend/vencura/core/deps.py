from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vencura.core.security import decode_token
from vencura.core.vault import KeyVault
from vencura.database import get_db
from vencura.errors import UnauthorizedError
from vencura.models.user import User
from vencura.services.chain_mode import ChainConfig, LedgerModeSelector
from vencura.services.chain_provider import ChainProvider
from vencura.services.ledger import OnChainLedger, SimulatedLedger
from vencura.services.transactions import TransactionEngine
from vencura.services.wallets import WalletRegistry

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Services:
    selector: LedgerModeSelector
    registry: WalletRegistry
    engine: TransactionEngine
    provider: Optional[ChainProvider] = None

    async def aclose(self) -> None:
        if self.provider is not None:
            await self.provider.aclose()


def build_services(settings, session_factory: async_sessionmaker) -> Services:
    """Wire the engine for the configured mode. Raises ConfigurationError on bad settings."""
    selector = LedgerModeSelector(ChainConfig.from_settings(settings))
    vault = KeyVault(settings.KEY_ENCRYPTION_SECRET)
    provider = None
    if selector.is_on_chain():
        provider = ChainProvider(selector.config)
        ledger = OnChainLedger(session_factory, provider, vault)
    else:
        ledger = SimulatedLedger(session_factory, Decimal(settings.INITIAL_BALANCE))
    return Services(
        selector=selector,
        registry=WalletRegistry(session_factory, vault, ledger),
        engine=TransactionEngine(session_factory, vault, ledger),
        provider=provider,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError()
    user_id = decode_token(credentials.credentials)
    if user_id is None:
        raise UnauthorizedError()
    user = await db.scalar(select(User).where(User.id == user_id))
    if not user:
        raise UnauthorizedError()
    return user
