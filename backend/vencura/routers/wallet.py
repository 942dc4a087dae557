from typing import List
from fastapi import APIRouter, Depends
from vencura.core.deps import Services, get_current_user, get_services
from vencura.models.user import User
from vencura.schemas.wallet import (
    BalanceView, ChainInfo, CreateWalletRequest, DepositRequest, DepositResult,
    RenameWalletRequest, SendRequest, SendResult, SignRequest, SignatureView,
    TransactionView, WalletView,
)

router = APIRouter(prefix="/api/wallets", tags=["wallets"])
config_router = APIRouter(prefix="/api", tags=["config"])


@config_router.get("/config", response_model=ChainInfo)
async def get_chain_info(services: Services = Depends(get_services)):
    return services.selector.chain_info()

@router.get("", response_model=List[WalletView])
async def list_wallets(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return await services.registry.list(user.id)

@router.post("", status_code=201, response_model=WalletView)
async def create_wallet(
    body: CreateWalletRequest = CreateWalletRequest(),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return await services.registry.create(user.id, body.label)

@router.get("/{wallet_id}", response_model=WalletView)
async def get_wallet(wallet_id: str, user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return await services.registry.get(user.id, wallet_id)

@router.patch("/{wallet_id}", response_model=WalletView)
async def rename_wallet(
    wallet_id: str,
    body: RenameWalletRequest,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return await services.registry.rename(user.id, wallet_id, body.label)

@router.get("/{wallet_id}/balance", response_model=BalanceView)
async def get_balance(wallet_id: str, user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return await services.engine.get_balance(user.id, wallet_id)

@router.post("/{wallet_id}/sign", response_model=SignatureView)
async def sign(
    wallet_id: str,
    body: SignRequest = SignRequest(),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return await services.engine.sign_message(user.id, wallet_id, body.message)

@router.post("/{wallet_id}/send", response_model=SendResult)
async def send(
    wallet_id: str,
    body: SendRequest = SendRequest(),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return await services.engine.send_transaction(user.id, wallet_id, body.to, body.amount, body.memo)

@router.get("/{wallet_id}/transactions", response_model=List[TransactionView])
async def list_transactions(wallet_id: str, user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return await services.engine.list_transactions(user.id, wallet_id)

@router.post("/{wallet_id}/deposit", response_model=DepositResult)
async def deposit(
    wallet_id: str,
    body: DepositRequest = DepositRequest(),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return await services.engine.deposit(user.id, wallet_id, body.amount)
