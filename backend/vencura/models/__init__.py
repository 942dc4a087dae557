from vencura.models.user import User
from vencura.models.wallet import Wallet
from vencura.models.transaction import Transaction, TransactionType

__all__ = ["User", "Wallet", "Transaction", "TransactionType"]
