from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys


def generate_keypair() -> dict:
    """Fresh secp256k1 keypair with its checksummed address."""
    account = Account.create()
    private_key = bytes(account.key)
    public_key = keys.PrivateKey(private_key).public_key
    return {
        "address": account.address,
        # Uncompressed SEC1 encoding (0x04 || X || Y)
        "public_key": "0x04" + public_key.to_bytes().hex(),
        "private_key": "0x" + private_key.hex(),
    }


def sign_message(private_key: str, message: str) -> str:
    """
    EIP-191 personal_sign of `message`.
    ECDSA nonces are RFC 6979 deterministic, so the same key and message
    always produce the same signature.
    """
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


def recover_signer(message: str, signature: str) -> str:
    """Return the checksummed address that produced `signature` over `message`."""
    return Account.recover_message(encode_defunct(text=message), signature=signature)
