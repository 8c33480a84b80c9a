"""Local signing backend.

Holds the private key in memory and signs zkSync EIP-712 transactions
(type 0x71), the envelope that carries paymaster parameters.

WARNING: Private keys are stored in memory. Use an external signer for
accounts holding significant funds.
"""

import logging
from typing import Optional, Union

import rlp
from eth_account import Account
from eth_account.messages import encode_typed_data

from sponsorswap.config import Settings
from sponsorswap.models import SponsoredTransactionRequest
from sponsorswap.signing.base import (
    KeyNotFoundError,
    SignedTransaction,
    SignerType,
    SigningError,
    TransactionSigner,
)

logger = logging.getLogger(__name__)

EIP712_TX_TYPE = 0x71

TRANSACTION_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
    ],
    "Transaction": [
        {"name": "txType", "type": "uint256"},
        {"name": "from", "type": "uint256"},
        {"name": "to", "type": "uint256"},
        {"name": "gasLimit", "type": "uint256"},
        {"name": "gasPerPubdataByteLimit", "type": "uint256"},
        {"name": "maxFeePerGas", "type": "uint256"},
        {"name": "maxPriorityFeePerGas", "type": "uint256"},
        {"name": "paymaster", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "value", "type": "uint256"},
        {"name": "data", "type": "bytes"},
        {"name": "factoryDeps", "type": "bytes32[]"},
        {"name": "paymasterInput", "type": "bytes"},
    ],
}


def _address_bytes(address: str) -> bytes:
    return bytes.fromhex(address[2:] if address.startswith("0x") else address)


def typed_transaction(request: SponsoredTransactionRequest) -> dict:
    """EIP-712 typed data the account signs for a sponsored transaction."""
    return {
        "types": TRANSACTION_TYPES,
        "primaryType": "Transaction",
        "domain": {"name": "zkSync", "version": "2", "chainId": request.chain_id},
        "message": {
            "txType": EIP712_TX_TYPE,
            "from": int(request.from_address, 16),
            "to": int(request.to, 16),
            "gasLimit": request.gas_limit,
            "gasPerPubdataByteLimit": request.gas_per_pubdata,
            "maxFeePerGas": request.fee.max_fee_per_gas,
            "maxPriorityFeePerGas": request.fee.max_priority_fee_per_gas,
            "paymaster": int(request.sponsor.paymaster, 16),
            "nonce": request.nonce,
            "value": request.value,
            "data": request.data,
            "factoryDeps": [],
            "paymasterInput": request.sponsor.paymaster_input,
        },
    }


def serialize_transaction(request: SponsoredTransactionRequest, signature: bytes) -> bytes:
    """RLP-serialize a signed type-0x71 transaction."""
    fields = [
        request.nonce,
        request.fee.max_priority_fee_per_gas,
        request.fee.max_fee_per_gas,
        request.gas_limit,
        _address_bytes(request.to),
        request.value,
        request.data,
        request.chain_id,
        b"",
        b"",
        request.chain_id,
        _address_bytes(request.from_address),
        request.gas_per_pubdata,
        [],
        signature,
        [_address_bytes(request.sponsor.paymaster), request.sponsor.paymaster_input],
    ]
    return bytes([EIP712_TX_TYPE]) + rlp.encode(fields)


class LocalSigner(TransactionSigner):
    """Local signer using an in-memory private key."""

    def __init__(self, private_key: Union[str, bytes]):
        super().__init__(SignerType.LOCAL)
        if not private_key:
            raise KeyNotFoundError("No private key configured")
        self._account = Account.from_key(private_key)

    @classmethod
    def from_seed_phrase(cls, seed_phrase: str, index: int = 0) -> "LocalSigner":
        """Derive the key at m/44'/60'/0'/0/index from a BIP-39 seed phrase."""
        from bip_utils import Bip39SeedGenerator, Bip44, Bip44Changes, Bip44Coins

        seed = Bip39SeedGenerator(seed_phrase).Generate()
        bip44 = Bip44.FromSeed(seed, Bip44Coins.ETHEREUM)
        account = bip44.Purpose().Coin().Account(0).Change(Bip44Changes.CHAIN_EXT)
        key = account.AddressIndex(index).PrivateKey().Raw().ToBytes()
        return cls(key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalSigner":
        """Create a signer from PRIVATE_KEY, falling back to WALLET_SEED_PHRASE."""
        if settings.private_key:
            return cls(settings.private_key)
        if settings.wallet_seed_phrase:
            return cls.from_seed_phrase(settings.wallet_seed_phrase, settings.wallet_index)
        raise KeyNotFoundError("Set PRIVATE_KEY or WALLET_SEED_PHRASE to sign transactions")

    @property
    def address(self) -> str:
        return self._account.address

    async def sign(self, request: SponsoredTransactionRequest) -> SignedTransaction:
        if request.from_address.lower() != self.address.lower():
            raise SigningError(
                f"Request is from {request.from_address}, signer holds {self.address}"
            )

        try:
            signable = encode_typed_data(full_message=typed_transaction(request))
            signed = self._account.sign_message(signable)
        except Exception as e:
            logger.error(f"Local signing failed: {e}")
            raise SigningError(f"Failed to sign transaction: {e}") from e

        signature = bytes(signed.signature)
        return SignedTransaction(
            raw_transaction=serialize_transaction(request, signature),
            signature=signature,
        )


def create_signer(settings: Settings, private_key: Optional[str] = None) -> LocalSigner:
    """Signer for the CLI; an explicit key overrides settings."""
    if private_key:
        return LocalSigner(private_key)
    return LocalSigner.from_settings(settings)
