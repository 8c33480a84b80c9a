"""Transaction signing.

- LocalSigner: in-memory private key (or BIP-44 derived from a seed phrase)
"""

from sponsorswap.signing.base import (
    KeyNotFoundError,
    SignedTransaction,
    SignerType,
    SigningError,
    TransactionSigner,
)
from sponsorswap.signing.local import LocalSigner, create_signer

__all__ = [
    "KeyNotFoundError",
    "LocalSigner",
    "SignedTransaction",
    "SignerType",
    "SigningError",
    "TransactionSigner",
    "create_signer",
]
