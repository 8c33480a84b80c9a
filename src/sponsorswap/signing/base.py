"""Base interfaces for transaction signing.

Signing flow:
1. Compose an unsigned sponsored transaction request
2. Submit it to a signer
3. Signer returns a broadcastable raw transaction (key material never leaves it)
4. Broadcast through the chain client
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from sponsorswap.models import SponsoredTransactionRequest

logger = logging.getLogger(__name__)


class SignerType(str, Enum):
    """Type of signing backend."""
    LOCAL = "local"           # Private key in memory (hot wallet)
    EXTERNAL = "external"     # Remote / hardware signer behind the same interface


@dataclass(frozen=True)
class SignedTransaction:
    """Signed, broadcastable transaction.

    Attributes:
        raw_transaction: Serialized transaction bytes
        signature: Signature bytes (r + s + v)
    """
    raw_transaction: bytes
    signature: bytes


class TransactionSigner(ABC):
    """Abstract base class for signers of sponsored transactions."""

    def __init__(self, signer_type: SignerType):
        self.signer_type = signer_type

    @property
    @abstractmethod
    def address(self) -> str:
        """Address of the acting account."""

    @abstractmethod
    async def sign(self, request: SponsoredTransactionRequest) -> SignedTransaction:
        """Sign a sponsored transaction request.

        Args:
            request: Composed transaction with fee and sponsor parameters

        Returns:
            SignedTransaction ready for broadcast

        Raises:
            SigningError: If signing fails
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.signer_type.value}, address={self.address})"


class SigningError(Exception):
    """Exception raised when signing fails."""
    pass


class KeyNotFoundError(SigningError):
    """Exception raised when no signing key is configured."""
    pass
