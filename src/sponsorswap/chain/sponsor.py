"""Composition of paymaster-sponsored transactions.

The sponsor reference travels in the transaction's custom data as
(paymaster address, paymaster input). This design always uses the
"General" sponsorship flow, whose input is ``general(bytes)`` with empty
inner data.
"""

import logging
from typing import Optional

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from sponsorswap.config import RoutingConfig
from sponsorswap.models import FeeParams, SponsorParams, SponsoredTransactionRequest
from sponsorswap.swap.calldata import TransactionDescription, checksum, classify_operation

logger = logging.getLogger(__name__)

GENERAL_FLOW_SELECTOR = function_signature_to_4byte_selector("general(bytes)")  # 0x8c5a3445
DEFAULT_GAS_PER_PUBDATA = 50_000

EIP712_DOMAIN_NAME = "SyncSwap Sophon"
EIP712_DOMAIN_VERSION = "1"


def general_paymaster_input(inner_input: bytes = b"") -> bytes:
    """Paymaster input for the General flow."""
    return GENERAL_FLOW_SELECTOR + encode(["bytes"], [inner_input])


def general_sponsor(paymaster: str) -> SponsorParams:
    return SponsorParams(paymaster=checksum(paymaster), paymaster_input=general_paymaster_input())


def eip712_domain(chain_id: int, verifying_contract: str) -> dict:
    """Signing domain for introspection; no separate signature uses it."""
    return {
        "name": EIP712_DOMAIN_NAME,
        "version": EIP712_DOMAIN_VERSION,
        "chainId": chain_id,
        "verifyingContract": verifying_contract,
    }


class SponsoredTransactionComposer:
    """Assembles sponsored transaction requests."""

    def __init__(self, config: RoutingConfig):
        self.config = config

    def default_sponsor(self) -> SponsorParams:
        return general_sponsor(self.config.sponsor_address)

    def compose(
        self,
        signer_address: str,
        to: str,
        data: bytes,
        value: int,
        fee_params: FeeParams,
        gas_limit: int,
        nonce: int,
        chain_id: int,
        sponsor: Optional[SponsorParams] = None,
    ) -> SponsoredTransactionRequest:
        """Build a transaction whose fees are paid by ``sponsor``.

        Args:
            signer_address: Acting account
            to: Destination contract
            data: Calldata
            value: Native value sent (0 for token swaps)
            fee_params: Fee bid from the fee market adapter
            gas_limit: Gas limit
            nonce: Account nonce
            chain_id: Chain identifier
            sponsor: Sponsor reference (defaults to the configured General paymaster)

        Returns:
            SponsoredTransactionRequest ready for signing
        """
        sponsor = sponsor or self.default_sponsor()
        request = SponsoredTransactionRequest(
            from_address=checksum(signer_address),
            to=checksum(to),
            data=data,
            value=value,
            nonce=nonce,
            chain_id=chain_id,
            fee=fee_params,
            gas_limit=gas_limit,
            sponsor=sponsor,
            gas_per_pubdata=DEFAULT_GAS_PER_PUBDATA,
            eip712_domain=eip712_domain(chain_id, checksum(to)),
        )
        logger.debug(f"Signing domain: {request.eip712_domain}")
        logger.info(f"Prepared transaction: {self.describe(request).to_dict()}")
        return request

    def describe(self, request: SponsoredTransactionRequest) -> TransactionDescription:
        """Human-readable view of a request."""
        if request.value > 0:
            value = f"{request.value} wei"
        else:
            value = "0"
        return TransactionDescription(
            kind=classify_operation(request.data, request.value),
            from_address=request.from_address,
            to=request.to,
            value=value,
            gas_payment=f"Paid by sponsor {request.sponsor.paymaster}",
            network=self.config.chain_name,
        )

    def estimate_payload(
        self,
        signer_address: str,
        to: str,
        data: bytes,
        value: int = 0,
        sponsor: Optional[SponsorParams] = None,
    ) -> dict:
        """Transaction dict for eth_estimateGas including the sponsor metadata."""
        sponsor = sponsor or self.default_sponsor()
        return {
            "from": checksum(signer_address),
            "to": checksum(to),
            "data": data,
            "value": value,
            "eip712Meta": {
                "gasPerPubdata": hex(DEFAULT_GAS_PER_PUBDATA),
                "paymasterParams": {
                    "paymaster": sponsor.paymaster,
                    "paymasterInput": list(sponsor.paymaster_input),
                },
            },
        }
