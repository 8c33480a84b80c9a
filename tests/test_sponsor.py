"""Tests for sponsored transaction composition."""

from conftest import CHAIN_ID, PAYMASTER_ADDRESS, ROUTER_ADDRESS, TEST_ADDRESS, USDC
from sponsorswap.chain.sponsor import (
    DEFAULT_GAS_PER_PUBDATA,
    GENERAL_FLOW_SELECTOR,
    SponsoredTransactionComposer,
    general_paymaster_input,
)
from sponsorswap.models import FeeParams, same_address
from sponsorswap.swap.calldata import (
    OperationKind,
    classify_operation,
    encode_approve,
    encode_transfer,
)


def compose(config, data: bytes, to: str = ROUTER_ADDRESS, value: int = 0):
    return SponsoredTransactionComposer(config).compose(
        signer_address=TEST_ADDRESS,
        to=to,
        data=data,
        value=value,
        fee_params=FeeParams(100, 100),
        gas_limit=1_300_000,
        nonce=7,
        chain_id=CHAIN_ID,
    )


class TestPaymasterInput:
    """Tests for the General flow input."""

    def test_selector(self):
        assert GENERAL_FLOW_SELECTOR.hex() == "8c5a3445"

    def test_empty_inner_input(self):
        data = general_paymaster_input()

        assert data[:4] == GENERAL_FLOW_SELECTOR
        # offset word + zero length word
        assert data[4:] == (32).to_bytes(32, "big") + (0).to_bytes(32, "big")


class TestComposer:
    """Tests for SponsoredTransactionComposer."""

    def test_compose(self, routing_config):
        request = compose(routing_config, encode_approve(ROUTER_ADDRESS))

        assert request.from_address == TEST_ADDRESS
        assert same_address(request.sponsor.paymaster, PAYMASTER_ADDRESS)
        assert request.sponsor.paymaster_input == general_paymaster_input()
        assert request.gas_per_pubdata == DEFAULT_GAS_PER_PUBDATA
        assert request.nonce == 7
        assert request.eip712_domain["name"] == "SyncSwap Sophon"
        assert request.eip712_domain["version"] == "1"
        assert request.eip712_domain["chainId"] == CHAIN_ID

    def test_describe_approve(self, routing_config):
        composer = SponsoredTransactionComposer(routing_config)
        request = compose(routing_config, encode_approve(ROUTER_ADDRESS), to=USDC.address)

        description = composer.describe(request).to_dict()

        assert description["type"] == "approve"
        assert description["gas_payment"].lower() == f"paid by sponsor {PAYMASTER_ADDRESS.lower()}"
        assert description["network"] == "Sophon"
        assert description["value"] == "0"

    def test_debug_dict_truncates_data(self, routing_config):
        request = compose(routing_config, encode_approve(ROUTER_ADDRESS))

        body = request.to_debug_dict()

        assert body["data"].endswith("...")
        assert len(body["data"]) == 69
        assert same_address(body["custom_data"]["paymaster"], PAYMASTER_ADDRESS)
        assert body["custom_data"]["gas_per_pubdata"] == 50_000

    def test_estimate_payload(self, routing_config):
        payload = SponsoredTransactionComposer(routing_config).estimate_payload(
            TEST_ADDRESS, ROUTER_ADDRESS, b"\x01\x02"
        )

        meta = payload["eip712Meta"]
        assert meta["gasPerPubdata"] == hex(50_000)
        assert same_address(meta["paymasterParams"]["paymaster"], PAYMASTER_ADDRESS)
        assert bytes(meta["paymasterParams"]["paymasterInput"]) == general_paymaster_input()


class TestOperationKind:
    """Selector-based classification."""

    def test_approve(self):
        assert classify_operation(encode_approve(ROUTER_ADDRESS)) == OperationKind.APPROVE

    def test_transfer(self):
        assert classify_operation(encode_transfer(TEST_ADDRESS, 5)) == OperationKind.TRANSFER

    def test_legacy_swap(self):
        assert classify_operation(bytes.fromhex("2cc4081e") + b"\x00" * 32) == OperationKind.SWAP

    def test_native_transfer(self):
        assert classify_operation(b"", value=10) == OperationKind.NATIVE_TRANSFER

    def test_unknown(self):
        assert classify_operation(bytes.fromhex("deadbeef")) == OperationKind.UNKNOWN
        assert classify_operation(None) == OperationKind.UNKNOWN
