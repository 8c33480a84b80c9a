"""Execution supervisor for sponsored swaps.

Drives one best-effort attempt through the state machine:

    IDLE -> ALLOWANCE_CHECKED -> ALLOWANCE_GRANTED -> ROUTE_PLANNED
         -> FEE_ESTIMATED -> SUBMITTED -> CONFIRMED | FAILED

Every failure ends in FAILED with a classified ErrorReport on the returned
outcome. There is no retry; retry policy belongs to the caller.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from sponsorswap.chain.client import ChainClient
from sponsorswap.chain.fees import FeeMarketAdapter
from sponsorswap.chain.sponsor import SponsoredTransactionComposer
from sponsorswap.config import ETHER, RoutingConfig
from sponsorswap.errors import (
    AllowanceGrantFailedError,
    ConfirmationTimeoutError,
    ContractRevertError,
    ErrorKind,
    FeeTooLowError,
    InsufficientBalanceError,
    NoLiquidityError,
    NoRouteError,
    SigningFailedError,
    SponsorRejectedError,
    SwapError,
    classify_error,
    error_message,
)
from sponsorswap.models import (
    Asset,
    ExecutionOutcome,
    ExecutionState,
    FeeParams,
    Receipt,
    Route,
    SponsoredTransactionRequest,
)
from sponsorswap.routing.enumerator import RouteEnumerator
from sponsorswap.routing.reserves import PoolReserveReader
from sponsorswap.routing.selector import RouteSelector
from sponsorswap.signing.base import SigningError, TransactionSigner
from sponsorswap.swap.calldata import MAX_UINT256, encode_approve, encode_swap
from sponsorswap.swap.plan import SwapPlanBuilder, WithdrawMode

logger = logging.getLogger(__name__)


class ExecutionSupervisor:
    """Runs a single sponsored swap attempt end to end."""

    def __init__(
        self,
        config: RoutingConfig,
        client: ChainClient,
        signer: TransactionSigner,
        fee_adapter: Optional[FeeMarketAdapter] = None,
        composer: Optional[SponsoredTransactionComposer] = None,
        enumerator: Optional[RouteEnumerator] = None,
        selector: Optional[RouteSelector] = None,
        plan_builder: Optional[SwapPlanBuilder] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.client = client
        self.signer = signer
        self.fee_adapter = fee_adapter or FeeMarketAdapter(config)
        self.composer = composer or SponsoredTransactionComposer(config)
        self.enumerator = enumerator or RouteEnumerator(
            config, PoolReserveReader(client, config.pool_factory_address)
        )
        self.selector = selector or RouteSelector()
        self.plan_builder = plan_builder or SwapPlanBuilder(config)
        self.clock = clock

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def plan_route(self, source: Asset, destination: Asset, amount_in: int) -> tuple[Route, list[Route]]:
        """Find and rank routes.

        Returns:
            (best route, all viable routes ranked)

        Raises:
            NoRouteError: If the registry has no path between the assets
            NoLiquidityError: If no candidate path is viable
        """
        if not self.enumerator.candidate_paths(source, destination):
            raise NoRouteError(
                f"No known path from {source.symbol} to {destination.symbol}",
                enrichment={"source": source.address, "destination": destination.address},
            )

        routes = await self.enumerator.enumerate(source, destination, amount_in)
        if not routes:
            raise NoLiquidityError(
                f"No route from {source.symbol} to {destination.symbol} has liquidity",
                enrichment={"source": source.address, "destination": destination.address},
            )

        best = self.selector.select(routes)
        return best, self.selector.rank(routes)

    async def quote_only(self, source: Asset, destination: Asset, amount_in: int) -> list[Route]:
        """Ranked routes without executing anything."""
        _, ranked = await self.plan_route(source, destination, amount_in)
        return ranked

    def min_amount_out(self, route: Route) -> int:
        return route.amount_out * self.config.slippage_floor_percent // 100

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        source: Asset,
        destination: Asset,
        amount_in: int,
        recipient: Optional[str] = None,
    ) -> ExecutionOutcome:
        """Execute one sponsored swap attempt.

        Args:
            source: Asset to sell
            destination: Asset to buy
            amount_in: Amount of source asset in integer units
            recipient: Receiver of the output (defaults to the signer)

        Returns:
            ExecutionOutcome; on failure ``success`` is False and ``error`` is set
        """
        if amount_in <= 0:
            raise ValueError("amount_in must be positive")

        outcome = ExecutionOutcome()
        try:
            await self._run(outcome, source, destination, amount_in, recipient or self.signer.address)
        except SwapError as e:
            self._fail(outcome, e)
        except Exception as e:
            self._fail(outcome, classify_error(e))
        return outcome

    async def _run(
        self,
        outcome: ExecutionOutcome,
        source: Asset,
        destination: Asset,
        amount_in: int,
        recipient: str,
    ) -> None:
        owner = self.signer.address
        router = self.config.router_address
        source, destination = await self._resolve_decimals(source), await self._resolve_decimals(destination)
        logger.info(
            f"Swap {source.from_units(amount_in)} {source.symbol} -> {destination.symbol} "
            f"for {owner} (recipient {recipient})"
        )

        balance = await self.client.balance_of(source.address, owner)
        if balance < amount_in:
            raise InsufficientBalanceError(
                f"{source.symbol} balance {source.from_units(balance)} is below "
                f"requested {source.from_units(amount_in)}",
                enrichment={"balance": str(balance), "required": str(amount_in)},
            )
        await self._log_sponsor_balance()

        # IDLE -> ALLOWANCE_CHECKED
        allowance = await self.client.allowance(source.address, owner, router)
        outcome.advance(ExecutionState.ALLOWANCE_CHECKED)
        logger.info(f"Router allowance for {source.symbol}: {allowance}")

        # ALLOWANCE_CHECKED -> ALLOWANCE_GRANTED
        if allowance < amount_in:
            outcome.approval_tx_hash = await self._grant_allowance(source)
        else:
            logger.info("Allowance sufficient, approval skipped")
        outcome.advance(ExecutionState.ALLOWANCE_GRANTED)

        # ALLOWANCE_GRANTED -> ROUTE_PLANNED
        route, _ = await self.plan_route(source, destination, amount_in)
        path = self.plan_builder.build(route, recipient)
        outcome.route = route
        outcome.swap_path = path
        outcome.min_amount_out = self.min_amount_out(route)
        outcome.deadline = int(self.clock()) + self.config.deadline_seconds
        outcome.advance(ExecutionState.ROUTE_PLANNED)
        logger.info(
            f"Route {route.path_label}: expected {route.amount_out}, "
            f"minimum {outcome.min_amount_out}, deadline {outcome.deadline}"
        )

        # ROUTE_PLANNED -> FEE_ESTIMATED
        calldata = encode_swap([path], outcome.min_amount_out, outcome.deadline)
        outcome.fee = await self.fee_adapter.fee_params(self.client)
        request = await self._compose(router, calldata, outcome.fee)
        outcome.advance(ExecutionState.FEE_ESTIMATED)

        # FEE_ESTIMATED -> SUBMITTED
        unwraps = self.plan_builder.withdraw_mode(destination) == WithdrawMode.UNWRAP
        head = await self._head_block()
        outcome.source_balance_before = await self._read_balance(source, owner, head)
        outcome.destination_balance_before = await self._read_balance(destination, recipient, head, native=unwraps)

        outcome.tx_hash = await self._submit(request)
        outcome.advance(ExecutionState.SUBMITTED)

        # SUBMITTED -> CONFIRMED
        receipt = await self._await_receipt(outcome.tx_hash)
        if not receipt.succeeded:
            raise await self._diagnose_revert(request, receipt)
        outcome.block_number = receipt.block_number
        outcome.advance(ExecutionState.CONFIRMED)
        outcome.success = True
        logger.info(f"Swap confirmed in block {receipt.block_number}")

        outcome.source_balance_after = await self._read_balance(source, owner, receipt.block_number)
        outcome.destination_balance_after = await self._read_balance(
            destination, recipient, receipt.block_number, native=unwraps
        )
        if outcome.destination_balance_before is not None and outcome.destination_balance_after is not None:
            outcome.amount_received = outcome.destination_balance_after - outcome.destination_balance_before
            logger.info(f"Received {destination.from_units(outcome.amount_received)} {destination.symbol}")

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _resolve_decimals(self, asset: Asset) -> Asset:
        try:
            decimals = await self.client.decimals(asset.address)
        except Exception as e:
            logger.warning(f"decimals() failed for {asset.symbol}, using registry value {asset.decimals}: {e}")
            return asset
        if decimals != asset.decimals:
            logger.info(f"{asset.symbol} reports {decimals} decimals (registry says {asset.decimals})")
            return asset.with_decimals(decimals)
        return asset

    async def _compose(self, to: str, data: bytes, fee: FeeParams, value: int = 0) -> SponsoredTransactionRequest:
        owner = self.signer.address
        payload = self.composer.estimate_payload(owner, to, data, value)
        gas_limit = await self.fee_adapter.gas_limit(self.client, payload)
        nonce, chain_id = await asyncio.gather(
            self.client.get_transaction_count(owner),
            self.client.chain_id(),
        )
        return self.composer.compose(
            signer_address=owner,
            to=to,
            data=data,
            value=value,
            fee_params=fee,
            gas_limit=gas_limit,
            nonce=nonce,
            chain_id=chain_id,
        )

    async def _grant_allowance(self, source: Asset) -> str:
        """Approve the router for the maximum amount and wait for confirmation."""
        router = self.config.router_address
        logger.info(f"Approving router {router} to spend {source.symbol}")

        try:
            fee = await self.fee_adapter.fee_params(self.client)
            request = await self._compose(source.address, encode_approve(router, MAX_UINT256), fee)
            signed = await self.signer.sign(request)
            tx_hash = await self.client.broadcast(signed.raw_transaction)
            logger.info(f"Approval submitted: {self._tx_link(tx_hash)}")
            receipt = await self.client.await_receipt(
                tx_hash, self.config.confirmation_timeout, self.config.poll_interval
            )
        except SigningError as e:
            raise AllowanceGrantFailedError(
                f"Signing the {source.symbol} approval failed: {e}",
                enrichment={"cause": ErrorKind.SIGNING_FAILED.value},
            ) from e
        except Exception as e:
            cause = classify_error(e)
            raise AllowanceGrantFailedError(
                f"Approval of {source.symbol} failed: {cause.detail}",
                enrichment={"cause": cause.kind.value, **cause.enrichment},
            ) from e

        if not receipt.succeeded:
            raise AllowanceGrantFailedError(
                f"Approval transaction {tx_hash} reverted",
                enrichment={"tx_hash": tx_hash, "block_number": receipt.block_number},
            )

        logger.info(f"Approval confirmed in block {receipt.block_number}")
        return tx_hash

    async def _submit(self, request: SponsoredTransactionRequest) -> str:
        try:
            signed = await self.signer.sign(request)
        except SigningError as e:
            raise SigningFailedError(
                f"Signing the swap transaction failed: {e}",
                enrichment={"transaction": request.to_debug_dict()},
            ) from e

        try:
            tx_hash = await self.client.broadcast(signed.raw_transaction)
        except Exception as e:
            raise await self._diagnose(e, request) from e

        logger.info(f"Swap submitted: {self._tx_link(tx_hash)}")
        return tx_hash

    async def _await_receipt(self, tx_hash: str) -> Receipt:
        try:
            return await self.client.await_receipt(
                tx_hash, self.config.confirmation_timeout, self.config.poll_interval
            )
        except TimeoutError as e:
            raise ConfirmationTimeoutError(
                f"No receipt for {tx_hash} after {self.config.confirmation_timeout}s",
                enrichment={"tx_hash": tx_hash},
            ) from e

    async def _head_block(self) -> Optional[int]:
        """Head block for the pre-submission balances; None (latest) when unreadable."""
        try:
            return await self.client.block_number()
        except Exception as e:
            logger.warning(f"Could not read head block, reading balances at latest: {e}")
            return None

    async def _read_balance(
        self, asset: Asset, account: str, block: Optional[int], native: bool = False
    ) -> Optional[int]:
        """Balance pinned to ``block``; None when the read fails."""
        try:
            if native:
                return await self.client.native_balance(account, block)
            return await self.client.balance_of(asset.address, account, block)
        except Exception as e:
            logger.warning(f"Could not read {asset.symbol} balance at block {block}: {e}")
            return None

    # ------------------------------------------------------------------
    # Diagnosis
    # ------------------------------------------------------------------

    async def _diagnose(self, exc: Exception, request: SponsoredTransactionRequest) -> SwapError:
        """Classify a submission failure and attach what is needed to act on it."""
        error = classify_error(exc)
        error.enrich(transaction=request.to_debug_dict())

        if isinstance(error, SponsorRejectedError):
            error.enrich(**await self.sponsor_snapshot())
        elif isinstance(error, FeeTooLowError):
            error.enrich(**await self._fee_snapshot(request))

        return error

    async def _diagnose_revert(self, request: SponsoredTransactionRequest, receipt: Receipt) -> SwapError:
        """Replay a mined, reverted transaction at its block to recover the reason."""
        tx = {
            "from": request.from_address,
            "to": request.to,
            "data": request.data,
            "value": request.value,
        }
        try:
            await self.client.call(tx, receipt.block_number)
        except Exception as e:
            reason = error_message(e)
            error = classify_error(e)
        else:
            reason = "execution reverted"
            error = ContractRevertError(
                f"Swap transaction {receipt.tx_hash} reverted in block {receipt.block_number}"
            )

        logger.warning(f"Swap {receipt.tx_hash} reverted: {reason}")
        return error.enrich(
            revert_reason=reason,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            transaction=request.to_debug_dict(),
        )

    async def sponsor_snapshot(self) -> dict:
        """Sponsor address and native balance, flagged when running low."""
        sponsor = self.config.sponsor_address
        try:
            balance = await self.client.native_balance(sponsor)
        except Exception as e:
            return {"sponsor": sponsor, "sponsor_balance_error": str(e)}
        return {
            "sponsor": sponsor,
            "sponsor_balance": str(balance),
            "sponsor_balance_low": balance < self.config.min_sponsor_balance,
        }

    async def _fee_snapshot(self, request: SponsoredTransactionRequest) -> dict:
        snapshot = {"submitted_max_fee_per_gas": str(request.fee.max_fee_per_gas)}
        try:
            data = await self.client.get_fee_data()
        except Exception as e:
            snapshot["fee_data_error"] = str(e)
            return snapshot

        current = data.max_fee_per_gas or data.gas_price
        if current:
            snapshot["current_max_fee_per_gas"] = str(current)
            snapshot["recommended_max_fee_per_gas"] = str(current * 150 // 100)
        return snapshot

    async def _log_sponsor_balance(self) -> None:
        snapshot = await self.sponsor_snapshot()
        if "sponsor_balance" not in snapshot:
            logger.warning(f"Could not read sponsor balance: {snapshot['sponsor_balance_error']}")
        elif snapshot["sponsor_balance_low"]:
            balance = int(snapshot["sponsor_balance"])
            logger.warning(f"Sponsor {snapshot['sponsor']} balance is low: {balance / ETHER:.6f}")
        else:
            logger.info(f"Sponsor {snapshot['sponsor']} balance: {snapshot['sponsor_balance']} wei")

    def _tx_link(self, tx_hash: str) -> str:
        if self.config.explorer_tx_url:
            return f"{self.config.explorer_tx_url}{tx_hash}"
        return tx_hash

    def _fail(self, outcome: ExecutionOutcome, error: SwapError) -> None:
        outcome.success = False
        outcome.error = error.to_report()
        outcome.advance(ExecutionState.FAILED)
        logger.error(f"Swap failed in state {outcome.transitions[-2].value}: {error.kind.value}: {error.detail}")
