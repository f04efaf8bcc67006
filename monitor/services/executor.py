"""
Chain-write executor for position automation.

Wraps the position manager's collect / increaseLiquidity / decreaseLiquidity
entry points. Every write is simulated first, then signed, sent and awaited
until its receipt confirms. Failures surface as TransportError.
"""
import asyncio
import logging
import time
from typing import Optional, Tuple

from eth_account import Account
from web3 import Web3
from web3.contract import AsyncContract

from protocol.models import PositionConfig, V3PositionConfig, V4PositionConfig
from monitor.exceptions import CompoundError, TransportError
from monitor.models import TxResult
from monitor.utils.env import TX_TIMEOUT_SECONDS
from monitor.utils.web3 import AsyncWeb3Helper, MAX_UINT128, MAX_UINT256

logger = logging.getLogger(__name__)

DEADLINE_SECONDS = 600
GAS_BUFFER = 1.3


class PositionExecutor:
    """
    Sends position transactions for one configured position.

    Args:
        config: Position configuration
        private_key: Key of the wallet that owns the position NFT
        manager_abi: ABI name of the position manager contract
        tx_timeout: Seconds to wait for each receipt
    """

    def __init__(
        self,
        config: PositionConfig,
        private_key: str,
        manager_abi: str,
        tx_timeout: int = TX_TIMEOUT_SECONDS,
    ):
        self.config = config
        self.account = Account.from_key(private_key)
        self.tx_timeout = tx_timeout
        self.helper = AsyncWeb3Helper.make_web3(config.chain_id, config.rpc_url)
        self.position_manager: AsyncContract = self.helper.make_contract_by_name(
            name=manager_abi,
            addr=config.position_manager_address,
        )

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def token_id(self) -> int:
        raise NotImplementedError

    async def token_addresses(self) -> Optional[Tuple[str, str]]:
        """Token contracts of the position, None when unknown."""
        raise NotImplementedError

    async def position_liquidity(self) -> int:
        raise NotImplementedError

    # -----------------------------
    # Position operations
    # -----------------------------

    async def simulate_collect(self) -> Tuple[int, int]:
        amount0, amount1 = await self._collect_fn().call({"from": self.address})
        return int(amount0), int(amount1)

    async def claim_fees(self) -> TxResult:
        """
        Collect all owed fees to the owner wallet.

        Claiming with nothing owed sends no transaction and returns zero amounts.
        """
        try:
            amount0, amount1 = await self.simulate_collect()
        except Exception as e:
            raise TransportError(f"Collect simulation failed for {self.config.name}: {e}") from e

        if amount0 == 0 and amount1 == 0:
            logger.info(f"[{self.config.name}] Nothing to claim")
            return TxResult()

        logger.info(f"[{self.config.name}] Claiming fees: amount0={amount0}, amount1={amount1}")
        tx_hash = await self._send(self._collect_fn())
        return TxResult(tx_hash=tx_hash, amount0=amount0, amount1=amount1)

    async def increase_liquidity(self, amount0: int, amount1: int) -> TxResult:
        """Add token amounts as liquidity to the existing position."""
        if amount0 == 0 and amount1 == 0:
            return TxResult()

        tokens = await self.token_addresses()
        if tokens is not None:
            await self._ensure_allowance(tokens[0], amount0)
            await self._ensure_allowance(tokens[1], amount1)

        fn = self.position_manager.functions.increaseLiquidity(
            (self.token_id, amount0, amount1, 0, 0, self._deadline())
        )
        try:
            liquidity, used0, used1 = await fn.call({"from": self.address})
        except Exception as e:
            raise TransportError(
                f"increaseLiquidity simulation failed for {self.config.name}: {e}"
            ) from e

        logger.info(
            f"[{self.config.name}] Increasing liquidity by {liquidity} "
            f"(amount0={used0}, amount1={used1})"
        )
        tx_hash = await self._send(fn)
        return TxResult(tx_hash=tx_hash, amount0=int(used0), amount1=int(used1), liquidity=int(liquidity))

    async def decrease_liquidity(self, liquidity: int) -> TxResult:
        """Remove liquidity; the released tokens become owed and need a collect."""
        if liquidity <= 0:
            return TxResult()

        fn = self.position_manager.functions.decreaseLiquidity(
            (self.token_id, liquidity, 0, 0, self._deadline())
        )
        try:
            amount0, amount1 = await fn.call({"from": self.address})
        except Exception as e:
            raise TransportError(
                f"decreaseLiquidity simulation failed for {self.config.name}: {e}"
            ) from e

        logger.info(
            f"[{self.config.name}] Decreasing liquidity by {liquidity} "
            f"(amount0={amount0}, amount1={amount1})"
        )
        tx_hash = await self._send(fn)
        return TxResult(tx_hash=tx_hash, amount0=int(amount0), amount1=int(amount1), liquidity=liquidity)

    async def compound(self) -> TxResult:
        """
        Claim fees and add them back as liquidity.

        Returns the claimed amounts with the hash of the liquidity transaction.
        No swap is made, so the pool takes what matches the current ratio and
        the remainder stays in the wallet.

        Raises:
            CompoundError: If the collect confirmed but the re-add failed;
                carries the claim result
        """
        claimed = await self.claim_fees()
        if claimed.tx_hash is None:
            return claimed
        try:
            added = await self.increase_liquidity(claimed.amount0, claimed.amount1)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise CompoundError(
                f"Fees claimed in {claimed.tx_hash} but re-adding liquidity failed "
                f"for {self.config.name}: {e}",
                claimed=claimed,
            ) from e
        return TxResult(
            tx_hash=added.tx_hash or claimed.tx_hash,
            amount0=claimed.amount0,
            amount1=claimed.amount1,
            liquidity=added.liquidity,
        )

    # -----------------------------
    # Transactions
    # -----------------------------

    def _collect_fn(self):
        return self.position_manager.functions.collect(
            (self.token_id, self.address, MAX_UINT128, MAX_UINT128)
        )

    @staticmethod
    def _deadline() -> int:
        return int(time.time()) + DEADLINE_SECONDS

    async def _ensure_allowance(self, token_address: str, amount: int) -> None:
        if amount <= 0:
            return
        token = self.helper.make_contract_by_name(name="ERC20", addr=token_address)
        spender = Web3.to_checksum_address(self.config.position_manager_address)
        allowance = await token.functions.allowance(self.address, spender).call()
        if allowance >= amount:
            return
        logger.info(f"[{self.config.name}] Approving {token_address} for position manager")
        await self._send(token.functions.approve(spender, MAX_UINT256))

    async def _send(self, fn) -> str:
        """Sign, send and wait for a contract call; returns the tx hash."""
        web3 = self.helper.web3
        try:
            nonce = await web3.eth.get_transaction_count(self.address)
            tx = await fn.build_transaction({"from": self.address, "nonce": nonce})
            estimated = await web3.eth.estimate_gas(tx)
            tx["gas"] = int(estimated * GAS_BUFFER)

            signed = web3.eth.account.sign_transaction(tx, self.account.key)
            tx_hash = await web3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransportError(f"Transaction failed for {self.config.name}: {e}") from e

        tx_hex = Web3.to_hex(tx_hash)
        if receipt["status"] != 1:
            raise TransportError(f"Transaction {tx_hex} reverted for {self.config.name}")
        logger.info(f"[{self.config.name}] Transaction confirmed: {tx_hex}")
        return tx_hex


class V3PositionExecutor(PositionExecutor):
    def __init__(self, config: V3PositionConfig, private_key: str, tx_timeout: int = TX_TIMEOUT_SECONDS):
        super().__init__(config, private_key, "INonfungiblePositionManager", tx_timeout)
        self._tokens: Optional[Tuple[str, str]] = None

    @property
    def token_id(self) -> int:
        return self.config.nft_id

    async def token_addresses(self) -> Optional[Tuple[str, str]]:
        if self._tokens is None:
            info = await self.position_manager.functions.positions(self.token_id).call()
            self._tokens = (info[2], info[3])
        return self._tokens

    async def position_liquidity(self) -> int:
        info = await self.position_manager.functions.positions(self.token_id).call()
        return int(info[7])


class V4PositionExecutor(PositionExecutor):
    def __init__(self, config: V4PositionConfig, private_key: str, tx_timeout: int = TX_TIMEOUT_SECONDS):
        super().__init__(config, private_key, "PositionManager", tx_timeout)

    @property
    def token_id(self) -> int:
        return self.config.position_token_id

    async def token_addresses(self) -> Optional[Tuple[str, str]]:
        if self.config.token0_address and self.config.token1_address:
            return self.config.token0_address, self.config.token1_address
        return None

    async def position_liquidity(self) -> int:
        return int(await self.position_manager.functions.getPositionLiquidity(self.token_id).call())


def make_executor(
    config: PositionConfig, private_key: str, tx_timeout: int = TX_TIMEOUT_SECONDS
) -> PositionExecutor:
    """Build the chain-write executor for a position's protocol variant."""
    if config.protocol == "v3":
        return V3PositionExecutor(config, private_key, tx_timeout)
    if config.protocol == "v4":
        return V4PositionExecutor(config, private_key, tx_timeout)
    raise ValueError(f"Unsupported protocol {config.protocol}")
