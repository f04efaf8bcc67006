"""
Chain-read adapters for v3 and v4 positions.

Each reader turns protocol-specific contract calls into a RawPoolReading.
make_pool_reader is the only place that branches on the protocol variant.
"""
import asyncio
import logging
from typing import Optional, Tuple

from web3 import Web3
from web3.contract import AsyncContract

from protocol.models import (
    FeeSource,
    PositionConfig,
    RawPoolReading,
    V3PositionConfig,
    V4PositionConfig,
)
from monitor.exceptions import TransportError
from monitor.models import PositionState
from monitor.utils.fees import FeeAccrual
from monitor.utils.web3 import AsyncWeb3Helper, MAX_UINT128, to_bytes32

logger = logging.getLogger(__name__)


class PoolReader:
    """
    Base reader. Subclasses implement the four protocol-specific reads;
    `read` assembles them into a RawPoolReading.
    """

    def __init__(self, config: PositionConfig, owner_address: Optional[str] = None):
        self.config = config
        self.owner_address = owner_address
        self.helper = AsyncWeb3Helper.make_web3(config.chain_id, config.rpc_url)

    async def read_pool(self) -> Tuple[int, int, int]:
        """Return (current_tick, sqrt_price_x96, pool_liquidity)."""
        raise NotImplementedError

    async def read_position(self) -> PositionState:
        raise NotImplementedError

    async def read_fee_growth_inside(self, current_tick: int) -> Tuple[int, int]:
        """Return the current fee growth inside the position's range (X128)."""
        raise NotImplementedError

    async def simulate_collect(self, recipient: str) -> Tuple[int, int]:
        """Static-call collect and return the (amount0, amount1) it would pay out."""
        raise NotImplementedError

    async def read(self, include_fees: bool = True) -> RawPoolReading:
        """
        Read everything needed to value the position this cycle.

        Pool and position reads must succeed; fee reads are best-effort and
        leave the fee fields empty on failure.

        Raises:
            TransportError: If the pool or position read fails
        """
        name = self.config.name
        try:
            (current_tick, sqrt_price_x96, pool_liquidity), position = await asyncio.gather(
                self.read_pool(),
                self.read_position(),
            )
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Failed to read pool state for {name}: {e}") from e

        self._check_ticks(position)

        reading = RawPoolReading(
            current_tick=current_tick,
            sqrt_price_x96=sqrt_price_x96,
            pool_liquidity=pool_liquidity,
            position_liquidity=position.liquidity,
            tokens_owed0=position.tokens_owed0,
            tokens_owed1=position.tokens_owed1,
        )
        if not include_fees:
            return reading

        try:
            fee_growth0, fee_growth1 = await self.read_fee_growth_inside(current_tick)
            reading.fee_growth_inside_last0 = position.fee_growth_inside_last0
            reading.fee_growth_inside_last1 = position.fee_growth_inside_last1
            reading.fee_growth_inside0 = fee_growth0
            reading.fee_growth_inside1 = fee_growth1
        except Exception as e:
            logger.warning(f"[{name}] Fee growth read failed, fees unavailable this cycle: {e}")

        if self.config.fee_source == FeeSource.COLLECT or not reading.has_fee_growth:
            if self.owner_address:
                try:
                    reading.collected0, reading.collected1 = await self.simulate_collect(
                        self.owner_address
                    )
                except Exception as e:
                    logger.warning(f"[{name}] Simulated collect failed: {e}")

        logger.debug(
            f"[{name}] tick={current_tick} sqrtPriceX96={sqrt_price_x96} "
            f"liquidity={position.liquidity}"
        )
        return reading

    def _check_ticks(self, position: PositionState) -> None:
        """Configured ticks are authoritative; a mismatch is only reported."""
        if position.tick_lower is None or position.tick_upper is None:
            return
        if (position.tick_lower, position.tick_upper) != (self.config.tick_lower, self.config.tick_upper):
            logger.warning(
                f"[{self.config.name}] On-chain range [{position.tick_lower}, {position.tick_upper}] "
                f"differs from configured [{self.config.tick_lower}, {self.config.tick_upper}]"
            )

    @staticmethod
    def _collect_params(token_id: int, recipient: str) -> tuple:
        return (
            token_id,
            Web3.to_checksum_address(recipient),
            MAX_UINT128,
            MAX_UINT128,
        )


class V3PoolReader(PoolReader):
    """Reads a v3 pool contract and its NonfungiblePositionManager."""

    def __init__(self, config: V3PositionConfig, owner_address: Optional[str] = None):
        super().__init__(config, owner_address)
        self.pool: AsyncContract = self.helper.make_contract_by_name(
            name="UniswapV3Pool",
            addr=config.pool_address,
        )
        self.position_manager: AsyncContract = self.helper.make_contract_by_name(
            name="INonfungiblePositionManager",
            addr=config.position_manager_address,
        )

    async def read_pool(self) -> Tuple[int, int, int]:
        slot0, liquidity = await asyncio.gather(
            self.pool.functions.slot0().call(),
            self.pool.functions.liquidity().call(),
        )
        return int(slot0[1]), int(slot0[0]), int(liquidity)

    async def read_position(self) -> PositionState:
        # positions(): (nonce, operator, token0, token1, fee, tickLower, tickUpper,
        #               liquidity, feeGrowthInside0LastX128, feeGrowthInside1LastX128,
        #               tokensOwed0, tokensOwed1)
        info = await self.position_manager.functions.positions(self.config.nft_id).call()
        return PositionState(
            tick_lower=int(info[5]),
            tick_upper=int(info[6]),
            liquidity=int(info[7]),
            fee_growth_inside_last0=int(info[8]),
            fee_growth_inside_last1=int(info[9]),
            tokens_owed0=int(info[10]),
            tokens_owed1=int(info[11]),
        )

    async def read_fee_growth_inside(self, current_tick: int) -> Tuple[int, int]:
        global0, global1, lower, upper = await asyncio.gather(
            self.pool.functions.feeGrowthGlobal0X128().call(),
            self.pool.functions.feeGrowthGlobal1X128().call(),
            self.pool.functions.ticks(self.config.tick_lower).call(),
            self.pool.functions.ticks(self.config.tick_upper).call(),
        )
        # ticks(): (liquidityGross, liquidityNet, feeGrowthOutside0X128, feeGrowthOutside1X128, ...)
        inside0 = FeeAccrual.fee_growth_inside(
            int(global0), int(lower[2]), int(upper[2]),
            current_tick, self.config.tick_lower, self.config.tick_upper,
        )
        inside1 = FeeAccrual.fee_growth_inside(
            int(global1), int(lower[3]), int(upper[3]),
            current_tick, self.config.tick_lower, self.config.tick_upper,
        )
        return inside0, inside1

    async def simulate_collect(self, recipient: str) -> Tuple[int, int]:
        amount0, amount1 = await self.position_manager.functions.collect(
            self._collect_params(self.config.nft_id, recipient)
        ).call({"from": Web3.to_checksum_address(recipient)})
        return int(amount0), int(amount1)


class V4PoolReader(PoolReader):
    """Reads a v4 pool through StateView; positions are owned by the PositionManager."""

    def __init__(self, config: V4PositionConfig, owner_address: Optional[str] = None):
        super().__init__(config, owner_address)
        self.pool_id = Web3.to_bytes(hexstr=config.pool_id)
        self.state_view: AsyncContract = self.helper.make_contract_by_name(
            name="StateView",
            addr=config.state_view_address,
        )
        self.position_manager: AsyncContract = self.helper.make_contract_by_name(
            name="PositionManager",
            addr=config.position_manager_address,
        )

    async def read_pool(self) -> Tuple[int, int, int]:
        slot0, liquidity = await asyncio.gather(
            self.state_view.functions.getSlot0(self.pool_id).call(),
            self.state_view.functions.getLiquidity(self.pool_id).call(),
        )
        return int(slot0[1]), int(slot0[0]), int(liquidity)

    async def read_position(self) -> PositionState:
        # The PositionManager owns every v4 position; the token id is the salt.
        liquidity, fee_growth_last0, fee_growth_last1 = await self.state_view.functions.getPositionInfo(
            self.pool_id,
            Web3.to_checksum_address(self.config.position_manager_address),
            self.config.tick_lower,
            self.config.tick_upper,
            to_bytes32(self.config.position_token_id),
        ).call()
        return PositionState(
            liquidity=int(liquidity),
            fee_growth_inside_last0=int(fee_growth_last0),
            fee_growth_inside_last1=int(fee_growth_last1),
        )

    async def read_fee_growth_inside(self, current_tick: int) -> Tuple[int, int]:
        inside0, inside1 = await self.state_view.functions.getFeeGrowthInside(
            self.pool_id,
            self.config.tick_lower,
            self.config.tick_upper,
        ).call()
        return int(inside0), int(inside1)

    async def simulate_collect(self, recipient: str) -> Tuple[int, int]:
        amount0, amount1 = await self.position_manager.functions.collect(
            self._collect_params(self.config.position_token_id, recipient)
        ).call({"from": Web3.to_checksum_address(recipient)})
        return int(amount0), int(amount1)


def make_pool_reader(config: PositionConfig, owner_address: Optional[str] = None) -> PoolReader:
    """Build the chain reader for a position's protocol variant."""
    if config.protocol == "v3":
        return V3PoolReader(config, owner_address)
    if config.protocol == "v4":
        return V4PoolReader(config, owner_address)
    raise ValueError(f"Unsupported protocol {config.protocol}")
