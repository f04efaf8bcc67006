import pytest
from unittest.mock import MagicMock, AsyncMock, patch
from web3 import Web3

from monitor.exceptions import CompoundError, TransportError
from monitor.models import TxResult
from monitor.services.executor import (
    V3PositionExecutor,
    V4PositionExecutor,
    make_executor,
)
from monitor.services.rebalancer import WithdrawRebalanceStrategy
from monitor.utils.web3 import MAX_UINT128, MAX_UINT256

from tests.conftest import NFT_MANAGER_ADDR, make_snapshot, make_v3_config, make_v4_config

PRIVATE_KEY = "0x" + "11" * 32
TX_HASH = b"\x12" * 32
TOKEN0 = "0x3234567890123456789012345678901234567890"
TOKEN1 = "0x4234567890123456789012345678901234567890"


@pytest.fixture
def mock_web3_helper():
    with patch("monitor.services.executor.AsyncWeb3Helper") as mock:
        yield mock


def mock_contract_call(contract_function_mock, return_value):
    """Helper to mock a contract function call: contract.functions.func().call() -> return_value"""
    method_obj = MagicMock()
    contract_function_mock.return_value = method_obj
    method_obj.call = AsyncMock(return_value=return_value)
    method_obj.build_transaction = AsyncMock(return_value={"to": NFT_MANAGER_ADDR, "data": "0x"})
    return method_obj


def wire_transactions(executor, status=1):
    eth = executor.helper.web3.eth
    eth.get_transaction_count = AsyncMock(return_value=3)
    eth.estimate_gas = AsyncMock(return_value=100_000)
    signed = MagicMock()
    signed.raw_transaction = b"signed"
    eth.account.sign_transaction = MagicMock(return_value=signed)
    eth.send_raw_transaction = AsyncMock(return_value=TX_HASH)
    eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": status})
    return eth


@pytest.fixture
def v4_executor(mock_web3_helper):
    executor = V4PositionExecutor(make_v4_config(), PRIVATE_KEY, tx_timeout=30)
    executor.position_manager = MagicMock()
    wire_transactions(executor)
    return executor


@pytest.fixture
def v3_executor(mock_web3_helper):
    executor = V3PositionExecutor(make_v3_config(), PRIVATE_KEY, tx_timeout=30)
    executor.position_manager = MagicMock()
    wire_transactions(executor)
    return executor


class TestClaim:
    @pytest.mark.asyncio
    async def test_nothing_to_claim_sends_nothing(self, v4_executor):
        mock_contract_call(v4_executor.position_manager.functions.collect, (0, 0))

        result = await v4_executor.claim_fees()

        assert result == TxResult()
        v4_executor.helper.web3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claim_sends_collect(self, v4_executor):
        collect = mock_contract_call(v4_executor.position_manager.functions.collect, (5, 7))

        result = await v4_executor.claim_fees()

        assert result.tx_hash == Web3.to_hex(TX_HASH)
        assert (result.amount0, result.amount1) == (5, 7)
        v4_executor.position_manager.functions.collect.assert_called_with(
            (7, v4_executor.address, MAX_UINT128, MAX_UINT128)
        )
        collect.call.assert_awaited_once_with({"from": v4_executor.address})

    @pytest.mark.asyncio
    async def test_gas_buffer_applied(self, v4_executor):
        collect = mock_contract_call(v4_executor.position_manager.functions.collect, (5, 7))

        await v4_executor.claim_fees()

        tx = v4_executor.helper.web3.eth.account.sign_transaction.call_args.args[0]
        assert tx["gas"] == 130_000
        collect.build_transaction.assert_awaited_once_with({"from": v4_executor.address, "nonce": 3})
        v4_executor.helper.web3.eth.wait_for_transaction_receipt.assert_awaited_once_with(
            TX_HASH, timeout=30
        )

    @pytest.mark.asyncio
    async def test_reverted_receipt_raises(self, v4_executor):
        mock_contract_call(v4_executor.position_manager.functions.collect, (5, 7))
        wire_transactions(v4_executor, status=0)

        with pytest.raises(TransportError, match="reverted"):
            await v4_executor.claim_fees()

    @pytest.mark.asyncio
    async def test_send_failure_raises(self, v4_executor):
        mock_contract_call(v4_executor.position_manager.functions.collect, (5, 7))
        v4_executor.helper.web3.eth.send_raw_transaction = AsyncMock(side_effect=Exception("nonce too low"))

        with pytest.raises(TransportError, match="nonce too low"):
            await v4_executor.claim_fees()

    @pytest.mark.asyncio
    async def test_simulation_failure_raises(self, v4_executor):
        method_obj = mock_contract_call(v4_executor.position_manager.functions.collect, (0, 0))
        method_obj.call = AsyncMock(side_effect=Exception("not approved"))

        with pytest.raises(TransportError):
            await v4_executor.claim_fees()


class TestLiquidity:
    @pytest.mark.asyncio
    async def test_compound_claims_then_adds(self, v4_executor):
        mock_contract_call(v4_executor.position_manager.functions.collect, (5, 7))
        mock_contract_call(v4_executor.position_manager.functions.increaseLiquidity, (1000, 5, 6))

        result = await v4_executor.compound()

        assert (result.amount0, result.amount1) == (5, 7)
        assert result.liquidity == 1000
        assert result.tx_hash == Web3.to_hex(TX_HASH)
        params = v4_executor.position_manager.functions.increaseLiquidity.call_args.args[0]
        assert params[:5] == (7, 5, 7, 0, 0)
        assert v4_executor.helper.web3.eth.send_raw_transaction.await_count == 2

    @pytest.mark.asyncio
    async def test_compound_readd_failure_keeps_claim(self, v4_executor):
        v4_executor.claim_fees = AsyncMock(
            return_value=TxResult(tx_hash="0xclaimed", amount0=5, amount1=7)
        )
        v4_executor.increase_liquidity = AsyncMock(side_effect=TransportError("increase reverted"))

        with pytest.raises(CompoundError, match="increase reverted") as exc:
            await v4_executor.compound()

        assert exc.value.claimed == TxResult(tx_hash="0xclaimed", amount0=5, amount1=7)
        assert isinstance(exc.value, TransportError)

    @pytest.mark.asyncio
    async def test_compound_with_nothing_claimed(self, v4_executor):
        mock_contract_call(v4_executor.position_manager.functions.collect, (0, 0))

        result = await v4_executor.compound()

        assert result.tx_hash is None
        v4_executor.position_manager.functions.increaseLiquidity.assert_not_called()

    @pytest.mark.asyncio
    async def test_increase_approves_tokens(self, v3_executor):
        mock_contract_call(
            v3_executor.position_manager.functions.positions,
            (0, TOKEN0, TOKEN0, TOKEN1, 3000, -100, 100, 10**18, 0, 0, 0, 0),
        )
        mock_contract_call(v3_executor.position_manager.functions.increaseLiquidity, (1000, 5, 7))
        token0, token1 = MagicMock(), MagicMock()
        mock_contract_call(token0.functions.allowance, 0)
        mock_contract_call(token1.functions.allowance, MAX_UINT256)
        mock_contract_call(token0.functions.approve, True)
        v3_executor.helper.make_contract_by_name.side_effect = (
            lambda name, addr: token0 if addr == TOKEN0 else token1
        )

        result = await v3_executor.increase_liquidity(5, 7)

        assert result.liquidity == 1000
        token0.functions.approve.assert_called_once_with(
            Web3.to_checksum_address(NFT_MANAGER_ADDR), MAX_UINT256
        )
        token1.functions.approve.assert_not_called()

    @pytest.mark.asyncio
    async def test_decrease_liquidity(self, v4_executor):
        mock_contract_call(v4_executor.position_manager.functions.decreaseLiquidity, (40, 50))

        result = await v4_executor.decrease_liquidity(1000)

        assert (result.amount0, result.amount1, result.liquidity) == (40, 50, 1000)
        params = v4_executor.position_manager.functions.decreaseLiquidity.call_args.args[0]
        assert params[:4] == (7, 1000, 0, 0)

    @pytest.mark.asyncio
    async def test_decrease_zero_is_noop(self, v4_executor):
        assert await v4_executor.decrease_liquidity(0) == TxResult()

    @pytest.mark.asyncio
    async def test_v4_position_liquidity(self, v4_executor):
        mock_contract_call(v4_executor.position_manager.functions.getPositionLiquidity, 1234)
        assert await v4_executor.position_liquidity() == 1234


class TestWithdrawRebalance:
    @pytest.mark.asyncio
    async def test_withdraws_then_collects(self):
        executor = MagicMock()
        executor.position_liquidity = AsyncMock(return_value=500)
        executor.decrease_liquidity = AsyncMock(return_value=TxResult(tx_hash="0x01"))
        executor.claim_fees = AsyncMock(return_value=TxResult(tx_hash="0x02", amount0=1))

        result = await WithdrawRebalanceStrategy().rebalance(make_snapshot(in_range=False), executor)

        executor.decrease_liquidity.assert_awaited_once_with(500)
        assert result.tx_hash == "0x02"

    @pytest.mark.asyncio
    async def test_empty_position_only_collects(self):
        executor = MagicMock()
        executor.position_liquidity = AsyncMock(return_value=0)
        executor.decrease_liquidity = AsyncMock()
        executor.claim_fees = AsyncMock(return_value=TxResult())

        await WithdrawRebalanceStrategy().rebalance(make_snapshot(in_range=False), executor)

        executor.decrease_liquidity.assert_not_awaited()
        executor.claim_fees.assert_awaited_once()


def test_make_executor_dispatches_on_protocol(mock_web3_helper):
    assert isinstance(make_executor(make_v3_config(), PRIVATE_KEY), V3PositionExecutor)
    assert isinstance(make_executor(make_v4_config(), PRIVATE_KEY), V4PositionExecutor)
