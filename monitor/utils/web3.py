import json
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.contract import AsyncContract

from monitor.utils.env import (
    MAINNET_RPC,
    BASE_RPC,
    MONAD_RPC,
)

MAX_UINT128 = (1 << 128) - 1
MAX_UINT256 = (1 << 256) - 1
DEFAULT_ABI_PATH = Path(__file__).parent / "abis"
CHAIN_ID_TO_RPC = {
    1: MAINNET_RPC,
    143: MONAD_RPC,
    8453: BASE_RPC,
}


@lru_cache(maxsize=None)
def load_abi(name: str) -> List[Any]:
    """Load a bundled ABI by contract name; every position shares the parsed copy."""
    path = DEFAULT_ABI_PATH / f"{name}.json"
    if not path.is_file():
        raise ValueError(f"Unknown ABI {name} (no file at {path})")
    with open(path, "r") as f:
        abi_data = json.load(f)
    if isinstance(abi_data, dict):
        return abi_data.get("abi", abi_data)
    return abi_data


class AsyncWeb3Helper:
    """Async web3 connection for one chain, with contract construction by ABI name."""

    def __init__(self, web3: AsyncWeb3) -> None:
        self.web3 = web3

    @classmethod
    def make_web3(cls, chain_id: int, rpc_url: Optional[str] = None) -> "AsyncWeb3Helper":
        """Connect to a chain, preferring a per-position RPC override over the chain default."""
        if rpc_url is None:
            if chain_id not in CHAIN_ID_TO_RPC:
                raise ValueError(f"No RPC configured for chain id {chain_id}")
            rpc_url = CHAIN_ID_TO_RPC[chain_id]
        return cls(AsyncWeb3(AsyncHTTPProvider(rpc_url)))

    def make_contract_by_name(self, name: str, addr: str) -> AsyncContract:
        return self.web3.eth.contract(address=Web3.to_checksum_address(addr), abi=load_abi(name))


def to_bytes32(value: int) -> bytes:
    """Left-pad an unsigned integer into a bytes32 word (v4 position salt)."""
    return value.to_bytes(32, "big")
