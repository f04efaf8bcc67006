import os
from typing import TypeVar, Type, Optional

from dotenv import load_dotenv

load_dotenv()

T = TypeVar("T")


def get_env_variable(name: str, type_: Type[T], default: Optional[T]) -> T:
    """Type-safe wrapper for `os.getenv`.

    Args:
        name (str): Name of the environment variable.
        type_ (Type[T]): Type of the environment variable.
        default (T): Default value if the environment variable is not set.

    Returns:
        T: Value of the environment variable, or None when it is unset
        and the default is None.

    Usage:
        ```python
        from monitor.utils.env import get_env_variable

        get_env_variable("TG_CHAT_ID", str, None)
        get_env_variable("CHECK_INTERVAL_MINUTES", int, 5)
        ```
    """
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return type_.__call__(value)
    except ValueError:
        raise ValueError(
            f"Environment variable '{name}' is not of type '{type_.__name__}'."
        )


# RPC endpoints
MAINNET_RPC = get_env_variable(
    name="MAINNET_RPC",
    type_=str,
    default="https://eth.llamarpc.com",
)
BASE_RPC = get_env_variable(
    name="BASE_RPC",
    type_=str,
    default="https://base.llamarpc.com",
)
MONAD_RPC = get_env_variable(
    name="MONAD_RPC",
    type_=str,
    default="https://rpc.monad.xyz",
)

# Wallet used for simulated collects and automation transactions
PRIVATE_KEY = get_env_variable(
    name="PRIVATE_KEY",
    type_=str,
    default=None,
)
TX_TIMEOUT_SECONDS = get_env_variable(
    name="TX_TIMEOUT_SECONDS",
    type_=int,
    default=120,
)

# Telegram notifications
TG_BOT_TOKEN = get_env_variable(
    name="TG_BOT_TOKEN",
    type_=str,
    default=None,
)
TG_CHAT_ID = get_env_variable(
    name="TG_CHAT_ID",
    type_=str,
    default=None,
)

# Monitor configuration
MONITOR_CONFIG_PATH = get_env_variable(
    name="MONITOR_CONFIG_PATH",
    type_=str,
    default="config.json",
)
CHECK_INTERVAL_MINUTES = get_env_variable(
    name="CHECK_INTERVAL_MINUTES",
    type_=float,
    default=None,
)
LOG_LEVEL = get_env_variable(
    name="LOG_LEVEL",
    type_=str,
    default="INFO",
)
