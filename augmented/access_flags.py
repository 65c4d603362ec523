"""
Access flags of the market access controller.

Each role occupies a single bit. A command's required privilege is the
bitwise OR of every role it names; zero means no privilege is required.
"""

from types import SimpleNamespace
from typing import Dict, Iterable, Union

from .errors import UnknownRoleError

# Roles that can be assigned to multiple addresses, bits [0..15]
ROLE_FLAGS: Dict[str, int] = {
    "EMERGENCY_ADMIN": 1 << 0,
    "POOL_ADMIN": 1 << 1,
    "TREASURY_ADMIN": 1 << 2,
    "REWARD_CONFIG_ADMIN": 1 << 3,
    "REWARD_RATE_ADMIN": 1 << 4,
    "STAKE_ADMIN": 1 << 5,
    "REFERRAL_ADMIN": 1 << 6,
    "LENDING_RATE_ADMIN": 1 << 7,
    "SWEEP_ADMIN": 1 << 8,
    "ORACLE_ADMIN": 1 << 9,
    # Proxied singletons
    "LENDING_POOL": 1 << 16,
    "LENDING_POOL_CONFIGURATOR": 1 << 17,
    "LIQUIDITY_CONTROLLER": 1 << 18,
    "TREASURY": 1 << 19,
    "REWARD_TOKEN": 1 << 20,
    "REWARD_STAKE_TOKEN": 1 << 21,
    "REWARD_CONTROLLER": 1 << 22,
    "REWARD_CONFIGURATOR": 1 << 23,
    "STAKE_CONFIGURATOR": 1 << 24,
    "REFERRAL_REGISTRY": 1 << 25,
    # Non-proxied singletons
    "WETH_GATEWAY": 1 << 27,
    "DATA_HELPER": 1 << 28,
    "PRICE_ORACLE": 1 << 29,
    "LENDING_RATE_ORACLE": 1 << 30,
    # Multi-address roles above the singleton range
    "TRUSTED_FLASHLOAN": 1 << 66,
}

def invert_flags(flags: Dict[str, int]) -> Dict[int, str]:
    """Flag -> role name; two roles sharing a flag is a ValueError"""
    names: Dict[int, str] = {}
    for name, flag in flags.items():
        if flag in names:
            raise ValueError(f"Access flag {flag} is shared by {names[flag]} and {name}")
        names[flag] = name
    return names


FLAG_NAMES: Dict[int, str] = invert_flags(ROLE_FLAGS)

ROLES = (1 << 16) - 1
SINGLETONS = ((1 << 64) - 1) & ~ROLES
PROXIES = ((1 << 26) - 1) & ~ROLES

# Attribute access at call sites: AccessFlags.PRICE_ORACLE
AccessFlags = SimpleNamespace(**ROLE_FLAGS)


def role_flag(name: str) -> int:
    """Return the flag of a role name, 0 when the name is unknown"""
    return ROLE_FLAGS.get(name, 0)


def role_name(flag: int) -> str:
    """Return the role name of a single flag"""
    try:
        return FLAG_NAMES[flag]
    except KeyError:
        raise UnknownRoleError(f"Unknown role flag: {flag}") from None


def resolve_roles(values: Iterable[Union[int, str]]) -> int:
    """
    Combine role names and numeric flags into one access bitmask.

    Args:
        values: Role names from the flag table or raw numeric flags

    Returns:
        Bitwise OR of every value
    """
    access_flags = 0
    for value in values:
        if isinstance(value, int):
            access_flags |= value
            continue
        flag = role_flag(value)
        if flag == 0:
            raise UnknownRoleError(f"Unknown role: {value}")
        access_flags |= flag
    return access_flags
