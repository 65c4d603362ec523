"""
Error taxonomy for dispatcher commands.

Every error a command can raise derives from CommandError so the CLI can
report it and exit non-zero. Nothing here is retried.
"""

from typing import Iterable, Optional


class CommandError(Exception):
    """Base class for failures surfaced to the command caller"""


class ConfigurationError(CommandError):
    """Missing or invalid environment configuration"""


class ResolutionError(CommandError):
    """Unknown, ambiguous or absent object, token or pool reference"""

    def __init__(self, message: str, matches: Optional[Iterable] = None):
        self.matches = list(matches) if matches is not None else []
        if self.matches:
            message = f"{message}, {self.matches}"
        super().__init__(message)


class UnknownRoleError(ResolutionError):
    """Role name is not in the access flag table or maps to zero"""


class UnsupportedModeError(CommandError):
    """Incompatible combination of call flags"""


class InvalidArgumentError(CommandError, ValueError):
    """Command argument cannot be converted to the expected value"""


class RevertError(CommandError):
    """On-chain call or transaction reverted"""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)
