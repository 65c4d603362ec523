"""Protocol wide constants"""

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Blocks a temporary admin designation stays valid in compatible mode
TEMPORARY_ADMIN_DURATION = 10

PERCENTAGE_DECIMALS = 2
RATE_DECIMALS = 18

DEFAULT_POOL_NAME = "Augmented"
