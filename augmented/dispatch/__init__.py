"""
Command Dispatcher
==================

Resolves symbolic contract references, prepares call arguments and invokes
contract functions under role based access control:
- name_resolver: Object references to contract handles
- arguments: Percentages, rates, token symbols, pool names, ABI coercion
- invocation: Direct, temporary admin and callWithRoles call paths
- commands: Command alias table
"""

from .commands import COMMAND_ALIASES, CommandContext, CustomCommand, DirectCall, run_command
from .invocation import CallParams, EncodedCall, InvocationEngine

__all__ = [
    'COMMAND_ALIASES',
    'CallParams',
    'CommandContext',
    'CustomCommand',
    'DirectCall',
    'EncodedCall',
    'InvocationEngine',
    'run_command',
]
