"""
Augmented Market Operations
===========================

Operational tooling for the Augmented lending protocol.

Structure:
- access_flags: Role table and role bitmask composition
- registry: Read-only access to the deployment database
- contracts: Contract type table and ABI handles
- chain: Web3 connection, signing and transaction helpers
- dispatch/: Name resolution, argument preparation and role-gated invocation
- cli: Command line entry point
- suite: Integration test scaffolding
"""

__version__ = "1.0.0"
__author__ = "Augmented Protocol Team"
