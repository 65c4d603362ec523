"""
Read-only accessor for the deployment database.

The database is the JSON file written by the deployment tasks:

    {
      "<ContractId>": {"<network>": {"address": "0x..", "deployer": "0x.."}},
      "<network>": {
        "instance": {"<address>": {"id": "<ContractId>", ...}},
        "external": {"<address>": {"id": "<name>", "verify": {"impl": "0x..", "args": ...}}}
      }
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class DeploymentRegistry:
    """Lookups over recorded deployments of one network"""

    def __init__(self, data: Dict[str, Any], network: str):
        self._data = data
        self.network = network

    @classmethod
    def from_file(cls, path: str, network: str) -> "DeploymentRegistry":
        db_path = Path(path)
        if not db_path.exists():
            logger.warning(f"Deployment database {db_path} not found, using an empty registry")
            return cls({}, network)
        try:
            with db_path.open('r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid deployment database {db_path}: {e}") from e
        return cls(data, network)

    def _network_section(self, section: str) -> Dict[str, Record]:
        return self._data.get(self.network, {}).get(section, {}) or {}

    def lookup_by_key(self, key: str) -> Optional[Record]:
        """Return the primary record of a contract id on this network"""
        entry = self._data.get(key)
        if not isinstance(entry, dict):
            return None
        record = entry.get(self.network)
        if not isinstance(record, dict) or 'address' not in record:
            return None
        return record

    def list_external_records(self) -> List[Tuple[str, Record]]:
        """Return (address, descriptor) pairs of externally deployed contracts"""
        return list(self._network_section('external').items())

    def lookup_instance(self, address: str) -> Optional[Record]:
        """Return the instance descriptor recorded for an address"""
        instances = self._network_section('instance')
        record = instances.get(address)
        if record is None:
            lowered = address.lower()
            for addr, desc in instances.items():
                if addr.lower() == lowered:
                    return desc
        return record
