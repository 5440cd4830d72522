"""
Sui full-node JSON-RPC client.

Fetches an on-chain package object with ``sui_getObject`` (BCS view enabled)
and extracts its module map: module name -> base64-encoded Move bytecode.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, Optional

import requests

from .address import Address
from .errors import InvalidNetworkError, MalformedResponseError, RpcError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL_TEMPLATE = "https://fullnode.{network}.sui.io:443"

# Module names become scratch file names, so only Move identifiers are accepted.
_MODULE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SuiNetwork(Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"

    @classmethod
    def parse(cls, token: str) -> "SuiNetwork":
        """Parse ``mainnet``/``testnet``/``devnet`` (case-sensitive)."""
        for network in cls:
            if network.value == token:
                return network
        raise InvalidNetworkError(f"Invalid sui network: {token!r}")

    def as_str(self) -> str:
        return self.value


def build_get_object_payload(address: Address) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "sui_getObject",
        "params": [address.as_str(), {"showBcs": True}],
    }


def extract_module_map(body: Any) -> Dict[str, str]:
    """Pull ``result.data.bcs.moduleMap`` out of a decoded RPC response."""
    node = body
    for key in ("result", "data", "bcs", "moduleMap"):
        if not isinstance(node, dict) or key not in node:
            raise MalformedResponseError(
                f"RPC response has no 'result.data.bcs.moduleMap' (missing '{key}')"
            )
        node = node[key]

    if not isinstance(node, dict):
        raise MalformedResponseError("moduleMap is not an object")

    modules: Dict[str, str] = {}
    for name, encoded in node.items():
        if not _MODULE_NAME_PATTERN.match(name):
            raise MalformedResponseError(f"Invalid module name in moduleMap: {name!r}")
        if not isinstance(encoded, str):
            raise MalformedResponseError(f"Bytecode for module {name!r} is not a string")
        modules[name] = encoded
    return modules


class SuiRpcClient:
    """Minimal JSON-RPC client for Sui full nodes."""

    def __init__(
        self,
        url_template: str = DEFAULT_RPC_URL_TEMPLATE,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or requests.Session()

    def endpoint(self, network: SuiNetwork) -> str:
        return self.url_template.format(network=network.as_str())

    def fetch_object_modules(
        self,
        address: Address,
        network: SuiNetwork,
        timeout: Optional[float] = None,
    ) -> Dict[str, str]:
        """
        Fetch an object and return its module map.

        Args:
            address: Package object address.
            network: Sui network to query.
            timeout: Request timeout in seconds; defaults to the client's.

        Returns:
            Dict mapping module name to base64 bytecode.
        """
        url = self.endpoint(network)
        payload = build_get_object_payload(address)
        logger.info("Fetching object %s from %s", address, url)

        try:
            response = self.session.post(
                url,
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise RpcError(f"sui_getObject request to {url} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"RPC response is not valid JSON: {e}") from e

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RpcError(f"sui_getObject returned an error: {message}")

        modules = extract_module_map(body)
        logger.info("Object %s has %d module(s)", address, len(modules))
        return modules
