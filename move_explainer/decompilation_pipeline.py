"""
Decompilation pipeline for on-chain Move packages.

For one package object:
1. fetch the module map from a Sui full node
2. base64-decode every module
3. write each module to ``<scratch>/<module>.mv``, where ``<scratch>`` is a
   temporary directory owned by this request and removed afterwards
4. run the decompiler on every file, fanned out over a bounded thread pool
5. assemble module name -> source text

``FailurePolicy.ABORT`` raises on the first failed module and returns
nothing; ``FailurePolicy.COLLECT`` returns the successes together with a
per-module error message for each failure.
"""

import base64
import binascii
import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from .address import Address
from .errors import DecodeError, DecompilerError, ValidationError
from .revela import ModuleDecompilation, RevelaDecompiler
from .sui_rpc import SuiNetwork, SuiRpcClient

logger = logging.getLogger(__name__)


class FailurePolicy(Enum):
    ABORT = "abort"
    COLLECT = "collect"

    @classmethod
    def parse(cls, token: str) -> "FailurePolicy":
        for policy in cls:
            if policy.value == token:
                return policy
        raise ValidationError(f"Unknown failure policy: {token!r}", field="policy")


@dataclass
class PipelineConfig:
    """Tuning knobs for the decompilation fan-out."""
    max_workers: Optional[int] = None  # None -> CPU count
    scratch_root: Optional[str] = None  # None -> system temp dir
    rpc_timeout: Optional[float] = None
    decompile_timeout: Optional[float] = None
    failure_policy: FailurePolicy = FailurePolicy.ABORT


@dataclass
class DecompilationResult:
    address: str
    network: str
    modules: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return len(self.failures) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "network": self.network,
            "data": self.modules,
            "failures": self.failures,
        }


def decode_module(module_name: str, encoded: str) -> bytes:
    """Strict base64 decode of one module's bytecode."""
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(
            f"Module {module_name!r} is not valid base64: {e}", module_name=module_name
        ) from e


class DecompilationPipeline:
    def __init__(
        self,
        fetcher: SuiRpcClient,
        decompiler: RevelaDecompiler,
        config: Optional[PipelineConfig] = None,
    ):
        self.fetcher = fetcher
        self.decompiler = decompiler
        self.config = config or PipelineConfig()

    @property
    def max_workers(self) -> int:
        return self.config.max_workers or os.cpu_count() or 1

    def decompile_object(
        self,
        address: Address,
        network: SuiNetwork,
        policy: Optional[FailurePolicy] = None,
    ) -> DecompilationResult:
        """Decompile every module of the object at *address* on *network*."""
        policy = policy or self.config.failure_policy
        result = DecompilationResult(address=address.as_str(), network=network.as_str())

        module_map = self.fetcher.fetch_object_modules(
            address, network, timeout=self.config.rpc_timeout
        )

        decoded: Dict[str, bytes] = {}
        for name, encoded in module_map.items():
            try:
                decoded[name] = decode_module(name, encoded)
            except DecodeError as e:
                if policy is FailurePolicy.ABORT:
                    raise
                logger.warning("Skipping module %s: %s", name, e)
                result.failures[name] = e.message

        if decoded:
            try:
                scratch_dir = tempfile.TemporaryDirectory(
                    prefix="move-explainer-", dir=self.config.scratch_root
                )
            except OSError as e:
                raise DecompilerError(
                    f"Could not create scratch directory under {self.config.scratch_root!r}: {e}"
                ) from e
            with scratch_dir as scratch:
                self._run_decompiler(Path(scratch), decoded, policy, result)

        logger.info(
            "Decompiled %s on %s: %d module(s) ok, %d failed",
            address, network.as_str(), len(result.modules), len(result.failures),
        )
        return result

    def _run_decompiler(
        self,
        scratch: Path,
        decoded: Dict[str, bytes],
        policy: FailurePolicy,
        result: DecompilationResult,
    ) -> None:
        paths = {}
        for name, bytecode in decoded.items():
            path = scratch / f"{name}.mv"
            try:
                path.write_bytes(bytecode)
            except OSError as e:
                raise DecompilerError(
                    f"Could not write scratch file for module {name!r}: {e}", module_name=name
                ) from e
            paths[name] = path

        workers = min(self.max_workers, len(paths))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_module = {
                executor.submit(
                    self.decompiler.decompile_file,
                    path,
                    name,
                    self.config.decompile_timeout,
                ): name
                for name, path in paths.items()
            }

            for future in as_completed(future_to_module):
                name = future_to_module[future]
                try:
                    outcome: ModuleDecompilation = future.result()
                except DecompilerError:
                    for pending in future_to_module:
                        pending.cancel()
                    raise

                if outcome.success:
                    result.modules[name] = outcome.source
                    continue

                if policy is FailurePolicy.ABORT:
                    for pending in future_to_module:
                        pending.cancel()
                    raise DecompilerError(
                        f"Decompiling module {name!r} failed: {outcome.error}",
                        module_name=name,
                    )
                result.failures[name] = outcome.error or "unknown error"
