"""
Wrapper around the external ``revela`` Move decompiler.

``revela -b <module.mv>`` prints decompiled Move source on stdout. Output is
decoded as UTF-8 with invalid bytes replaced. A non-zero exit status or a
timeout is reported as a failed result, never passed off as source text.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import DecompilerError

logger = logging.getLogger(__name__)


@dataclass
class ModuleDecompilation:
    """Outcome of decompiling one module file."""
    module_name: str
    source: str = ""
    returncode: Optional[int] = None
    stderr: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class RevelaDecompiler:
    def __init__(self, binary: str = "revela", timeout: Optional[float] = 60.0):
        self.binary = binary
        self.timeout = timeout

    def build_command(self, path: Union[str, Path]):
        return [self.binary, "-b", str(path)]

    def decompile_file(
        self,
        path: Union[str, Path],
        module_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ModuleDecompilation:
        path = Path(path)
        module_name = module_name or path.stem
        effective_timeout = timeout if timeout is not None else self.timeout

        try:
            completed = subprocess.run(
                self.build_command(path),
                capture_output=True,
                timeout=effective_timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise DecompilerError(
                f"Decompiler executable {self.binary!r} not found", module_name=module_name
            ) from e
        except OSError as e:
            raise DecompilerError(
                f"Could not run decompiler {self.binary!r}: {e}", module_name=module_name
            ) from e
        except subprocess.TimeoutExpired:
            logger.error("revela timed out after %ss on %s", effective_timeout, module_name)
            return ModuleDecompilation(
                module_name=module_name,
                error=f"Decompiler timed out after {effective_timeout}s",
            )

        stdout = completed.stdout.decode("utf-8", errors="replace")
        stderr = completed.stderr.decode("utf-8", errors="replace")

        if completed.returncode != 0:
            logger.error(
                "revela exited with status %d on %s: %s",
                completed.returncode, module_name, stderr.strip(),
            )
            return ModuleDecompilation(
                module_name=module_name,
                source=stdout,
                returncode=completed.returncode,
                stderr=stderr,
                error=f"Decompiler exited with status {completed.returncode}: {stderr.strip()}",
            )

        return ModuleDecompilation(
            module_name=module_name,
            source=stdout,
            returncode=completed.returncode,
            stderr=stderr,
        )
