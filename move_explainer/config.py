"""
Settings loading: ``settings.yaml`` first, then environment overrides.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .decompilation_pipeline import FailurePolicy, PipelineConfig
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"
ENV_PREFIX = "MOVE_EXPLAINER_"


@dataclass
class Settings:
    db_path: str = "data/explanations.db"
    rpc_url_template: str = "https://fullnode.{network}.sui.io:443"
    rpc_timeout: float = 30.0
    revela_binary: str = "revela"
    decompile_timeout: float = 60.0
    max_workers: Optional[int] = None
    scratch_root: Optional[str] = None
    failure_policy: str = "abort"
    enforce_ownership: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5000

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            max_workers=self.max_workers,
            scratch_root=self.scratch_root,
            rpc_timeout=self.rpc_timeout,
            decompile_timeout=self.decompile_timeout,
            failure_policy=FailurePolicy.parse(self.failure_policy),
        )


# Short spellings accepted after the canonical MOVE_EXPLAINER_<FIELD> name.
_ENV_ALIASES = {
    "revela_binary": (ENV_PREFIX + "REVELA_BIN",),
}


def _env_names(name: str):
    return (ENV_PREFIX + name.upper(),) + _ENV_ALIASES.get(name, ())


def _coerce(name: str, raw: Any, target: Any) -> Any:
    """Convert a YAML/env value to the type of the field default."""
    if raw is None:
        return None
    if isinstance(target, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    if name in ("max_workers", "port"):
        if isinstance(raw, str) and raw.strip().lower() in ("", "null", "none"):
            return None
        return int(raw)
    if name in ("rpc_timeout", "decompile_timeout"):
        return float(raw)
    if name == "scratch_root" and isinstance(raw, str) and raw.strip().lower() in ("", "null", "none"):
        return None
    return str(raw)


def load_settings(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
) -> Settings:
    """Load settings from YAML and environment variables (env wins)."""
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    values: Dict[str, Any] = {}
    if settings_path.exists():
        with open(settings_path, "r") as f:
            values = yaml.safe_load(f) or {}
    elif path:
        logger.warning("Settings file %s not found, using defaults", settings_path)

    env = os.environ if env is None else env
    defaults = Settings()
    kwargs: Dict[str, Any] = {}
    for f in fields(Settings):
        raw = values.get(f.name, getattr(defaults, f.name))
        for env_name in _env_names(f.name):
            env_value = env.get(env_name)
            if env_value is not None:
                raw = env_value
                break
        try:
            kwargs[f.name] = _coerce(f.name, raw, getattr(defaults, f.name))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid setting {f.name}={raw!r}: {e}", field=f.name) from e

    settings = Settings(**kwargs)
    if settings.max_workers is not None and settings.max_workers < 1:
        raise ValidationError(
            f"Invalid setting max_workers={settings.max_workers!r}: must be at least 1",
            field="max_workers",
        )
    FailurePolicy.parse(settings.failure_policy)
    return settings
