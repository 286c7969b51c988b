"""
Configuration management for esrflow.

Loads a YAML upscale configuration, validates it with the pydantic schema in
models.py and turns it into UpscaleInputArgs.
"""

import logging
import os
import platform
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .gpu import GPUDirective
from .invocation import OutputFormat, UpscaleInputArgs
from .models import UpscaleConfigModel

logger = logging.getLogger(__name__)


def get_executable_name() -> str:
    """Return the expected upscaler binary name for the current OS."""
    if platform.system().lower() == "windows":
        return "realesrgan-ncnn-vulkan.exe"
    return "realesrgan-ncnn-vulkan"


def resolve_executable(custom_path: Optional[str]) -> str:
    """Resolve the upscaler binary from an explicit path or PATH.

    An explicit path is returned as written so it reaches the process unchanged.
    """
    if custom_path:
        candidate = Path(custom_path).expanduser()
        if not candidate.is_file():
            raise FileNotFoundError(f"Upscaler executable not found at: {candidate.resolve()}")
        return str(candidate)

    binary_name = get_executable_name()
    system_binary = shutil.which(binary_name)
    if system_binary:
        return system_binary

    raise FileNotFoundError(
        f"Unable to locate {binary_name}. Install it in PATH or set 'executable' in the configuration."
    )


class ConfigurationLoader:
    """YAML configuration file loader and validator."""

    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)
        self.config_dir = self.config_path.parent

    def load_raw(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        with open(self.config_path, 'r') as f:
            raw = yaml.safe_load(f)
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{self.config_path}: expected a mapping at top level")
        return raw

    def load_configuration(self, overrides: Optional[Dict[str, Any]] = None) -> UpscaleInputArgs:
        """Load, validate and convert the configuration.

        ``overrides`` (e.g. from CLI flags) replace keys of the file; None values
        are ignored.
        """
        logger.info(f"Loading configuration from {self.config_path}")
        raw = self.load_raw()
        for key, value in (overrides or {}).items():
            if value is not None:
                raw[key] = value

        try:
            model = UpscaleConfigModel.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"{self.config_path}: {e}") from e

        return self.to_input_args(model)

    @staticmethod
    def to_input_args(model: UpscaleConfigModel) -> UpscaleInputArgs:
        gpus = []
        for g in model.gpus:
            load, proc, save = g.thread_counts()
            gpus.append(GPUDirective(
                id=g.id,
                tile_size=g.tile_size,
                load_threads=load,
                process_threads=proc,
                save_threads=save,
            ))

        return UpscaleInputArgs(
            executable_path=resolve_executable(model.executable),
            input_path=model.input,
            output_path=model.output,
            scale=model.scale,
            model_directory=model.model_dir,
            model_name=model.model_name,
            output_format=OutputFormat(model.format),
            tta_enabled=model.tta,
            gpus=gpus,
        )


def default_config_path() -> Path:
    env = os.environ.get("ESRFLOW_CONFIG")
    if env:
        return Path(env)
    return Path("esrflow.yaml")
