"""
Exceptions raised by the upscaler orchestration layer.

Runtime failures and cancellation are reported through UpscaleResult; only
conditions detected before the external process runs are raised.
"""

from __future__ import annotations

import errno
from pathlib import Path


class InputNotFoundError(FileNotFoundError):
    """The input file or directory does not exist.

    ``filename`` carries the resolved absolute path.
    """

    def __init__(self, path: str | Path):
        resolved = str(Path(path).resolve())
        super().__init__(errno.ENOENT, "Failed to find input directory/file", resolved)


class UpscalerLaunchError(RuntimeError):
    """The upscaler process could not be started."""


class ConfigurationError(ValueError):
    """Invalid or incomplete upscale configuration."""
