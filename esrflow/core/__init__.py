"""
Core modules: invocation arguments, progress inference and process orchestration.
"""

from .errors import ConfigurationError, InputNotFoundError, UpscalerLaunchError
from .gpu import GPUDirective
from .invocation import OutputFormat, UpscaleInputArgs
from .models import CANCELLED_EXIT_CODE, UpscaleResult
from .orchestrator import UpscaleProcess, run_upscale, submit_upscale
from .configuration import ConfigurationLoader, resolve_executable

__all__ = [
    "ConfigurationError",
    "InputNotFoundError",
    "UpscalerLaunchError",
    "GPUDirective",
    "OutputFormat",
    "UpscaleInputArgs",
    "CANCELLED_EXIT_CODE",
    "UpscaleResult",
    "UpscaleProcess",
    "run_upscale",
    "submit_upscale",
    "ConfigurationLoader",
    "resolve_executable",
]
