"""
esrflow: run a realesrgan-ncnn-vulkan style upscaler as a subprocess with
progress reporting and cancellation.
"""

from .core import (
    CANCELLED_EXIT_CODE,
    ConfigurationError,
    ConfigurationLoader,
    GPUDirective,
    InputNotFoundError,
    OutputFormat,
    UpscaleInputArgs,
    UpscaleProcess,
    UpscaleResult,
    UpscalerLaunchError,
    run_upscale,
    submit_upscale,
)

__version__ = "0.1.0"

__all__ = [
    "CANCELLED_EXIT_CODE",
    "ConfigurationError",
    "ConfigurationLoader",
    "GPUDirective",
    "InputNotFoundError",
    "OutputFormat",
    "UpscaleInputArgs",
    "UpscaleProcess",
    "UpscaleResult",
    "UpscalerLaunchError",
    "run_upscale",
    "submit_upscale",
]
