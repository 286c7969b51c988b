"""
Invocation arguments for the upscaler executable.

UpscaleInputArgs collects everything needed for one run and compiles it into
the executable's command line. Flags that match the executable's own defaults
are left out so the tool keeps its built-in behavior.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union

from .gpu import GPUDirective

DEFAULT_MODEL_DIRECTORY = "models"
DEFAULT_MODEL_NAME = "realesr-animevideov3"
DEFAULT_SCALE = 4


class OutputFormat(Enum):
    """Format of the upscaled image(s); DEFAULT lets the executable decide."""
    DEFAULT = "default"
    JPG = "jpg"
    PNG = "png"
    WEBP = "webp"


@dataclass
class UpscaleInputArgs:
    """Input arguments for a single UpscaleProcess run."""
    executable_path: str
    input_path: str
    output_path: str
    # Only 2 and 3 are emitted; anything else falls back to the executable default.
    scale: int = DEFAULT_SCALE
    model_directory: str = DEFAULT_MODEL_DIRECTORY
    model_name: str = DEFAULT_MODEL_NAME
    output_format: OutputFormat = OutputFormat.DEFAULT
    tta_enabled: bool = False
    gpus: List[GPUDirective] = field(default_factory=list)

    def _tokens(self) -> Iterator[Tuple[str, Optional[str], bool]]:
        """Yield (flag, value, quoted) in the order the executable expects."""
        yield "-i", self.input_path, True
        yield "-o", self.output_path, True

        if 1 < self.scale < 4:
            yield "-s", str(self.scale), False

        if self.model_directory != DEFAULT_MODEL_DIRECTORY:
            yield "-m", self.model_directory, True

        yield "-n", self.model_name, False

        if self.output_format != OutputFormat.DEFAULT:
            yield "-f", self.output_format.name.lower(), False

        if self.tta_enabled:
            yield "-x", None, False

        if self.gpus:
            yield "-g", ",".join(str(g.id) for g in self.gpus), False
            yield "-t", ",".join(str(g.tile_size) for g in self.gpus), False
            yield "-j", ",".join(g.thread_spec for g in self.gpus), False

    def build_args(self) -> str:
        """Compile the argument string passed to the executable.

        Input and output are wrapped in double quotes exactly as given; embedded
        quotes are the caller's responsibility.
        """
        parts: List[str] = []
        for flag, value, quoted in self._tokens():
            if value is None:
                parts.append(f" {flag}")
            elif quoted:
                parts.append(f' {flag} "{value}"')
            else:
                parts.append(f" {flag} {value}")
        return "".join(parts)

    def build_command(self) -> Union[List[str], str]:
        """Return the launchable command for subprocess.Popen.

        On POSIX the argv is built from the fields directly, so paths reach the
        executable byte for byte.
        """
        if os.name == "nt":
            return f'"{self.executable_path}"{self.build_args()}'
        argv = [self.executable_path]
        for flag, value, _ in self._tokens():
            argv.append(flag)
            if value is not None:
                argv.append(value)
        return argv

    def clone(self) -> "UpscaleInputArgs":
        """Create a deep copy; the GPU list is not shared with the original."""
        return copy.deepcopy(self)
