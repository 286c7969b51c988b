"""
Pydantic models for run results and the YAML configuration schema.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CANCELLED_EXIT_CODE = -1
CANCELLED_MESSAGE = "operation cancelled"


class UpscaleResult(BaseModel):
    """The result of an upscaling operation.

    Any non-zero ``exit_code`` indicates failure. ``error_message`` is a best-effort
    tail of the executable's diagnostic output and is None on success.
    """
    model_config = ConfigDict(frozen=True)

    exit_code: int
    error_message: Optional[str] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @classmethod
    def cancelled_before_start(cls) -> "UpscaleResult":
        return cls(exit_code=CANCELLED_EXIT_CODE, error_message=CANCELLED_MESSAGE, cancelled=True)


# ----- YAML config schema -----

_THREADS_RE = re.compile(r"^\d+:\d+:\d+$")


class GPUConfigModel(BaseModel):
    id: int = Field(ge=0)
    tile_size: int = 0
    threads: str = "1:2:2"

    @field_validator("tile_size")
    @classmethod
    def tile_size_valid(cls, v: int) -> int:
        # resrgan accepts 0 (auto) or tiles of at least 32 pixels
        if v != 0 and v <= 31:
            raise ValueError(f"tile_size must be 0 or greater than 31, got {v}")
        return v

    @field_validator("threads")
    @classmethod
    def threads_valid(cls, v: str) -> str:
        v = str(v).strip()
        if not _THREADS_RE.match(v):
            raise ValueError(f"threads must look like load:proc:save, got {v!r}")
        if any(int(x) <= 0 for x in v.split(":")):
            raise ValueError(f"thread counts must be positive, got {v!r}")
        return v

    def thread_counts(self) -> tuple[int, int, int]:
        load, proc, save = (int(x) for x in self.threads.split(":"))
        return load, proc, save


class UpscaleConfigModel(BaseModel):
    executable: Optional[str] = None
    input: str
    output: str
    scale: int = 4
    model_dir: str = "models"
    model_name: str = "realesr-animevideov3"
    format: Literal["default", "jpg", "png", "webp"] = "default"
    tta: bool = False
    gpus: List[GPUConfigModel] = Field(default_factory=list)

    @field_validator("format", mode="before")
    @classmethod
    def format_lower(cls, v):
        return str(v).lower() if v is not None else "default"

    @model_validator(mode="after")
    def unique_gpu_ids(self) -> "UpscaleConfigModel":
        seen = set()
        for g in self.gpus:
            if g.id in seen:
                raise ValueError(f"duplicate gpu id: {g.id}")
            seen.add(g.id)
        return self
