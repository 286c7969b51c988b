"""
Per-GPU tuning forwarded to the upscaler executable.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass
class GPUDirective:
    """Settings that a specific GPU should use.

    ``tile_size`` must be exactly 0 (let the upscaler choose) or greater than 31.
    This is not checked here; invalid values reach the executable unchanged.
    """
    id: int
    tile_size: int = 0
    load_threads: int = 1
    process_threads: int = 2
    save_threads: int = 2

    @property
    def thread_spec(self) -> str:
        return f"{self.load_threads}:{self.process_threads}:{self.save_threads}"

    def clone(self) -> "GPUDirective":
        return replace(self)
