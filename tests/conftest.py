import logging
import stat
import sys
import textwrap
from pathlib import Path

import pytest


# Stand-in for realesrgan-ncnn-vulkan: same flags, stderr protocol and outputs.
# Behavior is picked with FAKE_UPSCALER_MODE.
FAKE_UPSCALER = textwrap.dedent(
    """\
    import os
    import sys
    import time
    from pathlib import Path

    def err(msg):
        print(msg, file=sys.stderr, flush=True)

    argv = sys.argv[1:]
    opts = {}
    i = 0
    while i < len(argv):
        if argv[i].startswith("-") and i + 1 < len(argv) and not argv[i + 1].startswith("-"):
            opts[argv[i]] = argv[i + 1]
            i += 2
        else:
            opts[argv[i]] = True
            i += 1

    src = Path(opts["-i"])
    dst = Path(opts["-o"])
    mode = os.environ.get("FAKE_UPSCALER_MODE", "single")

    if mode == "single":
        err("[0 Fake GPU]  queueC=0[1]  queueG=0[1]  queueT=0[1]")
        for pct in ("10.00%", "55.50%", "100.00%"):
            err(pct)
        dst.write_bytes(src.read_bytes() * 2)
        sys.exit(0)

    if mode == "dir":
        for f in sorted(p for p in src.iterdir() if p.is_file()):
            err("0.00%")
            err("100.00%")
            (dst / (f.stem + ".png")).write_bytes(f.read_bytes())
            err(f"{f.name} -> {f.stem}.png done")
            time.sleep(0.1)
        sys.exit(0)

    if mode == "fail":
        err("[0 Fake GPU]  queueC=0[1]  queueG=0[1]  queueT=0[1]")
        err("50.00%")
        err("vkAllocateMemory failed -2")
        err("invalid gpu device")
        sys.exit(3)

    if mode == "chatty_fail":
        for n in range(20):
            err(f"line {n}")
            err(f"{n}.00%")
        sys.exit(1)

    if mode == "slow":
        for n in range(1, 400):
            err(f"{n * 0.25:.2f}%")
            time.sleep(0.05)
        dst.write_bytes(b"done")
        sys.exit(0)

    if mode == "slow_dir":
        files = sorted(p for p in src.iterdir() if p.is_file())
        (dst / (files[0].stem + ".png")).write_bytes(files[0].read_bytes())
        for _ in range(400):
            err("50.00%")
            time.sleep(0.05)
        sys.exit(0)

    if mode == "burst_dir":
        # every output lands right before exit
        for f in sorted(p for p in src.iterdir() if p.is_file()):
            (dst / (f.stem + ".png")).write_bytes(f.read_bytes())
        sys.exit(0)

    if mode == "argv":
        dst.write_text("\\n".join(argv))
        sys.exit(0)

    sys.exit(99)
    """
)


@pytest.fixture
def fake_upscaler(tmp_path) -> str:
    path = tmp_path / "bin" / "realesrgan-ncnn-vulkan"
    path.parent.mkdir(parents=True)
    path.write_text(f"#!{sys.executable}\n" + FAKE_UPSCALER)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def single_image(tmp_path) -> Path:
    img = tmp_path / "samples" / "single.jpg"
    img.parent.mkdir(parents=True, exist_ok=True)
    img.write_bytes(b"\xff\xd8fake-jpeg")
    return img


@pytest.fixture
def image_folder(tmp_path) -> Path:
    folder = tmp_path / "samples" / "folder"
    folder.mkdir(parents=True)
    for n in range(4):
        (folder / f"img_{n}.jpg").write_bytes(b"\xff\xd8" + bytes([n]))
    # nested entries are not counted as inputs
    (folder / "nested").mkdir()
    return folder


@pytest.fixture(autouse=True)
def _restore_logging():
    # setup_logging reconfigures the esrflow logger; undo it between tests
    saved = {}
    for name in ("", "esrflow"):
        lg = logging.getLogger(name)
        saved[name] = (list(lg.handlers), lg.level, lg.propagate)
    yield
    for name, (handlers, level, propagate) in saved.items():
        lg = logging.getLogger(name)
        for h in list(lg.handlers):
            if h not in handlers:
                lg.removeHandler(h)
                h.close()
        lg.setLevel(level)
        lg.propagate = propagate
