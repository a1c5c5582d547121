from __future__ import annotations
import time
from contextlib import contextmanager
from typing import Iterator

from loguru import logger


@contextmanager
def time_block(name: str, level: str = "DEBUG") -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        dur = (time.perf_counter() - start) * 1000.0
        logger.log(level, f"[timing] {name}: {dur:.2f} ms")
