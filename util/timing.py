# util/timing.py
import time
from contextlib import contextmanager
from typing import Any, Iterator
import logging


@contextmanager
def timed(logger: logging.Logger, name: str, **kv: Any) -> Iterator[None]:
    """
    Usage:
      with timed(logger, "index.build", sections=120):
          ...
    Emits "<name>.done ms=<int> key=val ..." on success and
    "<name>.failed ms=<int> err=<type> ..." when the block raises.
    """
    t0 = time.perf_counter()
    failed: str | None = None
    try:
        yield
    except BaseException as e:
        failed = type(e).__name__
        raise
    finally:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        if failed is None:
            logger.info("%s.done ms=%d%s", name, dt_ms, suffix)
        else:
            logger.warning("%s.failed ms=%d err=%s%s", name, dt_ms, failed, suffix)
