"""Fork-join ``parallel_for`` over an index range.

If the inner block of a loop can be written as a single call::

    for i in range(loop_size):
        body(i)

then ``parallel_for(loop_size, body, min_parallel)`` splits the range into
contiguous slices, runs one slice per worker thread and blocks until all of
them are done.  Short loops (``loop_size < min_parallel``) and single-worker
configurations run serially on the calling thread.

The accumulating form adds a preparation hook, called once with the number
of (potential) workers before anything runs, and an accumulation hook,
called for every worker id after the join::

    partial = []
    def prepare(n):
        partial[:] = [0.0] * n
    def body(i, t):
        partial[t] += x[i]
    def accumulate(t):
        total[0] += partial[t]

    parallel_for(len(x), body, 1000, prepare=prepare, accumulate=accumulate)

``body`` must only communicate through per-worker state: slices are
processed in increasing index order, but slices run in no particular order
relative to each other.

Worker count
------------
Resolved once per process, in this priority: :func:`set_default_num_threads`,
the ``VOLREMESH_NUM_THREADS`` environment variable (if a positive integer),
``os.cpu_count()``, and finally 8.  A per-call ``num_threads`` overrides it.

Workers are threads; the numpy kernels they run release the GIL for the
bulk of their work.
"""

from __future__ import annotations

import logging
import math
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from .errors import PreconditionError

logger = logging.getLogger(__name__)

NUM_THREADS_ENV = "VOLREMESH_NUM_THREADS"
FALLBACK_NUM_THREADS = 8

_default_num_threads: Optional[int] = None
_default_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Worker count
# ---------------------------------------------------------------------------

def _resolve_num_threads() -> int:
    env = os.environ.get(NUM_THREADS_ENV)
    if env:
        try:
            n = int(env)
        except ValueError:
            n = 0
        if n > 0:
            return n
        logger.debug("Ignoring %s=%r", NUM_THREADS_ENV, env)
    hw = os.cpu_count()
    if hw:
        return hw
    return FALLBACK_NUM_THREADS


def set_default_num_threads(num_threads: int) -> int:
    """Fix the process-wide worker count explicitly and return it."""
    global _default_num_threads
    if num_threads < 1:
        raise PreconditionError(f"num_threads must be >= 1, got {num_threads}")
    with _default_lock:
        _default_num_threads = int(num_threads)
    return _default_num_threads


def default_num_threads() -> int:
    """Process-wide worker count, resolved on first use and then fixed."""
    global _default_num_threads
    with _default_lock:
        if _default_num_threads is None:
            _default_num_threads = _resolve_num_threads()
            logger.debug("Resolved default worker count: %d", _default_num_threads)
        return _default_num_threads


def reset_default_num_threads() -> None:
    """Forget the resolved worker count so the next call resolves it again."""
    global _default_num_threads
    with _default_lock:
        _default_num_threads = None


# ---------------------------------------------------------------------------
# Partition
# ---------------------------------------------------------------------------

def _slices(loop_size: int, num_threads: int) -> List[Tuple[int, int, int]]:
    """Contiguous ``(start, stop, worker_id)`` ranges covering ``[0, loop_size)``.

    Every worker but the last spawned gets ``ceil((loop_size + 1) / W)``
    indices; the last one takes whatever remains.
    """
    size = max(math.ceil((loop_size + 1) / num_threads), 1)
    out = []
    i1, i2 = 0, min(size, loop_size)
    t = 0
    while t + 1 < num_threads and i1 < loop_size:
        out.append((i1, i2, t))
        i1, i2 = i2, min(i2 + size, loop_size)
        t += 1
    if i1 < loop_size:
        out.append((i1, loop_size, t))
    assert out[0][0] == 0 and out[-1][1] == loop_size
    return out


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------

def parallel_for(
    loop_size: int,
    body: Callable[..., None],
    min_parallel: int = 0,
    *,
    prepare: Optional[Callable[[int], None]] = None,
    accumulate: Optional[Callable[[int], None]] = None,
    num_threads: Optional[int] = None,
) -> bool:
    """Run ``body`` for every index in ``[0, loop_size)``.

    Parameters
    ----------
    loop_size:
        Number of iterations.
    body:
        ``body(i)`` when neither hook is given, ``body(i, t)`` otherwise,
        with ``t`` the id of the worker running index ``i``.
    min_parallel:
        Loops shorter than this run serially.
    prepare:
        Called once with the number of workers ``n`` before any ``body``.
    accumulate:
        Called with every worker id ``t`` in ``range(n)`` after all workers
        joined, including workers that received no indices.
    num_threads:
        Per-call worker count; defaults to :func:`default_num_threads`.

    Returns
    -------
    bool
        ``True`` if a worker pool was used.

    Notes
    -----
    There is no cancellation.  If any ``body`` call raises, all slices still
    run to completion, then the first exception (in slice order) is
    re-raised and ``accumulate`` is not called.
    """
    if loop_size < 0:
        raise PreconditionError(f"loop_size must be >= 0, got {loop_size}")
    if loop_size == 0:
        return False

    if prepare is None and accumulate is None:
        func = body
        call = lambda i, t: func(i)  # noqa: E731
    else:
        call = body
    prepare = prepare or (lambda n: None)
    accumulate = accumulate or (lambda t: None)

    nthreads = num_threads if num_threads is not None else default_num_threads()
    if loop_size < min_parallel or nthreads <= 1:
        prepare(1)
        for i in range(loop_size):
            call(i, 0)
        accumulate(0)
        return False

    def _run_range(k1: int, k2: int, t: int) -> None:
        for k in range(k1, k2):
            call(k, t)

    slices = _slices(loop_size, nthreads)
    logger.debug("parallel_for: %d iterations over %d workers", loop_size, len(slices))
    prepare(nthreads)
    with ThreadPoolExecutor(max_workers=len(slices), thread_name_prefix="volremesh") as pool:
        futures = [pool.submit(_run_range, k1, k2, t) for k1, k2, t in slices]
    for future in futures:
        future.result()
    for t in range(nthreads):
        accumulate(t)
    return True
