"""
Concurrent dispatch of independent per-individual fits.

Each task spends nearly all its time waiting on an external sampler
process, so a thread pool is enough to keep several sampler runs going
at once. Results come back in task order whatever the completion order.
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from bsam.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


def resolve_workers(max_workers, n_tasks):
    """Clamp ``max_workers`` (None = CPU count - 1) to the number of tasks."""
    if max_workers is None:
        max_workers = max(1, (os.cpu_count() or 2) - 1)
    if int(max_workers) < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers!r}")
    return max(1, min(int(max_workers), n_tasks))


def map_ordered(fn, tasks, max_workers=1, label="task"):
    """Apply ``fn`` to every task and return results in task order.

    Args:
        fn: Worker function taking one task.
        tasks: Sequence of task arguments.
        max_workers: Thread count; 1 runs sequentially in the caller.
        label: Name used in log messages.

    Returns:
        List of ``fn(task)`` results, aligned with ``tasks``.
    """
    tasks = list(tasks)
    if not tasks:
        return []

    workers = resolve_workers(max_workers, len(tasks))
    if workers == 1:
        return [fn(task) for task in tasks]

    log.info("Running %d %s(s) on %d workers", len(tasks), label, workers)
    results = [None] * len(tasks)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(fn, task): i for i, task in enumerate(tasks)}
        for future in as_completed(futures):
            i = futures[future]
            results[i] = future.result()
            log.debug("Completed %s %d of %d", label, i + 1, len(tasks))
    return results
