"""Execution strategies for task lists

Two interchangeable strategies run a list of self-contained tasks:

- SerialExecutor: iterates the tasks in the calling thread
- ThreadedExecutor: groups the tasks by estimated cost onto a fixed number
  of worker threads (multiprocessing.pool.ThreadPool); the dense kernels
  release the GIL inside BLAS

Tasks own disjoint destination blocks and accumulate their operands in a
fixed order, so both strategies produce identical results for the same
task list.

Import Policy:
    from sdtensor.blas.execution import SerialExecutor, ThreadedExecutor, select_executor
"""

from __future__ import annotations

import heapq
import logging
from multiprocessing.pool import ThreadPool
from typing import List, Sequence

from sdtensor.blas.tasks import TaskDescriptor
from sdtensor.config.enums import ExecutionMode
from sdtensor.config.options import BlasOptions

logger = logging.getLogger(__name__)


def partition_by_cost(tasks: Sequence[TaskDescriptor], n_groups: int) -> List[List[TaskDescriptor]]:
    """Split tasks into at most n_groups lists of roughly equal total cost.

    Longest-processing-time greedy: tasks are taken by decreasing cost and
    each goes to the currently lightest group. Within a group the original
    task order is kept. Empty groups are dropped.
    """
    if n_groups < 1:
        raise ValueError(f"n_groups must be positive, got {n_groups}")
    order = sorted(range(len(tasks)), key=lambda i: -tasks[i].cost)
    heap = [(0, g) for g in range(n_groups)]
    members: List[List[int]] = [[] for _ in range(n_groups)]
    for i in order:
        load, g = heapq.heappop(heap)
        members[g].append(i)
        heapq.heappush(heap, (load + tasks[i].cost, g))
    return [[tasks[i] for i in sorted(group)] for group in members if group]


def partition_round_robin(tasks: Sequence[TaskDescriptor], n_groups: int) -> List[List[TaskDescriptor]]:
    """Split tasks into at most n_groups lists by position."""
    if n_groups < 1:
        raise ValueError(f"n_groups must be positive, got {n_groups}")
    groups = [list(tasks[g::n_groups]) for g in range(n_groups)]
    return [group for group in groups if group]


def _run_group(group: Sequence[TaskDescriptor]) -> int:
    for task in group:
        task.call()
    return len(group)


class SerialExecutor:
    """Run every task in the calling thread."""

    def run(self, tasks: Sequence[TaskDescriptor]) -> None:
        _run_group(tasks)

    def __repr__(self) -> str:
        return "SerialExecutor()"


class ThreadedExecutor:
    """Run tasks on a pool of worker threads.

    Attributes:
        n_workers: Number of worker threads
        balance: Group tasks by estimated cost (round-robin otherwise)

    """

    def __init__(self, n_workers: int = 2, balance: bool = True):
        """Initialize threaded executor.

        Args:
            n_workers: Number of worker threads
            balance: Group tasks by estimated cost

        """
        if n_workers < 1:
            raise ValueError(f"n_workers must be positive, got {n_workers}")
        self.n_workers = n_workers
        self.balance = balance

    def run(self, tasks: Sequence[TaskDescriptor]) -> None:
        """Execute all tasks; the first worker exception is re-raised."""
        if not tasks:
            return
        n_groups = min(self.n_workers, len(tasks))
        if self.balance:
            groups = partition_by_cost(tasks, n_groups)
        else:
            groups = partition_round_robin(tasks, n_groups)

        logger.debug(
            f"Running {len(tasks)} tasks on {len(groups)} workers, "
            f"group costs {[sum(t.cost for t in g) for g in groups]}"
        )
        with ThreadPool(processes=len(groups)) as pool:
            pool.map(_run_group, groups, chunksize=1)

    def __repr__(self) -> str:
        return f"ThreadedExecutor(n_workers={self.n_workers}, balance={self.balance})"


def select_executor(n_tasks: int, options: BlasOptions):
    """Pick the execution strategy for a task list of the given length."""
    workers = options.resolved_workers
    if options.mode is ExecutionMode.SERIAL:
        return SerialExecutor()
    if options.mode is ExecutionMode.THREADED:
        return ThreadedExecutor(max(1, min(workers, n_tasks)), options.balance)
    if n_tasks <= options.serial_threshold or workers == 1:
        return SerialExecutor()
    return ThreadedExecutor(min(workers, n_tasks), options.balance)


def run_tasks(tasks: Sequence[TaskDescriptor], options: BlasOptions, executor=None) -> None:
    """Execute tasks with the given executor, or the one the options select."""
    if executor is None:
        executor = select_executor(len(tasks), options)
    logger.debug(f"Executing {len(tasks)} tasks with {executor!r}")
    executor.run(tasks)
