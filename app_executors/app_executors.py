"""Background Executors for the Weather Service

Global executor pools for the whole service. Grouping the pools here keeps
disk work from waiting behind network work and gives every component the same
single-worker disk queue, which serializes all writes to the weather database.

Pools:
- disk_io: One worker. Storage writes, staleness checks and live query
  refreshes run here in submission order.
- network_io: Small pool for remote forecast fetches.

Work is handed over with execute(), fire-and-forget. Exceptions raised by a
task are logged and do not reach the submitter.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable


class TaskExecutor(ThreadPoolExecutor):
    """ThreadPoolExecutor with a fire-and-forget execute() method."""

    def __init__(self, max_workers: int, thread_name_prefix: str) -> None:
        super().__init__(max_workers=max_workers, thread_name_prefix=thread_name_prefix)

        self.logger = logging.getLogger(name=thread_name_prefix)

    def execute(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Run fn(*args, **kwargs) on the pool without waiting for it.

        Args:
            fn (Callable[..., Any]): Work to run.

        Returns:
            Future: Future of the submitted work. Failures are already logged.
        """
        future = self.submit(fn, *args, **kwargs)
        future.add_done_callback(self.__log_failure)

        return future

    def __log_failure(self, future: Future) -> None:
        if future.cancelled():
            return

        exception = future.exception()

        if exception is not None:
            self.logger.error(
                "Background task failed.",
                exc_info=(type(exception), exception, exception.__traceback__),
            )


class AppExecutors:
    """Holder of the disk and network executor pools.

    Attributes:
        DISK_IO_THREADS (int): Worker count of the disk pool (1)
        NETWORK_IO_THREADS (int): Worker count of the network pool (3)
    """

    DISK_IO_THREADS = 1
    NETWORK_IO_THREADS = 3

    def __init__(self, network_io_threads: int = NETWORK_IO_THREADS) -> None:
        self.disk_io = TaskExecutor(
            max_workers=AppExecutors.DISK_IO_THREADS, thread_name_prefix="disk-io"
        )
        self.network_io = TaskExecutor(
            max_workers=network_io_threads, thread_name_prefix="network-io"
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and optionally wait for queued work to finish."""
        self.network_io.shutdown(wait=wait)
        self.disk_io.shutdown(wait=wait)
