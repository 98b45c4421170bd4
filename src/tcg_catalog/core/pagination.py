"""
Concurrent offset pagination.

A single producer feeds page offsets into a bounded queue, a fixed pool of
workers fetches them, and every item is forwarded individually to a result
queue that the caller drains. A page that fails is logged and skipped; the
run keeps going and the failure is reported in the result.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

from .datasource import PageFetcher
from .errors import Cancelled
from .telemetry import TelemetryDecision, create_event, get_recorder

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DONE = object()


def page_offsets(total_items: int, page_size: int) -> List[int]:
    """
    Offsets that partition a collection into pages.

    Args:
        total_items: Collection size
        page_size: Items per page

    Returns:
        [0, page_size, 2*page_size, ...] up to but excluding total_items

    Raises:
        ValueError: If page_size is not positive
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return list(range(0, max(total_items, 0), page_size))


@dataclass
class PaginationResult(Generic[T]):
    """
    Outcome of a concurrent fetch.

    Attributes:
        items: Every item fetched, in arrival order
        failed_offsets: Offsets whose fetch raised, ascending
        errors: Exception per failed offset
        skipped_offsets: Offsets never issued because the run was cancelled
    """
    items: List[T] = field(default_factory=list)
    failed_offsets: List[int] = field(default_factory=list)
    errors: dict[int, BaseException] = field(default_factory=dict)
    skipped_offsets: List[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_offsets and not self.skipped_offsets


async def fetch_all(
    total_items: int,
    page_size: int,
    worker_count: int,
    fetch_page: PageFetcher,
    cancel: Optional[asyncio.Event] = None,
) -> PaginationResult:
    """
    Fetch every page of a collection using a bounded worker pool.

    Each offset is fetched exactly once; worker_count bounds how many fetches
    are in flight at the same time.

    Args:
        total_items: Collection size
        page_size: Items per page
        worker_count: Number of concurrent workers
        fetch_page: Coroutine function returning the items at an offset
        cancel: Optional event; once set, no further offsets are issued

    Returns:
        PaginationResult with the items in arrival order and any failures

    Raises:
        ValueError: If page_size or worker_count is not positive
    """
    if worker_count <= 0:
        raise ValueError("worker_count must be positive")
    offsets = page_offsets(total_items, page_size)

    result: PaginationResult = PaginationResult()
    if not offsets:
        return result

    work: asyncio.Queue = asyncio.Queue(maxsize=worker_count)
    sink: asyncio.Queue = asyncio.Queue()

    async def produce() -> None:
        for i, offset in enumerate(offsets):
            if cancel is not None and cancel.is_set():
                result.skipped_offsets.extend(offsets[i:])
                logger.warning(f"Cancelled, {len(offsets) - i} page(s) not requested")
                break
            await work.put(offset)
        for _ in range(worker_count):
            await work.put(None)

    async def work_loop(worker_id: int) -> None:
        while True:
            offset = await work.get()
            if offset is None:
                return
            try:
                items = await fetch_page(offset)
            except Cancelled:
                result.skipped_offsets.append(offset)
                continue
            except Exception as e:
                logger.error(f"Worker {worker_id}: page at offset {offset} failed: {e}")
                result.failed_offsets.append(offset)
                result.errors[offset] = e
                get_recorder().record(create_event(
                    host="",
                    endpoint="",
                    decision=TelemetryDecision.PAGE_FAILED,
                    detail={"offset": offset, "error": str(e)},
                ))
                continue
            for item in items:
                await sink.put(item)

    async def coordinate(workers: List["asyncio.Task[None]"]) -> None:
        try:
            await asyncio.gather(*workers)
        finally:
            await sink.put(_DONE)

    producer = asyncio.ensure_future(produce())
    workers = [asyncio.ensure_future(work_loop(i)) for i in range(worker_count)]
    coordinator = asyncio.ensure_future(coordinate(workers))

    try:
        while True:
            item = await sink.get()
            if item is _DONE:
                break
            result.items.append(item)
        await producer
        await coordinator
    finally:
        for task in (producer, coordinator, *workers):
            if not task.done():
                task.cancel()

    result.failed_offsets.sort()
    result.skipped_offsets.sort()
    logger.debug(
        f"Fetched {len(result.items)} item(s) from {len(offsets)} page(s), "
        f"{len(result.failed_offsets)} failed"
    )
    return result


def sort_by_key(items: Iterable[T], key: Callable[[T], Any]) -> List[T]:
    """
    Stable ascending sort by an identity key.

    The output depends only on the set of items, not on their arrival order,
    as long as keys are unique.
    """
    return sorted(items, key=key)
