from typing import AsyncIterator, Optional
import asyncio


class StreamTimeout(Exception):
    """Raised when a stream outlives its wall-clock budget."""


async def with_deadline(stream: AsyncIterator[str], seconds: Optional[float]) -> AsyncIterator[str]:
    """Re-yield ``stream`` but give up once ``seconds`` have elapsed in total.

    The budget covers the whole stream, not each chunk. The source is closed on
    exit either way.
    """
    if not seconds or seconds <= 0:
        async for chunk in stream:
            yield chunk
        return

    loop = asyncio.get_running_loop()
    deadline = loop.time() + seconds
    iterator = stream.__aiter__()
    try:
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise StreamTimeout(f"stream exceeded {seconds:g}s")
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError as exc:
                raise StreamTimeout(f"stream exceeded {seconds:g}s") from exc
            yield chunk
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
