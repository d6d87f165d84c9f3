import asyncio
import logging
from typing import Any, Awaitable, Dict, Tuple

from errors import ForumError

logger = logging.getLogger(__name__)


async def gather_fields(operation: str, fields: Dict[str, Tuple[Awaitable, Any]]) -> Dict[str, Any]:
    """Await every secondary query concurrently.

    ``fields`` maps a name to ``(awaitable, default)``. A query that fails
    with a ``ForumError`` is logged and its field takes the default; any
    other exception is a bug and propagates.
    """
    names = list(fields)
    results = await asyncio.gather(*(fields[name][0] for name in names), return_exceptions=True)
    merged = {}
    for name, result in zip(names, results):
        if isinstance(result, ForumError):
            logger.warning("%s: %s unavailable, using default (%s)", operation, name, result)
            merged[name] = fields[name][1]
        elif isinstance(result, BaseException):
            raise result
        else:
            merged[name] = result
    return merged
