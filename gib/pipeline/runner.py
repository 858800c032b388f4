"""Bounded-concurrency driver shared by the bulk pipelines.

Tokens are processed in batches of ``concurrency``; each batch is awaited
as a whole and its outcomes are folded in hashlist order, so output files
are identical whatever the concurrency. With ``concurrency=1`` every RPC
call completes before the next token starts.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from ..core.exceptions import TokenSkipped
from ..core.models import TokenOutcome
from ..core.types import SkipReason

logger = logging.getLogger(__name__)

TokenWorker = Callable[[str], Awaitable[Any]]
OutcomeHandler = Callable[[TokenOutcome], None]
ProgressCallback = Callable[[int, int], None]


async def evaluate(
    token: str,
    worker: TokenWorker,
    recoverable: tuple[type[Exception], ...] = (),
) -> TokenOutcome:
    """
    Run the worker for one token and wrap the result.

    ``TokenSkipped`` is always recovered with its own reason; the
    ``recoverable`` exception types are recovered as RPC errors. Anything
    else propagates.
    """
    try:
        value = await worker(token)
    except TokenSkipped as e:
        logger.warning(f"Skipping {e.message}")
        return TokenOutcome(token=token, skip_reason=e.reason, detail=e.message)
    except recoverable as e:
        logger.warning(f"Skipping {token}: {e}")
        return TokenOutcome(token=token, skip_reason=SkipReason.RPC_ERROR, detail=str(e))
    return TokenOutcome(token=token, value=value)


def unique_tokens(tokens: Sequence[str]) -> tuple[list[str], int]:
    """Drop repeated tokens, keeping first occurrences in order.

    Returns the unique tokens and the number of entries dropped.
    """
    unique = list(dict.fromkeys(tokens))
    return unique, len(tokens) - len(unique)


async def run_tokens(
    tokens: Sequence[str],
    worker: TokenWorker,
    on_outcome: OutcomeHandler,
    concurrency: int = 1,
    recoverable: tuple[type[Exception], ...] = (),
    progress: ProgressCallback | None = None,
) -> int:
    """
    Process tokens with at most ``concurrency`` in flight.

    When a token raises an unrecoverable error, the outcomes of the tokens
    before it in the same batch are still delivered to ``on_outcome``
    before the error propagates.

    Args:
        tokens: Work queue, in output order
        worker: Coroutine producing the value for one token
        on_outcome: Called with every outcome, in token order
        concurrency: Maximum tokens processed at once
        recoverable: Extra exception types that skip a token instead of
                     aborting the run
        progress: Called with (processed, total) after each outcome

    Returns:
        Number of tokens processed
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    total = len(tokens)
    processed = 0

    for start in range(0, total, concurrency):
        batch = tokens[start:start + concurrency]
        results = await asyncio.gather(
            *(evaluate(token, worker, recoverable) for token in batch),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
            on_outcome(result)
            processed += 1
            if progress:
                progress(processed, total)

    return processed
