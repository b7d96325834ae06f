"""
Batch error policies for ingestion.

Each ingestion operation names how a failing unit is treated:

- `AbortOnErrorPolicy`: the first failure propagates and nothing is upserted
  (document chunk embedding).
- `PartialSuccessPolicy`: listed error types are logged, collected and the unit
  is skipped; anything else still propagates (member validation, per-thread
  embedding).
"""

import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class AbortOnErrorPolicy:

    async def run(self, items: Iterable[T], handler: Callable[[int, T], Awaitable[Optional[R]]]) -> List[R]:
        """Apply `handler` to each item in order. A `None` result means "nothing to keep"."""
        results = []
        for index, item in enumerate(items):
            result = await handler(index, item)
            if result is not None:
                results.append(result)
        return results


class PartialSuccessPolicy(AbortOnErrorPolicy):

    def __init__(self, recover: Tuple[Type[Exception], ...]):
        self.recover = recover
        self.errors: List[Exception] = []

    async def run(self, items: Iterable[T], handler: Callable[[int, T], Awaitable[Optional[R]]]) -> List[R]:
        results = []
        for index, item in enumerate(items):
            try:
                result = await handler(index, item)
            except self.recover as e:
                logger.warning(f"[POLICY] Skipping item {index + 1}: {e}")
                self.errors.append(e)
                continue
            if result is not None:
                results.append(result)
        if self.errors:
            logger.info(f"[POLICY] {len(results)} items kept, {len(self.errors)} skipped")
        return results
