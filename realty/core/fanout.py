from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from realty.core.errors import AppError, InternalError

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Ok(Generic[R]):
    value: R
    ok: bool = True


@dataclass(frozen=True)
class Err:
    error: AppError
    ok: bool = False


async def _settle(fn: Callable[[T], Awaitable[R]], item: T) -> Ok[R] | Err:
    try:
        return Ok(await fn(item))
    except AppError as e:
        return Err(e)
    except Exception as e:
        log.exception("fan-out item crashed")
        return Err(InternalError(str(e) or type(e).__name__))


async def settle_all(items: Iterable[T], fn: Callable[[T], Awaitable[R]]) -> list[Ok[R] | Err]:
    """
    Run fn over every item concurrently and wait for all of them.

    Returns one Ok/Err per item, in input order. A failing item never
    cancels or hides its siblings.
    """
    return list(await asyncio.gather(*(_settle(fn, item) for item in items)))
