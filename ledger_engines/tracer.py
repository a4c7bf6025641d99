"""
ledger_engines.tracer -- LEDGER_ENGINE_TRACE for pure engine calls.

``@traced_engine`` logs one record per engine call on the
``ledger_kernel.engines.tracer`` logger::

    LEDGER_ENGINE_TRACE engine_name=payouts engine_version=1.0
        input_fingerprint=3f0c... duration_ms=0.04

The fingerprint is a SHA-256 prefix over a canonical rendering of the
named arguments, so two calls over the same receipt set and pool log the
same fingerprint regardless of receipt order inside a set, mapping key
order or process.  Engines accept any iterable; a one-shot iterator named
in ``fingerprint_fields`` is materialized into a tuple once, fingerprinted
and handed to the engine intact.

The decorator does no I/O beyond the log record and never catches the
engine's exceptions.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Set
from enum import Enum
from typing import Any

_logger = logging.getLogger("ledger_kernel.engines.tracer")

FINGERPRINT_LENGTH = 16


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (str, int)):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        parts = (
            f"{f.name}:{_canonicalize(getattr(value, f.name))}"
            for f in dataclasses.fields(value)
        )
        return "{" + ",".join(parts) + "}"
    if isinstance(value, Mapping):
        items = sorted((str(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in items) + "}"
    if isinstance(value, Set):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """SHA-256 prefix over ``field=value`` pairs; missing fields hash as null."""
    canonical = "|".join(
        f"{field}={_canonicalize(arguments.get(field))}" for field in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def _is_one_shot(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(
        value, (str, bytes, list, tuple, Mapping, Set)
    )


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate a pure engine function with LEDGER_ENGINE_TRACE logging.

    Args:
        engine_name: Engine identifier, e.g. "payouts".
        engine_version: Bumped whenever outputs for the same inputs change.
        fingerprint_fields: Parameter names hashed into input_fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                for field in fingerprint_fields:
                    if _is_one_shot(bound.arguments.get(field)):
                        bound.arguments[field] = tuple(bound.arguments[field])
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)
                args, kwargs = bound.args, bound.kwargs

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "LEDGER_ENGINE_TRACE",
                extra={
                    "trace_type": "LEDGER_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
