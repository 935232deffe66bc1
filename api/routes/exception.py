"""
Centralized exception handling decorator for API route functions.

The :func:`handle_exceptions` decorator wraps an endpoint handler, catching any
uncaught exceptions and converting them into :class:`fastapi.HTTPException`
responses. HTTPExceptions raised by the handler are propagated untouched.
Guard errors map onto client errors: an invalid profile or sample is a ``422``,
an unregistered service a ``404`` and any other guard error a ``400``.
Everything else becomes a ``500`` with the exception message as the response
detail.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from fastapi import HTTPException

from engine.errors import GuardError, InvalidProfile, InvalidSample, UnknownService

F = TypeVar("F", bound=Callable[..., Any])


def to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, (InvalidProfile, InvalidSample)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, UnknownService):
        return HTTPException(status_code=404, detail=f"unknown service: {exc}")
    if isinstance(exc, GuardError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def handle_exceptions(func: F) -> F:
    """Decorator that converts uncaught exceptions to HTTP errors.

    Works with both regular and async functions.
    """

    if inspect.iscoroutinefunction(func):
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as exc:
                raise to_http(exc) from exc

        return cast(F, async_wrapper)

    @wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as exc:
            raise to_http(exc) from exc

    return cast(F, sync_wrapper)
