"""
Resource context management for reconciliation passes.

Tracks which managed resource the current thread is reconciling so that
log records and errors can be stamped with its spec id without threading
it through every call.
"""

import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Generator, Optional

from ..exceptions import ErrorCode, ValidationError
from ..utils.logger import get_logger


class ResourceContext:
    """
    Manages the current managed-resource context using thread-local storage.
    """

    _thread_local = threading.local()

    @classmethod
    def set_current_spec(cls, spec_id: str) -> None:
        """
        Set the spec id being reconciled on this thread.

        Raises:
            ValidationError: If spec_id is empty or invalid
        """
        if not spec_id or not isinstance(spec_id, str) or not spec_id.strip():
            raise ValidationError(
                "spec_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="spec_id",
                value=spec_id,
            )

        cls._thread_local.spec_id = spec_id.strip()
        get_logger().debug(f"Current resource set to: {spec_id}")

    @classmethod
    def get_current_spec_id(cls) -> Optional[str]:
        """Get the spec id being reconciled, or None outside a pass."""
        return getattr(cls._thread_local, "spec_id", None)

    @classmethod
    def clear_current_spec(cls) -> None:
        """Clear the current spec id."""
        if hasattr(cls._thread_local, "spec_id"):
            delattr(cls._thread_local, "spec_id")


@contextmanager
def resource_context(spec_id: str) -> Generator[str, None, None]:
    """
    Context manager that scopes a block to one managed resource.

    The previous spec id, if any, is restored on exit.
    """
    previous = ResourceContext.get_current_spec_id()
    ResourceContext.set_current_spec(spec_id)
    try:
        yield spec_id
    finally:
        if previous:
            ResourceContext.set_current_spec(previous)
        else:
            ResourceContext.clear_current_spec()


def resource_aware(func: Callable) -> Callable:
    """
    Decorator for methods of objects exposing a ``spec_id`` attribute.

    Runs the method inside that resource's context.
    """

    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any) -> Any:
        with resource_context(self.spec_id):
            return func(self, *args, **kwargs)

    return wrapper
