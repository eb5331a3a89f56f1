"""Base classes for configuration and runtime state models.

Split out of config.py so that log.py can depend on them without
creating an import cycle:
- Closeable Protocol for resource cleanup
- BaseCloseable, which closes Closeable children on exit
- BaseConfig and BaseState as semantic markers
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

# ============================================================
# CLOSEABLE PROTOCOL AND BASE CLASS
# ============================================================

@runtime_checkable
class Closeable(Protocol):
    """Protocol for objects that support close()."""

    def close(self) -> None:
        """Release resources."""
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable fields.

    Any model inheriting from BaseCloseable:
    - Works as a context manager
    - Walks its fields on close() and closes every Closeable child
    - Keeps going when one child fails to close

    The cascade for a CLI run is:
    State.__exit__() → Config.close() → Logger.close() → Sink.close()
    """

    def close(self):
        """Close all closeable child objects.

        Errors are reported on stderr; the logger may be the very
        thing being closed, so it cannot be used here.
        """
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None:
                continue

            if isinstance(child, Closeable):
                try:
                    child.close()
                except Exception as e:
                    msg = f"Warning: Error closing {field_name}: {e}"
                    print(msg, file=sys.stderr)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


# ============================================================
# BASE CLASSES (semantic markers for readers)
# ============================================================

class BaseConfig(BaseCloseable):
    """Base class for configuration sections.

    Configuration is loaded from the manifest, YAML defaults,
    environment or CLI and is read-only while a run executes.
    """
    pass


class BaseState(BaseCloseable):
    """Base class for runtime state sections.

    Runtime state is created and mutated while a run executes and
    is never persisted to the manifest.
    """
    pass


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
