"""Process execution, filesystem and locking primitives."""

from pubflow.platform.files import atomic_write_text
from pubflow.platform.locks import FileLock, LockError
from pubflow.platform.process import ProcessError, run

__all__ = ["FileLock", "LockError", "ProcessError", "atomic_write_text", "run"]
