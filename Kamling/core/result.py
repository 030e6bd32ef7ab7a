"""Typed outcome of a remote spreadsheet call.

The gateway and the schema guard never raise for remote failures. They return a
:class:`Result` that is either a success carrying a value or a failure tagged
with one of the remote :class:`~Kamling.status.status.Status` kinds. The record
store inspects :attr:`Result.error` to choose its fallback.
"""
import dataclasses
from typing import Any, Generic, Optional, TypeVar

from ..status import status

T = TypeVar('T')


@dataclasses.dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or failure kind of a single remote call."""
    value: Optional[T] = None
    error: Optional[status.Status] = None
    detail: str = ''

    @classmethod
    def success(cls, value: Any = None) -> 'Result':
        return cls(value=value)

    @classmethod
    def failure(cls, kind: status.Status, detail: str = '') -> 'Result':
        if kind not in status.REMOTE_STATUSES:
            raise ValueError(f'"{kind}" is not a remote failure kind.')
        return cls(error=kind, detail=detail)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the exception matching the failure kind.

        Raises:
            status.BaseStatusException: The subclass registered for :attr:`error`.
        """
        if self.error is None:
            return self.value
        raise status.exception_for(self.error)(self.detail or None)

    def __str__(self) -> str:
        if self.ok:
            return 'Result(ok)'
        return f'Result({self.error.name}: {self.detail})' if self.detail else f'Result({self.error.name})'
