from __future__ import annotations

from typing import Callable, Generic, Sequence, TypeVar, cast, overload


_OwnerT = TypeVar("_OwnerT")
_ValueT = TypeVar("_ValueT")


class lazyval(Generic[_OwnerT, _ValueT]):
    """Decorator to lazily compute and cache a value."""

    def __init__(self, fget: Callable[[_OwnerT], _ValueT]):
        self._fget = fget
        self._name: str | None = None
        self.__doc__ = fget.__doc__

    def __set_name__(self, owner: type[_OwnerT], name: str) -> None:
        self._name = name

    @overload
    def __get__(self, instance: None, owner: type[_OwnerT]) -> "lazyval[_OwnerT, _ValueT]":
        ...

    @overload
    def __get__(self, instance: _OwnerT, owner: type[_OwnerT]) -> _ValueT:
        ...

    def __get__(
        self,
        instance: _OwnerT | None,
        owner: type[_OwnerT],
    ) -> _ValueT | "lazyval[_OwnerT, _ValueT]":
        if instance is None:
            return self

        if self._name is None:
            raise AttributeError("lazyval descriptor is missing attribute name")

        value = self._fget(instance)
        vars(instance)[self._name] = value
        return value


class no_default:
    """Sentinel type; this should not be instantiated.

    This type is used so functions can tell the difference between no argument
    passed and an explicit value passed even if ``None`` is a valid value.
    """

    def __new__(cls) -> "no_default":  # pragma: no cover - construction forbidden
        raise TypeError("cannot create instances of sentinel type")


NoDefaultType = type[no_default]


def get_field(
    cs: Sequence[str],
    ix: int,
    default: str | NoDefaultType = no_default,
) -> str:
    """Index into a split record, falling back to ``default`` when the record
    is too short.

    Raises
    ------
    IndexError
        Raised when ``ix`` is out of range and no default was given.
    """
    try:
        return cs[ix]
    except IndexError:
        if default is no_default:
            raise
        return cast(str, default)
