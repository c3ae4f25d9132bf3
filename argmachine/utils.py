"""
Arg Machine utilities shared by the options, faults and processor layers.

- Unset: the "no value given" sentinel. Option metadata uses it as a default
  so that None can stay a meaningful, explicitly rejected value.
- coalesce(value, default): replace Unset, keep every other value (even falsy).
- rename(name): decorator fixing __name__/__qualname__ of generated callables.
- mirror(name): read-only property over "_<name>" returning frozen views.
- ordinal(number): position wording for fault messages ("third", "12th").

    >>> coalesce(Unset, "value")
    'value'
    >>> ordinal(2)
    'second'
"""
import functools
from collections.abc import Sequence, Mapping, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel.

    There is exactly one instance. It is falsy, prints as "Unset", survives
    copy and pickle as itself, and joins PEP 604 unions so that checks such as
    isinstance(descr, str | Unset) read naturally.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        # pickled as a reference to the module-level instance
        return "Unset"

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented


def coalesce(object, default=None, /):
    """
    Return 'object', or 'default' when it is Unset.

    - coalesce("pathname", "value") -> "pathname"
    - coalesce(Unset, "value")      -> "value"
    - coalesce("", "value")         -> ""
    """
    return default if object is Unset else object


def rename(name, /):
    """
    Decorator giving a generated callable a stable __name__ and __qualname__,
    so reprs and tracebacks show "__call__" rather than "<lambda>".
    """
    if not isinstance(name, str):
        raise TypeError("rename() argument must be a string")

    def decorator(function):
        if not callable(function):
            raise TypeError("rename() must be applied to a callable")
        try:
            function.__name__ = function.__qualname__ = name
        except (AttributeError, TypeError):
            raise TypeError("rename() must be applied to a function") from None
        return function

    return decorator


def _freeze(value):
    match value:
        case str():
            return value
        case Sequence():
            return tuple(value)
        case Mapping():
            return MappingProxyType(value)
        case Set():
            return frozenset(value)
    return value


def mirror(name, /):
    """
    Read-only property over the private attribute "_<name>".

    Lists, mappings and sets are returned as tuple, MappingProxyType and
    frozenset views, so processor tables cannot be edited from outside.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _freeze(getattr(self, "_" + name))

    return property(getter)


_ORDINALS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")


@functools.cache
def ordinal(number, /):
    """
    English ordinal for a 1-based token position.

    1 to 10 are spelled out ("at third position"); larger numbers use digits
    with their suffix ("12th", "21st", "102nd").
    """
    if 1 <= number <= len(_ORDINALS):
        return _ORDINALS[number - 1]
    if number % 100 in (11, 12, 13):
        return "%dth" % number
    return "%d%s" % (number, {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th"))


Unset = UnsetType()


__all__ = (
    "coalesce",
    "rename",
    "mirror",
    "ordinal",
    "UnsetType",
    "Unset",
)
