r"""
Arg Machine option descriptors and decorator.

Overview
- Arity: how many parameters an option takes (NONE, REQUIRED, OPTIONAL).
- Option: immutable, declarative record for one recognized option. It carries a
  short form (e.g. "o" for -o), a long form (e.g. "output" for --output), a
  description, an arity, a placeholder (metavar) and a handler invoked when the
  option is matched during a scan.
- @option(...): build an Option and bind the decorated function as its handler.

Calling convention
- An Option is callable; its __call__ is generated per arity so the signature
  stays introspectable:
  • NONE     → option()
  • REQUIRED → option(param, /)
  • OPTIONAL → option(param=None, /)
- The call forwards to the bound handler unchanged, or does nothing when no
  handler was bound.

Metadata (sanitized on construction)
- short: Unset | str, one alphanumeric character or one of "?", "@", "#".
  "" and "\0" mean "no short form".
- long: Unset | str, letters/digits in hyphen-separated segments (no leading
  dashes, no underscores). "" means "no long form".
- descr: Unset | str | Text, non-empty when provided.
- arity: Arity (or its integer value).
- metavar: Unset | str, non-empty when provided; forbidden for NONE arity and
  generated from the long name ("value" without one) when omitted.
- handler: Unset | Callable.

Quick example:
    >>> from argmachine.options import Arity, option
    >>> @option("o", "output", "Output file pathname", Arity.REQUIRED, "pathname")
    ... def on_output(pathname): ...
    ...

Public API
- Enums: Arity
- Classes: Option
- Decorators: option
"""
import functools
import operator
import re
import textwrap
from enum import IntEnum
from types import MethodType

from rich.text import Text

from .faults import MissingNameError, InvalidNameError
from .utils import *


class Arity(IntEnum):
    """
    parameter arity of an option.

    - NONE: presence-only; the handler receives nothing.
    - REQUIRED: exactly one parameter, taken inline (--name=value, -nvalue)
      or from the next token.
    - OPTIONAL: at most one parameter, taken inline only; the handler receives
      None when it is absent.
    """
    NONE = 0
    REQUIRED = 1
    OPTIONAL = 2


@functools.cache
def _invoker(arity, /):
    """
    Build and cache a tailored __call__ method for a given arity.

    The emitted trampoline no-ops when self._handler is Unset and otherwise
    forwards the received parameter (if any) to self._handler unchanged.

    Signature shape
    - NONE: (self)
    - REQUIRED: (self, param, /)
    - OPTIONAL: (self, param=None, /), default bound through __defaults__
    """
    signature = ["self"]
    arguments = []

    if arity is not Arity.NONE:
        signature.extend(("param", "/"))
        arguments.append("param")

    exec(textwrap.dedent(f"""
        @rename("__call__")
        def __call__({", ".join(signature)}):
            if self._handler is Unset:
                return
            return self._handler({", ".join(arguments)})
    """), globals(), namespace := locals())

    namespace["__call__"].__doc__ = textwrap.dedent(f"""
        Dynamically generated __call__ for arity={arity.name}.

        Behavior
        - If self._handler is Unset, returns None (no-op).
        - Otherwise forwards the parameter (if any) to self._handler unchanged.
    """)
    namespace["__call__"].__defaults__ = (None,) if arity is Arity.OPTIONAL else None

    return namespace["__call__"]


class OptionType(type):
    """
    Metaclass that turns option specs into callable, introspectable descriptors.

    Responsibilities
    - Inject a tailored __call__ when constructing factory-backed option classes.
      The shape of __call__ depends on 'arity' and is created via _invoker.
    - Provide stable, readable __repr__/__rich_repr__ implementations.
    - Expose the fields listed in __introspectable__ as read-only properties.
    - Seal factory-backed classes against subclassing.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        if options.get("factory", False):
            namespace["__call__"] = _invoker(options["arity"])

        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
                "__module__": "dynamic-factory::options",
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - option(short='o', long='output', descr='Output file pathname', ...)
            """
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        if options.get("factory", False):
            @rename("__init_subclass__")
            def __init_subclass__(cls, **options):  # NOQA: F-841
                raise TypeError(f"type {self.__name__!r} is not an acceptable base type")
            self.__init_subclass__ = classmethod(__init_subclass__)

        return self


def _sanitize_names(cls, metadata, /):
    r"""
    Internal: validate and normalize the short/long names.

    Rules
    - short: "" or "\0" (or Unset) means absent; otherwise exactly one
      alphanumeric character or one of "?", "@", "#".
    - long: "" (or Unset) means absent; otherwise r"[^\W_]+(-[^\W_]+)*".
    - at least one of them must be present.

    Side effects
    - Replaces 'short'/'long' with str | None and adds 'names', the spelled
      forms in display order (short first).
    """
    if not isinstance(short := metadata["short"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'short' must be a string")
    if (short := coalesce(short, "")) in ("", "\0"):
        short = None
    elif not re.fullmatch(r"[^\W_]|[?@#]", short):
        raise InvalidNameError(f"{cls.__typename__} short name {short!r} must be a single letter or digit")

    if not isinstance(long := metadata["long"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'long' must be a string")
    if not (long := coalesce(long, "")):
        long = None
    elif long.startswith("-"):
        raise InvalidNameError(f"{cls.__typename__} long name {long!r} must be given without leading dashes")
    elif not re.fullmatch(r"[^\W_]+(-[^\W_]+)*", long):
        raise InvalidNameError(f"{cls.__typename__} long name {long!r} must be hyphen-separated letters or digits")

    if short is None and long is None:
        raise MissingNameError(f"{cls.__typename__} must specify at least a short or a long name")

    metadata["short"] = short
    metadata["long"] = long
    metadata["names"] = tuple(filter(None, (short and "-" + short, long and "--" + long)))


def _nonblank(cls, metadata, key, types, /):
    # str values are stripped and must keep some content; Unset passes through
    if not isinstance(value := metadata[key], types):
        raise TypeError(f"{cls.__typename__} {key!r} must be a string")
    if isinstance(value, str) and not (value := value.strip()):
        raise ValueError(f"{cls.__typename__} {key!r} cannot be empty")
    return value


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate descr, arity, metavar and handler.

    Placeholder policy
    - NONE arity: an explicit metavar is a TypeError; the metavar becomes None.
    - REQUIRED/OPTIONAL: an omitted metavar is generated from the long name
      (or "value" without one); an explicit empty metavar is a ValueError.
    """
    metadata["descr"] = coalesce(_nonblank(cls, metadata, "descr", str | Text | Unset))

    if not isinstance(arity := metadata["arity"], int) or isinstance(arity, bool):
        raise TypeError(f"{cls.__typename__} 'arity' must be an arity")
    if arity not in tuple(Arity):
        raise ValueError(f"{cls.__typename__} 'arity' must be one of NONE, REQUIRED or OPTIONAL")
    metadata["arity"] = arity = Arity(arity)

    metavar = _nonblank(cls, metadata, "metavar", str | Unset)
    match arity:
        case Arity.NONE if metavar is not Unset:
            raise TypeError(f"{cls.__typename__} without parameters cannot have a 'metavar'")
        case Arity.NONE:
            metadata["metavar"] = None
        case _:
            metadata["metavar"] = coalesce(metavar, metadata["long"] or "value")

    if metadata["handler"] is not Unset and not callable(metadata["handler"]):
        raise TypeError(f"{cls.__typename__} 'handler' must be callable")


class Option(metaclass=OptionType):
    """
    Declarative description of one recognized command-line option.

    An Option is a pure data record plus one invocable handler; it holds no
    parsing logic. The processor matches tokens against its names and calls it
    with the parameter text according to its arity.

    Properties
    - short, long: the bare names (None when absent).
    - names: spelled forms, e.g. ("-o", "--output").
    - descr, arity, metavar, handler: sanitized metadata (read-only).
    """

    __introspectable__ = (
        "short",
        "long",
        "names",
        "descr",
        "arity",
        "metavar",
        "handler",
    )

    __displayable__ = (
        "short",
        "long",
        "descr",
        "arity",
        "metavar",
    )

    def __new__(
            cls,
            short=Unset,
            long=Unset,
            descr=Unset,
            arity=Arity.NONE,
            metavar=Unset,
            handler=Unset,
    ):
        """
        Construct an Option.

        Parameters follow the declaration order (short_name, long_name,
        description, arity, placeholder, handler), so a declaration reads:

            Option("o", "output", "Output file pathname", Arity.REQUIRED, "pathname", on_output)

        Raises
        - MissingNameError: both names are absent.
        - InvalidNameError: a name is misspelled.
        - TypeError/ValueError: invalid descr, arity, metavar or handler.
        """
        metadata = {
            "short": short,
            "long": long,
            "descr": descr,
            "arity": arity,
            "metavar": metavar,
            "handler": handler,
        }
        _sanitize_names(cls, metadata)
        _sanitize_metadata(cls, metadata)

        # Sealed, factory-backed instance with a generated __call__.
        self = super().__new__(type(cls)(cls.__name__, (cls,), dict(cls.__dict__), factory=True, arity=metadata["arity"]))
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __option__(self):
        """
        Introspection hook: identify this descriptor as an Option.
        """
        return self

    def __reduce__(self):
        """
        Copy and pickle by re-declaring the option (the generated factory
        class itself cannot be pickled). Pickling also requires a picklable
        handler; lambdas and closures are not.
        """
        return _restore, (
            self._short or "",
            self._long or "",
            Unset if self._descr is None else self._descr,
            self._arity,
            Unset if self._metavar is None else self._metavar,
            self._handler,
        )


def _restore(*metadata):
    return Option(*metadata)


def option(*args, **kwargs):
    """
    Build an Option and bind the decorated function as its handler.

    Arguments are those of Option() minus the handler:

        @option("o", "output", "Output file pathname", Arity.REQUIRED, "pathname")
        def on_output(pathname): ...

    on_output is now the Option itself; calling it forwards to the function.
    The decorator applies once. Until it is applied, it can already be passed
    to a Processor (through __option__), in which case matches are no-ops.
    """
    option = Option(*args, **kwargs)

    @rename("option")
    def wrapper(handler, /):
        if not callable(handler):
            raise TypeError("@option() must decorate a callable")
        if option.handler is not Unset:
            raise TypeError("@option() handler is already bound")
        option._handler = handler
        return option

    wrapper.__option__ = MethodType(rename("__option__")(lambda self: option), wrapper)
    return wrapper


__all__ = (
    # Enums
    "Arity",

    # Classes (descriptors)
    "Option",

    # Decorators
    "option",
)

# Internal metaclass, not part of the public API.
del OptionType
