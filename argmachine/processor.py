"""
Arg Machine processor: scan an argument vector against a set of options.

What this module provides
- State: lifecycle of a processor (IDLE → SCANNING → DONE | FAILED).
- Processor: bound to a list of options and a banner string. One call to
  process() scans the argument vector left to right, invokes each matched
  option's handler synchronously, and returns the positional arguments.

Scanning rules
- argv[0] is the program path; scanning starts at argv[1].
- "--" alone ends option scanning; every following token is positional.
- "--name" / "--name=value": exact long-name match (no abbreviations).
- "-abc": a cluster of short options. Presence-only options can be bundled
  freely; an option taking a parameter either starts the cluster and takes
  the rest of the token ("-oVALUE"), or ends it and takes the next token
  ("-vo VALUE"). Anywhere else it is a malformed cluster.
- A required parameter is taken from the next token unless that token looks
  like an option (starts with "-" and is longer than one character).
- Any other token is positional and kept in its original relative order.

Failure contract
- The first malformed token raises a BadArgumentError subclass and stops the
  scan. Handlers that already ran in the same scan are NOT rolled back; callers
  must assume partial application when catching the fault.
- The processor never prints and never exits the process.

Quick start
    from argmachine import Arity, Option, Processor

    state = {"verbose": False, "output": ""}
    options = [
        Option("o", "output", "Output file pathname", Arity.REQUIRED, "pathname",
               lambda pathname: state.update(output=pathname)),
        Option("v", descr="Increase verbosity", handler=lambda: state.update(verbose=True)),
    ]
    positionals = Processor(["prog", "-v", "in.txt", "--output", "out.txt"], options).process()
    # positionals == ["in.txt"]
"""
import difflib
import functools
import operator
import os.path
import re
import sys
import warnings
from collections import deque
from collections.abc import Iterable
from enum import IntEnum

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .faults import *
from .options import Arity, Option
from .utils import *


class State(IntEnum):
    """
    lifecycle of a processor; a processor is single-use.
    """
    IDLE = 0
    SCANNING = 1
    DONE = 2
    FAILED = 3


class ProcessorType(type):
    """
    Metaclass providing __typename__, read-only properties for the names in
    __introspectable__, and stable __repr__/__rich_repr__.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _shaped(token):
    """
    whether a token looks like an option ("-x", "--name", "--"); "-" does not.
    """
    return token.startswith("-") and len(token) > 1


def _sanitize_argv(cls, argv, /):
    if isinstance(argv, str) or not isinstance(argv, Iterable):
        raise TypeError(f"{cls.__typename__} 'argv' must be an iterable of strings")
    argv = tuple(argv)
    if not all(isinstance(token, str) for token in argv):
        raise TypeError(f"{cls.__typename__} 'argv' must be an iterable of strings")
    return argv


def _resolve_option(cls, x, /):
    """
    Return the concrete Option from an Option or a SupportsOption object
    (e.g. an @option(...) decorator that was never applied).
    """
    if not hasattr(x, "__option__") or not callable(x.__option__):
        raise TypeError(f"{cls.__typename__} 'options' must only contain options")
    option = x.__option__()
    if not isinstance(option, Option):
        raise TypeError("__option__() non-option returned")
    return option


class Processor(metaclass=ProcessorType):
    """
    Single-use argument processor bound to a set of options.

    Properties
    - prog: basename of argv[0] captured at construction.
    - banner: caller-supplied text shown on top of the usage listing (or None).
    - options: registered options, in registration order.
    - shorts / longs: read-only maps from bare name to option.
    - state: current State.
    - colorful / fancy: rendering flags used by usage() and by raised faults.
    """

    __introspectable__ = (
        "prog",
        "banner",
        "options",
        "shorts",
        "longs",
        "state",
        "colorful",
        "fancy",
    )

    __displayable__ = (
        "prog",
        "banner",
        "options",
        "state",
    )

    def __new__(cls, argv, options, banner=Unset, *, colorful=False, fancy=False):
        """
        Construct a processor.

        Parameters
        - argv: Iterable[str]
          The process argument vector; argv[0] names the program.
        - options: Iterable[Option | SupportsOption]
          Recognized options. Every short and long name must be unique across
          the set; registering the same option twice is a collision as well.
        - banner: Unset | str | Text
          Shown on top of the usage listing (e.g. a copyright line).
        - colorful, fancy: bool
          Rendering flags for usage() and for the faults raised by process().

        Raises
        - TypeError: argv/options/banner have the wrong shape.
        - DuplicatedNameError: two options claim the same short or long name.
        """
        argv = _sanitize_argv(cls, argv)

        if isinstance(options, str) or not isinstance(options, Iterable):
            raise TypeError(f"{cls.__typename__} 'options' must be an iterable of options")

        if not isinstance(banner, str | Text | Unset):
            raise TypeError(f"{cls.__typename__} 'banner' must be a string")

        registered = []
        shorts = {}
        longs = {}
        for option in (_resolve_option(cls, x) for x in options):
            if option.short is not None:
                if option.short in shorts:
                    raise DuplicatedNameError(f"{cls.__typename__} short name '-{option.short}' is already in use")
                shorts[option.short] = option
            if option.long is not None:
                if option.long in longs:
                    raise DuplicatedNameError(f"{cls.__typename__} long name '--{option.long}' is already in use")
                longs[option.long] = option
            registered.append(option)

        self = super().__new__(cls)
        self._argv = argv
        self._prog = os.path.basename(argv[0] if argv else sys.argv[0])
        self._banner = coalesce(banner)
        self._options = registered
        self._shorts = shorts
        self._longs = longs
        self._state = State.IDLE
        self._colorful = bool(colorful)
        self._fancy = bool(fancy)
        self._tokens = deque()
        self._index = 0
        return self

    def program_name(self):
        """
        Return the basename of argv[0] captured at construction.
        """
        return self._prog

    def process(self, argv=Unset, /):
        """
        Scan the argument vector and return the positional arguments.

        Parameters
        - argv: Unset | Iterable[str]
          Vector to scan; defaults to the one given at construction. argv[0]
          is skipped. The vector itself is never mutated.

        Returns
        - list[str]: positional arguments in original relative order, program
          name excluded.

        Raises
        - BadArgumentError (UnknownOptionError, MissingParameterError,
          MalformedClusterError, UnexpectedParameterError) on the first
          malformed token. Handlers already invoked are not rolled back.
        - RuntimeError when the processor was already used.
        """
        if self._state is not State.IDLE:
            raise RuntimeError(f"{type(self).__typename__} can process arguments only once")

        tokens = self._argv if argv is Unset else _sanitize_argv(type(self), argv)

        self._state = State.SCANNING
        try:
            positionals = self._scan(tokens)
        except BaseException:
            self._state = State.FAILED
            raise
        self._state = State.DONE
        return positionals

    def _fault(self, fault, message, /, **options):
        # every fault carries the position of the token being scanned
        return fault(
            message,
            index=self._index,
            prog=self._prog,
            colorful=self._colorful,
            fancy=self._fancy,
            **options
        )

    def _scan(self, tokens):
        positionals = []
        self._tokens = deque(tokens[1:])
        self._index = 0

        while self._tokens:
            token = self._tokens.popleft()
            self._index += 1

            if token == "--":
                # terminator: everything after it is positional, whatever its shape
                positionals.extend(self._tokens)
                self._index += len(self._tokens)
                self._tokens.clear()
            elif token.startswith("--"):
                self._process_long(token)
            elif _shaped(token):
                self._process_cluster(token)
            else:
                positionals.append(token)

        return positionals

    def _unknown(self, input, token):
        """
        build an UnknownOptionError for 'input', suggesting the closest name.
        """
        names = [name for option in self._options for name in option.names]
        suggestions = difflib.get_close_matches(input, names, 5)
        try:
            hint = "did you mean %r?" % suggestions[0]
        except IndexError:
            hint = "check the spelling; known options are: %s" % (", ".join(names) or "none")

        where = "at %s position" % ordinal(self._index)
        if input != token:
            where = "in %r %s" % (token, where)

        return self._fault(
            UnknownOptionError,
            "unknown option %r %s" % (input, where),
            title="unknown option",
            code=FaultCode.UNKNOWN_OPTION,
            input=input,
            token=token,
            suggestions=suggestions,
            hint=hint,
        )

    def _nameless(self, what, token):
        """
        build an UnknownOptionError for a token that names no option at all
        ("--=x", or a dash inside a short cluster such as "-v-").
        """
        return self._fault(
            UnknownOptionError,
            "%s at %s position" % (what, ordinal(self._index)),
            title="unknown option",
            code=FaultCode.UNKNOWN_OPTION,
            input=token,
            token=token,
            suggestions=[],
            hint="write long options as --name and short ones as -x (or use -- before positional arguments)",
        )

    def _parameter(self, option, input):
        """
        consume the next token as the parameter of 'option'.

        the token must exist and must not look like an option; otherwise a
        MissingParameterError is raised at the option's position.
        """
        if self._tokens and not _shaped(self._tokens[0]):
            self._index += 1
            return self._tokens.popleft()

        raise self._fault(
            MissingParameterError,
            "option %r at %s position requires a parameter <%s>" % (input, ordinal(self._index), option.metavar),
            title="missing parameter",
            code=FaultCode.MISSING_PARAMETER,
            input=input,
            option=option,
            hint="pass it after a space (for example: %s <%s>)" % (input, option.metavar),
        )

    def _process_long(self, token):
        name, separator, value = token[2:].partition("=")
        input = "--" + name

        if not name:
            raise self._nameless("missing option name in %r" % token, token)

        try:
            option = self._longs[name]
        except KeyError:
            raise self._unknown(input, token) from None

        if option.arity is Arity.NONE:
            if separator:
                raise self._fault(
                    UnexpectedParameterError,
                    "option %r at %s position does not take a parameter" % (input, ordinal(self._index)),
                    title="unexpected parameter",
                    code=FaultCode.UNEXPECTED_PARAMETER,
                    input=input,
                    token=token,
                    option=option,
                    hint="remove everything from '=' (for example: %s)" % input,
                )
            option()
            return

        if separator:
            if not value:
                warnings.warn(self._fault(
                    EmptyParameterWarning,
                    "empty inline parameter for option %r at %s position" % (input, ordinal(self._index)),
                    title="empty inline parameter",
                    code=FaultCode.EMPTY_PARAMETER,
                    input=input,
                    option=option,
                    hint="add a value after '=' (for example: %s=<%s>)" % (input, option.metavar),
                ), stacklevel=4)
            option(value)
        elif option.arity is Arity.REQUIRED:
            option(self._parameter(option, input))
        else:
            option(None)

    def _process_cluster(self, token):
        for offset, char in enumerate(token[1:], start=1):
            input = "-" + char

            if char == "-":
                raise self._nameless("invalid character '-' in %r" % token, token)

            try:
                option = self._shorts[char]
            except KeyError:
                raise self._unknown(input, token) from None

            if option.arity is Arity.NONE:
                option()
                continue

            # parameter-taking option: rest of the token, next token, or nothing
            if rest := token[offset + 1:]:
                if offset == 1:
                    option(rest)
                    return
                raise self._fault(
                    MalformedClusterError,
                    "option %r in %r at %s position takes a parameter but is followed by %r" % (
                        input, token, ordinal(self._index), rest
                    ),
                    title="malformed option cluster",
                    code=FaultCode.MALFORMED_CLUSTER,
                    input=input,
                    token=token,
                    option=option,
                    hint="put %r last in the cluster or pass it separately (for example: %s <%s>)" % (
                        input, input, option.metavar
                    ),
                )

            if option.arity is Arity.REQUIRED:
                option(self._parameter(option, input))
            else:
                option(None)
            return

    def usage(self):
        """
        Render the usage listing as rich Text.

        Layout
        - the banner (when given)
        - "usage: <prog> [options] [--] [arguments ...]"
        - "options:" followed by one row per option in registration order:
          "  -o, --output <pathname>  Output file pathname"
          options without a short form are indented to align their long form.

        Customization
        - Define a mapping named __styles__ in __main__ to override any palette entry.
        - When colorful is False, styling is suppressed.
        """
        styles = {
            "banner": "italic #A3A3A3",  # Neutral gray
            "usage-label": "bold #00E6FF",  # CYAN
            "program-name": "bold #FF4D94",  # MAGENTA-PINK
            "group-label": "bold #FFFFFF",  # Pure white headers
            "option-name": "bold #00E6FF",  # CYAN
            "flag-name": "bold #22C55E",  # GREEN for presence-only options
            "metavar": "bold #FFD600",  # AMBER
            "description": "#9CA3AF",  # Muted gray
        } | getattr(__import__("__main__"), "__styles__", {})

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), styles.get(style, ""))

        def names(option):
            style = "flag-name" if option.arity is Arity.NONE else "option-name"
            shorts = text(option.short and "-" + option.short, style)
            longs = text(option.long and "--" + option.long, style)
            if not shorts:
                return Text.assemble("    ", longs)
            return Text(", ").join(part for part in (shorts, longs) if part)

        def metavar(option):
            match option.arity:
                case Arity.REQUIRED:
                    return Text.assemble(" ", text("<%s>" % option.metavar, "metavar"))
                case Arity.OPTIONAL:
                    return Text.assemble(" [", text("<%s>" % option.metavar, "metavar"), "]")
                case _:
                    return Text("")

        usage = Text()
        if self.banner:
            usage.append(text(self.banner, "banner")).append("\n\n")

        usage.append(text("usage", "usage-label")).append(": ").append(text(self.prog, "program-name"))
        if self._options:
            usage.append(" [options] [--]")
        usage.append(" [arguments ...]\n")

        rows = [Text.assemble("  ", names(option), metavar(option)) for option in self._options]
        if rows:
            indent = max(map(len, rows)) + 2
            usage.append("\n").append(text("options", "group-label")).append(":\n")
            for row, option in zip(rows, self._options):
                usage.append(row)
                if option.descr:
                    usage.append(" " * (indent - len(row))).append(text(option.descr, "description"))
                usage.append("\n")

        usage.rstrip()
        return usage

    def __rich__(self):
        if not self.fancy:
            return self.usage()
        return Panel(
            Group(self.usage()),
            title=Text.assemble("[", " ", f"{self.prog} USAGE".upper(), " ", "]"),
            title_align="left",
        )


__all__ = (
    "State",
    "Processor",
)

# Internal metaclass, not part of the public API.
del ProcessorType
