"""
Arg Machine faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every fault. Codes are
  grouped by domain to keep copy consistent and make logs/searches predictable.
- ConfigurationError: programmer mistakes in option declarations or option
  sets (missing/invalid/duplicated names). Raised at construction time, before
  any scan can begin. Subclasses ValueError.
- BadArgumentError: malformed user input found during a scan (unknown option,
  missing parameter, malformed short cluster, unexpected parameter). Carries a
  message plus options and knows how to render itself.
- ArgumentWarning: soft, non-fatal findings (e.g. empty inline parameter),
  emitted through the warnings machinery.
- report(): render a fault on stderr with rich.

UX goals
- Position-first messages: every user-input message includes the ordinal
  position of the offending token (“at third position”).
- Soft but technical language: one-sentence bodies and a single clear hint.

Integration
- The processor raises BadArgumentError and never prints or exits. The
  embedding application decides: the demo entry point reports the fault as
  "<prog>: <message>" and exits with status 1.
- Hosts may define __codes__ (code relabeling), __styles__ (palette
  overrides) and __prog__ (program name override) in __main__.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping (by high-level domain)
    - user input errors (111xx)
      • UNKNOWN_OPTION, MISSING_PARAMETER, MALFORMED_CLUSTER, UNEXPECTED_PARAMETER
    - user input warnings (121xx)
      • EMPTY_PARAMETER
    - configuration errors (211xx)
      • DUPLICATED_NAME, MISSING_NAME, INVALID_NAME
    """
    # --- user input errors (11xxx) ---
    UNKNOWN_OPTION              = 11111
    MISSING_PARAMETER           = 11112
    MALFORMED_CLUSTER           = 11113
    UNEXPECTED_PARAMETER        = 11114

    # --- user input warnings (12xxx) ---
    EMPTY_PARAMETER             = 12111

    # --- configuration errors (21xxx) ---
    DUPLICATED_NAME             = 21101
    MISSING_NAME                = 21102
    INVALID_NAME                = 21103

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class ConfigurationError(ValueError):
    """
    programmer mistake in an option declaration or an option set.

    distinct from BadArgumentError: it reflects the code, not the user input,
    and is always raised before any scanning (so no handler has run yet).
    """
    code = Unset

    def __init__(self, message, /):
        super().__init__(message)
        self.message = message


class MissingNameError(ConfigurationError):
    code = FaultCode.MISSING_NAME


class InvalidNameError(ConfigurationError):
    code = FaultCode.INVALID_NAME


class DuplicatedNameError(ConfigurationError):
    code = FaultCode.DUPLICATED_NAME


def _palette(defaults, /):
    return defaultdict(str, defaults | getattr(__import__("__main__"), "__styles__", {}))


def _render(fault, styles, title, /):
    """
    shared rich rendering for errors and warnings.

    plain form:  "<prog>: <message>"
    fancy form:  a panel titled "[ <prog> — <code> | <title> ]" holding the
                 message and a "→ <hint>" line.
    """
    colorful = fault.options.get("colorful", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style])

    prog = text(getattr(__import__("__main__"), "__prog__", fault.options.get("prog")), "prog-name")
    message = text(fault.message, "message")

    if not fault.options.get("fancy", False):
        return Text.assemble(prog, ": ", message) if prog else message

    code = fault.options.get("code")
    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(code.normalize() if code else "", "code"),
        " | ",
        text(str(fault.options.get("title", "")).title(), title),
        " ]"
    )
    hint = Text.assemble(text(" → ", "hint-arrow"), text(fault.options.get("hint"), "hint"))
    return Panel(Group(message, hint), title=header, title_align="left")


class _Fault:
    """
    message plus a read-only options payload, rendered with rich.

    subclasses pick their palette through __palette__ and the palette key of
    their title through __title__.
    """
    __palette__ = {}
    __title__ = ""

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, _palette(type(self).__palette__), type(self).__title__)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **(self.options | overrides))

    def __reduce__(self):
        # the options view is rebuilt from a plain dict
        return _restore, (type(self), self.message, dict(self.options))


def _restore(cls, message, options, /):
    return cls(message, **options)


class BadArgumentError(_Fault, Exception):
    """
    malformed user input found during a scan.

    str(fault) is the human-readable message; fault.options is a read-only
    mapping with the context (code, title, hint, token, index, input, prog,
    colorful, fancy). the scan stops at the first fault; handlers invoked
    earlier in the same scan are not rolled back.
    """
    __palette__ = {
        "prog-name": "bold #E6E6F0",  # near-white program name
        "code": "bold #00E5FF",  # cyan code
        "error-title": "bold #FF4DA6",  # pink title
        "message": "#C8C8D0",  # light gray message
        "hint-arrow": "#9CE19C dim",
        "hint": "italic #9CE19C",
    }
    __title__ = "error-title"


class UnknownOptionError(BadArgumentError): ...
class MissingParameterError(BadArgumentError): ...
class MalformedClusterError(BadArgumentError): ...
class UnexpectedParameterError(BadArgumentError): ...


class ArgumentWarning(_Fault, Warning):
    """
    soft finding during a scan; emitted through warnings.warn, never fatal.
    """
    __palette__ = {
        "prog-name": "bold #E6E6F0",
        "code": "bold #FFB400",  # amber code for warnings
        "warning-title": "bold #FFC2E0",
        "message": "#D6D6DE",
        "hint-arrow": "#B8EFAF dim",
        "hint": "italic #B8EFAF",
    }
    __title__ = "warning-title"


class EmptyParameterWarning(ArgumentWarning): ...


def report(fault, /, **options):
    """
    render a fault on stderr.

    contract
    - fault must be a BadArgumentError or an ArgumentWarning.
    - options are merged into the fault's own options before rendering
      (e.g. prog=..., fancy=True, colorful=True).
    - this function only prints; terminating the process is up to the caller.
    """
    if not isinstance(fault, BadArgumentError | ArgumentWarning):
        raise TypeError("report() argument must be a bad-argument error or an argument warning")
    if options:
        fault = fault.__replace__(**options)
    console.print(fault, soft_wrap=not fault.options.get("fancy", False))


__all__ = (
    "FaultCode",
    "ConfigurationError",
    "MissingNameError",
    "InvalidNameError",
    "DuplicatedNameError",
    "BadArgumentError",
    "UnknownOptionError",
    "MissingParameterError",
    "MalformedClusterError",
    "UnexpectedParameterError",
    "ArgumentWarning",
    "EmptyParameterWarning",
    "report",
)
