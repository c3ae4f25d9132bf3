"""
Arg Machine demo: three options, then a dump of what was parsed.

    $ python -m argmachine --debug -o out.txt -v extra
    debug true
    output out.txt
    verbose true
    1 input argument:
    extra

Options
- --debug            Enable debug mode (no short form)
- -o, --output PATH  Output file pathname
- -v                 Increase verbosity (no long form)

On malformed input the demo prints "<prog>: <message>" to stderr and exits
with status 1.
"""
import sys
from dataclasses import dataclass

from rich.console import Console

from .faults import BadArgumentError, report
from .options import Arity, Option
from .processor import Processor
from .utils import Unset, coalesce

BANNER = "Arg Machine Copyright © 2017 Ramsey Dow. All rights reserved."

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

console = Console(highlight=False, soft_wrap=True)


@dataclass
class RuntimeState:
    """Program state container."""
    debug: bool = False
    output_pathname: str = ""
    verbose: bool = False


def process_arguments(argv, state, /):
    """
    Declare the demo options, bind their handlers to 'state', scan 'argv'.

    Returns the positional arguments; BadArgumentError propagates.
    """
    # --debug, no short variant
    debug = Option("\0", "debug", "Enable debug mode", Arity.NONE,
                   handler=lambda: setattr(state, "debug", True))

    # -o, --output <pathname>
    output = Option("o", "output", "Output file pathname", Arity.REQUIRED, "pathname",
                    lambda pathname: setattr(state, "output_pathname", pathname))

    # -v (verbosity), no long variant
    verbose = Option("v", "", "Increase verbosity", Arity.NONE,
                     handler=lambda: setattr(state, "verbose", True))

    return Processor(argv, [debug, output, verbose], BANNER).process()


def main(argv=Unset, /):
    state = RuntimeState()

    try:
        positionals = process_arguments(coalesce(argv, sys.argv), state)
    except BadArgumentError as fault:
        report(fault)
        return EXIT_FAILURE

    console.print("debug %s" % str(state.debug).lower(), markup=False)
    console.print("output %s" % state.output_pathname, markup=False)
    console.print("verbose %s" % str(state.verbose).lower(), markup=False)

    if positionals:
        console.print("%d input argumen%s:" % (len(positionals), "ts" if len(positionals) != 1 else "t"), markup=False)
        for positional in positionals:
            console.print(positional, markup=False)
    else:
        console.print("no input arguments", markup=False)

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
