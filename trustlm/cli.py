# -*- mode: python; coding: utf-8 -*-
# Copyright 2012-2015 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

"""trustlm.cli - the 'trustlm-minpack' program, and command-line utilities.

Functions:

check_usage - Print usage and exit if --help is in argv.
commandline - The entry point of 'trustlm-minpack'.
die         - Print an error and exit.
warn        - Print a warning.
wrong_usage - Print an error about wrong usage and the usage help.

"""

__all__ = "check_usage commandline die warn wrong_usage".split()

import logging
import sys

from . import Holder
from .kwargv import KwargvError, ParseKeywords

usage = """trustlm-minpack <problem|list|all> [factor=N] [verbose=yes] [keyword=value ...]

Run the trust-region Levenberg-Marquardt minimizer on one of the MINPACK-1
test problems and compare the outcome with the reference Fortran results.

<problem> -- the name of a test problem
list      -- print the names of the available problems
all       -- run every problem from every reference starting point and
             print a one-line summary of each

Keywords:

factor=N       -- start from N times the standard starting point (default 1)
verbose=yes    -- log the progress of the minimizer to standard error
ftol=, xtol=, gtol=, stepbound=, maxiter=, scale_diag=, normfunc=
               -- override the minimizer settings; by default those of the
                  MINPACK lmder1 driver are used. normfunc is one of "fast",
                  "careful" or "minpack".

Examples:

  $ trustlm-minpack rosenbrock factor=10
  $ trustlm-minpack bard gtol=1e-8 verbose=yes

"""


def die(fmt, *args):
    """Raise a :exc:`SystemExit` exception with a formatted error message.

    If *args* is empty, the message is ``'error: ' + str(fmt)``. Otherwise,
    it is ``'error: ' + fmt % args``. If uncaught, the interpreter exits with
    an error code and prints the message.

    """
    if not len(args):
        raise SystemExit("error: " + str(fmt))
    raise SystemExit("error: " + (fmt % args))


def warn(fmt, *args):
    if not len(args):
        s = str(fmt)
    else:
        s = fmt % args

    print("warning:", s, file=sys.stderr)


def show_usage(docstring, short, stream, exitcode):
    """Print program usage information and exit.

    If *short* is true, only the first stanza of *docstring* (everything up
    to the first blank line) is printed.

    """
    if stream is None:
        stream = sys.stdout

    if not short:
        print("Usage:", docstring.strip(), file=stream)
    else:
        intext = False
        for l in docstring.splitlines():
            if intext:
                if not len(l):
                    break
                print(l, file=stream)
            elif len(l):
                intext = True
                print("Usage:", l, file=stream)

        print(
            "\nRun with a sole argument --help for more detailed usage information.",
            file=stream,
        )

    raise SystemExit(exitcode)


def check_usage(docstring, argv=None, usageifnoargs=False):
    """Check if the program has been run with a --help argument; if so,
    print usage information and exit. If *usageifnoargs* is true, do the same
    when there are no arguments at all. ``argv[0]`` should be the program
    name.

    """
    if argv is None:
        argv = sys.argv

    if len(argv) == 1 and usageifnoargs:
        show_usage(docstring, True, None, 0)
    if len(argv) == 2 and argv[1] in ("-h", "--help"):
        show_usage(docstring, False, None, 0)


def wrong_usage(docstring, *rest):
    """Print a message indicating invalid command-line arguments and exit with
    an error code. The optional *rest* is an error message, percent-formatted
    if it has more than one item.

    """
    if len(rest) == 0:
        detail = "invalid command-line arguments"
    elif len(rest) == 1:
        detail = rest[0]
    else:
        detail = rest[0] % tuple(rest[1:])

    print("error:", detail, "\n", file=sys.stderr)  # extra NL
    show_usage(docstring, True, sys.stderr, 1)


class RunKeywords(ParseKeywords):
    factor = 1.0
    verbose = False


def _split_args(args):
    own = RunKeywords().keywords()
    run_args = []
    config_args = []

    for arg in args:
        if arg.split("=", 1)[0] in own:
            run_args.append(arg)
        else:
            config_args.append(arg)

    return run_args, config_args


def _run_one(tp, factor, config_args):
    from .lm import LevenbergMarquardt

    config = tp.default_config()
    overrides = LevenbergMarquardt.from_keywords(config_args)
    config.__dict__.update(overrides.__dict__)

    problem, report = tp.run(factor, config)

    result = Holder(
        problem=tp.name,
        factor=factor,
        termination=report.termination,
        fnorm2=tp.fnorm(report.params),
        niter=report.niter,
        nfev=report.nfev,
        njev=report.njev,
        params=report.params,
    )

    ref = tp.references.get(factor)
    if ref is not None:
        result.set(ref_fnorm1=ref[0], ref_fnorm2=ref[1], ref_params=ref[2])

    return result


def commandline(argv=None):
    if argv is None:
        argv = sys.argv

    check_usage(usage, argv, usageifnoargs=True)

    from . import testproblems

    what = argv[1]
    run_args, config_args = _split_args(argv[2:])

    kw = RunKeywords().parse_or_die(run_args)

    logging.basicConfig(
        level=logging.DEBUG if kw.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    if what == "list":
        for name in testproblems.problem_names():
            print(name)
        return 0

    try:
        if what == "all":
            for tp in testproblems.all_problems():
                for factor in sorted(tp.references.keys()):
                    r = _run_one(tp, factor, config_args)
                    print(
                        "%-32s %5g %-40r %.10e %s"
                        % (r.problem, factor, r.termination, r.fnorm2, r.ref_fnorm2)
                    )
            return 0

        try:
            tp = testproblems.get_problem(what)
        except ValueError as e:
            wrong_usage(usage, str(e))

        print(_run_one(tp, kw.factor, config_args).to_pretty())
    except KwargvError as e:
        die(e)

    return 0


if __name__ == "__main__":
    sys.exit(commandline())
