# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

"""trustlm.termination - Why a minimization stopped

Every run of the minimizer ends with exactly one of the values below. They
are immutable and compare equal when their types and payloads match::

  reason = lm.update_diag(lls)
  if reason == Numerical("jacobian"):
      ...

Successful outcomes (``reason.successful`` is true):

Orthogonal
  "The cosine of the angle between the residuals and any column of the
  Jacobian is at most GTOL in absolute value." (MINPACK info 4)
Converged(ftol, xtol)
  "Both the actual and predicted relative reductions in the sum of squares
  are at most FTOL" and/or "the relative error between two consecutive
  iterates is at most XTOL". (MINPACK info 1, 2, 3)
ResidualsZero
  The residuals are exactly zero; nothing is left to minimize.

Failures:

Numerical(stage)
  A NaN or infinite value turned up; *stage* names where.
User(stage)
  The problem declined to produce residuals or a Jacobian.
NoImprovementPossible(which)
  "FTOL/XTOL/GTOL is too small"; machine precision has been reached.
  (MINPACK info 6, 7, 8)
MaxIterations
  The iteration budget ran out. (MINPACK info 5)
NoParameters, NotEnoughResiduals, WrongDimensions(stage)
  The problem is ill-posed.

"""

__all__ = """TerminationReason Orthogonal Converged ResidualsZero Numerical User
NoImprovementPossible MaxIterations NoParameters NotEnoughResiduals
WrongDimensions""".split()


class TerminationReason(object):
    """Base class for the reasons a minimization can stop."""

    __slots__ = ()
    _fields = ()
    successful = False

    def _key(self):
        return tuple(getattr(self, f) for f in self._fields)

    def __setattr__(self, name, value):
        raise AttributeError("termination reasons are immutable")

    def __eq__(self, other):
        return type(self) is type(other) and self._key() == other._key()

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((type(self).__name__,) + self._key())

    def __repr__(self):
        return "%s(%s)" % (
            type(self).__name__,
            ", ".join("%s=%r" % (f, getattr(self, f)) for f in self._fields),
        )

    def _init_fields(self, **values):
        for f in self._fields:
            object.__setattr__(self, f, values[f])


class Orthogonal(TerminationReason):
    __slots__ = ()
    successful = True


class ResidualsZero(TerminationReason):
    __slots__ = ()
    successful = True


class Converged(TerminationReason):
    __slots__ = ("ftol", "xtol")
    _fields = ("ftol", "xtol")
    successful = True

    def __init__(self, ftol=False, xtol=False):
        if not (ftol or xtol):
            raise ValueError("at least one of ftol and xtol must be set")
        self._init_fields(ftol=bool(ftol), xtol=bool(xtol))


class Numerical(TerminationReason):
    __slots__ = ("stage",)
    _fields = ("stage",)

    def __init__(self, stage):
        self._init_fields(stage=stage)


class User(TerminationReason):
    __slots__ = ("stage",)
    _fields = ("stage",)

    def __init__(self, stage):
        self._init_fields(stage=stage)


class NoImprovementPossible(TerminationReason):
    __slots__ = ("which",)
    _fields = ("which",)

    def __init__(self, which):
        if which not in ("ftol", "xtol", "gtol"):
            raise ValueError('unrecognized tolerance name "%s"' % which)
        self._init_fields(which=which)


class MaxIterations(TerminationReason):
    __slots__ = ()


class NoParameters(TerminationReason):
    __slots__ = ()


class NotEnoughResiduals(TerminationReason):
    __slots__ = ()


class WrongDimensions(TerminationReason):
    __slots__ = ("stage",)
    _fields = ("stage",)

    def __init__(self, stage):
        self._init_fields(stage=stage)
