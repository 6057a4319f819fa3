# -*- mode: python; coding: utf-8 -*-
# Copyright 2012-2015, 2018 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

"""The :mod:`trustlm.kwargv` module parses keyword-style arguments of the form
``name=value``, so that a minimizer configuration can be driven either from
code or from the command line.

Keywords are defined by declaring a subclass of :class:`ParseKeywords` with
fields corresponding to the supported keywords::

  from trustlm.kwargv import ParseKeywords, Custom

  class RunConfig(ParseKeywords):
      maxiter = 200
      ftol = float

      @Custom(str)
      def normfunc(value):
          return None if value is None else lookup_norm(value)

Instantiating the subclass fills in all defaults. Calling
:meth:`ParseKeywords.parse` on a list of strings (defaulting to
``sys.argv[1:]``) updates the instance's attributes.

Keyword Specification Format
----------------------------

- ``foo = 1`` defines a keyword with a default value, type inferred as
  ``int``. Likewise for ``str``, ``bool``, ``float``.

- ``bar = float`` defines a keyword parsed as a float with a default value of
  None. Likewise for ``int``, ``bool``, ``str``.

- Using :class:`Custom` as a decorator on a function ``foo`` defines a keyword
  ``foo`` whose parsed value is passed through the function. The function is
  also applied to the default value, None.

Boolean keywords accept ``yes``/``no``, ``true``/``false``, ``on``/``off``
and ``1``/``0``.

"""

__all__ = "Custom KwargvError ParseError KeywordInfo ParseKeywords".split()

from . import Holder, LMError


class KwargvError(LMError):
    """Raised when invalid arguments have been provided."""


class ParseError(KwargvError):
    """Raised when the structure of the arguments appears legitimate, but a
    particular value cannot be parsed into its expected type.

    """


class KeywordInfo(object):
    """Properties that a keyword argument may have."""

    parser = None
    """A callable used to convert the argument text to a Python value.
    This attribute is assigned automatically upon setup."""

    default = None
    """The default value for the keyword if it's left unspecified."""

    fixupfunc = None
    """If not ``None``, the final value of the keyword is set to the return value
    of ``fixupfunc(intermediate_value)``.

    """


class KeywordOptions(Holder):
    subval = None

    def __init__(self, subval, **kwargs):
        self.set(**kwargs)
        self.subval = subval

    def __call__(self, fixupfunc):
        # Lets us be used as a decorator on "fixup" functions.
        self.fixupfunc = fixupfunc
        return self


Custom = KeywordOptions  # sugar for users


def _parse_bool(s):
    s = s.lower()

    if s in "y yes t true on 1".split():
        return True
    if s in "n no f false off 0".split():
        return False
    raise ParseError('don\'t know how to interpret "%s" as a boolean' % s)


def _val_to_parser(v):
    if isinstance(v, bool):
        return _parse_bool
    if isinstance(v, (int, float, str)):
        return v.__class__
    raise ValueError("can't figure out how to parse %r" % v)


def _val_or_func_to_parser(v):
    if v is bool:
        return _parse_bool
    if callable(v):
        return v
    return _val_to_parser(v)


def _val_or_func_to_default(v):
    if callable(v):
        return None
    if isinstance(v, (int, float, bool, str)):
        return v
    raise ValueError("can't figure out a default for %r" % v)


class ParseKeywords(Holder):
    """The template class for defining your keyword arguments. A subclass of
    :class:`trustlm.Holder`. Declare attributes in a subclass following the
    scheme described above, then call :meth:`ParseKeywords.parse`.

    Only attributes declared directly on the subclass are keywords.

    """

    def __init__(self):
        kwspecs = self.__class__.__dict__
        kwinfos = {}

        for kw, ks in kwspecs.items():
            if kw[0] == "_":
                continue

            ki = KeywordInfo()
            ko = None

            if isinstance(ks, KeywordOptions):
                ko = ks
                ks = ko.subval

            if callable(ks):
                parser = _val_or_func_to_parser(ks)
                default = _val_or_func_to_default(ks)
            else:
                parser = _val_to_parser(ks)
                default = _val_or_func_to_default(ks)

            ki.parser = parser
            ki.default = default

            if ko is not None:  # override with user-specified options
                ki.__dict__.update(ko.__dict__)

            if ki.fixupfunc is not None:
                # The fixup always sees the default value too.
                ki.default = ki.fixupfunc(ki.default)

            kwinfos[kw] = ki

        for kw, ki in kwinfos.items():
            self.set_one(kw, ki.default)

        self._kwinfos = kwinfos

    def keywords(self):
        """Return the set of keyword names, as typed on the command line."""
        return set(self._kwinfos.keys())

    def parse(self, args=None):
        """Parse textual keywords as described by this class's attributes, and
        update this instance's attributes with the parsed values. *args* is a
        list of strings; if ``None``, it defaults to ``sys.argv[1:]``. Returns
        *self* for convenience. Raises :exc:`KwargvError` if invalid keywords
        are encountered.

        See also :meth:`ParseKeywords.parse_or_die`.

        """
        if args is None:
            import sys

            args = sys.argv[1:]

        for arg in args:
            t = arg.split("=", 1)
            if len(t) < 2:
                raise KwargvError('don\'t know what to do with argument "%s"', arg)

            kw, val = t
            ki = self._kwinfos.get(kw)

            if ki is None:
                raise KwargvError('unrecognized keyword argument "%s"', kw)

            if not len(val):
                raise KwargvError('empty value for keyword argument "%s"', kw)

            try:
                pval = ki.parser(val)
            except ParseError as e:
                raise KwargvError(
                    'cannot parse value "%s" for keyword argument "%s": %s',
                    val,
                    kw,
                    e,
                )
            except Exception:
                raise KwargvError(
                    'cannot parse value "%s" for keyword argument "%s"', val, kw
                )

            if ki.fixupfunc is not None:
                pval = ki.fixupfunc(pval)

            self.set_one(kw, pval)

        return self

    def parse_or_die(self, args=None):
        """Like :meth:`ParseKeywords.parse`, but calls :func:`trustlm.cli.die` if
        a :exc:`KwargvError` is raised, printing the exception text. Returns
        *self* for convenience.

        """
        from .cli import die

        try:
            return self.parse(args)
        except KwargvError as e:
            die(e)
