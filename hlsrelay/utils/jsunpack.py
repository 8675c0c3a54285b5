"""
JavaScript unpacker for p.a.c.k.e.r packed code.
Adapted from ResolveUrl Kodi Addon.
"""

import logging
import re
import string

from hlsrelay.utils.errors import (
    DecodeError,
    MalformedInputError,
    MalformedSymbolTableError,
    NotPackedError,
    UnsupportedRadixError,
)

logger = logging.getLogger(__name__)

ALPHABET_62 = string.digits + string.ascii_lowercase + string.ascii_uppercase
ALPHABET_95 = ''.join(chr(code) for code in range(32, 127))

DETECT_RE = re.compile(r"eval *\( *function *\( *p *, *a *, *c *, *k *, *e *,")

# Tried in order: with the trailing custom-unpack arguments, then without.
# Each shape runs through the closing paren of eval.
PACKER_CALL_SHAPES = (
    re.compile(r"}\(('.*?'), *(\d+|\[\]), *(\d+), *'(.*?)'\.split\('\|'\), *(\d+), *(.*?)\)\)", re.DOTALL),
    re.compile(r"}\(('.*?'), *(\d+|\[\]), *(\d+), *'(.*?)'\.split\('\|'\)\)\)?", re.DOTALL),
)

WORD_RE = re.compile(r"\b\w+\b", re.ASCII)


def detect(source):
    """Detects whether source is P.A.C.K.E.R. coded."""
    return DETECT_RE.search(source) is not None


def _match_call(source):
    """Match the packed call against the known call shapes."""
    for shape in PACKER_CALL_SHAPES:
        args = shape.search(source)
        if args:
            return args
    raise MalformedInputError('Could not make sense of p.a.c.k.e.r data (unexpected code structure)')


def _call_args(args):
    payload, radix, count, symtab = args.group(1, 2, 3, 4)
    if radix == '[]':
        radix = '62'
    try:
        return payload[1:-1], symtab.split('|'), int(radix), int(count)
    except ValueError:
        raise MalformedInputError('Corrupted p.a.c.k.e.r. data.')


def filter_args(source):
    """Extract the four args needed by decoder."""
    return _call_args(_match_call(source))


def unpack(source, logger=logger):
    """Unpacks P.A.C.K.E.R. packed js code."""
    detected = DETECT_RE.search(source)
    if not detected:
        raise NotPackedError('Not a P.A.C.K.E.R. coded file.')

    call = _match_call(source)
    payload, symtab, radix, count = _call_args(call)
    begin_str = source[:detected.start()]
    end_str = source[call.end():]
    logger.debug('Packed payload: %d chars, radix %d, %d symbols', len(payload), radix, count)

    if count != len(symtab):
        raise MalformedSymbolTableError(
            f'Malformed p.a.c.k.e.r. symtab: declared {count}, found {len(symtab)}')

    unbase = Unbaser(radix)

    def lookup(match):
        """Look up symbols in the synthetic symtab."""
        word = match.group(0)
        try:
            index = unbase(word)
        except DecodeError:
            return word
        if index < len(symtab) and symtab[index]:
            return symtab[index]
        return word

    payload = payload.replace("\\\\", "\\").replace("\\'", "'")
    source = WORD_RE.sub(lookup, payload)
    logger.debug('Unpacked %d chars', len(source))
    return begin_str + source + end_str


def unpack_or_plain(source, logger=logger):
    """Unpack source, or return it as is when it is not packed at all."""
    try:
        return unpack(source, logger=logger)
    except NotPackedError:
        logger.debug('Source is not packed, using it as plain text')
        return source


class Unbaser:
    """Functor for a given base. Converts strings to natural numbers."""

    def __init__(self, base):
        self.base = base

        if 2 <= base <= 36:
            self.digits = ALPHABET_62[:base]
            self.unbase = self._intunbaser
            return

        if 36 < base <= 62:
            alphabet = ALPHABET_62[:base]
        elif base == 95:
            alphabet = ALPHABET_95
        else:
            raise UnsupportedRadixError(f'Unsupported base encoding: {base}')

        self.dictionary = {cipher: index for index, cipher in enumerate(alphabet)}
        self.unbase = self._dictunbaser

    def __call__(self, string):
        return self.unbase(string)

    def _intunbaser(self, string):
        if not string or any(char not in self.digits for char in string.lower()):
            raise DecodeError(f'{string!r} is not a base {self.base} number')
        return int(string, self.base)

    def _dictunbaser(self, string):
        """Decodes a value to an integer."""
        ret = 0
        for index, cipher in enumerate(string[::-1]):
            try:
                ret += (self.base ** index) * self.dictionary[cipher]
            except KeyError:
                raise DecodeError(f'Invalid character {cipher!r} for base {self.base}')
        return ret
