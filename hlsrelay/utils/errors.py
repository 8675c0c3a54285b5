"""
Exception hierarchy shared by the unpacker, the proxy token codec and the providers.
"""


class RelayError(Exception):
    """Base class for every error raised by hlsrelay."""


class UnpackError(RelayError):
    """Base class for p.a.c.k.e.r. unpacking failures."""


class NotPackedError(UnpackError):
    """Source does not contain a p.a.c.k.e.r. call."""


class MalformedInputError(UnpackError):
    """Packed call found, but its argument list matches no known call shape."""


class MalformedSymbolTableError(UnpackError):
    """Declared symbol count differs from the actual symbol table length."""


class UnsupportedRadixError(UnpackError):
    """Radix has no numeral alphabet."""


class DecodeError(UnpackError):
    """Token is not a valid numeral in the requested radix."""


class InvalidTokenError(RelayError):
    """Proxy token could not be decoded into a target URL and headers."""


class MissingUrlError(InvalidTokenError):
    """Proxy token decoded, but carries no usable URL."""


class ExtractionError(RelayError):
    """Provider could not locate a playable stream."""
