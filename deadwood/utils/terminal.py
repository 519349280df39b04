"""Terminal capability checks for diagnostic output.

Debug dumps print tree glyphs and arrows. Streams that can't encode them get
ASCII replacements instead of a UnicodeEncodeError halfway through a dump.
"""
import locale
import sys
from typing import Optional, TextIO

# Glyph -> ASCII replacement
ASCII_FALLBACKS = {
    '✓': '[OK]',
    '✗': '[FAIL]',
    '⚠': '[WARN]',
    '→': '->',
    '←': '<-',
    '│': '|',
    '─': '-',
    '├': '+',
    '└': '+',
    '…': '...',
    '•': '*',
}


def stream_encoding(stream: Optional[TextIO] = None) -> str:
    """Encoding of an output stream, falling back to the locale's.

    Args:
        stream: Stream to inspect (defaults to sys.stderr)

    Returns:
        Lower-cased encoding name, 'ascii' if nothing is known
    """
    stream = stream if stream is not None else sys.stderr
    encoding = getattr(stream, 'encoding', None)
    if encoding:
        return encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (LookupError, ValueError):
        return 'ascii'


def supports_unicode(stream: Optional[TextIO] = None) -> bool:
    return stream_encoding(stream).replace('_', '-') in ('utf-8', 'utf8')


def to_ascii(text: str, stream: Optional[TextIO] = None, force: bool = False) -> str:
    """Replace known glyphs when the stream can't print them.

    Args:
        text: Text to print
        stream: Destination stream (defaults to sys.stderr)
        force: Replace even on UTF-8 streams

    Returns:
        Text safe for the stream
    """
    if not force and supports_unicode(stream):
        return text

    for glyph, replacement in ASCII_FALLBACKS.items():
        text = text.replace(glyph, replacement)
    return text
