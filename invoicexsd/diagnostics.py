#
# Copyright (c), 2025, SISSA (International School for Advanced Studies).
# All rights reserved.
# This file is distributed under the terms of the MIT License.
# See the file 'LICENSE' in the root directory of the present
# distribution, or http://opensource.org/licenses/MIT.
#
# @author Davide Brunato <brunato@sissa.it>
#
"""
Formatting of violation events into human-readable diagnostic entries, with
a location marker and a window of the document source lines.
"""
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any, Optional, overload, Union

from invoicexsd.arguments import ValueArgument
from invoicexsd.exceptions import DocumentNotConformant, InvoiceXsdTypeError
from invoicexsd.lines import LINE_BREAKS, get_declared_encoding
from invoicexsd.validation import ViolationEvent

DEFAULT_WIDTH = 120
DEFAULT_CONTEXT_LINES = 5
ENTRY_SEPARATOR = '\n-------------\n'


def wrap_text(message: str, width: int = DEFAULT_WIDTH) -> str:
    """
    Wraps a message at a column width, breaking only at single spaces. Words are
    never split, so a line is longer than *width* only if it's made of a single
    word that is longer than *width*. Runs of spaces are preserved, except for
    the spaces replaced by a line break.

    :param message: the text to wrap.
    :param width: the maximum length of a line.
    """
    lines = []
    words: list[str] = []
    length = 0

    for word in message.split(' '):
        if not words:
            words.append(word)
            length = len(word)
        elif length + 1 + len(word) > width:
            lines.append(' '.join(words))
            words = [word]
            length = len(word)
        else:
            words.append(word)
            length += 1 + len(word)

    lines.append(' '.join(words))
    return '\n'.join(lines)


class SourceLineIndex(Sequence[str]):
    """
    The text lines of a document, split only on CRLF, CR and LF line breaks.
    A trailing line break doesn't produce an empty last line.

    :param text: the document text.
    """
    __slots__ = ('_lines',)

    def __init__(self, text: str) -> None:
        lines = LINE_BREAKS.split(text)
        if lines and not lines[-1]:
            lines.pop()
        self._lines = tuple(lines)

    @classmethod
    def from_bytes(cls, data: bytes, encoding: Optional[str] = None) -> 'SourceLineIndex':
        if encoding is None:
            encoding = get_declared_encoding(data)
        return cls(data.decode(encoding, errors='replace'))

    @classmethod
    def from_source(cls, source: Any) -> 'SourceLineIndex':
        """
        Builds a line index from a document source. A stream is read from
        the start and is left open.
        """
        if isinstance(source, SourceLineIndex):
            return source
        elif hasattr(source, 'read'):
            source.seek(0)
            data = source.read()
        elif isinstance(source, Path):
            data = source.read_bytes()
        else:
            data = source

        if isinstance(data, str):
            return cls(data)
        elif isinstance(data, (bytes, bytearray)):
            return cls.from_bytes(bytes(data))
        raise InvoiceXsdTypeError(f"invalid type {type(source)!r} for a document source")

    @overload
    def __getitem__(self, i: int) -> str: ...

    @overload
    def __getitem__(self, s: slice) -> Sequence[str]: ...

    def __getitem__(self, i: Union[int, slice]) -> Union[str, Sequence[str]]:
        return self._lines[i]

    def __len__(self) -> int:
        return len(self._lines)

    def __repr__(self) -> str:
        return '%s(<%d lines>)' % (self.__class__.__name__, len(self._lines))


class DiagnosticReport(Sequence[str]):
    """
    The ordered diagnostic entries of a validation, one for each violation event.
    An empty report means that the document conforms to the schema bundle.

    :param entries: the formatted entries.
    :param events: the violation events, in the same order of the entries.
    """
    __slots__ = ('_entries', 'events')

    def __init__(self, entries: Iterable[str] = (),
                 events: Iterable[ViolationEvent] = ()) -> None:
        self._entries = tuple(entries)
        self.events = tuple(events)
        if len(self._entries) != len(self.events):
            raise InvoiceXsdTypeError("diagnostic entries don't match the events")

    @overload
    def __getitem__(self, i: int) -> str: ...

    @overload
    def __getitem__(self, s: slice) -> Sequence[str]: ...

    def __getitem__(self, i: Union[int, slice]) -> Union[str, Sequence[str]]:
        return self._entries[i]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DiagnosticReport):
            return self._entries == other._entries and self.events == other.events
        elif isinstance(other, (list, tuple)):
            return list(self._entries) == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return '%s(<%d entries>)' % (self.__class__.__name__, len(self._entries))

    def __str__(self) -> str:
        return ENTRY_SEPARATOR.join(self._entries)

    @property
    def is_conformant(self) -> bool:
        return not self._entries

    @property
    def error_count(self) -> int:
        return sum(e.is_error for e in self.events)

    def raise_for_violations(self) -> None:
        """Raises :exc:`DocumentNotConformant` with the full text if not empty."""
        if self._entries:
            raise DocumentNotConformant(str(self), len(self._entries))


class DiagnosticFormatter:
    """
    Formats violation events into diagnostic entries.

    :param width: the column width of the wrapped messages.
    :param context_lines: the number of source lines shown before the line of \
    the violation, the same number is shown starting from it.
    """
    width: ValueArgument[int] = ValueArgument(int, min_value=1)
    context_lines: ValueArgument[int] = ValueArgument(int, min_value=0)

    def __init__(self, width: int = DEFAULT_WIDTH,
                 context_lines: int = DEFAULT_CONTEXT_LINES) -> None:
        self.width = width
        self.context_lines = context_lines

    def __repr__(self) -> str:
        return '%s(width=%r, context_lines=%r)' % (
            self.__class__.__name__, self.width, self.context_lines
        )

    def iter_context(self, line: int, lines: Sequence[str]) -> Iterator[str]:
        for k in range(line - self.context_lines, line + self.context_lines):
            if 0 <= k < len(lines):
                yield f'{k + 1}:{lines[k]}'

    def format_event(self, event: ViolationEvent, lines: Sequence[str]) -> str:
        """
        Formats a single event: the wrapped message, the location line and the
        window of source lines around the line of the event.
        """
        chunks = [
            wrap_text(event.message, self.width),
            f'LineNumber: {event.line}, LinePosition: {event.column}',
        ]
        chunks.extend(self.iter_context(event.line, lines))
        return '\n'.join(chunks)

    def format(self, events: Iterable[ViolationEvent], source: Any) -> DiagnosticReport:
        """
        Formats a sequence of events into a report, preserving their order.

        :param events: the violation events of the document.
        :param source: the document, that can be a stream, text, bytes, a path \
        or a ready :class:`SourceLineIndex`. Source lines are read only if \
        there are events to format.
        """
        events = tuple(events)
        if not events:
            return DiagnosticReport()

        lines = SourceLineIndex.from_source(source)
        return DiagnosticReport((self.format_event(e, lines) for e in events), events)
