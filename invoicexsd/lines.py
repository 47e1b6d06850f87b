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
Line-oriented access to the text of XML documents. Lines are delimited only
by CRLF, CR and LF, the line breaks normalized by XML parsers.
"""
import codecs
import re
from collections.abc import Iterator
from typing import Any

from invoicexsd.logger import logger

LINE_BREAKS = re.compile(r'\r\n|\r|\n')

_ENCODING_DECLARATION = re.compile(
    rb'^<\?xml[^>]*?encoding\s*=\s*["\']([A-Za-z][A-Za-z0-9._\-]*)["\']'
)

# Markup that can contain a '<' not opening a start tag is matched first
_MARKUP = re.compile(
    r'<!--.*?-->'
    r'|<!\[CDATA\[.*?]]>'
    r'|<\?.*?\?>'
    r'|<!DOCTYPE(?:[^\[>]*\[.*?])?[^>]*>'
    r'|<(?P<name>[^\s/>!?][^\s/>]*)',
    re.DOTALL
)


def get_declared_encoding(data: bytes) -> str:
    """Returns the encoding of a document from its BOM or XML declaration."""
    if data.startswith(codecs.BOM_UTF8):
        return 'utf-8-sig'
    elif data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return 'utf-16'

    match = _ENCODING_DECLARATION.match(data)
    if match is not None:
        encoding = match.group(1).decode('ascii')
        try:
            return codecs.lookup(encoding).name
        except LookupError:
            logger.warning("Unknown declared encoding %r, decode as UTF-8", encoding)
    return 'utf-8'


def decode_document(data: bytes) -> str:
    """Decodes document bytes with the declared encoding, replacing undecodable bytes."""
    return data.decode(get_declared_encoding(data), errors='replace')


def iter_start_tag_lines(text: str) -> Iterator[int]:
    """
    Yields the 1-based line where each start tag of a document opens, in
    document order. Start tags inside comments, CDATA sections, processing
    instructions and the document type declaration are not considered.
    """
    line = 1
    position = 0
    for match in _MARKUP.finditer(text):
        if match.group('name') is not None:
            start = match.start()
            line += len(LINE_BREAKS.findall(text, position, start))
            position = start
            yield line


def map_start_tag_lines(root: Any, data: bytes) -> dict[Any, int]:
    """
    Maps the elements of a parsed document to the lines where their start
    tags open. XML parsers report the line where a start tag is closed, that
    differs for start tags written on more lines.

    :param root: the root element of the document, parsed from *data*.
    :param data: the bytes of the document.
    :return: a mapping from elements to lines, empty if the elements don't \
    match the start tags of the text, e.g. for elements expanded from entities.
    """
    elements = [e for e in root.iter() if isinstance(e.tag, str)]
    lines = list(iter_start_tag_lines(decode_document(data)))
    if len(elements) != len(lines):
        logger.debug("Found %d start tags for %d elements, use the parser's lines",
                     len(lines), len(elements))
        return {}
    return dict(zip(elements, lines))
