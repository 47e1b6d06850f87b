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
Validation of XML documents against schema bundles. Schema violations are
collected as events, never raised.
"""
import io
import re
import warnings
import dataclasses as dc
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from lxml import etree as lxml_etree
from xmlschema import XMLResource, XMLResourceError, XMLSchemaValidationError
from xmlschema.exceptions import XMLSchemaWarning
from xmlschema.validators import XsdIdentity

from invoicexsd.arguments import Argument, BooleanArgument
from invoicexsd.bundles import SchemaBundle, warnings_lock
from invoicexsd.exceptions import InvoiceXsdValueError, MalformedDocument
from invoicexsd.lines import map_start_tag_lines
from invoicexsd.logger import logger, logged

DocumentSourceType = Union[str, bytes, Path, BinaryIO]

# Identity constraints are referred by their repr in the reasons of errors
IDENTITY_REASON_PATTERN = re.compile(r"\bXsd(?:11)?(?:Unique|Key|Keyref)\(")


class Severity(Enum):
    WARNING = 'Warning'
    ERROR = 'Error'


@dc.dataclass(frozen=True)
class ViolationEvent:
    """
    A violation of a schema rule found validating a document.

    :param severity: the severity of the event.
    :param message: the description of the violation.
    :param line: the 1-based line of the document where the violation is located.
    :param column: the column of the violation, 0 if not reported by the parser.
    :param path: the absolute XPath of the invalid element, if available.
    """
    severity: Severity
    message: str
    line: int = 1
    column: int = 0
    path: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.severity, Severity):
            raise InvoiceXsdValueError(f"invalid severity {self.severity!r}")
        elif self.line < 1:
            raise InvoiceXsdValueError(f"line must be a positive integer, not {self.line!r}")
        elif self.column < 0:
            raise InvoiceXsdValueError(f"column can't be negative: {self.column!r}")

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    @classmethod
    def from_error(cls, error: XMLSchemaValidationError,
                   default_line: int = 1,
                   line: Optional[int] = None) -> 'ViolationEvent':
        """
        Creates an error event from a validation error of the XSD engine.

        :param error: the validation error.
        :param default_line: the line used if the error has no element.
        :param line: the line of the start tag of the invalid element. If not \
        provided the line reported by the parser for the element is used.
        """
        message = error.message
        if error.reason:
            message = f"{message} Reason: {error.reason}"

        path = error.path
        if path:
            message = f"{message} Path: {path}"

        return cls(
            severity=Severity.ERROR,
            message=message,
            line=line or error.sourceline or default_line,
            path=path,
        )

    @classmethod
    def from_warning(cls, warning: warnings.WarningMessage,
                     default_line: int = 1) -> 'ViolationEvent':
        """Creates a warning event from a warning issued by the XSD engine."""
        return cls(
            severity=Severity.WARNING,
            message=f"{warning.category.__name__}: {warning.message}",
            line=default_line,
        )


class ValidationFlags:
    """
    The options of document validation.

    :param process_inline_schema: accepted for compatibility but without effect: \
    the XSD engine doesn't process schemas declared inline in documents, so \
    enabling the flag only writes a debug message to the log.
    :param process_schema_location: load schemas from the *xsi:schemaLocation* \
    and *xsi:noNamespaceSchemaLocation* hints of the document. Validations of \
    documents with hints are serialized, because loading a schema changes the \
    bundle and its failures are captured from the process-wide warnings.
    :param process_identity_constraints: report violations of key, unique and \
    keyref identity constraints.
    :param report_warnings: report the warnings issued while validating.
    """
    process_inline_schema = BooleanArgument()
    process_schema_location = BooleanArgument()
    process_identity_constraints = BooleanArgument()
    report_warnings = BooleanArgument()

    def __init__(self, process_inline_schema: bool = True,
                 process_schema_location: bool = True,
                 process_identity_constraints: bool = True,
                 report_warnings: bool = True) -> None:
        self.process_inline_schema = process_inline_schema
        self.process_schema_location = process_schema_location
        self.process_identity_constraints = process_identity_constraints
        self.report_warnings = report_warnings

    def __repr__(self) -> str:
        return '%s(process_inline_schema=%r, process_schema_location=%r, ' \
               'process_identity_constraints=%r, report_warnings=%r)' % (
                   self.__class__.__name__, self.process_inline_schema,
                   self.process_schema_location, self.process_identity_constraints,
                   self.report_warnings
               )


def is_identity_error(error: XMLSchemaValidationError) -> bool:
    """Returns `True` if the error is a violation of a key, unique or keyref constraint."""
    if isinstance(error.validator, XsdIdentity):
        return True
    return error.reason is not None and IDENTITY_REASON_PATTERN.search(error.reason) is not None


def get_error_position(err: BaseException) -> tuple[Optional[int], Optional[int]]:
    """Returns the position of an XML syntax error, looking also at its cause."""
    exc: Optional[BaseException] = err
    while exc is not None:
        position = getattr(exc, 'position', None)
        if position:
            return position[0], position[1]
        elif getattr(exc, 'lineno', None):
            return exc.lineno, getattr(exc, 'offset', None)  # type: ignore[attr-defined]
        exc = exc.__cause__
    return None, None


class StreamingValidator:
    """
    A validator of XML documents against a schema bundle, that collects every
    violation instead of stopping at the first one. Documents are read once and
    parsed with lxml, in order to locate violations by source line.

    :param flags: the validation options, for default all enabled.
    """
    flags: Argument[ValidationFlags] = Argument(ValidationFlags)

    def __init__(self, flags: Optional[ValidationFlags] = None) -> None:
        self.flags = flags or ValidationFlags()

    def __repr__(self) -> str:
        return '%s(flags=%r)' % (self.__class__.__name__, self.flags)

    def read_document(self, source: DocumentSourceType) -> tuple[Any, bytes]:
        """
        Reads the bytes of a document. A stream is read once from its current
        position and is neither closed nor rewound. Text is encoded to UTF-8.

        :return: the source for building the XML resource and the bytes.
        """
        if hasattr(source, 'read'):
            data = source.read()
            if isinstance(data, str):
                data = data.encode('utf-8')
            return io.BytesIO(data), data
        elif isinstance(source, bytes):
            return io.BytesIO(source), source
        elif isinstance(source, str) and source.lstrip().startswith('<'):
            data = source.encode('utf-8')
            return io.BytesIO(data), data

        # A file path, that is kept as the URL of the resource
        path = str(source)
        with open(path, 'rb') as fp:
            return path, fp.read()

    def get_resource(self, source: DocumentSourceType) -> tuple[XMLResource, bytes]:
        """
        Returns a fully loaded XML resource for a document source, together
        with the bytes of the document.

        :raises: :exc:`MalformedDocument` if the document is not well-formed, \
        :exc:`OSError` if a document file is missing or unreadable.
        """
        resource_source, data = self.read_document(source)
        try:
            resource = XMLResource(resource_source, iterparse=lxml_etree.iterparse)
        except (XMLResourceError, SyntaxError) as err:
            line, column = get_error_position(err)
            raise MalformedDocument(f"document is not well-formed: {err}",
                                    line, column) from err
        else:
            return resource, data

    def _collect_events(self, resource: XMLResource,
                        bundle: SchemaBundle,
                        lines: dict[Any, int],
                        root_line: int,
                        use_location_hints: bool,
                        recorded: list[warnings.WarningMessage]) -> list[ViolationEvent]:
        flags = self.flags
        events: list[ViolationEvent] = []
        errors = bundle.schema.iter_errors(resource, use_location_hints=use_location_hints)

        while True:
            error = next(errors, None)

            # Warnings issued before the error
            for warning in recorded:
                if flags.report_warnings and issubclass(warning.category, XMLSchemaWarning):
                    events.append(ViolationEvent.from_warning(warning, root_line))
            recorded.clear()

            if error is None:
                return events
            elif not flags.process_identity_constraints and is_identity_error(error):
                continue

            elem = getattr(error, 'elem', None)
            line = lines.get(elem) if elem is not None else None
            events.append(ViolationEvent.from_error(error, root_line, line))

    @logged
    def validate(self, source: DocumentSourceType, bundle: SchemaBundle) \
            -> list[ViolationEvent]:
        """
        Validates a document against a schema bundle. Events are located at
        the line where the start tag of the invalid element opens.

        :param source: a seekable stream, bytes, XML text or a file path.
        :param bundle: the compiled schema bundle.
        :param loglevel: optional logging level for the validation.
        :return: the list of violation events, in document order. An empty \
        list means that the document conforms to the bundle.
        :raises: :exc:`MalformedDocument` if the document is not well-formed.
        """
        resource, data = self.get_resource(source)
        root = resource.root
        lines = map_start_tag_lines(root, data)
        root_line = lines.get(root) or getattr(root, 'sourceline', None) or 1

        flags = self.flags
        if flags.process_inline_schema:
            logger.debug("Inline schema declarations are not processed")

        use_location_hints = flags.process_schema_location and \
            next(resource.iter_location_hints(), None) is not None

        if not use_location_hints:
            events = self._collect_events(resource, bundle, lines, root_line, False, [])
        else:
            # Schemas loaded from location hints are added to the bundle
            # and their failures are reported with warnings.
            with warnings_lock, bundle.lock, warnings.catch_warnings(record=True) as recorded:
                warnings.simplefilter('always', XMLSchemaWarning)
                events = self._collect_events(
                    resource, bundle, lines, root_line, True, recorded
                )

        logger.info("Validated document against %r: %d violations", bundle, len(events))
        return events

    def is_valid(self, source: DocumentSourceType, bundle: SchemaBundle) -> bool:
        """Returns `True` if the document has no error events."""
        return not any(e.is_error for e in self.validate(source, bundle))
