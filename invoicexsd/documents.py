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
Validation of invoice documents against the schema bundle of a directory or
of a case, with a diagnostic report as result.
"""
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional, Union

from invoicexsd.bundles import SchemaBundle, SchemaBundleCache, SchemaSetCompiler, \
    bundle_cache
from invoicexsd.cases import CaseKey, CaseResolver, InvoiceSerializer, serialize_case
from invoicexsd.diagnostics import DiagnosticFormatter, DiagnosticReport
from invoicexsd.logger import logger, logged
from invoicexsd.validation import DocumentSourceType, StreamingValidator, \
    ValidationFlags, ViolationEvent


def get_bundle(directory: Union[str, Path],
               primary: Optional[str] = None,
               compiler: Optional[SchemaSetCompiler] = None,
               cache: Optional[SchemaBundleCache] = bundle_cache) -> SchemaBundle:
    """Returns the bundle of a directory, from the cache if one is provided."""
    if compiler is None:
        compiler = SchemaSetCompiler()
    if cache is None:
        return compiler.compile(directory, primary)
    return cache.get_bundle(directory, primary, compiler)


def _get_document(source: DocumentSourceType) -> tuple[Any, Any]:
    """
    Returns the source for the validator and the source for the formatter.
    Bytes of a file are read once, streams are left to be rewound.
    """
    if isinstance(source, Path) or isinstance(source, str) and \
            not source.lstrip().startswith('<'):
        data = Path(source).read_bytes()
        return data, data
    return source, source


def _iter_events(source: DocumentSourceType,
                 directory: Union[str, Path],
                 primary: Optional[str] = None,
                 compiler: Optional[SchemaSetCompiler] = None,
                 cache: Optional[SchemaBundleCache] = bundle_cache,
                 flags: Optional[ValidationFlags] = None) -> list[ViolationEvent]:
    bundle = get_bundle(directory, primary, compiler, cache)
    return StreamingValidator(flags).validate(source, bundle)


@logged
def validate_document(source: DocumentSourceType,
                      directory: Union[str, Path],
                      primary: Optional[str] = None, *,
                      compiler: Optional[SchemaSetCompiler] = None,
                      cache: Optional[SchemaBundleCache] = bundle_cache,
                      flags: Optional[ValidationFlags] = None,
                      formatter: Optional[DiagnosticFormatter] = None) -> DiagnosticReport:
    """
    Validates a document against the schema bundle of a directory and formats
    the violations into a diagnostic report.

    :param source: a seekable stream, bytes, XML text or a file path. A stream \
    is validated from its current position and is rewound for formatting, \
    it's never closed.
    :param directory: the root directory of the schema files.
    :param primary: optional name of the main schema file.
    :param compiler: the schema bundle compiler, for default a lax compiler.
    :param cache: the bundle cache, for default the process-wide cache. \
    Provide `None` for compiling a new bundle.
    :param flags: the validation options.
    :param formatter: the diagnostic formatter, for default a formatter with \
    a width of 120 and 5 context lines.
    :param loglevel: optional logging level for the validation.
    :return: the diagnostic report, empty if the document is conformant.
    :raises: :exc:`SchemaAssemblyFailed` if the bundle can't be assembled, \
    :exc:`MalformedDocument` if the document is not well-formed XML.
    """
    validator_source, lines_source = _get_document(source)
    events = _iter_events(validator_source, directory, primary, compiler, cache, flags)
    if formatter is None:
        formatter = DiagnosticFormatter()
    return formatter.format(events, lines_source)


def iter_violations(source: DocumentSourceType,
                    directory: Union[str, Path],
                    primary: Optional[str] = None, *,
                    compiler: Optional[SchemaSetCompiler] = None,
                    cache: Optional[SchemaBundleCache] = bundle_cache,
                    flags: Optional[ValidationFlags] = None) -> Iterator[ViolationEvent]:
    """Yields the violation events of a document, without formatting them."""
    yield from _iter_events(source, directory, primary, compiler, cache, flags)


def is_conformant(source: DocumentSourceType,
                  directory: Union[str, Path],
                  primary: Optional[str] = None, *,
                  compiler: Optional[SchemaSetCompiler] = None,
                  cache: Optional[SchemaBundleCache] = bundle_cache,
                  flags: Optional[ValidationFlags] = None) -> bool:
    """Returns `True` if the document has no violation events."""
    return not _iter_events(source, directory, primary, compiler, cache, flags)


class ConformanceChecker:
    """
    Checks the conformance of invoices to the schema bundles of their cases.

    :param resolver: the resolver of case keys to schema locations.
    :param cache: the bundle cache, for default the process-wide cache.
    :param compiler: the schema bundle compiler, for default a lax compiler.
    :param flags: the validation options.
    :param formatter: the diagnostic formatter.
    """
    def __init__(self, resolver: Optional[CaseResolver] = None,
                 cache: Optional[SchemaBundleCache] = None,
                 compiler: Optional[SchemaSetCompiler] = None,
                 flags: Optional[ValidationFlags] = None,
                 formatter: Optional[DiagnosticFormatter] = None) -> None:
        self.resolver = resolver or CaseResolver()
        self.cache = bundle_cache if cache is None else cache
        self.compiler = compiler or SchemaSetCompiler()
        self.validator = StreamingValidator(flags)
        self.formatter = formatter or DiagnosticFormatter()

    def __repr__(self) -> str:
        return '%s(resolver=%r, compiler=%r)' % (
            self.__class__.__name__, self.resolver, self.compiler
        )

    def get_bundle(self, key: CaseKey) -> SchemaBundle:
        location = self.resolver.resolve(key)
        return self.cache.get_bundle(location.directory, location.primary, self.compiler)

    @logged
    def check(self, source: DocumentSourceType, key: CaseKey) -> DiagnosticReport:
        """
        Validates a document against the schema bundle of a case.

        :param source: a seekable stream, bytes, XML text or a file path.
        :param key: the case of the document.
        :param loglevel: optional logging level for the check.
        :raises: :exc:`UnknownCaseError` if the case has no schema bundle.
        """
        bundle = self.get_bundle(key)
        validator_source, lines_source = _get_document(source)
        events = self.validator.validate(validator_source, bundle)
        report = self.formatter.format(events, lines_source)
        logger.info("Checked document for case %s: %d violations", key, len(report))
        return report

    def check_serialized(self, serializer: InvoiceSerializer, key: CaseKey) \
            -> DiagnosticReport:
        """
        Serializes an invoice for a case using an external serializer, then
        checks the produced document.
        """
        return self.check(serialize_case(serializer, key), key)

    def assert_conformant(self, source: Union[DocumentSourceType, InvoiceSerializer],
                          key: CaseKey) -> None:
        """
        Checks a document, or an invoice serializer, and raises
        :exc:`DocumentNotConformant` with the full report text on violations.
        """
        if hasattr(source, 'save'):
            report = self.check_serialized(source, key)
        else:
            report = self.check(source, key)
        report.raise_for_violations()


__all__ = ['get_bundle', 'validate_document', 'iter_violations', 'is_conformant',
           'ConformanceChecker']
