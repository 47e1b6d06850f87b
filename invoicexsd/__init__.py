#
# Copyright (c), 2025, SISSA (International School for Advanced Studies).
# All rights reserved.
# This file is distributed under the terms of the MIT License.
# See the file 'LICENSE' in the root directory of the present
# distribution, or http://opensource.org/licenses/MIT.
#
# @author Davide Brunato <brunato@sissa.it>
#
from .exceptions import InvoiceXsdException, InvoiceXsdTypeError, \
    InvoiceXsdValueError, InvoiceXsdAttributeError, SchemaFileUnreadable, \
    SchemaAssemblyFailed, MalformedDocument, UnknownCaseError, DocumentNotConformant
from .logger import set_logging_level
from .loaders import SchemaSource, LoadResult, LoadPolicy, DefaultLoadPolicy, \
    DtdDisabledLoadPolicy, SchemaFileLoader
from .bundles import SchemaBundle, SchemaSetCompiler, SchemaBundleCache, bundle_cache
from .validation import Severity, ViolationEvent, ValidationFlags, StreamingValidator
from .diagnostics import wrap_text, SourceLineIndex, DiagnosticReport, DiagnosticFormatter
from .cases import StandardVersion, Profile, Dialect, CaseKey, SchemaLocation, \
    DEFAULT_CASES, CaseResolver, detect_case, InvoiceSerializer, serialize_case
from .documents import validate_document, iter_violations, is_conformant, \
    ConformanceChecker

__version__ = '1.0.0'
__author__ = "Davide Brunato"
__contact__ = "brunato@sissa.it"
__copyright__ = "Copyright 2025, SISSA"
__license__ = "MIT"
__status__ = "Production/Stable"

__all__ = [
    'InvoiceXsdException', 'InvoiceXsdTypeError', 'InvoiceXsdValueError',
    'InvoiceXsdAttributeError', 'SchemaFileUnreadable', 'SchemaAssemblyFailed',
    'MalformedDocument', 'UnknownCaseError', 'DocumentNotConformant',
    'set_logging_level', 'SchemaSource', 'LoadResult', 'LoadPolicy',
    'DefaultLoadPolicy', 'DtdDisabledLoadPolicy', 'SchemaFileLoader',
    'SchemaBundle', 'SchemaSetCompiler', 'SchemaBundleCache', 'bundle_cache',
    'Severity', 'ViolationEvent', 'ValidationFlags', 'StreamingValidator',
    'wrap_text', 'SourceLineIndex', 'DiagnosticReport', 'DiagnosticFormatter',
    'StandardVersion', 'Profile', 'Dialect', 'CaseKey', 'SchemaLocation',
    'DEFAULT_CASES', 'CaseResolver', 'detect_case', 'InvoiceSerializer',
    'serialize_case', 'validate_document', 'iter_violations', 'is_conformant',
    'ConformanceChecker',
]
