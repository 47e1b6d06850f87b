#
# Copyright (c), 2025, SISSA (International School for Advanced Studies).
# All rights reserved.
# This file is distributed under the terms of the MIT License.
# See the file 'LICENSE' in the root directory of the present
# distribution, or http://opensource.org/licenses/MIT.
#
# @author Davide Brunato <brunato@sissa.it>
#
from typing import Optional


class InvoiceXsdException(Exception):
    """
    The base exception that let you catch all the errors generated by the package.
    """


class InvoiceXsdAttributeError(InvoiceXsdException, AttributeError):
    pass


class InvoiceXsdTypeError(InvoiceXsdException, TypeError):
    pass


class InvoiceXsdValueError(InvoiceXsdException, ValueError):
    pass


class SchemaFileUnreadable(InvoiceXsdException):
    """
    Raised when a single schema file can't be loaded. The loader recovers
    from this error omitting the file from the schema bundle.

    :param path: the path of the schema file.
    :param reason: the detailed reason of the failure.
    """
    def __init__(self, path: str, reason: Optional[str] = None) -> None:
        self.path = path
        self.reason = reason
        super().__init__(path, reason)

    def __str__(self) -> str:
        if self.reason is None:
            return f"schema file {self.path!r} is unreadable"
        return f"schema file {self.path!r} is unreadable: {self.reason}"


class SchemaAssemblyFailed(InvoiceXsdException):
    """
    Raised when a schema bundle can't be assembled, that is when no schema of the
    directory is usable or when a compile problem is escalated by the strictness.
    """
    def __init__(self, message: str, directory: Optional[str] = None) -> None:
        self.message = message
        self.directory = directory
        super().__init__(message)

    def __str__(self) -> str:
        if self.directory is None:
            return self.message
        return f"{self.message} (directory {self.directory!r})"


class MalformedDocument(InvoiceXsdException, ValueError):
    """
    Raised when the validated document is not well-formed XML. The position is
    the one reported by the XML parser, if available.
    """
    def __init__(self, message: str,
                 line: Optional[int] = None,
                 column: Optional[int] = None) -> None:
        self.message = message
        self.line = line
        self.column = column
        super().__init__(message)

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column or 0})"


class UnknownCaseError(InvoiceXsdException, LookupError):
    """Raised when a case key has no schema location or can't be detected."""


class DocumentNotConformant(InvoiceXsdException, AssertionError):
    """
    Raised on demand when a diagnostic report is not empty. The message is
    the full text of the report, so a test runner reports it as a failure.
    """
    def __init__(self, message: str, count: int = 0) -> None:
        self.message = message
        self.count = count
        super().__init__(message)

    def __str__(self) -> str:
        return self.message
