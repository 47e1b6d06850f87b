#
# Copyright (c), 2025, SISSA (International School for Advanced Studies).
# All rights reserved.
# This file is distributed under the terms of the MIT License.
# See the file 'LICENSE' in the root directory of the present
# distribution, or http://opensource.org/licenses/MIT.
#
# @author Davide Brunato <brunato@sissa.it>
#
# mypy: ignore-errors
"""
Subpackage with unittest extensions for invoicexsd: a base test case class
with helpers for schema directories and invoice documents, and a runner for
test scripts.
"""
from ._case_class import InvoiceXsdTestCase, run_invoicexsd_tests

__all__ = ['InvoiceXsdTestCase', 'run_invoicexsd_tests']
