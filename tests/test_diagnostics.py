#!/usr/bin/env python
#
# Copyright (c), 2025, SISSA (International School for Advanced Studies).
# All rights reserved.
# This file is distributed under the terms of the MIT License.
# See the file 'LICENSE' in the root directory of the present
# distribution, or http://opensource.org/licenses/MIT.
#
# @author Davide Brunato <brunato@sissa.it>
#
import io
import pathlib

from invoicexsd import DocumentNotConformant, InvoiceXsdTypeError, \
    InvoiceXsdValueError, InvoiceXsdAttributeError
from invoicexsd.diagnostics import wrap_text, SourceLineIndex, DiagnosticReport, \
    DiagnosticFormatter, ENTRY_SEPARATOR
from invoicexsd.lines import get_declared_encoding
from invoicexsd.testing import InvoiceXsdTestCase, run_invoicexsd_tests
from invoicexsd.validation import Severity, ViolationEvent


def make_document(lines_count):
    return '\n'.join(f'<line{k}/>' for k in range(1, lines_count + 1))


class TestWrapText(InvoiceXsdTestCase):

    def test_short_message(self):
        self.assertEqual(wrap_text('short message'), 'short message')
        self.assertEqual(wrap_text(''), '')

    def test_wrap_at_width(self):
        message = ' '.join(['word'] * 60)
        text = wrap_text(message)
        self.assertLinesMaxLength(text, 120)
        self.assertEqual(text.replace('\n', ' '), message)
        self.assertEqual(len(text.split('\n')), 3)

    def test_line_filled_to_width(self):
        message = 'a' * 59 + ' ' + 'b' * 60
        self.assertEqual(wrap_text(message), message)
        self.assertEqual(wrap_text(message + ' c'), message + '\nc')

    def test_long_word_is_not_split(self):
        long_word = 'x' * 150
        text = wrap_text(f'first {long_word} last')
        self.assertListEqual(text.split('\n'), ['first', long_word, 'last'])

        text = wrap_text(long_word)
        self.assertEqual(text, long_word)

    def test_custom_width(self):
        self.assertEqual(wrap_text('aaa bbb ccc', width=7), 'aaa bbb\nccc')
        self.assertEqual(wrap_text('aaa bbb ccc', width=6), 'aaa\nbbb\nccc')

    def test_words_order_and_spacing(self):
        message = 'one  two   three'
        self.assertEqual(wrap_text(message), message)

        words = [f'w{k}' for k in range(200)]
        text = wrap_text(' '.join(words), width=20)
        self.assertListEqual(text.split(), words)
        self.assertLinesMaxLength(text, 20)


class TestSourceLineIndex(InvoiceXsdTestCase):

    def test_split_line_breaks(self):
        lines = SourceLineIndex('a\r\nb\rc\nd')
        self.assertListEqual(list(lines), ['a', 'b', 'c', 'd'])
        self.assertEqual(len(lines), 4)
        self.assertEqual(lines[0], 'a')
        self.assertEqual(lines[-1], 'd')

    def test_trailing_line_break(self):
        self.assertListEqual(list(SourceLineIndex('a\nb\n')), ['a', 'b'])
        self.assertListEqual(list(SourceLineIndex('a\n\nb')), ['a', '', 'b'])
        self.assertEqual(len(SourceLineIndex('')), 0)

    def test_other_unicode_line_breaks_are_kept(self):
        lines = SourceLineIndex('a b\x0cc\n')
        self.assertListEqual(list(lines), ['a b\x0cc'])

    def test_from_bytes(self):
        lines = SourceLineIndex.from_bytes('<a>\n<b>é</b>\n</a>\n'.encode('utf-8'))
        self.assertListEqual(list(lines), ['<a>', '<b>é</b>', '</a>'])

        data = '<?xml version="1.0" encoding="ISO-8859-1"?>\n<a>é</a>'.encode('iso-8859-1')
        self.assertEqual(SourceLineIndex.from_bytes(data)[1], '<a>é</a>')

        lines = SourceLineIndex.from_bytes(b'\xef\xbb\xbf<a/>')
        self.assertEqual(lines[0], '<a/>')

        lines = SourceLineIndex.from_bytes(b'<a>\xff</a>')
        self.assertEqual(lines[0], '<a>�</a>')

    def test_declared_encoding(self):
        self.assertEqual(get_declared_encoding(b'<a/>'), 'utf-8')
        self.assertEqual(get_declared_encoding(b'\xef\xbb\xbf<a/>'), 'utf-8-sig')
        self.assertEqual(get_declared_encoding('<a/>'.encode('utf-16')), 'utf-16')
        self.assertEqual(
            get_declared_encoding(b'<?xml version="1.0" encoding="latin-1"?><a/>'),
            'iso8859-1'
        )
        with self.assertLogs('invoicexsd', level='WARNING'):
            encoding = get_declared_encoding(b'<?xml version="1.0" encoding="unknown"?>')
        self.assertEqual(encoding, 'utf-8')

    def test_from_source(self):
        stream = io.BytesIO(b'<a>\n</a>')
        stream.read()
        lines = SourceLineIndex.from_source(stream)
        self.assertListEqual(list(lines), ['<a>', '</a>'])
        self.assertFalse(stream.closed)

        self.assertListEqual(list(SourceLineIndex.from_source(io.StringIO('x\ny'))), ['x', 'y'])
        self.assertListEqual(list(SourceLineIndex.from_source('x\ny')), ['x', 'y'])
        self.assertIs(SourceLineIndex.from_source(lines), lines)

        with self.assertRaises(InvoiceXsdTypeError):
            SourceLineIndex.from_source(10)

    def test_from_path(self):
        path = pathlib.Path(__file__).absolute().parent.joinpath(
            'test_cases/documents/minimum_valid.xml'
        )
        lines = SourceLineIndex.from_source(path)
        self.assertTrue(lines[0].startswith('<?xml'))
        self.assertEqual(lines[-1], '</rsm:CrossIndustryInvoice>')


class TestDiagnosticReport(InvoiceXsdTestCase):

    def test_empty_report(self):
        report = DiagnosticReport()
        self.assertTrue(report.is_conformant)
        self.assertEqual(len(report), 0)
        self.assertEqual(str(report), '')
        self.assertIsNone(report.raise_for_violations())
        self.assertEqual(report, [])

    def test_report_entries(self):
        events = [self.make_event('first'), self.make_event('second', severity=Severity.WARNING)]
        report = DiagnosticReport(['entry 1', 'entry 2'], events)

        self.assertFalse(report.is_conformant)
        self.assertEqual(len(report), 2)
        self.assertEqual(report[1], 'entry 2')
        self.assertListEqual(list(report), ['entry 1', 'entry 2'])
        self.assertEqual(report.events, tuple(events))
        self.assertEqual(report.error_count, 1)
        self.assertEqual(str(report), 'entry 1\n-------------\nentry 2')
        self.assertEqual(report, DiagnosticReport(['entry 1', 'entry 2'], events))
        self.assertEqual(repr(report), 'DiagnosticReport(<2 entries>)')

    def test_mismatching_events(self):
        with self.assertRaises(InvoiceXsdTypeError):
            DiagnosticReport(['entry'], [])

    def test_raise_for_violations(self):
        events = [self.make_event('first'), self.make_event('second')]
        report = DiagnosticReport(['entry 1', 'entry 2'], events)

        with self.assertRaises(DocumentNotConformant) as ctx:
            report.raise_for_violations()
        self.assertEqual(str(ctx.exception), 'entry 1' + ENTRY_SEPARATOR + 'entry 2')
        self.assertEqual(ctx.exception.count, 2)
        self.assertIsInstance(ctx.exception, AssertionError)


class TestDiagnosticFormatter(InvoiceXsdTestCase):

    def setUp(self):
        self.formatter = DiagnosticFormatter()
        self.lines = SourceLineIndex(make_document(20))

    def test_arguments(self):
        self.assertEqual(self.formatter.width, 120)
        self.assertEqual(self.formatter.context_lines, 5)
        self.assertEqual(repr(self.formatter), 'DiagnosticFormatter(width=120, context_lines=5)')

        with self.assertRaises(InvoiceXsdValueError):
            DiagnosticFormatter(width=0)
        with self.assertRaises(InvoiceXsdValueError):
            DiagnosticFormatter(context_lines=-1)
        with self.assertRaises(InvoiceXsdTypeError):
            DiagnosticFormatter(width='120')
        with self.assertRaises(InvoiceXsdTypeError):
            DiagnosticFormatter(context_lines=True)
        with self.assertRaises(InvoiceXsdAttributeError):
            self.formatter.width = 80

    def test_format_event_in_the_middle(self):
        entry = self.formatter.format_event(self.make_event('bad value', 10, 0), self.lines)
        self.assertListEqual(entry.split('\n'), [
            'bad value',
            'LineNumber: 10, LinePosition: 0',
            '6:<line6/>', '7:<line7/>', '8:<line8/>', '9:<line9/>', '10:<line10/>',
            '11:<line11/>', '12:<line12/>', '13:<line13/>', '14:<line14/>', '15:<line15/>',
        ])

    def test_format_event_near_start(self):
        entry = self.formatter.format_event(self.make_event('near start', 1, 3), self.lines)
        self.assertListEqual(entry.split('\n'), [
            'near start',
            'LineNumber: 1, LinePosition: 3',
            '1:<line1/>', '2:<line2/>', '3:<line3/>', '4:<line4/>', '5:<line5/>', '6:<line6/>',
        ])

    def test_format_event_near_end(self):
        entry = self.formatter.format_event(self.make_event('near end', 20), self.lines)
        self.assertListEqual(entry.split('\n')[2:], [
            '16:<line16/>', '17:<line17/>', '18:<line18/>', '19:<line19/>', '20:<line20/>',
        ])

    def test_format_event_beyond_document(self):
        entry = self.formatter.format_event(self.make_event('out', 40), self.lines)
        self.assertListEqual(entry.split('\n'), ['out', 'LineNumber: 40, LinePosition: 0'])

        entry = self.formatter.format_event(self.make_event('empty'), SourceLineIndex(''))
        self.assertListEqual(entry.split('\n'), ['empty', 'LineNumber: 1, LinePosition: 0'])

    def test_format_event_with_custom_window(self):
        formatter = DiagnosticFormatter(width=10, context_lines=1)
        entry = formatter.format_event(self.make_event('a long message', 5), self.lines)
        self.assertListEqual(entry.split('\n'), [
            'a long', 'message', 'LineNumber: 5, LinePosition: 0', '5:<line5/>', '6:<line6/>',
        ])

        formatter = DiagnosticFormatter(context_lines=0)
        entry = formatter.format_event(self.make_event('no context', 5), self.lines)
        self.assertListEqual(entry.split('\n'), ['no context', 'LineNumber: 5, LinePosition: 0'])

    def test_wrapped_message(self):
        message = ' '.join(['invalid'] * 40)
        entry = self.formatter.format_event(self.make_event(message, 2), self.lines)
        self.assertLinesMaxLength(entry, 120)
        self.assertIn('LineNumber: 2, LinePosition: 0', entry)

    def test_format_preserves_order(self):
        events = [self.make_event('third', 3), self.make_event('first', 1),
                  self.make_event('second', 2)]
        report = self.formatter.format(events, make_document(20))
        self.assertEqual(len(report), len(events))
        self.assertListEqual([e.split('\n')[0] for e in report], ['third', 'first', 'second'])
        self.assertEqual(report.events, tuple(events))

    def test_format_without_events(self):
        stream = io.BytesIO(b'<a/>')
        stream.read()
        report = self.formatter.format([], stream)
        self.assertTrue(report.is_conformant)
        self.assertEqual(stream.tell(), 4)

        # A missing document is not read if there are no events
        self.assertTrue(self.formatter.format(iter(()), None).is_conformant)

    def test_format_from_stream(self):
        stream = io.BytesIO(make_document(3).encode('utf-8'))
        stream.read()
        report = self.formatter.format([self.make_event('error', 2)], stream)
        self.assertFalse(stream.closed)
        self.assertEqual(report[0].split('\n')[2:], ['1:<line1/>', '2:<line2/>', '3:<line3/>'])

    def test_warning_events(self):
        event = ViolationEvent(Severity.WARNING, 'XMLSchemaImportWarning: import failed', 2)
        report = self.formatter.format([event], make_document(3))
        self.assertTrue(report[0].startswith('XMLSchemaImportWarning: import failed\n'))
        self.assertEqual(report.error_count, 0)
        self.assertFalse(report.is_conformant)


if __name__ == '__main__':
    run_invoicexsd_tests(TestWrapText, TestSourceLineIndex,
                         TestDiagnosticReport, TestDiagnosticFormatter)
