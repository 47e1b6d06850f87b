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
from lxml import etree

from invoicexsd.lines import decode_document, iter_start_tag_lines, map_start_tag_lines
from invoicexsd.testing import InvoiceXsdTestCase, run_invoicexsd_tests


class TestStartTagLines(InvoiceXsdTestCase):

    def test_single_line_tags(self):
        self.assertListEqual(list(iter_start_tag_lines('<a><b/><c>text</c></a>')), [1, 1, 1])
        self.assertListEqual(list(iter_start_tag_lines('<a>\n  <b/>\n  <c/>\n</a>')), [1, 2, 3])

    def test_tags_on_more_lines(self):
        text = '<?xml version="1.0"?>\n<a\n  x="1"\n  y="2">\n  <b\n/>\n</a>\n'
        self.assertListEqual(list(iter_start_tag_lines(text)), [2, 5])

    def test_line_breaks(self):
        self.assertListEqual(list(iter_start_tag_lines('<a>\r\n<b/>\r<c/>\n<d/></a>')),
                             [1, 2, 3, 4])

    def test_skipped_markup(self):
        text = '<?xml version="1.0"?>\n' \
               '<!DOCTYPE a [\n  <!ENTITY e "<z/>">\n]>\n' \
               '<!-- <x>\n -->\n' \
               '<a><![CDATA[\n<y>]]>\n' \
               '<?pi <w> ?><b/></a>'
        self.assertListEqual(list(iter_start_tag_lines(text)), [7, 9])

    def test_decode_document(self):
        data = '<?xml version="1.0" encoding="iso-8859-1"?>\n<a>é</a>'.encode('iso-8859-1')
        self.assertEqual(decode_document(data), data.decode('iso-8859-1'))
        self.assertEqual(decode_document(b'<a>\xff</a>'), '<a>\ufffd</a>')

    def test_map_start_tag_lines(self):
        data = b'<a\n  x="1">\n  <!-- comment -->\n  <b\n  /><c/>\n</a>'
        root = etree.fromstring(data)
        lines = map_start_tag_lines(root, data)

        self.assertEqual(len(lines), 3)
        self.assertEqual(lines[root], 1)
        self.assertEqual(lines[root[1]], 4)
        self.assertEqual(lines[root[2]], 5)
        self.assertEqual(root.sourceline, 2)

    def test_elements_not_matching_start_tags(self):
        data = b'<!DOCTYPE a [<!ENTITY e "<b/>">]>\n<a>&e;</a>'
        root = etree.fromstring(data)
        self.assertEqual(len([e for e in root.iter() if isinstance(e.tag, str)]), 2)

        with self.assertLogs('invoicexsd', level='DEBUG'):
            self.assertDictEqual(map_start_tag_lines(root, data), {})


if __name__ == '__main__':
    run_invoicexsd_tests(TestStartTagLines)
