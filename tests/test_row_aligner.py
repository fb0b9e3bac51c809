"""
Tests de alineación de filas entre dos versiones de una tabla
"""
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from matcher.field_matcher import FieldMatcher
from matcher.row_aligner import AlignmentType, align_rows, calculate_row_similarity, is_key_column
from parsers.document_parser import FieldValue, TableRow


def row(row_id, **columns):
    return TableRow(row_id, {name.replace("_", " "): FieldValue(value) for name, value in columns.items()})


class TestRowAligner(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.matcher = FieldMatcher()
        cls.forms = [
            row(1, Form_Number="CG 00 01", Description="Commercial General Liability Coverage Form"),
            row(2, Form_Number="IL 00 17", Description="Common Policy Conditions"),
            row(3, Form_Number="CG 21 47", Description="Employment-Related Practices Exclusion"),
        ]

    def assertEachRowOnce(self, alignments, table1, table2):
        left = [a.row1 for a in alignments if a.row1 is not None]
        right = [a.row2 for a in alignments if a.row2 is not None]
        self.assertEqual(sorted(id(r) for r in left), sorted(id(r) for r in table1))
        self.assertEqual(sorted(id(r) for r in right), sorted(id(r) for r in table2))

    def test_key_columns(self):
        self.assertTrue(is_key_column("Form Number"))
        self.assertTrue(is_key_column("Coverage Description"))
        self.assertFalse(is_key_column("Limit"))

    def test_row_similarity_weighted_by_key_columns(self):
        r1 = row(1, Coverage="Flood", Limit="$1,000,000")
        r2 = row(1, Coverage="Flood", Limit="$2,000,000")
        self.assertAlmostEqual(calculate_row_similarity(r1, r2, self.matcher), 2 / 3)

    def test_row_similarity_ambiguous_column_adds_partial_weight(self):
        r1 = row(1, Coverage="CG 2010", Limit="$1,000,000")
        r2 = row(1, Coverage="CG 2026", Limit="$1,000,000")
        self.assertAlmostEqual(calculate_row_similarity(r1, r2, self.matcher), (2 * 5 / 7 + 1) / 3)

    def test_row_similarity_skips_columns_blank_in_both_rows(self):
        r1 = row(1, Coverage="Flood", Notes="", Remarks="", Location="")
        r2 = row(2, Coverage="Earthquake", Notes="", Remarks="", Location="")
        self.assertEqual(calculate_row_similarity(r1, r2, self.matcher), 0.0)
        alignments = align_rows([r1], [r2], self.matcher)
        self.assertEqual(alignments[0].match_type, AlignmentType.POSITION)

    def test_blank_rows_still_align_with_themselves(self):
        blank = [row(1, Notes="", Remarks=""), row(2, Notes="", Remarks="")]
        self.assertEqual(calculate_row_similarity(blank[0], blank[1], self.matcher), 1.0)
        alignments = align_rows(blank, blank, self.matcher)
        self.assertTrue(all(a.match_type == AlignmentType.CONTENT for a in alignments))
        self.assertTrue(all(a.row1 is a.row2 for a in alignments))

    def test_row_similarity_without_common_columns(self):
        self.assertEqual(calculate_row_similarity(row(1, Limit="$1"), row(1, Premium="$1"), self.matcher), 0.0)

    def test_identical_tables_align_by_content(self):
        alignments = align_rows(self.forms, self.forms, self.matcher)
        self.assertEqual(len(alignments), 3)
        for alignment in alignments:
            self.assertEqual(alignment.match_type, AlignmentType.CONTENT)
            self.assertIs(alignment.row1, alignment.row2)
            self.assertEqual(alignment.similarity, 1.0)

    def test_reordered_rows(self):
        reordered = [self.forms[2], self.forms[0], self.forms[1]]
        alignments = align_rows(self.forms, reordered, self.matcher)
        self.assertTrue(all(a.match_type == AlignmentType.CONTENT for a in alignments))
        self.assertTrue(all(a.row1 is a.row2 for a in alignments))

    def test_added_row_is_unmatched(self):
        alignments = align_rows(self.forms[:2], self.forms, self.matcher)
        self.assertEachRowOnce(alignments, self.forms[:2], self.forms)
        unmatched = [a for a in alignments if a.match_type == AlignmentType.UNMATCHED]
        self.assertEqual(len(unmatched), 1)
        self.assertIsNone(unmatched[0].row1)
        self.assertIs(unmatched[0].row2, self.forms[2])

    def test_dissimilar_rows_pair_by_position(self):
        table1 = [row(1, Coverage="Flood"), row(2, Coverage="Earthquake")]
        table2 = [row(1, Coverage="Windstorm"), row(2, Coverage="Terrorism"), row(3, Coverage="Cyber")]
        alignments = align_rows(table1, table2, self.matcher)
        self.assertEachRowOnce(alignments, table1, table2)
        kinds = [a.match_type for a in alignments]
        self.assertEqual(kinds, [AlignmentType.POSITION, AlignmentType.POSITION, AlignmentType.UNMATCHED])
        self.assertIs(alignments[0].row1, table1[0])
        self.assertIs(alignments[0].row2, table2[0])

    def test_empty_tables(self):
        self.assertEqual(align_rows([], [], self.matcher), [])
        alignments = align_rows(self.forms, [], self.matcher)
        self.assertEqual([a.match_type for a in alignments], [AlignmentType.UNMATCHED] * 3)
