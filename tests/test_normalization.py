import unittest
from datetime import date, datetime

from cte_reconciler.normalization import (
    cell_text,
    looks_like_currency,
    looks_like_date,
    looks_like_reference,
    normalize_identifier,
    parse_currency,
    parse_date,
)


class ParseCurrencyTests(unittest.TestCase):
    def test_brazilian_and_plain_formats_agree(self):
        self.assertEqual(parse_currency("1.234,56"), 1234.56)
        self.assertEqual(parse_currency("1234.56"), 1234.56)

    def test_currency_symbol_and_spaces_are_ignored(self):
        self.assertEqual(parse_currency("R$ 1.350,00"), 1350.0)
        self.assertEqual(parse_currency(" R$6.300,00 "), 6300.0)

    def test_numbers_pass_through(self):
        self.assertEqual(parse_currency(1350), 1350.0)
        self.assertEqual(parse_currency(99.5), 99.5)

    def test_negative_values_keep_their_sign(self):
        self.assertEqual(parse_currency("-50,00"), -50.0)

    def test_unparseable_text_gives_zero(self):
        self.assertEqual(parse_currency(""), 0.0)
        self.assertEqual(parse_currency("abc"), 0.0)
        self.assertEqual(parse_currency(float("nan")), 0.0)


class NormalizeIdentifierTests(unittest.TestCase):
    def test_common_identifier_forms_reduce_to_the_same_digits(self):
        for raw in ("3057-1", "03057", "A-3057", "3057/2", 3057, 3057.0):
            with self.subTest(raw=raw):
                self.assertEqual(normalize_identifier(raw).normalized, "3057")

    def test_raw_text_is_kept_for_display(self):
        identifier = normalize_identifier(" 3057-1 ")
        self.assertEqual(identifier.raw, "3057-1")

    def test_prefixed_identifier_uses_first_digit_run(self):
        self.assertEqual(normalize_identifier("CT-e 4410/1").normalized, "4410")

    def test_empty_and_digitless_cells_normalize_to_empty(self):
        self.assertEqual(normalize_identifier("").normalized, "")
        self.assertEqual(normalize_identifier("TOTAL").normalized, "")


class ParseDateTests(unittest.TestCase):
    def test_verbose_and_slash_forms(self):
        self.assertEqual(parse_date("26 de nov. de 2025"), "2025-11-26")
        self.assertEqual(parse_date("26/11/2025"), "2025-11-26")
        self.assertEqual(parse_date("5 de março de 2025"), "2025-03-05")

    def test_two_digit_year_is_read_as_this_century(self):
        self.assertEqual(parse_date("26/11/25"), "2025-11-26")

    def test_iso_text_and_date_objects(self):
        self.assertEqual(parse_date("2025-11-26"), "2025-11-26")
        self.assertEqual(parse_date(datetime(2025, 11, 26, 14, 30)), "2025-11-26")
        self.assertEqual(parse_date(date(2025, 11, 26)), "2025-11-26")

    def test_spreadsheet_serial_numbers(self):
        self.assertEqual(parse_date(45987), "2025-11-26")
        self.assertEqual(parse_date("45987"), "2025-11-26")
        self.assertEqual(parse_date(999), "")

    def test_invalid_dates_give_empty_sentinel(self):
        self.assertEqual(parse_date("garbage"), "")
        self.assertEqual(parse_date("31/02/2025"), "")
        self.assertEqual(parse_date("2025-13-01"), "")
        self.assertEqual(parse_date(""), "")


class CellShapeTests(unittest.TestCase):
    def test_cell_text_drops_integral_float_suffix(self):
        self.assertEqual(cell_text(3057.0), "3057")
        self.assertEqual(cell_text(12.5), "12.5")
        self.assertEqual(cell_text(None), "")

    def test_shapes(self):
        self.assertTrue(looks_like_date("26/11/2025"))
        self.assertTrue(looks_like_currency("1.350,00"))
        self.assertFalse(looks_like_currency("26/11/2025"))
        self.assertTrue(looks_like_reference("CTE-3057"))
        self.assertFalse(looks_like_reference("R$ 100"))
        self.assertFalse(looks_like_reference("1.350,00"))
        self.assertFalse(looks_like_reference("26/11/2025"))


if __name__ == "__main__":
    unittest.main()
