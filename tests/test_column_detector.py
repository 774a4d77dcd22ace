import unittest

from cte_reconciler.column_detector import cell_at, find_header_row, infer_roles, score_column_shapes
from cte_reconciler.models import SchemaFamily


class InternalRoleTests(unittest.TestCase):
    def test_full_header_maps_every_role(self):
        rows = [
            ["Numero CT-e", "Transporte", "Emissão", "Valor R$", "Tipo"],
            ["3057", "ACME", "26/11/2025", "1.350,00", "ROTA"],
        ]
        header_index, roles = infer_roles(rows, SchemaFamily.INTERNAL)
        self.assertEqual(header_index, 0)
        self.assertEqual(
            roles.as_dict(),
            {"identifier": 0, "label": 1, "date": 2, "value": 3, "type": 4},
        )

    def test_title_rows_before_header_are_skipped(self):
        rows = [
            ["Controle de Fretes Novembro"],
            ["Numero", "Data", "Valor"],
            ["3057", "26/11/2025", "1.350,00"],
        ]
        header_index, roles = infer_roles(rows, "internal")
        self.assertEqual(header_index, 1)
        self.assertEqual(roles.index("identifier"), 0)
        self.assertEqual(roles.index("date"), 1)
        self.assertEqual(roles.index("value"), 2)
        self.assertFalse(roles.is_assigned("type"))

    def test_numeric_cells_never_count_as_header(self):
        self.assertIsNone(find_header_row([[3057, 1350.0]], SchemaFamily.INTERNAL))

    def test_headerless_sheet_uses_positional_roles(self):
        rows = [["3057", "ACME", "26/11/2025", "1.350,00"]]
        header_index, roles = infer_roles(rows, SchemaFamily.INTERNAL)
        self.assertIsNone(header_index)
        self.assertEqual(roles.as_dict(), {"identifier": 0, "label": 1, "date": 2, "value": 3, "type": None})

    def test_narrow_headerless_sheet_stays_unassigned(self):
        header_index, roles = infer_roles([["3057", "1.350,00"]], SchemaFamily.INTERNAL)
        self.assertIsNone(header_index)
        self.assertTrue(all(index is None for index in roles.as_dict().values()))


class ExternalRoleTests(unittest.TestCase):
    def test_full_header_maps_every_role(self):
        rows = [
            ["Nº Documento", "Data Doc", "Valor", "Referência"],
            ["900", "26/11/2025", "1.350,00", "3057"],
        ]
        header_index, roles = infer_roles(rows, SchemaFamily.EXTERNAL)
        self.assertEqual(header_index, 0)
        self.assertEqual(roles.as_dict(), {"value": 2, "reference": 3, "date": 1, "document": 0})

    def test_headerless_export_is_mapped_by_cell_shapes(self):
        rows = [
            ["26/11/2025", "CTE-3057", "R$ 1.350,00"],
            ["27/11/2025", "CTE-3058", "R$ 6.300,00"],
        ]
        header_index, roles = infer_roles(rows, SchemaFamily.EXTERNAL)
        self.assertIsNone(header_index)
        self.assertEqual(roles.index("date"), 0)
        self.assertEqual(roles.index("reference"), 1)
        self.assertEqual(roles.index("value"), 2)
        self.assertIsNone(roles.index("document"))

    def test_missing_value_header_is_filled_from_data_below(self):
        rows = [
            ["Empresa", "Nº Documento", "Data Emissão", "Montante"],
            ["ACME", "900", "26/11/2025", "1.350,00"],
        ]
        header_index, roles = infer_roles(rows, SchemaFamily.EXTERNAL)
        self.assertEqual(header_index, 0)
        self.assertEqual(roles.index("document"), 1)
        self.assertEqual(roles.index("date"), 2)
        self.assertEqual(roles.index("value"), 3)
        self.assertIsNone(roles.index("reference"))

    def test_equal_shape_counts_go_to_lowest_column(self):
        rows = [
            ["26/11/2025", "CTE-1", "CTE-2", "1.350,00"],
            ["27/11/2025", "CTE-3", "CTE-4", "6.300,00"],
        ]
        _, roles = infer_roles(rows, SchemaFamily.EXTERNAL)
        self.assertEqual(roles.index("reference"), 1)

    def test_claimed_columns_are_not_reused(self):
        # Column 0 wins the date role and also holds the most reference-shaped cells.
        rows = [
            ["26/11/2025", "CTE-1", "1.350,00"],
            ["27/11/2025", "CTE-2", "6.300,00"],
            ["X1", "", "3.150,00"],
            ["X2", "", "1.350,00"],
            ["X3", "", "1.350,00"],
        ]
        _, roles = infer_roles(rows, SchemaFamily.EXTERNAL)
        self.assertEqual(roles.index("date"), 0)
        self.assertEqual(roles.index("value"), 2)
        self.assertEqual(roles.index("reference"), 1)

    def test_only_first_five_rows_are_sampled(self):
        rows = [["26/11/2025", "1.350,00", "", "A1" if i == 0 else ""] for i in range(5)]
        rows += [["27/11/2025", "6.300,00", "CTE-9", ""] for _ in range(3)]
        _, roles = infer_roles(rows, SchemaFamily.EXTERNAL)
        self.assertEqual(roles.index("date"), 0)
        self.assertEqual(roles.index("value"), 1)
        self.assertEqual(roles.index("reference"), 3)

    def test_sample_starts_after_header(self):
        rows = [["Empresa", "Nº Documento", "Montante", "Outro"]]
        rows += [["ACME", "900", "1.350,00", ""] for _ in range(5)]
        rows += [["ACME", "901", "6.300,00", "26/11/2025"]]
        header_index, roles = infer_roles(rows, SchemaFamily.EXTERNAL)
        self.assertEqual(header_index, 0)
        self.assertEqual(roles.index("document"), 1)
        self.assertEqual(roles.index("value"), 2)
        self.assertIsNone(roles.index("date"))

    def test_header_row_may_mix_numbers_and_labels(self):
        rows = [[2025, "Valor", "Referência"], [1.5, "1.350,00", "CTE-1"]]
        self.assertEqual(find_header_row(rows, SchemaFamily.EXTERNAL), 0)
        self.assertEqual(find_header_row([[2025, "Numero"]], SchemaFamily.INTERNAL), 0)

    def test_empty_input(self):
        header_index, roles = infer_roles([], SchemaFamily.EXTERNAL)
        self.assertIsNone(header_index)
        self.assertEqual(set(roles.as_dict()), {"value", "reference", "date", "document"})


class HelperTests(unittest.TestCase):
    def test_shape_scores_per_column(self):
        scores = score_column_shapes([["26/11/2025", "1.350,00", "CTE-1"]])
        self.assertEqual(scores[0]["date"], 1)
        self.assertEqual(scores[1]["currency"], 1)
        self.assertEqual(scores[2]["reference"], 1)

    def test_cell_at_reads_empty_for_missing_roles(self):
        row = ["a", "b"]
        self.assertEqual(cell_at(row, 1), "b")
        self.assertEqual(cell_at(row, 5), "")
        self.assertEqual(cell_at(row, None), "")


if __name__ == "__main__":
    unittest.main()
