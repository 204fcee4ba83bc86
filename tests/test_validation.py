"""Tests for input validation."""
import pytest

from ripple.services import ValidationService
from ripple.services.validation_service import parse_bool, parse_integer, cell_to_str
from ripple.models import RawTable, PatternType
from ripple.models.input_data import FORM_DMSO_TOLERANCE, FORM_DEST_REPLICATES
from tests.conftest import pattern_row, compound_row


@pytest.fixture
def validator(preferences):
    """Validator with 384-well plates."""
    return ValidationService(preferences)


class TestCellParsing:
    """Test cases for cell helpers."""

    def test_cell_to_str(self):
        """Test numeric cells read as plain text."""
        assert cell_to_str(123.0) == "123"
        assert cell_to_str("  S1 ") == "S1"
        assert cell_to_str(None) == ""
        assert cell_to_str(float("nan")) == ""

    def test_parse_integer(self):
        """Test integers and integral floats pass."""
        assert parse_integer("2") == 2
        assert parse_integer(2.0) == 2
        with pytest.raises(ValueError):
            parse_integer(2.5)

    def test_parse_bool(self):
        """Test boolean form flags."""
        assert parse_bool(True) is True
        assert parse_bool("yes") is True
        assert parse_bool("FALSE") is False
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestValidationService:
    """Test cases for ValidationService."""

    def test_valid_input(self, validator, valid_tables, form_values):
        """Test a clean workbook produces typed data and no errors."""
        result = validator.validate(valid_tables, form_values)

        assert result.valid, result.errors
        data = result.input_data
        assert [p.pattern for p in data.patterns] == ["Treatment1", "Control1", "Solvent1"]
        assert data.patterns[0].type == PatternType.TREATMENT
        assert data.patterns[0].concentrations == [10, 3, 1, 0.3, 0.1]
        assert len(data.layout) == 3
        assert [c.compound_id for c in data.compounds] == ["CPD1", "DMSO", "CTRL1"]
        assert data.compounds[1].concentration is None
        assert data.intermediate_barcodes() == ["IntPlate_1"]
        assert data.destination_barcodes() == ["DestPlate_1"]
        assert data.common_data.final_assay_volume == 25.0

    def test_validation_is_repeatable(self, validator, valid_tables, form_values):
        """Test validating twice gives the same result."""
        first = validator.validate(valid_tables, form_values)
        second = validator.validate(valid_tables, form_values)
        assert first.errors == second.errors
        assert first.input_data == second.input_data

    def test_errors_are_repeatable(self, validator, valid_tables, form_values):
        """Test validating bad input twice gives identical error lists."""
        valid_tables.patterns.rows.append(pattern_row("Treatment1", "Combination", "LR-UP", "x", ["y"]))
        valid_tables.layout.rows[0]["Well Block"] = "A01:A05"
        valid_tables.compounds.rows.append(compound_row("S1", "A01", -1, "CPD9", "lots", "Nope"))
        form_values[FORM_DMSO_TOLERANCE] = "lots"

        first = validator.validate(valid_tables, form_values)
        second = validator.validate(valid_tables, form_values)

        assert len(first.errors) > 5
        assert first.errors == second.errors
        assert first.input_data == second.input_data

    def test_duplicate_pattern(self, validator, valid_tables, form_values):
        """Test a repeated pattern name is reported on its second line."""
        valid_tables.patterns.rows.append(pattern_row("Solvent2", "Solvent"))
        valid_tables.patterns.rows.append(pattern_row("Treatment1", "Treatment", "LR", 2, [10, 3, 1, 0.3, 0.1]))

        result = validator.validate(valid_tables, form_values)

        assert "Treatment1 on line 6 is already present earlier" in result.errors
        assert len([p for p in result.input_data.patterns if p.pattern == "Treatment1"]) == 1

    def test_layout_count_mismatch(self, validator, valid_tables, form_values):
        """Test a block smaller than concentrations x replicates."""
        valid_tables.layout.rows[0]["Well Block"] = "A01:A05"

        result = validator.validate(valid_tables, form_values)

        assert result.errors == [
            "Well block size in line 2 of Layout tab does not match with number of "
            "concentrations and replicates on Patterns tab"
        ]

    def test_bad_headers(self, validator, valid_tables, form_values):
        """Test header mismatch stops validation of that table only."""
        valid_tables.patterns.headers[2] = "Axis"
        valid_tables.barcodes = RawTable(headers=["Barcodes"], rows=[])

        result = validator.validate(valid_tables, form_values)

        assert "Error in Patterns headers" in result.errors
        assert "Error in Barcodes headers" in result.errors
        assert result.input_data.patterns == []
        assert len(result.input_data.compounds) == 3

    def test_invalid_form(self, validator, valid_tables, form_values):
        """Test any unparseable form value gives one form error."""
        form_values[FORM_DMSO_TOLERANCE] = "lots"
        form_values[FORM_DEST_REPLICATES] = 1.5

        result = validator.validate(valid_tables, form_values)

        assert result.errors == ["Error in input form"]
        assert result.input_data.common_data is None

    def test_invalid_type_and_direction(self, validator, valid_tables, form_values):
        """Test type and direction messages."""
        valid_tables.patterns.rows[0]["Direction"] = "XY"
        valid_tables.patterns.rows[1]["Type"] = "Dose"

        result = validator.validate(valid_tables, form_values)

        assert "XY on line 2 of Patterns tab is not valid (must be LR, RL, TB, or BT)" in result.errors
        assert (
            "Dose on line 3 of Patterns tab is not valid "
            "(must be Control, Treatment, Solvent, Combination, or Unused)"
        ) in result.errors

    def test_combination_needs_two_axes(self, validator, valid_tables, form_values):
        """Test a combination with one axis."""
        valid_tables.patterns.rows[0]["Type"] = "Combination"

        result = validator.validate(valid_tables, form_values)

        assert "LR on line 2 of Patterns tab is not valid (only 1 included, need at least two)" in result.errors

    def test_combination_bad_axis(self, validator, valid_tables, form_values):
        """Test each combination axis is checked."""
        valid_tables.patterns.rows[0]["Type"] = "Combination"
        valid_tables.patterns.rows[0]["Direction"] = "LR-UP"

        result = validator.validate(valid_tables, form_values)

        assert "LR-UP on line 2 of Patterns tab is not valid (UP must be LR, RL, TB, or BT)" in result.errors

    def test_invalid_replicates_and_concentration(self, validator, valid_tables, form_values):
        """Test replicate and concentration parsing."""
        valid_tables.patterns.rows[0]["Replicates"] = "two"
        valid_tables.patterns.rows[0]["Conc3"] = "high"

        result = validator.validate(valid_tables, form_values)

        assert "two on line 2 of Patterns tab is not a valid integer" in result.errors
        assert "Conc3 on line 2 of Patterns tab is not a valid number" in result.errors

    def test_solvent_skips_structure_checks(self, validator, valid_tables, form_values):
        """Test Solvent patterns need no direction, replicates or concentrations."""
        valid_tables.patterns.rows[2].update({"Direction": "sideways", "Replicates": "abc", "Conc1": "zz"})

        result = validator.validate(valid_tables, form_values)

        assert result.valid, result.errors

    def test_unused_structure_checked(self, validator, valid_tables, form_values):
        """Test Unused patterns still need a direction, replicates and numeric concentrations."""
        valid_tables.patterns.rows.append(pattern_row("Unused1", "Unused", "XX", "abc", ["zz"]))

        result = validator.validate(valid_tables, form_values)

        assert result.errors == [
            "XX on line 5 of Patterns tab is not valid (must be LR, RL, TB, or BT)",
            "abc on line 5 of Patterns tab is not a valid integer",
            "Conc1 on line 5 of Patterns tab is not a valid number",
        ]

    def test_unused_block_not_size_matched(self, validator, valid_tables, form_values):
        """Test Unused layout blocks may cover any number of wells."""
        valid_tables.patterns.rows.append(pattern_row("Unused1", "Unused", "LR", 1, [1]))
        valid_tables.layout.rows.append({"Pattern": "Unused1", "Well Block": "H01:H12"})

        result = validator.validate(valid_tables, form_values)

        assert result.valid, result.errors

    def test_layout_errors(self, validator, valid_tables, form_values):
        """Test unknown patterns and bad blocks on the Layout tab."""
        valid_tables.layout.rows = [
            {"Pattern": "Missing", "Well Block": "A01"},
            {"Pattern": "Solvent1", "Well Block": "A01-B02"},
            {"Pattern": "Solvent1", "Well Block": "Q01:Q24"},
        ]

        result = validator.validate(valid_tables, form_values)

        assert result.errors == [
            "Missing on line 2 of Layout tab not present on Patterns tab",
            "Area A01-B02 on line 3 of Layout tab is not valid",
            "Well block in line 4 of Layout tab does not fit on destination plate of size 384",
        ]

    def test_missing_compound_id_aborts(self, validator, valid_tables, form_values):
        """Test rows after a missing compound id are not checked."""
        valid_tables.compounds.rows.insert(1, compound_row("S1", "B01", 10, None, 5))
        valid_tables.compounds.rows.append(compound_row("S1", "A01", -1, "CPD9", 5))

        result = validator.validate(valid_tables, form_values)

        assert result.errors == ["Line 3 of Compounds tab lacks a compound ID"]
        assert [c.compound_id for c in result.input_data.compounds] == ["CPD1"]

    def test_compound_errors(self, validator, valid_tables, form_values):
        """Test per-row compound messages."""
        valid_tables.compounds.rows += [
            compound_row(None, "B01", 10, "CPD2", 5),
            compound_row("S1", "A01", 10, "CPD3", 5),
            compound_row("S1", "B02", 10, "CPD4", -5),
            compound_row("S1", "B03", "ten", "CPD5", 5),
            compound_row("S1", "B04", 10, "CPD6", None, "Nope"),
            compound_row("S1", "Q30", 10, "CPD7", 5),
        ]

        result = validator.validate(valid_tables, form_values)

        assert result.errors == [
            "CPD2 on line 5 of Compounds tab lacks a source plate barcode",
            "CPD3 on line 6 of Compounds tab is listed in well A01 which already has contents",
            "CPD4 on line 7 of Compounds tab has a negative Volume",
            "CPD5 on line 8 of Compounds tab has a non-number Concentration",
            "CPD6 on line 9 of Compounds tab lacks a Volume",
            "Nope on line 9 of Compounds tab not present on Patterns tab",
            "Well block in line 10 of Compounds tab does not fit on source plate of size 384",
        ]

    def test_dmso_needs_no_concentration(self, validator, valid_tables, form_values):
        """Test DMSO rows skip the concentration check."""
        valid_tables.compounds.rows[1]["Concentration (µM)"] = "n/a"

        result = validator.validate(valid_tables, form_values)

        assert result.valid, result.errors

    def test_barcode_errors(self, validator, valid_tables, form_values):
        """Test barcode collisions with sources and repeats."""
        valid_tables.barcodes.rows += [
            {"Intermediate Plate Barcodes": "S1", "Destination Plate Barcodes": "DestPlate_2"},
            {"Intermediate Plate Barcodes": "IntPlate_2", "Destination Plate Barcodes": "DestPlate_1"},
            {"Intermediate Plate Barcodes": None, "Destination Plate Barcodes": "DestPlate_3"},
        ]

        result = validator.validate(valid_tables, form_values)

        assert result.errors == [
            "Line 3 of Barcodes tab has an Intermediate barcode listed as a Source on the Compounds tab",
            "Line 4 of Barcodes tab has a repeated Destination barcode",
        ]
        assert result.input_data.destination_barcodes() == ["DestPlate_1", "DestPlate_3"]
