"""Experiment input validation service."""
import logging
import math
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ripple.models import (
    RawTable, InputTables, InputData, ValidationResult, Preferences,
    PatternRow, LayoutRow, CompoundRow, BarcodeRow, CommonData,
    DilutionPattern, PatternType, Direction, DMSO, PLATE_DIMENSIONS,
    WellBlockError, block_fits, expand_well_block
)
from ripple.models.input_data import (
    PATTERN_HEADERS, LAYOUT_HEADERS, COMPOUND_HEADERS, BARCODE_HEADERS,
    FORM_DMSO_TOLERANCE, FORM_WELL_VOLUME, FORM_BACKFILL, FORM_ALLOWED_ERROR,
    FORM_DEST_REPLICATES, FORM_USE_INTERMEDIATES, FORM_DMSO_NORMALIZATION,
    FORM_EVEN_DEPLETION, FORM_USE_SURVEY
)

logger = logging.getLogger(__name__)

VALID_TYPES = "Control, Treatment, Solvent, Combination, or Unused"
VALID_DIRECTIONS = "LR, RL, TB, or BT"
DIRECTION_CODES = [d.value for d in Direction]
TRUE_STRINGS = {"true", "yes", "y", "1"}
FALSE_STRINGS = {"false", "no", "n", "0"}


class RowOutcome(Enum):
    """How validation proceeds after a row."""
    CONTINUE = "continue"
    SKIP_ROW = "skip_row"
    ABORT_TABLE = "abort_table"


def _plain(value: Any) -> Any:
    # numpy scalars -> python scalars
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (TypeError, ValueError):
            return value
    return value


def is_blank(value: Any) -> bool:
    """True for empty cells (None, NaN or whitespace)."""
    value = _plain(value)
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def cell_to_str(value: Any) -> str:
    """Cell as text; numeric names and barcodes (123 or 123.0) become "123"."""
    value = _plain(value)
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_number(value: Any) -> float:
    """
    Parse a cell as a finite number.

    Raises:
        ValueError: if the cell is not a finite number
    """
    value = _plain(value)
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value}")
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Not a number: {value}")
    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {value}")
    return number


def parse_integer(value: Any) -> int:
    """Parse a cell that must hold an exact integer (2 and 2.0 pass, 2.5 fails)."""
    number = parse_number(value)
    if not number.is_integer():
        raise ValueError(f"Not an integer: {value}")
    return int(number)


def parse_bool(value: Any) -> bool:
    """Parse a form flag."""
    value = _plain(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise ValueError(f"Not a boolean: {value}")


class ValidationService:
    """
    Validates the four input tabs plus the input form.

    Problems are collected as row-numbered messages rather than raised, so
    one run reports everything wrong with a workbook.
    """

    def __init__(self, preferences: Optional[Preferences] = None):
        self.preferences = preferences or Preferences.from_settings()

    def validate(self, tables: InputTables, form_values: Dict[str, Any]) -> ValidationResult:
        """
        Validate input tables and form values.

        Args:
            tables: Patterns, Layout, Compounds and Barcodes tabs
            form_values: Input form values keyed by form label

        Returns:
            ValidationResult with typed input data and error messages
        """
        errors: List[str] = []
        input_data = InputData()

        patterns_ok = self._check_headers(tables.patterns, PATTERN_HEADERS, "Patterns", errors)
        layout_ok = self._check_headers(tables.layout, LAYOUT_HEADERS, "Layout", errors)
        compounds_ok = self._check_headers(tables.compounds, COMPOUND_HEADERS, "Compounds", errors)
        barcodes_ok = self._check_headers(tables.barcodes, BARCODE_HEADERS, "Barcodes", errors)

        # None means pattern references cannot be checked
        pattern_names: Optional[Set[str]] = None
        patterns: Dict[str, DilutionPattern] = {}
        if patterns_ok:
            pattern_names, patterns = self._validate_patterns(tables.patterns.rows, input_data, errors)

        if layout_ok:
            self._validate_layout(tables.layout.rows, pattern_names, patterns, input_data, errors)

        source_barcodes: List[str] = []
        if compounds_ok:
            source_barcodes = self._validate_compounds(tables.compounds.rows, pattern_names, input_data, errors)

        if barcodes_ok:
            self._validate_barcodes(tables.barcodes.rows, source_barcodes, input_data, errors)

        common_data = self.parse_form(form_values)
        if common_data is None:
            errors.append("Error in input form")
        else:
            input_data.common_data = common_data

        logger.info(f"Validation finished with {len(errors)} error(s)")
        return ValidationResult(input_data=input_data, errors=errors)

    def parse_form(self, form_values: Dict[str, Any]) -> Optional[CommonData]:
        """Parse form values into CommonData, None if any value is invalid."""
        try:
            return CommonData(
                max_dmso_fraction=parse_number(form_values.get(FORM_DMSO_TOLERANCE)),
                final_assay_volume=parse_number(form_values.get(FORM_WELL_VOLUME)),
                intermediate_backfill_volume=parse_number(form_values.get(FORM_BACKFILL)),
                allowable_error=parse_number(form_values.get(FORM_ALLOWED_ERROR)),
                dest_replicates=parse_integer(form_values.get(FORM_DEST_REPLICATES)),
                create_int_concs=parse_bool(form_values.get(FORM_USE_INTERMEDIATES)),
                dmso_normalization=parse_bool(form_values.get(FORM_DMSO_NORMALIZATION)),
                even_depletion=parse_bool(form_values.get(FORM_EVEN_DEPLETION, False)),
                update_from_survey_volumes=parse_bool(form_values.get(FORM_USE_SURVEY, False)),
            )
        except ValueError as e:
            logger.debug(f"Input form rejected: {e}")
            return None

    def _check_headers(self, table: RawTable, expected: List[str], name: str, errors: List[str]) -> bool:
        headers = [cell_to_str(h) for h in table.headers]
        if headers != expected:
            errors.append(f"Error in {name} headers")
            return False
        return True

    def _validate_patterns(self, rows: List[Dict[str, Any]], input_data: InputData, errors: List[str]):
        names: Set[str] = set()
        patterns: Dict[str, DilutionPattern] = {}

        for idx, row in enumerate(rows):
            line = idx + 2
            row_errors: List[str] = []
            name = cell_to_str(row.get("Pattern"))
            type_text = cell_to_str(row.get("Type"))
            direction_text = cell_to_str(row.get("Direction"))

            duplicate = name in names
            if duplicate:
                row_errors.append(f"{name} on line {line} is already present earlier")
            names.add(name)

            try:
                pattern_type: Optional[PatternType] = PatternType(type_text)
            except ValueError:
                pattern_type = None
                row_errors.append(
                    f"{type_text} on line {line} of Patterns tab is not valid (must be {VALID_TYPES})"
                )

            # Solvent rows carry no dilution structure
            structured = pattern_type != PatternType.SOLVENT
            directions: List[Direction] = []
            replicates = 0
            concentrations: List[float] = []

            if structured:
                directions = self._check_direction(direction_text, pattern_type, line, row_errors)
                try:
                    replicates = parse_integer(row.get("Replicates"))
                    if replicates < 0:
                        raise ValueError("Negative replicates")
                except ValueError:
                    row_errors.append(
                        f"{cell_to_str(row.get('Replicates'))} on line {line} of Patterns tab is not a valid integer"
                    )
            else:
                try:
                    replicates = max(parse_integer(row.get("Replicates")), 0)
                except ValueError:
                    replicates = 0

            for i in range(1, 21):
                key = f"Conc{i}"
                value = row.get(key)
                if is_blank(value):
                    continue
                try:
                    concentrations.append(parse_number(value))
                except ValueError:
                    if structured:
                        row_errors.append(f"{key} on line {line} of Patterns tab is not a valid number")

            if pattern_type is not None and not duplicate:
                patterns[name] = DilutionPattern(
                    name=name,
                    type=pattern_type,
                    direction=directions,
                    replicates=replicates,
                    concentrations=concentrations
                )

            if not row_errors:
                input_data.patterns.append(PatternRow(
                    pattern=name,
                    type=pattern_type,
                    direction=direction_text,
                    replicates=replicates,
                    concentrations=concentrations
                ))
            errors.extend(row_errors)

        return names, patterns

    def _check_direction(
        self,
        direction_text: str,
        pattern_type: Optional[PatternType],
        line: int,
        row_errors: List[str]
    ) -> List[Direction]:
        if pattern_type == PatternType.COMBINATION:
            axes = direction_text.split("-")
            if len(axes) < 2:
                row_errors.append(
                    f"{direction_text} on line {line} of Patterns tab is not valid "
                    f"(only {len(axes)} included, need at least two)"
                )
            valid = []
            for axis in axes:
                if axis in DIRECTION_CODES:
                    valid.append(Direction(axis))
                else:
                    row_errors.append(
                        f"{direction_text} on line {line} of Patterns tab is not valid "
                        f"({axis} must be {VALID_DIRECTIONS})"
                    )
            return valid

        if direction_text not in DIRECTION_CODES:
            row_errors.append(
                f"{direction_text} on line {line} of Patterns tab is not valid (must be {VALID_DIRECTIONS})"
            )
            return []
        return [Direction(direction_text)]

    def _validate_layout(
        self,
        rows: List[Dict[str, Any]],
        pattern_names: Optional[Set[str]],
        patterns: Dict[str, DilutionPattern],
        input_data: InputData,
        errors: List[str]
    ) -> None:
        plate_rows, plate_cols = PLATE_DIMENSIONS[self.preferences.destination_plate_size.value]

        for idx, row in enumerate(rows):
            line = idx + 2
            name = cell_to_str(row.get("Pattern"))
            block = cell_to_str(row.get("Well Block"))

            if pattern_names is not None and name not in pattern_names:
                errors.append(f"{name} on line {line} of Layout tab not present on Patterns tab")
                continue

            try:
                fits = block_fits(block, plate_rows, plate_cols)
            except WellBlockError:
                errors.append(f"Area {block} on line {line} of Layout tab is not valid")
                continue
            if not fits:
                errors.append(
                    f"Well block in line {line} of Layout tab does not fit on destination plate "
                    f"of size {plate_rows * plate_cols}"
                )
                continue

            # Each block of a combination pattern is checked on its own
            well_ids = expand_well_block(block, plate_rows, plate_cols)
            pattern = patterns.get(name)
            if pattern is not None and pattern.needs_layout_match and len(well_ids) != pattern.well_count:
                errors.append(
                    f"Well block size in line {line} of Layout tab does not match with number of "
                    f"concentrations and replicates on Patterns tab"
                )
                continue

            input_data.layout.append(LayoutRow(pattern=name, well_block=block))

    def _validate_compounds(
        self,
        rows: List[Dict[str, Any]],
        pattern_names: Optional[Set[str]],
        input_data: InputData,
        errors: List[str]
    ) -> List[str]:
        source_barcodes: List[str] = []
        used_wells: Dict[str, Set[str]] = {}

        for idx, row in enumerate(rows):
            outcome = self._validate_compound_row(
                idx + 2, row, pattern_names, used_wells, source_barcodes, input_data, errors
            )
            if outcome == RowOutcome.ABORT_TABLE:
                break

        return source_barcodes

    def _validate_compound_row(
        self,
        line: int,
        row: Dict[str, Any],
        pattern_names: Optional[Set[str]],
        used_wells: Dict[str, Set[str]],
        source_barcodes: List[str],
        input_data: InputData,
        errors: List[str]
    ) -> RowOutcome:
        compound_id = cell_to_str(row.get("Compound ID"))
        if not compound_id:
            errors.append(f"Line {line} of Compounds tab lacks a compound ID")
            return RowOutcome.ABORT_TABLE

        barcode = cell_to_str(row.get("Source Barcode"))
        if not barcode:
            errors.append(f"{compound_id} on line {line} of Compounds tab lacks a source plate barcode")
            return RowOutcome.SKIP_ROW
        if barcode not in used_wells:
            source_barcodes.append(barcode)
            used_wells[barcode] = set()

        row_errors: List[str] = []
        plate_rows, plate_cols = PLATE_DIMENSIONS[self.preferences.source_plate_size.value]
        block = cell_to_str(row.get("Well ID"))
        try:
            if block_fits(block, plate_rows, plate_cols):
                used = used_wells[barcode]
                for well_id in expand_well_block(block, plate_rows, plate_cols):
                    if well_id in used:
                        row_errors.append(
                            f"{compound_id} on line {line} of Compounds tab is listed in well "
                            f"{well_id} which already has contents"
                        )
                    else:
                        used.add(well_id)
            else:
                row_errors.append(
                    f"Well block in line {line} of Compounds tab does not fit on source plate "
                    f"of size {plate_rows * plate_cols}"
                )
        except WellBlockError:
            row_errors.append(f"{compound_id} on line {line} of Compounds tab has an invalid source location")

        volume = self._positive_number(row.get("Volume (µL)"), "Volume", compound_id, line, row_errors)

        concentration = None
        pattern_text = cell_to_str(row.get("Pattern"))
        if compound_id != DMSO:
            concentration = self._positive_number(
                row.get("Concentration (µM)"), "Concentration", compound_id, line, row_errors
            )
            if pattern_names is not None:
                for pattern_name in [p.strip() for p in pattern_text.split(";") if p.strip()]:
                    if pattern_name not in pattern_names:
                        row_errors.append(
                            f"{pattern_name} on line {line} of Compounds tab not present on Patterns tab"
                        )

        if not row_errors:
            input_data.compounds.append(CompoundRow(
                source_barcode=barcode,
                well_id=block,
                concentration=concentration,
                compound_id=compound_id,
                volume=volume,
                pattern=pattern_text
            ))
        errors.extend(row_errors)
        return RowOutcome.CONTINUE

    def _positive_number(
        self,
        value: Any,
        label: str,
        compound_id: str,
        line: int,
        row_errors: List[str]
    ) -> Optional[float]:
        prefix = f"{compound_id} on line {line} of Compounds tab"
        if is_blank(value):
            row_errors.append(f"{prefix} lacks a {label}")
            return None
        try:
            number = parse_number(value)
        except ValueError:
            row_errors.append(f"{prefix} has a non-number {label}")
            return None
        if number <= 0:
            row_errors.append(f"{prefix} has a negative {label}")
            return None
        return number

    def _validate_barcodes(
        self,
        rows: List[Dict[str, Any]],
        source_barcodes: List[str],
        input_data: InputData,
        errors: List[str]
    ) -> None:
        sources = set(source_barcodes)
        seen_intermediate: Set[str] = set()
        seen_destination: Set[str] = set()

        for idx, row in enumerate(rows):
            line = idx + 2
            row_errors: List[str] = []
            intermediate = cell_to_str(row.get("Intermediate Plate Barcodes"))
            destination = cell_to_str(row.get("Destination Plate Barcodes"))

            if intermediate and intermediate in sources:
                row_errors.append(
                    f"Line {line} of Barcodes tab has an Intermediate barcode listed as a Source on the Compounds tab"
                )
            if destination and destination in sources:
                row_errors.append(
                    f"Line {line} of Barcodes tab has a Destination barcode listed as a Source on the Compounds tab"
                )
            if intermediate:
                if intermediate in seen_intermediate:
                    row_errors.append(f"Line {line} of Barcodes tab has a repeated Intermediate barcode")
                seen_intermediate.add(intermediate)
            if destination:
                if destination in seen_destination:
                    row_errors.append(f"Line {line} of Barcodes tab has a repeated Destination barcode")
                seen_destination.add(destination)

            if not row_errors:
                input_data.barcodes.append(BarcodeRow(
                    intermediate=intermediate or None,
                    destination=destination or None
                ))
            errors.extend(row_errors)
