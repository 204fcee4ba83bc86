"""Shared fixtures."""
import pytest

from ripple.models import (
    RawTable, InputTables, Plate, PlateRole, PlateSize, Preferences,
    default_form_values
)
from ripple.models.input_data import (
    PATTERN_HEADERS, LAYOUT_HEADERS, COMPOUND_HEADERS, BARCODE_HEADERS
)


def pattern_row(name, type_, direction="", replicates=None, concentrations=()):
    """Build a Patterns tab row."""
    row = {"Pattern": name, "Type": type_, "Direction": direction, "Replicates": replicates}
    for i, value in enumerate(concentrations):
        row[f"Conc{i + 1}"] = value
    return row


def compound_row(barcode, well_id, concentration, compound_id, volume, pattern=""):
    """Build a Compounds tab row."""
    return {
        "Source Barcode": barcode,
        "Well ID": well_id,
        "Concentration (µM)": concentration,
        "Compound ID": compound_id,
        "Volume (µL)": volume,
        "Pattern": pattern,
    }


@pytest.fixture
def valid_tables():
    """A small experiment that passes validation."""
    return InputTables(
        patterns=RawTable(headers=list(PATTERN_HEADERS), rows=[
            pattern_row("Treatment1", "Treatment", "LR", 2, [10, 3, 1, 0.3, 0.1]),
            pattern_row("Control1", "Control", "LR", 2, [10]),
            pattern_row("Solvent1", "Solvent"),
        ]),
        layout=RawTable(headers=list(LAYOUT_HEADERS), rows=[
            {"Pattern": "Treatment1", "Well Block": "A01:A10"},
            {"Pattern": "Control1", "Well Block": "B01:B02"},
            {"Pattern": "Solvent1", "Well Block": "P01:P24"},
        ]),
        compounds=RawTable(headers=list(COMPOUND_HEADERS), rows=[
            compound_row("S1", "A01", 10000, "CPD1", 50, "Treatment1"),
            compound_row("S1", "A02", None, "DMSO", 50),
            compound_row("S1", "A03", 5000, "CTRL1", 20, "Control1"),
        ]),
        barcodes=RawTable(headers=list(BARCODE_HEADERS), rows=[
            {"Intermediate Plate Barcodes": "IntPlate_1", "Destination Plate Barcodes": "DestPlate_1"},
        ]),
    )


@pytest.fixture
def form_values():
    """Default input form values."""
    return default_form_values()


@pytest.fixture
def preferences():
    """384-well source and destination plates."""
    return Preferences()


@pytest.fixture
def transfer_log_text():
    """Echo transfer log for the valid experiment."""
    return "\n".join([
        "Run ID,1042",
        "Instrument,Echo 655",
        "[DETAILS]",
        "Source Plate Barcode,Source Well,Destination Plate Barcode,Destination Well,Actual Volume,Survey Fluid Volume",
        "S1,A01,IntPlate_1,A01,100,45",
        "IntPlate_1,A01,DestPlate_1,A01,50,9.9",
        "S1,A02,DestPlate_1,A02,50,48",
        "S1,A01,DestPlate_1,B01,60000,40",
    ])


@pytest.fixture
def destination_plate():
    """Empty 96-well destination plate."""
    return Plate(barcode="DestPlate_1", plate_size=PlateSize.PLATE_96, plate_role=PlateRole.DESTINATION)
