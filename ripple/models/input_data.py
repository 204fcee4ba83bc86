"""Experiment input data models."""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from ripple.config import settings
from ripple.models.plate import PlateSize
from ripple.models.pattern import PatternType

PATTERN_HEADERS = ["Pattern", "Type", "Direction", "Replicates"] + [f"Conc{i}" for i in range(1, 21)]
LAYOUT_HEADERS = ["Pattern", "Well Block"]
COMPOUND_HEADERS = [
    "Source Barcode", "Well ID", "Concentration (µM)",
    "Compound ID", "Volume (µL)", "Pattern"
]
BARCODE_HEADERS = ["Intermediate Plate Barcodes", "Destination Plate Barcodes"]

# Input form keys
FORM_DMSO_TOLERANCE = "DMSO Tolerance"
FORM_WELL_VOLUME = "Well Volume (µL)"
FORM_BACKFILL = "Backfill (µL)"
FORM_ALLOWED_ERROR = "Allowed Error"
FORM_DEST_REPLICATES = "Destination Replicates"
FORM_USE_INTERMEDIATES = "Use Intermediate Plates"
FORM_DMSO_NORMALIZATION = "DMSO Normalization"
FORM_EVEN_DEPLETION = "Evenly Deplete Source Wells"
FORM_USE_SURVEY = "Use Source Survey Volumes"


class RawTable(BaseModel):
    """One spreadsheet tab as parsed cells: header row plus data rows."""
    headers: List[str] = []
    rows: List[Dict[str, Any]] = []


class InputTables(BaseModel):
    """The four spreadsheet tabs."""
    patterns: RawTable = RawTable()
    layout: RawTable = RawTable()
    compounds: RawTable = RawTable()
    barcodes: RawTable = RawTable()


class PatternRow(BaseModel):
    """Validated Patterns tab row."""
    pattern: str
    type: PatternType
    direction: str = ""
    replicates: int = 0
    concentrations: List[float] = []


class LayoutRow(BaseModel):
    """Validated Layout tab row."""
    pattern: str
    well_block: str


class CompoundRow(BaseModel):
    """Validated Compounds tab row."""
    source_barcode: str
    well_id: str
    concentration: Optional[float] = None  # µM
    compound_id: str
    volume: float  # µL
    pattern: str = ""
    
    @property
    def pattern_names(self) -> List[str]:
        return [p.strip() for p in self.pattern.split(";") if p.strip()]


class BarcodeRow(BaseModel):
    """Validated Barcodes tab row."""
    intermediate: Optional[str] = None
    destination: Optional[str] = None


class CommonData(BaseModel):
    """Typed numeric/boolean form parameters."""
    max_dmso_fraction: float
    final_assay_volume: float  # µL
    intermediate_backfill_volume: float  # µL
    allowable_error: float
    dest_replicates: int
    create_int_concs: bool
    dmso_normalization: bool
    even_depletion: bool = False
    update_from_survey_volumes: bool = False


class InputData(BaseModel):
    """Validated experiment input."""
    patterns: List[PatternRow] = []
    layout: List[LayoutRow] = []
    compounds: List[CompoundRow] = []
    barcodes: List[BarcodeRow] = []
    common_data: Optional[CommonData] = None
    
    def intermediate_barcodes(self) -> List[str]:
        return [row.intermediate for row in self.barcodes if row.intermediate]
    
    def destination_barcodes(self) -> List[str]:
        return [row.destination for row in self.barcodes if row.destination]


class ValidationResult(BaseModel):
    """Validator output."""
    input_data: InputData
    errors: List[str] = []
    
    @property
    def valid(self) -> bool:
        return len(self.errors) == 0


class Preferences(BaseModel):
    """Run-time preference snapshot."""
    source_plate_size: PlateSize = PlateSize.PLATE_384
    destination_plate_size: PlateSize = PlateSize.PLATE_384
    
    @classmethod
    def from_settings(cls) -> "Preferences":
        """Create preferences from application settings."""
        return cls(
            source_plate_size=settings.source_plate_size,
            destination_plate_size=settings.destination_plate_size
        )


def default_form_values() -> Dict[str, Any]:
    """Input form values prefilled from settings."""
    return {
        FORM_DMSO_TOLERANCE: settings.dmso_tolerance,
        FORM_WELL_VOLUME: settings.assay_volume_ul,
        FORM_BACKFILL: settings.backfill_volume_ul,
        FORM_ALLOWED_ERROR: settings.allowed_error,
        FORM_DEST_REPLICATES: settings.destination_replicates,
        FORM_USE_INTERMEDIATES: settings.use_intermediate_plates,
        FORM_DMSO_NORMALIZATION: settings.dmso_normalization,
        FORM_EVEN_DEPLETION: False,
        FORM_USE_SURVEY: False,
    }
