"""Data models."""
from ripple.models.well import Well, WellContent, Solvent, DMSO, ASSAY_BUFFER
from ripple.models.plate import (
    Plate, PlateSize, PlateRole, PLATE_DIMENSIONS, WellBlockError,
    format_well_id, parse_well_id, normalize_well_id,
    well_block_corners, block_fits, expand_well_block
)
from ripple.models.pattern import PatternType, Direction, DilutionPattern
from ripple.models.input_data import (
    RawTable, InputTables, PatternRow, LayoutRow, CompoundRow, BarcodeRow,
    CommonData, InputData, ValidationResult, Preferences, default_form_values
)
from ripple.models.transfer import (
    TransferStep, TransferType, TransferStatus, TransferOutcome,
    TransferLog, PlateSet, ReplayResult, BuildResult
)
from ripple.models.protocol import (
    Protocol, ParseStrategy, ParseFormat, MetadataField, FieldType,
    ControlDefinition, ControlType, DataProcessing, NormalizationType,
    BarcodeLocation
)
from ripple.models.analysis import (
    AggregatedPoint, CurveFitResult, ScatterPoint, TreatmentCurve,
    PlateAnalysis, EMPTY_WELL_KEY
)

__all__ = [
    "Well", "WellContent", "Solvent", "DMSO", "ASSAY_BUFFER",
    "Plate", "PlateSize", "PlateRole", "PLATE_DIMENSIONS", "WellBlockError",
    "format_well_id", "parse_well_id", "normalize_well_id",
    "well_block_corners", "block_fits", "expand_well_block",
    "PatternType", "Direction", "DilutionPattern",
    "RawTable", "InputTables", "PatternRow", "LayoutRow", "CompoundRow", "BarcodeRow",
    "CommonData", "InputData", "ValidationResult", "Preferences", "default_form_values",
    "TransferStep", "TransferType", "TransferStatus", "TransferOutcome",
    "TransferLog", "PlateSet", "ReplayResult", "BuildResult",
    "Protocol", "ParseStrategy", "ParseFormat", "MetadataField", "FieldType",
    "ControlDefinition", "ControlType", "DataProcessing", "NormalizationType",
    "BarcodeLocation",
    "AggregatedPoint", "CurveFitResult", "ScatterPoint", "TreatmentCurve",
    "PlateAnalysis", "EMPTY_WELL_KEY",
]
