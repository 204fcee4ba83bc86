"""Business services."""
from ripple.services.validation_service import ValidationService
from ripple.services.plate_factory import (
    PlateFactory, CompoundLocation, CompoundInventory,
    analyze_dilution_patterns, build_compound_inventory,
    prepare_source_plates, classify_barcodes
)
from ripple.services.transfer_log import TransferLogParser, TransferLogFormatError
from ripple.services.replay_service import TransferReplayEngine
from ripple.services.simulation_service import SimulationService
from ripple.services.analysis_service import AnalysisService, treatment_key, aggregate_points
from ripple.services.protocol_service import ProtocolService, ProtocolImportError, default_protocols
from ripple.services.export_service import ExportService
from ripple.services.file_service import FileService

__all__ = [
    "ValidationService",
    "PlateFactory", "CompoundLocation", "CompoundInventory",
    "analyze_dilution_patterns", "build_compound_inventory",
    "prepare_source_plates", "classify_barcodes",
    "TransferLogParser", "TransferLogFormatError",
    "TransferReplayEngine",
    "SimulationService",
    "AnalysisService", "treatment_key", "aggregate_points",
    "ProtocolService", "ProtocolImportError", "default_protocols",
    "ExportService",
    "FileService",
]
