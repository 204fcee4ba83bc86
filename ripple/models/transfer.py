"""Transfer log and replay data models."""
from pydantic import BaseModel
from typing import Dict, List, Optional
from enum import Enum

from ripple.models.plate import Plate
from ripple.models.input_data import CommonData


class TransferStep(BaseModel):
    """One liquid-handler transfer, in log order."""
    source_barcode: str
    source_well_id: str
    destination_barcode: str
    destination_well_id: str
    volume: float  # nL


class TransferType(str, Enum):
    """Transfer classification."""
    COMPOUND = "compound"
    SOLVENT = "solvent"


class TransferStatus(str, Enum):
    """Per-transfer state. Everything but PENDING is terminal."""
    PENDING = "pending"
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class TransferOutcome(BaseModel):
    """Result of replaying one transfer step."""
    step: TransferStep
    status: TransferStatus = TransferStatus.PENDING
    transfer_type: Optional[TransferType] = None
    message: Optional[str] = None


class TransferLog(BaseModel):
    """Parsed transfer log."""
    transfers: List[TransferStep] = []
    # barcode -> well id -> surveyed volume (µL)
    surveyed_volumes: Dict[str, Dict[str, float]] = {}
    
    def barcodes(self) -> List[str]:
        """Every barcode referenced, in first-seen order."""
        seen = []
        for step in self.transfers:
            for barcode in (step.source_barcode, step.destination_barcode):
                if barcode not in seen:
                    seen.append(barcode)
        return seen


class PlateSet(BaseModel):
    """Plates of one run, grouped by role category."""
    source: List[Plate] = []
    intermediate: List[Plate] = []
    destination: List[Plate] = []
    
    def all_plates(self) -> List[Plate]:
        """Stable concatenation: source, intermediate, destination."""
        return [*self.source, *self.intermediate, *self.destination]
    
    def find(self, barcode: str) -> Optional[Plate]:
        for plate in self.all_plates():
            if plate.barcode == barcode:
                return plate
        return None


class ReplayResult(BaseModel):
    """Transfer replay result."""
    plates: List[Plate] = []
    outcomes: List[TransferOutcome] = []
    failures: List[str] = []
    
    def count(self, status: TransferStatus) -> int:
        return len([o for o in self.outcomes if o.status == status])

    def to_csv(self) -> str:
        """Export replayed transfers in Echo picklist layout plus outcome."""
        headers = [
            "Source Plate Barcode",
            "Source Well",
            "Destination Plate Barcode",
            "Destination Well",
            "Transfer Volume",
            "Transfer Type",
            "Status"
        ]
        lines = [",".join(headers)]

        for outcome in self.outcomes:
            step = outcome.step
            line = ",".join([
                step.source_barcode,
                step.source_well_id,
                step.destination_barcode,
                step.destination_well_id,
                f"{step.volume:g}",
                outcome.transfer_type.value if outcome.transfer_type else "N/A",
                outcome.status.value
            ])
            lines.append(line)

        return "\n".join(lines)


class BuildResult(BaseModel):
    """Result of a full validate/construct/replay run."""
    errors: List[str] = []
    plates: List[Plate] = []
    outcomes: List[TransferOutcome] = []
    failures: List[str] = []
    common_data: Optional[CommonData] = None
    
    @property
    def success(self) -> bool:
        return len(self.errors) == 0
