"""Plate data models and well-id helpers."""
import re
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from ripple.models.well import Well


class PlateSize(int, Enum):
    """Plate size (well count)."""
    PLATE_12 = 12
    PLATE_24 = 24
    PLATE_48 = 48
    PLATE_96 = 96
    PLATE_384 = 384
    PLATE_1536 = 1536


class PlateRole(str, Enum):
    """Role a plate plays in a transfer run."""
    SOURCE = "source"
    INTERMEDIATE1 = "intermediate1"
    INTERMEDIATE2 = "intermediate2"
    DESTINATION = "destination"


# Plate dimensions (rows, cols)
PLATE_DIMENSIONS = {
    12: (3, 4),
    24: (4, 6),
    48: (6, 8),
    96: (8, 12),
    384: (16, 24),
    1536: (32, 48),
}

WELL_ID_PATTERN = re.compile(r"^([A-Z]{1,2})(\d{1,2})$")


class WellBlockError(ValueError):
    """Unparseable well id or well block, or one that falls off the plate."""


def number_to_letters(num: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    letters = ""
    while num > 0:
        num, rem = divmod(num - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def letters_to_number(letters: str) -> int:
    """A -> 1, Z -> 26, AA -> 27."""
    num = 0
    for ch in letters:
        num = num * 26 + (ord(ch) - 64)
    return num


def format_well_id(row: int, col: int) -> str:
    """Format 0-based coordinates as a well id (e.g., 0, 0 -> A01)."""
    return f"{number_to_letters(row + 1)}{col + 1:02d}"


def parse_well_id(well_id: str) -> Tuple[int, int]:
    """
    Parse a well id into 0-based (row, col).
    
    Accepts unpadded columns, so "A1" and "A01" are the same well.
    """
    match = WELL_ID_PATTERN.match(str(well_id).strip().upper())
    if not match:
        raise WellBlockError(f"Invalid well ID: {well_id}")
    col = int(match.group(2)) - 1
    if col < 0:
        raise WellBlockError(f"Invalid well ID: {well_id}")
    return letters_to_number(match.group(1)) - 1, col


def normalize_well_id(well_id: str) -> str:
    """Normalize position format (A1 -> A01)."""
    return format_well_id(*parse_well_id(well_id))


def well_block_corners(block: str) -> List[Tuple[Tuple[int, int], Tuple[int, int]]]:
    """
    Parse a well block ("A01:B05;C01") into (start, end) coordinate pairs.
    
    Raises:
        WellBlockError: if any segment is malformed
    """
    if block is None or not str(block).strip():
        raise WellBlockError("Empty well block")
    
    ranges = []
    for segment in str(block).split(";"):
        parts = [p.strip() for p in segment.split(":")]
        if len(parts) == 1:
            start = end = parse_well_id(parts[0])
        elif len(parts) == 2:
            start, end = parse_well_id(parts[0]), parse_well_id(parts[1])
        else:
            raise WellBlockError(f"Invalid well block: {segment}")
        ranges.append((start, end))
    return ranges


def block_fits(block: str, rows: int, cols: int) -> bool:
    """True if every corner of the block lies on a rows x cols plate."""
    for start, end in well_block_corners(block):
        for r, c in (start, end):
            if r >= rows or c >= cols:
                return False
    return True


def expand_well_block(block: str, rows: int, cols: int) -> List[str]:
    """
    Expand a well block into well ids, row-major within each segment.
    
    Raises:
        WellBlockError: if the block is malformed or falls off the plate
    """
    if not block_fits(block, rows, cols):
        raise WellBlockError(f"Well block {block} does not fit on a {rows}x{cols} plate")
    
    well_ids = []
    for (r1, c1), (r2, c2) in well_block_corners(block):
        for r in range(min(r1, r2), max(r1, r2) + 1):
            for c in range(min(c1, c2), max(c1, c2) + 1):
                well_ids.append(format_well_id(r, c))
    return well_ids


class Plate(BaseModel):
    """Microplate: an indexed grid of wells."""
    id: int = 0
    barcode: str = ""
    plate_size: PlateSize = PlateSize.PLATE_384
    plate_role: PlateRole = PlateRole.DESTINATION
    wells: Dict[str, Well] = {}
    metadata: Dict[str, Any] = Field(default_factory=lambda: {"globalMaxConcentration": 0})
    
    @model_validator(mode="after")
    def fill_wells(self) -> "Plate":
        if not self.wells:
            rows, cols = self.dimensions
            self.wells = {
                format_well_id(r, c): Well(id=format_well_id(r, c))
                for r in range(rows)
                for c in range(cols)
            }
        return self
    
    @property
    def dimensions(self) -> Tuple[int, int]:
        return PLATE_DIMENSIONS[self.plate_size.value]
    
    @property
    def rows(self) -> int:
        return self.dimensions[0]
    
    @property
    def columns(self) -> int:
        return self.dimensions[1]
    
    def get_well(self, well_id: str) -> Optional[Well]:
        """Get well by id; unpadded ids (A1) are accepted."""
        try:
            return self.wells.get(normalize_well_id(well_id))
        except WellBlockError:
            return None
    
    def get_some_wells(self, block: str) -> List[Well]:
        """
        Get wells covered by a well block.
        
        Raises:
            WellBlockError: if the block is malformed or falls off the plate
        """
        return [self.wells[well_id] for well_id in expand_well_block(block, self.rows, self.columns)]
    
    def iter_wells(self) -> Iterator[Well]:
        """Iterate wells row-major."""
        for r in range(self.rows):
            for c in range(self.columns):
                well = self.wells.get(format_well_id(r, c))
                if well is not None:
                    yield well
    
    def fill_all(self, solvent_name: str, volume: float) -> None:
        """Pre-fill every well with solvent."""
        for well in self.iter_wells():
            well.add_solvent(solvent_name, volume)
    
    def update_global_max_concentration(self) -> float:
        """Recompute the highest compound concentration on the plate."""
        max_concentration = 0.0
        for well in self.iter_wells():
            for content in well.contents:
                if content.compound_id:
                    max_concentration = max(max_concentration, content.concentration)
        self.metadata["globalMaxConcentration"] = max_concentration
        return max_concentration
