"""Dilution pattern data models."""
from pydantic import BaseModel
from typing import List
from enum import Enum


class PatternType(str, Enum):
    """Pattern type enumeration."""
    CONTROL = "Control"
    TREATMENT = "Treatment"
    SOLVENT = "Solvent"
    COMBINATION = "Combination"
    UNUSED = "Unused"


class Direction(str, Enum):
    """Dilution axis: left-right, right-left, top-bottom, bottom-top."""
    LR = "LR"
    RL = "RL"
    TB = "TB"
    BT = "BT"


class DilutionPattern(BaseModel):
    """Replicate/concentration structure of one pattern."""
    name: str
    type: PatternType
    direction: List[Direction] = []
    replicates: int = 0
    concentrations: List[float] = []
    
    @property
    def well_count(self) -> int:
        """Wells one layout block of this pattern must cover."""
        return len(self.concentrations) * self.replicates
    
    @property
    def needs_layout_match(self) -> bool:
        return self.type not in (PatternType.SOLVENT, PatternType.UNUSED)
