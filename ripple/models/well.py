"""Well data models and volume bookkeeping."""
import logging
from pydantic import BaseModel
from typing import List, Optional

logger = logging.getLogger(__name__)

DMSO = "DMSO"
ASSAY_BUFFER = "Assay Buffer"
VOLUME_TOLERANCE = 1e-9


class WellContent(BaseModel):
    """Compound (or pattern placeholder) held in a well."""
    compound_id: Optional[str] = None
    concentration: float  # µM
    pattern_name: Optional[str] = None


class Solvent(BaseModel):
    """Solvent volume held in a well."""
    name: str
    volume: float  # nL


class Well(BaseModel):
    """
    Single reaction vessel.
    
    Volumes are tracked in nL and concentrations in µM. Concentrations are
    always relative to ``total_volume``, so compound amount = concentration
    x total_volume.
    """
    id: str  # e.g., "A01"
    contents: List[WellContent] = []
    solvents: List[Solvent] = []
    total_volume: float = 0.0
    is_unused: bool = False
    raw_response: Optional[float] = None
    normalized_response: Optional[float] = None
    
    def add_content(
        self,
        compound_id: Optional[str],
        concentration: float,
        volume: float,
        solvent_name: str = DMSO,
        solvent_fraction: float = 1.0,
        pattern_name: Optional[str] = None
    ) -> None:
        """
        Add a compound at ``concentration`` carried in ``volume`` nL.
        
        Everything already in the well is diluted into the new total. A
        compound that is already present is merged rather than duplicated.
        """
        if self.is_unused:
            logger.warning(f"Attempting to add content to unused well {self.id}")
            return
        if volume <= 0:
            return
        
        new_total = self.total_volume + volume
        existing = None
        for content in self.contents:
            if content.compound_id == compound_id:
                existing = content
            else:
                content.concentration = content.concentration * self.total_volume / new_total
        
        if existing is not None:
            existing.concentration = (
                existing.concentration * self.total_volume + concentration * volume
            ) / new_total
            if pattern_name is not None:
                existing.pattern_name = pattern_name
        else:
            self.contents.append(WellContent(
                compound_id=compound_id,
                concentration=concentration * volume / new_total,
                pattern_name=pattern_name
            ))
        
        self._update_solvent(solvent_name, volume * solvent_fraction)
        self.total_volume = new_total
    
    def add_solvent(self, name: str, volume: float) -> None:
        """Add solvent, diluting any compounds present."""
        if self.is_unused:
            logger.warning(f"Attempting to add solvent to unused well {self.id}")
            return
        if volume <= 0:
            return
        
        new_total = self.total_volume + volume
        for content in self.contents:
            content.concentration = content.concentration * self.total_volume / new_total
        self._update_solvent(name, volume)
        self.total_volume = new_total
    
    def remove_volume(self, volume: float) -> None:
        """
        Withdraw ``volume`` nL. Concentrations are unchanged; solvent
        volumes shrink proportionally.
        
        Raises:
            ValueError: if more volume is requested than the well holds
        """
        if volume > self.total_volume + VOLUME_TOLERANCE:
            raise ValueError(
                f"Cannot remove {volume} nL from well {self.id} holding {self.total_volume} nL"
            )
        if self.total_volume <= 0:
            return
        
        remaining = max(1.0 - volume / self.total_volume, 0.0)
        for solvent in self.solvents:
            solvent.volume *= remaining
        self.solvents = [s for s in self.solvents if s.volume > 0]
        self.total_volume = max(self.total_volume - volume, 0.0)
    
    def update_volume(self, volume: float) -> None:
        """Overwrite the tracked volume with a measured (surveyed) one."""
        if self.total_volume > 0:
            scale = volume / self.total_volume
            for solvent in self.solvents:
                solvent.volume *= scale
        self.total_volume = volume
    
    def transfer_to(self, destination: "Well", volume: float, solvent_name: Optional[str] = None) -> None:
        """
        Move ``volume`` nL of this well into ``destination``.
        
        With ``solvent_name`` the transfer is a plain solvent transfer.
        Otherwise each of the n compounds present is sent as its own aliquot
        of volume / n at n x its concentration, so every compound's amount
        leaving this well equals the amount arriving.
        """
        if solvent_name:
            destination.add_solvent(solvent_name, volume)
            self.remove_volume(volume)
            return
        
        contents = list(self.contents)
        if contents:
            n = len(contents)
            for content in contents:
                destination.add_content(
                    content.compound_id,
                    content.concentration * n,
                    volume / n,
                    pattern_name=content.pattern_name
                )
                self.remove_volume(volume / n)
            return
        
        # No compounds: carry the solvent mix across as-is
        if self.solvents and self.total_volume > 0:
            for solvent in list(self.solvents):
                destination.add_solvent(solvent.name, volume * solvent.volume / self.total_volume)
        else:
            destination.add_solvent(DMSO, volume)
        self.remove_volume(volume)
    
    def mark_as_unused(self) -> None:
        """Flag the well as unused and empty it."""
        self.is_unused = True
        self.clear_contents()
    
    def clear_contents(self) -> None:
        self.contents = []
        self.solvents = []
        self.total_volume = 0.0
    
    def get_solvent_volume(self, name: str) -> float:
        for solvent in self.solvents:
            if solvent.name == name:
                return solvent.volume
        return 0.0
    
    def get_solvent_fraction(self, name: str) -> float:
        if self.total_volume <= 0:
            return 0.0
        return self.get_solvent_volume(name) / self.total_volume
    
    def get_concentration(self, compound_id: str) -> float:
        """Concentration of a compound, 0 if absent."""
        for content in self.contents:
            if content.compound_id == compound_id:
                return content.concentration
        return 0.0
    
    def get_amount(self, compound_id: str) -> float:
        """Amount of a compound (µM x nL)."""
        return self.get_concentration(compound_id) * self.total_volume
    
    def get_compound_ids(self) -> List[str]:
        """Compound ids present, in insertion order."""
        return [c.compound_id for c in self.contents if c.compound_id]
    
    def get_patterns(self) -> List[str]:
        patterns = []
        for content in self.contents:
            if content.pattern_name and content.pattern_name not in patterns:
                patterns.append(content.pattern_name)
        return patterns
    
    def is_solvent_only(self, name: str) -> bool:
        """True if the well holds nothing but the named solvent."""
        return (
            len(self.contents) == 0
            and len(self.solvents) == 1
            and self.solvents[0].name == name
        )
    
    def _update_solvent(self, name: str, volume: float) -> None:
        # Solvent bookkeeping only; totals and concentrations are the caller's job
        if volume <= 0:
            return
        for solvent in self.solvents:
            if solvent.name == name:
                solvent.volume += volume
                return
        self.solvents.append(Solvent(name=name, volume=volume))
