"""Plate construction from validated input and a transfer log."""
import logging
import math
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel

from ripple.models import (
    InputData, PatternRow, Preferences, DilutionPattern, PatternType, Direction,
    Plate, PlateRole, PlateSize, PlateSet, TransferLog, TransferStep,
    PLATE_DIMENSIONS, WellBlockError, expand_well_block, DMSO, ASSAY_BUFFER
)

logger = logging.getLogger(__name__)

INTERMEDIATE_PREFIX = "IntPlate_"
DESTINATION_PREFIX = "DestPlate_"
UL_TO_NL = 1000


class CompoundLocation(BaseModel):
    """One source well holding a compound."""
    barcode: str
    well_id: str
    concentration: float = 0.0  # µM
    volume: float  # nL
    patterns: List[str] = []


# compound id -> source locations
CompoundInventory = Dict[str, List[CompoundLocation]]


def analyze_dilution_patterns(rows: List[PatternRow]) -> Dict[str, DilutionPattern]:
    """Derive replicate/concentration structure per pattern from validated rows."""
    patterns: Dict[str, DilutionPattern] = {}
    for row in rows:
        directions: List[Direction] = []
        if row.type != PatternType.SOLVENT and row.direction:
            directions = [Direction(axis) for axis in row.direction.split("-")]
        patterns[row.pattern] = DilutionPattern(
            name=row.pattern,
            type=row.type,
            direction=directions,
            replicates=row.replicates,
            concentrations=list(row.concentrations)
        )
    return patterns


def build_compound_inventory(input_data: InputData, source_plate_size: PlateSize) -> CompoundInventory:
    """
    Map each compound to its source wells.

    Well blocks are expanded against the source plate size; volumes are
    converted from µL to nL.
    """
    rows, cols = PLATE_DIMENSIONS[source_plate_size.value]
    inventory: CompoundInventory = {}

    for compound in input_data.compounds:
        try:
            well_ids = expand_well_block(compound.well_id, rows, cols)
        except WellBlockError:
            logger.debug(f"Skipping {compound.compound_id}: unusable well block {compound.well_id}")
            continue
        locations = inventory.setdefault(compound.compound_id, [])
        for well_id in well_ids:
            locations.append(CompoundLocation(
                barcode=compound.source_barcode,
                well_id=well_id,
                concentration=compound.concentration or 0.0,
                volume=compound.volume * UL_TO_NL,
                patterns=compound.pattern_names
            ))

    return inventory


def prepare_source_plates(
    inventory: CompoundInventory,
    source_plate_size: PlateSize,
    patterns: Dict[str, DilutionPattern]
) -> List[Plate]:
    """
    Create source plates loaded with inventory compounds.

    DMSO, and compounds used by a Solvent pattern, are loaded as solvent
    named after the compound. A well that already holds something is not
    loaded again.
    """
    plates: Dict[str, Plate] = {}

    for compound_id, locations in inventory.items():
        is_solvent = compound_id == DMSO or any(
            p in patterns and patterns[p].type == PatternType.SOLVENT
            for location in locations
            for p in location.patterns
        )
        for location in locations:
            plate = plates.get(location.barcode)
            if plate is None:
                plate = Plate(
                    barcode=location.barcode,
                    plate_size=source_plate_size,
                    plate_role=PlateRole.SOURCE
                )
                plates[location.barcode] = plate
            well = plate.get_well(location.well_id)
            if well is None or well.contents or well.solvents:
                continue
            if is_solvent:
                well.add_solvent(compound_id, location.volume)
            else:
                well.add_content(
                    compound_id,
                    location.concentration,
                    location.volume,
                    solvent_name=DMSO,
                    solvent_fraction=1.0,
                    pattern_name=location.patterns[0] if location.patterns else None
                )

    return list(plates.values())


def classify_barcodes(
    source_barcodes: Set[str],
    declared_intermediate: Set[str],
    declared_destination: Set[str],
    transfers: List[TransferStep]
) -> Dict[str, PlateRole]:
    """
    Assign a role to every barcode referenced by the transfers.

    Order of precedence: built source plate, declared Barcodes-tab lists,
    IntPlate_/DestPlate_ prefixes, then destination. An intermediate plate
    that receives directly from a source plate is stage 1; any other
    intermediate plate is stage 2.
    """
    fed_from_source: Set[str] = {
        step.destination_barcode for step in transfers if step.source_barcode in source_barcodes
    }
    roles: Dict[str, PlateRole] = {}

    for step in transfers:
        for barcode in (step.source_barcode, step.destination_barcode):
            if barcode in roles:
                continue
            if barcode in source_barcodes:
                roles[barcode] = PlateRole.SOURCE
            elif barcode in declared_destination or (
                barcode.startswith(DESTINATION_PREFIX) and barcode not in declared_intermediate
            ):
                roles[barcode] = PlateRole.DESTINATION
            elif barcode in declared_intermediate or barcode.startswith(INTERMEDIATE_PREFIX):
                roles[barcode] = (
                    PlateRole.INTERMEDIATE1 if barcode in fed_from_source else PlateRole.INTERMEDIATE2
                )
            else:
                roles[barcode] = PlateRole.DESTINATION

    return roles


class PlateFactory:
    """Builds the plate model for one simulation run."""

    def __init__(self, input_data: InputData, preferences: Preferences):
        if input_data.common_data is None:
            raise ValueError("Input data has no form parameters")
        self.input_data = input_data
        self.common = input_data.common_data
        self.preferences = preferences

    def build_source_plates(
        self,
        patterns: Optional[Dict[str, DilutionPattern]] = None
    ) -> Tuple[List[Plate], CompoundInventory]:
        """Build the compound inventory and the loaded source plates."""
        if patterns is None:
            patterns = analyze_dilution_patterns(self.input_data.patterns)
        inventory = build_compound_inventory(self.input_data, self.preferences.source_plate_size)
        plates = prepare_source_plates(inventory, self.preferences.source_plate_size, patterns)
        logger.info(f"Built {len(plates)} source plate(s) holding {len(inventory)} compound(s)")
        return plates, inventory

    def build_target_plates(self, roles: Dict[str, PlateRole]) -> Tuple[List[Plate], List[Plate]]:
        """
        Create pre-filled intermediate and destination plates.

        Intermediate wells get the DMSO backfill, destination wells get
        assay buffer; both converted from µL to nL.
        """
        size = self.preferences.destination_plate_size
        backfill = self.common.intermediate_backfill_volume * UL_TO_NL
        assay_volume = self.common.final_assay_volume * UL_TO_NL

        stage1 = [bc for bc, role in roles.items() if role == PlateRole.INTERMEDIATE1]
        stage2 = [bc for bc, role in roles.items() if role == PlateRole.INTERMEDIATE2]
        destinations = [bc for bc, role in roles.items() if role == PlateRole.DESTINATION]

        intermediate = []
        for role, barcodes in ((PlateRole.INTERMEDIATE1, stage1), (PlateRole.INTERMEDIATE2, stage2)):
            for barcode in barcodes:
                plate = Plate(barcode=barcode, plate_size=size, plate_role=role)
                plate.fill_all(DMSO, backfill)
                intermediate.append(plate)

        destination = []
        for barcode in destinations:
            plate = Plate(barcode=barcode, plate_size=size, plate_role=PlateRole.DESTINATION)
            plate.fill_all(ASSAY_BUFFER, assay_volume)
            destination.append(plate)

        logger.info(
            f"Built {len(stage1)} stage-1 and {len(stage2)} stage-2 intermediate plate(s), "
            f"{len(destination)} destination plate(s)"
        )
        return intermediate, destination

    def apply_survey_volumes(self, source_plates: List[Plate], surveyed_volumes: Dict[str, Dict[str, float]]) -> int:
        """Overwrite source well volumes with surveyed ones (µL -> nL)."""
        if not self.common.update_from_survey_volumes:
            return 0

        updated = 0
        for plate in source_plates:
            plate_survey = surveyed_volumes.get(plate.barcode)
            if not plate_survey:
                continue
            for well_id, volume in plate_survey.items():
                well = plate.get_well(well_id)
                if well is None or volume is None or not math.isfinite(volume):
                    continue
                well.update_volume(volume * UL_TO_NL)
                updated += 1

        logger.info(f"Updated {updated} source well(s) from survey volumes")
        return updated

    def build(self, transfer_log: TransferLog) -> Tuple[PlateSet, CompoundInventory]:
        """
        Build all plates for a transfer log.

        Returns:
            PlateSet (source, intermediate, destination) and the inventory
        """
        source, inventory = self.build_source_plates()
        roles = classify_barcodes(
            {plate.barcode for plate in source},
            set(self.input_data.intermediate_barcodes()),
            set(self.input_data.destination_barcodes()),
            transfer_log.transfers
        )
        intermediate, destination = self.build_target_plates(roles)
        self.apply_survey_volumes(source, transfer_log.surveyed_volumes)
        return PlateSet(source=source, intermediate=intermediate, destination=destination), inventory
