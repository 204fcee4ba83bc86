"""Transfer replay engine."""
import logging
from typing import Dict, List

from ripple.models import (
    Plate, PlateSet, TransferStep, TransferType, TransferStatus,
    TransferOutcome, ReplayResult, DMSO
)
from ripple.models.well import VOLUME_TOLERANCE

logger = logging.getLogger(__name__)


def _format_volume(volume: float) -> str:
    return f"{volume:g}"


def _index(plates: List[Plate]) -> Dict[str, Plate]:
    index: Dict[str, Plate] = {}
    for plate in plates:
        index.setdefault(plate.barcode, plate)
    return index


class TransferReplayEngine:
    """
    Replays a transfer log against a plate model.

    Transfers are applied strictly in log order since each one sees the
    volumes left by the ones before it. A transfer that cannot be satisfied
    is recorded and replay carries on with the next one.
    """

    def replay(self, plates: PlateSet, transfers: List[TransferStep]) -> ReplayResult:
        """
        Apply transfers in order, mutating the plates in place.

        Args:
            plates: Source, intermediate and destination plates
            transfers: Transfer steps in log order

        Returns:
            ReplayResult with renumbered plates, per-step outcomes and
            failure messages
        """
        # Sources can be source or intermediate plates; targets intermediate or destination
        sources = _index(plates.source + plates.intermediate)
        targets = _index(plates.intermediate + plates.destination)

        outcomes = []
        failures = []
        for step in transfers:
            outcome = self._apply(step, sources, targets)
            outcomes.append(outcome)
            if outcome.status == TransferStatus.FAILED:
                failures.append(outcome.message)

        all_plates = plates.all_plates()
        for i, plate in enumerate(all_plates):
            plate.id = i + 1
            plate.update_global_max_concentration()

        result = ReplayResult(plates=all_plates, outcomes=outcomes, failures=failures)
        logger.info(
            f"Replayed {len(transfers)} transfer(s): "
            f"{result.count(TransferStatus.APPLIED)} applied, "
            f"{result.count(TransferStatus.SKIPPED)} skipped, "
            f"{len(failures)} failed"
        )
        return result

    def _apply(self, step: TransferStep, sources: Dict[str, Plate], targets: Dict[str, Plate]) -> TransferOutcome:
        source_plate = sources.get(step.source_barcode)
        target_plate = targets.get(step.destination_barcode)
        if source_plate is None or target_plate is None:
            logger.debug(f"Skipping transfer {step.source_barcode} -> {step.destination_barcode}: unknown plate")
            return TransferOutcome(step=step, status=TransferStatus.SKIPPED, message="Unknown plate")

        source_well = source_plate.get_well(step.source_well_id)
        target_well = target_plate.get_well(step.destination_well_id)
        if source_well is None or target_well is None:
            logger.debug(
                f"Skipping transfer {step.source_barcode} {step.source_well_id} -> "
                f"{step.destination_barcode} {step.destination_well_id}: unknown well"
            )
            return TransferOutcome(step=step, status=TransferStatus.SKIPPED, message="Unknown well")

        transfer_type = TransferType.SOLVENT if source_well.is_solvent_only(DMSO) else TransferType.COMPOUND
        available = source_well.total_volume
        if available + VOLUME_TOLERANCE < step.volume:
            message = (
                f"{step.source_barcode} {step.source_well_id} to "
                f"{step.destination_barcode} {step.destination_well_id} - "
                f"well ({_format_volume(available)}) less than tsfr ({_format_volume(step.volume)})"
            )
            logger.warning(f"Transfer failed: {message}")
            return TransferOutcome(
                step=step,
                status=TransferStatus.FAILED,
                transfer_type=transfer_type,
                message=message
            )

        source_well.transfer_to(
            target_well,
            step.volume,
            solvent_name=DMSO if transfer_type == TransferType.SOLVENT else None
        )
        return TransferOutcome(step=step, status=TransferStatus.APPLIED, transfer_type=transfer_type)
