"""Dose-response analysis service."""
import logging
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from ripple.models import (
    Plate, Well, Protocol, ControlType, NormalizationType, WellBlockError,
    AggregatedPoint, ScatterPoint, TreatmentCurve, PlateAnalysis, EMPTY_WELL_KEY
)
from ripple.fitting import CurveFitError, fit_four_pl

logger = logging.getLogger(__name__)

MIN_DISTINCT_CONCENTRATIONS = 4
DEFAULT_DOMAIN = (0.0, 100.0)

# (well id, concentration, response)
Member = Tuple[str, float, float]


def treatment_key(well: Well) -> str:
    """Sorted, '+'-joined compound ids of a well."""
    compound_ids = sorted(set(well.get_compound_ids()))
    if not compound_ids:
        return EMPTY_WELL_KEY
    return "+".join(compound_ids)


def aggregate_points(members: List[Member]) -> List[AggregatedPoint]:
    """Collapse replicate wells per concentration, highest concentration first."""
    by_concentration: Dict[float, List[Member]] = {}
    for member in members:
        by_concentration.setdefault(member[1], []).append(member)

    points = []
    for concentration, group in by_concentration.items():
        responses = np.array([m[2] for m in group], dtype=float)
        points.append(AggregatedPoint(
            concentration=concentration,
            mean=float(np.mean(responses)),
            std_dev=float(np.std(responses)),
            count=len(group),
            well_ids=[m[0] for m in group]
        ))
    points.sort(key=lambda p: p.concentration, reverse=True)
    return points


class AnalysisService:
    """Applies responses, normalizes them and fits dose-response curves."""

    def __init__(self, max_iterations: Optional[int] = None):
        self.max_iterations = max_iterations

    def apply_responses(self, plates: List[Plate], responses: Dict[str, Dict[str, float]]) -> List[str]:
        """
        Set raw responses on plate wells.

        Args:
            plates: Plates to update
            responses: barcode -> well id -> raw response

        Returns:
            Messages for wells that do not exist on their plate
        """
        errors = []
        for plate in plates:
            plate_data = responses.get(plate.barcode)
            if not plate_data:
                continue
            values = []
            for well_id, value in plate_data.items():
                well = plate.get_well(well_id)
                if well is None:
                    errors.append(f"Well {well_id} not found on plate {plate.barcode}")
                    continue
                well.raw_response = float(value)
                values.append(float(value))
            if values:
                plate.metadata["globalMinResponse"] = min(values)
                plate.metadata["globalMaxResponse"] = max(values)
        return errors

    def control_wells(self, plate: Plate, protocol: Protocol) -> Dict[str, ControlType]:
        """Map control well ids to their control type; the first definition wins."""
        controls: Dict[str, ControlType] = {}
        for control in protocol.data_processing.controls:
            if not control.wells:
                continue
            try:
                wells = plate.get_some_wells(control.wells)
            except WellBlockError:
                logger.warning(f"Invalid well range for {control.type.value}: {control.wells}")
                continue
            for well in wells:
                controls.setdefault(well.id, control.type)
        return controls

    def _control_means(
        self,
        plate: Plate,
        protocol: Protocol,
        exclude_wells: Set[str]
    ) -> Dict[ControlType, float]:
        means: Dict[ControlType, float] = {}
        for control in protocol.data_processing.controls:
            if not control.wells:
                continue
            try:
                wells = plate.get_some_wells(control.wells)
            except WellBlockError:
                logger.warning(f"Invalid well range for {control.type.value}: {control.wells}")
                continue
            responses = [
                w.raw_response for w in wells
                if w.raw_response is not None and w.id not in exclude_wells
            ]
            if responses:
                means[control.type] = float(np.mean(responses))
        return means

    def normalize_plates(
        self,
        plates: List[Plate],
        protocol: Protocol,
        exclude_wells: Optional[Set[str]] = None
    ) -> List[str]:
        """
        Compute normalized responses as percent of control.

        normalized = ((raw - blank) - min) / (max - min) x 100, where
        max/min/blank are MaxCtrl/MinCtrl/Blank well means. Without a
        MaxCtrl the plate's highest raw response is used; without a MinCtrl
        min is 0. Plates with neither control are left alone.

        Returns:
            One message per plate whose control range is not positive
        """
        if protocol.data_processing.normalization != NormalizationType.PCT_OF_CTRL:
            for plate in plates:
                for well in plate.iter_wells():
                    well.normalized_response = None
            return []

        exclude_wells = exclude_wells or set()
        errors = []
        for plate in plates:
            means = self._control_means(plate, protocol, exclude_wells)
            max_ctrl = means.get(ControlType.MAX_CTRL)
            min_ctrl = means.get(ControlType.MIN_CTRL)
            if max_ctrl is None and min_ctrl is None:
                continue

            min_value = min_ctrl if min_ctrl is not None else 0.0
            max_value = max_ctrl
            if max_value is None:
                raw = [
                    w.raw_response for w in plate.iter_wells()
                    if w.raw_response is not None and w.id not in exclude_wells
                ]
                max_value = max(raw) if raw else 100.0
            blank = means.get(ControlType.BLANK, 0.0)

            value_range = max_value - min_value
            if value_range <= 0:
                errors.append(
                    f"Plate {plate.barcode}: Invalid control range (max: {max_value}, min: {min_value})"
                )
                continue

            normalized = []
            for well in plate.iter_wells():
                if well.raw_response is None:
                    continue
                well.normalized_response = ((well.raw_response - blank) - min_value) / value_range * 100
                normalized.append(well.normalized_response)
            if normalized:
                plate.metadata["globalMinNormalized"] = min(normalized)
                plate.metadata["globalMaxNormalized"] = max(normalized)

        return errors

    def response_domain(self, plate: Plate, normalized: bool = False) -> Tuple[float, float]:
        """
        Y-axis range for a plate's responses.

        Defaults to [0, 100]. With recorded min/max the range is padded by
        1/20 of the spread; raw ranges always include [0, 100].
        """
        if normalized:
            low = plate.metadata.get("globalMinNormalized")
            high = plate.metadata.get("globalMaxNormalized")
        else:
            low = plate.metadata.get("globalMinResponse")
            high = plate.metadata.get("globalMaxResponse")
        if low is None or high is None:
            return DEFAULT_DOMAIN

        pad = (high - low) / 20
        if normalized:
            return (low - pad, high + pad)
        return (min(DEFAULT_DOMAIN[0], low - pad), max(DEFAULT_DOMAIN[1], high + pad))

    def analyze_plate(
        self,
        plate: Plate,
        protocol: Protocol,
        use_normalized: Optional[bool] = None
    ) -> PlateAnalysis:
        """
        Group a destination plate's wells into treatments and fit curves.

        Args:
            plate: Destination plate with responses applied
            protocol: Control definitions and normalization mode
            use_normalized: Analyze normalized responses; defaults to the
                protocol's normalization mode

        Returns:
            PlateAnalysis with curves sorted by treatment key
        """
        normalized = use_normalized
        if normalized is None:
            normalized = protocol.data_processing.normalization == NormalizationType.PCT_OF_CTRL

        controls = self.control_wells(plate, protocol)
        groups: Dict[str, List[Member]] = {}
        scatter: List[ScatterPoint] = []

        for well in plate.iter_wells():
            if well.is_unused:
                continue
            response = well.normalized_response if normalized else well.raw_response
            if response is None:
                continue
            key = treatment_key(well)
            concentration = well.contents[0].concentration if well.contents else 0.0

            if well.id in controls:
                scatter.append(ScatterPoint(
                    well_id=well.id,
                    treatment_key=key,
                    concentration=concentration,
                    response=response,
                    control_type=controls[well.id]
                ))
                continue
            if key == EMPTY_WELL_KEY:
                continue
            groups.setdefault(key, []).append((well.id, concentration, response))

        curves = []
        for key in sorted(groups):
            members = groups[key]
            if len({m[1] for m in members}) >= MIN_DISTINCT_CONCENTRATIONS:
                curves.append(self._build_curve(key, members))
            else:
                scatter.extend(
                    ScatterPoint(well_id=m[0], treatment_key=key, concentration=m[1], response=m[2])
                    for m in members
                )

        logger.info(
            f"Plate {plate.barcode}: {len(curves)} curve(s), "
            f"{len([c for c in curves if c.fit_failed])} failed fit(s), {len(scatter)} scatter point(s)"
        )
        return PlateAnalysis(
            barcode=plate.barcode,
            normalized=normalized,
            curves=curves,
            scatter=scatter,
            response_domain=self.response_domain(plate, normalized)
        )

    def analyze_plates(
        self,
        plates: List[Plate],
        protocol: Protocol,
        use_normalized: Optional[bool] = None
    ) -> List[PlateAnalysis]:
        return [self.analyze_plate(plate, protocol, use_normalized) for plate in plates]

    def _build_curve(self, key: str, members: List[Member]) -> TreatmentCurve:
        curve = TreatmentCurve(treatment_key=key, points=aggregate_points(members))
        try:
            # Fit on every well, not on the replicate means
            curve.fit = fit_four_pl(
                [m[1] for m in members],
                [m[2] for m in members],
                self.max_iterations
            )
        except CurveFitError as e:
            logger.warning(f"Curve fit failed for {key}: {e}")
            curve.fit_error = str(e)
        return curve
