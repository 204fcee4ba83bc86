"""Dose-response analysis data models."""
from pydantic import BaseModel
from typing import List, Optional, Tuple

from ripple.models.protocol import ControlType

EMPTY_WELL_KEY = "CONTROL_EMPTY_WELL"


class AggregatedPoint(BaseModel):
    """Replicate wells sharing one concentration."""
    concentration: float
    mean: float
    std_dev: float  # population
    count: int
    well_ids: List[str] = []


class CurveFitResult(BaseModel):
    """Fitted 4PL parameters."""
    top: float
    bottom: float
    hill: float
    ec50: float
    r_squared: Optional[float] = None
    
    def predict(self, concentration: float) -> float:
        from ripple.fitting import four_pl
        return float(four_pl(concentration, self.top, self.bottom, self.hill, self.ec50))


class ScatterPoint(BaseModel):
    """Unaggregated well response (control or ungrouped treatment)."""
    well_id: str
    treatment_key: str
    concentration: float
    response: float
    control_type: Optional[ControlType] = None


class TreatmentCurve(BaseModel):
    """Dose-response curve for one treatment."""
    treatment_key: str
    points: List[AggregatedPoint] = []
    fit: Optional[CurveFitResult] = None
    fit_error: Optional[str] = None
    
    @property
    def fit_failed(self) -> bool:
        return self.fit is None


class PlateAnalysis(BaseModel):
    """Analysis of one destination plate."""
    barcode: str
    normalized: bool = False
    curves: List[TreatmentCurve] = []
    scatter: List[ScatterPoint] = []
    response_domain: Tuple[float, float] = (0.0, 100.0)
    
    def get_curve(self, treatment_key: str) -> Optional[TreatmentCurve]:
        for curve in self.curves:
            if curve.treatment_key == treatment_key:
                return curve
        return None
