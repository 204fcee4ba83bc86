"""Dose-response analysis API."""
from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from typing import Dict, List, Optional

from ripple.services import AnalysisService, ExportService
from ripple.models import Plate, Protocol, PlateAnalysis

router = APIRouter()
analysis_service = AnalysisService()
export_service = ExportService()


class AnalyzeRequest(BaseModel):
    """Request for plate analysis."""
    plate: Plate
    protocol: Protocol
    responses: Optional[Dict[str, float]] = None  # well id -> raw response
    use_normalized: Optional[bool] = None


class ExportRequest(BaseModel):
    """Request for result export."""
    plates: List[Plate]
    protocol: Optional[Protocol] = None
    include_empty_wells: bool = False


@router.post("/plate", response_model=PlateAnalysis)
async def analyze_plate(request: AnalyzeRequest):
    """
    Apply responses, normalize and fit dose-response curves for one plate.
    """
    plate = request.plate
    if request.responses:
        missing = analysis_service.apply_responses([plate], {plate.barcode: request.responses})
        if missing:
            raise HTTPException(status_code=422, detail=missing)

    errors = analysis_service.normalize_plates([plate], request.protocol)
    if errors:
        raise HTTPException(status_code=422, detail=errors)

    try:
        return analysis_service.analyze_plate(plate, request.protocol, request.use_normalized)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Analysis failed: {str(e)}")


@router.post("/export/csv")
async def export_results_csv(request: ExportRequest):
    """
    Export destination plate results as CSV.
    """
    content = export_service.results_csv(
        plates=request.plates,
        protocol=request.protocol,
        include_empty_wells=request.include_empty_wells
    )
    return PlainTextResponse(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=results.csv"}
    )
