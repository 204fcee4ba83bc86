"""Input validation and transfer simulation API."""
from fastapi import APIRouter, UploadFile, File, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from ripple.services import ValidationService, SimulationService, FileService, TransferLogParser
from ripple.models import (
    InputTables, Preferences, CommonData, BuildResult, ReplayResult,
    default_form_values
)
from ripple.config import settings

router = APIRouter()
simulation_service = SimulationService()
file_service = FileService()
log_parser = TransferLogParser()


class ValidateRequest(BaseModel):
    """Request for input validation."""
    tables: InputTables
    form_values: Dict[str, Any] = Field(default_factory=default_form_values)
    preferences: Optional[Preferences] = None


class ValidateResponse(BaseModel):
    """Validation outcome."""
    valid: bool
    errors: List[str] = []
    common_data: Optional[CommonData] = None


class RunRequest(ValidateRequest):
    """Request for a plate map build."""
    transfer_log: str


async def _read_upload(file: UploadFile, allowed_extensions: List[str]) -> bytes:
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename must not be empty")
    if not any(file.filename.lower().endswith(ext) for ext in allowed_extensions):
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file format: {file.filename}"
        )

    # Check file size
    content = await file.read()
    if len(content) > settings.max_file_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=400,
            detail=f"File too large, upload a file under {settings.max_file_size_mb}MB"
        )
    return content


@router.post("/validate", response_model=ValidateResponse)
async def validate_input(request: ValidateRequest):
    """
    Validate the experiment tabs and input form.
    """
    result = ValidationService(request.preferences).validate(request.tables, request.form_values)
    return ValidateResponse(
        valid=result.valid,
        errors=result.errors,
        common_data=result.input_data.common_data
    )


@router.post("/run", response_model=BuildResult)
async def run_simulation(request: RunRequest):
    """
    Validate input, build plates and replay the transfer log.
    """
    try:
        return simulation_service.build_plate_maps(
            tables=request.tables,
            form_values=request.form_values,
            log_text=request.transfer_log,
            preferences=request.preferences
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Simulation failed: {str(e)}")


@router.post("/run/csv")
async def run_simulation_csv(request: RunRequest):
    """
    Replay the transfer log and return the transfer list as CSV.
    """
    result = await run_simulation(request)
    if result.errors:
        raise HTTPException(status_code=422, detail=result.errors)
    return PlainTextResponse(
        content=ReplayResult(outcomes=result.outcomes).to_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=transfers.csv"}
    )


@router.post("/upload", response_model=BuildResult)
async def upload_and_run(
    workbook: UploadFile = File(...),
    transfer_log: UploadFile = File(...)
):
    """
    Run a simulation from an uploaded workbook (.xlsx) and Echo transfer log (.csv).

    Form values come from the workbook's Form sheet, on top of the defaults.
    """
    workbook_content = await _read_upload(workbook, [".xlsx"])
    log_content = await _read_upload(transfer_log, [".csv", ".txt"])

    try:
        tables, form_values = file_service.parse_workbook(workbook_content, workbook.filename)
        values = default_form_values()
        values.update(form_values)
        return simulation_service.build_plate_maps(
            tables=tables,
            form_values=values,
            log_text=log_parser.decode(log_content)
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Simulation failed: {str(e)}")
