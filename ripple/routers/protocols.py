"""Analysis protocol API."""
from fastapi import APIRouter, UploadFile, File, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from ripple.services import ProtocolService, ProtocolImportError
from ripple.models import Protocol

router = APIRouter()
protocol_service = ProtocolService()


class CreateRequest(BaseModel):
    """Request for protocol creation."""
    name: Optional[str] = None


def _not_found(protocol_id: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Protocol {protocol_id} not found")


@router.get("", response_model=List[Protocol])
async def list_protocols():
    """List all protocols."""
    return protocol_service.list_protocols()


@router.post("", response_model=Protocol)
async def create_protocol(request: CreateRequest):
    """Create an empty protocol."""
    return protocol_service.create_protocol(request.name)


@router.get("/export")
async def export_protocols():
    """
    Export all protocols as JSON.
    """
    return PlainTextResponse(
        content=protocol_service.export_protocols(),
        media_type="application/json",
        headers={"Content-Disposition": "attachment; filename=protocols.json"}
    )


@router.post("/import", response_model=List[Protocol])
async def import_protocols(file: UploadFile = File(...)):
    """
    Import protocols from an exported JSON file.
    """
    content = await file.read()
    try:
        return protocol_service.import_protocols(content.decode("utf-8"))
    except UnicodeDecodeError:
        raise HTTPException(status_code=422, detail="Invalid JSON format")
    except ProtocolImportError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{protocol_id}", response_model=Protocol)
async def get_protocol(protocol_id: int):
    protocol = protocol_service.get_protocol(protocol_id)
    if protocol is None:
        raise _not_found(protocol_id)
    return protocol


@router.put("/{protocol_id}", response_model=Protocol)
async def update_protocol(protocol_id: int, updates: Dict[str, Any]):
    """Apply partial updates to a protocol."""
    try:
        protocol = protocol_service.update_protocol(protocol_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if protocol is None:
        raise _not_found(protocol_id)
    return protocol


@router.post("/{protocol_id}/duplicate", response_model=Protocol)
async def duplicate_protocol(protocol_id: int):
    protocol = protocol_service.duplicate_protocol(protocol_id)
    if protocol is None:
        raise _not_found(protocol_id)
    return protocol


@router.delete("/{protocol_id}")
async def delete_protocol(protocol_id: int):
    if not protocol_service.delete_protocol(protocol_id):
        raise _not_found(protocol_id)
    return {"deleted": protocol_id}
