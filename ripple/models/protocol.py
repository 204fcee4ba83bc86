"""Analysis protocol data models."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ParseFormat(str, Enum):
    """Raw data layout in the plate reader export."""
    MATRIX = "Matrix"
    TABLE = "Table"


class ControlType(str, Enum):
    """Control well type."""
    PRETEST = "pretest"
    MAX_CTRL = "MaxCtrl"
    MIN_CTRL = "MinCtrl"
    POS_CTRL = "PosCtrl"
    NEG_CTRL = "NegCtrl"
    BLANK = "Blank"
    REFERENCE = "Reference"
    TEST = "Test"


class NormalizationType(str, Enum):
    """Response normalization mode."""
    PCT_OF_CTRL = "PctOfCtrl"
    NONE = "None"


class FieldType(str, Enum):
    """Metadata field input type."""
    FREE_TEXT = "Free Text"
    PICK_LIST = "PickList"


class BarcodeLocation(str, Enum):
    """Where a plate's barcode is read from."""
    FILENAME = "filename"
    CELL = "cell"


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParseStrategy(CamelModel):
    """How raw plate reader data is laid out."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")
    
    format: ParseFormat = ParseFormat.MATRIX
    plate_size: int = 384
    raw_data: str = ""
    x_labels: Optional[str] = None
    y_labels: Optional[str] = None
    well_ids: Optional[str] = Field(default=None, alias="wellIDs")
    plate_barcode_location: BarcodeLocation = BarcodeLocation.FILENAME
    plate_barcode_cell: Optional[str] = None


class MetadataField(CamelModel):
    """Per-plate metadata field."""
    name: str
    type: FieldType = FieldType.FREE_TEXT
    required: bool = False
    default_value: Optional[Union[bool, int, float, str]] = None
    values: Optional[List[str]] = None


class ControlDefinition(CamelModel):
    """Control wells of one type."""
    type: ControlType
    wells: str  # well block, e.g. "A1:A24"


class DataProcessing(CamelModel):
    """Control definitions plus normalization mode."""
    controls: List[ControlDefinition] = []
    normalization: NormalizationType = NormalizationType.NONE


class Protocol(CamelModel):
    """Analysis protocol."""
    id: int
    name: str
    description: Optional[str] = ""
    parse_strategy: ParseStrategy = Field(default_factory=ParseStrategy)
    metadata_fields: List[MetadataField] = []
    data_processing: DataProcessing = Field(default_factory=DataProcessing)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
