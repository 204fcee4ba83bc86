"""Analysis protocol management service."""
import json
import logging
from typing import Any, Dict, List, Optional

from ripple.models import (
    Protocol, ParseStrategy, ParseFormat, MetadataField, FieldType,
    ControlDefinition, ControlType, DataProcessing, NormalizationType,
    BarcodeLocation
)
from ripple.models.protocol import utc_now

logger = logging.getLogger(__name__)

PROTOCOL_PLATE_SIZES = {"96", "384", "1536"}
EXPORT_FIELDS = [
    "id", "name", "description", "parseStrategy", "metadataFields",
    "dataProcessing", "createdAt", "updatedAt"
]


class ProtocolImportError(ValueError):
    """Protocol import file is unusable."""


def default_protocols() -> List[Protocol]:
    """Built-in protocols."""
    protocol_version = MetadataField(
        name="Protocol Version",
        type=FieldType.PICK_LIST,
        required=False,
        default_value="v2.1",
        values=["v2.0", "v2.1"]
    )
    operator = MetadataField(name="Operator", type=FieldType.PICK_LIST, required=True, default_value="", values=[])

    return [
        Protocol(
            id=1,
            name="Table Based",
            description="Standard table-based data format",
            parse_strategy=ParseStrategy(
                format=ParseFormat.TABLE,
                plate_size=384,
                x_labels="F01:DA01",
                well_ids="E02:E385",
                raw_data="F02:DA385",
                plate_barcode_location=BarcodeLocation.FILENAME,
            ),
            metadata_fields=[
                protocol_version,
                operator,
                MetadataField(
                    name="Cell Line",
                    type=FieldType.PICK_LIST,
                    required=True,
                    default_value="",
                    values=["CHO", "HEK-293T", "A549", "MCF7"]
                ),
            ],
            data_processing=DataProcessing(controls=[], normalization=NormalizationType.PCT_OF_CTRL),
        ),
        Protocol(
            id=2,
            name="Biochemical Assay",
            description="Matrix format for biochemical assays",
            parse_strategy=ParseStrategy(
                format=ParseFormat.MATRIX,
                plate_size=384,
                x_labels="A09:X09",
                y_labels="A10:A25",
                raw_data="B10:Y25",
                plate_barcode_location=BarcodeLocation.CELL,
                plate_barcode_cell="A01",
            ),
            metadata_fields=[
                protocol_version.model_copy(deep=True),
                operator.model_copy(deep=True),
                MetadataField(
                    name="Species",
                    type=FieldType.PICK_LIST,
                    required=False,
                    default_value="Human",
                    values=["Human", "Mouse", "Rat", "Dog", "Monkey"]
                ),
                MetadataField(name="Substrate", type=FieldType.FREE_TEXT, required=True),
            ],
            data_processing=DataProcessing(
                controls=[
                    ControlDefinition(type=ControlType.MAX_CTRL, wells="A1:A24"),
                    ControlDefinition(type=ControlType.MIN_CTRL, wells="P1:P24"),
                ],
                normalization=NormalizationType.PCT_OF_CTRL,
            ),
        ),
    ]


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def sanitize_protocol(item: Any, index: int) -> Protocol:
    """
    Build a protocol from an imported JSON object, replacing anything
    missing or invalid with defaults.
    """
    if not isinstance(item, dict):
        item = {}

    name = item.get("name")
    name = name.strip() if isinstance(name, str) and name.strip() else f"Imported Protocol {index}"

    raw_strategy = item.get("parseStrategy") if isinstance(item.get("parseStrategy"), dict) else {}
    strategy: Dict[str, Any] = dict(raw_strategy)
    formats = [f.value for f in ParseFormat]
    strategy["format"] = raw_strategy.get("format") if raw_strategy.get("format") in formats else ParseFormat.MATRIX.value
    plate_size = str(raw_strategy.get("plateSize"))
    strategy["plateSize"] = int(plate_size) if plate_size in PROTOCOL_PLATE_SIZES else 384
    strategy["rawData"] = raw_strategy.get("rawData") if isinstance(raw_strategy.get("rawData"), str) else ""
    locations = [loc.value for loc in BarcodeLocation]
    location = raw_strategy.get("plateBarcodeLocation")
    strategy["plateBarcodeLocation"] = location if location in locations else BarcodeLocation.FILENAME.value
    for key in ("xLabels", "yLabels", "wellIDs", "plateBarcodeCell"):
        strategy[key] = _str_or_none(raw_strategy.get(key))

    field_types = [t.value for t in FieldType]
    metadata_fields = []
    raw_fields = item.get("metadataFields") if isinstance(item.get("metadataFields"), list) else []
    for field in raw_fields:
        if not isinstance(field, dict) or not isinstance(field.get("name"), str) or not field["name"].strip():
            continue
        field_type = field.get("type") if field.get("type") in field_types else FieldType.FREE_TEXT.value
        values = field.get("values")
        metadata_fields.append(MetadataField(
            name=field["name"].strip(),
            type=field_type,
            required=field.get("required") if isinstance(field.get("required"), bool) else False,
            default_value=field.get("defaultValue"),
            values=values if field_type == FieldType.PICK_LIST.value and isinstance(values, list) else None
        ))

    raw_processing = item.get("dataProcessing") if isinstance(item.get("dataProcessing"), dict) else {}
    control_types = [c.value for c in ControlType]
    raw_controls = raw_processing.get("controls") if isinstance(raw_processing.get("controls"), list) else []
    controls = [
        ControlDefinition(
            type=control["type"],
            wells=control.get("wells") if isinstance(control.get("wells"), str) else ""
        )
        for control in raw_controls
        if isinstance(control, dict) and control.get("type") in control_types
    ]
    normalizations = [n.value for n in NormalizationType]
    normalization = raw_processing.get("normalization")

    return Protocol(
        id=0,
        name=name,
        description=item.get("description") if isinstance(item.get("description"), str) else "",
        parse_strategy=ParseStrategy.model_validate(strategy),
        metadata_fields=metadata_fields,
        data_processing=DataProcessing(
            controls=controls,
            normalization=normalization if normalization in normalizations else NormalizationType.NONE.value
        )
    )


class ProtocolService:
    """In-memory protocol store with JSON import/export."""

    def __init__(self, protocols: Optional[List[Protocol]] = None):
        self._protocols: List[Protocol] = protocols if protocols is not None else default_protocols()

    def list_protocols(self) -> List[Protocol]:
        return list(self._protocols)

    def get_protocol(self, protocol_id: int) -> Optional[Protocol]:
        for protocol in self._protocols:
            if protocol.id == protocol_id:
                return protocol
        return None

    def _next_id(self, taken: Optional[set] = None) -> int:
        ids = {p.id for p in self._protocols} | (taken or set())
        return max(ids, default=0) + 1

    def create_protocol(self, name: Optional[str] = None) -> Protocol:
        """Create and store an empty protocol."""
        protocol = Protocol(
            id=self._next_id(),
            name=name or f"New Protocol {len(self._protocols) + 1}",
            description="",
        )
        self._protocols.append(protocol)
        logger.info(f"Created protocol {protocol.id}: {protocol.name}")
        return protocol

    def update_protocol(self, protocol_id: int, updates: Dict[str, Any]) -> Optional[Protocol]:
        """
        Apply partial updates (camelCase or snake_case keys).

        Returns:
            Updated protocol, or None if it does not exist
        """
        for i, protocol in enumerate(self._protocols):
            if protocol.id != protocol_id:
                continue
            data = protocol.model_dump(by_alias=True)
            for key, value in updates.items():
                field = Protocol.model_fields.get(key)
                alias = field.alias if field is not None and field.alias else key
                if alias in ("id", "createdAt"):
                    continue
                data[alias] = value
            data["updatedAt"] = utc_now()
            updated = Protocol.model_validate(data)
            self._protocols[i] = updated
            return updated
        return None

    def duplicate_protocol(self, protocol_id: int) -> Optional[Protocol]:
        """Copy a protocol under a new id with " (Copy)" appended to its name."""
        protocol = self.get_protocol(protocol_id)
        if protocol is None:
            return None
        now = utc_now()
        copy = protocol.model_copy(
            deep=True,
            update={"id": self._next_id(), "name": f"{protocol.name} (Copy)", "created_at": now, "updated_at": now}
        )
        self._protocols.append(copy)
        return copy

    def delete_protocol(self, protocol_id: int) -> bool:
        before = len(self._protocols)
        self._protocols = [p for p in self._protocols if p.id != protocol_id]
        return len(self._protocols) < before

    def export_protocols(self, protocols: Optional[List[Protocol]] = None) -> str:
        """Serialize protocols as indented JSON."""
        protocols = self._protocols if protocols is None else protocols
        data = []
        for protocol in protocols:
            dumped = protocol.model_dump(by_alias=True, mode="json")
            data.append({key: dumped[key] for key in EXPORT_FIELDS})
        return json.dumps(data, indent=2, ensure_ascii=False)

    def parse_import(self, content: str) -> List[Protocol]:
        """
        Validate an import file without storing it.

        Imported protocols get fresh ids, and names that collide with
        existing ones get " (n)" appended.

        Raises:
            ProtocolImportError: for invalid JSON, a non-array or an empty array
        """
        try:
            parsed = json.loads(content)
        except (TypeError, ValueError):
            raise ProtocolImportError("Invalid JSON format")
        if not isinstance(parsed, list):
            raise ProtocolImportError("File must contain an array of protocols")
        if not parsed:
            raise ProtocolImportError("File contains no protocols")

        existing_names = {p.name for p in self._protocols}
        taken_ids = {p.id for p in self._protocols}
        protocols = []
        for index, item in enumerate(parsed):
            protocol = sanitize_protocol(item, index + 1)

            name = protocol.name
            if name in existing_names:
                counter = 1
                while f"{name} ({counter})" in existing_names:
                    counter += 1
                name = f"{name} ({counter})"

            protocol.id = max(taken_ids, default=0) + 1
            protocol.name = name
            taken_ids.add(protocol.id)
            existing_names.add(name)
            protocols.append(protocol)

        return protocols

    def import_protocols(self, content: str) -> List[Protocol]:
        """Validate and store imported protocols."""
        protocols = self.parse_import(content)
        self._protocols.extend(protocols)
        logger.info(f"Imported {len(protocols)} protocol(s)")
        return protocols
