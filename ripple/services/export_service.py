"""Result export service."""
import logging
from typing import List, Optional

import pandas as pd

from ripple.models import Plate, PlateRole, Protocol

logger = logging.getLogger(__name__)


def _format_response(value: Optional[float]) -> str:
    return "" if value is None else str(value)


class ExportService:
    """Exports destination plate contents and responses."""

    def results_frame(
        self,
        plates: List[Plate],
        protocol: Optional[Protocol] = None,
        include_empty_wells: bool = False
    ) -> pd.DataFrame:
        """
        One row per destination well.

        Compound columns repeat for the largest number of compounds found
        in any exported well. Wells without compounds are left out unless
        ``include_empty_wells`` is set.
        """
        destinations = [p for p in plates if p.plate_role == PlateRole.DESTINATION]
        selected = []
        for plate in destinations:
            wells = [
                w for w in plate.wells.values()
                if include_empty_wells or w.get_compound_ids()
            ]
            selected.append((plate, sorted(wells, key=lambda w: w.id)))

        max_contents = max(
            (len(w.get_compound_ids()) for _, wells in selected for w in wells),
            default=0
        )
        has_normalized = any(
            w.normalized_response is not None for _, wells in selected for w in wells
        )

        columns = ["Barcode", "Well ID"]
        for i in range(1, max_contents + 1):
            columns += [f"Compound {i} ID", f"Compound {i} Concentration (µM)"]
        columns.append("Raw Response")
        if has_normalized:
            columns.append("Normalized Response")
        fields = protocol.metadata_fields if protocol else []
        columns += [field.name for field in fields]

        rows = []
        for plate, wells in selected:
            for well in wells:
                row = [plate.barcode, well.id]
                contents = [c for c in well.contents if c.compound_id]
                for i in range(max_contents):
                    if i < len(contents):
                        row += [contents[i].compound_id, f"{contents[i].concentration:.6f}"]
                    else:
                        row += ["", ""]
                row.append(_format_response(well.raw_response))
                if has_normalized:
                    row.append(_format_response(well.normalized_response))
                for field in fields:
                    # Plate metadata first, then the field default
                    if field.name in plate.metadata:
                        row.append(str(plate.metadata[field.name]))
                    elif field.default_value is not None:
                        row.append(str(field.default_value))
                    else:
                        row.append("")
                rows.append(row)

        logger.info(f"Exporting {len(rows)} well(s) from {len(destinations)} destination plate(s)")
        return pd.DataFrame(rows, columns=columns)

    def results_csv(
        self,
        plates: List[Plate],
        protocol: Optional[Protocol] = None,
        include_empty_wells: bool = False
    ) -> str:
        """Export destination plate results as CSV text."""
        df = self.results_frame(plates, protocol, include_empty_wells)
        return df.to_csv(index=False, lineterminator="\n")
