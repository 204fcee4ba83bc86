"""Echo transfer log parsing service."""
import io
import logging
import math
import warnings
from typing import Dict, Optional

import pandas as pd

from ripple.models import TransferLog, TransferStep, WellBlockError, normalize_well_id

logger = logging.getLogger(__name__)

DETAILS_MARKER = "[DETAILS]"
SOURCE_BARCODE = "Source Plate Barcode"
SOURCE_WELL = "Source Well"
DESTINATION_BARCODE = "Destination Plate Barcode"
DESTINATION_WELL = "Destination Well"
ACTUAL_VOLUME = "Actual Volume"
SURVEY_VOLUME = "Survey Fluid Volume"
REQUIRED_COLUMNS = [SOURCE_BARCODE, SOURCE_WELL, DESTINATION_BARCODE, DESTINATION_WELL, ACTUAL_VOLUME]


class TransferLogFormatError(ValueError):
    """Transfer log cannot be read at all."""


def _to_float(value) -> Optional[float]:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _survey_key(well_id: str) -> str:
    # A1 and A01 are the same well
    try:
        return normalize_well_id(well_id)
    except WellBlockError:
        return well_id


class TransferLogParser:
    """Parser for Echo transfer logs."""

    def decode(self, content: bytes) -> str:
        """Decode uploaded log bytes."""
        # Try different encodings
        for encoding in ["utf-8-sig", "gbk", "latin1"]:
            try:
                return content.decode(encoding)
            except UnicodeDecodeError:
                continue
        raise TransferLogFormatError("Unable to decode transfer log")

    def parse_bytes(self, content: bytes) -> TransferLog:
        """Decode uploaded log bytes and parse them."""
        return self.parse_text(self.decode(content))

    def parse_text(self, text: str) -> TransferLog:
        """
        Parse transfer log text.

        Everything up to the [DETAILS] line is instrument header and is
        ignored. The line after it names the columns; the rest are
        transfers in execution order.

        Args:
            text: Full log file text

        Returns:
            TransferLog with ordered transfers and first-seen survey volumes

        Raises:
            TransferLogFormatError: if the log is too short, has no
                [DETAILS] marker or lacks a required column
        """
        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            raise TransferLogFormatError("Transfer log file is empty or invalid")

        start = next(
            (i for i, line in enumerate(lines) if line.split(",")[0].strip() == DETAILS_MARKER),
            None
        )
        if start is None:
            raise TransferLogFormatError(f"Transfer log has no {DETAILS_MARKER} section")

        body = "\n".join(lines[start + 1:])
        if not body:
            raise TransferLogFormatError("Transfer log is missing required columns")

        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always", pd.errors.ParserWarning)
                # index_col=False keeps trailing-comma rows aligned with the header
                df = pd.read_csv(
                    io.StringIO(body),
                    dtype=str,
                    keep_default_na=False,
                    skipinitialspace=True,
                    index_col=False,
                    on_bad_lines="warn"
                )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise TransferLogFormatError(f"Unable to read transfer details: {e}")
        for warning in caught:
            if issubclass(warning.category, pd.errors.ParserWarning):
                logger.debug(f"Dropped malformed log line(s): {str(warning.message).strip()}")
            else:
                warnings.warn(warning.message, warning.category)
        df.columns = [str(c).strip() for c in df.columns]

        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise TransferLogFormatError(f"Transfer log is missing required columns: {', '.join(missing)}")

        df = df.fillna("")
        has_survey = SURVEY_VOLUME in df.columns
        transfers = []
        surveyed_volumes: Dict[str, Dict[str, float]] = {}
        skipped = 0

        for record in df.to_dict("records"):
            volume = _to_float(record[ACTUAL_VOLUME])
            if volume is None:
                skipped += 1
                continue

            source_barcode = str(record[SOURCE_BARCODE]).strip()
            source_well = str(record[SOURCE_WELL]).strip()
            transfers.append(TransferStep(
                source_barcode=source_barcode,
                source_well_id=source_well,
                destination_barcode=str(record[DESTINATION_BARCODE]).strip(),
                destination_well_id=str(record[DESTINATION_WELL]).strip(),
                volume=volume
            ))

            if has_survey:
                survey = _to_float(record[SURVEY_VOLUME])
                if survey is not None:
                    # Later re-surveys of the same well are ignored
                    surveyed_volumes.setdefault(source_barcode, {}).setdefault(_survey_key(source_well), survey)

        if skipped:
            logger.debug(f"Ignored {skipped} log row(s) without a numeric volume")
        logger.info(f"Parsed {len(transfers)} transfer(s) from log")
        return TransferLog(transfers=transfers, surveyed_volumes=surveyed_volumes)
