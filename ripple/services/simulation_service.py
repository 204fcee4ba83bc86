"""Plate map build orchestration."""
import logging
from typing import Any, Dict, Optional

from ripple.models import InputTables, Preferences, BuildResult
from ripple.services.validation_service import ValidationService
from ripple.services.plate_factory import PlateFactory
from ripple.services.transfer_log import TransferLogParser, TransferLogFormatError
from ripple.services.replay_service import TransferReplayEngine

logger = logging.getLogger(__name__)


class SimulationService:
    """Runs validation, plate construction and transfer replay."""

    def __init__(self):
        self.log_parser = TransferLogParser()
        self.replay_engine = TransferReplayEngine()

    def build_plate_maps(
        self,
        tables: InputTables,
        form_values: Dict[str, Any],
        log_text: str,
        preferences: Optional[Preferences] = None
    ) -> BuildResult:
        """
        Build populated plate maps from an experiment workbook and a transfer log.

        Any validation error blocks plate construction. A transfer log that
        cannot be read is reported the same way. Transfer failures do not
        block; they are returned alongside the plates.

        Args:
            tables: Parsed workbook tabs
            form_values: Input form values
            log_text: Transfer log file text
            preferences: Preference snapshot (defaults from settings)

        Returns:
            BuildResult
        """
        preferences = preferences or Preferences.from_settings()

        validation = ValidationService(preferences).validate(tables, form_values)
        if not validation.valid:
            logger.info(f"Plate build blocked by {len(validation.errors)} validation error(s)")
            return BuildResult(errors=validation.errors, common_data=validation.input_data.common_data)

        input_data = validation.input_data
        try:
            transfer_log = self.log_parser.parse_text(log_text)
        except TransferLogFormatError as e:
            return BuildResult(errors=[str(e)], common_data=input_data.common_data)

        plates, _ = PlateFactory(input_data, preferences).build(transfer_log)
        replay = self.replay_engine.replay(plates, transfer_log.transfers)

        return BuildResult(
            plates=replay.plates,
            outcomes=replay.outcomes,
            failures=replay.failures,
            common_data=input_data.common_data
        )
