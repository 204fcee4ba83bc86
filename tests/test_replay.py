"""Tests for transfer replay."""
import pytest

from ripple.services import TransferReplayEngine, SimulationService
from ripple.models import (
    Plate, PlateRole, PlateSet, TransferStep, TransferStatus, TransferType,
    DMSO, ASSAY_BUFFER
)


def step(source, source_well, destination, destination_well, volume):
    return TransferStep(
        source_barcode=source,
        source_well_id=source_well,
        destination_barcode=destination,
        destination_well_id=destination_well,
        volume=volume
    )


@pytest.fixture
def plate_set():
    """Source, intermediate and destination plates."""
    source = Plate(barcode="S1", plate_role=PlateRole.SOURCE)
    source.wells["A01"].add_content("CPD1", 10000, 20)
    source.wells["A02"].add_content("CPD2", 10000, 1000)

    intermediate = Plate(barcode="IntPlate_1", plate_role=PlateRole.INTERMEDIATE1)
    intermediate.wells["A01"].add_solvent(DMSO, 10000)
    intermediate.wells["A02"].add_solvent(DMSO, 10000)

    destination = Plate(barcode="DestPlate_1", plate_role=PlateRole.DESTINATION)
    destination.fill_all(ASSAY_BUFFER, 25000)

    return PlateSet(source=[source], intermediate=[intermediate], destination=[destination])


@pytest.fixture
def engine():
    """Replay engine."""
    return TransferReplayEngine()


class TestTransferReplayEngine:
    """Test cases for TransferReplayEngine."""

    def test_failure_does_not_stop_replay(self, engine, plate_set):
        """Test an over-draw fails while later transfers still apply."""
        transfers = [
            step("S1", "A01", "DestPlate_1", "A01", 50),
            step("S1", "A02", "DestPlate_1", "A02", 10),
        ]
        result = engine.replay(plate_set, transfers)

        assert result.failures == ["S1 A01 to DestPlate_1 A01 - well (20) less than tsfr (50)"]
        assert [o.status for o in result.outcomes] == [TransferStatus.FAILED, TransferStatus.APPLIED]
        assert plate_set.find("S1").wells["A01"].total_volume == 20
        assert plate_set.find("DestPlate_1").wells["A01"].get_compound_ids() == []
        assert plate_set.find("DestPlate_1").wells["A02"].get_compound_ids() == ["CPD2"]

    def test_mass_conservation(self, engine, plate_set):
        """Test compound amount is conserved across a transfer."""
        source_well = plate_set.find("S1").wells["A02"]
        before = source_well.get_amount("CPD2")

        engine.replay(plate_set, [step("S1", "A02", "DestPlate_1", "B05", 50)])

        target_well = plate_set.find("DestPlate_1").wells["B05"]
        assert target_well.total_volume == pytest.approx(25050)
        assert target_well.get_concentration("CPD2") == pytest.approx(10000 * 50 / 25050)
        assert source_well.get_amount("CPD2") + target_well.get_amount("CPD2") == pytest.approx(before)

    def test_intermediate_dilution(self, engine, plate_set):
        """Test compound flows through an intermediate plate."""
        transfers = [
            step("S1", "A02", "IntPlate_1", "A01", 100),
            step("IntPlate_1", "A01", "DestPlate_1", "C01", 50),
        ]
        result = engine.replay(plate_set, transfers)

        int_conc = 10000 * 100 / 10100
        assert plate_set.find("IntPlate_1").wells["A01"].get_concentration("CPD2") == pytest.approx(int_conc)
        assert plate_set.find("DestPlate_1").wells["C01"].get_concentration("CPD2") == pytest.approx(
            int_conc * 50 / 25050
        )
        assert [o.transfer_type for o in result.outcomes] == [TransferType.COMPOUND, TransferType.COMPOUND]

    def test_solvent_transfer(self, engine, plate_set):
        """Test DMSO-only wells are replayed as solvent transfers."""
        result = engine.replay(plate_set, [step("IntPlate_1", "A02", "DestPlate_1", "D01", 5)])

        assert result.outcomes[0].transfer_type == TransferType.SOLVENT
        well = plate_set.find("DestPlate_1").wells["D01"]
        assert well.get_solvent_volume(DMSO) == pytest.approx(5)
        assert well.get_solvent_volume(ASSAY_BUFFER) == pytest.approx(25000)

    def test_unknown_plate_or_well_skipped(self, engine, plate_set):
        """Test transfers that reference nothing known are skipped."""
        transfers = [
            step("S9", "A01", "DestPlate_1", "A01", 5),
            step("S1", "Z99", "DestPlate_1", "A01", 5),
            step("DestPlate_1", "A01", "S1", "A01", 5),
        ]
        result = engine.replay(plate_set, transfers)

        assert result.count(TransferStatus.SKIPPED) == 3
        assert result.failures == []

    def test_plates_renumbered(self, engine, plate_set):
        """Test plate ids run 1..N in source, intermediate, destination order."""
        result = engine.replay(plate_set, [])

        assert [(p.id, p.barcode) for p in result.plates] == [
            (1, "S1"), (2, "IntPlate_1"), (3, "DestPlate_1")
        ]
        assert result.plates[0].metadata["globalMaxConcentration"] == 10000

    def test_csv_export(self, engine, plate_set):
        """Test replayed transfers export as CSV."""
        result = engine.replay(plate_set, [
            step("S1", "A01", "DestPlate_1", "A01", 50),
            step("S9", "A01", "DestPlate_1", "A01", 2.5),
        ])
        lines = result.to_csv().split("\n")

        assert lines[0].startswith("Source Plate Barcode,Source Well")
        assert lines[1] == "S1,A01,DestPlate_1,A01,50,compound,failed"
        assert lines[2] == "S9,A01,DestPlate_1,A01,2.5,N/A,skipped"


class TestSimulationService:
    """Test cases for the full build."""

    def test_build_plate_maps(self, valid_tables, form_values, transfer_log_text, preferences):
        """Test validation, construction and replay together."""
        result = SimulationService().build_plate_maps(valid_tables, form_values, transfer_log_text, preferences)

        assert result.success
        assert [p.barcode for p in result.plates] == ["S1", "IntPlate_1", "DestPlate_1"]
        assert result.failures == ["S1 A01 to DestPlate_1 B01 - well (49900) less than tsfr (60000)"]
        assert [o.status for o in result.outcomes] == [
            TransferStatus.APPLIED, TransferStatus.APPLIED, TransferStatus.APPLIED, TransferStatus.FAILED
        ]
        destination = result.plates[2]
        assert destination.wells["A01"].get_compound_ids() == ["CPD1"]
        assert destination.wells["A02"].get_solvent_volume(DMSO) == pytest.approx(50)

    def test_validation_errors_block_build(self, valid_tables, form_values, transfer_log_text, preferences):
        """Test plates are not built when the input is invalid."""
        valid_tables.layout.rows[0]["Well Block"] = "A01:A05"

        result = SimulationService().build_plate_maps(valid_tables, form_values, transfer_log_text, preferences)

        assert not result.success
        assert result.plates == []

    def test_unreadable_log(self, valid_tables, form_values, preferences):
        """Test a malformed log is reported as an error."""
        result = SimulationService().build_plate_maps(valid_tables, form_values, "junk", preferences)

        assert result.errors == ["Transfer log file is empty or invalid"]
