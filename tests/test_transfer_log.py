"""Tests for transfer log parsing."""
import pytest

from ripple.services import TransferLogParser, TransferLogFormatError


@pytest.fixture
def parser():
    """Transfer log parser."""
    return TransferLogParser()


class TestTransferLogParser:
    """Test cases for TransferLogParser."""

    def test_parse_log(self, parser, transfer_log_text):
        """Test transfers are read in order after the details marker."""
        log = parser.parse_text(transfer_log_text)

        assert len(log.transfers) == 4
        first = log.transfers[0]
        assert first.source_barcode == "S1"
        assert first.source_well_id == "A01"
        assert first.destination_barcode == "IntPlate_1"
        assert first.destination_well_id == "A01"
        assert first.volume == 100
        assert log.barcodes() == ["S1", "IntPlate_1", "DestPlate_1"]

    def test_first_survey_value_kept(self, parser, transfer_log_text):
        """Test re-surveys of a well do not replace the first value."""
        log = parser.parse_text(transfer_log_text)

        assert log.surveyed_volumes["S1"]["A01"] == 45
        assert log.surveyed_volumes["S1"]["A02"] == 48
        assert log.surveyed_volumes["IntPlate_1"]["A01"] == 9.9

    def test_non_numeric_volume_skipped(self, parser):
        """Test rows without a numeric volume are dropped."""
        text = "\n".join([
            "[DETAILS]",
            "Source Plate Barcode,Source Well,Destination Plate Barcode,Destination Well,Actual Volume",
            "S1,A01,D1,A01,abc",
            "S1,A02,D1,A02,2.5",
        ])
        log = parser.parse_text(text)

        assert [t.source_well_id for t in log.transfers] == ["A02"]
        assert log.surveyed_volumes == {}

    def test_missing_details(self, parser):
        """Test a log without the details marker is rejected."""
        with pytest.raises(TransferLogFormatError):
            parser.parse_text("Source Plate Barcode,Source Well\nS1,A01\n")

    def test_empty_log(self, parser):
        """Test an empty log is rejected."""
        with pytest.raises(TransferLogFormatError):
            parser.parse_text("")

    def test_missing_columns(self, parser):
        """Test required columns are checked."""
        text = "[DETAILS]\nSource Plate Barcode,Source Well,Actual Volume\nS1,A01,5\n"
        with pytest.raises(TransferLogFormatError, match="Destination Plate Barcode"):
            parser.parse_text(text)

    def test_parse_bytes(self, parser, transfer_log_text):
        """Test byte-order marks are stripped on decode."""
        content = ("\ufeff" + transfer_log_text).encode("utf-8")
        log = parser.parse_bytes(content)
        assert len(log.transfers) == 4

    def test_trailing_comma_rows(self, parser):
        """Test rows ending in a comma keep their columns aligned."""
        text = "\n".join([
            "[DETAILS]",
            "Source Plate Barcode,Source Well,Destination Plate Barcode,Destination Well,Actual Volume",
            "S1,A01,D1,B02,50,",
            "S1,A03,D1,B04,25,",
        ])
        log = parser.parse_text(text)

        assert [(t.source_well_id, t.destination_well_id, t.volume) for t in log.transfers] == [
            ("A01", "B02", 50.0),
            ("A03", "B04", 25.0),
        ]

    def test_overlong_row_dropped(self, parser):
        """Test a row with too many fields is dropped and the rest are kept."""
        text = "\n".join([
            "[DETAILS]",
            "Source Plate Barcode,Source Well,Destination Plate Barcode,Destination Well,Actual Volume",
            "S1,A01,D1,B02,50",
            "S1,A02,D1,B03,10,x,y",
            "S1,A03,D1,B04,25",
        ])
        log = parser.parse_text(text)

        assert [t.source_well_id for t in log.transfers] == ["A01", "A03"]

    def test_survey_well_ids_normalized(self, parser):
        """Test A1 and A01 share one first-seen survey value."""
        text = "\n".join([
            "[DETAILS]",
            "Source Plate Barcode,Source Well,Destination Plate Barcode,Destination Well,Actual Volume,Survey Fluid Volume",
            "S1,A1,D1,B02,50,40",
            "S1,A01,D1,B03,50,35",
        ])
        log = parser.parse_text(text)

        assert log.surveyed_volumes == {"S1": {"A01": 40.0}}
