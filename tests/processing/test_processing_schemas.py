"""Tests for extraction input and batch result schemas."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from personnel_ledger.processing.schemas import BatchResult, ExtractedTuple, TupleOutcome


class TestExtractedTuple:
    def test_accepts_extractor_field_names(self):
        extracted = ExtractedTuple.model_validate(
            {
                "name": "Bob",
                "arrival": "06:30",
                "departure": "15:00",
                "regularHours": 8,
                "overtimeHours": "0.5",
                "activities": ["framing", "cleanup"],
            }
        )

        assert extracted.regular_hours == Decimal("8")
        assert extracted.overtime_hours == Decimal("0.5")
        assert extracted.doubletime_hours == Decimal("0")
        assert extracted.activities == ["framing", "cleanup"]

    def test_accepts_snake_case(self):
        extracted = ExtractedTuple(name="Bob", regular_hours=Decimal("4"))

        assert extracted.regular_hours == Decimal("4")

    def test_negative_hours_pass_schema(self):
        extracted = ExtractedTuple(name="Bob", regularHours=Decimal("-1"))

        assert extracted.regular_hours == Decimal("-1")

    @pytest.mark.parametrize("value", ["6:30", "24:00", "noon", "07:60"])
    def test_rejects_bad_clock_times(self, value):
        with pytest.raises(ValidationError, match="HH:MM"):
            ExtractedTuple(name="Bob", arrival=value)

    @pytest.mark.parametrize("value", ["", "   ", "\t\n"])
    def test_blank_name_rejected(self, value):
        with pytest.raises(ValidationError):
            ExtractedTuple(name=value)

    def test_name_is_stripped(self):
        assert ExtractedTuple(name="  Bob ").name == "Bob"


class TestBatchResult:
    def test_counts(self):
        result = BatchResult(
            report_id="r-1",
            outcomes=[
                TupleOutcome(index=0, spoken_name="Bob", outcome="resolved", entry_id="e-1"),
                TupleOutcome(
                    index=1, spoken_name="Ana", outcome="resolved", entry_id="e-2", entry_replayed=True
                ),
                TupleOutcome(index=2, spoken_name="Mike", outcome="needs_review", review_item_id="i-1"),
                TupleOutcome(
                    index=3, spoken_name="Mike", outcome="needs_review", review_item_id="i-1"
                ),
                TupleOutcome(index=4, spoken_name="Sam", outcome="rejected", error="bad hours"),
            ],
        )

        assert result.entries_created == 1
        assert result.entries_replayed == 1
        assert result.review_item_ids == ["i-1"]
        assert [o.spoken_name for o in result.rejected] == ["Sam"]
