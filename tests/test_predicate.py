"""
Tests for the deletion predicate and the values destroy and recover write.
"""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from paranoid_toolkit.soft_delete import (
    ColumnType,
    ParanoidOptions,
    RecoverOptions,
    active_marker,
    deleted_marker,
    is_deleted_value,
)
from paranoid_toolkit.soft_delete.predicate import utc_now

TIME = ParanoidOptions()
BOOLEAN_NOT_NULL = ParanoidOptions(
    column="active", column_type=ColumnType.BOOLEAN, allow_nulls=False
)
BOOLEAN_NULLABLE = ParanoidOptions(column="flag", column_type=ColumnType.BOOLEAN)
STRING_SENTINEL = ParanoidOptions(
    column="status", column_type=ColumnType.STRING, deleted_value="gone"
)
STRING_ANY = ParanoidOptions(column="removed", column_type=ColumnType.STRING)

ALL_OPTIONS = [TIME, BOOLEAN_NOT_NULL, BOOLEAN_NULLABLE, STRING_SENTINEL, STRING_ANY]


class TestIsDeletedValue:
    """Test the case analysis of is_deleted_value."""

    def test_time_column(self):
        assert is_deleted_value(TIME, datetime(2024, 1, 1))
        assert not is_deleted_value(TIME, None)

    def test_boolean_not_nullable_false_is_deleted(self):
        assert is_deleted_value(BOOLEAN_NOT_NULL, False)
        assert not is_deleted_value(BOOLEAN_NOT_NULL, True)
        assert not is_deleted_value(BOOLEAN_NOT_NULL, None)

    def test_boolean_nullable_any_value_is_deleted(self):
        assert is_deleted_value(BOOLEAN_NULLABLE, True)
        assert is_deleted_value(BOOLEAN_NULLABLE, False)
        assert not is_deleted_value(BOOLEAN_NULLABLE, None)

    def test_string_sentinel(self):
        assert is_deleted_value(STRING_SENTINEL, "gone")
        assert not is_deleted_value(STRING_SENTINEL, "open")
        assert not is_deleted_value(STRING_SENTINEL, None)

    def test_string_without_sentinel(self):
        assert is_deleted_value(STRING_ANY, "anything")
        assert is_deleted_value(STRING_ANY, "")
        assert not is_deleted_value(STRING_ANY, None)


class TestMarkers:
    """Destroy and recover must write values the predicate agrees with."""

    @pytest.mark.parametrize("options", ALL_OPTIONS)
    def test_markers_round_trip_through_predicate(self, options):
        assert is_deleted_value(options, deleted_marker(options))
        assert not is_deleted_value(options, active_marker(options))

    def test_time_marker_uses_given_time(self):
        now = datetime(2024, 5, 1, 12, 0)
        assert deleted_marker(TIME, now) == now

    def test_time_marker_is_naive_utc(self):
        marker = deleted_marker(TIME)
        assert marker.tzinfo is None
        assert abs(utc_now() - marker) < timedelta(seconds=5)

    def test_boolean_markers(self):
        assert deleted_marker(BOOLEAN_NOT_NULL) is False
        assert active_marker(BOOLEAN_NOT_NULL) is True
        assert deleted_marker(BOOLEAN_NULLABLE) is True
        assert active_marker(BOOLEAN_NULLABLE) is None

    def test_string_markers(self):
        assert deleted_marker(STRING_SENTINEL) == "gone"
        assert deleted_marker(STRING_ANY) == "deleted"
        assert deleted_marker(STRING_ANY.model_copy(update={"string_marker": "x"})) == "x"


class TestOptionsValidation:
    """Test ParanoidOptions and RecoverOptions models."""

    def test_defaults(self):
        options = ParanoidOptions()
        assert options.column == "deleted_at"
        assert options.column_type == ColumnType.TIME
        assert options.recursive is True
        assert options.recovery_window == timedelta(minutes=2)

    def test_options_are_frozen(self):
        with pytest.raises(ValidationError):
            TIME.column = "other"

    def test_negative_window_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            ParanoidOptions(recovery_window=timedelta(seconds=-1))
        assert "cannot be negative" in str(exc_info.value)

    def test_sentinel_requires_string_column(self):
        with pytest.raises(ValidationError):
            ParanoidOptions(column_type=ColumnType.TIME, deleted_value="gone")

    def test_column_type_from_string(self):
        assert ParanoidOptions(column_type="boolean").column_type == ColumnType.BOOLEAN

    def test_recover_options_default_from_type(self):
        options = ParanoidOptions(recursive=False, recovery_window=timedelta(hours=1))
        recover = RecoverOptions.for_options(options)
        assert recover.recursive is False
        assert recover.recovery_window == timedelta(hours=1)

    def test_recover_options_explicit_arguments_win(self):
        recover = RecoverOptions.for_options(
            TIME, recursive=False, recovery_window=timedelta(0)
        )
        assert recover.recursive is False
        assert recover.recovery_window == timedelta(0)
