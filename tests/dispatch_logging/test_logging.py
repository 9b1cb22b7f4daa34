import io
import json
import logging
import sys

import pytest

from core.correlation import CorrelationFilter, get_current_correlation_id, with_correlation
from dispatch_logging import (
    ContextFilter,
    DevFormatter,
    JSONFormatter,
    PIIFilter,
    current_log_fields,
    log_context,
    log_trip_context,
    setup_logging,
)
from dispatch_logging.setup import HANDLER_NAME
from settings import AppSettings


def make_record(msg: str, args: tuple = (), level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="trips.lifecycle",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield root
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.mark.unit
class TestPIIFilter:
    @pytest.mark.parametrize(
        "phone",
        ["09171234567", "0917-123-4567", "0917 123 4567", "+639171234567", "639171234567"],
    )
    def test_masks_philippine_mobiles(self, phone):
        record = make_record(f"Calling passenger at {phone}")
        PIIFilter().filter(record)
        assert record.getMessage() == "Calling passenger at [PHONE]"

    def test_masks_values_passed_as_args(self):
        record = make_record("Passenger %s reachable at %s", ("p1", "09171234567"))
        PIIFilter().filter(record)
        assert record.getMessage() == "Passenger p1 reachable at [PHONE]"

    def test_masks_email(self):
        record = make_record("Receipt sent to juan.delacruz@example.ph")
        PIIFilter().filter(record)
        assert record.getMessage() == "Receipt sent to [EMAIL]"

    def test_leaves_fares_and_ids_alone(self):
        record = make_record("Trip %s requested: fare %d", ("t-20240304", 20))
        PIIFilter().filter(record)
        assert record.args == ("t-20240304", 20)
        assert record.getMessage() == "Trip t-20240304 requested: fare 20"

    def test_broken_args_pass_through(self):
        record = make_record("fare %d", ("twenty",))
        assert PIIFilter().filter(record) is True
        assert record.args == ("twenty",)


@pytest.mark.unit
class TestContext:
    def test_log_context_injects_fields(self):
        record = make_record("Trip accepted")
        with log_context(trip_id="t1", driver_id="driver_1"):
            ContextFilter().filter(record)

        assert record.trip_id == "t1"
        assert record.driver_id == "driver_1"

    def test_nested_context_merges_and_restores(self):
        with log_context(trip_id="outer", passenger_id="p1"):
            with log_context(trip_id="inner", driver_id="driver_1"):
                assert current_log_fields() == {
                    "trip_id": "inner",
                    "passenger_id": "p1",
                    "driver_id": "driver_1",
                }
            assert current_log_fields() == {"trip_id": "outer", "passenger_id": "p1"}
        assert current_log_fields() == {}

    def test_none_values_are_skipped(self):
        with log_context(ride_id="r1", driver_id=None):
            assert current_log_fields() == {"ride_id": "r1"}

    def test_context_is_reset_after_error(self):
        with pytest.raises(RuntimeError):
            with log_context(trip_id="t1"):
                raise RuntimeError("boom")
        assert current_log_fields() == {}

    def test_explicit_record_fields_win(self):
        record = make_record("x")
        record.trip_id = "explicit"
        with log_context(trip_id="ctx"):
            ContextFilter().filter(record)
        assert record.trip_id == "explicit"


@pytest.mark.unit
class TestTripContext:
    def test_correlates_on_trip_id(self):
        with log_trip_context("t42", driver_id="driver_1"):
            assert get_current_correlation_id() == "t42"
            assert current_log_fields() == {"trip_id": "t42", "driver_id": "driver_1"}
        assert get_current_correlation_id() is None

    def test_explicit_correlation_wins(self):
        with log_trip_context("t42", correlation_id="req-7"):
            assert get_current_correlation_id() == "req-7"

    def test_keeps_caller_correlation(self):
        with with_correlation("req-1"), log_trip_context("t42"):
            record = make_record("x")
            CorrelationFilter().filter(record)
            ContextFilter().filter(record)

        assert record.correlation_id == "req-1"
        assert record.trip_id == "t42"


@pytest.mark.unit
class TestCorrelation:
    def test_with_correlation_sets_and_resets(self):
        assert get_current_correlation_id() is None
        with with_correlation("req-1"):
            record = make_record("x")
            CorrelationFilter().filter(record)
            assert record.correlation_id == "req-1"
        assert get_current_correlation_id() is None

    def test_default_correlation(self):
        record = make_record("x")
        CorrelationFilter().filter(record)
        assert record.correlation_id == "-"


@pytest.mark.unit
class TestFormatters:
    def test_json_formatter_includes_context(self):
        record = make_record("Trip searching -> driver_accepted")
        record.trip_id = "t1"
        record.correlation_id = "t1"

        data = json.loads(JSONFormatter(environment="test").format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "trips.lifecycle"
        assert data["message"] == "Trip searching -> driver_accepted"
        assert data["env"] == "test"
        assert data["trip_id"] == "t1"
        assert "driver_id" not in data

    def test_json_formatter_includes_exception(self):
        try:
            raise RuntimeError("store down")
        except RuntimeError:
            record = logging.LogRecord(
                "db", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: store down" in data["exception"]

    def test_dev_formatter_appends_tags(self):
        record = make_record("hello")
        record.trip_id = "t1"
        record.correlation_id = "c1"
        assert DevFormatter().format(record).endswith(
            "trips.lifecycle: hello [trip_id=t1 correlation_id=c1]"
        )

    def test_dev_formatter_omits_empty_tags(self):
        record = make_record("hello")
        record.correlation_id = "-"
        assert DevFormatter().format(record).endswith("trips.lifecycle: hello")


@pytest.mark.unit
class TestSetupLogging:
    def test_replaces_only_its_own_handler(self, restore_root_logger):
        root = restore_root_logger
        other = logging.NullHandler()
        root.addHandler(other)

        setup_logging(AppSettings(log_format="json"), stream=io.StringIO())
        handler = setup_logging(AppSettings(log_format="json"), stream=io.StringIO())

        ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
        assert ours == [handler]
        assert other in root.handlers
        assert isinstance(handler.formatter, JSONFormatter)
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_json_line_is_masked_and_tagged(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(AppSettings(log_level="DEBUG", log_format="json", environment="test"), stream)

        with log_trip_context("t9", passenger_id="p1"):
            logging.getLogger("dispatch").info("Passenger phone %s", "09171234567")

        data = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert data["message"] == "Passenger phone [PHONE]"
        assert data["trip_id"] == "t9"
        assert data["passenger_id"] == "p1"
        assert data["correlation_id"] == "t9"
        assert data["env"] == "test"

    def test_text_format_by_default(self, restore_root_logger):
        stream = io.StringIO()
        handler = setup_logging(AppSettings(), stream)

        logging.getLogger("dispatch").info("ready")

        assert isinstance(handler.formatter, DevFormatter)
        assert stream.getvalue().rstrip().endswith("dispatch: ready")
