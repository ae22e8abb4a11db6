"""
Unit tests for the RequestInstrumentor core.

Tests cover field ordering, the failure event, and how instrumentation
errors are contained.
"""

import logging

from honeycomb_middleware.config.settings import build_options
from honeycomb_middleware.middleware.instrumentor import RequestInstrumentor


def make_instrumentor(client_factory, **options):
    return RequestInstrumentor(build_options(**options), client_factory)


class TestNewEvent:
    """Tests for RequestInstrumentor.new_event."""
    
    def test_returns_event_from_thread_client(self, client_factory):
        instrumentor = make_instrumentor(client_factory)
        
        event = instrumentor.new_event()
        
        assert event is client_factory.events[0]
    
    def test_returns_none_when_client_factory_fails(self, caplog):
        def broken_factory(**options):
            raise ConnectionError("refused")
        
        instrumentor = RequestInstrumentor(build_options(), broken_factory)
        
        with caplog.at_level(logging.WARNING):
            assert instrumentor.new_event() is None
        
        assert caplog.records[-1].extra_data["error_code"] == "CLIENT_UNAVAILABLE"
    
    def test_returns_none_when_new_event_fails(self, caplog):
        class NoEvents:
            def new_event(self):
                raise RuntimeError("closed")
        
        instrumentor = RequestInstrumentor(build_options(), lambda **options: NoEvents())
        
        with caplog.at_level(logging.WARNING):
            assert instrumentor.new_event() is None
        
        assert caplog.records[-1].extra_data["details"] == {"error": "closed"}


class TestEmit:
    """Tests for RequestInstrumentor.emit."""
    
    def test_populates_and_sends(self, client_factory):
        instrumentor = make_instrumentor(client_factory)
        event = instrumentor.new_event()
        context = {"honeycomb.user_id": "abc", "REQUEST_METHOD": "GET"}
        
        instrumentor.emit(
            event, "200 OK", [("Content-Length", "42"), ("X-Empty", "")], 12.5,
            context, {"REQUEST_METHOD": "GET", "QUERY_STRING": ""},
        )
        
        assert event.send_count == 1
        assert event.fields == {
            "Content-Length": 42,
            "HTTP_STATUS": 200,
            "REQUEST_TIME_MS": 12.5,
            "user_id": "abc",
            "REQUEST_METHOD": "GET",
        }
        assert context == {"REQUEST_METHOD": "GET"}
    
    def test_request_fields_win_over_dynamic_fields(self, client_factory):
        instrumentor = make_instrumentor(client_factory)
        event = instrumentor.new_event()
        
        instrumentor.emit(
            event, 200, [], 1.0,
            {"honeycomb.REQUEST_METHOD": "FAKE"}, {"REQUEST_METHOD": "GET"},
        )
        
        assert event.fields["REQUEST_METHOD"] == "GET"
    
    def test_missing_status_is_skipped(self, client_factory):
        instrumentor = make_instrumentor(client_factory)
        event = instrumentor.new_event()
        
        instrumentor.emit(event, None, [], 1.0, {}, {})
        
        assert "HTTP_STATUS" not in event.fields
        assert event.send_count == 1
    
    def test_send_failure_is_logged_not_raised(self, caplog):
        class FailingEvent:
            def add_field(self, name, value):
                pass
            
            def send(self):
                raise OSError("collector unreachable")
        
        instrumentor = RequestInstrumentor(build_options(dataset="web"), lambda **o: None)
        
        with caplog.at_level(logging.WARNING):
            instrumentor.emit(FailingEvent(), 500, [], 1.0, {}, {})
        
        record = caplog.records[-1]
        assert record.extra_data["error_code"] == "EVENT_SEND_FAILED"
        assert record.extra_data["details"]["dataset"] == "web"
        assert record.extra_data["details"]["status"] == 500

    def test_context_is_cleaned_when_headers_are_malformed(self, client_factory):
        instrumentor = make_instrumentor(client_factory)
        event = instrumentor.new_event()
        context = {"honeycomb.user_id": "abc", "REQUEST_METHOD": "GET"}

        instrumentor.emit(event, 200, [("X-A", "1", "extra")], 1.0, context, {})

        assert event.send_count == 0
        assert context == {"REQUEST_METHOD": "GET"}

    def test_context_is_cleaned_when_add_field_fails(self):
        class RejectingEvent:
            def add_field(self, name, value):
                raise TypeError("unsupported value")

            def send(self):
                pass

        instrumentor = RequestInstrumentor(build_options(), lambda **o: None)
        context = {"honeycomb.a": 1, "honeycomb.b": 2}

        instrumentor.emit(RejectingEvent(), 200, [("X-A", "1")], 1.0, context, {})

        assert context == {}


class TestEmitFailure:
    """Tests for RequestInstrumentor.emit_failure."""
    
    def test_records_error_and_context(self, client_factory):
        instrumentor = make_instrumentor(client_factory, send_on_error=True)
        event = instrumentor.new_event()
        context = {"honeycomb.stage": "render"}
        
        instrumentor.emit_failure(
            event, KeyError("template"), 3.0, context, {"PATH_INFO": "/"},
        )
        
        assert instrumentor.send_on_error is True
        assert event.send_count == 1
        assert event.fields == {
            "REQUEST_TIME_MS": 3.0,
            "error": "KeyError",
            "error_message": "'template'",
            "stage": "render",
            "PATH_INFO": "/",
        }
        assert context == {}

    def test_context_is_cleaned_when_add_field_fails(self):
        class RejectingEvent:
            def add_field(self, name, value):
                raise TypeError("unsupported value")

            def send(self):
                pass

        instrumentor = RequestInstrumentor(build_options(), lambda **o: None)
        context = {"honeycomb.stage": "render"}

        instrumentor.emit_failure(RejectingEvent(), ValueError("x"), 1.0, context, {})

        assert context == {}
