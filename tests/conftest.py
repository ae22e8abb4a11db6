"""
Shared pytest fixtures and configuration for all tests.
"""
import os
import threading
from typing import Any, Dict, List

import pytest
from hypothesis import settings, Verbosity, Phase

from honeycomb_middleware.config.settings import clear_settings_cache

# Hypothesis profiles, selected with HYPOTHESIS_PROFILE
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class RecordingEvent:
    """Stand-in for libhoney.Event that keeps its fields in a dict."""
    
    def __init__(self, client: "RecordingClient"):
        self.client = client
        self.fields: Dict[str, Any] = {}
        self.send_count = 0
    
    def add_field(self, name: str, value: Any) -> None:
        self.fields[name] = value
    
    def add(self, data: Dict[str, Any]) -> None:
        for name, value in data.items():
            self.add_field(name, value)
    
    def send(self) -> None:
        self.send_count += 1
        self.client.sent.append(self)


class RecordingClient:
    """Stand-in for libhoney.Client."""
    
    def __init__(self, **options: Any):
        self.options = options
        self.events: List[RecordingEvent] = []
        self.sent: List[RecordingEvent] = []
        self.closed = False
    
    def new_event(self) -> RecordingEvent:
        event = RecordingEvent(self)
        self.events.append(event)
        return event
    
    def close(self) -> None:
        self.closed = True


class RecordingClientFactory:
    """Client factory that records every client it builds."""
    
    def __init__(self):
        self.clients: List[RecordingClient] = []
        self._lock = threading.Lock()
    
    def __call__(self, **options: Any) -> RecordingClient:
        client = RecordingClient(**options)
        with self._lock:
            self.clients.append(client)
        return client
    
    @property
    def events(self) -> List[RecordingEvent]:
        return [event for client in self.clients for event in client.events]
    
    @property
    def sent(self) -> List[RecordingEvent]:
        return [event for client in self.clients for event in client.sent]


@pytest.fixture
def client_factory() -> RecordingClientFactory:
    """Factory producing recording telemetry clients."""
    return RecordingClientFactory()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Drop cached environment settings between tests."""
    clear_settings_cache()
    yield
    clear_settings_cache()
