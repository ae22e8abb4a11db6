"""
Telemetry client registry.

Each registry hands out one telemetry client per thread, created lazily on
first use with the configured options. The per-request path reads a
thread-local attribute and takes no lock; a lock guards only the list of
created clients, which is used to flush and close them on shutdown and to
close the clients of threads that have exited.
"""

import logging
import threading
import weakref
from typing import Any, Callable, List, Optional, Tuple

import libhoney

from honeycomb_middleware.config.settings import HoneycombSettings
from honeycomb_middleware.errors.exceptions import client_unavailable

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]


def create_libhoney_client(**options: Any) -> libhoney.Client:
    """
    Build a libhoney client.
    
    Only the options that were configured are passed, so libhoney's own
    defaults (e.g. the public API host) apply to the rest.
    
    Args:
        **options: writekey, dataset and api_host, each optional
        
    Returns:
        A new libhoney client
    """
    return libhoney.Client(**options)


class ClientRegistry:
    """
    One telemetry client per execution context (thread).
    
    The registry is owned by a middleware instance rather than stored in
    process-wide state, so two middlewares configured for different
    datasets never share a client.

    Each client is tracked with a weak reference to the thread that created
    it. Whenever a new client is created, clients whose thread has exited
    are closed and dropped, so servers that spawn a thread per request do
    not accumulate clients.
    """
    
    def __init__(
        self,
        settings: HoneycombSettings,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Initialize the registry. No client is created here.
        
        Args:
            settings: Validated middleware settings
            client_factory: Callable building a client from keyword options;
                           defaults to create_libhoney_client
        """
        self.settings = settings
        self._client_factory = client_factory or create_libhoney_client
        self._local = threading.local()
        self._lock = threading.Lock()
        self._clients: List[Tuple[weakref.ref, Any]] = []
    
    def get_client(self) -> Any:
        """
        Get the client for the current thread, creating it on first use.
        
        Returns:
            The telemetry client bound to the calling thread
            
        Raises:
            InstrumentationError: If the client factory fails
        """
        client = getattr(self._local, "client", None)
        if client is not None:
            return client
        
        options = self.settings.client_options()
        try:
            client = self._client_factory(**options)
        except Exception as e:
            raise client_unavailable(
                "Failed to create telemetry client",
                details={"error": str(e), "dataset": options.get("dataset")}
            ) from e
        
        self._local.client = client
        with self._lock:
            finished = self._prune_finished_threads()
            self._clients.append((weakref.ref(threading.current_thread()), client))
        if finished:
            self._close_clients(finished)
        
        logger.info("Telemetry client created", extra={
            "extra_data": {
                "thread": threading.current_thread().name,
                "dataset": options.get("dataset"),
                "api_host": options.get("api_host"),
            }
        })
        return client
    
    @property
    def client_count(self) -> int:
        """Number of clients currently tracked by this registry."""
        with self._lock:
            return len(self._clients)
    
    def close(self) -> None:
        """
        Flush and close every client this registry created.
        
        Threads that serve a request afterwards keep their stale client
        reference; call this only when the host is shutting down.
        """
        with self._lock:
            clients = [client for _, client in self._clients]
            self._clients = []
        
        self._close_clients(clients)
        logger.debug("Telemetry clients closed", extra={
            "extra_data": {"count": len(clients)}
        })
    
    def _prune_finished_threads(self) -> List[Any]:
        """Drop entries whose thread has exited; the caller holds the lock."""
        finished = []
        alive = []
        for thread_ref, client in self._clients:
            thread = thread_ref()
            if thread is None or not thread.is_alive():
                finished.append(client)
            else:
                alive.append((thread_ref, client))
        self._clients = alive
        return finished
    
    def _close_clients(self, clients: List[Any]) -> None:
        for client in clients:
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as e:
                logger.warning(
                    "Failed to close telemetry client",
                    extra={"extra_data": {"error": str(e)}}
                )
