"""Process-wide advisor runtime, created lazily on first use."""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from kira_advisor.agent import AgentOrchestrator
from kira_advisor.classification import ClassificationEngine
from kira_advisor.clients import create_llm_client
from kira_advisor.clients.base import LLMClient
from kira_advisor.extraction import VisionExtractionService
from kira_advisor.receipts import ReceiptProcessor
from kira_advisor.store import LedgerStore, create_store
from kira_advisor.tools import ToolRegistry, build_advisor_registry
from kira_advisor.valuation import LLMValuator

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Once(Generic[T]):
    """Thread-safe, exactly-once lazy initializer.

    The factory runs at most once even when many threads or coroutines call
    ``get`` at the same time. The factory must be synchronous: no coroutine
    can interleave while it holds the lock.
    """

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._lock = threading.Lock()
        self._value: T | None = None
        self._initialized = False

    def get(self) -> T:
        if self._initialized:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._initialized:
                self._value = self._factory()
                self._initialized = True
        return self._value  # type: ignore[return-value]

    @property
    def initialized(self) -> bool:
        return self._initialized

    def reset(self) -> None:
        """Drop the cached value so the next ``get`` builds a new one."""
        with self._lock:
            self._value = None
            self._initialized = False


@dataclass(frozen=True)
class AdvisorRuntime:
    """The shared model client, store, tool registrations, and services."""

    llm_client: LLMClient
    store: LedgerStore
    registry: ToolRegistry
    agent: AgentOrchestrator
    receipts: ReceiptProcessor


def build_runtime() -> AdvisorRuntime:
    """Create the model client and register the advisor tools."""
    llm_client = create_llm_client()
    store = create_store()
    registry = build_advisor_registry(store)
    runtime = AdvisorRuntime(
        llm_client=llm_client,
        store=store,
        registry=registry,
        agent=AgentOrchestrator(llm_client, registry, store),
        receipts=ReceiptProcessor(
            extractor=VisionExtractionService(llm_client),
            engine=ClassificationEngine(LLMValuator(llm_client)),
            store=store,
        ),
    )
    logger.info(
        "runtime_initialized",
        client=type(llm_client).__name__,
        store=type(store).__name__,
        tools=registry.names,
    )
    return runtime


_runtime: Once[AdvisorRuntime] = Once(build_runtime)


def get_runtime() -> AdvisorRuntime:
    """Return the process-wide runtime, building it on first call."""
    return _runtime.get()


def get_agent() -> AgentOrchestrator:
    """Return the process-wide agent orchestrator."""
    return get_runtime().agent


def reset_runtime() -> None:
    """Forget the current runtime; the next call rebuilds it."""
    _runtime.reset()
