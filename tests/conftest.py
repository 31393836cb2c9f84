"""Shared test fixtures for Doc-Agent tests.

Fixture overview::

    temp_home (isolated HOME with XDG paths)
    └── storage_dir (~/.local/share/doc-agent)

    clock (FakeClock, advances one second per call)
    id_factory (Counter ids: id-1, id-2, ...)

    sample_sections
    └── document (InMemoryDocument with references and a citation style)
        └── session (AgentSession over the document, in-memory storage)

    operation_store (OperationStore over a MemoryStore)
    make_operation (factory for stored AgentOperation records)
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from doc_agent.config.models import AgentConfig
from doc_agent.core.logging import LOGGER_NAME
from doc_agent.diff.models import DiffCategory, DiffItem, DiffKind
from doc_agent.document.memory import InMemoryDocument, Section
from doc_agent.execution.models import AgentOperation, ExecutionResult, FailedStep
from doc_agent.planning.models import (
    Command,
    Plan,
    Scope,
    ScopeKind,
    StructureSplit,
    TimeEstimate,
)
from doc_agent.session import AgentSession
from doc_agent.storage.backend import MemoryStore
from doc_agent.storage.operations import OperationStore

START_TIME = datetime(2024, 5, 1, 9, 0, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic clock advancing by a fixed step on every call."""

    def __init__(self, start: datetime = START_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


class Counter:
    """Sequential id factory."""

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.prefix}-{self.count}"


# ============================================================
# Environment Fixtures
# ============================================================


@pytest.fixture
def temp_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated HOME so config, logs and data never touch the real one."""
    home = tmp_path / "home"
    home.mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    for name in list(os.environ):
        if name.startswith("DOC_AGENT_"):
            monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def storage_dir(temp_home: Path) -> Path:
    path = temp_home / ".local" / "share" / "doc-agent"
    path.mkdir(parents=True)
    return path


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Undo handler changes made by setup_logging()."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


# ============================================================
# Determinism Fixtures
# ============================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def id_factory() -> Counter:
    return Counter()


# ============================================================
# Document Fixtures
# ============================================================


@pytest.fixture
def sample_sections() -> list[Section]:
    return [
        Section("introduction", "Introduction", "This paper can't cover everything."),
        Section("chapter-2", "Background and Methods", "Prior work.  We didn't stop there.", level=1),
        Section("results", "Results", "Numbers from Table 2."),
        Section("discussion", "Discussion", "What it means.", level=2),
    ]


@pytest.fixture
def document(sample_sections: list[Section]) -> InMemoryDocument:
    """Document with four sections, three references and MLA citations."""
    return InMemoryDocument.from_sections(
        sample_sections,
        citation_style="MLA",
        references=[
            "Smith, J. Writing Tools. 2020.",
            "Lee, K. Document Models. 2021.",
            "Ng, A. Reversible Edits. 2022.",
        ],
    )


@pytest.fixture
async def session(
    document: InMemoryDocument,
    clock: FakeClock,
    id_factory: Counter,
) -> AsyncGenerator[AgentSession, None]:
    """Session with in-memory storage and deterministic ids and time."""
    agent = AgentSession(
        document,
        config=AgentConfig(),
        backend=MemoryStore(),
        id_factory=id_factory,
        clock=clock,
    )
    yield agent
    agent.close()


# ============================================================
# Operation Fixtures
# ============================================================


@pytest.fixture
async def operation_store() -> AsyncGenerator[OperationStore, None]:
    store = OperationStore(MemoryStore(), max_entries=3)
    yield store
    store.close()


@pytest.fixture
def make_operation() -> Callable[..., AgentOperation]:
    """Factory for operation records with a one-step split plan."""

    def factory(
        operation_id: str = "op-1",
        created_at: datetime = START_TIME,
        failed: bool = False,
        reversible: bool = True,
        reverted_at: datetime | None = None,
    ) -> AgentOperation:
        scope = Scope(ScopeKind.CHAPTER, id="chapter-2")
        command = Command(
            text="split chapter 2 into related-work and methodology",
            scope=scope,
            id=f"cmd-{operation_id}",
            created_at=created_at,
        )
        step = StructureSplit(id="step-1", target="chapter-2", into=("related-work", "methodology"))
        plan = Plan(
            id=f"plan-{operation_id}",
            command_id=command.id,
            scope=scope,
            steps=(step,),
            estimated_time=TimeEstimate(1, 2),
            created_at=created_at,
        )
        diff = DiffItem(
            path="/document/outline",
            kind=DiffKind.MODIFY,
            category=DiffCategory.STRUCTURE,
            description="Split chapter-2",
            before="introduction\nchapter-2",
            after="introduction\nrelated-work\nmethodology",
            section_id="chapter-2",
        )
        if failed:
            result = ExecutionResult.build(
                plan_id=plan.id,
                completed_steps=[],
                failed_steps=[FailedStep("step-1", "boom", retryable=True)],
                diffs=[],
                applied_at=created_at,
                duration_ms=5,
            )
        else:
            result = ExecutionResult.build(
                plan_id=plan.id,
                completed_steps=["step-1"],
                failed_steps=[],
                diffs=[diff],
                applied_at=created_at,
                duration_ms=12,
            )
        return AgentOperation(
            id=operation_id,
            command=command,
            plan=plan,
            result=result,
            reversible=reversible,
            created_at=created_at,
            applied_at=created_at,
            reverted_at=reverted_at,
        )

    return factory
