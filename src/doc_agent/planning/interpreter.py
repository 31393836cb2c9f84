"""Command interpreters.

An interpreter turns command text into concrete plan steps. The planner
only depends on the CommandInterpreter contract, so any implementation
(a language model, a rules engine, a test double) can be plugged in.

KeywordInterpreter is the bundled, deterministic implementation. It
splits a command into clauses and matches each clause against a table of
regex rules, one rule per step kind.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from doc_agent.core.logging import get_logger
from doc_agent.document.base import heading_level, section_body_path, section_title_path

from .models import (
    CitationFormat,
    FigureInsertFromTable,
    LanguageRewrite,
    PlanStep,
    ReferenceSupplement,
    Scope,
    ScopeKind,
    StructureLevelAdjust,
    StructureMerge,
    StructureReorder,
    StructureSplit,
)

if TYPE_CHECKING:
    from doc_agent.document.base import DocumentSnapshot

logger = get_logger("planning.interpreter")

Rewriter = Callable[[str, str], str]


class CommandInterpreter(ABC):
    """Maps command text, scope and document to plan steps.

    Implementations may be non-deterministic, but must be pure with
    respect to their inputs when used in tests. Steps may leave ``id``
    empty; the planner assigns ``step-<n>`` by position, so a step can
    refer to an earlier one through that id in ``depends_on``.
    """

    @abstractmethod
    async def interpret(
        self,
        text: str,
        scope: Scope,
        snapshot: DocumentSnapshot,
    ) -> list[PlanStep]:
        """Interpret a command.

        Args:
            text: Command text.
            scope: Target scope.
            snapshot: Read-only document view.

        Returns:
            Zero or more steps, in execution order.
        """
        ...


CONTRACTIONS: dict[str, str] = {
    "can't": "cannot",
    "won't": "will not",
    "don't": "do not",
    "doesn't": "does not",
    "didn't": "did not",
    "isn't": "is not",
    "aren't": "are not",
    "wasn't": "was not",
    "it's": "it is",
    "that's": "that is",
    "there's": "there is",
    "we're": "we are",
    "they're": "they are",
    "we've": "we have",
    "i'm": "I am",
}

_CONTRACTION_RE = re.compile(
    r"\b(" + "|".join(re.escape(c) for c in CONTRACTIONS) + r")\b",
    re.IGNORECASE,
)


def tone_rewrite(text: str, tone: str) -> str:
    """Default rewriter: normalize spacing, expand contractions for formal tone."""
    lines = [" ".join(line.split()) for line in text.splitlines()]
    result = "\n".join(lines).strip()
    if tone == "formal":

        def expand(match: re.Match[str]) -> str:
            word = match.group(0)
            replacement = CONTRACTIONS[word.lower()]
            if word[0].isupper():
                replacement = replacement[0].upper() + replacement[1:]
            return replacement

        result = _CONTRACTION_RE.sub(expand, result)
    return result


def slugify(text: str) -> str:
    """Turn free text into a section id."""
    return re.sub(r"[^a-z0-9.]+", "-", text.lower()).strip("-")


@dataclass(frozen=True)
class ExampleCommand:
    """A sample command shown to users."""

    text: str
    description: str


EXAMPLE_COMMANDS: tuple[ExampleCommand, ...] = (
    ExampleCommand(
        "split chapter 2 into related work and methodology; unify citations to APA; "
        "insert a bar chart from table 2",
        "Restructure, normalize citation format and insert a chart",
    ),
    ExampleCommand(
        "promote section 3.1 to level 1, then merge 3.2 into 3.1, then rewrite in a formal tone",
        "Adjust heading level, merge content and polish tone",
    ),
    ExampleCommand(
        "add 2 references to section related-work, then convert citations to APA",
        "Supplement references and normalize format",
    ),
    ExampleCommand(
        "move methodology before literature-review",
        "Reorder sections",
    ),
)

_CLAUSE_SPLIT = re.compile(
    r"\s*(?:;|\.\s+|\bthen\b|,\s*(?=(?:and\s+)?(?:split|unify|convert|reformat|standardi[sz]e|switch|"
    r"insert|add|supplement|rewrite|rephrase|polish|move|merge|promote|demote)\b))\s*",
    re.IGNORECASE,
)

_SECTION_WORD = r"(?:(?:section|chapter)\s+)?"
_SECTION_ID = r"[\w][\w.-]*"


@dataclass
class _Context:
    """Per-command state shared by the clause rules."""

    scope: Scope
    snapshot: DocumentSnapshot
    steps: list[PlanStep]

    @property
    def scoped_section(self) -> str | None:
        if self.scope.kind is ScopeKind.DOCUMENT:
            return None
        return self.scope.id

    def next_id(self) -> str:
        return f"step-{len(self.steps) + 1}"

    def split_producing(self, section_id: str) -> StructureSplit | None:
        for step in self.steps:
            if isinstance(step, StructureSplit) and section_id in step.into:
                return step
        return None

    def split_of(self, section_id: str) -> StructureSplit | None:
        for step in self.steps:
            if isinstance(step, StructureSplit) and step.target == section_id:
                return step
        return None


class KeywordInterpreter(CommandInterpreter):
    """Rule-based interpreter for English editing commands.

    Recognized clauses:
    - split [chapter N] into A and B
    - unify/convert/reformat citations to STYLE
    - insert a [bar|line|scatter|pie] chart [from table N] [in section S]
    - rewrite/rephrase/polish [in a formal|neutral|explanatory tone]
    - move S before|after T
    - merge A into|with B
    - promote|demote S [to level N]
    - add|supplement [N] references [to section S]
    """

    RULES: ClassVar[list[tuple[str, str]]] = [
        ("split", r"\bsplit\s+(?:(?P<unit>chapter|section)\s+(?P<num>[\w.-]+)\s+)?into\s+(?P<parts>.+)"),
        (
            "citation",
            r"\b(?:unify|convert|reformat|standardi[sz]e|switch)\b.*?\b(?:citations?|references?)\b"
            r".*?\b(?:to|as|in|into)\s+(?P<style>[A-Za-z]+)",
        ),
        ("figure", r"\binsert\b.*?\b(?:chart|figure|graph|plot)\b"),
        ("rewrite", r"\b(?:rewrite|rephrase|polish)\b"),
        (
            "reorder",
            rf"\bmove\s+{_SECTION_WORD}(?P<source>{_SECTION_ID})\s+(?P<placement>before|after)\s+"
            rf"{_SECTION_WORD}(?P<target>{_SECTION_ID})",
        ),
        (
            "merge",
            rf"\bmerge\s+{_SECTION_WORD}(?P<a>{_SECTION_ID})\s+(?P<how>into|with|and)\s+"
            rf"{_SECTION_WORD}(?P<b>{_SECTION_ID})",
        ),
        (
            "level",
            rf"\b(?P<verb>promote|demote)\s+{_SECTION_WORD}(?P<target>{_SECTION_ID})"
            r"(?:\s+to\s+level\s+(?P<level>[1-6]))?",
        ),
        (
            "reference",
            r"\b(?:add|supplement)\s+(?:(?P<count>\d+)\s+)?(?:more\s+)?(?:references|citations)\b"
            rf"(?:\s+to\s+{_SECTION_WORD}(?P<section>{_SECTION_ID}))?",
        ),
    ]

    def __init__(self, rewriter: Rewriter | None = None) -> None:
        """Initialize the interpreter.

        Args:
            rewriter: Produces replacement text for rewrites from
                (original text, tone). Defaults to tone_rewrite.
        """
        self._rewriter = rewriter or tone_rewrite
        self._compiled = [(name, re.compile(pattern, re.IGNORECASE)) for name, pattern in self.RULES]

    @staticmethod
    def split_clauses(text: str) -> list[str]:
        """Break a command into independent clauses."""
        return [c.strip(" .,") for c in _CLAUSE_SPLIT.split(text) if c and c.strip(" .,")]

    async def interpret(
        self,
        text: str,
        scope: Scope,
        snapshot: DocumentSnapshot,
    ) -> list[PlanStep]:
        ctx = _Context(scope=scope, snapshot=snapshot, steps=[])

        for clause in self.split_clauses(text):
            for name, pattern in self._compiled:
                match = pattern.search(clause)
                if match is None:
                    continue
                builder = getattr(self, f"_build_{name}")
                ctx.steps.extend(builder(match, clause, ctx))
                break
            else:
                logger.debug(f"No rule matched clause: {clause!r}")

        return ctx.steps

    def _build_split(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        target = ctx.scoped_section
        if target is None and match.group("unit"):
            target = f"{match.group('unit').lower()}-{match.group('num')}"
        parts = re.split(r"\s*(?:,|\band\b)\s*", match.group("parts"))
        into = tuple(slugify(p) for p in parts if slugify(p))
        return [
            StructureSplit(
                id=ctx.next_id(),
                target=target or "",
                into=into,
                description=f"Split {target or 'the section'} into {', '.join(into)}",
            )
        ]

    def _build_citation(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        raw = match.group("style")
        style = next((s for s in CitationFormat.STYLES if s.lower() == raw.lower()), raw)
        count = len(ctx.snapshot.references())
        return [
            CitationFormat(
                id=ctx.next_id(),
                style=style,
                affected_count=count,
                description=f"Unify {count} citation(s) to {style}",
            )
        ]

    def _build_figure(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        table = re.search(r"\btable[\s-]*(?P<num>\d+)\b", clause, re.IGNORECASE)
        chart = re.search(r"\b(bar|line|scatter|pie)\b", clause, re.IGNORECASE)
        explicit = re.search(rf"\b(?:in|after)\s+section\s+(?P<pos>{_SECTION_ID})", clause, re.IGNORECASE)

        position = explicit.group("pos") if explicit else ctx.scoped_section
        if position is not None:
            split = ctx.split_of(position)
            if split is not None and split.into:
                position = split.into[0]
        elif ctx.snapshot.outline():
            position = ctx.snapshot.outline()[-1]

        depends_on: tuple[str, ...] = ()
        producer = ctx.split_producing(position) if position else None
        if producer is not None:
            depends_on = (producer.id,)

        figure_count = sum(isinstance(s, FigureInsertFromTable) for s in ctx.steps)
        chart_type = chart.group(1).lower() if chart else "bar"
        num = table.group("num") if table else ""
        return [
            FigureInsertFromTable(
                id=ctx.next_id(),
                table_id=f"table-{num}" if num else "",
                chart_type=chart_type,
                figure_id=f"fig-new-{figure_count + 1}",
                caption=f"Chart generated from Table {num}" if num else "Generated chart",
                source_ref=f"Table {num}" if num else "",
                position=position or "",
                depends_on=depends_on,
                description=f"Insert a {chart_type} chart" + (f" from Table {num}" if num else ""),
            )
        ]

    def _build_rewrite(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        tone_match = re.search(r"\b(formal|neutral|explanatory)\b", clause, re.IGNORECASE)
        tone = tone_match.group(1).lower() if tone_match else "formal"

        if ctx.scope.kind is ScopeKind.DOCUMENT:
            scopes = [Scope.section(sid) for sid in ctx.snapshot.outline()]
        else:
            scopes = [ctx.scope]

        steps: list[PlanStep] = []
        for target in scopes:
            if target.range is not None:
                original = ctx.snapshot.resolve(target)
            else:
                original = ctx.snapshot.get(section_body_path(target.id or ""))
            steps.append(
                LanguageRewrite(
                    id=f"step-{len(ctx.steps) + len(steps) + 1}",
                    scope=target,
                    tone=tone,
                    replacement=self._rewriter(original or "", tone),
                    description=f"Rewrite {target} in a {tone} tone",
                )
            )
        return steps

    def _build_reorder(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        source, target = match.group("source"), match.group("target")
        placement = match.group("placement").lower()
        return [
            StructureReorder(
                id=ctx.next_id(),
                source=source,
                target=target,
                placement=placement,
                description=f"Move {source} {placement} {target}",
            )
        ]

    def _build_merge(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        a, b = match.group("a"), match.group("b")
        into = b if match.group("how").lower() == "into" else a
        outline = ctx.snapshot.outline()
        pair = [a, b]
        if a in outline and b in outline:
            pair.sort(key=outline.index)
        return [
            StructureMerge(
                id=ctx.next_id(),
                sources=tuple(pair),
                into=into,
                description=f"Merge {', '.join(s for s in pair if s != into)} into {into}",
            )
        ]

    def _build_level(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        target = match.group("target")
        title = ctx.snapshot.get(section_title_path(target))
        # Out-of-range headings are clamped here and reported as an outline
        # mismatch when the step is checked against the document.
        current = min(6, max(1, heading_level(title))) if title else 1
        if match.group("level"):
            new_level = int(match.group("level"))
        elif match.group("verb").lower() == "promote":
            new_level = max(1, current - 1)
        else:
            new_level = min(6, current + 1)
        return [
            StructureLevelAdjust(
                id=ctx.next_id(),
                target=target,
                from_level=current,
                to_level=new_level,
                description=f"Change {target} from level {current} to level {new_level}",
            )
        ]

    def _build_reference(self, match: re.Match[str], clause: str, ctx: _Context) -> list[PlanStep]:
        count = int(match.group("count")) if match.group("count") else 3
        section = match.group("section") or ctx.scoped_section or ""
        return [
            ReferenceSupplement(
                id=ctx.next_id(),
                section_id=section,
                expected_count=count,
                description=f"Add {count} reference(s) to {section or 'the section'}",
            )
        ]
