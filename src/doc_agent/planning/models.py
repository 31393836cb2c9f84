"""Planning data models.

This module defines the value types that flow from a text command to a
reviewable plan:

- Scope: the region of the document a command targets
- Command: an immutable editing instruction
- PlanStep: one typed mutation; the set of kinds is closed and each kind
  is a PlanStep subclass registered under its ``kind`` tag
- Plan: an ordered, immutable proposal of steps with warnings,
  requirements and a time estimate
- PlanResult: what planning hands back to the caller

Steps know how to check their own preconditions against a document and
how to describe their effect as diffs, so the same code produces the
preview at planning time and the applied diffs at execution time.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from doc_agent.core.errors import StepPreconditionError
from doc_agent.core.types import new_id, parse_timestamp, utc_now
from doc_agent.diff.models import DiffCategory, DiffItem, DiffKind
from doc_agent.document.base import (
    CITATION_STYLE_PATH,
    OUTLINE_PATH,
    figure_path,
    heading,
    heading_level,
    heading_text,
    section_body_path,
    section_references_path,
    section_title_path,
)

if TYPE_CHECKING:
    from doc_agent.document.base import DocumentSnapshot


class ScopeKind(str, Enum):
    """Granularity of a scope."""

    DOCUMENT = "document"
    CHAPTER = "chapter"
    SECTION = "section"
    SELECTION = "selection"


class Requirement(str, Enum):
    """Preconditions a command may be missing."""

    DATA_SOURCE = "dataSource"
    CITATION_STYLE = "citationStyle"
    OUTLINE = "outline"
    VERIFICATION = "verification"


@dataclass(frozen=True)
class TextRange:
    """Half-open character range inside a section body."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid range: {self.start}-{self.end}")


@dataclass(frozen=True)
class Scope:
    """Target region of a document.

    Attributes:
        kind: document, chapter, section or selection.
        id: Section id (required for everything but document scope).
        title: Optional display title.
        range: Character range for selections.
    """

    kind: ScopeKind = ScopeKind.DOCUMENT
    id: str | None = None
    title: str | None = None
    range: TextRange | None = None

    @classmethod
    def document(cls) -> Scope:
        return cls(ScopeKind.DOCUMENT)

    @classmethod
    def section(cls, section_id: str, title: str | None = None) -> Scope:
        return cls(ScopeKind.SECTION, id=section_id, title=title)

    def __str__(self) -> str:
        if self.kind is ScopeKind.DOCUMENT:
            return "document"
        return f"{self.kind.value}:{self.id}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value}
        if self.id is not None:
            data["id"] = self.id
        if self.title is not None:
            data["title"] = self.title
        if self.range is not None:
            data["range"] = {"start": self.range.start, "end": self.range.end}
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scope:
        raw_range = data.get("range")
        return cls(
            kind=ScopeKind(data.get("kind", ScopeKind.DOCUMENT.value)),
            id=data.get("id"),
            title=data.get("title"),
            range=TextRange(raw_range["start"], raw_range["end"]) if raw_range else None,
        )


@dataclass(frozen=True)
class Command:
    """A raw editing instruction bound to a scope."""

    text: str
    scope: Scope = field(default_factory=Scope)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("Command text cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "scope": self.scope.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Command:
        return cls(
            id=data["id"],
            text=data["text"],
            scope=Scope.from_dict(data.get("scope", {})),
            created_at=parse_timestamp(data.get("createdAt")) or utc_now(),
        )


@dataclass(frozen=True)
class Unmet:
    """A precondition a step does not satisfy."""

    requirement: Requirement
    message: str


STEP_TYPES: dict[str, type[PlanStep]] = {}


@dataclass(frozen=True, kw_only=True)
class PlanStep(ABC):
    """Base class for all step kinds.

    Subclasses set ``kind``, map their fields to the exposed JSON names
    through ``json_fields`` and implement ``_diffs``.

    Attributes:
        id: Step id, unique within its plan.
        description: Human-readable description.
        depends_on: Ids of earlier steps whose output this step consumes.
    """

    kind: ClassVar[str] = ""
    reversible: ClassVar[bool] = True
    json_fields: ClassVar[dict[str, str]] = {}

    id: str = ""
    description: str = ""
    depends_on: tuple[str, ...] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.kind:
            STEP_TYPES[cls.kind] = cls

    @property
    def family(self) -> str:
        """Leading segment of the kind, e.g. 'structure'."""
        return self.kind.split(".", 1)[0]

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        """Preconditions this step misses against ``snapshot``."""
        return []

    def preview(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        """Describe the step's effect on ``snapshot`` without mutating it.

        Raises:
            StepPreconditionError: If the step cannot apply to this state.
        """
        unmet = self.unmet_requirements(snapshot)
        if unmet:
            raise StepPreconditionError(unmet[0].message, unmet[0].requirement.value)
        return self._diffs(snapshot)

    @abstractmethod
    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        """Diffs for a snapshot that already meets every requirement."""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.kind}
        for attr, key in self.json_fields.items():
            value = getattr(self, attr)
            if isinstance(value, Scope):
                value = value.to_dict()
            elif isinstance(value, tuple):
                value = list(value)
            data[key] = value
        data["description"] = self.description
        data["dependsOn"] = list(self.depends_on)
        return data


def step_from_dict(data: dict[str, Any]) -> PlanStep:
    """Rebuild a step from its exposed JSON shape.

    Raises:
        ValueError: If the step type is unknown.
    """
    step_type = STEP_TYPES.get(data.get("type", ""))
    if step_type is None:
        raise ValueError(f"Unknown step type: {data.get('type')!r}")

    kwargs: dict[str, Any] = {
        "id": data.get("id", ""),
        "description": data.get("description", ""),
        "depends_on": tuple(data.get("dependsOn", ())),
    }
    declared = {f.name: f for f in fields(step_type)}
    for attr, key in step_type.json_fields.items():
        if key not in data:
            continue
        value = data[key]
        if attr == "scope":
            value = Scope.from_dict(value)
        elif isinstance(value, list):
            value = tuple(value)
        if attr in declared:
            kwargs[attr] = value
    return step_type(**kwargs)


def _missing_sections(snapshot: DocumentSnapshot, section_ids: tuple[str, ...] | list[str]) -> list[Unmet]:
    outline = snapshot.outline()
    return [
        Unmet(Requirement.OUTLINE, f"Section '{sid}' is not in the document outline")
        for sid in section_ids
        if sid not in outline
    ]


def _outline_diff(
    snapshot: DocumentSnapshot,
    new_order: list[str],
    description: str,
    section_id: str | None = None,
) -> DiffItem:
    return DiffItem(
        path=OUTLINE_PATH,
        kind=DiffKind.MODIFY,
        category=DiffCategory.STRUCTURE,
        description=description,
        before=snapshot.get(OUTLINE_PATH) or "",
        after="\n".join(new_order),
        section_id=section_id,
    )


@dataclass(frozen=True, kw_only=True)
class StructureReorder(PlanStep):
    """Move a section next to another one."""

    kind: ClassVar[str] = "structure.reorder"
    json_fields: ClassVar[dict[str, str]] = {
        "source": "from",
        "target": "to",
        "placement": "placement",
    }

    source: str
    target: str
    placement: str = "before"

    def __post_init__(self) -> None:
        if self.placement not in ("before", "after"):
            raise ValueError(f"placement must be 'before' or 'after', got {self.placement!r}")

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        unmet = _missing_sections(snapshot, [self.source, self.target])
        if self.source == self.target:
            unmet.append(Unmet(Requirement.OUTLINE, "Cannot move a section relative to itself"))
        return unmet

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        order = [sid for sid in snapshot.outline() if sid != self.source]
        index = order.index(self.target)
        if self.placement == "after":
            index += 1
        order.insert(index, self.source)
        return [
            _outline_diff(
                snapshot,
                order,
                self.description or f"Move {self.source} {self.placement} {self.target}",
                section_id=self.source,
            )
        ]


@dataclass(frozen=True, kw_only=True)
class StructureSplit(PlanStep):
    """Split one section into several new ones."""

    kind: ClassVar[str] = "structure.split"
    json_fields: ClassVar[dict[str, str]] = {"target": "target", "into": "into"}

    target: str
    into: tuple[str, ...]

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        unmet = _missing_sections(snapshot, [self.target])
        if len(self.into) < 2:
            unmet.append(Unmet(Requirement.OUTLINE, "A split needs at least two target sections"))
        clashes = [sid for sid in self.into if sid != self.target and snapshot.has_section(sid)]
        for sid in clashes:
            unmet.append(Unmet(Requirement.OUTLINE, f"Section '{sid}' already exists"))
        return unmet

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        order: list[str] = []
        for sid in snapshot.outline():
            order.extend(self.into if sid == self.target else [sid])
        return [
            _outline_diff(
                snapshot,
                order,
                self.description or f"Split {self.target} into {', '.join(self.into)}",
                section_id=self.target,
            )
        ]


@dataclass(frozen=True, kw_only=True)
class StructureMerge(PlanStep):
    """Merge several sections into one of them."""

    kind: ClassVar[str] = "structure.merge"
    json_fields: ClassVar[dict[str, str]] = {"sources": "ids", "into": "into"}

    sources: tuple[str, ...]
    into: str

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        unmet = _missing_sections(snapshot, self.sources)
        if len(self.sources) < 2:
            unmet.append(Unmet(Requirement.OUTLINE, "A merge needs at least two sections"))
        if self.into not in self.sources:
            unmet.append(Unmet(Requirement.OUTLINE, f"Merge target '{self.into}' must be one of the merged sections"))
        return unmet

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        absorbed = [sid for sid in self.sources if sid != self.into]
        order = [sid for sid in snapshot.outline() if sid not in absorbed]
        bodies = [snapshot.get(section_body_path(sid)) or "" for sid in self.sources]
        return [
            _outline_diff(
                snapshot,
                order,
                self.description or f"Merge {', '.join(absorbed)} into {self.into}",
                section_id=self.into,
            ),
            DiffItem(
                path=section_body_path(self.into),
                kind=DiffKind.MODIFY,
                category=DiffCategory.CONTENT,
                description=f"Combine text of {', '.join(self.sources)}",
                before=snapshot.get(section_body_path(self.into)) or "",
                after="\n\n".join(body for body in bodies if body),
                section_id=self.into,
            ),
        ]


@dataclass(frozen=True, kw_only=True)
class StructureLevelAdjust(PlanStep):
    """Promote or demote a section heading."""

    kind: ClassVar[str] = "structure.levelAdjust"
    json_fields: ClassVar[dict[str, str]] = {
        "target": "target",
        "from_level": "fromLevel",
        "to_level": "toLevel",
    }

    target: str
    from_level: int
    to_level: int

    def __post_init__(self) -> None:
        for level in (self.from_level, self.to_level):
            if not 1 <= level <= 6:
                raise ValueError(f"Heading level must be between 1 and 6, got {level}")

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        unmet = _missing_sections(snapshot, [self.target])
        if unmet:
            return unmet
        current = heading_level(snapshot.get(section_title_path(self.target)) or "")
        if current != self.from_level:
            unmet.append(
                Unmet(
                    Requirement.OUTLINE,
                    f"Section '{self.target}' is at level {current}, not {self.from_level}",
                )
            )
        return unmet

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        before = snapshot.get(section_title_path(self.target)) or ""
        return [
            DiffItem(
                path=section_title_path(self.target),
                kind=DiffKind.MODIFY,
                category=DiffCategory.STRUCTURE,
                description=self.description
                or f"Change {self.target} from level {self.from_level} to {self.to_level}",
                before=before,
                after=heading(heading_text(before), self.to_level),
                section_id=self.target,
            )
        ]


@dataclass(frozen=True, kw_only=True)
class CitationFormat(PlanStep):
    """Switch the document's citation style."""

    STYLES: ClassVar[tuple[str, ...]] = ("APA", "MLA", "Chicago", "IEEE", "GBT")

    kind: ClassVar[str] = "style.citationFormat"
    json_fields: ClassVar[dict[str, str]] = {"style": "to", "affected_count": "affectedCount"}

    style: str
    affected_count: int = 0

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        if self.style not in self.STYLES:
            return [
                Unmet(
                    Requirement.CITATION_STYLE,
                    f"Unknown citation style '{self.style}' (expected one of {', '.join(self.STYLES)})",
                )
            ]
        return []

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        current = snapshot.citation_style()
        description = self.description or f"Reformat {self.affected_count} citation(s) to {self.style}"
        if current is None:
            return [
                DiffItem(
                    path=CITATION_STYLE_PATH,
                    kind=DiffKind.INSERT,
                    category=DiffCategory.FORMAT,
                    description=description,
                    after=self.style,
                )
            ]
        return [
            DiffItem(
                path=CITATION_STYLE_PATH,
                kind=DiffKind.MODIFY,
                category=DiffCategory.FORMAT,
                description=description,
                before=current,
                after=self.style,
            )
        ]


@dataclass(frozen=True, kw_only=True)
class FigureInsertFromTable(PlanStep):
    """Insert a chart generated from a table."""

    CHART_TYPES: ClassVar[tuple[str, ...]] = ("bar", "line", "scatter", "pie")

    kind: ClassVar[str] = "figure.insertFromTable"
    json_fields: ClassVar[dict[str, str]] = {
        "table_id": "tableId",
        "chart_type": "chartType",
        "figure_id": "figId",
        "caption": "caption",
        "source_ref": "sourceRef",
        "position": "position",
    }

    table_id: str = ""
    chart_type: str = "bar"
    figure_id: str = ""
    caption: str = ""
    source_ref: str = ""
    position: str = ""

    def __post_init__(self) -> None:
        if self.chart_type not in self.CHART_TYPES:
            raise ValueError(f"Unknown chart type: {self.chart_type!r}")

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        unmet: list[Unmet] = []
        if not self.table_id or not self.source_ref:
            unmet.append(
                Unmet(Requirement.DATA_SOURCE, "No data source was declared, so the chart cannot be generated")
            )
        if not self.position:
            unmet.append(Unmet(Requirement.OUTLINE, "No position was given for the chart"))
        else:
            unmet.extend(_missing_sections(snapshot, [self.position]))
        return unmet

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        path = figure_path(self.position, self.figure_id)
        if snapshot.exists(path):
            raise StepPreconditionError(f"Figure '{self.figure_id}' already exists")
        return [
            DiffItem(
                path=path,
                kind=DiffKind.INSERT,
                category=DiffCategory.FIGURE,
                description=self.description or f"Insert {self.chart_type} chart from {self.source_ref}",
                after=f"{self.caption} (Source: {self.source_ref}; {self.chart_type} chart)",
                section_id=self.position,
            )
        ]


@dataclass(frozen=True, kw_only=True)
class LanguageRewrite(PlanStep):
    """Replace the text of a section or selection."""

    TONES: ClassVar[tuple[str, ...]] = ("formal", "neutral", "explanatory")

    kind: ClassVar[str] = "language.rewrite"
    json_fields: ClassVar[dict[str, str]] = {
        "scope": "scope",
        "tone": "tone",
        "replacement": "replacement",
    }

    scope: Scope = field(default_factory=Scope)
    tone: str = "formal"
    replacement: str = ""

    def __post_init__(self) -> None:
        if self.tone not in self.TONES:
            raise ValueError(f"Unknown tone: {self.tone!r}")

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        if self.scope.kind is ScopeKind.DOCUMENT or not self.scope.id:
            return [Unmet(Requirement.OUTLINE, "A rewrite needs a section or selection scope")]
        if snapshot.resolve(self.scope) is None:
            return [Unmet(Requirement.OUTLINE, f"Scope {self.scope} is not in the document")]
        return []

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        path = section_body_path(self.scope.id or "")
        before = snapshot.get(path) or ""
        if self.scope.range is not None:
            after = before[: self.scope.range.start] + self.replacement + before[self.scope.range.end:]
        else:
            after = self.replacement
        return [
            DiffItem(
                path=path,
                kind=DiffKind.MODIFY,
                category=DiffCategory.CONTENT,
                description=self.description or f"Rewrite {self.scope} in a {self.tone} tone",
                before=before,
                after=after,
                section_id=self.scope.id,
            )
        ]


@dataclass(frozen=True, kw_only=True)
class ReferenceSupplement(PlanStep):
    """Reserve slots for additional references in a section.

    Supplemented entries come from an external source and must be
    verified again if removed, so this kind is not reversible.
    """

    kind: ClassVar[str] = "reference.supplement"
    reversible: ClassVar[bool] = False
    json_fields: ClassVar[dict[str, str]] = {
        "section_id": "sectionId",
        "expected_count": "expectedCount",
    }

    section_id: str
    expected_count: int = 1

    def unmet_requirements(self, snapshot: DocumentSnapshot) -> list[Unmet]:
        unmet = _missing_sections(snapshot, [self.section_id])
        if self.expected_count <= 0:
            unmet.append(Unmet(Requirement.VERIFICATION, "Expected reference count must be positive"))
        return unmet

    def _diffs(self, snapshot: DocumentSnapshot) -> list[DiffItem]:
        path = section_references_path(self.section_id)
        current = snapshot.get(path)
        start = len(current.splitlines()) + 1 if current else 1
        slots = [f"[{n}] pending verification" for n in range(start, start + self.expected_count)]
        description = self.description or f"Add {self.expected_count} reference(s) to {self.section_id}"
        if current is None:
            return [
                DiffItem(
                    path=path,
                    kind=DiffKind.INSERT,
                    category=DiffCategory.REFERENCE,
                    description=description,
                    after="\n".join(slots),
                    section_id=self.section_id,
                )
            ]
        return [
            DiffItem(
                path=path,
                kind=DiffKind.MODIFY,
                category=DiffCategory.REFERENCE,
                description=description,
                before=current,
                after="\n".join([current, *slots]),
                section_id=self.section_id,
            )
        ]


@dataclass(frozen=True)
class TimeEstimate:
    """Rough duration range in minutes."""

    min_minutes: int
    max_minutes: int

    _PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"^(\d+)-(\d+) min$")

    def __str__(self) -> str:
        return f"{self.min_minutes}-{self.max_minutes} min"

    @classmethod
    def parse(cls, text: str) -> TimeEstimate:
        match = cls._PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid time estimate: {text!r}")
        return cls(int(match.group(1)), int(match.group(2)))


@dataclass(frozen=True)
class Plan:
    """Ordered, reviewable proposal derived from a command.

    Attributes:
        id: Plan id.
        command_id: Id of the originating command.
        scope: Scope the command targeted.
        steps: Steps in execution order.
        warnings: Explanations for anything the plan could not cover.
        requirements: Missing preconditions as requirement tokens.
        estimated_time: Rough duration for applying all steps.
        created_at: When the plan was built.
    """

    id: str
    command_id: str
    scope: Scope
    steps: tuple[PlanStep, ...] = ()
    warnings: tuple[str, ...] = ()
    requirements: tuple[str, ...] = ()
    estimated_time: TimeEstimate = TimeEstimate(0, 0)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Check step id uniqueness and that dependencies point backwards."""
        seen: set[str] = set()
        for step in self.steps:
            if not step.id:
                raise ValueError("Plan steps must have ids")
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            for dep in step.depends_on:
                if dep not in seen:
                    raise ValueError(f"Step {step.id} depends on {dep}, which is not an earlier step")
            seen.add(step.id)

    @property
    def step_ids(self) -> list[str]:
        return [step.id for step in self.steps]

    @property
    def reversible(self) -> bool:
        """False if any step kind is declared non-reversible."""
        return all(step.reversible for step in self.steps)

    def get_step(self, step_id: str) -> PlanStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "commandId": self.command_id,
            "scope": self.scope.to_dict(),
            "steps": [step.to_dict() for step in self.steps],
            "warnings": list(self.warnings),
            "requires": list(self.requirements),
            "estimatedTime": str(self.estimated_time),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Plan:
        return cls(
            id=data["id"],
            command_id=data.get("commandId", ""),
            scope=Scope.from_dict(data.get("scope", {})),
            steps=tuple(step_from_dict(s) for s in data.get("steps", [])),
            warnings=tuple(data.get("warnings", [])),
            requirements=tuple(data.get("requires", [])),
            estimated_time=TimeEstimate.parse(data.get("estimatedTime", "0-0 min")),
            created_at=parse_timestamp(data.get("createdAt")) or utc_now(),
        )


@dataclass(frozen=True)
class PlanResult:
    """Outcome of planning a command."""

    command: Command
    plan: Plan
    preview_diffs: tuple[DiffItem, ...] = ()

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.plan.warnings

    @property
    def requirements(self) -> tuple[str, ...]:
        return self.plan.requirements
