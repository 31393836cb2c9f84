"""Planning: scopes, commands, steps, plans and the planner."""

from doc_agent.planning.interpreter import (
    EXAMPLE_COMMANDS,
    CommandInterpreter,
    ExampleCommand,
    KeywordInterpreter,
    tone_rewrite,
)
from doc_agent.planning.models import (
    CitationFormat,
    Command,
    FigureInsertFromTable,
    LanguageRewrite,
    Plan,
    PlanResult,
    PlanStep,
    ReferenceSupplement,
    Requirement,
    Scope,
    ScopeKind,
    StructureLevelAdjust,
    StructureMerge,
    StructureReorder,
    StructureSplit,
    TextRange,
    TimeEstimate,
    step_from_dict,
)
from doc_agent.planning.planner import PlanRegistry, Planner, estimate_time

__all__ = [
    "EXAMPLE_COMMANDS",
    "CitationFormat",
    "Command",
    "CommandInterpreter",
    "ExampleCommand",
    "FigureInsertFromTable",
    "KeywordInterpreter",
    "LanguageRewrite",
    "Plan",
    "PlanRegistry",
    "PlanResult",
    "PlanStep",
    "Planner",
    "ReferenceSupplement",
    "Requirement",
    "Scope",
    "ScopeKind",
    "StructureLevelAdjust",
    "StructureMerge",
    "StructureReorder",
    "StructureSplit",
    "TextRange",
    "TimeEstimate",
    "estimate_time",
    "step_from_dict",
    "tone_rewrite",
]
