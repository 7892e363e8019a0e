"""CLM maturity survey definition.

The survey is an ordered list of stages, each an ordered list of rated
questions. A question's ``capability`` is the durable description stored with
every answer and used to match answers across sessions and locales; its
``name`` is the transient, UI-local question id.

Localised variants may translate titles and capability text. Stored answers
always carry the canonical capability, and the capability -> question-name
mapping is built from the canonical definition only.

Stages:
    CLM Stage 1: e-Document
    CLM Stage 2: e-Signature
    CLM Stage 3: Contract Workflow Automation
    CLM Stage 4: Contract Authoring Automation
    CLM Stage 5: Contract Intelligence
    CLM Stage 6: Contract Execution
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

RATING_MIN: int = 1
RATING_MAX: int = 5

RATING_CHOICES: tuple[tuple[int, str], ...] = (
    (1, "Not in place"),
    (2, "Ad hoc"),
    (3, "Partially implemented"),
    (4, "Largely implemented"),
    (5, "Fully implemented and optimised"),
)

_MARKDOWN_EMPHASIS = re.compile(r"\*\*")
_STAGE_NUMBER = re.compile(r"(\d+):")


@dataclass(frozen=True)
class SurveyQuestion:
    """A single rated question.

    Attributes:
        name: UI-local question id (e.g. 's1_q1'); not persisted.
        capability: Durable capability description; the stored natural key.
        title: Question text shown to the respondent.
    """

    name: str
    capability: str
    title: str

    def option_text(self, rating: int) -> str | None:
        """Return the choice label for a rating, or None when out of range."""
        for value, label in RATING_CHOICES:
            if value == rating:
                return label
        return None


@dataclass(frozen=True)
class SurveyStage:
    """A named, ordered group of questions.

    Attributes:
        name: Stored stage name (e.g. 'CLM Stage 1: e-Document').
        order: 1-based position within the survey.
        questions: Ordered questions of this stage.
    """

    name: str
    order: int
    questions: tuple[SurveyQuestion, ...]

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def short_name(self) -> str:
        """Stage name without the 'CLM Stage N: ' prefix."""
        return re.sub(r"^CLM Stage \d+:\s*", "", self.name)


@dataclass(frozen=True)
class SurveyDefinition:
    """Ordered stages of a survey, optionally in a non-canonical locale."""

    stages: tuple[SurveyStage, ...]
    locale: str = "en"
    _by_name: Mapping[str, SurveyStage] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_by_name",
            MappingProxyType({stage.name: stage for stage in self.stages}),
        )

    @property
    def total_questions(self) -> int:
        return sum(stage.question_count for stage in self.stages)

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    def get_stage(self, stage_name: str) -> SurveyStage | None:
        return self._by_name.get(stage_name)

    def stage_for_question(self, question_name: str) -> SurveyStage | None:
        for stage in self.stages:
            if any(q.name == question_name for q in stage.questions):
                return stage
        return None

    def question(self, question_name: str) -> SurveyQuestion | None:
        for stage in self.stages:
            for q in stage.questions:
                if q.name == question_name:
                    return q
        return None

    def localized(self, locale: str, translations: Mapping[str, Mapping[str, str]]) -> "SurveyDefinition":
        """Build a locale variant with translated titles and capability text.

        Args:
            locale: Locale code of the variant (e.g. 'es').
            translations: Question name -> {'title': ..., 'capability': ...}.
                Questions without an entry keep the canonical text.

        Returns:
            A new SurveyDefinition sharing stage names and question names.
        """
        stages = tuple(
            SurveyStage(
                name=stage.name,
                order=stage.order,
                questions=tuple(
                    SurveyQuestion(
                        name=q.name,
                        capability=translations.get(q.name, {}).get("capability", q.capability),
                        title=translations.get(q.name, {}).get("title", q.title),
                    )
                    for q in stage.questions
                ),
            )
            for stage in self.stages
        )
        return SurveyDefinition(stages=stages, locale=locale)


def strip_markdown(text: str) -> str:
    """Remove bold markers so legacy plain-text capabilities still match."""
    return _MARKDOWN_EMPHASIS.sub("", text).strip()


def build_capability_map(definition: SurveyDefinition) -> Mapping[str, str]:
    """Build the immutable capability -> question-name lookup table.

    Both the capability as written and its markdown-stripped form are
    mapped, since older answers were stored without formatting.

    Args:
        definition: The canonical survey definition.

    Returns:
        Read-only mapping of capability text to question name.
    """
    mapping: dict[str, str] = {}
    for stage in definition.stages:
        for question in stage.questions:
            mapping[question.capability] = question.name
            mapping[strip_markdown(question.capability)] = question.name
    return MappingProxyType(mapping)


def parse_stage_number(stage_name: str) -> int:
    """Extract N from 'CLM Stage N: ...' or 'N: ...'; 0 when absent."""
    match = _STAGE_NUMBER.search(stage_name)
    return int(match.group(1)) if match else 0


def definition_from_dict(payload: Mapping[str, Any]) -> SurveyDefinition:
    """Load a definition from a JSON-compatible dict.

    Expected shape::

        {"locale": "en",
         "stages": [{"name": "...", "questions": [
             {"name": "...", "capability": "...", "title": "..."}]}]}

    Stage order follows list position.
    """
    stages = tuple(
        SurveyStage(
            name=str(stage["name"]),
            order=index,
            questions=tuple(
                SurveyQuestion(
                    name=str(q["name"]),
                    capability=str(q["capability"]),
                    title=str(q.get("title", q["capability"])),
                )
                for q in stage.get("questions", [])
            ),
        )
        for index, stage in enumerate(payload.get("stages", []), start=1)
    )
    return SurveyDefinition(stages=stages, locale=str(payload.get("locale", "en")))


def _stage(order: int, name: str, prefix: str, capabilities: list[str]) -> SurveyStage:
    return SurveyStage(
        name=name,
        order=order,
        questions=tuple(
            SurveyQuestion(
                name=f"{prefix}_q{index}",
                capability=capability,
                title=f"How mature is your organisation in: {strip_markdown(capability)}?",
            )
            for index, capability in enumerate(capabilities, start=1)
        ),
    )


CLM_SURVEY: SurveyDefinition = SurveyDefinition(
    stages=(
        _stage(
            1,
            "CLM Stage 1: e-Document",
            "s1",
            [
                "**Central repository** for all executed contracts",
                "Contracts stored as searchable electronic documents",
                "Consistent **metadata** captured for every contract",
                "Role-based access control on contract documents",
                "Version history retained for contract drafts",
                "Legacy paper contracts digitised and indexed",
                "Retention and disposal rules applied to contract records",
            ],
        ),
        _stage(
            2,
            "CLM Stage 2: e-Signature",
            "s2",
            [
                "**Electronic signature** used for standard agreements",
                "Signature workflows integrated with the contract repository",
                "Signer identity verification appropriate to contract risk",
                "Executed copies filed automatically after signature",
                "Signature status visible to contract owners in real time",
                "Counterparty signing supported without manual intervention",
            ],
        ),
        _stage(
            3,
            "CLM Stage 3: Contract Workflow Automation",
            "s3",
            [
                "**Intake requests** captured through a standard channel",
                "Approval routing driven by contract type and value",
                "Automated reminders for pending reviews and approvals",
                "Parallel reviews by legal, finance and procurement",
                "Workflow status reporting for every open request",
                "Escalation rules for stalled approvals",
                "Integration of workflows with CRM and ERP systems",
            ],
        ),
        _stage(
            4,
            "CLM Stage 4: Contract Authoring Automation",
            "s4",
            [
                "**Approved templates** used for standard contract types",
                "Clause library with pre-approved fallback positions",
                "Self-service document generation for business users",
                "Deviation from standard terms flagged automatically",
                "Collaborative redlining with counterparties",
                "Playbooks guiding negotiators on acceptable positions",
            ],
        ),
        _stage(
            5,
            "CLM Stage 5: Contract Intelligence",
            "s5",
            [
                "**Key terms extracted** automatically from contracts",
                "Portfolio-wide search across clauses and obligations",
                "Risk scoring of contracts and counterparties",
                "Dashboards on contract volume, cycle time and value",
                "Renewal and expiry analytics across the portfolio",
                "AI-assisted review of third-party paper",
            ],
        ),
        _stage(
            6,
            "CLM Stage 6: Contract Execution",
            "s6",
            [
                "**Obligations tracked** through to fulfilment",
                "Automated alerts for renewals, expiries and milestones",
                "Contract terms driving downstream billing and procurement",
                "Performance against contract SLAs monitored",
                "Amendments linked to the governing agreement",
                "Contract outcomes fed back into templates and playbooks",
            ],
        ),
    ),
)
