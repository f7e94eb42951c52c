"""Stance, signal and exclusion pattern tables.

Stances (six, in three pairs):

    prescriptive / cautionary    do vs don't
    prerequisite / dependent     before vs after
    assertive    / uncertain     is vs might

Signals are independent boolean flags: sequence, tension, conditional.

All tables are compiled once at import time into ``DEFAULT_TABLES`` and are
never mutated afterwards. Pass a different ``PatternTables`` to the extractor
to experiment with alternative rules.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Literal, Mapping, Tuple

from ..models.statement import STANCE_PRIORITY, Signals

_RAW_STANCE_PATTERNS: Dict[str, List[str]] = {
    "cautionary": [
        r"\bdon'?t\b",
        r"\bdo\s+not\b",
        r"\bavoid\b",
        r"\bnever\b",
        r"\brisk\b",
        r"\bcareful\b",
        r"\bcaution\b",
        r"\bwarning\b",
        r"\bdanger\b",
        r"\bpitfall\b",
        r"\btrap\b",
        r"\bmistake\b",
        r"\berror\b",
        r"\bproblem\s+with\b",
        r"\bwatch\s+out\b",
        r"\bbe\s+aware\b",
        r"\bbeware\b",
        r"\bcan\s+lead\s+to\s+problems\b",
        r"\bshould\s+not\b",
        r"\bshouldn'?t\b",
    ],
    "prerequisite": [
        r"\bbefore\b",
        r"\bfirst\b",
        r"\bprior\s+to\b",
        r"\brequires?\b",
        r"\bneeds?\s+to\s+have\b",
        r"\bprerequisite\b",
        r"\bprecondition\b",
        r"\bmust\s+(come|happen|occur)\s+before\b",
        r"\bfoundation\s+for\b",
        r"\bgroundwork\b",
        r"\bcan'?t\s+.{0,20}\s+without\s+first\b",
        r"\benables?\b",
        r"\bunblocks?\b",
        r"\ballows?\s+you\s+to\b",
        r"\binitially\b",
    ],
    "dependent": [
        r"\bafter\b",
        r"\bonce\b",
        r"\bthen\s+you\s+can\b",
        r"\bfollowing\s+this\b",
        r"\bsubsequent\b",
        r"\bonly\s+after\b",
        r"\bwhen\s+.{0,20}\s+is\s+(done|complete|ready)\b",
        r"\bhaving\s+(done|completed|established)\b",
        r"\bin\s+the\s+next\s+step\b",
        r"\bdownstream\b",
    ],
    "prescriptive": [
        r"\bshould\b",
        r"\bmust\b",
        r"\bought\s+to\b",
        r"\bneed\s+to\b",
        r"\bhave\s+to\b",
        r"\bensure\b",
        r"\bmake\s+sure\b",
        r"\balways\b",
        r"\brequired\b",
        r"\bessential\b",
        r"\bcritical\s+to\b",
        r"\bimperative\b",
        r"\brecommend\b",
        r"\bsuggest\b",
        r"\badvise\b",
        r"\bconsider\b",
        r"\buse\b",
        r"\bimplement\b",
        r"\bapply\b",
    ],
    "uncertain": [
        r"\bmight\b",
        r"\bmay\b",
        r"\bcould\b",
        r"\bpossibly\b",
        r"\bperhaps\b",
        r"\bmaybe\b",
        r"\bunclear\b",
        r"\bunknown\b",
        r"\buncertain\b",
        r"\bdepends\b",
        r"\bnot\s+sure\b",
        r"\bhard\s+to\s+(say|know|tell)\b",
        r"\bdifficult\s+to\s+know\b",
        r"\b(it|that)\s+varies\b",
        r"\btypically\b",
        r"\busually\b",
        r"\bin\s+some\s+cases\b",
    ],
    "assertive": [
        r"\bis\b",
        r"\bare\b",
        r"\bwas\b",
        r"\bwere\b",
        r"\bdoes\b",
        r"\bdo\b",
        r"\bhas\b",
        r"\bhave\b",
        r"\bworks?\b",
        r"\bperforms?\b",
        r"\bprovides?\b",
        r"\boffers?\b",
        r"\bincludes?\b",
        r"\bexists?\b",
        r"\bcontains?\b",
        r"\bsupports?\b",
    ],
}

_RAW_SIGNAL_PATTERNS: Dict[str, List[str]] = {
    "sequence": [
        r"\bbefore\b",
        r"\bafter\b",
        r"\bfirst\b",
        r"\bthen\b",
        r"\bnext\b",
        r"\bfinally\b",
        r"\bonce\b",
        r"\brequires?\b",
        r"\bdepends\s+on\b",
        r"\bprior\s+to\b",
        r"\bsubsequent\b",
        r"\bfollowing\b",
        r"\bpreceding\b",
        r"\bstep\s+\d+\b",
        r"\bphase\s+\d+\b",
        r"\benables?\b",
        r"\bunblocks?\b",
    ],
    "tension": [
        r"\bbut\b",
        r"\bhowever\b",
        r"\balthough\b",
        r"\bthough\b",
        r"\bdespite\b",
        r"\bnevertheless\b",
        r"\byet\b",
        r"\binstead\b",
        r"\brather\s+than\b",
        r"\bon\s+the\s+other\s+hand\b",
        r"\bin\s+contrast\b",
        r"\bconversely\b",
        r"\bversus\b",
        r"\bvs\.?\b",
        r"\bor\b",
        r"\btrade-?off\b",
        r"\bbalance\b",
        r"\btension\b",
        r"\bcompeting\b",
        r"\bconflicts?\s+with\b",
    ],
    "conditional": [
        r"\bif\b",
        r"\bwhen\b",
        r"\bunless\b",
        r"\bassuming\b",
        r"\bprovided\s+that\b",
        r"\bgiven\s+that\b",
        r"\bin\s+case\b",
        r"\bcontingent\s+on\b",
        r"\bsubject\s+to\b",
        r"\bdepending\s+on\b",
        r"\bfor\s+(this|that|these)\s+case\b",
        r"\bin\s+(some|certain|specific)\s+cases\b",
        r"\bonly\s+if\b",
        r"\bonly\s+when\b",
    ],
}

ALL = tuple(STANCE_PRIORITY)

# (id, applies_to, pattern, reason, severity)
_RAW_EXCLUSION_RULES = [
    ("question_mark", ALL, r"\?$", "Question, not statement", "hard"),
    ("too_short", ALL, r"^.{0,15}$", "Too short to be substantive", "hard"),
    ("meta_let_me", ALL, r"^(let me|let's|i('ll| will| would)|allow me to)\b", "Meta-framing, not claim", "hard"),
    (
        "meta_note",
        ALL,
        r"^(note that|it'?s worth (noting|mentioning)|keep in mind|remember that)\b",
        "Meta-commentary, not claim",
        "hard",
    ),
    (
        "quoted_material",
        ALL,
        r'^"[^"]{10,}"$|^[“][^”]{10,}[”]$',
        "Quoted material, not original claim",
        "hard",
    ),
    # prescriptive
    (
        "prescriptive_epistemic_should",
        ("prescriptive",),
        r"\bshould\s+(be|have\s+been)\s+(clear|obvious|noted|apparent|evident|unsurprising)\b",
        "Epistemic 'should' (expectation), not prescriptive",
        "hard",
    ),
    ("prescriptive_conditional_should", ("prescriptive",), r"\bif\s+.{5,40}\s+should\b",
     "Conditional 'should'", "soft"),
    ("prescriptive_hypothetical", ("prescriptive",), r"\b(you|one)\s+could\s+(also|potentially|possibly)\b",
     "Suggestion, not prescription", "soft"),
    ("prescriptive_question_form", ("prescriptive",), r"\bshould\s+(you|we|i|they)\s+.{0,30}\?",
     "Prescriptive in question form", "hard"),
    (
        "prescriptive_rhetorical",
        ("prescriptive",),
        r"\b(surely|certainly)\s+(you|we|one)\s+(can|would|could)\s+agree\b",
        "Rhetorical appeal, not prescription",
        "hard",
    ),
    ("prescriptive_past_tense", ("prescriptive",), r"\bshould\s+have\s+(been|done|had|made|used)\b",
     "Past counterfactual, not active prescription", "soft"),
    (
        "prescriptive_attributed",
        ("prescriptive",),
        r"\b(they|he|she|the\s+\w+)\s+(say|says|said|suggest|argues?)\s+.{0,20}should\b",
        "Attributed prescription, not asserted",
        "soft",
    ),
    # cautionary
    ("cautionary_hypothetical", ("cautionary",), r"\b(might|could)\s+(potentially\s+)?(cause|create|lead\s+to)\b",
     "Hypothetical risk, not definite warning", "soft"),
    ("cautionary_past_reference", ("cautionary",), r"\b(should\s+have\s+avoided|shouldn'?t\s+have\s+done)\b",
     "Past counterfactual, not active warning", "hard"),
    ("cautionary_rhetorical", ("cautionary",), r"\byou\s+(wouldn'?t|would\s+not)\s+want\s+to\b",
     "Rhetorical framing, not direct warning", "soft"),
    ("cautionary_generic", ("cautionary",), r"\b(be\s+careful|watch\s+out)\s*$",
     "Too generic, lacks a specific risk", "soft"),
    # prerequisite
    (
        "prereq_temporal_before",
        ("prerequisite",),
        r"\b(long\s+before|just\s+before|shortly\s+before|right\s+before|the\s+day\s+before)\b",
        "Temporal narration, not dependency",
        "hard",
    ),
    (
        "prereq_before_meeting",
        ("prerequisite",),
        r"\bbefore\s+(the\s+)?(meeting|call|event|conference|session|interview)\b",
        "Temporal reference, not technical prerequisite",
        "soft",
    ),
    ("prereq_narrative_first", ("prerequisite",), r"\bfirst\s+(time|day|week|month|year|attempt)\b",
     "Narrative 'first', not dependency", "hard"),
    (
        "prereq_requires_subject",
        ("prerequisite",),
        r"\brequires\s+(a|an|the|some|more|less)\s+(lot|bit|degree|amount)\s+of\b",
        "Quantitative requirement, not dependency",
        "soft",
    ),
    ("prereq_hypothetical", ("prerequisite",), r"\bif\s+you\s+were\s+to\s+.{0,30}\s+(first|before)\b",
     "Hypothetical scenario, not actual prerequisite", "soft"),
    # dependent
    (
        "dependent_simple_temporal",
        ("dependent",),
        r"\b(after|following)\s+(the|this|that)\s+(meeting|call|event|lunch|break)\b",
        "Calendar event, not technical dependency",
        "soft",
    ),
    ("dependent_narrative_after", ("dependent",), r"\bafter\s+(a\s+)?(long|short|brief|while|time|period)\b",
     "Narrative time passage, not dependency", "hard"),
    ("dependent_once_upon", ("dependent",), r"\bonce\s+upon\s+a\s+time\b", "Narrative framing", "hard"),
    ("dependent_then_rhetorical", ("dependent",), r"\bthen\s+(what|why|how|where|who)\b",
     "Rhetorical question, not dependency", "hard"),
    # assertive
    (
        "assertive_narrative_was",
        ("assertive",),
        r"^(it|this|that)\s+was\s+(a|an|the)\s+(great|good|bad|terrible|amazing|awful)\b",
        "Narrative evaluation, not factual claim",
        "soft",
    ),
    ("assertive_hypothetical_would", ("assertive",), r"\bwould\s+be\b", "Hypothetical, not actual state", "soft"),
    ("assertive_metaphor", ("assertive",), r"\b(is\s+like|are\s+like)\s+(a|an)\b",
     "Metaphorical comparison, not factual", "soft"),
    # uncertain
    ("uncertain_rhetorical", ("uncertain",), r"\b(who knows|god knows|anyone'?s guess)\b",
     "Rhetorical uncertainty, not substantive", "hard"),
    ("uncertain_politeness", ("uncertain",), r"\b(might|may|could)\s+I\s+(ask|suggest|recommend)\b",
     "Politeness marker, not uncertainty", "hard"),
    ("uncertain_narrative", ("uncertain",), r"\bmight\s+have\s+been\b",
     "Past speculation, not current uncertainty", "soft"),
]

SIGNAL_WEIGHTS: Dict[str, int] = {"conditional": 3, "sequence": 2, "tension": 1}

# 1 match = 0.65, 2 = 0.80, 3+ = 0.95
_CONFIDENCE_BY_MATCHES = {0: 0.5, 1: 0.65, 2: 0.80, 3: 0.95}


@dataclass(frozen=True)
class ExclusionRule:
    id: str
    applies_to: Tuple[str, ...]
    pattern: re.Pattern
    reason: str
    severity: Literal["hard", "soft"]


@dataclass(frozen=True)
class PatternTables:
    """Compiled, read-only stance/signal/exclusion tables."""
    stance_patterns: Mapping[str, Tuple[re.Pattern, ...]]
    signal_patterns: Mapping[str, Tuple[re.Pattern, ...]]
    exclusion_rules: Tuple[ExclusionRule, ...]

    def classify_stance(self, text: str) -> Tuple[str, float]:
        """Pick the highest-priority stance with any match.

        Returns ``("assertive", 0.5)`` when nothing matches at all.
        """
        for stance in STANCE_PRIORITY:
            matches = sum(1 for p in self.stance_patterns[stance] if p.search(text))
            if matches > 0:
                return stance, min(1.0, _CONFIDENCE_BY_MATCHES[min(matches, 3)])
        return "assertive", _CONFIDENCE_BY_MATCHES[0]

    def detect_signals(self, text: str) -> Signals:
        return Signals(
            sequence=any(p.search(text) for p in self.signal_patterns["sequence"]),
            tension=any(p.search(text) for p in self.signal_patterns["tension"]),
            conditional=any(p.search(text) for p in self.signal_patterns["conditional"]),
        )

    def is_excluded(self, text: str, stance: str) -> bool:
        # soft rules are reported by exclusion_violations but never exclude
        for rule in self.exclusion_rules:
            if rule.severity == "hard" and stance in rule.applies_to and rule.pattern.search(text):
                return True
        return False

    def exclusion_violations(self, text: str, stance: str) -> List[Dict[str, str]]:
        return [
            {"id": r.id, "reason": r.reason, "severity": r.severity}
            for r in self.exclusion_rules
            if stance in r.applies_to and r.pattern.search(text)
        ]


def compile_tables(
    stance_patterns: Mapping[str, List[str]] = _RAW_STANCE_PATTERNS,
    signal_patterns: Mapping[str, List[str]] = _RAW_SIGNAL_PATTERNS,
    exclusion_rules=_RAW_EXCLUSION_RULES,
) -> PatternTables:
    return PatternTables(
        stance_patterns=MappingProxyType({
            stance: tuple(re.compile(p, re.IGNORECASE) for p in pats) for stance, pats in stance_patterns.items()
        }),
        signal_patterns=MappingProxyType({
            name: tuple(re.compile(p, re.IGNORECASE) for p in pats) for name, pats in signal_patterns.items()
        }),
        exclusion_rules=tuple(
            ExclusionRule(
                id=rule_id,
                applies_to=tuple(applies_to),
                pattern=re.compile(pattern, re.IGNORECASE),
                reason=reason,
                severity=severity,
            )
            for rule_id, applies_to, pattern, reason, severity in exclusion_rules
        ),
    )


DEFAULT_TABLES = compile_tables()


def signal_weight(signals: Signals) -> int:
    """Weight used to rank statements: conditional 3, sequence 2, tension 1."""
    return sum(w for name, w in SIGNAL_WEIGHTS.items() if getattr(signals, name))
