"""
Outcome Classification Service

Maps free-text outcome labels (e.g. "Termin", "KI Ansprechpartner",
"$follow_up_auto") onto the coarse positive/neutral/negative categories used by
the call grouper and the snapshot differ.

Classification is a strategy object so that the keyword heuristic can be swapped
for an exact lookup table or a server-provided mapping without touching the
consumers:

- KeywordOutcomeClassifier: case-insensitive substring match against curated
  keyword lists. This is a best-effort heuristic and will misclassify novel
  labels that happen to contain (or lack) a keyword.
- LookupOutcomeClassifier: exact match on a normalized label with a default
  category for unknown labels.

Two label tables exist in the upstream dashboard (a keyword list used for call
details and an exact-label table used for alerts) and they do not agree on every
label. compare_classifiers() reports the disagreements so they can be reconciled
explicitly instead of one table silently winning.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from callboard.models.enums import OutcomeCategory

logger = logging.getLogger(__name__)


# =============================================================================
# Canonical Keyword Lists
# =============================================================================

# Booking / appointment / success
POSITIVE_KEYWORDS: Tuple[str, ...] = (
    'termin',
    'success',
    'gebucht',
)

# Gatekeeper / wrong target / non-existence / decline
NEGATIVE_KEYWORDS: Tuple[str, ...] = (
    'declined',
    'gatekeeper',
    'ansprechpartner',
    'existiert_nicht',
    'zielgruppe',
    'kein interesse',
    'kein_interesse',
    'falsche nummer',
    'falsche_nummer',
    'nicht zuständig',
    'nicht_zuständig',
)

# Exact-label table used for live alerts
DEFAULT_OUTCOME_TABLE: Dict[str, OutcomeCategory] = {
    'Termin': OutcomeCategory.POSITIVE,
    'Termin | Infomail': OutcomeCategory.POSITIVE,
    'selbst gebucht': OutcomeCategory.POSITIVE,
    'Kein Interesse': OutcomeCategory.NEGATIVE,
    'nicht erreicht': OutcomeCategory.NEGATIVE,
    'KI Ansprechpartner': OutcomeCategory.NEGATIVE,
    'Falsche Nummer': OutcomeCategory.NEGATIVE,
    'Nicht zuständig': OutcomeCategory.NEGATIVE,
    'Rückruf': OutcomeCategory.NEUTRAL,
    'Email gesendet': OutcomeCategory.NEUTRAL,
    'Wiedervorlage': OutcomeCategory.NEUTRAL,
}


class OutcomeClassifier(Protocol):
    """Strategy interface: map an outcome label to a category."""

    def classify(self, outcome_label: Optional[str]) -> OutcomeCategory:
        ...


def normalize_label(label: Optional[str]) -> str:
    """
    Normalize a label for exact matching.

    Trims, lower-cases and replaces spaces with underscores so that
    "Kein Interesse" and "kein_interesse" compare equal.
    """
    if label is None:
        return ''
    return str(label).strip().lower().replace(' ', '_')


class KeywordOutcomeClassifier:
    """
    Substring heuristic over curated keyword lists.

    Positive keywords are checked before negative ones; anything that matches
    neither (including "$none" and follow-up markers) is neutral.
    """

    def __init__(
        self,
        positive: Sequence[str] = POSITIVE_KEYWORDS,
        negative: Sequence[str] = NEGATIVE_KEYWORDS,
    ):
        self.positive = tuple(k.lower() for k in positive)
        self.negative = tuple(k.lower() for k in negative)

    def classify(self, outcome_label: Optional[str]) -> OutcomeCategory:
        if not outcome_label:
            return OutcomeCategory.NEUTRAL

        lower = str(outcome_label).lower()
        if any(keyword in lower for keyword in self.positive):
            return OutcomeCategory.POSITIVE
        if any(keyword in lower for keyword in self.negative):
            return OutcomeCategory.NEGATIVE
        return OutcomeCategory.NEUTRAL


class LookupOutcomeClassifier:
    """
    Exact-label table with a default for unknown labels.

    Args:
        table: Mapping of label -> category. Labels are normalized on load.
        default: Category for labels missing from the table.
    """

    def __init__(
        self,
        table: Mapping[str, OutcomeCategory] = DEFAULT_OUTCOME_TABLE,
        default: OutcomeCategory = OutcomeCategory.NEUTRAL,
    ):
        self.table = {normalize_label(k): OutcomeCategory(v) for k, v in table.items()}
        self.default = default

    def classify(self, outcome_label: Optional[str]) -> OutcomeCategory:
        if not outcome_label:
            return self.default
        return self.table.get(normalize_label(outcome_label), self.default)


def compare_classifiers(
    labels: Iterable[str],
    primary: OutcomeClassifier,
    secondary: OutcomeClassifier,
) -> Dict[str, Tuple[OutcomeCategory, OutcomeCategory]]:
    """
    Find labels on which two classification strategies disagree.

    Args:
        labels: Outcome labels to check
        primary: First strategy
        secondary: Second strategy

    Returns:
        Dict of label -> (primary category, secondary category) for every
        disagreement, in input order.
    """
    conflicts: Dict[str, Tuple[OutcomeCategory, OutcomeCategory]] = {}
    for label in labels:
        a = primary.classify(label)
        b = secondary.classify(label)
        if a != b:
            conflicts[label] = (a, b)
    return conflicts


def log_classifier_conflicts(
    primary: OutcomeClassifier,
    secondary: OutcomeClassifier,
    labels: Optional[Iterable[str]] = None,
) -> Dict[str, Tuple[OutcomeCategory, OutcomeCategory]]:
    """
    Log a reconciliation warning for every label the two strategies disagree on.

    Defaults to checking the labels of the exact-label table.
    """
    conflicts = compare_classifiers(
        labels if labels is not None else DEFAULT_OUTCOME_TABLE.keys(),
        primary,
        secondary,
    )
    for label, (a, b) in conflicts.items():
        logger.warning(
            f"Outcome label '{label}' classified {a.value} by {type(primary).__name__} "
            f"but {b.value} by {type(secondary).__name__}; reconcile the label tables"
        )
    return conflicts


# Shared default instance for callers that do not inject a strategy
DEFAULT_CLASSIFIER = KeywordOutcomeClassifier()
