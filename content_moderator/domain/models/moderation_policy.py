"""Moderation policy domain models.

The policy is a fixed, ordered collection of independent rules. Each
rule inspects the content and contributes a severity increment, zero or
more reason codes, and optionally a hard violation. Rules never see each
other's results; the evaluator combines them with commutative operations
(sum of severities, union of reason codes, any hard violation), so the
final verdict does not depend on rule order.

Disallowed-term matching applies NFKC normalization and case folding so
fullwidth, mathematical and other compatibility characters cannot be
used to slip a term past the scanner.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Final, Protocol

# Bump whenever rule semantics, terms or weights change. The version is
# part of every idempotency key, so a new policy re-alerts on old records.
POLICY_VERSION: Final[str] = "2026.10.1"

DEFAULT_SEVERITY_THRESHOLD: Final[int] = 3

DISALLOWED_TERM_REASON: Final[str] = "DISALLOWED_TERM"

DEFAULT_DISALLOWED_TERMS: Final[tuple[str, ...]] = (
    # Engagement fraud
    "buy cheap followers",
    "cheap followers",
    "buy followers",
    "buy likes",
    # Financial scams
    "free crypto giveaway",
    "double your bitcoin",
    "guaranteed returns",
    "wire transfer fee",
    "click here to claim",
    # Abuse
    "kill yourself",
    "go die",
)

_WHITESPACE = re.compile(r"\s+")
_LINK = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
_ALLOWED_CONTROL = frozenset("\t\n\r")
_REPLACEMENT_CHARACTER = "\ufffd"


def normalize_for_matching(text: str) -> str:
    """Normalize text for disallowed-term matching.

    Applies NFKC normalization, case folding and whitespace collapsing,
    so ``"ＢＵＹ  cheap\\nfollowers"`` matches ``"buy cheap followers"``.

    Args:
        text: The text to normalize.

    Returns:
        Normalized text suitable for substring comparison.
    """
    folded = unicodedata.normalize("NFKC", text).casefold()
    return _WHITESPACE.sub(" ", folded).strip()


@dataclass(frozen=True)
class RuleOutcome:
    """Contribution of one rule to a verdict.

    Attributes:
        severity: Severity increment (0 when the rule did not fire).
        reason_codes: Tags explaining why the rule fired.
        hard_violation: True when the content must be blocked outright.
    """

    severity: int = 0
    reason_codes: tuple[str, ...] = ()
    hard_violation: bool = False

    @classmethod
    def clean(cls) -> RuleOutcome:
        """Outcome of a rule that did not fire."""
        return cls()

    @property
    def fired(self) -> bool:
        """Whether the rule contributed anything."""
        return self.severity > 0 or self.hard_violation or bool(self.reason_codes)


class PolicyRule(Protocol):
    """Capability interface for a single policy rule.

    Implementations must be pure: the outcome depends only on the
    content and the rule's own (immutable) parameters.
    """

    @property
    def name(self) -> str:
        """Stable rule name, used in logs."""
        ...

    def check(self, content: str) -> RuleOutcome:
        """Inspect content and return this rule's contribution."""
        ...


@dataclass(frozen=True)
class DisallowedTermRule:
    """Blocks content that contains any configured disallowed term.

    Emits the generic ``DISALLOWED_TERM`` code plus one
    ``DISALLOWED_TERM:<term>`` code per matched term, so reviewers can
    see exactly what matched.

    Terms match whole words only: ``"go die"`` fires on ``"just go die"``
    but not on ``"go diesel shopping"``.

    Attributes:
        terms: Disallowed terms (matched case-insensitively after NFKC).
        severity: Severity increment when any term matches.
    """

    terms: tuple[str, ...] = DEFAULT_DISALLOWED_TERMS
    severity: int = 10
    _patterns: tuple[tuple[str, re.Pattern[str]], ...] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        """Validate the term list and compile one matcher per term."""
        if not self.terms:
            raise ValueError("Disallowed terms list cannot be empty")
        if any(not normalize_for_matching(term) for term in self.terms):
            raise ValueError("Disallowed terms must not be blank")
        object.__setattr__(
            self,
            "_patterns",
            tuple(
                (term, re.compile(r"(?<!\w)" + re.escape(term) + r"(?!\w)"))
                for term in self.normalized_terms
            ),
        )

    @property
    def name(self) -> str:
        return "disallowed_term"

    @property
    def normalized_terms(self) -> tuple[str, ...]:
        """Terms normalized the same way content is."""
        return tuple(normalize_for_matching(term) for term in self.terms)

    def check(self, content: str) -> RuleOutcome:
        normalized = normalize_for_matching(content)
        matched = tuple(
            term for term, pattern in self._patterns if pattern.search(normalized)
        )
        if not matched:
            return RuleOutcome.clean()
        codes = (DISALLOWED_TERM_REASON,) + tuple(
            f"{DISALLOWED_TERM_REASON}:{term}" for term in matched
        )
        return RuleOutcome(
            severity=self.severity, reason_codes=codes, hard_violation=True
        )


@dataclass(frozen=True)
class ExcessiveLengthRule:
    """Scores content longer than a configured maximum."""

    max_length: int = 5_000
    severity: int = 2

    @property
    def name(self) -> str:
        return "excessive_length"

    def check(self, content: str) -> RuleOutcome:
        if len(content) <= self.max_length:
            return RuleOutcome.clean()
        return RuleOutcome(severity=self.severity, reason_codes=("EXCESSIVE_LENGTH",))


@dataclass(frozen=True)
class ExcessiveCapsRule:
    """Scores content written mostly in capital letters.

    Short messages are ignored: "OK" or an acronym is not shouting.
    """

    min_letters: int = 12
    max_upper_ratio: float = 0.7
    severity: int = 2

    @property
    def name(self) -> str:
        return "excessive_caps"

    def check(self, content: str) -> RuleOutcome:
        letters = [char for char in content if char.isalpha()]
        if len(letters) < self.min_letters:
            return RuleOutcome.clean()
        upper = sum(1 for char in letters if char.isupper())
        if upper / len(letters) <= self.max_upper_ratio:
            return RuleOutcome.clean()
        return RuleOutcome(severity=self.severity, reason_codes=("EXCESSIVE_CAPS",))


@dataclass(frozen=True)
class RepeatedCharacterRule:
    """Scores long runs of the same non-space character ("!!!!!!!!!!")."""

    max_run: int = 8
    severity: int = 2

    @property
    def name(self) -> str:
        return "repeated_characters"

    def check(self, content: str) -> RuleOutcome:
        pattern = re.compile(r"(\S)\1{%d,}" % self.max_run)
        if not pattern.search(content):
            return RuleOutcome.clean()
        return RuleOutcome(
            severity=self.severity, reason_codes=("REPEATED_CHARACTERS",)
        )


@dataclass(frozen=True)
class LinkDensityRule:
    """Scores content carrying more links than allowed."""

    max_links: int = 2
    severity: int = 4

    @property
    def name(self) -> str:
        return "link_density"

    def check(self, content: str) -> RuleOutcome:
        if len(_LINK.findall(content)) <= self.max_links:
            return RuleOutcome.clean()
        return RuleOutcome(severity=self.severity, reason_codes=("EXCESSIVE_LINKS",))


@dataclass(frozen=True)
class ControlCharacterRule:
    """Scores binary or undecodable content.

    Fires on control characters other than tab/newline/carriage return,
    and on U+FFFD, which marks bytes that failed to decode as UTF-8.
    """

    severity: int = 4

    @property
    def name(self) -> str:
        return "control_characters"

    def check(self, content: str) -> RuleOutcome:
        for char in content:
            if char == _REPLACEMENT_CHARACTER:
                break
            if char not in _ALLOWED_CONTROL and unicodedata.category(char) == "Cc":
                break
        else:
            return RuleOutcome.clean()
        return RuleOutcome(
            severity=self.severity, reason_codes=("CONTROL_CHARACTERS",)
        )


def default_rules(
    disallowed_terms: tuple[str, ...] = DEFAULT_DISALLOWED_TERMS,
) -> tuple[PolicyRule, ...]:
    """Build the standard ordered rule set.

    Args:
        disallowed_terms: Terms for the DisallowedTermRule.

    Returns:
        Tuple of rules in evaluation order.
    """
    return (
        DisallowedTermRule(terms=disallowed_terms),
        ExcessiveLengthRule(),
        ExcessiveCapsRule(),
        RepeatedCharacterRule(),
        LinkDensityRule(),
        ControlCharacterRule(),
    )


@dataclass(frozen=True)
class ModerationPolicy:
    """Immutable rule set with its verdict threshold.

    Attributes:
        rules: Ordered rules, evaluated independently.
        severity_threshold: Aggregate severity above which content is FLAGged.
        version: Policy version, part of every idempotency key.
    """

    rules: tuple[PolicyRule, ...]
    severity_threshold: int = DEFAULT_SEVERITY_THRESHOLD
    version: str = POLICY_VERSION

    def __post_init__(self) -> None:
        """Validate the policy."""
        if not self.rules:
            raise ValueError("ModerationPolicy requires at least one rule")
        if self.severity_threshold < 0:
            raise ValueError(
                f"severity_threshold must be non-negative, got {self.severity_threshold}"
            )
        if not self.version:
            raise ValueError("ModerationPolicy requires a version")

    @classmethod
    def default(
        cls,
        severity_threshold: int = DEFAULT_SEVERITY_THRESHOLD,
        disallowed_terms: tuple[str, ...] = DEFAULT_DISALLOWED_TERMS,
    ) -> ModerationPolicy:
        """Create the standard policy.

        Args:
            severity_threshold: FLAG threshold.
            disallowed_terms: Terms that force a BLOCK.

        Returns:
            ModerationPolicy with the default rule set.
        """
        return cls(
            rules=default_rules(disallowed_terms),
            severity_threshold=severity_threshold,
        )
