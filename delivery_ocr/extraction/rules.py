"""Ordered regex rules with first-accepted-match evaluation.

Each field is described by a tuple of :class:`Rule` objects ordered from
most to least specific. :func:`first_accepted` tries every line with a
rule before falling through to the next rule, and stops at the first
token the rule's validator accepts.
"""

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from delivery_ocr.utils.logger import get_logger

logger = get_logger(__name__)


def _always(token: str) -> bool:
    return True


@dataclass(frozen=True)
class Rule:
    """A capturing pattern paired with a validator for its first group.

    Attributes:
        name: Identifier used in debug logging and tests.
        pattern: Compiled regex; group 1 is the candidate token, or the
            whole match when the pattern has no groups.
        validator: Predicate the token must satisfy to be accepted.
        scan_all: Try every match on a line instead of only the first.
    """

    name: str
    pattern: re.Pattern[str]
    validator: Callable[[str], bool] = _always
    scan_all: bool = False

    def candidates(self, line: str) -> Iterable[str]:
        """Yield candidate tokens found on a line, in order."""
        if self.scan_all:
            matches: Iterable[re.Match[str]] = self.pattern.finditer(line)
        else:
            match = self.pattern.search(line)
            matches = [match] if match else []
        for match in matches:
            token = match.group(1) if match.groups() else match.group(0)
            if token:
                yield token


@dataclass(frozen=True)
class RuleMatch:
    """The accepted token and where it came from."""

    rule: str
    value: str
    line_index: int


def first_accepted(rules: Sequence[Rule], lines: Sequence[str]) -> RuleMatch | None:
    """Return the first token accepted by the highest-precedence rule.

    Args:
        rules: Rules in precedence order.
        lines: Text lines scanned top to bottom for each rule.

    Returns:
        The winning match, or ``None`` when no rule produces an
        accepted token on any line.
    """
    for rule in rules:
        for index, line in enumerate(lines):
            for token in rule.candidates(line):
                if rule.validator(token):
                    logger.debug("Rule %s accepted %r on line %d", rule.name, token, index)
                    return RuleMatch(rule=rule.name, value=token, line_index=index)
    return None


def compile_rules(
    name: str,
    patterns: Sequence[str],
    flags: int = re.IGNORECASE,
    validator: Callable[[str], bool] = _always,
    scan_all: bool = False,
) -> tuple[Rule, ...]:
    """Build a precedence-ordered rule tuple sharing one validator."""
    return tuple(
        Rule(
            name=f"{name}[{i}]",
            pattern=re.compile(p, flags),
            validator=validator,
            scan_all=scan_all,
        )
        for i, p in enumerate(patterns)
    )
