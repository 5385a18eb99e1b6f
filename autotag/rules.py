#!/usr/bin/env python3
"""
Auto-tag rules.

A rule pairs four filters (description, account, institution, amount range)
with the category and tags applied to every transaction it matches. Rules
are read as plain text rows from the AutoTag tab:

    Category | Tags | Description | Account | Institution | Amount

Empty text filters are wildcards. The amount filter is a small range
expression: ``>N``, ``<N`` or ``>N<M`` with strictly exclusive bounds.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from autotag.config import RULE_COLUMNS
from autotag.utils import split_tags

logger = logging.getLogger(__name__)

_NUMBER = r'(-?\d+(?:\.\d+)?|-?\.\d+)'
# A bound must run up to the next bound or the end of the expression
_END = r'\s*(?=[<>]|$)'
_LOWER_BOUND = re.compile(r'>\s*' + _NUMBER + _END)
_UPPER_BOUND = re.compile(r'<\s*' + _NUMBER + _END)


@dataclass(frozen=True)
class AmountRange:
    """Parsed amount filter. A missing bound is ``None``."""
    lower: Optional[float] = None
    upper: Optional[float] = None
    malformed: bool = False

    @property
    def unbounded(self) -> bool:
        return self.lower is None and self.upper is None

    def contains(self, amount: float) -> bool:
        if self.lower is not None and not amount > self.lower:
            return False
        if self.upper is not None and not amount < self.upper:
            return False
        return True


def parse_amount_range(expression: Optional[str]) -> AmountRange:
    """
    Parse an amount filter expression into its bounds.

    Examples:
        '>100'      -> AmountRange(lower=100.0)
        '<-20'      -> AmountRange(upper=-20.0)
        '>100<200'  -> AmountRange(lower=100.0, upper=200.0)
        ''          -> AmountRange()
        'about 50'  -> AmountRange(malformed=True)
        '>1,000'    -> AmountRange(malformed=True)

    Malformed input never raises; it yields no bound for the side that could
    not be read and is flagged so callers can report it.
    """
    text = (expression or '').strip()
    if not text:
        return AmountRange()

    lower_match = _LOWER_BOUND.search(text)
    upper_match = _UPPER_BOUND.search(text)
    lower = float(lower_match.group(1)) if lower_match else None
    upper = float(upper_match.group(1)) if upper_match else None

    # Anything left over once the recognised bounds are removed is noise
    leftover = text
    for match in (lower_match, upper_match):
        if match:
            leftover = leftover.replace(match.group(0), '', 1)
    malformed = bool(leftover.strip())

    if malformed:
        logger.debug(f"Amount filter '{expression}' is malformed; using lower={lower}, upper={upper}")

    return AmountRange(lower=lower, upper=upper, malformed=malformed)


@dataclass(frozen=True)
class Rule:
    """A single auto-tag rule. Immutable once built."""
    category: str = ''
    tags: Tuple[str, ...] = ()
    description_filter: str = ''
    account_filter: str = ''
    institution_filter: str = ''
    amount_filter: str = ''
    amount_range: AmountRange = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'amount_range', parse_amount_range(self.amount_filter))

    @classmethod
    def from_fields(
        cls,
        category: str = '',
        tags: str = '',
        description: str = '',
        account: str = '',
        institution: str = '',
        amount: str = ''
    ) -> 'Rule':
        """Build a rule from the six raw text fields of a rules row."""
        return cls(
            category=(category or '').strip(),
            tags=tuple(split_tags(tags)),
            description_filter=description or '',
            account_filter=account or '',
            institution_filter=institution or '',
            amount_filter=amount or '',
        )

    @classmethod
    def from_row(cls, row: Sequence[str]) -> 'Rule':
        """Build a rule from a rules-tab row, padding missing cells with ''."""
        padded_row = list(row) + [''] * (len(RULE_COLUMNS) - len(row))
        return cls.from_fields(*['' if v is None else str(v) for v in padded_row[:len(RULE_COLUMNS)]])

    @staticmethod
    def _match_substring(pattern: str, value: Optional[str]) -> bool:
        if not pattern:
            return True
        return pattern in (value or '')

    def match_description(self, description: Optional[str]) -> bool:
        return self._match_substring(self.description_filter, description)

    def match_account(self, account: Optional[str]) -> bool:
        return self._match_substring(self.account_filter, account)

    def match_institution(self, institution: Optional[str]) -> bool:
        return self._match_substring(self.institution_filter, institution)

    def match_amount(self, amount: Optional[float]) -> bool:
        """True when the amount falls strictly inside the rule's range."""
        if self.amount_range.unbounded:
            return True
        return self.amount_range.contains(amount or 0.0)


def parse_rules(values: List[List[str]]) -> List[Rule]:
    """
    Parse rules-tab values (header row included) into rules, preserving order.

    Fully blank rows are skipped.
    """
    rules = []
    for row in values[1:]:
        if not any(str(cell).strip() for cell in row):
            continue
        rule = Rule.from_row(row)
        if rule.amount_range.malformed:
            logger.warning(f"Rule '{rule.category}' has an unreadable amount filter '{rule.amount_filter}'")
        rules.append(rule)
    return rules
