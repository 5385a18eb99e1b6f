#!/usr/bin/env python3
"""
Rule matching, categorization and tag projection.

Precedence:
1. Category: the first firing rule in list order wins (first match wins)
2. Tags: every firing rule contributes its tags (tag union)

The pass only mutates the transactions it is given; it performs no I/O.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Union

from autotag.config import (
    CATEGORIZATION_POLICIES,
    POLICY_PER_PASS,
)
from autotag.rules import Rule
from autotag.transactions import Transaction

logger = logging.getLogger(__name__)

TransactionSource = Union[Mapping, Iterable[Transaction]]


def rule_fires(rule: Rule, transaction: Transaction) -> bool:
    """A rule fires when its description, account, institution and amount filters all match."""
    return (
        rule.match_description(transaction.description)
        and rule.match_account(transaction.account)
        and rule.match_institution(transaction.institution)
        and rule.match_amount(transaction.amount)
    )


class CategorizationPass:
    """
    Applies an ordered rule list to every transaction.

    The ``policy`` controls the categorized flag:
    - per_pass: flag is cleared at the start of each run, so every run is
      the only source of truth for which rule categorized a transaction
    - sticky: flag is never cleared; a transaction is categorized at most
      once over its lifetime, even across runs
    """

    def __init__(self, policy: str = POLICY_PER_PASS):
        if policy not in CATEGORIZATION_POLICIES:
            raise ValueError(
                f"Unknown categorization policy '{policy}'. "
                f"Expected one of: {', '.join(CATEGORIZATION_POLICIES)}"
            )
        self.policy = policy
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            'transactions': 0,
            'rules': 0,
            'matched': 0,
            'categorized': 0,
            'tagged': 0,
        }

    def run(
        self,
        rules: List[Rule],
        transactions: TransactionSource,
        uncategorized_only: bool = False
    ) -> List[Transaction]:
        """
        Categorize and tag transactions in place.

        Args:
            rules: Rules in priority order (first listed wins the category)
            transactions: Transactions, or a mapping of ID -> Transaction
                iterated in insertion order
            uncategorized_only: Only assign categories to transactions whose
                category is blank. Tags are still applied.

        Returns:
            The same transaction objects, in iteration order
        """
        if isinstance(transactions, Mapping):
            transactions = list(transactions.values())
        else:
            transactions = list(transactions)

        self.stats = self._empty_stats()
        self.stats['transactions'] = len(transactions)
        self.stats['rules'] = len(rules)

        if self.policy == POLICY_PER_PASS:
            for trans in transactions:
                trans.categorized = False

        for trans in transactions:
            matched = False
            categorized_here = False
            tags_before = len(trans.tags)

            for rule in rules:
                if not rule_fires(rule, trans):
                    continue
                matched = True

                if not trans.categorized and (not uncategorized_only or trans.category == ''):
                    trans.assign_category(rule.category)
                    categorized_here = True

                trans.add_tags(rule.tags)

            if matched:
                self.stats['matched'] += 1
            if categorized_here:
                self.stats['categorized'] += 1
            if len(trans.tags) > tags_before:
                self.stats['tagged'] += 1

        logger.info(
            f"Categorization results ({self.policy}): "
            f"{self.stats['matched']}/{self.stats['transactions']} matched, "
            f"{self.stats['categorized']} categorized, "
            f"{self.stats['tagged']} gained tags"
        )

        return transactions


def categorize(
    rules: List[Rule],
    transactions: TransactionSource,
    uncategorized_only: bool = False,
    policy: str = POLICY_PER_PASS
) -> List[Transaction]:
    """Run a single categorization pass."""
    return CategorizationPass(policy).run(rules, transactions, uncategorized_only)


def _tag_cell(transaction: Transaction) -> Optional[str]:
    if transaction.tags:
        return ','.join(transaction.tags)
    # Null cells are skipped by the Sheets API, leaving the sheet untouched
    return None


def project_tags(transactions: Iterable[Transaction]) -> List[List[Optional[str]]]:
    """
    One single-cell row per transaction, in input order.

    A cell holds the comma-joined tags, or None when there are none.
    """
    return [[_tag_cell(trans)] for trans in transactions]


def align_to_rows(
    transactions: Iterable[Transaction],
    row_count: int
) -> List[List[Optional[str]]]:
    """
    Project tags onto a column of ``row_count`` data rows by row address.

    Rows with no transaction (for example a row whose transaction ID was
    replaced by a later duplicate) get None. Transactions without an address,
    or with one outside the range, are skipped with a warning.
    """
    rows: List[List[Any]] = [[None] for _ in range(row_count)]
    for trans in transactions:
        address = trans.row_address
        if address is None or not 1 <= address <= row_count:
            logger.warning(
                f"Transaction '{trans.transaction_id}' has row address {address} "
                f"outside 1..{row_count}, not written"
            )
            continue
        rows[address - 1] = [_tag_cell(trans)]
    return rows
