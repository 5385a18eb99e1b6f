#!/usr/bin/env python3
"""
Transaction records parsed from the Transactions tab.

Columns are located through a TransactionSchema built once from the header
row; any label missing from the header falls back to its position in the
fixed Tiller layout (see config.TRANSACTION_COLUMNS).
"""

import datetime
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from autotag.config import (
    TRANSACTION_COLUMNS,
    COL_DATE,
    COL_DESCRIPTION,
    COL_CATEGORY,
    COL_TAGS,
    COL_AMOUNT,
    COL_ACCOUNT,
    COL_ACCOUNT_NUMBER,
    COL_INSTITUTION,
    COL_MONTH,
    COL_WEEK,
    COL_FULL_DESCRIPTION,
    COL_CHECK_NUMBER,
    COL_TRANSACTION_ID,
)
from autotag.utils import parse_amount, parse_date, split_tags

logger = logging.getLogger(__name__)


@dataclass
class Transaction:
    """One normalized transaction row. Category, tags and categorized are mutable."""
    transaction_id: str
    date: Optional[datetime.date] = None
    description: str = ''
    category: str = ''
    tags: List[str] = field(default_factory=list)
    amount: float = 0.0
    account: str = ''
    account_number: str = ''
    institution: str = ''
    month: Optional[datetime.date] = None
    week: Optional[datetime.date] = None
    full_description: str = ''
    check_number: str = ''
    row_address: Optional[int] = None
    categorized: bool = False

    def __post_init__(self):
        # Keep tags unique, in first-seen order, without blanks
        tags = self.tags
        self.tags = []
        self.add_tags(tags)

    def add_tags(self, tags: Iterable[str]) -> None:
        """Union tags into this transaction. Duplicates and blanks are ignored."""
        for tag in tags:
            if tag and tag not in self.tags:
                self.tags.append(tag)

    def assign_category(self, category: str) -> None:
        """Mark categorized. A blank category leaves the current value in place."""
        if category:
            self.category = category
        self.categorized = True


class TransactionSchema:
    """
    Explicit mapping of transaction fields to column indexes.

    Built once from the header row of the Transactions tab.
    """

    def __init__(self, col_indices: Dict[str, int]):
        self.col_indices = dict(col_indices)

    @classmethod
    def default(cls) -> 'TransactionSchema':
        return cls({label: i for i, label in enumerate(TRANSACTION_COLUMNS)})

    @classmethod
    def from_headers(cls, headers: Sequence[str]) -> 'TransactionSchema':
        """
        Map each known column label to its position in the header row.

        Matching is exact and case-sensitive. Labels that are not present keep
        their fixed-layout position.
        """
        header_map = {}
        for i, header in enumerate(headers):
            header_map.setdefault(header, i)

        col_indices = {}
        for default_idx, label in enumerate(TRANSACTION_COLUMNS):
            if label in header_map:
                col_indices[label] = header_map[label]
            else:
                logger.warning(f"Column '{label}' not found in sheet headers, assuming column {default_idx + 1}")
                col_indices[label] = default_idx
        return cls(col_indices)

    @property
    def width(self) -> int:
        return max(self.col_indices.values()) + 1

    def get(self, row: Sequence[str], label: str) -> str:
        idx = self.col_indices.get(label)
        if idx is None or idx >= len(row):
            return ''
        value = row[idx]
        return '' if value is None else str(value)


def _as_date(value: str) -> Optional[datetime.date]:
    parsed = parse_date(value)
    return parsed.date() if parsed else None


def parse_transaction_row(
    row: Sequence[str],
    row_address: Optional[int] = None,
    schema: Optional[TransactionSchema] = None
) -> Transaction:
    """
    Parse one raw Transactions row into a Transaction.

    Short rows are padded with empty strings; unreadable amounts become 0.0
    and unreadable dates become None.
    """
    schema = schema or TransactionSchema.default()
    padded_row = list(row) + [''] * (schema.width - len(row))

    return Transaction(
        transaction_id=schema.get(padded_row, COL_TRANSACTION_ID).strip(),
        date=_as_date(schema.get(padded_row, COL_DATE)),
        description=schema.get(padded_row, COL_DESCRIPTION),
        category=schema.get(padded_row, COL_CATEGORY).strip(),
        tags=split_tags(schema.get(padded_row, COL_TAGS)),
        amount=parse_amount(schema.get(padded_row, COL_AMOUNT)),
        account=schema.get(padded_row, COL_ACCOUNT),
        account_number=schema.get(padded_row, COL_ACCOUNT_NUMBER),
        institution=schema.get(padded_row, COL_INSTITUTION),
        month=_as_date(schema.get(padded_row, COL_MONTH)),
        week=_as_date(schema.get(padded_row, COL_WEEK)),
        full_description=schema.get(padded_row, COL_FULL_DESCRIPTION),
        check_number=schema.get(padded_row, COL_CHECK_NUMBER),
        row_address=row_address,
    )


def transaction_key(transaction: Transaction) -> str:
    """Collection key: the transaction ID, or the row address when the ID is blank."""
    if transaction.transaction_id:
        return transaction.transaction_id
    return f"row-{transaction.row_address}"


def add_to_collection(
    collection: 'OrderedDict[str, Transaction]',
    transactions: Iterable[Transaction]
) -> int:
    """
    Add transactions to a keyed collection. A repeated key overwrites the
    earlier entry in place (last write wins).

    Returns:
        Number of keys that were overwritten
    """
    overwritten = 0
    for trans in transactions:
        key = transaction_key(trans)
        if key in collection:
            overwritten += 1
            logger.warning(
                f"Duplicate transaction ID '{key}' at row {trans.row_address} "
                f"replaces row {collection[key].row_address}"
            )
        collection[key] = trans
    return overwritten


def build_transaction_collection(
    rows: Iterable[Sequence[str]],
    schema: Optional[TransactionSchema] = None,
    first_address: int = 1
) -> 'OrderedDict[str, Transaction]':
    """
    Parse data rows (header excluded) into a collection keyed by transaction ID.

    Row addresses count from ``first_address`` (1 = first row under the header).
    """
    collection = OrderedDict()
    parsed = (
        parse_transaction_row(row, row_address=address, schema=schema)
        for address, row in enumerate(rows, start=first_address)
    )
    add_to_collection(collection, parsed)
    return collection
