#!/usr/bin/env python3
"""
Google Sheets client for the transaction auto-tagger.

Reads the rules and transactions tabs, discovers the tags column and the
last used row, and writes computed tags back in a single update.
"""

import logging
from collections import OrderedDict
from typing import List, Optional

from autotag.config import (
    AUTOTAG_SHEET_ID,
    RULES_SHEET_NAME,
    TRANSACTIONS_SHEET_NAME,
    RULE_COLUMNS,
    PAGE_SIZE,
)
from autotag.engine import align_to_rows
from autotag.rules import Rule, parse_rules
from autotag.transactions import (
    Transaction,
    TransactionSchema,
    add_to_collection,
    parse_transaction_row,
)
from autotag.utils import (
    get_sheets_service,
    column_index_to_letter,
    read_sheet_data,
    write_to_sheet,
    validate_sheet_access,
)

logger = logging.getLogger(__name__)


class SheetLookupError(ValueError):
    """A tab or header label could not be found in the spreadsheet."""


class SheetsClient:
    """Client for all Google Sheets operations."""

    def __init__(
        self,
        sheet_id: str = AUTOTAG_SHEET_ID,
        service=None,
        rules_sheet: str = RULES_SHEET_NAME,
        transactions_sheet: str = TRANSACTIONS_SHEET_NAME,
        page_size: int = PAGE_SIZE
    ):
        self.sheet_id = sheet_id
        self.rules_sheet = rules_sheet
        self.transactions_sheet = transactions_sheet
        self.page_size = page_size
        self._service = service
        self._schema = None

    def _get_service(self):
        """Get authenticated Sheets service (lazy initialization)."""
        if self._service is None:
            self._service = get_sheets_service()
        return self._service

    def _read(self, range_name: str, major_dimension: str = 'ROWS') -> List[List[str]]:
        return read_sheet_data(self._get_service(), self.sheet_id, range_name, major_dimension)

    # ========================================================================
    # DISCOVERY
    # ========================================================================

    def validate_access(self) -> List[str]:
        """
        Check the spreadsheet is reachable and holds both tabs.

        Raises:
            ValueError: spreadsheet not accessible
            SheetLookupError: a required tab is missing
        """
        titles = validate_sheet_access(self._get_service(), self.sheet_id, self.transactions_sheet)
        for tab in (self.rules_sheet, self.transactions_sheet):
            if tab not in titles:
                raise SheetLookupError(f"Sheet '{tab}' not found (available: {', '.join(titles)})")
        return titles

    def get_header_row(self, sheet_name: str) -> List[str]:
        values = self._read(f"'{sheet_name}'!1:1")
        return [str(h) for h in values[0]] if values else []

    def find_column_letter(self, sheet_name: str, label: str) -> str:
        """
        Get the column letter whose header equals ``label`` (exact, case-sensitive).

        Raises:
            SheetLookupError: No header matches
        """
        headers = self.get_header_row(sheet_name)
        if label not in headers:
            raise SheetLookupError(f"Column '{label}' not found in '{sheet_name}' headers")
        letter = column_index_to_letter(headers.index(label))
        logger.info(f"Found column '{label}' in '{sheet_name}' at {letter}")
        return letter

    def get_last_row(self, sheet_name: str, width: Optional[int] = None) -> int:
        """
        Last used row index (1-based, header included) across the first
        ``width`` columns. Defaults to the width of the header row, or of the
        transaction layout for the transactions tab, whichever is wider.
        """
        if width is None:
            width = len(self.get_header_row(sheet_name))
            if sheet_name == self.transactions_sheet:
                width = max(width, self.get_schema().width)
        if width <= 0:
            return 0

        last_col = column_index_to_letter(width - 1)
        columns = self._read(f"'{sheet_name}'!A:{last_col}", major_dimension='COLUMNS')
        last_row = max((len(column) for column in columns), default=0)
        logger.info(f"Last used row in '{sheet_name}': {last_row}")
        return last_row

    # ========================================================================
    # RULES
    # ========================================================================

    def get_rules(self) -> List[Rule]:
        """Get all rules from the rules tab, in sheet order."""
        last_col = column_index_to_letter(len(RULE_COLUMNS) - 1)
        values = self._read(f"'{self.rules_sheet}'!A:{last_col}")

        if not values or len(values) < 2:
            logger.warning(f"No rules found in '{self.rules_sheet}'")
            return []

        rules = parse_rules(values)
        logger.info(f"Loaded {len(rules)} rules")
        return rules

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    def get_schema(self) -> TransactionSchema:
        if self._schema is None:
            headers = self.get_header_row(self.transactions_sheet)
            self._schema = TransactionSchema.from_headers(headers)
        return self._schema

    def get_transactions(self, last_row: Optional[int] = None) -> 'OrderedDict[str, Transaction]':
        """
        Load every transaction row, reading ``page_size`` rows per request.

        Args:
            last_row: Last used row (1-based, header included). When omitted,
                reading stops at the first short page.

        Returns:
            Transactions keyed by transaction ID in row order. A repeated ID
            replaces the earlier row (last write wins).
        """
        schema = self.get_schema()
        last_col = column_index_to_letter(schema.width - 1)

        collection = OrderedDict()
        overwritten = 0
        start = 2
        pages = 0

        while last_row is None or start <= last_row:
            end = start + self.page_size - 1
            if last_row is not None:
                end = min(end, last_row)

            page = self._read(f"'{self.transactions_sheet}'!A{start}:{last_col}{end}")
            pages += 1

            # Trailing blank rows are omitted by the API; keep addresses aligned
            expected = end - start + 1
            if last_row is not None and len(page) < expected:
                page = page + [[]] * (expected - len(page))

            parsed = [
                parse_transaction_row(row, row_address=sheet_row - 1, schema=schema)
                for sheet_row, row in enumerate(page, start=start)
                if any(str(cell).strip() for cell in row)
            ]
            overwritten += add_to_collection(collection, parsed)

            if last_row is None and len(page) < self.page_size:
                break
            start = end + 1

        logger.info(f"Loaded {len(collection)} transactions in {pages} page(s)")
        if overwritten:
            logger.warning(f"{overwritten} rows shared a transaction ID with a later row")
        return collection

    # ========================================================================
    # WRITE-BACK
    # ========================================================================

    def write_tags(self, column_letter: str, transactions: List[Transaction], last_row: int) -> int:
        """
        Write tags for rows 2..last_row of the transactions tab in one update.

        Either the whole column range is written or, on error, nothing is.

        Returns:
            Number of cells carrying tags
        """
        row_count = last_row - 1
        if row_count <= 0:
            logger.info("No transaction rows to write")
            return 0

        values = align_to_rows(transactions, row_count)
        range_name = f"'{self.transactions_sheet}'!{column_letter}2:{column_letter}{last_row}"

        write_to_sheet(self._get_service(), self.sheet_id, range_name, values)

        written = sum(1 for row in values if row[0] is not None)
        logger.info(f"Wrote tags for {written} of {row_count} rows to {range_name}")
        return written

