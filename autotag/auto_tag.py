#!/usr/bin/env python3
"""
Auto-tag transactions from rules kept in the same spreadsheet.

Usage:
    autotag                         # Categorize and tag every transaction
    autotag --uncategorized-only    # Leave existing categories alone
    autotag --policy sticky         # Never re-categorize within a process
    autotag --dry-run               # Run the rules without writing tags
"""

import argparse
import logging
import sys
from typing import Any, Dict

from autotag.config import (
    AUTOTAG_SHEET_ID,
    TAGS_HEADER,
    UNCATEGORIZED_ONLY,
    CATEGORIZATION_POLICY,
    CATEGORIZATION_POLICIES,
    LOG_LEVEL,
    validate_config,
)
from autotag.engine import CategorizationPass
from autotag.sheets_client import SheetsClient

logger = logging.getLogger(__name__)


class StageError(RuntimeError):
    """A stage of the run failed; nothing has been written."""

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause


def run(
    client: SheetsClient,
    uncategorized_only: bool = UNCATEGORIZED_ONLY,
    policy: str = CATEGORIZATION_POLICY,
    dry_run: bool = False
) -> Dict[str, Any]:
    """
    Load rules and transactions, apply the rules and write the tags column.

    Raises:
        StageError: a load or write stage failed. Tags are only written after
            every earlier stage has succeeded.
    """
    categorization = CategorizationPass(policy)

    logger.info("=" * 60)
    logger.info("Auto Tag - Starting")
    logger.info("=" * 60)

    logger.info("Step 1: Validating sheet access")
    try:
        client.validate_access()
    except Exception as e:
        raise StageError('Validating sheet access', e) from e

    logger.info("Step 2: Loading rules")
    try:
        rules = client.get_rules()
    except Exception as e:
        raise StageError('Loading rules', e) from e

    logger.info("Step 3: Locating tags column and last row")
    try:
        tags_column = client.find_column_letter(client.transactions_sheet, TAGS_HEADER)
        last_row = client.get_last_row(client.transactions_sheet)
    except Exception as e:
        raise StageError('Locating tags column', e) from e

    logger.info("Step 4: Loading transactions")
    try:
        transactions = client.get_transactions(last_row=last_row)
    except Exception as e:
        raise StageError('Loading transactions', e) from e

    logger.info("Step 5: Applying rules")
    results = categorization.run(rules, transactions, uncategorized_only=uncategorized_only)

    stats = dict(categorization.stats)
    stats['written'] = 0

    if dry_run:
        logger.info("Step 6: Skipping write-back (dry run)")
        for trans in results:
            if trans.tags:
                logger.info(f"  Row {trans.row_address}: {','.join(trans.tags)} [{trans.category}]")
    else:
        logger.info("Step 6: Writing tags")
        try:
            stats['written'] = client.write_tags(tags_column, results, last_row)
        except Exception as e:
            raise StageError('Writing tags', e) from e

    logger.info("")
    logger.info("=" * 60)
    logger.info("Auto Tag - Complete")
    logger.info(f"  - Rules: {stats['rules']}")
    logger.info(f"  - Transactions: {stats['transactions']}")
    logger.info(f"  - Matched: {stats['matched']}")
    logger.info(f"  - Categorized: {stats['categorized']}")
    logger.info(f"  - Tag cells written: {stats['written']}")
    logger.info("=" * 60)

    return stats


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Auto-tag transactions using rules from the AutoTag sheet'
    )
    parser.add_argument(
        '--sheet-id', '-s',
        type=str,
        default=AUTOTAG_SHEET_ID,
        help='Spreadsheet ID (default: $AUTOTAG_SHEET_ID)'
    )
    parser.add_argument(
        '--uncategorized-only', '-u',
        action='store_true',
        default=UNCATEGORIZED_ONLY,
        help='Only assign categories to transactions with a blank category'
    )
    parser.add_argument(
        '--policy', '-p',
        choices=CATEGORIZATION_POLICIES,
        default=CATEGORIZATION_POLICY,
        help=f'Categorized-flag policy (default: {CATEGORIZATION_POLICY})'
    )
    parser.add_argument(
        '--dry-run', '-n',
        action='store_true',
        help='Apply rules without writing to the sheet'
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        validate_config(sheet_id=args.sheet_id, policy=args.policy)
    except RuntimeError as e:
        logger.error(str(e))
        return 2

    client = SheetsClient(sheet_id=args.sheet_id)

    try:
        run(
            client,
            uncategorized_only=args.uncategorized_only,
            policy=args.policy,
            dry_run=args.dry_run
        )
    except StageError as e:
        logger.error(f"{e}. Stopping, no tags were written.")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
