#!/usr/bin/env python3
"""
Configuration for the transaction auto-tagger.
"""

import os

# ============================================================================
# GOOGLE SHEETS CONFIGURATION
# ============================================================================

# Spreadsheet holding both the rules tab and the transactions tab
AUTOTAG_SHEET_ID = os.environ.get('AUTOTAG_SHEET_ID', '')

# Tab names
RULES_SHEET_NAME = os.environ.get('RULES_SHEET_NAME', 'AutoTag')
TRANSACTIONS_SHEET_NAME = os.environ.get('TRANSACTIONS_SHEET_NAME', 'Transactions')

# Header label of the column the computed tags are written to
TAGS_HEADER = os.environ.get('TAGS_HEADER', 'Tags')

# Rows fetched per read when loading transactions
PAGE_SIZE = int(os.environ.get('PAGE_SIZE', '1000'))

# Credential files (relative to the working directory)
CREDENTIALS_FILE = os.environ.get('GOOGLE_CREDENTIALS_FILE', 'credentials.json')
TOKEN_FILE = os.environ.get('GOOGLE_TOKEN_FILE', 'token.json')
SERVICE_ACCOUNT_FILE = os.environ.get('GOOGLE_SERVICE_ACCOUNT_FILE', 'service_account.json')

# ============================================================================
# CATEGORIZATION SETTINGS
# ============================================================================

# Only assign a category to transactions whose Category cell is blank
UNCATEGORIZED_ONLY = os.environ.get('UNCATEGORIZED_ONLY', 'false').lower() == 'true'

# How the per-transaction "categorized" flag behaves across passes:
#   per_pass - flag is cleared at the start of every pass
#   sticky   - flag is set once and never cleared for the object's lifetime
POLICY_PER_PASS = 'per_pass'
POLICY_STICKY = 'sticky'
CATEGORIZATION_POLICIES = (POLICY_PER_PASS, POLICY_STICKY)
CATEGORIZATION_POLICY = os.environ.get('CATEGORIZATION_POLICY', POLICY_PER_PASS)

# ============================================================================
# COLUMN NAMES
# ============================================================================

# Transactions tab (Tiller layout)
COL_DATE = 'Date'
COL_DESCRIPTION = 'Description'
COL_CATEGORY = 'Category'
COL_TAGS = 'Tags'
COL_AMOUNT = 'Amount'
COL_ACCOUNT = 'Account'
COL_ACCOUNT_NUMBER = 'Account #'
COL_INSTITUTION = 'Institution'
COL_MONTH = 'Month'
COL_WEEK = 'Week'
COL_FULL_DESCRIPTION = 'Full Description'
COL_CHECK_NUMBER = 'Check Number'
COL_TRANSACTION_ID = 'Transaction ID'

# Fixed column order of the transactions tab
TRANSACTION_COLUMNS = [
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
]

# Fixed column order of the rules tab
RULE_COLUMNS = [
    'Category',
    'Tags',
    'Description',
    'Account',
    'Institution',
    'Amount',
]

# ============================================================================
# ERROR HANDLING
# ============================================================================

# Max attempts per Sheets API call
MAX_RETRIES = int(os.environ.get('MAX_RETRIES', '3'))

# Base delay for exponential backoff (seconds)
RETRY_BASE_DELAY = float(os.environ.get('RETRY_BASE_DELAY', '2.0'))

# ============================================================================
# LOGGING
# ============================================================================

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


def validate_config(sheet_id: str = AUTOTAG_SHEET_ID, policy: str = CATEGORIZATION_POLICY):
    """Validate required configuration. Raises RuntimeError on missing or bad values."""
    problems = []
    if not sheet_id:
        problems.append('AUTOTAG_SHEET_ID is not set')
    if policy not in CATEGORIZATION_POLICIES:
        problems.append(
            f"CATEGORIZATION_POLICY must be one of {', '.join(CATEGORIZATION_POLICIES)} (got '{policy}')"
        )
    if PAGE_SIZE <= 0:
        problems.append('PAGE_SIZE must be positive')
    if problems:
        raise RuntimeError(
            "Invalid configuration:\n  " + "\n  ".join(problems)
        )
