#!/usr/bin/env python3
"""
Shared utilities for the transaction auto-tagger.

Contains:
- Google API authentication (OAuth for local runs, service account otherwise)
- Amount and date parsing utilities
- Sheets read/write helpers with retry
"""

import os
import logging
import time
from datetime import datetime
from typing import List, Optional, Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from autotag.config import (
    CREDENTIALS_FILE,
    TOKEN_FILE,
    SERVICE_ACCOUNT_FILE,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)

# Google API Scopes
SCOPES = ['https://www.googleapis.com/auth/spreadsheets']

logger = logging.getLogger(__name__)

# ============================================================================
# AUTHENTICATION
# ============================================================================

def get_credentials_oauth(credentials_file: str = CREDENTIALS_FILE,
                          token_file: str = TOKEN_FILE) -> Credentials:
    """OAuth user credentials, cached in the token file between runs."""
    creds = None
    if os.path.exists(token_file):
        creds = Credentials.from_authorized_user_file(token_file, SCOPES)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except Exception as e:
            logger.warning(f"Could not refresh {token_file} ({e}), starting a new OAuth flow")
            creds = None
    else:
        creds = None

    if creds is None:
        if not os.path.exists(credentials_file):
            raise FileNotFoundError(f"OAuth client file '{credentials_file}' not found")
        flow = InstalledAppFlow.from_client_secrets_file(credentials_file, SCOPES)
        creds = flow.run_local_server(port=0)

    with open(token_file, 'w') as token:
        token.write(creds.to_json())
    return creds


def get_credentials_service_account(service_account_file: str = SERVICE_ACCOUNT_FILE) -> Any:
    """
    Get credentials from a service account file, falling back to
    application default credentials.
    """
    if os.path.exists(service_account_file):
        return service_account.Credentials.from_service_account_file(
            service_account_file, scopes=SCOPES
        )
    from google.auth import default
    creds, _ = default(scopes=SCOPES)
    return creds


def get_credentials() -> Any:
    """Pick service account credentials when available, OAuth otherwise."""
    if os.path.exists(SERVICE_ACCOUNT_FILE) or os.environ.get('GOOGLE_APPLICATION_CREDENTIALS'):
        return get_credentials_service_account()
    return get_credentials_oauth()


def get_sheets_service(creds=None):
    """Get authenticated Sheets service."""
    if creds is None:
        creds = get_credentials()
    return build('sheets', 'v4', credentials=creds)


def validate_sheet_access(service, sheet_id: str, sheet_name: str) -> List[str]:
    """
    Validate that a Google Sheet is accessible.

    Args:
        service: Sheets API service
        sheet_id: The Google Sheet ID
        sheet_name: Human-readable name for error messages

    Returns:
        Titles of the tabs in the spreadsheet

    Raises:
        ValueError: If sheet cannot be accessed with helpful error message
    """
    try:
        result = service.spreadsheets().get(
            spreadsheetId=sheet_id,
            fields='properties.title,sheets.properties.title'
        ).execute()
    except HttpError as e:
        if e.resp.status == 404:
            raise ValueError(
                f"Cannot access {sheet_name} sheet (ID: {sheet_id}). "
                f"Sheet not found. Check that the ID is correct."
            )
        elif e.resp.status == 403:
            raise ValueError(
                f"Cannot access {sheet_name} sheet (ID: {sheet_id}). "
                f"Permission denied. Share the sheet with your service account or OAuth user."
            )
        else:
            raise ValueError(
                f"Cannot access {sheet_name} sheet (ID: {sheet_id}). "
                f"Error: {e}"
            )

    logger.info(f"Validated access to {sheet_name}: {result.get('properties', {}).get('title', 'Unknown')}")
    return [
        s.get('properties', {}).get('title', '')
        for s in result.get('sheets', [])
    ]

# ============================================================================
# PARSING UTILITIES
# ============================================================================

# Leading currency symbols stripped from formatted amounts
CURRENCY_SYMBOLS = '$€£¥₹'


def parse_amount(amount_value) -> float:
    """
    Parse amount from currency-formatted text:
    - ($41.03) -> -41.03 (accounting notation for negative)
    - -$41.03 -> -41.03
    - $1,041.03 -> 1041.03
    - €41.03 -> 41.03
    - 41.03 -> 41.03
    """
    if amount_value is None:
        return 0.0
    if isinstance(amount_value, (int, float)):
        return float(amount_value)

    amount_str = str(amount_value).strip()

    is_negative = False
    if amount_str.startswith('(') and amount_str.endswith(')'):
        is_negative = True
        amount_str = amount_str[1:-1].strip()
    elif amount_str.startswith('-'):
        is_negative = True
        amount_str = amount_str[1:].strip()

    amount_str = amount_str.lstrip(CURRENCY_SYMBOLS).replace(',', '').strip()

    if not amount_str:
        return 0.0

    try:
        amount = float(amount_str)
        return -amount if is_negative else amount
    except ValueError:
        logger.warning(f"Could not parse amount: {amount_value}")
        return 0.0


def parse_date(date_str: str) -> Optional[datetime]:
    """
    Parse date string to datetime object.

    Returns datetime normalized to midnight (00:00:00) for consistent
    date comparisons.
    """
    if not date_str:
        return None

    formats = [
        '%m/%d/%Y',
        '%Y-%m-%d',
        '%m-%d-%Y',
        '%Y/%m/%d',
        '%m/%d/%y',
    ]

    for fmt in formats:
        try:
            dt = datetime.strptime(str(date_str).strip(), fmt)
            return dt.replace(hour=0, minute=0, second=0, microsecond=0)
        except ValueError:
            continue

    logger.warning(f"Could not parse date: {date_str}")
    return None


def split_tags(tags_value) -> List[str]:
    """Split a comma-delimited tag cell, dropping blanks and keeping first-seen order."""
    if not tags_value:
        return []
    tags = []
    for tag in str(tags_value).split(','):
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags

# ============================================================================
# SHEETS HELPERS
# ============================================================================

def column_index_to_letter(col_index: int) -> str:
    """0 -> 'A', 25 -> 'Z', 26 -> 'AA'."""
    letters = ''
    n = col_index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord('A') + rem) + letters
    return letters


def _retry_on_error(func, max_retries: int = MAX_RETRIES, base_delay: float = RETRY_BASE_DELAY):
    """
    Call ``func``, backing off exponentially on rate limits, server errors
    and network failures. Other HTTP errors propagate immediately.
    """
    last_exception = None

    for attempt in range(1, max_retries + 1):
        try:
            return func()
        except HttpError as e:
            if e.resp.status not in (429, 500, 503):
                raise
            last_exception = e
            reason = f"HTTP {e.resp.status}"
        except Exception as e:
            last_exception = e
            reason = str(e)

        if attempt < max_retries:
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"Sheets call failed ({reason}), attempt {attempt}/{max_retries}, retrying in {delay}s")
            time.sleep(delay)

    logger.error(f"Sheets call failed after {max_retries} attempts")
    raise last_exception


def read_sheet_data(service, sheet_id: str, range_name: str,
                    major_dimension: str = 'ROWS') -> List[List[Any]]:
    """Read formatted cell text from a range, by rows or by columns."""
    def do_read():
        return service.spreadsheets().values().get(
            spreadsheetId=sheet_id,
            range=range_name,
            majorDimension=major_dimension,
            valueRenderOption='FORMATTED_VALUE'
        ).execute()

    result = _retry_on_error(do_read)
    return result.get('values', [])


def write_to_sheet(service, sheet_id: str, range_name: str, values: List[List[Any]]):
    """Overwrite a range in a single update call."""
    body = {'values': values}

    def do_write():
        return service.spreadsheets().values().update(
            spreadsheetId=sheet_id,
            range=range_name,
            valueInputOption='RAW',
            body=body
        ).execute()

    return _retry_on_error(do_write)
