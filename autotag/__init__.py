"""
Rule-based transaction auto-tagger for Google Sheets.

Reads user-defined rules from the AutoTag tab, applies them to every row of
the Transactions tab and writes the computed tags back to the Tags column.
"""

__version__ = "1.0.0"
