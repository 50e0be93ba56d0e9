"""
Error types raised while scanning for missing cash-up sessions.

StorageError  -> the cash-up session lookup failed
OracleError   -> the business-open check failed for a date

Both abort the scan; compute_missing_cashup_dates turns them into a
{"success": False, "error": ...} result.
"""

import httpx
from postgrest.exceptions import APIError

# Error responses come back as APIError; transport failures (refused
# connection, timeout) surface as httpx errors from .execute()
SUPABASE_ERRORS = (APIError, httpx.HTTPError)


class CashupScanError(Exception):
    """Base class for failures inside the missing cash-up scan."""


class StorageError(CashupScanError):
    pass


class OracleError(CashupScanError):
    pass
