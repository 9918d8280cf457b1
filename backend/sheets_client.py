# file: backend/sheets_client.py
"""
Google Sheets v4 REST client.

Authenticates with a service-account key file and calls the REST API
through google-auth's AuthorizedSession (a requests.Session that attaches
and refreshes the bearer token). HTTP errors surface as
requests.HTTPError; credential problems as GoogleAuthError.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import quote

from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"


class SheetsClient:
    def __init__(self, session: AuthorizedSession, timeout: float = 30.0) -> None:
        self._session = session
        self._timeout = timeout

    @classmethod
    def from_service_account_file(cls, path: str | Path, timeout: float = 30.0) -> "SheetsClient":
        credentials = service_account.Credentials.from_service_account_file(
            str(path), scopes=[SHEETS_SCOPE],
        )
        return cls(AuthorizedSession(credentials), timeout=timeout)

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        response.raise_for_status()
        return response.json() if response.content else {}

    def values_batch_update(
        self, spreadsheet_id: str, data: List[dict], value_input_option: str = "RAW",
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"{SHEETS_API}/{spreadsheet_id}/values:batchUpdate",
            json={"valueInputOption": value_input_option, "data": data},
        )

    def values_append(
        self,
        spreadsheet_id: str,
        range_: str,
        values: List[List[Any]],
        value_input_option: str = "RAW",
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"{SHEETS_API}/{spreadsheet_id}/values/{quote(range_, safe='')}:append",
            params={"valueInputOption": value_input_option},
            json={"values": values},
        )

    def get_spreadsheet(self, spreadsheet_id: str) -> Dict[str, Any]:
        return self._request(
            "GET",
            f"{SHEETS_API}/{spreadsheet_id}",
            params={"fields": "sheets.properties"},
        )

    def batch_update(self, spreadsheet_id: str, requests: List[dict]) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"{SHEETS_API}/{spreadsheet_id}:batchUpdate",
            json={"requests": requests},
        )
