"""
Google Sheets adapter for persona import, export and storage.

All calls go through a googleapiclient Sheets v4 service object, so tests can
pass any object exposing the same `spreadsheets()` call chains.
"""
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from persona_engine.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
SHEET_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{}"

IMPORT_SOURCE = "julius_sheet"
STORAGE_RANGE = "Sheet1!A:P"
EXPORT_SHEET_TITLE = "Sheet1"
VALUE_INPUT_OPTION = "USER_ENTERED"

_SPREADSHEET_ID_PATTERN = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")
_GID_PATTERN = re.compile(r"[#&?]gid=([0-9]+)")


class SheetsError(Exception):
    """Base exception for spreadsheet failures."""
    pass


class SheetUrlError(SheetsError):
    """The URL is not a Google Sheets document URL."""
    pass


class SheetAccessError(SheetsError):
    """The spreadsheet could not be read or written."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class EmptySheetError(SheetsError):
    """The spreadsheet holds no persona rows."""
    pass


def build_sheets_service(client_email: Optional[str], private_key: Optional[str]):
    """Sheets v4 service authenticated as a service account."""
    if not client_email or not private_key:
        raise ConfigurationError("Google Sheets credentials not configured")
    info = {
        "type": "service_account",
        "client_email": client_email,
        "private_key": private_key.replace("\\n", "\n"),
        "token_uri": "https://oauth2.googleapis.com/token",
    }
    credentials = service_account.Credentials.from_service_account_info(info, scopes=SHEETS_SCOPES)
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def extract_sheet_info(url: Optional[str]) -> Tuple[str, Optional[str]]:
    """Return (spreadsheet_id, gid) from a Google Sheets URL."""
    if not url or not isinstance(url, str):
        raise SheetUrlError("Invalid Google Sheets URL format")
    match = _SPREADSHEET_ID_PATTERN.search(url)
    if not match:
        raise SheetUrlError("Invalid Google Sheets URL format")
    gid_match = _GID_PATTERN.search(url)
    return match.group(1), gid_match.group(1) if gid_match else None


def column_letter(index: int) -> str:
    """Zero-based column index to A1 letters: 0 -> A, 25 -> Z, 26 -> AA."""
    if index < 0:
        raise ValueError("column index must be non-negative")
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


# ---------- Row mapping ----------

HEADER_SYNONYMS = {
    "name": "name",
    "first name": "name",
    "full name": "name",
    "age": "age",
    "gender": "gender",
    "location": "location",
    "city": "location",
    "state": "location",
    "income": "income",
    "household income": "income",
    "education": "education",
    "occupation": "occupation",
    "job": "occupation",
    "interests": "interests",
    "hobbies": "interests",
    "values": "values",
    "communication style": "communication_style",
    "communication_style": "communication_style",
    "bio": "bio",
    "biography": "bio",
    "description": "bio",
    "original bio": "bio",
    "motivations": "motivations",
    "barriers": "barriers",
    "concerns": "barriers",
    "personality": "personality",
    "traits": "personality",
}

LIST_ATTRIBUTES = ("interests", "motivations", "barriers")

_LIST_SPLIT = re.compile(r"[,;]")
_WHITESPACE = re.compile(r"\s+")


def _parse_age(value: str) -> Any:
    try:
        return int(float(value))
    except ValueError:
        return value


def parse_persona_row(row: List[Any], headers: List[str]) -> Optional[Dict[str, Any]]:
    """Map one sheet row through the header synonyms. Rows without a name yield None."""
    persona: Dict[str, Any] = {}
    for header, raw in zip(headers, row):
        value = str(raw).strip() if raw is not None else ""
        if not value:
            continue
        attribute = HEADER_SYNONYMS.get(header)
        if attribute == "age":
            persona["age"] = _parse_age(value)
        elif attribute in LIST_ATTRIBUTES:
            persona[attribute] = [item.strip() for item in _LIST_SPLIT.split(value) if item.strip()]
        elif attribute:
            persona[attribute] = value
        elif header:
            persona[_WHITESPACE.sub("_", header)] = value

    if not persona.get("name"):
        return None

    persona["source"] = IMPORT_SOURCE
    persona["imported_at"] = datetime.now(timezone.utc).isoformat()
    persona["status"] = "imported"
    return persona


def _join(value: Any, sep: str = "; ") -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return sep.join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


def _nested(persona: Dict[str, Any], *path: str) -> Any:
    value: Any = persona
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _age_cell(persona: Dict[str, Any]) -> Any:
    age = persona.get("age")
    return "" if age is None else age


def _safe_json(value: Any) -> Dict[str, Any]:
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _safe_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _social_platform(persona: Dict[str, Any], platform: str, detail: str) -> str:
    profile = _nested(persona, "social_media_profiles", platform)
    if not isinstance(profile, dict):
        return ""
    return f"Active: {profile.get('active')}, {detail.capitalize()}: {profile.get(detail)}"


def _legal_insights(persona: Dict[str, Any]) -> str:
    motivations = persona.get("legal_motivations")
    if isinstance(motivations, list):
        motivations = motivations[:2]
    return _join(motivations)


class ColumnSchema:
    """Ordered (header, extractor) pairs describing one sheet layout."""

    def __init__(self, columns: List[Tuple[str, Callable[[Dict[str, Any], Dict[str, Any]], Any]]]):
        self.columns = columns

    @property
    def headers(self) -> List[str]:
        return [header for header, _ in self.columns]

    @property
    def last_letter(self) -> str:
        return column_letter(len(self.columns) - 1)

    def row(self, persona: Dict[str, Any], context: Dict[str, Any]) -> List[Any]:
        return [extract(persona, context) for _, extract in self.columns]


STORAGE_SCHEMA = ColumnSchema([
    ("Name", lambda p, c: p.get("name") or ""),
    ("Age", lambda p, c: _age_cell(p)),
    ("Demographics", lambda p, c: f"{p.get('gender') or 'N/A'}, {p.get('location') or 'N/A'}"),
    ("Bio", lambda p, c: p.get("bio") or ""),
    ("Motivations", lambda p, c: _join(p.get("motivations"))),
    ("Barriers", lambda p, c: _join(p.get("barriers"))),
    ("Communication Style", lambda p, c: _join(p.get("communication_style"))),
    ("Example Quote", lambda p, c: p.get("example_quote") or ""),
    ("Created Date", lambda p, c: c.get("timestamp") or ""),
    ("Case Type", lambda p, c: c.get("matter") or ""),
    ("Personality", lambda p, c: json.dumps(p.get("personality") or {}, default=str)),
    ("Status", lambda p, c: p.get("status") or "ready_for_testing"),
    ("Run ID", lambda p, c: c.get("session_id") or ""),
    ("Confidence Score", lambda p, c: p.get("confidence_score") or 0),
    ("Source Citations", lambda p, c: json.dumps(p.get("source_citations") or {}, default=str)),
    ("Validation Score", lambda p, c: _nested(p, "validation", "quality_score") or 0),
])

EXPORT_SCHEMA = ColumnSchema([
    ("Name", lambda p, c: p.get("name") or ""),
    ("Age", lambda p, c: _age_cell(p)),
    ("Gender", lambda p, c: p.get("gender") or ""),
    ("Location", lambda p, c: p.get("location") or ""),
    ("Occupation", lambda p, c: p.get("occupation") or ""),
    ("Education", lambda p, c: p.get("education") or ""),
    ("Income", lambda p, c: p.get("income") or ""),
    ("Original Bio", lambda p, c: p.get("bio") or ""),
    ("Interests", lambda p, c: _join(p.get("interests"))),
    ("Values", lambda p, c: _join(p.get("values"))),
    ("Communication Style", lambda p, c: _join(p.get("communication_style"))),
    ("Social Media - Facebook", lambda p, c: _social_platform(p, "facebook", "frequency")),
    ("Social Media - LinkedIn", lambda p, c: _social_platform(p, "linkedin", "usage")),
    ("Social Media - Other", lambda p, c: _join(_nested(p, "social_media_profiles", "other_platforms"), ", ")),
    ("Professional Background", lambda p, c: _join(_nested(p, "professional_details", "industry_experience"))),
    ("Community Involvement", lambda p, c: _join(p.get("community_involvement"))),
    ("Legal Motivations", lambda p, c: _join(p.get("legal_motivations"))),
    ("Legal Barriers", lambda p, c: _join(p.get("legal_barriers"))),
    ("Legal Experience", lambda p, c: _join(_nested(p, "legal_profile", "likely_legal_experience"))),
    ("Preferred Legal Communication", lambda p, c: _join(p.get("preferred_legal_communication"))),
    ("Decision Timeline", lambda p, c: _join(p.get("decision_timeline"))),
    ("Trust Factors", lambda p, c: _join(p.get("trust_factors_legal"))),
    ("Document Insights", lambda p, c: _join(p.get("document_insights"))),
    ("Enrichment Sources", lambda p, c: _join(_nested(p, "enrichment", "sources"), ", ")),
    ("Confidence Score", lambda p, c: _nested(p, "enrichment", "confidence_score") or ""),
    ("Original Source", lambda p, c: p.get("source") or IMPORT_SOURCE),
    ("Enriched Date", lambda p, c: _nested(p, "enrichment", "enriched_at")
        or _nested(p, "enrichment_metadata", "enriched_at") or ""),
    ("Campaign Matter", lambda p, c: c.get("matter") or ""),
])

# Columns written back next to the source data on in-place update
ENRICHMENT_COLUMNS = ColumnSchema([
    ("enrichment_status", lambda p, c: _nested(p, "enrichment", "status") or p.get("status") or "enriched"),
    ("social_media_summary", lambda p, c: "Added social profiles" if p.get("social_media_profiles") else ""),
    ("legal_insights", lambda p, c: _legal_insights(p)),
    ("confidence_score", lambda p, c: _nested(p, "enrichment", "confidence_score") or ""),
    ("enriched_date", lambda p, c: _nested(p, "enrichment", "enriched_at")
        or _nested(p, "enrichment_metadata", "enriched_at") or ""),
])


class ColumnRegistry:
    """
    Header row of an existing sheet, with upsert of columns by name.

    Existing columns are reused; missing ones are appended after the last
    header and reported by `new_columns`.
    """

    def __init__(self, headers: List[Any]):
        self.headers = [str(h).strip() for h in headers]
        self._index = {}
        for i, header in enumerate(self.headers):
            key = header.lower()
            if key and key not in self._index:
                self._index[key] = i
        self.new_columns: Dict[str, int] = {}

    def find(self, *names: str) -> Optional[int]:
        for name in names:
            index = self._index.get(name.strip().lower())
            if index is not None:
                return index
        return None

    def upsert(self, name: str) -> int:
        index = self.find(name)
        if index is not None:
            return index
        index = len(self.headers)
        self.headers.append(name)
        self._index[name.lower()] = index
        self.new_columns[name] = index
        return index


def _http_status(error: HttpError) -> Optional[int]:
    resp = getattr(error, "resp", None)
    status = getattr(resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


class SheetsClient:
    """Import, export, storage and in-place update of persona sheets."""

    def __init__(self, service, storage_spreadsheet_id: Optional[str] = None):
        self.service = service
        self.storage_spreadsheet_id = storage_spreadsheet_id

    def _values(self):
        return self.service.spreadsheets().values()

    def _sheet_prefix(self, spreadsheet_id: str, gid: Optional[str]) -> str:
        """A1 prefix for the tab named by gid, or the first tab when gid is absent."""
        if gid is None:
            return ""
        meta = self.service.spreadsheets().get(
            spreadsheetId=spreadsheet_id, fields="sheets.properties"
        ).execute()
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            if str(props.get("sheetId")) == str(gid):
                title = props.get("title", "").replace("'", "''")
                return f"'{title}'!"
        logger.warning(f"Sheet gid {gid} not found in {spreadsheet_id}, using first sheet")
        return ""

    def _require_storage(self) -> str:
        if not self.storage_spreadsheet_id:
            raise ConfigurationError("GOOGLE_SHEETS_ID not configured")
        return self.storage_spreadsheet_id

    # ---------- Import ----------

    def import_rows(self, sheet_url: str) -> List[Dict[str, Any]]:
        """
        Read personas from an external sheet.

        Raises:
            SheetUrlError: URL is not a Google Sheets document
            SheetAccessError: the API refused or failed the read
            EmptySheetError: only headers, or no row with a name
        """
        spreadsheet_id, gid = extract_sheet_info(sheet_url)
        logger.info(f"Fetching personas from external sheet: {spreadsheet_id}")

        try:
            prefix = self._sheet_prefix(spreadsheet_id, gid)
            response = self._values().get(spreadsheetId=spreadsheet_id, range=f"{prefix}A:Z").execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to access personas sheet: {e}", status=_http_status(e)) from e

        rows = response.get("values") or []
        if len(rows) <= 1:
            raise EmptySheetError("No persona data found in the sheet or only headers present")

        headers = [str(h).lower().strip() for h in rows[0]]
        logger.info(f"Found headers: {headers}")

        personas = []
        for row in rows[1:]:
            persona = parse_persona_row(row, headers)
            if persona:
                personas.append(persona)

        if not personas:
            raise EmptySheetError("No persona rows with a name found in the sheet")

        logger.info(f"Retrieved {len(personas)} personas from external sheet")
        return personas

    # ---------- Export ----------

    def _create_spreadsheet(self, title: str) -> str:
        body = {
            "properties": {"title": title},
            "sheets": [{"properties": {"title": EXPORT_SHEET_TITLE}}],
        }
        response = self.service.spreadsheets().create(body=body, fields="spreadsheetId").execute()
        return response["spreadsheetId"]

    def export_rows(
        self,
        personas: List[Dict[str, Any]],
        campaign: Dict[str, Any],
        target_spreadsheet_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Write the enriched-persona table, creating a spreadsheet when no target is given."""
        logger.info(f"Exporting {len(personas)} enriched personas to Google Sheets")
        try:
            spreadsheet_id = target_spreadsheet_id or self._create_spreadsheet(
                f"Enriched Personas - {campaign.get('matter')} - {datetime.now(timezone.utc).date().isoformat()}"
            )
            rows = [EXPORT_SCHEMA.headers] + [EXPORT_SCHEMA.row(p, campaign) for p in personas]
            response = self._values().update(
                spreadsheetId=spreadsheet_id,
                range=f"{EXPORT_SHEET_TITLE}!A1:{EXPORT_SCHEMA.last_letter}{len(rows)}",
                valueInputOption=VALUE_INPUT_OPTION,
                body={"values": rows},
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Export failed: {e}", status=_http_status(e)) from e

        return {
            "success": True,
            "spreadsheet_id": spreadsheet_id,
            "sheet_url": SHEET_URL_TEMPLATE.format(spreadsheet_id),
            "rows_exported": len(rows) - 1,
            "updated_range": response.get("updatedRange"),
        }

    # ---------- Storage ----------

    def append_personas(self, personas: List[Dict[str, Any]], campaign: Dict[str, Any]) -> Dict[str, Any]:
        """Append generated personas to the storage sheet."""
        spreadsheet_id = self._require_storage()
        context = dict(campaign)
        context.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        rows = [STORAGE_SCHEMA.row(p, context) for p in personas]
        try:
            response = self._values().append(
                spreadsheetId=spreadsheet_id,
                range=STORAGE_RANGE,
                valueInputOption=VALUE_INPUT_OPTION,
                body={"values": rows},
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to store personas: {e}", status=_http_status(e)) from e

        logger.info(f"Stored {len(personas)} personas in Google Sheets")
        return {
            "success": True,
            "rows_added": len(rows),
            "sheet_url": SHEET_URL_TEMPLATE.format(spreadsheet_id),
            "updated_range": (response.get("updates") or {}).get("updatedRange"),
        }

    @staticmethod
    def _stored_persona(row: List[Any]) -> Dict[str, Any]:
        row = list(row) + [""] * (len(STORAGE_SCHEMA.columns) - len(row))
        age = _parse_age(str(row[1])) if row[1] != "" else None
        return {
            "name": row[0],
            "age": age if isinstance(age, int) else None,
            "demographics": row[2],
            "bio": row[3],
            "motivations": row[4].split("; ") if row[4] else [],
            "barriers": row[5].split("; ") if row[5] else [],
            "communication_style": row[6],
            "example_quote": row[7],
            "created_date": row[8],
            "case_type": row[9],
            "personality": _safe_json(row[10]),
            "status": row[11],
            "run_id": row[12],
            "confidence_score": _safe_float(row[13]),
            "source_citations": _safe_json(row[14]),
            "validation_score": _safe_float(row[15]),
        }

    def _storage_rows(self) -> List[List[Any]]:
        spreadsheet_id = self._require_storage()
        try:
            response = self._values().get(spreadsheetId=spreadsheet_id, range=STORAGE_RANGE).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to read personas: {e}", status=_http_status(e)) from e
        return response.get("values") or []

    def get_all_personas(self) -> List[Dict[str, Any]]:
        rows = self._storage_rows()
        personas = [self._stored_persona(row) for row in rows[1:] if row]
        logger.info(f"Retrieved {len(personas)} personas from Google Sheets")
        return personas

    def get_persona_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive lookup in the storage sheet. None when absent."""
        wanted = name.strip().lower()
        for row in self._storage_rows()[1:]:
            if row and str(row[0]).strip().lower() == wanted:
                return self._stored_persona(row)
        return None

    # ---------- In-place update ----------

    def update_in_place(self, personas: List[Dict[str, Any]], sheet_url: str) -> Dict[str, Any]:
        """
        Write enrichment columns back into the source sheet.

        Enrichment columns are matched by header name, so repeated runs reuse
        them. Rows are matched by persona name; unmatched personas are counted
        and skipped.
        """
        spreadsheet_id, gid = extract_sheet_info(sheet_url)
        try:
            prefix = self._sheet_prefix(spreadsheet_id, gid)
            header_response = self._values().get(spreadsheetId=spreadsheet_id, range=f"{prefix}1:1").execute()
            registry = ColumnRegistry((header_response.get("values") or [[]])[0])

            name_index = registry.find(*[h for h, attr in HEADER_SYNONYMS.items() if attr == "name"])
            row_numbers: Dict[str, List[int]] = {}
            if name_index is not None:
                letter = column_letter(name_index)
                name_response = self._values().get(
                    spreadsheetId=spreadsheet_id, range=f"{prefix}{letter}:{letter}"
                ).execute()
                for offset, cells in enumerate((name_response.get("values") or [])[1:], start=2):
                    if cells and str(cells[0]).strip():
                        row_numbers.setdefault(str(cells[0]).strip().lower(), []).append(offset)

            columns = {header: registry.upsert(header) for header in ENRICHMENT_COLUMNS.headers}

            data = []
            for header, index in registry.new_columns.items():
                data.append({"range": f"{prefix}{column_letter(index)}1", "values": [[header]]})

            updated = 0
            not_found = []
            for persona in personas:
                key = str(persona.get("name") or "").strip().lower()
                candidates = row_numbers.get(key)
                if not candidates:
                    not_found.append(persona.get("name"))
                    continue
                row_number = candidates.pop(0)
                for header, extract in ENRICHMENT_COLUMNS.columns:
                    letter = column_letter(columns[header])
                    data.append({"range": f"{prefix}{letter}{row_number}", "values": [[extract(persona, {})]]})
                updated += 1

            if data:
                self._values().batchUpdate(
                    spreadsheetId=spreadsheet_id,
                    body={"valueInputOption": VALUE_INPUT_OPTION, "data": data},
                ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Sheet update failed: {e}", status=_http_status(e)) from e

        if not_found:
            logger.warning(f"No matching rows for {len(not_found)} personas: {not_found}")
        logger.info(f"Updated source sheet with enrichment data for {updated} personas")

        return {
            "success": True,
            "spreadsheet_id": spreadsheet_id,
            "sheet_url": sheet_url,
            "personas_updated": updated,
            "personas_not_found": len(not_found),
            "columns": {header: column_letter(index) for header, index in columns.items()},
        }
