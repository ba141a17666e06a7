"""
PyTest configuration and fixtures.

Every external collaborator is replaced by an in-memory fake; no test touches
the network.
"""

import json
import re

import httplib2
import pytest
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError

from app.dependencies import Services, get_services
from app.main import app
from app.services.sheets import STORAGE_SCHEMA, SheetsClient
from persona_engine.throttle import Throttle


# ---------- Model ----------

class FakeLLM:
    """Scripted stand-in for OpenAIClient. Exceptions in the script are raised."""

    def __init__(self, replies=None, events=None):
        self.replies = list(replies or [])
        self.calls = []
        self.events = events

    def complete(self, prompt, system=None, max_tokens=2000, temperature=0.3):
        self.calls.append({"prompt": prompt, "system": system, "max_tokens": max_tokens, "temperature": temperature})
        if self.events is not None:
            self.events.append("llm")
        if not self.replies:
            raise AssertionError("FakeLLM ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


# ---------- Google Sheets ----------

_CELL = re.compile(r"^([A-Z]*)(\d*)$")


def _column_index(letters):
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - 64)
    return index - 1


def parse_a1(a1):
    """(row0, col0, row1, col1) with None for unbounded ends."""
    if "!" in a1:
        a1 = a1.split("!", 1)[1]
    parts = a1.split(":")
    start = _CELL.match(parts[0]).groups()
    end = _CELL.match(parts[1]).groups() if len(parts) > 1 else start
    row0 = int(start[1]) - 1 if start[1] else 0
    col0 = _column_index(start[0]) if start[0] else 0
    row1 = int(end[1]) - 1 if end[1] else None
    col1 = _column_index(end[0]) if end[0] else None
    return row0, col0, row1, col1


def http_error(status):
    return HttpError(httplib2.Response({"status": str(status)}), b"{}")


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeSpreadsheet:
    def __init__(self, rows=None, sheets=None):
        self.grid = [list(r) for r in (rows or [])]
        self.sheets = sheets or [{"properties": {"sheetId": 0, "title": "Sheet1"}}]

    def write(self, row0, col0, values):
        for r, row in enumerate(values):
            target = row0 + r
            while len(self.grid) <= target:
                self.grid.append([])
            line = self.grid[target]
            for c, value in enumerate(row):
                col = col0 + c
                while len(line) <= col:
                    line.append("")
                line[col] = value

    def read(self, a1):
        row0, col0, row1, col1 = parse_a1(a1)
        last_row = len(self.grid) - 1 if row1 is None else min(row1, len(self.grid) - 1)
        out = []
        for r in range(row0, last_row + 1):
            line = self.grid[r]
            stop = len(line) if col1 is None else min(col1 + 1, len(line))
            cells = line[col0:stop]
            while cells and cells[-1] in ("", None):
                cells.pop()
            out.append(cells)
        while out and not out[-1]:
            out.pop()
        return out


class FakeValues:
    def __init__(self, service):
        self.service = service

    def get(self, spreadsheetId, range):
        def run():
            sheet = self.service.lookup(spreadsheetId)
            values = sheet.read(range)
            return {"range": range, "values": values} if values else {"range": range}
        return _Request(run)

    def update(self, spreadsheetId, range, valueInputOption, body):
        def run():
            sheet = self.service.lookup(spreadsheetId)
            row0, col0, _, _ = parse_a1(range)
            sheet.write(row0, col0, body["values"])
            return {"updatedRange": range, "updatedRows": len(body["values"])}
        return _Request(run)

    def append(self, spreadsheetId, range, valueInputOption, body):
        def run():
            sheet = self.service.lookup(spreadsheetId)
            start = len(sheet.grid)
            sheet.write(start, 0, body["values"])
            updated = f"Sheet1!A{start + 1}:P{start + len(body['values'])}"
            return {"updates": {"updatedRange": updated, "updatedRows": len(body["values"])}}
        return _Request(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            sheet = self.service.lookup(spreadsheetId)
            self.service.batch_updates.append(body)
            for entry in body["data"]:
                row0, col0, _, _ = parse_a1(entry["range"])
                sheet.write(row0, col0, entry["values"])
            return {"totalUpdatedCells": len(body["data"])}
        return _Request(run)


class FakeSpreadsheets:
    def __init__(self, service):
        self.service = service

    def values(self):
        return FakeValues(self.service)

    def get(self, spreadsheetId, fields=None):
        return _Request(lambda: {"sheets": self.service.lookup(spreadsheetId).sheets})

    def create(self, body, fields=None):
        def run():
            spreadsheet_id = f"created-{len(self.service.created) + 1}"
            self.service.created.append(body)
            self.service.spreadsheets_by_id[spreadsheet_id] = FakeSpreadsheet()
            return {"spreadsheetId": spreadsheet_id}
        return _Request(run)


class FakeSheetsService:
    """In-memory Sheets v4 service supporting the call chains SheetsClient uses."""

    def __init__(self):
        self.spreadsheets_by_id = {}
        self.errors = {}
        self.created = []
        self.batch_updates = []

    def add(self, spreadsheet_id, rows=None, sheets=None):
        self.spreadsheets_by_id[spreadsheet_id] = FakeSpreadsheet(rows, sheets)
        return self.spreadsheets_by_id[spreadsheet_id]

    def fail(self, spreadsheet_id, status):
        self.errors[spreadsheet_id] = status

    def lookup(self, spreadsheet_id):
        if spreadsheet_id in self.errors:
            raise http_error(self.errors[spreadsheet_id])
        if spreadsheet_id not in self.spreadsheets_by_id:
            raise http_error(404)
        return self.spreadsheets_by_id[spreadsheet_id]

    def spreadsheets(self):
        return FakeSpreadsheets(self)


# ---------- Research, documents, blob ----------

class FakeResearch:
    def __init__(self, bundle=None, events=None):
        self.bundle = bundle if bundle is not None else {}
        self.calls = []
        self.events = events
        self.configured = True

    def collect(self, case_type, keywords, target_description):
        self.calls.append((case_type, keywords, target_description))
        if self.events is not None:
            self.events.append("research")
        return dict(self.bundle)


class FakeDocuments:
    def __init__(self, documents=None):
        self.documents = documents or []
        self.calls = []

    def load_all(self, complaint_file_url=None, research_file_url=None):
        self.calls.append((complaint_file_url, research_file_url))
        return list(self.documents)


class FakeBlob:
    def __init__(self):
        self.stored = []

    def put(self, filename, data, content_type=None):
        self.stored.append((filename, data, content_type))
        return {"url": f"https://blob.example.com/{filename}", "size": len(data), "filename": filename}


# ---------- Shared data ----------

RESEARCH_BUNDLE = {
    "demographics": {"age_demographics": {"pattern": "Adults 35-55", "source": "https://example.gov"}},
    "social_insights": {"pain_points": [{"point": "Hidden fees", "frequency": "high", "source": "reddit"}]},
    "legal_trends": {"error": "Perplexity API error: 500", "_request_type": "legal_trends"},
    "consumer_behavior": {"research_patterns": {"online_research": "Reads reviews first"}},
    "research_timestamp": "2026-01-01T00:00:00+00:00",
    "case_type": "Data breach",
    "keywords": "data breach, identity theft",
}

LONG_BIO = (
    "Maria is a 42-year-old office manager from Columbus, Ohio who learned her personal data was exposed "
    "in a retailer breach [Source: perplexity_research]."
)


def generated_persona(name="Maria Lopez", confidence=85, **overrides):
    persona = {
        "name": name,
        "age": 42,
        "gender": "female",
        "location": "Columbus, OH",
        "bio": LONG_BIO,
        "motivations": ["Protect her family's credit"],
        "barriers": ["Worried about legal costs"],
        "communication_style": "Direct and practical",
        "example_quote": "I just want to know if I'm covered.",
        "data_sources": ["perplexity_research"],
        "confidence_score": confidence,
    }
    persona.update(overrides)
    return persona


def social_reply(confidence=0.8, **fields):
    enriched = {
        "social_media_profiles": {"facebook": {"active": True, "frequency": "daily"}},
        "professional_details": {"industry_experience": "12 years in office administration"},
    }
    enriched.update(fields)
    return json.dumps({
        "enrichedFields": enriched,
        "confidence": confidence,
        "fieldsEnriched": ["social_media", "professional"],
        "insights": ["Responds well to plain-language explanations"],
    })


def legal_reply(delta=0.15):
    return json.dumps({
        "additions": {
            "legal_motivations": ["Recover losses", "Hold the company accountable"],
            "legal_barriers": ["Distrust of lawyers"],
            "decision_timeline": "Decides within a week",
        },
        "insights": ["Complaint shows most victims learned of the breach by mail"],
        "legal_profile": {"likely_legal_experience": "none"},
        "confidence_delta": delta,
    })


SHEET_ROWS = [
    ["Name", "Age", "Location", "Job", "Hobbies", "Description", "Favorite Color"],
    ["Dana Smith", "34", "Austin, TX", "Nurse", "hiking, cooking", "Night-shift nurse", "green"],
    ["Lee Park", "61", "Denver, CO", "Retired librarian", "gardening; chess", "", ""],
]


# ---------- Fixtures ----------

@pytest.fixture
def events():
    return []


@pytest.fixture
def sheets_service():
    return FakeSheetsService()


@pytest.fixture
def sheets_client(sheets_service):
    sheets_service.add("storage-sheet", [STORAGE_SCHEMA.headers])
    return SheetsClient(sheets_service, storage_spreadsheet_id="storage-sheet")


@pytest.fixture
def llm(events):
    return FakeLLM(events=events)


@pytest.fixture
def research(events):
    return FakeResearch(RESEARCH_BUNDLE, events=events)


@pytest.fixture
def documents():
    return FakeDocuments()


@pytest.fixture
def blob():
    return FakeBlob()


@pytest.fixture
def services(llm, research, sheets_client, blob, documents):
    return Services(
        llm=llm,
        research=research,
        sheets=sheets_client,
        blob=blob,
        documents=documents,
        throttle=Throttle(),
    )


@pytest.fixture
def client(services):
    """Create test client with the service container overridden."""
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()
