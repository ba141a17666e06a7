import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

import requests

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30
SUMMARY_CHARS = 2000

TEXT_CONTENT_TYPES = ("text/", "application/json", "application/xml", "application/csv")


def _filename_from_url(url: str, default: str) -> str:
    name = os.path.basename(unquote(urlparse(url).path))
    return name or default


def _is_text(content_type: str) -> bool:
    return any(content_type.startswith(prefix) for prefix in TEXT_CONTENT_TYPES)


def summarize_document(filename: str, content_type: str, body: bytes) -> Dict[str, Any]:
    """Text bodies are truncated into the summary; binary bodies are described by metadata."""
    if _is_text(content_type):
        text = body.decode("utf-8", errors="replace").strip()
        summary = text[:SUMMARY_CHARS]
        if len(text) > SUMMARY_CHARS:
            summary += "..."
    else:
        summary = f"{filename}: {content_type or 'unknown type'} document, {len(body)} bytes"

    return {
        "filename": filename,
        "content_type": content_type,
        "size": len(body),
        "summary": summary,
    }


class DocumentLoader:
    """Downloads background documents referenced by URL."""

    def __init__(self, timeout: float = DOWNLOAD_TIMEOUT, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def load(self, url: str, default_name: str = "document") -> Optional[Dict[str, Any]]:
        """Download one document. A failed download is logged and yields None."""
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Document download failed for {url}: {e}")
            return None
        if response.status_code != 200:
            logger.warning(f"Document download failed for {url}: HTTP {response.status_code}")
            return None

        content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip().lower()
        filename = _filename_from_url(url, default_name)
        logger.info(f"Document downloaded: {filename} ({len(response.content)} bytes)")
        return summarize_document(filename, content_type, response.content)

    def load_all(self, complaint_file_url: Optional[str] = None, research_file_url: Optional[str] = None) -> List[Dict[str, Any]]:
        documents = []
        for url, default_name in ((complaint_file_url, "complaint"), (research_file_url, "research")):
            if not url:
                continue
            document = self.load(url, default_name)
            if document:
                documents.append(document)
        return documents
