import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests

from persona_engine.parsers import parse_research_payload
from persona_engine.prompt_generator import RESEARCH_SYSTEM_MESSAGE, PromptGenerator

logger = logging.getLogger(__name__)

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"
DEFAULT_RESEARCH_MODEL = "sonar-pro"
DEFAULT_RESEARCH_TIMEOUT = 30
RESEARCH_TEMPERATURE = 0.3
RESEARCH_MAX_TOKENS = 2000

RESEARCH_TOPICS = ("demographics", "social_insights", "legal_trends", "consumer_behavior")


class ResearchError(Exception):
    """A single research query failed."""
    pass


class ResearchCollector:
    """
    Market research through the Perplexity chat completions API.

    The four topic queries run concurrently and are joined before `collect`
    returns. A failed topic degrades to an `error` entry; the bundle is always
    returned.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_RESEARCH_MODEL,
        timeout: float = DEFAULT_RESEARCH_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _request(self, prompt: str, request_type: str) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": RESEARCH_SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            "temperature": RESEARCH_TEMPERATURE,
            "max_tokens": RESEARCH_MAX_TOKENS,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self.session.post(PERPLEXITY_URL, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise ResearchError("Perplexity API request timeout or network error") from e
        except requests.RequestException as e:
            raise ResearchError(f"Research request failed: {str(e)}") from e

        if response.status_code != 200:
            logger.error(f"Perplexity API error for {request_type}: {response.status_code} - {response.text}")
            raise ResearchError(f"Perplexity API error: {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ResearchError(f"Malformed Perplexity response: {str(e)}") from e
        if not content:
            raise ResearchError("Empty response from Perplexity API")

        return parse_research_payload(content, request_type)

    def _safe_request(self, prompt: str, request_type: str) -> Dict[str, Any]:
        try:
            return self._request(prompt, request_type)
        except ResearchError as e:
            logger.error(f"Perplexity API request failed for {request_type}: {e}")
            return {"error": str(e), "_request_type": request_type}

    def collect(self, case_type: str, keywords: str, target_description: str) -> Dict[str, Any]:
        """
        Run the four research topics for a campaign.

        Returns {"error": "Research API not configured"} without any network
        call when no API key is set.
        """
        if not self.configured:
            logger.warning("Perplexity API key not configured, skipping research")
            return {"error": "Research API not configured"}

        logger.info(f"Starting research for case type: {case_type}")

        prompts: Dict[str, Callable[[], str]] = {
            "demographics": lambda: PromptGenerator.demographics_prompt(case_type, target_description),
            "social_insights": lambda: PromptGenerator.social_insights_prompt(keywords),
            "legal_trends": lambda: PromptGenerator.legal_trends_prompt(case_type),
            "consumer_behavior": lambda: PromptGenerator.consumer_behavior_prompt(case_type, keywords),
        }

        with ThreadPoolExecutor(max_workers=len(RESEARCH_TOPICS)) as executor:
            futures = {
                topic: executor.submit(self._safe_request, prompts[topic](), topic)
                for topic in RESEARCH_TOPICS
            }
            research = {topic: future.result() for topic, future in futures.items()}

        failed = [topic for topic, result in research.items() if "error" in result]
        if failed:
            logger.warning(f"Research completed with failed topics: {', '.join(failed)}")
        else:
            logger.info("Research completed for all topics")

        research.update({
            "research_timestamp": datetime.now(timezone.utc).isoformat(),
            "case_type": case_type,
            "keywords": keywords,
        })
        return research
