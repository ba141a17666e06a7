"""
OpenAI client for the Persona Engine
"""
import time
import logging
from typing import Optional

from openai import OpenAI

from .exceptions import ConfigurationError, PersonaEngineError, RateLimitError, APIError, TimeoutError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_RETRIES = 0
DEFAULT_RETRY_BACKOFF_BASE = 1.5
DEFAULT_REQUEST_TIMEOUT = 60
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2000


class OpenAIClient:
    """Client for single-turn prompt-in/text-out calls to the OpenAI chat API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_base: float = DEFAULT_RETRY_BACKOFF_BASE,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[OpenAI] = None,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model to use (default gpt-4o-mini)
            max_retries: Retries after the first attempt on transport errors (default 0)
            retry_backoff_base: Base delay between retries in seconds (default 1.5)
            request_timeout: Per-call timeout in seconds (default 60)
            client: Preconfigured OpenAI SDK client, mostly for tests
        """
        if not api_key and client is None:
            raise ConfigurationError("OpenAI API key not configured")

        self.model = model or DEFAULT_MODEL
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self.request_timeout = request_timeout
        self.client = client or OpenAI(api_key=api_key, timeout=request_timeout, max_retries=0)

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """
        Send one prompt and return the text of the reply.

        Raises:
            RateLimitError: On rate limit exceeded
            TimeoutError: On request timeout
            APIError: On API error or an empty reply
        """
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        total_attempts = self.max_retries + 1
        for attempt in range(total_attempts):
            try:
                resp = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
                content = resp.choices[0].message.content
                if not content:
                    raise APIError("Empty response from model")
                return content

            except PersonaEngineError:
                raise
            except Exception as e:
                if attempt < total_attempts - 1:
                    sleep_time = self.retry_backoff_base * (attempt + 1)
                    logger.warning(f"Model call failed (attempt {attempt + 1}/{total_attempts}), retrying in {sleep_time}s: {e}")
                    time.sleep(sleep_time)
                    continue

                message = str(e).lower()
                if "rate limit" in message or "429" in message:
                    raise RateLimitError(f"Rate limit exceeded: {str(e)}") from e
                elif "timeout" in message or "timed out" in message:
                    raise TimeoutError(f"Request timeout: {str(e)}") from e
                else:
                    raise APIError(f"API error: {str(e)}") from e

        raise APIError("Model call failed")
