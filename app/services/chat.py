import logging
import time
from typing import Any, Dict, Optional, Tuple, Union

from app.services.sheets import SheetsClient, SheetsError
from persona_engine.exceptions import ModelError
from persona_engine.openai_client import OpenAIClient
from persona_engine.parsers import parse_quick_persona, quick_persona_fallback
from persona_engine.prompt_generator import PromptGenerator

logger = logging.getLogger(__name__)

CHAT_MAX_TOKENS = 1000
CHAT_TEMPERATURE = 0.7
QUICK_PERSONA_MAX_TOKENS = 800
QUICK_PERSONA_TEMPERATURE = 0.6

GENERIC_PERSONA = {
    "name": "AI Assistant",
    "bio": "A helpful AI assistant ready to discuss legal matters",
    "communication_style": "Professional and empathetic",
    "case_type": "General Legal",
    "motivations": ["Getting helpful information"],
    "barriers": ["Uncertainty about legal processes"],
    "example_quote": "I want to understand my options.",
}


class PersonaChat:
    """One in-character reply from a stored, described or generic persona."""

    def __init__(self, llm: OpenAIClient, sheets: Optional[SheetsClient] = None):
        self.llm = llm
        self.sheets = sheets

    def lookup(self, persona_name: str) -> Optional[Dict[str, Any]]:
        if self.sheets is None or not self.sheets.storage_spreadsheet_id:
            return None
        try:
            return self.sheets.get_persona_by_name(persona_name)
        except SheetsError as e:
            logger.warning(f"Persona lookup failed: {e}")
            return None

    def quick_persona(self, description: str) -> Dict[str, Any]:
        prompt = PromptGenerator.quick_persona_prompt(description)
        try:
            text = self.llm.complete(
                prompt, max_tokens=QUICK_PERSONA_MAX_TOKENS, temperature=QUICK_PERSONA_TEMPERATURE
            )
        except ModelError as e:
            logger.error(f"Quick persona generation failed: {e}")
            return quick_persona_fallback(description).model_dump()
        return parse_quick_persona(text, description).value.model_dump()

    def resolve(
        self,
        persona_name: Optional[str],
        persona_attributes: Optional[Union[str, Dict[str, Any]]],
    ) -> Tuple[Dict[str, Any], str]:
        """Return (persona, chat_type)."""
        if persona_name:
            logger.info(f"Looking up persona: {persona_name}")
            persona = self.lookup(persona_name)
            if persona:
                return persona, "existing_persona"

        if isinstance(persona_attributes, dict) and persona_attributes.get("name"):
            return dict(persona_attributes), "custom_persona"
        if isinstance(persona_attributes, str) and persona_attributes.strip():
            logger.info("Using custom persona attributes")
            return self.quick_persona(persona_attributes.strip()), "custom_persona"

        return dict(GENERIC_PERSONA), "generic_persona"

    def reply(
        self,
        message: str,
        persona_name: Optional[str] = None,
        persona_attributes: Optional[Union[str, Dict[str, Any]]] = None,
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        persona, chat_type = self.resolve(persona_name, persona_attributes)
        logger.info(f"Chatting with persona: {persona.get('name')}")

        text = self.llm.complete(
            message.strip(),
            system=PromptGenerator.chat_system_prompt(persona),
            max_tokens=CHAT_MAX_TOKENS,
            temperature=CHAT_TEMPERATURE,
        )
        name = persona.get("name") or GENERIC_PERSONA["name"]
        return {
            "persona_name": name,
            "persona_response": text,
            "chat_type": chat_type,
            "conversation_id": conversation_id or f"{name}_{int(time.time() * 1000)}",
        }
