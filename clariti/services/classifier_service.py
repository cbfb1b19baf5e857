"""
Claude API gateway used for content classification and prioritization
"""
from anthropic import AsyncAnthropic
from clariti.config import get_settings
from clariti.utils.helpers import strip_code_fences
from typing import Optional, Dict, Any
import json

settings = get_settings()


class ClassifierService:
    """Stateless chat gateway; its only state is the API credential."""

    def __init__(self, api_key: Optional[str] = None):
        api_key = api_key or settings.ANTHROPIC_API_KEY or None
        self.model = settings.CLASSIFIER_MODEL
        self.max_tokens = settings.CLASSIFIER_MAX_TOKENS
        self._available = bool(api_key)
        if self._available:
            self.client = AsyncAnthropic(api_key=api_key, timeout=settings.CLASSIFIER_TIMEOUT_S)
        else:
            self.client = None

    async def generate_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Send a single user message and return the text of the reply
        """
        if not self._available or self.client is None:
            raise RuntimeError("AI service not configured: ANTHROPIC_API_KEY is not set")

        messages = [{"role": "user", "content": prompt}]

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            temperature=settings.CLASSIFIER_TEMPERATURE if temperature is None else temperature,
            system=system_prompt if system_prompt else "",
            messages=messages
        )

        return response.content[0].text

    async def generate_structured_response(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Generate a reply and parse it as a single JSON object
        """
        response_text = await self.generate_response(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature
        )

        # Models like to wrap JSON in markdown fences even when told not to
        response_text = strip_code_fences(response_text)

        try:
            parsed = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse classifier response as JSON: {e}\n\nResponse: {response_text}")

        if not isinstance(parsed, dict):
            raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed


# Singleton instance
classifier_service = ClassifierService()
