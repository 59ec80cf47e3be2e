"""
docgraph - LLM Client
Talks to any OpenAI-compatible endpoint (OpenRouter by default).
"""
import logging
from typing import Dict, List, Optional

from openai import OpenAI
from pydantic import BaseModel

from ..config import settings
from ..errors import ServiceConnectionError

logger = logging.getLogger(__name__)


class Message(BaseModel):
    role: str  # "system", "user", or "assistant"
    content: str


class LLMClient:
    """
    Thin chat-completion client.

    The same instance is shared by all extraction workers; the underlying
    OpenAI client is safe to use from several threads.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key or settings.openrouter_api_key
        self.model = model or settings.openrouter_model
        self.base_url = base_url or settings.openrouter_base_url
        self.timeout = timeout or settings.extraction_timeout

        if client is not None:
            self.client = client
            return

        if not self.api_key:
            raise ServiceConnectionError(
                "LLM API key is required. "
                "Set OPENROUTER_API_KEY in your environment or .env file."
            )

        self.client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
        )

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 2048,
        **kwargs
    ) -> str:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text response (empty string if the model sent nothing)
        """
        logger.debug(f"LLM request: model={self.model}, messages={len(messages)}")
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )
        return response.choices[0].message.content or ""
