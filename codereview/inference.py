"""
Clients for the external inference service.

Every provider takes one system message and one user message and returns the
generated text. Failures are raised as InferenceError; nothing is retried.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import httpx
import ollama
from anthropic import AsyncAnthropic
from google import genai
from openai import AsyncOpenAI

from codereview.config import Settings
from codereview.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from codereview.errors import InferenceError


def _dump(raw: Any) -> str:
    if hasattr(raw, "model_dump_json"):
        return raw.model_dump_json()
    return json.dumps(raw, default=str)


class InferenceService(ABC):
    """One-shot text generation from a system and a user message."""

    def __init__(
        self,
        model: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Run one generation. Raises InferenceError on any provider failure."""
        try:
            return await self._call_api(self._messages(system_prompt, user_prompt))
        except InferenceError:
            raise
        except Exception as e:
            logging.error(f"{self.__class__.__name__} call failed: {e}")
            raise InferenceError(f"{self.__class__.__name__} call failed: {e}") from e

    @staticmethod
    def _messages(system_prompt: str, user_prompt: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    @abstractmethod
    async def _call_api(self, messages: List[Dict[str, str]]) -> str:
        """Make a single API call and return the generated text."""


class LlamaServerInference(InferenceService):
    """llama.cpp server, or any endpoint speaking the OpenAI chat completions wire format."""

    def __init__(self, url: str, model: str, api_key: str = "", timeout: float = 120.0, **kwargs):
        super().__init__(model, **kwargs)
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    async def _call_api(self, messages: List[Dict[str, str]]) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": False,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload, headers=headers)

        if response.status_code != 200:
            raise InferenceError(f"Llama server error {response.status_code}: {response.text}")

        data = response.json()
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        return content or _dump(data)


class OllamaInference(InferenceService):

    def __init__(self, host: str, model: str, **kwargs):
        super().__init__(model, **kwargs)
        self.client = ollama.AsyncClient(host=host)

    async def _call_api(self, messages: List[Dict[str, str]]) -> str:
        response = await self.client.chat(
            model=self.model,
            messages=messages,
            options={"num_predict": self.max_tokens, "temperature": self.temperature},
        )
        content = response["message"]["content"]
        return content or _dump(response)


class OpenAIInference(InferenceService):

    def __init__(self, api_key: str, model: str, base_url: str = "", **kwargs):
        super().__init__(model, **kwargs)
        if base_url:
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        else:
            self.client = AsyncOpenAI(api_key=api_key)

    async def _call_api(self, messages: List[Dict[str, str]]) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        content = response.choices[0].message.content if response.choices else None
        return content or _dump(response)


class AnthropicInference(InferenceService):

    def __init__(self, api_key: str, model: str, **kwargs):
        super().__init__(model, **kwargs)
        self.client = AsyncAnthropic(api_key=api_key)

    async def _call_api(self, messages: List[Dict[str, str]]) -> str:
        # Anthropic takes the system message separately from the turn list
        system = messages[0]["content"]
        response = await self.client.messages.create(
            model=self.model,
            system=system,
            messages=messages[1:],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        return text.strip() or _dump(response)


class GeminiInference(InferenceService):

    def __init__(self, api_key: str, model: str, **kwargs):
        super().__init__(model, **kwargs)
        self.client = genai.Client(api_key=api_key)

    async def _call_api(self, messages: List[Dict[str, str]]) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=[messages[1]["content"]],
            config=genai.types.GenerateContentConfig(
                system_instruction=messages[0]["content"],
                max_output_tokens=self.max_tokens,
                temperature=self.temperature,
            ),
        )
        return response.text or _dump(response)


def create_inference_service(settings: Settings) -> InferenceService:
    """Build the provider named by ``INFERENCE_PROVIDER``."""
    provider = settings.INFERENCE_PROVIDER.lower()
    params = {"max_tokens": settings.MAX_TOKENS, "temperature": settings.TEMPERATURE}

    if provider == "srvllama":
        return LlamaServerInference(
            settings.LLAMA_SERVER_URL, settings.MODEL_NAME, api_key=settings.SERVER_SIDE_API_KEY, **params
        )
    if provider == "ollama":
        return OllamaInference(settings.OLLAMA_URL, settings.MODEL_NAME, **params)
    if provider == "openai":
        return OpenAIInference(
            settings.SERVER_SIDE_API_KEY, settings.MODEL_NAME, base_url=settings.INFERENCE_BASE_URL, **params
        )
    if provider == "anthropic":
        return AnthropicInference(settings.SERVER_SIDE_API_KEY, settings.MODEL_NAME, **params)
    if provider == "gemini":
        return GeminiInference(settings.SERVER_SIDE_API_KEY, settings.MODEL_NAME, **params)

    raise ValueError(f"Unknown inference provider: {settings.INFERENCE_PROVIDER}")
