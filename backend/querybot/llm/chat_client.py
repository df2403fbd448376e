# backend/querybot/llm/chat_client.py

from typing import Any, Dict, List, Optional

import requests
from langchain_core.language_models.llms import LLM

from ..core.config import settings


class ChatCompletionsLLM(LLM):
    """
    LangChain LLM wrapper that calls an OpenAI-compatible
    `/chat/completions` endpoint (OpenRouter by default) using `requests`.

    - The prompt becomes the user message
    - An optional `system` keyword argument becomes the system message
    - Non-2xx responses raise, so callers decide on their own fallback
    """

    model: str = "openai/gpt-4o-mini"
    api_url: str = "https://openrouter.ai/api/v1/chat/completions"
    api_key: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 400
    timeout: float = 60.0

    @property
    def _llm_type(self) -> str:
        return "chat-completions-rest"

    @property
    def _identifying_params(self) -> Dict[str, Any]:
        return {"model": self.model, "api_url": self.api_url}

    def _call(
        self,
        prompt: str,
        stop: Optional[List[str]] = None,
        run_manager: Any = None,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> str:
        if not self.api_key:
            raise ValueError("LLM_API_KEY is not set in settings/.env.")

        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        if stop:
            payload["stop"] = stop

        resp = requests.post(
            self.api_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "HTTP-Referer": "http://localhost",
                "X-Title": "QueryBot",
            },
            timeout=self.timeout,
        )

        if resp.status_code < 200 or resp.status_code >= 300:
            raise RuntimeError(f"LLM API error {resp.status_code}: {resp.text}")

        data = resp.json()
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise RuntimeError(f"Failed to parse LLM response: {e}; raw={data}")

        return (content or "").strip()


def get_chat_llm() -> Optional[ChatCompletionsLLM]:
    """
    Factory to create the chat LLM from settings (.env).
    Returns None when no provider or API key is configured.
    """
    provider = (settings.LLM_PROVIDER or "none").lower()
    if provider == "none" or not settings.LLM_API_KEY:
        return None
    return ChatCompletionsLLM(
        model=settings.LLM_MODEL,
        api_url=settings.LLM_API_URL,
        api_key=settings.LLM_API_KEY,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
