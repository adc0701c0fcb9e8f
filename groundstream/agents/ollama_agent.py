"""
Model stream adapter backed by a local Ollama instance.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import ollama

from .agent import IModelStreamAdapter, ModelCompleted, ModelDelta, ModelError, ModelStreamEvent
from ..core import config
from ..core.errors import StreamFailure

logger = logging.getLogger(__name__)

# Errors that mean "the provider failed", as opposed to programming errors
PROVIDER_ERRORS = (ollama.ResponseError, httpx.HTTPError, ConnectionError, OSError)


def _field(obj: Any, name: str, default=None):
    """Read a field from an ollama response object or a plain dict."""
    if obj is None:
        return default
    getter = getattr(obj, "get", None)
    if getter is not None:
        return getter(name, default)
    return getattr(obj, name, default)


class OllamaStreamAdapter(IModelStreamAdapter):
    """
    Streams chat completions from Ollama as ModelStreamEvents.

    Every delta the provider yields is relayed as-is and in order; the
    adapter never merges or splits chunks.
    """

    def __init__(self, model_name: Optional[str] = None, host: Optional[str] = None,
                 client: Optional[ollama.AsyncClient] = None, options: Optional[Dict[str, Any]] = None):
        self.model_name = model_name or config.OLLAMA_MODEL
        self.host = host or config.OLLAMA_HOST
        self._client = client or ollama.AsyncClient(host=self.host)
        self.options = options or {'temperature': 0.7, 'top_p': 0.9}

    async def stream(self, prompt: str, model: Optional[str] = None) -> AsyncIterator[ModelStreamEvent]:
        model = model or self.model_name
        try:
            parts = await self._client.chat(
                model=model,
                messages=self._build_messages(prompt),
                stream=True,
                options=self.options
            )
            async for part in parts:
                text = _field(_field(part, 'message'), 'content', '')
                if text:
                    yield ModelDelta(text=text)
                if _field(part, 'done', False):
                    yield ModelCompleted()
                    return
        except ollama.ResponseError as e:
            logger.warning(f"Ollama stream error for model {model}: {e.error}")
            yield ModelError(message=f"Ollama model error: {e.error}")
        except PROVIDER_ERRORS as e:
            logger.warning(f"Ollama stream failed for model {model}: {e}")
            yield ModelError(message=f"Ollama unavailable: {e}")

    async def complete(self, prompt: str, model: Optional[str] = None) -> str:
        model = model or self.model_name
        try:
            response = await self._client.chat(
                model=model,
                messages=self._build_messages(prompt),
                stream=False,
                options=self.options
            )
        except ollama.ResponseError as e:
            raise StreamFailure(f"Ollama model error: {e.error}") from e
        except PROVIDER_ERRORS as e:
            raise StreamFailure(f"Ollama unavailable: {e}") from e

        return _field(_field(response, 'message'), 'content', '') or ''

    def _build_messages(self, prompt: str) -> List[Dict[str, str]]:
        # The grounding instructions already live in the composed prompt
        return [{'role': 'user', 'content': prompt}]


def check_ollama_health(host: Optional[str] = None) -> bool:
    """Check whether the Ollama service answers."""
    try:
        ollama.Client(host=host or config.OLLAMA_HOST).list()
        return True
    except PROVIDER_ERRORS:
        return False
