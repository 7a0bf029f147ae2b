# services/llm_service.py
import asyncio
import requests
import logging
from typing import Dict, Any, Optional

from config import settings
from core.exceptions import InvalidInputError, UpstreamUnavailableError
from core.interfaces import ICompletionService

logger = logging.getLogger(settings.LOGGER_NAME)

class LLMService(ICompletionService):
    """A service to interact with an OpenAI-compatible chat completions API (e.g., Groq)."""

    def __init__(self, base_url: str, model: str, api_key: Optional[str] = None,
                 timeout: int = settings.REQUEST_TIMEOUT):
        """
        Initializes the LLMService.

        Args:
            base_url: The base URL of the LLM API, without the /chat/completions suffix.
            model: The name of the model to use.
            api_key: Bearer token, if the endpoint requires one.
            timeout: The request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout

    def _build_payload(self, system_prompt: str, user_prompt: str,
                       temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            'model': self.model,
            'temperature': temperature,
            'max_tokens': max_tokens,
            'messages': [
                {'role': 'system', 'content': system_prompt},
                {'role': 'user', 'content': user_prompt},
            ],
        }

    def _post(self, payload: Dict[str, Any]) -> str:
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'

        try:
            logger.info(f"[LLM] Sending prompt to model '{self.model}'...")
            response = requests.post(
                f'{self.base_url}/chat/completions',
                json=payload,
                headers=headers,
                timeout=self.timeout
            )

            response.raise_for_status()  # Raises an HTTPError for bad responses (4xx or 5xx)

            result = response.json()
        except requests.exceptions.Timeout as e:
            logger.error(f"[LLM] Request timed out after {self.timeout} seconds.")
            raise UpstreamUnavailableError("LLM request timed out") from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f"[LLM] Cannot connect to LLM at {self.base_url}. Is the service running?")
            raise UpstreamUnavailableError("Cannot connect to LLM service") from e
        except requests.exceptions.HTTPError as e:
            logger.error(f"[LLM] Service returned an error: {e.response.status_code} {e.response.text}")
            raise UpstreamUnavailableError(f"LLM error: {e.response.status_code}") from e
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"[LLM] Unexpected error: {e}", exc_info=True)
            raise UpstreamUnavailableError(f"LLM request failed: {e}") from e

        choices = result.get('choices') if isinstance(result, dict) else None
        if not isinstance(choices, list) or (choices and not isinstance(choices[0], dict)):
            logger.error(f"[LLM] Unexpected response shape: {str(result)[:200]}")
            raise UpstreamUnavailableError("LLM returned an unexpected response shape")

        message = choices[0].get('message') if choices else None
        content = (message.get('content') if isinstance(message, dict) else None) or ''
        if not isinstance(content, str):
            raise UpstreamUnavailableError("LLM returned non-text content")
        if not content.strip():
            logger.warning("[LLM] Response was empty or malformed.")
        else:
            logger.info("[LLM] Successfully received response.")
        return content.strip()

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int
    ) -> str:
        if not user_prompt or not user_prompt.strip():
            raise InvalidInputError("User prompt is required")

        payload = self._build_payload(system_prompt, user_prompt, temperature, max_tokens)
        return await asyncio.to_thread(self._post, payload)
