"""API Client for OpenRouter
============================

Minimal async client for OpenRouter chat completions, used by the code
generation adapter.

Features:
- async HTTP calls with aiohttp
- retry with exponential backoff on 408/409/429/5xx and transport errors
- shared circuit breaker so a failing endpoint is not hammered
"""

import asyncio
import json
import logging
import os
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from designsynth.config.config_manager import get_settings
from designsynth.utils.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (408, 409, 429, 500, 502, 503, 504)

# Shared circuit breaker for OpenRouter API
_openrouter_breaker: Optional[CircuitBreaker] = None


def get_openrouter_breaker() -> CircuitBreaker:
    """Get the shared OpenRouter circuit breaker."""
    global _openrouter_breaker
    if _openrouter_breaker is None:
        _openrouter_breaker = CircuitBreaker("openrouter-synthesis", failure_threshold=3, cooldown=60.0)
    return _openrouter_breaker


class OpenRouterClient:
    """Minimal client for OpenRouter chat completions.

    Usage:
        client = OpenRouterClient()
        success, response, status = await client.chat_completion(
            model="openai/o1-mini",
            messages=[{"role": "user", "content": "Hello"}],
        )
    """

    API_URL = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else get_settings().api_key
        self.api_url = api_url or self.API_URL
        self.site_url = os.getenv("OPENROUTER_SITE_URL", "https://designsynth.local")
        self.site_name = os.getenv("OPENROUTER_SITE_NAME", "designsynth")

        if not self.api_key:
            logger.warning("OPENROUTER_API_KEY not set")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        """Build request headers."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.site_url,
            "X-Title": self.site_name,
            "Content-Type": "application/json",
            "X-Request-ID": str(uuid.uuid4()),
        }

    def _payload(self, model: str, messages: List[Dict[str, str]], temperature: float,
                 max_tokens: int) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": min(max_tokens, 32000),
        }

    async def chat_completion(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: int = 32000,
        timeout: int = 300,
        max_retries: int = 2,
    ) -> Tuple[bool, Dict[str, Any], int]:
        """Make a chat completion request.

        Args:
            model: OpenRouter model ID (e.g., 'openai/o1-mini')
            messages: Chat messages
            temperature: Sampling temperature (0.0-1.0)
            max_tokens: Maximum output tokens
            timeout: Request timeout in seconds
            max_retries: Number of retry attempts

        Returns:
            Tuple of (success, response_data, status_code)
        """
        if not self.api_key:
            return False, {"error": "API key not configured"}, 401

        breaker = get_openrouter_breaker()
        if not breaker.allow_request():
            status = breaker.get_status()
            return False, {
                "error": f"Circuit breaker open, last failure {status.get('last_failure', 'unknown')}",
                "circuit_open": True,
            }, 503

        headers = self._headers()
        payload = self._payload(model, messages, temperature, max_tokens)
        short_model = model.split('/')[-1] if '/' in model else model

        last_error = None
        start_time = time.time()

        for attempt in range(max_retries + 1):
            try:
                logger.info(f"API call -> {short_model} (attempt {attempt + 1}/{max_retries + 1})")

                async with aiohttp.ClientSession() as session:
                    async with session.post(
                        self.api_url,
                        json=payload,
                        headers=headers,
                        timeout=aiohttp.ClientTimeout(total=timeout),
                    ) as response:
                        status_code = response.status
                        data = await self._read_body(response)

                        if status_code == 200:
                            if 'choices' not in data:
                                error_msg = data.get('error', {})
                                if isinstance(error_msg, dict):
                                    error_msg = error_msg.get('message', 'Missing choices')
                                logger.error(f"Malformed 200 response: {error_msg}")
                                breaker.record_failure()
                                return False, {"error": error_msg}, status_code

                            elapsed = time.time() - start_time
                            usage = data.get('usage', {})
                            logger.info(
                                f"{short_model} answered in {elapsed:.1f}s "
                                f"({usage.get('prompt_tokens', 0)} -> {usage.get('completion_tokens', 0)} tokens)"
                            )
                            breaker.record_success()
                            return True, data, status_code

                        error_obj = data.get('error', {})
                        if isinstance(error_obj, dict):
                            error_msg = error_obj.get('message', str(data))
                        else:
                            error_msg = str(error_obj)
                        logger.warning(f"API error {status_code} ({short_model}): {error_msg}")
                        logger.debug(f"API error payload ({status_code}): {json.dumps(data, ensure_ascii=False)[:4000]}")

                        if status_code in RETRYABLE_STATUSES and attempt < max_retries:
                            backoff = 2 ** attempt * 2
                            logger.info(f"Retrying in {backoff}s...")
                            await asyncio.sleep(backoff)
                            continue

                        if status_code >= 500:
                            breaker.record_failure()
                        return False, data, status_code

            except aiohttp.ClientError as e:
                last_error = str(e)
                logger.warning(f"Network error: {e}")
                if attempt < max_retries:
                    await asyncio.sleep(2 ** attempt * 2)
                    continue
            except asyncio.TimeoutError:
                last_error = "Request timeout"
                logger.warning(f"Timeout after {timeout}s")
                if attempt < max_retries:
                    await asyncio.sleep(2 ** attempt)
                    continue

        # All retries failed
        breaker.record_failure()
        return False, {"error": last_error or "Unknown error"}, 503

    async def _read_body(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        content_type = response.headers.get('Content-Type', '')
        if 'application/json' in content_type:
            try:
                data = await response.json()
            except (aiohttp.ContentTypeError, json.JSONDecodeError):
                text = await response.text()
                return {"error": f"Invalid JSON: {text[:200]}"}
            return data if isinstance(data, dict) else {"error": f"Unexpected body: {str(data)[:200]}"}
        text = await response.text()
        return {"error": f"Non-JSON response: {text[:200]}"}


# Singleton instance
_client: Optional[OpenRouterClient] = None


def get_api_client() -> OpenRouterClient:
    """Get shared API client instance."""
    global _client
    if _client is None:
        _client = OpenRouterClient()
    return _client
