"""
LLM client for the summary endpoint (any OpenAI-compatible chat completions API).
"""

import time
from typing import Dict, Any, Optional, List

import httpx
from openai import AsyncOpenAI, OpenAI, APIError, APIStatusError
from tenacity import (
    AsyncRetrying,
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
from loguru import logger

from cubox_tidy.config import LLMConfig, get_config
from cubox_tidy.errors import ConfigurationMissing, ExternalCallFailure


class LLMClient:
    """Client for the chat completions endpoint used to summarize notes."""

    def __init__(self, config: Optional[LLMConfig] = None, notifier=None, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize the LLM client.

        Args:
            config: Endpoint configuration; defaults to the global config
            notifier: Optional NotificationManager receiving failure notices
            transport: Optional httpx transport (e.g. httpx.MockTransport) for both clients
        """
        self.config = config or get_config().llm
        self.notifier = notifier
        self.transport = transport
        logger.info(f"Initialized LLM client with model: {self.config.model} at {self.config.api_base}")

    def _client_kwargs(self, api_key: str, is_async: bool = False) -> Dict[str, Any]:
        # SDK-level retries are off; the retry policy below is the only one
        kwargs: Dict[str, Any] = {
            'api_key': api_key,
            'base_url': self.config.api_base,
            'timeout': self.config.timeout,
            'max_retries': 0,
        }
        if self.transport is not None:
            if is_async:
                kwargs['http_client'] = httpx.AsyncClient(transport=self.transport)
            else:
                kwargs['http_client'] = httpx.Client(transport=self.transport)
        return kwargs

    def build_messages(self, prompt: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.config.system_prompt},
            {"role": "user", "content": prompt},
        ]

    def _call_params(self, prompt: str) -> Dict[str, Any]:
        call_params: Dict[str, Any] = {
            'model': self.config.model,
            'messages': self.build_messages(prompt),
            'stream': False,
        }
        if self.config.max_tokens is not None:
            call_params['max_tokens'] = self.config.max_tokens
        if self.config.temperature is not None:
            call_params['temperature'] = self.config.temperature
        return call_params

    def _retry_kwargs(self) -> Dict[str, Any]:
        return {
            'stop': stop_after_attempt(self.config.max_retries),
            'wait': wait_exponential(multiplier=1, min=1, max=30),
            'retry': retry_if_exception_type(ExternalCallFailure),
            'reraise': True,
        }

    @staticmethod
    def _extract_content(response) -> str:
        """Read choices[0].message.content; anything missing is a failure."""
        choices = getattr(response, 'choices', None)
        if not choices:
            raise ExternalCallFailure("Response has no choices")
        message = getattr(choices[0], 'message', None)
        content = getattr(message, 'content', None) if message is not None else None
        if not content or not content.strip():
            raise ExternalCallFailure("Response has no message content")
        return content.strip()

    @staticmethod
    def _wrap_api_error(e: Exception) -> ExternalCallFailure:
        if isinstance(e, APIStatusError):
            return ExternalCallFailure(f"API error: {e.status_code} {e.message}")
        return ExternalCallFailure(f"API error: {e}")

    async def complete_async(self, prompt: str, api_key: str) -> str:
        """
        Generate a completion asynchronously.

        Raises:
            ExternalCallFailure: non-2xx status, transport error, or missing content
        """
        start_time = time.time()
        client = AsyncOpenAI(**self._client_kwargs(api_key, is_async=True))
        try:
            async for attempt in AsyncRetrying(**self._retry_kwargs()):
                with attempt:
                    try:
                        response = await client.chat.completions.create(**self._call_params(prompt))
                    except APIError as e:
                        logger.error(f"API call failed: {str(e)}")
                        raise self._wrap_api_error(e) from e
                    text = self._extract_content(response)
        finally:
            await client.close()

        logger.debug(f"API call completed in {time.time() - start_time:.2f}s, {len(text)} chars")
        return text

    def complete_sync(self, prompt: str, api_key: str) -> str:
        """Synchronous twin of complete_async."""
        start_time = time.time()
        client = OpenAI(**self._client_kwargs(api_key))
        try:
            for attempt in Retrying(**self._retry_kwargs()):
                with attempt:
                    try:
                        response = client.chat.completions.create(**self._call_params(prompt))
                    except APIError as e:
                        logger.error(f"API call failed: {str(e)}")
                        raise self._wrap_api_error(e) from e
                    text = self._extract_content(response)
        finally:
            client.close()

        logger.debug(f"API call completed in {time.time() - start_time:.2f}s, {len(text)} chars")
        return text

    def _report(self, exc: Exception) -> None:
        if self.notifier is not None:
            self.notifier.failure(exc)

    async def request_summary(self, prompt: str, api_key: Optional[str]) -> Optional[str]:
        """
        Ask the endpoint for a summary.

        Returns:
            The summary text, or None after reporting the failure as a notice
        """
        if not api_key:
            self._report(ConfigurationMissing("API key is not configured"))
            return None
        try:
            return await self.complete_async(prompt, api_key)
        except ExternalCallFailure as e:
            logger.error(f"Summary request failed: {e}")
            self._report(e)
            return None

    def request_summary_sync(self, prompt: str, api_key: Optional[str]) -> Optional[str]:
        """Synchronous twin of request_summary."""
        if not api_key:
            self._report(ConfigurationMissing("API key is not configured"))
            return None
        try:
            return self.complete_sync(prompt, api_key)
        except ExternalCallFailure as e:
            logger.error(f"Summary request failed: {e}")
            self._report(e)
            return None


# Global client instance
_llm_client: Optional[LLMClient] = None


def get_llm_client(notifier=None) -> LLMClient:
    """Get the global LLM client instance."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient(get_config().llm, notifier=notifier)
    return _llm_client


def reset_llm_client():
    """Reset the global LLM client instance."""
    global _llm_client
    _llm_client = None
