"""
Chat-completions gateway.

All outbound calls to the AI provider go through this class. The provider
speaks the OpenAI chat-completions dialect:

    POST <AI_GATEWAY_URL>
    Authorization: Bearer <key>
    {"model": "...", "messages": [{"role": "...", "content": "..."}]}
    → {"choices": [{"message": {"content": "..."}}]}

No retry and no fallback: a non-2xx answer or a transport failure is a
ProviderError for that single question.

Testability: pass a fake ``session`` instead of letting the gateway create
a real requests.Session.
"""

from __future__ import annotations

import logging
import time

import requests

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_MODEL = "google/gemini-2.5-flash"
_DEFAULT_TIMEOUT = 60


class ProviderError(Exception):
    """The chat-completions provider failed; surfaced to the user as HTTP 502."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ChatCompletionGateway:
    """Thin client around one chat-completions endpoint.

    Usage:
        gw = ChatCompletionGateway(api_key)
        text = gw.chat([{"role": "user", "content": "Hola"}])
    """

    def __init__(
        self,
        api_key: str,
        url: str = DEFAULT_URL,
        model: str = DEFAULT_MODEL,
        timeout: int = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self._session: requests.Session | None = session

    @classmethod
    def from_config(cls, config, api_key: str | None = None, session=None) -> "ChatCompletionGateway":
        """Build a gateway from Flask config (``AI_*`` keys)."""
        return cls(
            api_key=api_key or config.get("AI_GATEWAY_API_KEY", ""),
            url=config.get("AI_GATEWAY_URL") or DEFAULT_URL,
            model=config.get("AI_CHAT_MODEL") or DEFAULT_MODEL,
            timeout=config.get("AI_REQUEST_TIMEOUT") or _DEFAULT_TIMEOUT,
            session=session,
        )

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def chat(self, messages: list[dict]) -> str:
        """Send ``messages`` and return the first choice's content as-is.

        Raises:
            ProviderError: transport failure, non-2xx status or a body
                without ``choices[0].message.content``.
        """
        start = time.perf_counter()
        try:
            resp = self.session.post(
                self.url,
                json={"model": self.model, "messages": messages},
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("AI provider unreachable: %s", exc)
            raise ProviderError(f"AI provider unreachable: {exc}") from exc

        duration_ms = (time.perf_counter() - start) * 1000
        if not resp.ok:
            logger.error("AI provider error: %s %s", resp.status_code, resp.text[:500],
                         extra={"duration_ms": duration_ms})
            raise ProviderError(
                f"AI provider returned HTTP {resp.status_code}", status_code=resp.status_code
            )

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderError("AI provider returned an unexpected body",
                                status_code=resp.status_code) from exc

        logger.info("AI provider answered model=%s", self.model,
                    extra={"duration_ms": duration_ms})
        return content
