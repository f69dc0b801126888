# chat_service.py
import logging
import time

import httpx

from .errors import (
    ConfigurationError,
    InvalidInput,
    RateLimited,
    UpstreamProtocolError,
    UpstreamTimeout,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are MindMate, a warm and supportive journaling companion. "
    "Be concise, kind, and practical. Never diagnose."
)

MAX_TOKENS = 1000
_BODY_EXCERPT = 500


class ChatGateway:
    """Forwards one chat message to an OpenRouter-compatible completions API.

    Every failure leaves this class as one of the errors in ``mindmate.errors``.
    There is no retry: each call is a single request bounded by ``ai_timeout``.
    """

    def __init__(self, settings, transport=None):
        self._api_key = settings.openrouter_api_key
        self._api_url = settings.openrouter_api_url
        self._model = settings.openrouter_model
        self._referer = settings.public_app_url
        self._timeout = settings.ai_timeout
        # Tests pass an httpx.MockTransport here.
        self._transport = transport

    def _headers(self):
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            # Attribution headers recommended by OpenRouter.
            "HTTP-Referer": self._referer,
            "X-Title": "MindMate",
        }

    def _body(self, message):
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": message},
            ],
            "max_tokens": MAX_TOKENS,
        }

    def _redact(self, raw):
        raw = (raw or "")[:_BODY_EXCERPT]
        if self._api_key:
            raw = raw.replace(self._api_key, "***")
        return raw

    def _post(self, client, message):
        """POST and read the body, giving up once ``ai_timeout`` has elapsed overall.

        httpx timeouts apply per phase, so a body trickling in slowly is cut
        off here between chunks.
        """
        deadline = time.monotonic() + self._timeout
        with client.stream("POST", self._api_url, headers=self._headers(), json=self._body(message)) as streamed:
            chunks = []
            for chunk in streamed.iter_bytes():
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    logger.warning("LLM response exceeded %ss overall", self._timeout)
                    raise UpstreamTimeout(detail={"reason": "deadline exceeded"})
            # The chunks are already decoded.
            headers = streamed.headers.copy()
            headers.pop("content-encoding", None)
            headers.pop("content-length", None)
            return httpx.Response(
                streamed.status_code,
                headers=headers,
                content=b"".join(chunks),
                request=streamed.request,
            )

    def chat(self, message):
        if not isinstance(message, str) or not message.strip():
            raise InvalidInput("Message is required")
        if not self._api_key:
            logger.error("OpenRouter API key is missing")
            raise ConfigurationError(detail={"reason": "OPENROUTER_API_KEY is not set"})

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = self._post(client, message)
        except httpx.TimeoutException as e:
            logger.warning("LLM request timed out after %ss", self._timeout)
            raise UpstreamTimeout(detail={"reason": type(e).__name__}) from e
        except httpx.TransportError as e:
            logger.warning("LLM request failed: %s", e)
            raise UpstreamUnavailable(detail={"reason": str(e)}, status_code=503) from e

        logger.info("LLM status: %s", resp.status_code)
        if resp.status_code >= 400:
            raise self._classify_status(resp)

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamProtocolError(
                detail={"status": resp.status_code, "body": self._redact(resp.text)}
            ) from e
        if not isinstance(content, str) or not content.strip():
            raise UpstreamProtocolError(
                detail={"status": resp.status_code, "reason": "empty completion"}
            )
        return content.strip()

    def _classify_status(self, resp):
        status = resp.status_code
        detail = {"status": status, "body": self._redact(resp.text)}
        if status in (401, 403):
            logger.error("OpenRouter rejected the configured credential (%s)", status)
            return ConfigurationError("Invalid API key configuration", detail=detail)
        if status == 429:
            return RateLimited(detail=detail, retry_after=resp.headers.get("Retry-After"))
        logger.warning("LLM upstream error %s", status)
        return UpstreamUnavailable(detail=detail, status_code=503 if status == 503 else 502)
