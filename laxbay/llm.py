# laxbay/llm.py
"""Gemini generation client.

Transient upstream conditions (rate limits, timeouts, 5xx) are retried with
exponential backoff; once retries run out the caller gets an
`UpstreamUnavailable` with a retry-after hint. A missing API key is a
configuration error and is never retried.
"""
from typing import Iterator, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import BlockedPromptException, StopCandidateException

from . import config
from .errors import ConfigurationError, UpstreamError, UpstreamUnavailable
from .utils import logger, retry

TRANSIENT_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.TooManyRequests,
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)

# raised by the SDK when a safety filter ends generation
STOPPED_ERRORS = (BlockedPromptException, StopCandidateException)


class LanguageModelClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        retry_after: Optional[int] = None,
        model=None,
    ):
        self.api_key = api_key if api_key is not None else config.GOOGLE_API_KEY
        self.model_name = model_name or config.GEMINI_MODEL
        self.timeout = timeout if timeout is not None else config.LLM_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else config.LLM_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else config.LLM_RETRY_DELAY_SECONDS
        self.retry_after = retry_after if retry_after is not None else config.LLM_RETRY_AFTER_SECONDS
        self._model = model

    @property
    def model(self):
        if self._model is None:
            if not self.api_key:
                raise ConfigurationError("Missing GOOGLE_API_KEY env var")
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def _call(self, prompt: str, stream: bool = False):
        call = retry(
            TRANSIENT_ERRORS,
            tries=max(self.max_retries, 1),
            delay=self.retry_delay,
            backoff=2,
        )(self.model.generate_content)
        try:
            return call(prompt, stream=stream, request_options={"timeout": self.timeout})
        except TRANSIENT_ERRORS as e:
            logger.error("Generation unavailable after %d attempts: %s", self.max_retries, e)
            raise UpstreamUnavailable(retry_after=self.retry_after)
        except STOPPED_ERRORS as e:
            logger.warning("Generation stopped: %s", e)
            raise UpstreamError("chat error")
        except google_exceptions.GoogleAPIError as e:
            logger.exception("Generation failed: %s", e)
            raise UpstreamError("chat error")

    def generate(self, prompt: str) -> str:
        response = self._call(prompt)
        return _text(response)

    def stream(self, prompt: str) -> Iterator[str]:
        """Start generation and return an iterator of text chunks.

        The request is sent before this returns, so setup failures raise
        here like `generate`; failures mid-generation raise `UpstreamError`
        (or `UpstreamUnavailable`) from the iterator.
        """
        response = self._call(prompt, stream=True)
        return self._chunks(response)

    def _chunks(self, response) -> Iterator[str]:
        # partial text has already been sent, so nothing here is retried
        try:
            for chunk in response:
                text = _text(chunk)
                if text:
                    yield text
        except TRANSIENT_ERRORS as e:
            logger.error("Generation interrupted: %s", e)
            raise UpstreamUnavailable(retry_after=self.retry_after)
        except STOPPED_ERRORS as e:
            logger.warning("Generation stopped mid-stream: %s", e)
            raise UpstreamError("chat error")
        except google_exceptions.GoogleAPIError as e:
            logger.exception("Generation failed mid-stream: %s", e)
            raise UpstreamError("chat error")


def _text(response) -> str:
    try:
        return response.text or ""
    except ValueError:
        # blocked or empty candidates have no text accessor
        return ""
