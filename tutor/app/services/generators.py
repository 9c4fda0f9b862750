"""Content generators for the tutoring flows.

Each generator follows the same pipeline:
    build prompt -> check cache -> acquire model -> generate -> parse -> cache

Provider failures never propagate: the caller receives a GenerationResult
carrying a templated fallback and the error message.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar

from tutor.app.core.config import settings
from tutor.app.core.logging import get_log_context, get_logger
from tutor.app.exceptions import ProviderUnavailableError
from tutor.app.providers.base import GenerationOptions, user_turn
from tutor.app.providers.client import ProviderClient, get_provider_client
from tutor.app.providers.errors import ProviderError
from tutor.app.services import prompts
from tutor.app.services.parser import (
    QuizData,
    TopicContent,
    WorkedExample,
    parse_examples,
    parse_quiz,
    parse_topic_content,
    parse_topic_list,
)
from tutor.app.services.response_cache import (
    ResponseCache,
    examples_key,
    get_response_cache,
    quiz_key,
    topic_content_key,
    topics_key,
)

logger = get_logger(__name__)

T = TypeVar("T")

# Failures a generator turns into a fallback result
GENERATION_ERRORS = (ProviderError, ProviderUnavailableError)


@dataclass
class GenerationResult(Generic[T]):
    """Outcome of one generation.

    Attributes:
        text: Raw generated text, or the fallback text on failure
        parsed: Structured value extracted from text
        error: Failure message, None on success
        cached: True when the text came from the response cache
    """

    text: str
    parsed: Optional[T] = None
    error: Optional[str] = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class IncompleteContentError(ProviderError):
    """Generated text lacks the fields the flow needs."""


class _CachedGeneration:
    """Shared provider and cache access for the generators."""

    flow: str = "generation"
    options: GenerationOptions = GenerationOptions()
    retry_quota_errors: bool = True

    def __init__(
        self,
        provider_client: Optional[ProviderClient] = None,
        cache: Optional[ResponseCache] = None,
        ttl: Optional[int] = None,
    ):
        self._provider_client = provider_client
        self._cache = cache
        self.ttl = ttl if ttl is not None else settings.cache_content_ttl

    @property
    def provider_client(self) -> ProviderClient:
        if self._provider_client is None:
            self._provider_client = get_provider_client()
        return self._provider_client

    @property
    def cache(self) -> ResponseCache:
        if self._cache is None:
            self._cache = get_response_cache()
        return self._cache

    async def _generate_text(self, prompt: str) -> str:
        handle = await self.provider_client.acquire_model()
        logger.debug(
            f"Generating {self.flow} content",
            extra=get_log_context(model=handle.model_name, flow=self.flow),
        )
        return await handle.generate(
            [user_turn(prompt)], self.options, retry=self.retry_quota_errors
        )

    def _log_failure(self, subject: str, error: Exception) -> None:
        logger.warning(
            f"{self.flow} generation failed for {subject!r}: {type(error).__name__}: {error}",
            extra=get_log_context(flow=self.flow),
        )


class ContentGenerator(_CachedGeneration, ABC, Generic[T]):
    """Cached, fallback-safe generator for one kind of topic content."""

    @abstractmethod
    def build_prompt(self, topic: str) -> str:
        pass

    @abstractmethod
    def cache_key(self, topic: str) -> str:
        pass

    @abstractmethod
    def fallback_text(self, topic: str) -> str:
        pass

    @abstractmethod
    def parse(self, text: str) -> T:
        pass

    def validate(self, parsed: T) -> None:
        """Raise IncompleteContentError when parsed content is unusable."""

    async def generate(self, topic: str) -> GenerationResult[T]:
        key = self.cache_key(topic)
        cached = await self.cache.get(key)
        if isinstance(cached, str):
            logger.debug(f"Cache hit: {key}", extra=get_log_context(flow=self.flow))
            return GenerationResult(text=cached, parsed=self.parse(cached), cached=True)

        try:
            text = await self._generate_text(self.build_prompt(topic))
            parsed = self.parse(text)
            self.validate(parsed)
        except GENERATION_ERRORS as e:
            self._log_failure(topic, e)
            return GenerationResult(
                text=self.fallback_text(topic), error=str(e) or type(e).__name__
            )

        await self.cache.set(key, text, ttl=self.ttl)
        return GenerationResult(text=text, parsed=parsed)


class TopicContentGenerator(ContentGenerator[TopicContent]):
    flow = "topic"
    options = GenerationOptions(max_output_tokens=settings.max_output_tokens, temperature=0.3)

    def build_prompt(self, topic: str) -> str:
        return prompts.TOPIC_CONTENT_PROMPT.format(topic=topic)

    def cache_key(self, topic: str) -> str:
        return topic_content_key(topic)

    def fallback_text(self, topic: str) -> str:
        return prompts.TOPIC_FALLBACK.format(topic=topic)

    def parse(self, text: str) -> TopicContent:
        return parse_topic_content(text)


class ExamplesGenerator(ContentGenerator[List[WorkedExample]]):
    flow = "examples"
    options = GenerationOptions(max_output_tokens=settings.max_output_tokens, temperature=0.4)

    def build_prompt(self, topic: str) -> str:
        return prompts.EXAMPLES_PROMPT.format(topic=topic)

    def cache_key(self, topic: str) -> str:
        return examples_key(topic)

    def fallback_text(self, topic: str) -> str:
        return prompts.EXAMPLES_FALLBACK.format(topic=topic)

    def parse(self, text: str) -> List[WorkedExample]:
        return parse_examples(text)


class QuizGenerator(ContentGenerator[QuizData]):
    flow = "quiz"
    options = GenerationOptions(max_output_tokens=2048, temperature=0.3)

    def build_prompt(self, topic: str) -> str:
        return prompts.QUIZ_PROMPT.format(topic=topic)

    def cache_key(self, topic: str) -> str:
        return quiz_key(topic)

    def fallback_text(self, topic: str) -> str:
        return prompts.QUIZ_FALLBACK.format(topic=topic)

    def parse(self, text: str) -> QuizData:
        return parse_quiz(text)

    def validate(self, parsed: QuizData) -> None:
        if not parsed.is_complete:
            raise IncompleteContentError("Generated quiz has no question or no valid answer")


class TopicExtractor(_CachedGeneration):
    """Derives a short topic list for a study material.

    The material is described by name, MIME type and URL only; the
    document body is never fetched. Failures fall back to the file name
    without extension and are not cached.
    """

    flow = "topic_extraction"
    options = GenerationOptions(max_output_tokens=256, temperature=0.1)
    retry_quota_errors = False

    @staticmethod
    def fallback_topics(name: str) -> List[str]:
        return [name.split(".")[0]]

    async def extract(
        self, name: str, mime_type: str, url: str = ""
    ) -> GenerationResult[List[str]]:
        key = topics_key(name, mime_type)
        cached = await self.cache.get(key)
        if isinstance(cached, list) and cached:
            return GenerationResult(text=", ".join(cached), parsed=cached, cached=True)

        prompt = prompts.TOPIC_EXTRACTION_PROMPT.format(
            name=name, type_label=prompts.document_type_label(mime_type), url=url
        )
        try:
            text = await self._generate_text(prompt)
        except GENERATION_ERRORS as e:
            self._log_failure(name, e)
            topics = self.fallback_topics(name)
            return GenerationResult(
                text=", ".join(topics), parsed=topics, error=str(e) or type(e).__name__
            )

        topics = parse_topic_list(text) or self.fallback_topics(name)
        await self.cache.set(key, topics, ttl=self.ttl)
        return GenerationResult(text=text, parsed=topics)
