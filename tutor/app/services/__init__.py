"""Services package for the tutor.

This package provides:
- Intent classification of chat messages
- Content generators (topic content, examples, quiz, topic extraction)
- Parsing of generated text into structured payloads
- Response cache, session store and background task runner
- The conversation router that ties them together
"""

from tutor.app.services.background import (
    BackgroundTaskRunner,
    get_background_runner,
    reset_background_runner,
)
from tutor.app.services.generators import (
    ExamplesGenerator,
    GenerationResult,
    QuizGenerator,
    TopicContentGenerator,
    TopicExtractor,
)
from tutor.app.services.intent import classify_intent
from tutor.app.services.response_cache import (
    ResponseCache,
    get_response_cache,
    reset_response_cache,
)
from tutor.app.services.router import ConversationRouter
from tutor.app.services.session_store import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionState,
    SessionStore,
    get_session_store,
    reset_session_store,
)
from tutor.app.services.video import VideoLookup

__all__ = [
    "BackgroundTaskRunner",
    "get_background_runner",
    "reset_background_runner",
    "ExamplesGenerator",
    "GenerationResult",
    "QuizGenerator",
    "TopicContentGenerator",
    "TopicExtractor",
    "classify_intent",
    "ResponseCache",
    "get_response_cache",
    "reset_response_cache",
    "ConversationRouter",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionState",
    "SessionStore",
    "get_session_store",
    "reset_session_store",
    "VideoLookup",
]
