"""Intent classification for incoming chat messages.

A message is matched once against an ordered rule table; the first rule
that matches decides the intent.

Rules:
1. "inicio" -> StartSession
2. "STUDY_TOPIC:<name>" prefix -> StudyTopic
3. "más ejemplos" / "otro ejemplo" or requestType=examples -> RequestExamples
4. A single letter A-D -> AnswerQuiz
5. "video" / "multimedia" / "ver" or requestType=video -> RequestVideo
6. "quiz" / "pregunta" / "evalua" / "test" or requestType=quiz -> RequestQuiz
7. Anything else -> FreeChat
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

START_MESSAGE = "inicio"
STUDY_TOPIC_PREFIX = "STUDY_TOPIC:"

EXAMPLE_KEYWORDS = ("más ejemplos", "otro ejemplo")
VIDEO_KEYWORDS = ("video", "multimedia", "ver")
QUIZ_KEYWORDS = ("quiz", "pregunta", "evalua", "test")

_ANSWER_RE = re.compile(r"^[A-D]$")


@dataclass(frozen=True)
class StartSession:
    pass


@dataclass(frozen=True)
class StudyTopic:
    topic: str


@dataclass(frozen=True)
class RequestExamples:
    pass


@dataclass(frozen=True)
class AnswerQuiz:
    letter: str


@dataclass(frozen=True)
class RequestVideo:
    pass


@dataclass(frozen=True)
class RequestQuiz:
    pass


@dataclass(frozen=True)
class FreeChat:
    text: str


Intent = Union[
    StartSession,
    StudyTopic,
    RequestExamples,
    AnswerQuiz,
    RequestVideo,
    RequestQuiz,
    FreeChat,
]

# (message, request_type) -> Intent, or None when the rule does not apply
Rule = Callable[[str, Optional[str]], Optional[Intent]]


def _contains_any(message: str, keywords: Tuple[str, ...]) -> bool:
    lowered = message.lower()
    return any(k in lowered for k in keywords)


def _start(message: str, request_type: Optional[str]) -> Optional[Intent]:
    return StartSession() if message == START_MESSAGE else None


def _study_topic(message: str, request_type: Optional[str]) -> Optional[Intent]:
    if message.startswith(STUDY_TOPIC_PREFIX):
        return StudyTopic(topic=message[len(STUDY_TOPIC_PREFIX):].strip())
    return None


def _examples(message: str, request_type: Optional[str]) -> Optional[Intent]:
    if request_type == "examples" or _contains_any(message, EXAMPLE_KEYWORDS):
        return RequestExamples()
    return None


def _answer(message: str, request_type: Optional[str]) -> Optional[Intent]:
    return AnswerQuiz(letter=message) if _ANSWER_RE.match(message) else None


def _video(message: str, request_type: Optional[str]) -> Optional[Intent]:
    if request_type == "video" or _contains_any(message, VIDEO_KEYWORDS):
        return RequestVideo()
    return None


def _quiz(message: str, request_type: Optional[str]) -> Optional[Intent]:
    if request_type == "quiz" or _contains_any(message, QUIZ_KEYWORDS):
        return RequestQuiz()
    return None


RULES: List[Rule] = [_start, _study_topic, _examples, _answer, _video, _quiz]


def classify_intent(message: str, request_type: Optional[str] = None) -> Intent:
    """Classify a chat message; the first matching rule wins."""
    for rule in RULES:
        intent = rule(message, request_type)
        if intent is not None:
            return intent
    return FreeChat(text=message)
