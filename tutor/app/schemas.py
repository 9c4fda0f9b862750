"""Response payloads of the chat endpoint.

Field names are snake_case in Python and camelCase on the wire; a few
fields keep the Spanish names the web client reads (estudiante, nombre,
nivel, ejemplosProcesados, titulo, ...).
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageType = Literal[
    "welcome", "topic", "examples", "quiz", "quiz_response", "video", "response"
]


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Welcome
# ---------------------------------------------------------------------------


class WelcomeFeature(_Schema):
    icon: str
    title: str
    description: str


class WelcomeData(_Schema):
    title: str
    description: str
    features: List[WelcomeFeature]
    cta: str


class StudentProfile(_Schema):
    name: str = Field(alias="nombre")
    level: int = Field(alias="nivel")


class TopicEntry(_Schema):
    name: str
    progress: int
    completed: bool
    in_progress: bool


class DocumentEntry(_Schema):
    id: int
    title: str
    topics: List[str]
    type: str
    url: str


# ---------------------------------------------------------------------------
# Generated content
# ---------------------------------------------------------------------------


class ConceptEntry(_Schema):
    title: str
    description: str


class SolvedExampleEntry(_Schema):
    problem: str = ""
    solution: str = ""
    conclusion: str = ""


class TopicData(_Schema):
    title: str
    definition: str = ""
    concepts: List[ConceptEntry] = []
    explanation: str = ""
    example: SolvedExampleEntry = SolvedExampleEntry()
    applications: List[str] = []


class ExampleEntry(_Schema):
    id: int
    title: str = Field(alias="titulo")
    problem: str = Field(default="", alias="problema")
    solution: str = Field(default="", alias="solucion")
    conclusion: str = ""


class QuizQuestion(_Schema):
    """Quiz as shown to the student: no answer, no explanation."""

    question: str
    options: List[str]


class AnswerFeedback(_Schema):
    is_correct: bool
    selected_answer: str
    correct_answer: str
    feedback: str


class VideoEntry(_Schema):
    provider: str
    video_id: str
    title: str
    description: str
    thumbnail_url: str


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class ChatPayload(_Schema):
    text: Optional[str] = None
    message_type: MessageType
    error: Optional[str] = None

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class WelcomePayload(ChatPayload):
    message_type: MessageType = "welcome"
    welcome_data: WelcomeData
    student: StudentProfile = Field(alias="estudiante")
    xp: int
    topics: List[TopicEntry]
    documents: List[DocumentEntry]


class TopicPayload(ChatPayload):
    message_type: MessageType = "topic"
    topic_data: TopicData
    current_topic: str
    raw_content: str


class ExamplesPayload(ChatPayload):
    message_type: MessageType = "examples"
    current_topic: str
    examples: List[ExampleEntry] = Field(alias="ejemplosProcesados")
    raw_content: str


class QuizPayload(ChatPayload):
    message_type: MessageType = "quiz"
    quiz: QuizQuestion


class QuizResponsePayload(ChatPayload):
    message_type: MessageType = "quiz_response"
    answer_feedback: AnswerFeedback
    xp: int


class VideoPayload(ChatPayload):
    message_type: MessageType = "video"
    video_data: VideoEntry


class ResponsePayload(ChatPayload):
    message_type: MessageType = "response"
    xp: Optional[int] = None
