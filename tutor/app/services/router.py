"""Conversation router: intent dispatch over per-student session state.

Each request is classified once (see intent.py) and dispatched to one flow.
The flow reads and mutates the student's SessionState under the store's
per-user lock, runs admission control before any generation, and builds
the response payload.
"""

import asyncio
from datetime import datetime
from typing import Any, List, Optional, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError

from tutor.app.core.config import settings
from tutor.app.core.logging import get_log_context, get_logger
from tutor.app.exceptions import (
    ProviderUnavailableError,
    RateLimitedError,
    StudentNotFoundError,
    TutorException,
)
from tutor.app.middleware.rate_limit import AdmissionController, get_admission_controller
from tutor.app.providers.base import (
    GenerationOptions,
    SafetySetting,
    model_turn,
    user_turn,
)
from tutor.app.providers.client import ProviderClient, get_provider_client
from tutor.app.providers.errors import ProviderError, ProviderNotFoundError, ProviderQuotaError
from tutor.app.schemas import (
    AnswerFeedback,
    ChatPayload,
    DocumentEntry,
    ExampleEntry,
    ExamplesPayload,
    QuizPayload,
    QuizQuestion,
    QuizResponsePayload,
    ResponsePayload,
    StudentProfile,
    TopicData,
    TopicEntry,
    TopicPayload,
    VideoEntry,
    VideoPayload,
    WelcomeData,
    WelcomeFeature,
    WelcomePayload,
)
from tutor.app.services import prompts
from tutor.app.services.background import BackgroundTaskRunner, get_background_runner
from tutor.app.services.generators import (
    GENERATION_ERRORS,
    ExamplesGenerator,
    QuizGenerator,
    TopicContentGenerator,
    TopicExtractor,
)
from tutor.app.services.intent import (
    AnswerQuiz,
    FreeChat,
    RequestExamples,
    RequestQuiz,
    RequestVideo,
    StartSession,
    StudyTopic,
    classify_intent,
)
from tutor.app.services.parser import QuizData
from tutor.app.services.response_cache import ResponseCache, chat_key, get_response_cache
from tutor.app.services.session_store import (
    PendingQuiz,
    SessionState,
    SessionStore,
    StudyDocument,
    get_session_store,
    now_iso,
)
from tutor.app.services.video import VIDEO_ERRORS, VideoLookup

logger = get_logger(__name__)

# Progress and XP awards
STUDY_TOPIC_PROGRESS = 10
EXAMPLES_PROGRESS = 5
VIDEO_PROGRESS = 5
CORRECT_ANSWER_PROGRESS = 20
CORRECT_ANSWER_XP = 20
WRONG_ANSWER_XP = 5
CHAT_XP = 2

CHAT_SAFETY_SETTINGS = [
    SafetySetting("HARM_CATEGORY_HARASSMENT", "BLOCK_MEDIUM_AND_ABOVE"),
    SafetySetting("HARM_CATEGORY_HATE_SPEECH", "BLOCK_MEDIUM_AND_ABOVE"),
]

WELCOME_DATA = WelcomeData(
    title="Bienvenido a tu Tutor Personal",
    description=(
        "Estoy aquí para ayudarte a dominar los conceptos de física y potenciar "
        "tu aprendizaje académico."
    ),
    features=[
        WelcomeFeature(
            icon="book",
            title="Explorar Temas",
            description=(
                "Selecciona los materiales subidos por tu docente para estudiarlos "
                "en profundidad."
            ),
        ),
        WelcomeFeature(
            icon="example",
            title="Ejemplos Prácticos",
            description=(
                "Solicita ejemplos detallados con soluciones paso a paso para "
                "comprender mejor los conceptos."
            ),
        ),
        WelcomeFeature(
            icon="quiz",
            title="Evaluación",
            description=(
                "Pon a prueba tu conocimiento con preguntas tipo test y recibe "
                "feedback inmediato."
            ),
        ),
        WelcomeFeature(
            icon="video",
            title="Recursos Multimedia",
            description=(
                "Accede a videos y recursos complementarios para enriquecer tu "
                "aprendizaje."
            ),
        ),
    ],
    cta="¿Por dónde te gustaría comenzar hoy?",
)


class StudentStore(Protocol):
    """Student and material access used by the router."""

    async def get_student(self, student_id: int) -> Any: ...

    async def add_xp(self, student_id: int, amount: int) -> int: ...

    async def study_materials(self, subject_id: Optional[int]) -> Sequence[Any]: ...


def student_level(xp: int) -> int:
    return (xp or 0) // 100 + 1


def _is_newer(quiz: Optional[PendingQuiz], since: str) -> bool:
    if quiz is None:
        return False
    return datetime.fromisoformat(quiz.timestamp) >= datetime.fromisoformat(since)


class ConversationRouter:
    """Routes one chat message to its flow and returns the payload.

    Usage:
        router = ConversationRouter(SqlStudentStore(session))
        payload = await router.handle(user_id=7, subject_id=3, message="inicio")
    """

    def __init__(
        self,
        store: StudentStore,
        sessions: Optional[SessionStore] = None,
        admission: Optional[AdmissionController] = None,
        provider_client: Optional[ProviderClient] = None,
        cache: Optional[ResponseCache] = None,
        video: Optional[VideoLookup] = None,
        background: Optional[BackgroundTaskRunner] = None,
    ):
        self.store = store
        self.sessions = sessions or get_session_store()
        self.admission = admission or get_admission_controller()
        self.cache = cache or get_response_cache()
        self._provider_client = provider_client
        self.video = video or VideoLookup(cache=self.cache)
        self.background = background or get_background_runner()

        self.topic_extractor = TopicExtractor(provider_client, self.cache)
        self.topic_content = TopicContentGenerator(provider_client, self.cache)
        self.examples = ExamplesGenerator(provider_client, self.cache)
        self.quiz = QuizGenerator(provider_client, self.cache)

    @property
    def provider_client(self) -> ProviderClient:
        if self._provider_client is None:
            self._provider_client = get_provider_client()
        return self._provider_client

    async def handle(
        self,
        user_id: int,
        subject_id: Optional[int],
        message: str,
        request_type: Optional[str] = None,
    ) -> ChatPayload:
        """Classify the message and run the matching flow.

        Raises:
            StudentNotFoundError: If the user has no student record
            RateLimitedError: If admission control denies a generating flow
            ProviderUnavailableError: If a provider failure escapes a flow
        """
        student = await self.store.get_student(user_id)
        if student is None:
            raise StudentNotFoundError(user_id)

        intent = classify_intent(message, request_type)
        logger.info(
            f"Chat intent {type(intent).__name__}",
            extra=get_log_context(student_id=user_id, flow=type(intent).__name__),
        )

        async with self.sessions.lock(user_id):
            state = await self.sessions.load(user_id)
            try:
                match intent:
                    case StartSession():
                        return await self._start_session(student, subject_id, state)
                    case StudyTopic(topic=topic):
                        return await self._study_topic(user_id, topic, state)
                    case RequestExamples():
                        return await self._request_examples(user_id, message, state)
                    case AnswerQuiz(letter=letter):
                        return await self._answer_quiz(student, letter, state)
                    case RequestVideo():
                        return await self._request_video(user_id, message, state)
                    case RequestQuiz():
                        return await self._request_quiz(user_id, message, state)
                    case FreeChat(text=text):
                        return await self._free_chat(student, text, state)
            except ProviderError as e:
                raise await self._map_provider_error(e, user_id) from e
            finally:
                await self.sessions.save(user_id, state)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _admit(self, user_id: int) -> None:
        if not await self.admission.try_admit(user_id):
            wait = await self.admission.time_until_next_slot(user_id)
            logger.info(
                f"Admission denied, next slot in {wait:.1f}s",
                extra=get_log_context(student_id=user_id),
            )
            raise RateLimitedError(wait)

    async def _map_provider_error(self, error: ProviderError, user_id: int) -> TutorException:
        logger.error(
            f"Provider error escaped flow: {type(error).__name__}: {error}",
            extra=get_log_context(student_id=user_id),
        )
        if isinstance(error, ProviderQuotaError):
            return RateLimitedError(
                await self.admission.time_until_next_slot(user_id),
                detail=(
                    "Has alcanzado el límite de solicitudes. Por favor, intenta de "
                    "nuevo en unos minutos."
                ),
            )
        if isinstance(error, ProviderNotFoundError):
            return ProviderUnavailableError()
        return TutorException(
            "Ocurrió un error al procesar tu solicitud. Por favor, intenta de nuevo más tarde."
        )

    @staticmethod
    def _pending_quiz(quiz: QuizData) -> PendingQuiz:
        return PendingQuiz(
            question=quiz.question,
            options=list(quiz.options),
            correct_answer=quiz.correct_answer,
            explanation=quiz.explanation,
        )

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def _resolve_document(self, material: Any) -> StudyDocument:
        result = await self.topic_extractor.extract(material.name, material.mime_type, material.url)
        return StudyDocument(
            id=material.id,
            title=material.name,
            topics=list(result.parsed or TopicExtractor.fallback_topics(material.name)),
            type=material.mime_type.split("/")[-1] or "document",
            url=material.url,
        )

    async def _load_documents(self, subject_id: Optional[int]) -> List[StudyDocument]:
        try:
            materials = await self.store.study_materials(subject_id)
        except SQLAlchemyError as e:
            logger.error(f"Could not load study materials: {e}")
            return []

        results = await asyncio.gather(
            *(self._resolve_document(m) for m in materials), return_exceptions=True
        )
        documents = []
        for material, result in zip(materials, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Topic resolution failed for {material.name!r}: "
                    f"{type(result).__name__}: {result}"
                )
                result = StudyDocument(
                    id=material.id,
                    title=material.name,
                    topics=TopicExtractor.fallback_topics(material.name),
                    type=material.mime_type.split("/")[-1] or "document",
                    url=material.url,
                )
            documents.append(result)
        return documents

    async def _start_session(
        self, student: Any, subject_id: Optional[int], state: SessionState
    ) -> ChatPayload:
        state.documents = await self._load_documents(subject_id)

        extracted: List[str] = []
        for doc in state.documents:
            for topic in doc.topics:
                if topic not in extracted:
                    extracted.append(topic)

        if not state.progress:
            for topic in extracted:
                state.ensure_topic(topic)

        topics = [
            TopicEntry(
                name=name,
                progress=p.progress,
                completed=p.completed,
                in_progress=p.in_progress,
            )
            for name, p in state.progress.items()
        ]
        topics += [
            TopicEntry(name=name, progress=0, completed=False, in_progress=False)
            for name in extracted
            if name not in state.progress
        ]

        return WelcomePayload(
            welcome_data=WELCOME_DATA,
            student=StudentProfile(name=student.name, level=student_level(student.xp)),
            xp=student.xp or 0,
            topics=topics,
            documents=[DocumentEntry(**d.to_dict()) for d in state.documents],
        )

    async def _study_topic(self, user_id: int, topic: str, state: SessionState) -> ChatPayload:
        state.current_topic = topic
        state.ensure_topic(topic)
        await self._admit(user_id)

        result = await self.topic_content.generate(topic)
        state.append_exchange(prompts.STUDY_TOPIC_TURN.format(topic=topic), result.text)
        if not result.ok:
            return ResponsePayload(text=result.text, error=result.error)

        state.bump_progress(topic, STUDY_TOPIC_PROGRESS)
        self.background.submit(
            self._pregenerate_quiz(user_id, topic), name=f"quiz-pregen:{user_id}"
        )

        content = result.parsed
        data = content.to_dict()
        data["title"] = content.title or topic
        return TopicPayload(
            text=result.text,
            topic_data=TopicData.model_validate(data),
            current_topic=topic,
            raw_content=result.text,
        )

    async def _pregenerate_quiz(self, user_id: int, topic: str) -> None:
        """Generate a quiz for the topic and store it as the pending quiz.

        The write is dropped when the student moved to another topic or a
        newer quiz was stored while the generation was running.
        """
        started = now_iso()
        result = await self.quiz.generate(topic)
        if not result.ok:
            logger.info(
                f"Quiz pre-generation skipped for {topic!r}: {result.error}",
                extra=get_log_context(student_id=user_id, flow="quiz"),
            )
            return
        async with self.sessions.lock(user_id):
            state = await self.sessions.load(user_id)
            if state.current_topic != topic or _is_newer(state.pending_quiz, started):
                logger.info(
                    f"Quiz pre-generation for {topic!r} discarded: session moved on",
                    extra=get_log_context(student_id=user_id, flow="quiz"),
                )
                return
            state.pending_quiz = self._pending_quiz(result.parsed)
            await self.sessions.save(user_id, state)

    async def _request_examples(
        self, user_id: int, message: str, state: SessionState
    ) -> ChatPayload:
        topic = state.current_topic
        if not topic:
            return ResponsePayload(text=prompts.EXAMPLES_NEED_TOPIC)
        await self._admit(user_id)

        result = await self.examples.generate(topic)
        state.append_exchange(message, result.text)
        if not result.ok:
            return ResponsePayload(text=result.text, error=result.error)

        state.bump_progress(topic, EXAMPLES_PROGRESS)
        return ExamplesPayload(
            text=result.text,
            current_topic=topic,
            examples=[
                ExampleEntry(
                    id=ex.id,
                    title=ex.title,
                    problem=ex.problem,
                    solution=ex.solution,
                    conclusion=ex.conclusion,
                )
                for ex in result.parsed
            ],
            raw_content=result.text,
        )

    async def _answer_quiz(self, student: Any, letter: str, state: SessionState) -> ChatPayload:
        quiz = state.pending_quiz
        if quiz is None:
            return ResponsePayload(text=prompts.NO_ACTIVE_QUIZ)

        is_correct = letter == quiz.correct_answer
        xp = await self.store.add_xp(
            student.id, CORRECT_ANSWER_XP if is_correct else WRONG_ANSWER_XP
        )
        if is_correct and state.current_topic:
            state.bump_progress(state.current_topic, CORRECT_ANSWER_PROGRESS)

        if is_correct:
            text = prompts.ANSWER_CORRECT
            turn = prompts.ANSWER_CORRECT_TURN.format(
                answer=quiz.correct_answer, explanation=quiz.explanation
            )
        else:
            text = prompts.ANSWER_INCORRECT.format(answer=quiz.correct_answer)
            turn = prompts.ANSWER_INCORRECT_TURN.format(
                answer=quiz.correct_answer, explanation=quiz.explanation
            )
        state.append_exchange(letter, turn)

        return QuizResponsePayload(
            text=text,
            answer_feedback=AnswerFeedback(
                is_correct=is_correct,
                selected_answer=letter,
                correct_answer=quiz.correct_answer,
                feedback=quiz.explanation,
            ),
            xp=xp or student.xp,
        )

    async def _request_video(self, user_id: int, message: str, state: SessionState) -> ChatPayload:
        topic = state.current_topic
        if not topic:
            return ResponsePayload(text=prompts.VIDEO_NEED_TOPIC)
        await self._admit(user_id)

        try:
            video = await self.video.find(topic)
        except VIDEO_ERRORS as e:
            logger.warning(
                f"Video lookup failed for {topic!r}: {e}",
                extra=get_log_context(student_id=user_id, flow="video"),
            )
            fallback = prompts.VIDEO_FALLBACK.format(topic=topic)
            state.append_exchange(message, fallback)
            return ResponsePayload(text=fallback, error=e.message)

        state.append_exchange(
            message,
            prompts.VIDEO_TURN.format(topic=topic, title=video.title, video_id=video.video_id),
        )
        state.bump_progress(topic, VIDEO_PROGRESS)
        return VideoPayload(
            text=prompts.VIDEO_INTRO.format(topic=topic),
            video_data=VideoEntry(**video.to_dict()),
        )

    async def _request_quiz(self, user_id: int, message: str, state: SessionState) -> ChatPayload:
        topic = state.current_topic
        if not topic:
            return ResponsePayload(text=prompts.QUIZ_NEED_TOPIC)
        await self._admit(user_id)

        result = await self.quiz.generate(topic)
        if not result.ok:
            state.append_exchange(message, result.text)
            return ResponsePayload(text=result.text, error=result.error)

        quiz = result.parsed
        state.pending_quiz = self._pending_quiz(quiz)
        state.append_exchange(message, prompts.quiz_history_turn(quiz.question, quiz.options))
        return QuizPayload(
            text=prompts.QUIZ_INTRO,
            quiz=QuizQuestion(question=quiz.question, options=list(quiz.options)),
        )

    async def _generate_chat_reply(self, student: Any, text: str, state: SessionState) -> str:
        contents = [
            user_turn(
                prompts.chat_system_prompt(
                    student.name, student_level(student.xp), state.current_topic
                )
            )
        ]
        for msg in state.recent_history():
            contents.append(user_turn(msg.content) if msg.role == "user" else model_turn(msg.content))
        contents.append(user_turn(text))

        handle = await self.provider_client.acquire_model()
        options = GenerationOptions(
            max_output_tokens=settings.max_output_tokens,
            temperature=0.7,
            safety_settings=CHAT_SAFETY_SETTINGS,
        )
        return await handle.generate(contents, options, retry=False)

    async def _free_chat(self, student: Any, text: str, state: SessionState) -> ChatPayload:
        await self._admit(student.id)

        key = chat_key(student.id, text)
        reply = await self.cache.get(key)
        error: Optional[str] = None
        if not isinstance(reply, str):
            try:
                reply = await self._generate_chat_reply(student, text, state)
                await self.cache.set(key, reply, ttl=settings.cache_chat_ttl)
            except GENERATION_ERRORS as e:
                logger.warning(
                    f"Chat generation failed: {type(e).__name__}: {e}",
                    extra=get_log_context(student_id=student.id, flow="chat"),
                )
                reply = prompts.GENERIC_FALLBACK
                error = str(e) or type(e).__name__

        state.append_exchange(text, reply)
        xp = await self.store.add_xp(student.id, CHAT_XP)
        return ResponsePayload(text=reply, error=error, xp=xp or student.xp)
