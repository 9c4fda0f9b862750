"""Prompt templates and fixed user-facing texts for the tutoring flows."""

from typing import Optional

TOPIC_CONTENT_PROMPT = """Actúa como un tutor experto en {topic}.
Proporciona una explicación estructurada con este formato:

# {topic}

## Definición
[Definición concisa]

## Conceptos Clave
- **[Concepto 1]**: [Explicación breve]
- **[Concepto 2]**: [Explicación breve]
- **[Concepto 3]**: [Explicación breve]

## Explicación Detallada
[Explicación en párrafos]

## Ejemplo Resuelto
Problema: [Problema práctico]

Solución:
1. [Primer paso]
2. [Segundo paso]
3. [Tercer paso]

Conclusión: [Resultado]

## Aplicaciones Prácticas
1. [Primera aplicación]
2. [Segunda aplicación]
3. [Tercera aplicación]
"""

EXAMPLES_PROMPT = """Genera dos ejemplos sobre {topic} con este formato:

# Ejemplo 1: [Título]

## Problema
[Descripción del problema]

## Solución Paso a Paso
1. [Primer paso]
   * **Explicación**: [Explicación]

2. [Segundo paso]
   * **Explicación**: [Explicación]

3. [Tercer paso]
   * **Explicación**: [Explicación]

## Conclusión
[Resumen del resultado]

# Ejemplo 2: [Título]
[Mismo formato]
"""

QUIZ_PROMPT = """Genera una pregunta de evaluación sobre {topic} con este formato:

PREGUNTA
[Texto de la pregunta]

OPCIONES
A) [Opción A]
B) [Opción B]
C) [Opción C]
D) [Opción D]

RESPUESTA_CORRECTA
[Letra de la respuesta correcta]

EXPLICACION
[Explicación detallada]
"""

TOPIC_EXTRACTION_PROMPT = """Analiza este material educativo: "{name}" ({type_label})
URL: {url}

Extrae 3-5 temas principales que probablemente cubre.
Responde SOLO con los nombres de los temas separados por comas.
Ejemplo: "Cinemática, Leyes de Newton, Conservación de Energía"
"""

CHAT_SYSTEM_PROMPT = """Eres un tutor educativo especializado en ayudar a estudiantes.

Información del estudiante:
- Nombre: {name}
- Nivel: {level}
{topic_line}
Tu objetivo es:
1. Proporcionar explicaciones claras y concisas
2. Adaptar tus respuestas al nivel del estudiante
3. Fomentar el pensamiento crítico
4. Ser amigable y motivador

Responde de manera conversacional y natural.
Estructura tus respuestas con secciones claras y ejemplos paso a paso.
"""

# Substring of the MIME type -> description used in the extraction prompt
DOCUMENT_TYPE_LABELS = (
    ("pdf", "PDF"),
    ("word", "documento Word"),
    ("spreadsheet", "hoja de cálculo Excel"),
    ("presentation", "presentación PowerPoint"),
)

# Fallback texts
GENERIC_FALLBACK = (
    "Lo siento, en este momento no puedo procesar tu solicitud debido a "
    "limitaciones técnicas. Por favor, intenta de nuevo más tarde."
)
TOPIC_FALLBACK = (
    "Lo siento, en este momento no puedo generar contenido detallado sobre {topic} "
    "debido a limitaciones técnicas. Por favor, intenta de nuevo más tarde o "
    "consulta otras fuentes de información sobre este tema."
)
EXAMPLES_FALLBACK = (
    "Lo siento, en este momento no puedo generar ejemplos adicionales sobre {topic}. "
    "Por favor, intenta de nuevo más tarde."
)
QUIZ_FALLBACK = (
    "Lo siento, en este momento no puedo generar preguntas de evaluación sobre {topic}. "
    "Por favor, intenta de nuevo más tarde."
)
VIDEO_FALLBACK = (
    "Lo siento, no pude encontrar videos sobre {topic} en este momento. Por favor, "
    "intenta de nuevo más tarde o busca directamente en YouTube."
)

# Guidance texts
EXAMPLES_NEED_TOPIC = "Por favor, selecciona primero un tema de estudio para ver ejemplos."
VIDEO_NEED_TOPIC = (
    "¿Sobre qué tema te gustaría ver un video? Por favor, selecciona primero "
    "un tema de estudio."
)
QUIZ_NEED_TOPIC = (
    "Para generar preguntas de evaluación, primero necesito saber sobre qué tema "
    "quieres practicar. Por favor, selecciona un tema de estudio."
)
NO_ACTIVE_QUIZ = (
    "No hay ninguna pregunta activa para responder. ¿Quieres intentar un nuevo quiz?"
)

# Reply texts
STUDY_TOPIC_TURN = "Quiero aprender sobre {topic}"
QUIZ_INTRO = "Aquí tienes una pregunta para evaluar tu conocimiento:"
VIDEO_INTRO = "Aquí tienes un video educativo sobre {topic}:"
VIDEO_TURN = "Aquí tienes un video sobre {topic}: {title} (https://www.youtube.com/watch?v={video_id})"
ANSWER_CORRECT = "¡Excelente trabajo! Tu respuesta es correcta."
ANSWER_INCORRECT = "Esa no es la respuesta correcta. La respuesta correcta es {answer}."
ANSWER_CORRECT_TURN = "Respuesta correcta: {answer}. {explanation}"
ANSWER_INCORRECT_TURN = "Respuesta incorrecta. La respuesta correcta es {answer}. {explanation}"


def document_type_label(mime_type: str) -> str:
    lowered = (mime_type or "").lower()
    for needle, label in DOCUMENT_TYPE_LABELS:
        if needle in lowered:
            return label
    return "documento"


def chat_system_prompt(name: str, level: int, topic: Optional[str] = None) -> str:
    topic_line = f"- Tema actual de estudio: {topic}\n" if topic else ""
    return CHAT_SYSTEM_PROMPT.format(name=name, level=level, topic_line=topic_line)


def quiz_history_turn(question: str, options: list) -> str:
    """Model history turn for a quiz: question and options, no answer."""
    lines = [f"Pregunta: {question}", "", "Opciones:"]
    lines += [f"{letter}) {option}" for letter, option in zip("ABCD", options)]
    return "\n".join(lines)
