"""Structured extraction from semi-structured generated text.

Generated content follows loose markdown templates (headings, bullets,
numbered steps, labelled blocks). The text is tokenized once into Line
tokens and small extractors pick sections out of the token stream.

Every extractor is total: a missing or malformed section yields an empty
string or list, never an exception.
"""

import re
import unicodedata
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

_HEADING_RE = re.compile(r"^(#{1,6})\s*(.*?)\s*#*\s*$")
_BULLET_RE = re.compile(r"^[-*•]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^(\d+)[.)]\s*(.*)$")
_EXAMPLE_HEADING_RE = re.compile(r"^ejemplo\s*\d+\s*[:.\-]?\s*(.*)$", re.IGNORECASE)
_OPTION_RE = re.compile(r"^\**([A-D])\**\s*[).:\-]\s*\**\s*(.*)$")
_ANSWER_RE = re.compile(r"\b([A-D])\b")
_LABEL_RE = re.compile(r"^[#*\s]*([A-Za-zÁÉÍÓÚáéíóúÑñ_ ]+?)[*\s]*:\s*\**\s*(.*)$")

QUIZ_LETTERS = ("A", "B", "C", "D")


@dataclass(frozen=True)
class Line:
    """One tokenized line.

    kind is one of "heading", "bullet", "numbered", "text" or "blank".
    text is the content without its markdown marker; raw keeps the
    original line without surrounding whitespace.
    """

    kind: str
    text: str
    raw: str
    level: int = 0


def fold(text: str) -> str:
    """Normalize a label for matching: no accents, no bold, lowercase."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"\s+", " ", stripped.replace("*", "").strip(" :\t")).lower()


def tokenize(text: str) -> List[Line]:
    lines: List[Line] = []
    for raw_line in (text or "").splitlines():
        raw = raw_line.strip()
        if not raw:
            lines.append(Line("blank", "", ""))
            continue
        if m := _HEADING_RE.match(raw):
            lines.append(Line("heading", m.group(2).strip(), raw, len(m.group(1))))
        elif m := _BULLET_RE.match(raw):
            lines.append(Line("bullet", m.group(1).strip(), raw))
        elif m := _NUMBERED_RE.match(raw):
            lines.append(Line("numbered", m.group(2).strip(), raw, int(m.group(1))))
        else:
            lines.append(Line("text", raw, raw))
    return lines


def _join(lines: List[Line]) -> str:
    return "\n".join(line.raw for line in lines).strip()


def _sections(lines: List[Line], min_level: int = 2) -> Dict[str, List[Line]]:
    """Split lines into sections keyed by folded heading text.

    A section runs until the next heading of any level. Only headings of
    at least min_level open a section; the first occurrence of a name wins.
    """
    sections: Dict[str, List[Line]] = {}
    current: Optional[List[Line]] = None
    for line in lines:
        if line.kind == "heading":
            current = None
            if line.level >= min_level:
                key = fold(line.text)
                if key not in sections:
                    current = sections[key] = []
            continue
        if current is not None:
            current.append(line)
    return sections


def _find(sections: Dict[str, List[Line]], *names: str) -> List[Line]:
    for name in names:
        if name in sections:
            return sections[name]
    for key, body in sections.items():
        if any(key.startswith(name) for name in names):
            return body
    return []


def _labelled_blocks(lines: List[Line], labels: Dict[str, str]) -> Dict[str, str]:
    """Collect text following inline labels such as "Problema:".

    labels maps folded label text to the output field name. Text on the
    label line itself after the colon belongs to that block.
    """
    blocks: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in lines:
        m = _LABEL_RE.match(line.raw) if line.kind in ("text", "heading") else None
        if m and fold(m.group(1)) in labels:
            current = labels[fold(m.group(1))]
            blocks.setdefault(current, [])
            if m.group(2).strip():
                blocks[current].append(m.group(2).strip())
            continue
        if current is not None:
            blocks[current].append(line.raw)
    return {name: "\n".join(body).strip() for name, body in blocks.items()}


# ---------------------------------------------------------------------------
# Topic content
# ---------------------------------------------------------------------------


@dataclass
class Concept:
    title: str
    description: str


@dataclass
class SolvedExample:
    problem: str = ""
    solution: str = ""
    conclusion: str = ""


@dataclass
class TopicContent:
    title: str = ""
    definition: str = ""
    concepts: List[Concept] = field(default_factory=list)
    explanation: str = ""
    example: SolvedExample = field(default_factory=SolvedExample)
    applications: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _parse_concept(text: str) -> Concept:
    if m := re.match(r"^\*\*(.*?)\*\*\s*:?\s*(.*)$", text):
        return Concept(m.group(1).rstrip(":").strip(), m.group(2).strip())
    if ":" in text:
        title, description = text.split(":", 1)
        return Concept(title.replace("**", "").strip(), description.strip())
    return Concept("Concepto", text)


def parse_topic_content(text: str) -> TopicContent:
    """Extract the topic explanation sections.

    Recognized sections: Definición, Conceptos Clave, Explicación
    Detallada, Ejemplo Resuelto (Problema / Solución / Conclusión labels)
    and Aplicaciones Prácticas.
    """
    lines = tokenize(text)

    title = next((l.text for l in lines if l.kind == "heading" and l.level == 1), "")
    if not title:
        title = next((l.raw.lstrip("#").strip() for l in lines if l.kind != "blank"), "")

    sections = _sections(lines)
    concepts = [
        _parse_concept(l.text)
        for l in _find(sections, "conceptos clave", "conceptos")
        if l.kind == "bullet"
    ]
    example = _labelled_blocks(
        _find(sections, "ejemplo resuelto", "ejemplo"),
        {"problema": "problem", "solucion": "solution", "conclusion": "conclusion"},
    )
    applications = [
        l.text
        for l in _find(sections, "aplicaciones practicas", "aplicaciones")
        if l.kind == "numbered"
    ]

    return TopicContent(
        title=title,
        definition=_join(_find(sections, "definicion")),
        concepts=concepts,
        explanation=_join(_find(sections, "explicacion detallada", "explicacion")),
        example=SolvedExample(**example),
        applications=applications,
    )


# ---------------------------------------------------------------------------
# Worked examples
# ---------------------------------------------------------------------------


@dataclass
class WorkedExample:
    id: int
    title: str
    problem: str = ""
    solution: str = ""
    conclusion: str = ""


def parse_examples(text: str) -> List[WorkedExample]:
    """Split "# Ejemplo N: <title>" blocks and extract their sub-sections."""
    lines = tokenize(text)
    blocks: List[tuple] = []
    for line in lines:
        if line.kind == "heading" and line.level == 1:
            if m := _EXAMPLE_HEADING_RE.match(fold(line.text)):
                title = _EXAMPLE_HEADING_RE.match(line.text.replace("*", "").strip())
                blocks.append(((title or m).group(1).strip(), []))
                continue
        if blocks:
            blocks[-1][1].append(line)

    examples = []
    for index, (title, body) in enumerate(blocks):
        sections = _sections(body)
        examples.append(
            WorkedExample(
                id=index,
                title=title,
                problem=_join(_find(sections, "problema")),
                solution=_join(_find(sections, "solucion paso a paso", "solucion")),
                conclusion=_join(_find(sections, "conclusion")),
            )
        )
    return examples


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------


@dataclass
class QuizData:
    question: str = ""
    options: List[str] = field(default_factory=lambda: ["", "", "", ""])
    correct_answer: str = ""
    explanation: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.question) and self.correct_answer in QUIZ_LETTERS


_QUIZ_LABELS = {
    "pregunta": "question",
    "opciones": "options",
    "respuesta_correcta": "answer",
    "respuesta correcta": "answer",
    "explicacion": "explanation",
}


def _quiz_label(line: Line) -> tuple:
    """Return (field, inline text) when the line is a quiz block label."""
    raw = line.raw.lstrip("#").strip()
    head, _, rest = raw.partition(":")
    name = _QUIZ_LABELS.get(fold(head))
    if name:
        return name, rest.strip().strip("*").strip()
    return None, ""


def parse_quiz(text: str) -> QuizData:
    """Extract PREGUNTA / OPCIONES / RESPUESTA_CORRECTA / EXPLICACION."""
    blocks: Dict[str, List[Line]] = {}
    current: Optional[str] = None
    for line in tokenize(text):
        name, inline = _quiz_label(line) if line.kind in ("text", "heading") else (None, "")
        if name and name not in blocks:
            current = name
            blocks[name] = [Line("text", inline, inline)] if inline else []
            continue
        if current is not None:
            blocks[current].append(line)

    options: Dict[str, str] = {}
    last: Optional[str] = None
    for line in blocks.get("options", []):
        if line.kind == "blank":
            continue
        if m := _OPTION_RE.match(line.text):
            last = m.group(1)
            options.setdefault(last, m.group(2).strip())
        elif last is not None:
            options[last] = f"{options[last]} {line.raw}".strip()

    answer_match = _ANSWER_RE.search(_join(blocks.get("answer", [])).replace("*", ""))

    return QuizData(
        question=_join(blocks.get("question", [])),
        options=[options.get(letter, "") for letter in QUIZ_LETTERS],
        correct_answer=answer_match.group(1) if answer_match else "",
        explanation=_join(blocks.get("explanation", [])),
    )


# ---------------------------------------------------------------------------
# Topic list
# ---------------------------------------------------------------------------


def parse_topic_list(text: str) -> List[str]:
    """Split a comma separated topic list, dropping empty items."""
    topics = []
    for item in (text or "").replace("\n", ",").split(","):
        cleaned = item.strip().strip("\"'*").strip().rstrip(".").strip()
        if cleaned and cleaned not in topics:
            topics.append(cleaned)
    return topics
