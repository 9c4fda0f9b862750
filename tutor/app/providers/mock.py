"""Mock provider for local development and load testing.

This provider answers without making external API calls. Its responses
follow the same section templates the prompts request, so the parsers and
the whole conversation flow can be exercised offline.

Enable by setting environment variable:
    TUTOR_MOCK_PROVIDER=true
"""

import asyncio
import random
import re
from typing import Any, List, Optional

from tutor.app.providers.base import BaseProvider, Content, GenerationOptions
from tutor.app.providers.errors import ProviderError


def _last_user_text(contents: List[Content]) -> str:
    for turn in reversed(contents):
        if turn.get("role") == "user":
            return "".join(p.get("text", "") for p in turn.get("parts", []))
    return ""


def _topic_from(prompt: str, pattern: str, default: str = "el tema") -> str:
    match = re.search(pattern, prompt)
    return match.group(1).strip() if match else default


class MockProvider(BaseProvider):
    """Mock generation provider returning template-shaped responses.

    Features:
    - Simulated response delay (configurable)
    - Deterministic content per prompt type (topic, examples, quiz, topics)
    - Configurable failure rate for exercising error handling
    """

    def __init__(
        self,
        base_url: str = "http://mock.provider",
        api_key: str = "mock-key",
        http_client: Optional[Any] = None,
        timeout: float = 60.0,
        min_delay: float = 0.0,
        max_delay: float = 0.05,
        failure_rate: float = 0.0,
    ):
        super().__init__(base_url, api_key, http_client, timeout)
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate

    async def generate(
        self,
        model: str,
        contents: List[Content],
        options: GenerationOptions,
    ) -> str:
        await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))

        if random.random() < self.failure_rate:
            raise ProviderError("Simulated provider failure", status=500)

        return self._generate_content(_last_user_text(contents))

    def _generate_content(self, prompt: str) -> str:
        if "Extrae 3-5 temas" in prompt:
            name = _topic_from(prompt, r'material educativo: "([^"]+)"', "Documento")
            base = name.rsplit(".", 1)[0]
            return f"{base}, Conceptos básicos de {base}, Ejercicios de {base}"

        if "Proporciona una explicación estructurada" in prompt:
            topic = _topic_from(prompt, r"tutor experto en (.+?)\.")
            return (
                f"# {topic}\n\n"
                "## Definición\n"
                f"{topic} es un tema fundamental del curso.\n\n"
                "## Conceptos Clave\n"
                "- **Concepto A**: Primera idea central.\n"
                "- **Concepto B**: Segunda idea central.\n"
                "- **Concepto C**: Tercera idea central.\n\n"
                "## Explicación Detallada\n"
                f"{topic} se estudia a partir de sus conceptos clave.\n\n"
                "## Ejemplo Resuelto\n"
                "Problema: Un caso práctico sencillo.\n\n"
                "Solución:\n1. Identificar datos.\n2. Aplicar el concepto.\n3. Calcular.\n\n"
                "Conclusión: El resultado confirma el concepto.\n\n"
                "## Aplicaciones Prácticas\n"
                "1. Ingeniería\n2. Vida cotidiana\n3. Investigación\n"
            )

        if "Genera dos ejemplos" in prompt:
            topic = _topic_from(prompt, r"Genera dos ejemplos sobre (.+?) con")
            blocks = []
            for n in (1, 2):
                blocks.append(
                    f"# Ejemplo {n}: Caso {n} de {topic}\n\n"
                    "## Problema\n"
                    f"Planteamiento del caso {n}.\n\n"
                    "## Solución Paso a Paso\n"
                    "1. Primer paso\n   * **Explicación**: Se ordenan los datos.\n\n"
                    "## Conclusión\n"
                    f"El caso {n} queda resuelto.\n"
                )
            return "\n".join(blocks)

        if "RESPUESTA_CORRECTA" in prompt:
            topic = _topic_from(prompt, r"evaluación sobre (.+?) con")
            return (
                "PREGUNTA\n"
                f"¿Cuál es la idea principal de {topic}?\n\n"
                "OPCIONES\n"
                "A) Una idea incorrecta\n"
                "B) La idea principal\n"
                "C) Otra idea incorrecta\n"
                "D) Ninguna de las anteriores\n\n"
                "RESPUESTA_CORRECTA\n"
                "B\n\n"
                "EXPLICACION\n"
                f"La opción B resume {topic}."
            )

        if prompt.strip() == "Hola":
            return "Hola"

        return "Esta es una respuesta simulada del tutor para pruebas."
