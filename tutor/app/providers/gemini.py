from typing import Any, Dict, List, Optional

import httpx

from tutor.app.providers.base import BaseProvider, Content, GenerationOptions
from tutor.app.providers.errors import (
    EmptyResponseError,
    ProviderError,
    error_from_status,
)


class GeminiProvider(BaseProvider):
    """Google Gemini REST provider (generateContent endpoint).

    If http_client is provided, it is used for all requests (connection
    reuse). If not, a new client is created per request.
    """

    def _build_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(
        self, contents: List[Content], options: GenerationOptions
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": options.max_output_tokens,
                "temperature": options.temperature,
            },
        }
        if options.safety_settings:
            payload["safetySettings"] = [
                {"category": s.category, "threshold": s.threshold}
                for s in options.safety_settings
            ]
        return payload

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise EmptyResponseError(
                f"No candidates returned{f' (blocked: {reason})' if reason else ''}"
            )
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def generate(
        self,
        model: str,
        contents: List[Content],
        options: GenerationOptions,
    ) -> str:
        """Send a generateContent request.

        Raises:
            ProviderQuotaError: On HTTP 429
            ProviderNotFoundError: On HTTP 404 (unknown model)
            ProviderError: On any other HTTP or network failure, or a
                body that is not a JSON object
        """
        url = self._get_endpoint_url(f"/models/{model}:generateContent")
        payload = self._build_payload(contents, options)

        try:
            async with self._client_context() as client:
                resp = await client.post(
                    url, headers=self.headers, json=payload, timeout=self.timeout
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"{type(e).__name__}: {e}") from e

        if resp.status_code >= 400:
            raise error_from_status(resp.status_code, self._error_message(resp))

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(
                f"Gemini returned invalid JSON: {e}", status=resp.status_code
            ) from e
        if not isinstance(data, dict):
            raise ProviderError("Gemini returned an unexpected body", status=resp.status_code)
        return self._extract_text(data)

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            detail: Optional[str] = (resp.json().get("error") or {}).get("message")
        except ValueError:
            detail = None
        return f"Gemini HTTP {resp.status_code}: {detail or resp.text[:200]}"
