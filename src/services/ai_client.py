from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from openai import OpenAI, OpenAIError

from src.core.errors import AdvisoryError
from src.core.models import ModuleSuggestion
from src.core.sanitize import render_advisory_html
from src.core.suggestions import extract_suggestions
from src.services.ai_specs import (
    DEFAULT_QUESTIONS,
    AdvisoryContext,
    QueryKind,
    build_system_prompt,
    build_user_message,
)

log = logging.getLogger("webnova.ai")

DEFAULT_MODELS = [
    "llama-3.3-70b-versatile",
    "llama-3.1-70b-versatile",
    "mixtral-8x7b-32768",
    "llama-3.1-8b-instant",
    "gemma2-9b-it",
]

ALL_MODELS_FAILED = "Todos los modelos fallaron"


@dataclass
class AdvisoryResult:
    content: str
    suggestions: List[ModuleSuggestion] = field(default_factory=list)
    model: Optional[str] = None


def _content_text(response: Any) -> str:
    """
    Plockar ut texten ur choices[0].message.content.
    Hanterar både str och list-format (delar med "text").
    """
    raw = response.choices[0].message.content
    if isinstance(raw, list):
        parts = []
        for part in raw:
            if isinstance(part, dict) and "text" in part:
                parts.append(str(part["text"]))
            else:
                parts.append(str(part))
        raw = "".join(parts)
    if not isinstance(raw, str):
        raise ValueError("svaret saknar textinnehåll")
    return raw


class AdvisoryClient:
    """
    Rådgivningsklient mot en OpenAI-kompatibel gateway.

    Hanterar:
      - mallar per uppgift (analys, moduler, priser, tidsplan, ...)
      - fallback mellan modeller i prioritetsordning
      - utplockning av modulförslag + sanering av svaret

    Modellens svar behandlas som opålitlig indata: query() returnerar
    alltid sanerad HTML.
    """

    def __init__(
        self,
        *,
        api_key: str = "",
        base_url: Optional[str] = None,
        models: Optional[Sequence[str]] = None,
        timeout: float = 60.0,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        client: Any = None,
    ) -> None:
        if client is None and api_key:
            client = OpenAI(api_key=api_key, base_url=base_url or None, max_retries=0)
        self.client = client
        self.models = list(models or DEFAULT_MODELS)
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    # -------------------------------------------------------------
    #  Låg nivå: chat completion med modell-fallback
    # -------------------------------------------------------------
    def complete(self, messages: List[Dict[str, str]]) -> Tuple[str, str]:
        """
        Provar modellerna i tur och ordning. Returnerar (text, modell).
        Om alla misslyckas kastas ett enda AdvisoryError.
        """
        if self.client is None:
            log.warning("AI: ingen API-nyckel konfigurerad")
            raise AdvisoryError(ALL_MODELS_FAILED)

        for model in self.models:
            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    timeout=self.timeout,
                )
                text = _content_text(response)
                if not text.strip():
                    raise ValueError("tomt svar")
                return text, model
            except (OpenAIError, ValueError, LookupError, AttributeError, TypeError) as e:
                log.warning("AI: modellen %s misslyckades: %s", model, e, extra={"model": model})

        raise AdvisoryError(ALL_MODELS_FAILED)

    # -------------------------------------------------------------
    #  Rådgivning
    # -------------------------------------------------------------
    def query(
        self,
        kind: Union[QueryKind, str],
        prompt: str = "",
        context: Optional[AdvisoryContext] = None,
    ) -> AdvisoryResult:
        kind = QueryKind(kind)
        question = (prompt or "").strip() or DEFAULT_QUESTIONS.get(kind, "")
        if not question:
            raise AdvisoryError("Escribe una pregunta para el asistente.")

        messages = [
            {"role": "system", "content": build_system_prompt(kind, context)},
            {"role": "user", "content": build_user_message(question, context)},
        ]
        log.info("AI-fråga (%s)", kind.value, extra={"kind": kind.value})

        raw, model = self.complete(messages)

        return AdvisoryResult(
            content=render_advisory_html(raw),
            suggestions=extract_suggestions(raw, context.exchange_rate if context else None),
            model=model,
        )
