"""
Adjudicación externa opcional (IA) sobre el matcher síncrono

AdjudicatingMatcher envuelve un FieldMatcher: solo consulta al adjudicador para pares
ambiguos o de campos críticos, en lotes con concurrencia acotada. Si el adjudicador
falla (timeout, red, respuesta mal formada) se devuelve el resultado síncrono, sin reintentos.
"""
import asyncio
import json
import logging
import os
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Literal, Optional, Protocol, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from .field_matcher import FieldMatcher, MatchConfidence, MatchOutcome, MatchResult, default_matcher
from .field_rules import is_critical_field

try:
    from google import genai
    from google.genai import types as genai_types
    HAS_GENAI = True
except ImportError:
    HAS_GENAI = False


class AdjudicationError(RuntimeError):
    """Respuesta del adjudicador inutilizable."""


# ===============================
# Configuración
# ===============================

@dataclass(frozen=True)
class AdjudicatorSettings:
    api_key: Optional[str] = None
    model: str = "gemini-2.5-pro"
    batch_size: int = 5
    batch_delay: float = 0.2
    timeout: float = 30.0
    cache_size: int = 1024

    @classmethod
    def from_env(cls) -> "AdjudicatorSettings":
        defaults = cls()

        def _number(name, default, cast):
            raw = os.environ.get(name)
            if not raw:
                return default
            try:
                return cast(raw)
            except ValueError:
                logging.warning(f"Valor inválido para {name}: '{raw}', se usa {default}")
                return default

        return cls(
            api_key=os.environ.get("GEMINI_API_KEY") or None,
            model=os.environ.get("GEMINI_MODEL") or defaults.model,
            batch_size=max(1, _number("GEMINI_BATCH_SIZE", defaults.batch_size, int)),
            batch_delay=_number("GEMINI_BATCH_DELAY_MS", defaults.batch_delay * 1000, float) / 1000,
            timeout=_number("GEMINI_TIMEOUT_S", defaults.timeout, float),
        )


# ===============================
# Modelos
# ===============================

class AdjudicationReply(BaseModel):
    """Forma esperada de la respuesta del adjudicador."""
    match: Union[bool, Literal["ambiguous"]]
    confidence: Literal["exact", "high", "medium", "low", "ambiguous"] = "medium"
    reasoning: str = ""
    similarity: float = Field(default=0.8, ge=0.0, le=1.0)

    def to_match_result(self) -> MatchResult:
        if self.match == "ambiguous":
            outcome, confidence = MatchOutcome.AMBIGUOUS, MatchConfidence.AMBIGUOUS
        elif self.match:
            outcome = MatchOutcome.MATCH
            confidence = MatchConfidence.EXACT if self.confidence == "exact" else MatchConfidence.HIGH
        else:
            outcome, confidence = MatchOutcome.DIFFERENT, MatchConfidence.DIFFERENT
        return MatchResult(outcome, confidence, self.similarity, f"Adjudicador: {self.reasoning}".strip())


@dataclass(frozen=True)
class AdjudicatedResult:
    result: MatchResult
    source: str  # "rule-based" | "adjudicator"


@dataclass(frozen=True)
class ComparisonRequest:
    value1: str
    value2: str
    field_name: str


class Adjudicator(Protocol):
    async def adjudicate(self, value1: str, value2: str, field_name: str) -> AdjudicationReply:
        ...


class AdjudicationCache:
    """Caché LRU explícita, propiedad del llamador. Clave: (campo, valor1, valor2)."""

    def __init__(self, max_size: int = 1024):
        self.max_size = max_size
        self._items: "OrderedDict[Tuple[str, str, str], MatchResult]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: Tuple[str, str, str]) -> Optional[MatchResult]:
        if key not in self._items:
            return None
        self._items.move_to_end(key)
        return self._items[key]

    def put(self, key: Tuple[str, str, str], result: MatchResult) -> None:
        self._items[key] = result
        self._items.move_to_end(key)
        while len(self._items) > self.max_size:
            self._items.popitem(last=False)

    def clear(self) -> None:
        self._items.clear()


# ===============================
# Decorador
# ===============================

class AdjudicatingMatcher:
    """
    Sin adjudicador, o si éste falla, devuelve exactamente lo mismo que el FieldMatcher.
    """

    def __init__(self, adjudicator: Optional[Adjudicator] = None,
                 matcher: Optional[FieldMatcher] = None,
                 cache: Optional[AdjudicationCache] = None,
                 settings: Optional[AdjudicatorSettings] = None):
        self.adjudicator = adjudicator
        self.matcher = matcher or default_matcher()
        self.cache = cache
        self.settings = settings or AdjudicatorSettings()

    def compare_sync(self, value1: str, value2: str) -> AdjudicatedResult:
        return AdjudicatedResult(self.matcher.compare(value1, value2), "rule-based")

    def needs_adjudication(self, result: MatchResult, field_name: str) -> bool:
        if self.adjudicator is None or result.confidence > MatchConfidence.HIGH:
            return False
        return result.outcome == MatchOutcome.AMBIGUOUS or is_critical_field(field_name)

    async def compare(self, value1: str, value2: str, field_name: str) -> AdjudicatedResult:
        local = self.compare_sync(value1, value2)
        if not self.needs_adjudication(local.result, field_name):
            return local

        key = (field_name, value1, value2)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return AdjudicatedResult(cached, "adjudicator")

        try:
            reply = await asyncio.wait_for(
                self.adjudicator.adjudicate(value1, value2, field_name),
                timeout=self.settings.timeout,
            )
            if not isinstance(reply, AdjudicationReply):
                reply = AdjudicationReply.model_validate(reply)
            result = reply.to_match_result()
        except asyncio.TimeoutError:
            logging.warning(f"Adjudicador sin respuesta para '{field_name}' tras {self.settings.timeout}s; se usa resultado local")
            return local
        except Exception as e:
            logging.warning(f"Adjudicador falló para '{field_name}': {e}; se usa resultado local")
            return local

        if self.cache is not None:
            self.cache.put(key, result)
        return AdjudicatedResult(result, "adjudicator")

    async def compare_batch(self, requests: List[ComparisonRequest]) -> List[AdjudicatedResult]:
        """Mantiene el orden de entrada. Como mucho batch_size llamadas simultáneas."""
        results: List[Optional[AdjudicatedResult]] = [None] * len(requests)
        pending: List[int] = []

        for i, req in enumerate(requests):
            local = self.compare_sync(req.value1, req.value2)
            if self.needs_adjudication(local.result, req.field_name):
                pending.append(i)
            else:
                results[i] = local

        size = max(1, self.settings.batch_size)
        for start in range(0, len(pending), size):
            chunk = pending[start:start + size]
            answers = await asyncio.gather(*(
                self.compare(requests[i].value1, requests[i].value2, requests[i].field_name)
                for i in chunk
            ))
            for i, answer in zip(chunk, answers):
                results[i] = answer
            if start + size < len(pending) and self.settings.batch_delay > 0:
                await asyncio.sleep(self.settings.batch_delay)

        return results


# ===============================
# Adjudicador Gemini
# ===============================

PROMPT_TEMPLATE = """Compare these insurance document field values for semantic equality.

FIELD: "{field_name}"
VALUE_A: "{value1}"
VALUE_B: "{value2}"

Matching rules:
1. DATES: "01-01-2025" = "1 jan 2025" = "January 1, 2025"
2. CURRENCY: "$1,000,000" = "1000000" = "$1M"
3. INSURANCE TERMS: "General Liability" = "GL" = "CGL"
4. YES/NO: "Yes" = "Y" = "Included" vs "No" = "N" = "Excluded"
5. PERCENTAGES: "2.5%" = "2.5 percent" = "0.025"
6. NAMES: "John Smith Corp" = "J. Smith Corporation"
7. POLICY NUMBERS: "ABC123" = "ABC-123" = "ABC 123"

Respond with only this JSON object:
{{"match": true, "confidence": "exact", "reasoning": "...", "similarity": 0.95}}

match: true, false or "ambiguous"; confidence: "exact", "high", "medium", "low" or "ambiguous"; similarity: 0.0 to 1.0"""


def parse_reply(text: Optional[str]) -> AdjudicationReply:
    """Extrae y valida el objeto JSON de la respuesta; AdjudicationError si no es utilizable."""
    if not text or not text.strip():
        raise AdjudicationError("Respuesta vacía del adjudicador")
    start = text.find("{")
    if start < 0:
        raise AdjudicationError(f"La respuesta no contiene JSON: {text[:100]!r}")
    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
        return AdjudicationReply.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise AdjudicationError(f"Respuesta JSON inválida: {e}")


class GeminiAdjudicator:
    def __init__(self, settings: AdjudicatorSettings):
        if not HAS_GENAI:
            raise RuntimeError("google-genai no instalado. Instale el extra 'adjudicator'.")
        if not settings.api_key:
            raise ValueError("Se requiere GEMINI_API_KEY para el adjudicador")
        self.settings = settings
        self.client = genai.Client(api_key=settings.api_key)
        self.config = genai_types.GenerateContentConfig(
            temperature=0.1,
            top_p=0.8,
            top_k=40,
            max_output_tokens=300,
            response_mime_type="application/json",
        )

    async def adjudicate(self, value1: str, value2: str, field_name: str) -> AdjudicationReply:
        prompt = PROMPT_TEMPLATE.format(field_name=field_name, value1=value1, value2=value2)
        response = await self.client.aio.models.generate_content(
            model=self.settings.model,
            contents=prompt,
            config=self.config,
        )
        return parse_reply(response.text)
