"""Call-letter extraction and normalization.

The admin uploads the call letter PDF; the browser extracts its text and
sends it here. The extraction model turns it into the structured fields,
and normalize_call_letter() rebuilds a clean copy of the letter from those
fields for display after the reveal.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import BaseModel

from callreveal.models.revelation import MissionFields
from callreveal.services.llm import LLMService

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_WEEKDAYS = "lunes|martes|miércoles|jueves|viernes|sábado|domingo"

EXTRACTION_PROMPT = """You are a data extraction assistant. Extract fields from this LDS missionary call letter. Return ONLY a valid JSON object, no extra text.

Rules:
- Return plain text values only, no formatting or line breaks.
- missionaryName: The missionary's name (e.g. "María García López"). Do NOT include "Hermana", "Elder", or titles. Just the name.
- missionName: The mission name WITHOUT the "Misión" prefix (e.g. if text says "Misión México Ciudad de México Chalco", return "México Ciudad de México Chalco").
- language: The language they will speak. If not explicitly stated, infer from the mission country.
- trainingCenter: The MTC/CCM location if mentioned. Empty string if not found.
- entryDate: The MTC report date if mentioned. Empty string if not found.
- confidence: Object with same keys, each a number 0-100. Use 0 if not found.

If a field cannot be found or inferred, use empty string and confidence 0.

Text:
{text}

JSON:"""

# Model output keys → our field names
_KEY_MAP = {
    "missionaryName": "missionary_name",
    "missionName": "mission_name",
    "language": "language",
    "trainingCenter": "training_center",
    "entryDate": "entry_date",
}

# Optional paragraphs carried over verbatim: (start phrase, lookahead of what follows)
_EXTRA_PARAGRAPHS = (
    (r"Al prestar servicio con todo su corazón", r"\n\n|\nTenga|\nSe anticipa"),
    (r"Tenga a bien revisar el Portal Misional", r"\n\n|\nSe anticipa|\nNuestro"),
    (r"Se anticipa que prestará servicio", r"\n\n|\nNuestro|\nPonemos"),
    (r"Nuestro Padre Celestial l[ao] recompensará", r"\n\n|\nPonemos|\nNuestro Padre Celestial ha"),
    (r"Ponemos nuestra confianza", r"\n\n|\nAtentamente|$"),
)


class ExtractionError(Exception):
    """Raised when the model's reply holds no usable JSON."""


class ExtractedCall(BaseModel):
    fields: MissionFields
    confidence: dict[str, int]


def _confidence(value: object) -> int:
    try:
        number = int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, number))


def parse_extraction(text: str) -> ExtractedCall:
    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        raise ExtractionError("AI did not return valid JSON")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"AI returned malformed JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ExtractionError("AI returned a non-object JSON value")

    fields = {ours: str(parsed.get(theirs) or "").strip() for theirs, ours in _KEY_MAP.items()}
    raw_conf = parsed.get("confidence")
    if not isinstance(raw_conf, dict):
        raw_conf = {}
    confidence = {ours: _confidence(raw_conf.get(theirs)) for theirs, ours in _KEY_MAP.items()}
    return ExtractedCall(fields=MissionFields(**fields), confidence=confidence)


class CallLetterExtractor:
    def __init__(self, llm: LLMService) -> None:
        self._llm = llm

    async def extract(self, text: str) -> ExtractedCall:
        """Raises LLMError if the model is unreachable, ExtractionError if
        its answer is unusable."""
        response = await self._llm.generate(EXTRACTION_PROMPT.format(text=text), temperature=0.0)
        result = parse_extraction(response.text)
        logger.info(
            "Call letter extracted (confidence: %s)",
            ", ".join(f"{k}={v}" for k, v in result.confidence.items()),
        )
        return result


def normalize_call_letter(raw_text: str, fields: MissionFields) -> str:
    """Rebuild the call letter in a clean, standard layout.

    Recovers what the fields don't carry (letter date, address block,
    gender, weekday of the entry date, optional paragraphs) from the raw
    PDF text.
    """
    is_elder = bool(
        re.search(r"\b[EÉ]lder\b", raw_text, re.IGNORECASE)
        or re.search(r"\bEstimado\b", raw_text, re.IGNORECASE)
    )

    letter_date = ""
    address_block = ""
    header = re.search(r"^(.*?\d{4})\s*\n([\s\S]*?)(?=Estimad[ao])", raw_text, re.IGNORECASE | re.MULTILINE)
    if header:
        letter_date = header.group(1).strip()
        lines = [line.strip() for line in header.group(2).strip().split("\n")]
        address_block = "\n".join(line for line in lines if line)

    entry_date = fields.entry_date
    weekday = re.search(rf"({_WEEKDAYS})\s+\d{{1,2}}\s+de", raw_text, re.IGNORECASE)
    if weekday and not re.search(_WEEKDAYS, entry_date, re.IGNORECASE):
        entry_date = f"{weekday.group(1)} {entry_date}"

    extras = []
    for start, stop in _EXTRA_PARAGRAPHS:
        found = re.search(rf"{start}[\s\S]*?(?={stop})", raw_text, re.IGNORECASE)
        if found:
            extras.append(re.sub(r"\s+", " ", found.group(0)).strip())
    extra_block = "\n\n" + "\n\n".join(extras) if extras else ""

    salutation = "Estimado Élder" if is_elder else "Estimada Hermana"
    misionero = "misionero" if is_elder else "misionera"
    asignado = "asignado" if is_elder else "asignada"
    bendecido = "bendecido" if is_elder else "bendecida"
    un_representante = "un representante" if is_elder else "una representante"

    return f"""{letter_date}

{address_block}

{salutation} {fields.missionary_name}:

Por medio de la presente, se le llama a prestar servicio como {misionero} de La Iglesia de Jesucristo de los Santos de los Últimos Días. Usted ha sido {asignado} a la Misión {fields.mission_name} y se preparará para predicar el Evangelio en el idioma {fields.language}.

Se le ha recomendado como una persona digna de representar al Señor en calidad de ministro del evangelio restaurado de Jesucristo. Será {un_representante} oficial de la Iglesia. Como tal, se espera que usted honre los convenios que ha hecho con el Padre Celestial, guarde los mandamientos, mantenga las más altas normas de conducta y siga el consejo recto de su presidente de misión.

Al dedicar su tiempo y su atención a servir al Señor, dejando a un lado todos los demás asuntos personales, usted será {bendecido} con un mayor conocimiento y testimonio de Jesucristo y de Su evangelio restaurado.

Su objetivo será invitar a los demás a venir a Cristo ayudándoles a que reciban el evangelio restaurado mediante la fe en Jesucristo y Su expiación, el arrepentimiento, el bautismo, el don del Espíritu Santo y perseverar hasta el fin.

Deberá presentarse el {entry_date}.{extra_block}

Nuestro Padre Celestial ha escuchado las oraciones de usted y de sus seres queridos. Le rogamos que siga buscando guía mediante la oración mientras se prepara para prestar servicio.

Atentamente,

Presidente Russell M. Nelson"""
