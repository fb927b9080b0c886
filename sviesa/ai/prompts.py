"""
Prompt Building
===============

Base persona instruction plus the two optional context blocks:

- memory context: a previously generated answer to rephrase, not quote
- retrieved context: corpus passages, between RAG_CONTEXT_START/RAG_CONTEXT_END

The final system instruction is assembled by build_system_instruction().
"""

from typing import Optional, Sequence

from ..memory.models import MemoryMatch
from ..rag.models import RankedResult

SYSTEM_INSTRUCTION = """
Jūs esate **Tikėjimo Šviesa**, atsidavęs Katalikų Bažnyčios balsas.
**KALBA:** IŠSKIRTINAI LIETUVIŲ.

**PAGRINDINĖ TAPATYBĖ:**
Atstovaujate „Gyvąją Tradiciją" – Bibliją, Katekizmą (KBK), popiežių enciklikas.

**ŠALTINIAI (HIERARCHIJA):**
1. **Šventasis Raštas** – PAGRINDINIS ir SVARBIAUSIAS šaltinis. Kiekviename atsakyme pirmiausiai remkis Biblija.
2. **Katalikų Bažnyčios Katekizmas (KBK)** – oficialus tikėjimo mokymas, papildantis Šventąjį Raštą.
3. **Enciklikos „Lumen Fidei" ir „Fides et Ratio"** – papildomas kontekstas.

**CITAVIMO TAISYKLĖS:**
- VISADA pradėk nuo Šventojo Rašto citatos.
- Papildyk KBK mokymu kai tinka.
- Nenaudok VISŲ šaltinių kiekviename atsakyme – pasirink tinkamiausius (2-3).

**FORMATAVIMAS (PRIVALOMA):**
1. **ANTRAŠTĖS (###):** Skyrių pavadinimai su `###`.
2. **CITATOS (>):** Tiesioginės citatos su > simboliu, pvz.: > „Dievas yra meilė." (KBK 218)

**STRUKTŪRA PABAIGOJE:**
||| SOURCES: [Šaltinis 1(Nr.ar eil.)] | [Šaltinis 2(Nr.)] |||
||| SUGGESTIONS: [Klausimas 1] | [Klausimas 2] | [Klausimas 3] |||
""".strip()

RAG_CONTEXT_START = "### AUTENTIŠKI ŠALTINIAI ATSAKYMUI ###"
RAG_CONTEXT_END = "### ŠALTINIŲ PABAIGA ###"

MEMORY_CONTEXT_START = "### ANKSTESNIS PATIKRINTAS ATSAKYMAS ###"
MEMORY_CONTEXT_END = "### ANKSTESNIO ATSAKYMO PABAIGA ###"

RAG_INSTRUCTION = (
    "SVARBU: Naudok žemiau pateiktus šaltinius kaip pagrindinį tiesos šaltinį atsakymui.\n"
    "Jei atsakymas yra šiuose tekstuose, neieškok kitur ir cituok juos."
)

MEMORY_INSTRUCTION = (
    "SVARBU: Į panašų klausimą jau buvo atsakyta. Remkis šiuo atsakymu kaip patikimu turiniu, "
    "bet NEKOPIJUOK jo pažodžiui: perfrazuok savais žodžiais ir pritaikyk prie dabartinio klausimo."
)

FORMAT_REMINDER = "PRIMINIMAS FORMATAVIMUI: Antraštėms naudok ###, o citatoms naudok > simbolį."


def format_memory_context(match: MemoryMatch) -> str:
    return (
        f"{MEMORY_INSTRUCTION}\n\n"
        f"{MEMORY_CONTEXT_START}\n"
        f"Klausimas: {match.question}\n"
        f"Atsakymas: {match.answer}\n"
        f"{MEMORY_CONTEXT_END}"
    )


def format_rag_context(results: Sequence[RankedResult], char_budget: int = 600) -> str:
    """Retrieved passages, each cut to char_budget characters. Empty input gives ''."""
    if not results:
        return ""

    parts = [RAG_INSTRUCTION, "", RAG_CONTEXT_START]
    for result in results:
        parts.append(f"--- ŠALTINIS: {result.book_or_section} ({result.chapter_or_ref}) ---")
        parts.append(result.content[:char_budget])
        parts.append("")
    parts.append(RAG_CONTEXT_END)
    parts.append("")
    parts.append(FORMAT_REMINDER)
    return "\n".join(parts)


def build_system_instruction(
    memory_context: Optional[str] = None,
    rag_context: Optional[str] = None,
    base: str = SYSTEM_INSTRUCTION,
) -> str:
    sections = [base]
    if memory_context:
        sections.append(memory_context)
    if rag_context:
        sections.append(rag_context)
    return "\n\n".join(sections)
