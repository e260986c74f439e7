"""AI narrative report for one fund.

Gathers the optional supplementary material (fact sheet, holdings, news or
quotes), folds it into a single prompt and asks Gemini for the report, walking
a preference-ordered list of models until one answers.
"""

from __future__ import annotations

import logging

import httpx
from openai import AsyncOpenAI

from config import (
    ALLOWED_MODELS,
    DEFAULT_MODEL,
    GEMINI_BASE_URL,
    GEMINI_MODELS,
    GEMINI_MODELS_URL,
    QUOTE_SYMBOLS,
    REPORT_MAX_PDF_CHARS,
)
from tools.documents import FactSheet, retrieve_fact_sheet
from tools.errors import AllAttemptsFailed, NotFound, UpstreamAPIFailure
from tools.holdings import PercentageLineStrategy, extract_pdf_text
from tools.news import build_news_query, search_news
from tools.portal import FundRecord
from tools.quotes import fetch_quote_research
from tools.utils import try_until_success, unique

logger = logging.getLogger(__name__)

SUPPLEMENT_UNAVAILABLE = (
    "Nota: no fue posible obtener la ficha técnica (PDF) del portafolio; "
    "el análisis se basa únicamente en los datos estructurados."
)


def model_order(requested: str | None) -> list[str]:
    """Requested model first (if allowed, else DEFAULT_MODEL), then the configured preference list."""
    if requested and requested not in ALLOWED_MODELS:
        logger.warning(f"Model {requested} is not in the allowed list, ignoring")
        requested = None
    preferred = requested or DEFAULT_MODEL
    return unique(([preferred] if preferred else []) + GEMINI_MODELS)


def build_prompt(
    fund: FundRecord,
    research: str = "",
    holdings: list[str] | None = None,
    fact_sheet_text: str | None = None,
) -> str:
    r = fund.returns
    prompt = f"""Actúa como un experto asesor financiero de alto nivel. Analiza el siguiente portafolio de inversión de Skandia y genera un reporte detallado.

Datos del Portafolio:
- Nombre: {fund.name}
- Categoría: {fund.category}
- Tipo: {fund.type}
- Valor del Fondo: {fund.value} Millones COP
- Perfil de Riesgo: {fund.risk}
- Rentabilidad Diaria: {r.daily}
- Rentabilidad Mensual: {r.monthly}
- Rentabilidad Semestral: {r.six_months}
- Rentabilidad Anual (YTD): {r.yearly}
"""
    if holdings:
        prompt += "\nPrincipales inversiones del portafolio (según la ficha técnica):\n"
        prompt += "\n".join(f"- {h}" for h in holdings) + "\n"

    if fact_sheet_text:
        prompt += f"\nContenido de la ficha técnica (PDF):\n{fact_sheet_text[:REPORT_MAX_PDF_CHARS]}\n"
    else:
        prompt += f"\n{SUPPLEMENT_UNAVAILABLE}\n"

    if research:
        prompt += f"\nContexto de mercado reciente:\n{research}\n"

    prompt += """
Tu análisis debe incluir:
1. **Resumen Ejecutivo**: Interpretación de las rentabilidades (corto vs largo plazo). ¿Es consistente? ¿Está en recuperación?
2. **Análisis de Riesgos**: Riesgos específicos basados en el tipo de activo (Renta Variable, Fija, etc.) y la situación actual del mercado global/local implícita.
3. **Ventajas Competitivas**: Por qué elegir este fondo.
4. **Veredicto Final**: Una recomendación clara (Comprar, Mantener, Vender) con una justificación breve.

Formato de salida: Markdown limpio y bien estructurado. Usa negritas para resaltar puntos clave. No uses bloques de código, solo texto formateado.
"""
    return prompt


async def gather_research(fund: FundRecord, holdings: list[str]) -> str:
    symbols = QUOTE_SYMBOLS.get(fund.name)
    if symbols:
        parts = [await fetch_quote_research(s) for s in symbols]
        return "\n".join(parts)
    return await search_news(build_news_query(fund.name, holdings))


async def list_models(api_key: str) -> list[str]:
    """Gemini models this key may call with generateContent, newest-looking first."""
    async with httpx.AsyncClient(timeout=20) as client:
        resp = await client.get(GEMINI_MODELS_URL, params={"key": api_key})
        resp.raise_for_status()
        data = resp.json()
    models = [
        m["name"].removeprefix("models/")
        for m in data.get("models", [])
        if "gemini" in m.get("name", "") and "generateContent" in m.get("supportedGenerationMethods", [])
    ]
    return sorted(models, reverse=True)


async def generate_text(api_key: str, prompt: str, models: list[str]) -> tuple[str, str]:
    """Return (model_used, text). Raises UpstreamAPIFailure when every model fails."""
    client = AsyncOpenAI(api_key=api_key, base_url=GEMINI_BASE_URL, max_retries=1)

    async def attempt(model: str) -> str:
        logger.info(f"Attempting to generate with model: {model}")
        resp = await client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
        )
        text = resp.choices[0].message.content if resp.choices else None
        if not text:
            raise ValueError(f"Empty response from {model}")
        return text

    try:
        return await try_until_success(models, attempt)
    except AllAttemptsFailed as e:
        logger.error(f"All models failed. Last error: {e.last_error}")
        available = None
        try:
            available = await list_models(api_key)
            logger.info(f"Available models for this key: {available}")
        except Exception as diag_err:
            logger.warning(f"Failed to list models: {diag_err}")
        raise UpstreamAPIFailure(e.attempted, e.last_error, available) from e


async def generate_report(fund: FundRecord, api_key: str, model: str | None = None) -> dict:
    """Build the full report. Supplementary data is optional; the LLM call is not."""
    sheet = await retrieve_fact_sheet(fund.name)
    holdings: list[str] = []
    sheet_text = None
    if isinstance(sheet, FactSheet):
        try:
            sheet_text = extract_pdf_text(sheet.content)
            holdings = PercentageLineStrategy().extract(sheet_text)
        except Exception as e:
            logger.warning(f"Fact sheet for '{fund.name}' could not be parsed: {e}")
    elif isinstance(sheet, NotFound):
        logger.info(f"No fact sheet row for '{fund.name}', continuing text-only")
    else:
        logger.info(f"Fact sheet unavailable for '{fund.name}' ({sheet.reason}), continuing text-only")

    research = await gather_research(fund, holdings)
    prompt = build_prompt(fund, research=research, holdings=holdings, fact_sheet_text=sheet_text)

    model_used, analysis = await generate_text(api_key, prompt, model_order(model))
    result = {"analysis": analysis, "modelUsed": model_used}
    if isinstance(sheet, FactSheet):
        result["pdfUrl"] = sheet.source_url
    return result
