"""Tests for holdings extraction from fact sheet text."""
import fitz  # pymupdf
import pytest

SECTION = """Ficha Técnica FPV Acciones Global
Rentabilidad histórica 12.50%
Principales inversiones del portafolio
Emisores Tipo de Inversión Participación
Jpmorgan Global Research Enhanced Equity Esg Etf Rv. Internacional 33.09%
Pinebridge Global Focus Equity Fondo Internacional 21.40%
Efectivo y equivalentes Liquidez 2.10%
Composición por sector
"""


def _pdf(lines: list[str]) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    y = 72
    for line in lines:
        page.insert_text((72, y), line, fontsize=10)
        y += 14
    data = doc.tobytes()
    doc.close()
    return data


def test_three_holdings_in_document_order_header_excluded():
    from tools.holdings import PercentageLineStrategy

    holdings = PercentageLineStrategy().extract(SECTION)
    assert holdings == [
        "Jpmorgan Global Research Enhanced Equity Esg Etf",
        "Pinebridge Global Focus Equity",
        "Efectivo y equivalentes",
    ]


def test_no_marker_returns_empty():
    from tools.holdings import PercentageLineStrategy

    text = "Ficha Técnica\nJpmorgan Global Equity Rv. Internacional 33.09%\n"
    assert PercentageLineStrategy().extract(text) == []


def test_lines_before_marker_are_ignored():
    from tools.holdings import PercentageLineStrategy

    holdings = PercentageLineStrategy().extract(SECTION)
    assert not any("Rentabilidad" in h for h in holdings)


def test_text_on_marker_line_is_not_a_holding():
    from tools.holdings import PercentageLineStrategy

    text = (
        "Principales inversiones del portafolio al corte 31/10/2025 100.00%\n"
        "Ecopetrol S.A. 9.99%\n"
    )
    assert PercentageLineStrategy().extract(text) == ["Ecopetrol S.A."]


def test_short_names_are_noise():
    from tools.holdings import PercentageLineStrategy

    text = "Principales inversiones del portafolio\nTES 4.00%\nABC Derivados 1.50%\nEcopetrol S.A. 9.99%\n"
    assert PercentageLineStrategy().extract(text) == ["Ecopetrol S.A."]


def test_non_percentage_lines_are_skipped():
    from tools.holdings import PercentageLineStrategy

    text = "Principales inversiones del portafolio\nBancolombia 12%\nGrupo Argos 3.25 %\nGrupo Sura 7.80%\n"
    assert PercentageLineStrategy().extract(text) == ["Grupo Sura"]


def test_duplicates_are_kept():
    from tools.holdings import PercentageLineStrategy

    text = "Principales inversiones del portafolio\nEcopetrol 1.00%\nEcopetrol 2.00%\n"
    assert PercentageLineStrategy().extract(text) == ["Ecopetrol", "Ecopetrol"]


def test_extraction_is_capped():
    from tools.holdings import PercentageLineStrategy, MAX_HOLDINGS

    rows = "\n".join(f"Emisor numero {i} {i}.00%" for i in range(25))
    holdings = PercentageLineStrategy().extract(f"Principales inversiones del portafolio\n{rows}")
    assert len(holdings) == MAX_HOLDINGS
    assert holdings[0] == "Emisor numero 0"


def test_extract_holdings_from_pdf_bytes():
    from tools.holdings import extract_holdings

    pdf = _pdf([
        "Principales inversiones del portafolio",
        "Emisores Participacion",
        "Ishares Global Tech Etf Rv. Internacional 40.12%",
        "Blackrock World Technology Fondo Internacional 20.50%",
        "Fidelity Global Technology Fund 10.00%",
    ])
    assert extract_holdings(pdf) == [
        "Ishares Global Tech Etf",
        "Blackrock World Technology",
        "Fidelity Global Technology Fund",
    ]


def test_extract_holdings_pdf_without_section():
    from tools.holdings import extract_holdings

    assert extract_holdings(_pdf(["Ficha tecnica", "Sin inversiones listadas"])) == []


def test_extract_holdings_unreadable_bytes():
    from tools.holdings import extract_holdings

    assert extract_holdings(b"<html>not a pdf</html>") == []


def test_custom_strategy_is_used():
    from tools.holdings import extract_holdings

    class FirstLine:
        def extract(self, text):
            return [text.splitlines()[0]]

    assert extract_holdings(_pdf(["Hola mundo"]), strategy=FirstLine()) == ["Hola mundo"]
