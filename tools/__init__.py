from tools.portal import FundRecord, Returns, fetch_funds, parse_fund_table
from tools.documents import FactSheet, retrieve_fact_sheet
from tools.holdings import HoldingsStrategy, PercentageLineStrategy, extract_holdings
from tools.report import generate_report, list_models
from tools.errors import NotFound, RetrievalFailed, StepTimeout, UpstreamAPIFailure

__all__ = [
    "FundRecord",
    "Returns",
    "fetch_funds",
    "parse_fund_table",
    "FactSheet",
    "retrieve_fact_sheet",
    "HoldingsStrategy",
    "PercentageLineStrategy",
    "extract_holdings",
    "generate_report",
    "list_models",
    "NotFound",
    "RetrievalFailed",
    "StepTimeout",
    "UpstreamAPIFailure",
]
