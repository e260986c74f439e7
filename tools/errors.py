from __future__ import annotations

from dataclasses import dataclass


class ScrapeError(Exception):
    """Base class for failures inside the portal scraping pipeline."""


class StepTimeout(ScrapeError):
    """An interaction step did not complete within its bound."""

    def __init__(self, step_index: int, selector: str | None, detail: str = ""):
        self.step_index = step_index
        self.selector = selector
        msg = f"Step {step_index} timed out waiting on {selector or 'page'}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class AllAttemptsFailed(Exception):
    """Every alternative handed to try_until_success raised."""

    def __init__(self, attempted: list, last_error: BaseException | None):
        self.attempted = attempted
        self.last_error = last_error
        super().__init__(f"All {len(attempted)} attempts failed. Last error: {last_error}")


class UpstreamAPIFailure(Exception):
    """The language model call failed for every configured model."""

    def __init__(self, attempted: list[str], last_error: BaseException | None,
                 available_models: list[str] | None = None):
        self.attempted = attempted
        self.last_error = last_error
        self.available_models = available_models
        msg = f"All models failed. Last error: {last_error or 'Unknown error'}"
        if available_models is not None:
            msg += f". Available models: {', '.join(available_models) or 'None found'}"
        super().__init__(msg)


# Document retrieval outcomes. These are values, not exceptions: callers treat
# a missing fact sheet as "document unavailable" and carry on.

@dataclass(frozen=True)
class NotFound:
    fund_name: str


@dataclass(frozen=True)
class RetrievalFailed:
    reason: str  # missing-params | http-status | invalid-content | error
    detail: str = ""
