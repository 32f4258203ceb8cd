"""Log every page rewrite to a timestamped file in logs/.

Each page rewrite (one call to ``log_page_rewrite``) produces a single
``.log`` file containing:

* Active config.txt settings
* Page title, id, niche, provider and model
* Outcome: status, texts rewritten vs. total, elapsed time
* Every candidate text with accept/reject and the reason
* Every batch exchange: full system prompt, full user prompt, and
  the full response (or the error that replaced it)
* Structural validation errors, if any

Files are named ``YYYYMMDD_HHMMSS_<page-slug>_rewrite.log`` so they
sort chronologically; a numeric suffix is added on collision.
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime

from src.config import config_as_text
from src.markup.filters import TextDecision

logger = logging.getLogger(__name__)

LOGS_DIR = os.path.join("logs")


@dataclass
class BatchExchange:
    """One request/response round trip with the text service."""

    index: int  # 1-based
    total: int
    system_prompt: str
    user_prompt: str
    response: str | None = None
    error: str | None = None
    parsed: int = 0


def sanitize_filename(text: str) -> str:
    # Remove non-alphanumeric characters except spaces and hyphens
    clean_text = re.sub(r"[^\w\s-]", "", text)
    # Replace spaces, hyphens, and existing underscores with a single underscore
    clean_text = re.sub(r"[\s_-]+", "_", clean_text)
    return clean_text.strip("_").lower()[:50] or "page"


def _ensure_logs_dir(logs_dir: str = LOGS_DIR) -> None:
    """Create the logs directory if it doesn't exist."""
    os.makedirs(logs_dir, exist_ok=True)


def _unique_path(logs_dir: str, stem: str) -> str:
    filepath = os.path.join(logs_dir, f"{stem}.log")
    counter = 2
    while os.path.exists(filepath):
        filepath = os.path.join(logs_dir, f"{stem}_{counter}.log")
        counter += 1
    return filepath


def log_page_rewrite(
    *,
    page_title: str,
    niche: str,
    status: str,
    texts_rewritten: int,
    texts_total: int,
    page_id: int | None = None,
    provider: str | None = None,
    model: str | None = None,
    decisions: list[TextDecision] | None = None,
    exchanges: list[BatchExchange] | None = None,
    validation_errors: list[str] | None = None,
    errors: list[str] | None = None,
    elapsed_seconds: float | None = None,
    config: dict | None = None,
    logs_dir: str = LOGS_DIR,
) -> str:
    """Write a complete page rewrite session to a log file.

    Parameters
    ----------
    page_title : str
        Title of the page that was rewritten.
    niche : str
        Target niche the copy was tailored to.
    status : str
        Final orchestrator status (``applied``, ``failed``...).
    texts_rewritten, texts_total : int
        Size of the rewrite map vs. number of extracted texts.
    page_id : int | None
        Content repository id of the page, if known.
    provider, model : str | None
        Text service used.
    decisions : list[TextDecision] | None
        Per-text accept/reject records from extraction.
    exchanges : list[BatchExchange] | None
        Per-batch prompt/response records.
    validation_errors : list[str] | None
        Structural validator output.
    errors : list[str] | None
        Batch or page-level errors.
    elapsed_seconds : float | None
        Wall-clock time for the page.
    config : dict | None
        Settings the page actually ran with (see
        :meth:`RewriteSettings.as_config`).  Falls back to ``CFG``.
    logs_dir : str
        Directory for log files.

    Returns
    -------
    str
        Path to the log file.
    """
    _ensure_logs_dir(logs_dir)

    now = datetime.now()
    stem = f"{now.strftime('%Y%m%d_%H%M%S')}_{sanitize_filename(page_title)}_rewrite"
    filepath = _unique_path(logs_dir, stem)

    separator = "─" * 72
    decisions = decisions or []
    exchanges = exchanges or []

    with open(filepath, "w", encoding="utf-8") as fh:
        # ── Config ──────────────────────────────────────────────────
        fh.write("CONFIG\n")
        fh.write(f"{separator}\n")
        fh.write(f"{config_as_text(config)}\n")
        fh.write(f"{separator}\n\n")

        # ── Parameters ──────────────────────────────────────────────
        fh.write("PAGE REWRITE SESSION\n")
        fh.write(f"{separator}\n")
        fh.write(f"Timestamp:    {now.isoformat()}\n")
        fh.write(f"Page:         {page_title}\n")
        if page_id is not None:
            fh.write(f"Page ID:      {page_id}\n")
        fh.write(f"Niche:        {niche}\n")
        if provider:
            fh.write(f"Provider:     {provider}\n")
        if model:
            fh.write(f"Model:        {model}\n")
        fh.write(f"Status:       {status}\n")
        fh.write(f"Rewritten:    {texts_rewritten}/{texts_total}\n")
        if elapsed_seconds is not None:
            fh.write(f"Elapsed:      {elapsed_seconds:.1f}s\n")
        fh.write(f"{separator}\n\n")

        # ── Text decisions ──────────────────────────────────────────
        accepted = sum(1 for d in decisions if d.accepted)
        fh.write(f"TEXTS ({accepted} accepted, {len(decisions) - accepted} rejected)\n")
        fh.write(f"{separator}\n")
        for d in decisions:
            mark = f"ACCEPT [{d.text_id}]" if d.accepted else "REJECT"
            reason = f"  {d.reason}" if d.reason else ""
            fh.write(f"{mark}  ({d.source}, {d.context}){reason}\n")
            fh.write(f"  {d.text!r}\n")
        fh.write(f"{separator}\n\n")

        # ── Batch exchanges ─────────────────────────────────────────
        for ex in exchanges:
            fh.write(f"BATCH {ex.index}/{ex.total}\n")
            fh.write(f"{separator}\n")
            fh.write(f"System prompt:\n{ex.system_prompt}\n")
            fh.write(f"User prompt:\n{ex.user_prompt}\n")
            if ex.error is not None:
                fh.write(f"ERROR: {ex.error}\n")
            else:
                fh.write(f"Response ({ex.parsed} line(s) parsed):\n{ex.response}\n")
            fh.write(f"{separator}\n\n")

        # ── Validation / errors ─────────────────────────────────────
        if validation_errors:
            fh.write("VALIDATION\n")
            fh.write(f"{separator}\n")
            for err in validation_errors:
                fh.write(f"- {err}\n")
            fh.write(f"{separator}\n\n")
        if errors:
            fh.write("ERRORS\n")
            fh.write(f"{separator}\n")
            for err in errors:
                fh.write(f"- {err}\n")
            fh.write(f"{separator}\n")

    logger.info(f"Page rewrite logged to {filepath}")
    return filepath
