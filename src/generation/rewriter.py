"""Rewrite the visible copy of pages without touching their markup.

For one page the pipeline is::

    tokenize → extract → batch → text service → reassemble → validate

Only the extracted copy is sent to the text service, in numbered
batches (see :mod:`src.generation.batching`).  The rewritten document
is re-tokenized and compared with the original structure before it is
reported as applied.  A page is never written with content that did
not come back through this path; on failure the original content is
returned untouched.

Validation failures are handled by ``settings.validation_policy``:

* **warn**: attach the errors to ``RewriteResult.warnings`` and apply
* **strict**: reject the rewrite and keep the original content

Usage (CLI)::

    python -m src.generation.rewriter /var/www/site --niche "family dentist"
    python -m src.generation.rewriter /var/www/site --niche "yoga studio" --dry-run
    python -m src.generation.rewriter --html-file page.html --niche "bakery" --strict

Usage (programmatic)::

    from src.generation.rewriter import rewrite_page
    result = rewrite_page(content, niche="family dentist", page_title="Home")
"""

import logging
import os
import sys
import time
from collections.abc import Iterator
from dataclasses import dataclass, field

from rich.console import Console
from rich.table import Table

from src.config import CFG, RewriteSettings, print_config
from src.generation.audit_log import BatchExchange, log_page_rewrite
from src.generation.batching import (
    build_system_prompt,
    build_user_message,
    chunk_texts,
    parse_response,
)
from src.generation.llm import ConfigurationError, get_text_generator
from src.markup.extraction import extract_texts
from src.markup.reassembly import (
    expected_segments,
    reassemble,
    unapplied_embedded_ids,
)
from src.markup.tokenizer import tokenize
from src.markup.validation import validate
from src.wordpress.wp_cli import Page, WordPressRepository, WpCliError

logger = logging.getLogger(__name__)

console = Console()

# ── Statuses ────────────────────────────────────────────────────────
SKIPPED = "skipped"
DRY_RUN = "dry_run"
APPLIED = "applied"
FAILED = "failed"
REJECTED = "rejected"

DRY_RUN_RESPONSE = "(dry run: not sent)"


@dataclass
class RewriteResult:
    """Outcome of one page rewrite.

    ``rewritten_content`` is always set; for every status other than
    ``applied`` it is the original content, byte for byte.
    """

    success: bool
    rewritten_content: str
    texts_rewritten: int
    texts_total: int
    status: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    log_path: str | None = None


@dataclass
class PageRewriteProgress:
    """Progress update yielded by :func:`rewrite_page_iter`."""

    phase: str          # "extracted" | "batch" | "validated" | "done"
    page_title: str
    texts_total: int = 0
    texts_rewritten: int = 0
    batch: int = 0      # 1-based, set when phase == "batch"
    total_batches: int = 0
    message: str = ""
    result: RewriteResult | None = None  # set only when phase == "done"


# ── Page orchestrator ──────────────────────────────────────────────


def rewrite_page_iter(
    content: str,
    *,
    niche: str,
    page_title: str = "",
    page_id: int | None = None,
    settings: RewriteSettings | None = None,
    generate=None,
) -> Iterator[PageRewriteProgress]:
    """Rewrite one page, yielding progress after each step.

    Parameters
    ----------
    content : str
        The page's markup.
    niche : str
        Business niche the copy should be tailored to.
    page_title : str
        Used in the instruction prompt and the audit log.
    page_id : int, optional
        Content repository id, recorded in the audit log.
    settings : RewriteSettings, optional
        Defaults to ``RewriteSettings.from_config()``.
    generate : callable, optional
        ``(system_prompt, user_content) -> str``.  Built from
        *settings* with :func:`get_text_generator` when omitted, and
        only once the page actually needs the service.

    Yields
    ------
    PageRewriteProgress
        ``extracted``, one ``batch`` per batch sent, ``validated``,
        and a final ``done`` carrying the :class:`RewriteResult`.

    Raises
    ------
    ConfigurationError
        If no *generate* was given and the service credentials are
        missing.  Raised before any request is made.
    """
    settings = settings or RewriteSettings.from_config()
    t0 = time.time()

    segments = tokenize(content)
    extraction = extract_texts(segments)
    texts = extraction.texts
    total = len(texts)
    exchanges: list[BatchExchange] = []

    def finish(result: RewriteResult, validation_errors: list[str] | None = None):
        if settings.audit_log:
            result.log_path = log_page_rewrite(
                page_title=page_title,
                page_id=page_id,
                niche=niche,
                provider=settings.provider,
                model=settings.model,
                status=result.status,
                texts_rewritten=result.texts_rewritten,
                texts_total=result.texts_total,
                decisions=extraction.decisions,
                exchanges=exchanges,
                validation_errors=validation_errors,
                errors=result.errors,
                elapsed_seconds=time.time() - t0,
                config=settings.as_config(),
                logs_dir=settings.logs_dir,
            )
        return PageRewriteProgress(
            phase="done",
            page_title=page_title,
            texts_total=result.texts_total,
            texts_rewritten=result.texts_rewritten,
            message=result.status,
            result=result,
        )

    yield PageRewriteProgress(
        phase="extracted",
        page_title=page_title,
        texts_total=total,
        message=f"{total} text(s) eligible for rewriting",
    )

    if total == 0:
        logger.info(f"'{page_title}': no rewritable text found, skipping")
        yield finish(RewriteResult(
            success=True, rewritten_content=content,
            texts_rewritten=0, texts_total=0, status=SKIPPED,
        ))
        return

    batches = chunk_texts(texts, settings.batch_size)
    system_prompt = build_system_prompt(niche, page_title)

    if settings.dry_run:
        for i, batch in enumerate(batches, 1):
            user_prompt = build_user_message(batch, niche)
            logger.info(
                f"[dry run] '{page_title}' batch {i}/{len(batches)} "
                f"would send {len(batch)} text(s):\n{user_prompt}"
            )
            exchanges.append(BatchExchange(
                index=i, total=len(batches), system_prompt=system_prompt,
                user_prompt=user_prompt, response=DRY_RUN_RESPONSE,
            ))
        yield finish(RewriteResult(
            success=True, rewritten_content=content,
            texts_rewritten=0, texts_total=total, status=DRY_RUN,
        ))
        return

    if generate is None:
        generate = get_text_generator(settings)

    rewrite_map: dict[int, str] = {}
    errors: list[str] = []
    warnings: list[str] = []

    for i, batch in enumerate(batches, 1):
        user_prompt = build_user_message(batch, niche)
        exchange = BatchExchange(
            index=i, total=len(batches),
            system_prompt=system_prompt, user_prompt=user_prompt,
        )
        exchanges.append(exchange)
        logger.info(
            f"'{page_title}': sending batch {i}/{len(batches)} ({len(batch)} text(s))"
        )

        try:
            response = generate(system_prompt, user_prompt)
        except Exception as exc:
            message = f"Batch {i}/{len(batches)} failed: {exc}"
            logger.error(f"'{page_title}': {message}")
            exchange.error = str(exc)
            errors.append(message)
        else:
            exchange.response = response
            batch_ids = {t.id: t.context for t in batch}
            parsed = {
                text_id: value
                for text_id, value in parse_response(response, batch_ids).items()
                if text_id in batch_ids
            }
            exchange.parsed = len(parsed)
            rewrite_map.update(parsed)
            missing = len(batch) - len(parsed)
            if missing:
                warnings.append(
                    f"Batch {i}/{len(batches)}: {missing} text(s) missing from response"
                )

        yield PageRewriteProgress(
            phase="batch",
            page_title=page_title,
            texts_total=total,
            texts_rewritten=len(rewrite_map),
            batch=i,
            total_batches=len(batches),
            message=exchange.error or f"{exchange.parsed}/{len(batch)} rewritten",
        )

    for text_id in unapplied_embedded_ids(segments, rewrite_map, extraction.embedded):
        del rewrite_map[text_id]
        warnings.append(f"Embedded text {text_id} could not be written back; kept original")

    if not rewrite_map:
        if not errors:
            errors.append("Text service returned no usable rewrites")
        logger.warning(f"'{page_title}': nothing rewritten, keeping original content")
        yield finish(RewriteResult(
            success=False, rewritten_content=content,
            texts_rewritten=0, texts_total=total, status=FAILED,
            errors=errors, warnings=warnings,
        ))
        return

    rewritten = reassemble(segments, rewrite_map, extraction.embedded)
    validation = validate(
        expected_segments(segments, rewrite_map, extraction.embedded), rewritten
    )

    yield PageRewriteProgress(
        phase="validated",
        page_title=page_title,
        texts_total=total,
        texts_rewritten=len(rewrite_map),
        message="structure preserved" if validation.valid
        else f"{len(validation.errors)} structural problem(s)",
    )

    if not validation.valid:
        for err in validation.errors:
            logger.warning(f"'{page_title}': validation: {err}")
        if settings.validation_policy == "strict":
            yield finish(RewriteResult(
                success=False, rewritten_content=content,
                texts_rewritten=len(rewrite_map), texts_total=total,
                status=REJECTED, errors=errors + validation.errors,
                warnings=warnings,
            ), validation.errors)
            return
        warnings.extend(validation.errors)

    logger.info(f"'{page_title}': rewrote {len(rewrite_map)}/{total} text(s)")
    yield finish(RewriteResult(
        success=True, rewritten_content=rewritten,
        texts_rewritten=len(rewrite_map), texts_total=total,
        status=APPLIED, errors=errors, warnings=warnings,
    ), validation.errors)


def rewrite_page(content: str, **kwargs) -> RewriteResult:
    """Like :func:`rewrite_page_iter`, but only returns the final result."""
    result = None
    for event in rewrite_page_iter(content, **kwargs):
        if event.phase == "done":
            result = event.result
    return result


# ── Site driver ────────────────────────────────────────────────────


@dataclass
class PageOutcome:
    page_id: int
    title: str
    status: str
    result: RewriteResult | None = None
    error: str | None = None


@dataclass
class SiteRewriteSummary:
    pages_processed: int = 0
    pages_skipped: int = 0
    pages_failed: int = 0
    outcomes: list[PageOutcome] = field(default_factory=list)


@dataclass
class SiteRewriteProgress:
    """Progress update yielded by :func:`rewrite_site_iter`."""

    phase: str          # "discovered" | "page" | "done"
    step: int           # 1-based index of the current page
    total: int
    page_title: str = ""
    message: str = ""
    outcome: PageOutcome | None = None
    summary: SiteRewriteSummary | None = None  # set only when phase == "done"


def _order_pages(pages: list[Page], homepage_id: int | None) -> list[Page]:
    """Homepage first, everything else in discovery order."""
    if homepage_id is None:
        return list(pages)
    return sorted(pages, key=lambda p: p.id != homepage_id)


def rewrite_site_iter(
    repo: WordPressRepository,
    niche: str,
    *,
    settings: RewriteSettings | None = None,
    generate=None,
    page_ids: list[int] | None = None,
) -> Iterator[SiteRewriteProgress]:
    """Rewrite every published page of a site, one page at a time.

    Pages with less than ``settings.min_page_chars`` of content are
    skipped.  Only ``applied`` rewrites that changed something are
    written back; one page failing never stops the next.

    Yields
    ------
    SiteRewriteProgress
        ``discovered``, one ``page`` per page, and a final ``done``
        carrying the :class:`SiteRewriteSummary`.
    """
    settings = settings or RewriteSettings.from_config()

    pages = repo.discover_pages()
    try:
        homepage_id = repo.get_homepage_id()
    except WpCliError as exc:
        logger.warning(f"Could not read the front page setting: {exc}")
        homepage_id = None
    pages = _order_pages(pages, homepage_id)
    if page_ids:
        pages = [p for p in pages if p.id in page_ids]

    summary = SiteRewriteSummary()
    yield SiteRewriteProgress(
        phase="discovered", step=0, total=len(pages),
        message=f"{len(pages)} page(s) to rewrite",
    )

    if pages and generate is None and not settings.dry_run:
        generate = get_text_generator(settings)

    for i, page in enumerate(pages, 1):
        if len(page.content.strip()) < settings.min_page_chars:
            logger.info(f"Skipping '{page.title}': insufficient content")
            outcome = PageOutcome(page.id, page.title, SKIPPED)
        else:
            result = rewrite_page(
                page.content,
                niche=niche,
                page_title=page.title,
                page_id=page.id,
                settings=settings,
                generate=generate,
            )
            outcome = PageOutcome(page.id, page.title, result.status, result=result)
            if result.status == APPLIED and result.rewritten_content != page.content:
                try:
                    repo.update_page_content(page.id, result.rewritten_content)
                except WpCliError as exc:
                    logger.error(f"Failed to save '{page.title}': {exc}")
                    outcome.status = FAILED
                    outcome.error = str(exc)

        if outcome.status in (APPLIED, DRY_RUN):
            summary.pages_processed += 1
        elif outcome.status == SKIPPED:
            summary.pages_skipped += 1
        else:
            summary.pages_failed += 1
        summary.outcomes.append(outcome)

        yield SiteRewriteProgress(
            phase="page", step=i, total=len(pages),
            page_title=page.title, message=outcome.status, outcome=outcome,
        )

    logger.info(
        f"Site rewrite finished: {summary.pages_processed} processed, "
        f"{summary.pages_skipped} skipped, {summary.pages_failed} failed"
    )
    yield SiteRewriteProgress(
        phase="done", step=len(pages), total=len(pages), summary=summary,
    )


def rewrite_site(repo: WordPressRepository, niche: str, **kwargs) -> SiteRewriteSummary:
    """Like :func:`rewrite_site_iter`, but only returns the summary."""
    summary = None
    for event in rewrite_site_iter(repo, niche, **kwargs):
        if event.phase == "done":
            summary = event.summary
    return summary


# ── CLI entry point ─────────────────────────────────────────────────


def _print_summary(summary: SiteRewriteSummary) -> None:
    table = Table(title="Rewrite summary", border_style="grey39", header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Page", style="cyan")
    table.add_column("Status")
    table.add_column("Texts", justify="right")
    table.add_column("Notes", style="grey70")
    colours = {APPLIED: "green", DRY_RUN: "blue", SKIPPED: "yellow"}
    for o in summary.outcomes:
        texts = f"{o.result.texts_rewritten}/{o.result.texts_total}" if o.result else "-"
        notes = o.error or ""
        if o.result and not notes:
            notes = "; ".join((o.result.errors or o.result.warnings)[:2])
        colour = colours.get(o.status, "red")
        table.add_row(str(o.page_id), o.title, f"[{colour}]{o.status}[/{colour}]", texts, notes)
    console.print(table)
    console.print(
        f"[bold]{summary.pages_processed}[/bold] processed, "
        f"[bold]{summary.pages_skipped}[/bold] skipped, "
        f"[bold]{summary.pages_failed}[/bold] failed"
    )


def _rewrite_html_file(path: str, niche: str, settings: RewriteSettings) -> int:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"HTML file not found: {path}")
    with open(path, encoding="utf-8") as fh:
        content = fh.read()

    title = os.path.splitext(os.path.basename(path))[0]
    result = rewrite_page(content, niche=niche, page_title=title, settings=settings)

    console.print(
        f"{title}: [bold]{result.status}[/bold] "
        f"({result.texts_rewritten}/{result.texts_total} texts)"
    )
    for message in result.errors + result.warnings:
        console.print(f"  [grey70]- {message}[/grey70]")

    if result.status == APPLIED:
        out_path = os.path.join(
            os.path.dirname(os.path.abspath(path)), f"{title}_rewritten.html"
        )
        with open(out_path, "w", encoding="utf-8") as fh:
            fh.write(result.rewritten_content)
        console.print(f"✅ Written to: {out_path}")
    return 0 if result.success else 1


def main() -> None:
    """Parse CLI arguments and run the rewriter."""
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )

    parser = argparse.ArgumentParser(
        description="Rewrite page copy for a niche without touching the markup",
    )
    parser.add_argument(
        "site_path",
        nargs="?",
        help="WordPress installation directory",
    )
    parser.add_argument(
        "--niche",
        required=True,
        help='Business niche to tailor the copy to, e.g. "family dentist"',
    )
    parser.add_argument(
        "--html-file",
        default=None,
        help="Rewrite a single local file instead of a site",
    )
    parser.add_argument(
        "--page-id",
        type=int,
        action="append",
        default=None,
        help="Only rewrite this page (repeatable)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Extract and log what would be sent; change nothing",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject any rewrite that fails structural validation",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Texts per request (default: config.txt)",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="Text service provider (default: config.txt)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model name (default: config.txt)",
    )
    args = parser.parse_args()

    if not args.site_path and not args.html_file:
        parser.error("either SITE_PATH or --html-file is required")

    settings = RewriteSettings.from_config(
        CFG,
        dry_run=True if args.dry_run else None,
        validation_policy="strict" if args.strict else None,
        batch_size=args.batch_size,
        provider=args.provider,
        model=args.model,
    )
    print_config()

    try:
        if args.html_file:
            sys.exit(_rewrite_html_file(args.html_file, args.niche, settings))

        repo = WordPressRepository(
            args.site_path,
            wp_cli_path=str(CFG.get("wp_cli_path", "wp")),
            php_path=str(CFG.get("php_path", "")) or None,
        )
        summary = None
        for event in rewrite_site_iter(
            repo, args.niche, settings=settings, page_ids=args.page_id
        ):
            if event.phase == "page":
                console.print(f"[{event.step}/{event.total}] {event.page_title}: {event.message}")
            elif event.phase == "done":
                summary = event.summary
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        sys.exit(2)
    except WpCliError as exc:
        console.print(f"[bold red]WP-CLI error:[/bold red] {exc}")
        sys.exit(2)

    _print_summary(summary)
    sys.exit(1 if summary.pages_failed else 0)


if __name__ == "__main__":
    main()
