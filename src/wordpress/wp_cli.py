"""Read and write WordPress page content through WP-CLI.

Usage (programmatic)::

    from src.wordpress.wp_cli import WordPressRepository

    repo = WordPressRepository("/var/www/site")
    for page in repo.discover_pages():
        print(page.id, page.title, len(page.content))

Page content is always passed to WP-CLI on stdin, never as a command
line argument, so nothing in a page can be interpreted by a shell or
by WP-CLI's argument parser.
"""

import json
import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WP_CLI_TIMEOUT = 120  # seconds
PHP_MEMORY_LIMIT = "512M"


class WpCliError(RuntimeError):
    """A WP-CLI command exited non-zero or could not be started."""


@dataclass
class Page:
    id: int
    title: str
    content: str


class WordPressRepository:
    """Content repository backed by WP-CLI for one site directory."""

    def __init__(
        self,
        site_path: str,
        wp_cli_path: str = "wp",
        php_path: str | None = None,
        timeout: int = WP_CLI_TIMEOUT,
    ):
        self.site_path = site_path
        self.wp_cli_path = wp_cli_path
        self.php_path = php_path or None
        self.timeout = timeout

    def _command(self, args: list[str]) -> list[str]:
        prefix = [self.wp_cli_path]
        if self.php_path:
            prefix = [self.php_path, "-d", f"memory_limit={PHP_MEMORY_LIMIT}", self.wp_cli_path]
        return [*prefix, *args, f"--path={self.site_path}"]

    def run(self, args: list[str], stdin: str | None = None) -> str:
        """Run one WP-CLI command and return its stdout.

        Raises
        ------
        WpCliError
            If WP-CLI cannot be started, times out, or exits non-zero.
        """
        command = self._command(args)
        logger.debug(f"Executing WP-CLI: {' '.join(command)} (stdin={stdin is not None})")
        try:
            result = subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                text=True,
                cwd=self.site_path,
                timeout=self.timeout,
                shell=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise WpCliError(f"wp {' '.join(args)} failed: {exc}") from exc

        if result.returncode != 0:
            raise WpCliError(
                f"wp {' '.join(args)} exited with {result.returncode}: "
                f"{result.stderr.strip()}"
            )
        return result.stdout

    def discover_pages(self) -> list[Page]:
        """Return every published page with its content.

        Pages whose content cannot be fetched are logged and skipped.
        """
        logger.info(f"Discovering published pages in {self.site_path}")
        listing = self.run([
            "post", "list",
            "--post_type=page",
            "--post_status=publish",
            "--format=json",
            "--fields=ID,post_title",
        ])
        rows = json.loads(listing or "[]")
        logger.info(f"Found {len(rows)} published page(s)")

        pages: list[Page] = []
        for row in rows:
            page_id = int(row["ID"])
            try:
                content = self.run(["post", "get", str(page_id), "--field=post_content"])
            except WpCliError as exc:
                logger.warning(f"Failed to fetch content for page {page_id}: {exc}")
                continue
            # WP-CLI terminates field output with a newline of its own.
            if content.endswith("\n"):
                content = content[:-1]
            pages.append(Page(id=page_id, title=row.get("post_title", ""), content=content))
        return pages

    def get_homepage_id(self) -> int | None:
        """Id of the static front page, or ``None`` if the site shows posts."""
        show_on_front = self.run(["option", "get", "show_on_front"]).strip()
        if show_on_front != "page":
            return None
        value = self.run(["option", "get", "page_on_front"]).strip()
        return int(value) if value.isdigit() and int(value) > 0 else None

    def update_page_content(self, page_id: int, content: str) -> None:
        """Replace a page's ``post_content``; the content goes in on stdin.

        The positional ``-`` makes WP-CLI read the content from stdin
        (``--post_content=-`` would store a literal dash).
        """
        self.run(["post", "update", str(page_id), "-"], stdin=content)
        logger.info(f"Updated content of page {page_id}")
