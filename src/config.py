"""Load rewriter settings from config.txt.

Reads a simple ``key = value`` text file from the project root.
Blank lines and lines starting with ``#`` are ignored.
Integer-looking values are cast to ``int``, decimal values to
``float`` and true/false words to ``bool`` automatically.

Usage::

    from src.config import CFG, RewriteSettings

    batch_size = CFG["batch_size"]              # int
    settings   = RewriteSettings.from_config()  # explicit value for the pipeline

If config.txt is missing, sensible defaults are used so the rest of
the pipeline still works.  Secrets (``HF_API_TOKEN``, provider API
keys) are never read from config.txt; they come from ``.env``.
"""

import logging
import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

logger = logging.getLogger(__name__)

# ── Load .env (HF_API_TOKEN, OPENAI_API_KEY, etc.) ─────────────────
load_dotenv()  # reads .env from project root, if present

_console = Console()

# ── Defaults ───────────────────────────────────────────────────────
DEFAULTS: dict[str, str | int | float | bool] = {
    "llm_provider": "huggingface",
    "llm_model": "mistralai/Mistral-7B-Instruct-v0.2",
    "llm_base_url": "https://router.huggingface.co/together/v1/chat/completions",
    "temperature": 0.7,
    "max_tokens": 4096,
    "batch_size": 30,
    "validation_policy": "warn",
    "min_page_chars": 50,
    "dry_run": False,
    "audit_log": True,
    "logs_dir": "logs",
    "wp_cli_path": "wp",
    "php_path": "",
}

# ── Provider → default model mapping ───────────────────────────────
PROVIDER_DEFAULTS: dict[str, str] = {
    "huggingface": "mistralai/Mistral-7B-Instruct-v0.2",
    "ollama": "llama3.2:3b",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.0-flash",
}

CONFIG_PATH = os.path.join(os.path.dirname(__file__), os.pardir, "config.txt")

VALIDATION_POLICIES = ("warn", "strict")

# Values recognised as boolean true / false (case-insensitive).
_BOOL_TRUE = frozenset({"true", "yes", "on"})
_BOOL_FALSE = frozenset({"false", "no", "off"})


def _cast_value(value: str) -> str | int | float | bool:
    """Cast a raw config string to bool, int or float where it looks like one."""
    lowered = value.lower()
    if lowered in _BOOL_TRUE:
        return True
    if lowered in _BOOL_FALSE:
        return False
    if value.isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def load_config(path: str = CONFIG_PATH) -> dict[str, str | int | float | bool]:
    """Parse *path* and return a merged dict of defaults + overrides.

    File format (one pair per line)::

        # comment
        batch_size = 20
        llm_provider = ollama
        temperature = 0.5
        dry_run = true

    Boolean values are recognised as true/yes/on and false/no/off
    (case-insensitive).  ``0`` and ``1`` stay integers so numeric
    keys such as ``min_page_chars`` can be set to them.

    Returns
    -------
    dict[str, str | int | float | bool]
        Merged configuration.  Keys not present in the file keep
        their default values.
    """
    cfg: dict[str, str | int | float | bool] = dict(DEFAULTS)

    resolved = os.path.normpath(path)
    if not os.path.isfile(resolved):
        logger.warning(
            f"Config file not found at {resolved}, using defaults"
        )
        return cfg

    with open(resolved, encoding="utf-8") as fh:
        for lineno, raw_line in enumerate(fh, start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                logger.warning(
                    f"config.txt:{lineno}: skipping malformed line: {line!r}"
                )
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.split(" #", 1)[0].strip()
            cfg[key] = _cast_value(value)

    logger.info(f"Loaded config from {resolved}: {cfg}")
    return cfg


# Module-level singleton, imported everywhere as ``from src.config import CFG``
CFG: dict[str, str | int | float | bool] = load_config()


def print_config(cfg: dict[str, str | int | float | bool] | None = None) -> None:
    """Pretty-print the active configuration using a rich table."""
    cfg = cfg if cfg is not None else CFG
    table = Table(
        title="config.txt",
        title_style="bold yellow",
        border_style="yellow",
        show_header=True,
        header_style="bold",
        padding=(0, 2),
    )
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white bold")
    for key, value in cfg.items():
        table.add_row(str(key), str(value))
    _console.print(table)


def config_as_text(cfg: dict[str, str | int | float | bool] | None = None) -> str:
    """Return the active configuration as a plain-text block for log files."""
    cfg = cfg if cfg is not None else CFG
    lines = [f"{k} = {v}" for k, v in cfg.items()]
    return "\n".join(lines)


# ── Explicit settings for the rewrite pipeline ─────────────────────


@dataclass(frozen=True)
class RewriteSettings:
    """Everything one rewrite run needs, passed in at call time.

    The pipeline never reads :data:`CFG` itself; callers build a
    settings value (usually via :meth:`from_config`) and hand it to
    :func:`src.generation.rewriter.rewrite_page`.
    """

    provider: str = str(DEFAULTS["llm_provider"])
    model: str = str(DEFAULTS["llm_model"])
    base_url: str = str(DEFAULTS["llm_base_url"])
    temperature: float = float(DEFAULTS["temperature"])
    max_tokens: int = int(DEFAULTS["max_tokens"])
    batch_size: int = int(DEFAULTS["batch_size"])
    validation_policy: str = str(DEFAULTS["validation_policy"])
    min_page_chars: int = int(DEFAULTS["min_page_chars"])
    dry_run: bool = bool(DEFAULTS["dry_run"])
    audit_log: bool = bool(DEFAULTS["audit_log"])
    logs_dir: str = str(DEFAULTS["logs_dir"])

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.validation_policy not in VALIDATION_POLICIES:
            raise ValueError(
                f"Unknown validation_policy '{self.validation_policy}'. "
                f"Supported: {', '.join(VALIDATION_POLICIES)}"
            )

    @classmethod
    def from_config(
        cls,
        cfg: dict[str, str | int | float | bool] | None = None,
        **overrides,
    ) -> "RewriteSettings":
        """Build settings from a config dict, then apply *overrides*.

        ``None`` overrides are ignored so CLI flags that were not
        given fall through to the config file.  Switching ``provider``
        without a ``model`` picks that provider's default model from
        :data:`PROVIDER_DEFAULTS`.
        """
        cfg = cfg if cfg is not None else CFG
        settings = cls(
            provider=str(cfg.get("llm_provider", DEFAULTS["llm_provider"])),
            model=str(cfg.get("llm_model", DEFAULTS["llm_model"])),
            base_url=str(cfg.get("llm_base_url", DEFAULTS["llm_base_url"])),
            temperature=float(cfg.get("temperature", DEFAULTS["temperature"])),
            max_tokens=int(cfg.get("max_tokens", DEFAULTS["max_tokens"])),
            batch_size=int(cfg.get("batch_size", DEFAULTS["batch_size"])),
            validation_policy=str(
                cfg.get("validation_policy", DEFAULTS["validation_policy"])
            ),
            min_page_chars=int(cfg.get("min_page_chars", DEFAULTS["min_page_chars"])),
            dry_run=bool(cfg.get("dry_run", DEFAULTS["dry_run"])),
            audit_log=bool(cfg.get("audit_log", DEFAULTS["audit_log"])),
            logs_dir=str(cfg.get("logs_dir", DEFAULTS["logs_dir"])),
        )
        overrides = {k: v for k, v in overrides.items() if v is not None}
        provider = overrides.get("provider")
        if provider is not None and "model" not in overrides:
            provider = provider.lower().strip()
            if provider != settings.provider.lower().strip():
                overrides["model"] = PROVIDER_DEFAULTS.get(provider, settings.model)
        return replace(settings, **overrides) if overrides else settings

    def as_config(self) -> dict[str, str | int | float | bool]:
        """The settings under their config.txt key names, for log files."""
        return {
            "llm_provider": self.provider,
            "llm_model": self.model,
            "llm_base_url": self.base_url,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "batch_size": self.batch_size,
            "validation_policy": self.validation_policy,
            "min_page_chars": self.min_page_chars,
            "dry_run": self.dry_run,
            "audit_log": self.audit_log,
            "logs_dir": self.logs_dir,
        }
