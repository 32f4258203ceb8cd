"""Clients for the text-generation service.

Every client is a callable ``(system_prompt, user_content) -> str``
so the rewriter does not care which backend produced the text.

Supported providers (set ``llm_provider`` in config.txt):

* **huggingface**: Hugging Face router, OpenAI-compatible chat
  completions over plain HTTP (default; requires ``HF_API_TOKEN``)
* **ollama**: local Ollama server via LangChain (no API key needed)
* **openai**: OpenAI API via LangChain (requires ``OPENAI_API_KEY``)
* **anthropic**: Anthropic API via LangChain (requires ``ANTHROPIC_API_KEY``)
* **google**: Google Gemini API via LangChain (requires ``GOOGLE_API_KEY``)

API keys are loaded from a ``.env`` file at the project root via
python-dotenv (see :mod:`src.config`).

Usage (programmatic)::

    from src.config import RewriteSettings
    from src.generation.llm import get_text_generator

    generate = get_text_generator(RewriteSettings.from_config())
    text = generate("You are ...", "[1] (heading) Old headline")
"""

import logging
import os

import requests
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_ollama import ChatOllama
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.config import PROVIDER_DEFAULTS, RewriteSettings

logger = logging.getLogger(__name__)

HF_TOKEN_ENV = "HF_API_TOKEN"
HTTP_PROVIDERS = ("huggingface",)
REQUEST_TIMEOUT = 120  # seconds
RETRY_TOTAL = 3
RETRY_BACKOFF_FACTOR = 2  # sleeps 2s, 4s, 8s between retries
RETRY_STATUS_FORCELIST = [429, 502, 503, 504]


class ConfigurationError(ValueError):
    """Raised before any request when credentials or settings are missing."""


class TextGenerationError(RuntimeError):
    """The service failed or answered with something unusable."""


def get_api_token(env_var: str = HF_TOKEN_ENV) -> str:
    """Return the bearer token from the environment.

    Raises
    ------
    ConfigurationError
        If the variable is unset or blank.
    """
    token = os.environ.get(env_var, "").strip()
    if not token:
        raise ConfigurationError(
            f"{env_var} environment variable is not set. Add it to your .env file."
        )
    return token


# ── Plain HTTP chat completions ────────────────────────────────────


def get_session() -> requests.Session:
    """Build a requests Session with retry and exponential backoff."""
    session = requests.Session()
    retry = Retry(
        total=RETRY_TOTAL,
        backoff_factor=RETRY_BACKOFF_FACTOR,
        status_forcelist=RETRY_STATUS_FORCELIST,
        allowed_methods=["POST"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class ChatCompletionClient:
    """Synchronous client for an OpenAI-compatible chat-completions URL."""

    def __init__(
        self,
        base_url: str,
        model: str,
        token: str,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url
        self.model = model
        self.token = token
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.session = session or get_session()

    def build_payload(self, system_prompt: str, user_content: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def __call__(self, system_prompt: str, user_content: str) -> str:
        """Send one request and return ``choices[0].message.content``.

        Raises
        ------
        TextGenerationError
            On network errors, non-2xx responses, invalid JSON or a
            missing/empty first choice.
        """
        try:
            response = self.session.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                },
                json=self.build_payload(system_prompt, user_content),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise TextGenerationError(f"Request to {self.base_url} failed: {exc}") from exc

        if not response.ok:
            raise TextGenerationError(
                f"Text service error ({response.status_code}): {response.text[:500]}"
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise TextGenerationError("Text service returned invalid JSON") from exc

        choices = result.get("choices") if isinstance(result, dict) else None
        if choices:
            message = choices[0].get("message") or {}
            content = (message.get("content") or "").strip()
            if content:
                return content

        raise TextGenerationError("Unexpected text service response format")


# ── LangChain chat models ──────────────────────────────────────────


def get_llm(
    model: str,
    temperature: float,
    provider: str,
):
    """Create a LangChain chat model for the given provider.

    Parameters
    ----------
    model : str
        Model name/tag for the chosen provider.
    temperature : float
        Sampling temperature.
    provider : str
        One of ``"ollama"``, ``"openai"``, ``"anthropic"``,
        ``"google"``.

    Returns
    -------
    BaseChatModel
        A LangChain chat model instance.

    Raises
    ------
    ValueError
        If *provider* is not recognised.
    ImportError
        If the required provider package is not installed.
    """
    provider = provider.lower().strip()
    logger.info(
        f"Initialising LLM: provider={provider}, model={model}, temp={temperature}"
    )

    if provider == "ollama":
        return ChatOllama(model=model, temperature=temperature)

    if provider == "openai":
        try:
            from langchain_openai import ChatOpenAI
        except ImportError:
            raise ImportError(
                "langchain-openai is required for the openai provider.\n"
                "  Run: pip install langchain-openai"
            )
        return ChatOpenAI(model=model, temperature=temperature)

    if provider == "anthropic":
        try:
            from langchain_anthropic import ChatAnthropic
        except ImportError:
            raise ImportError(
                "langchain-anthropic is required for the anthropic provider.\n"
                "  Run: pip install langchain-anthropic"
            )
        return ChatAnthropic(model=model, temperature=temperature)

    if provider == "google":
        try:
            from langchain_google_genai import ChatGoogleGenerativeAI
        except ImportError:
            raise ImportError(
                "langchain-google-genai is required for the google provider.\n"
                "  Run: pip install langchain-google-genai"
            )
        return ChatGoogleGenerativeAI(model=model, temperature=temperature)

    raise ValueError(
        f"Unknown llm_provider '{provider}'. Supported: {', '.join(PROVIDER_DEFAULTS)}"
    )


def message_text(response) -> str:
    """Flatten a chat model response into a stripped string.

    LangChain chat models return AIMessage; plain strings from some
    wrappers.  Anthropic models may return a list of content blocks
    rather than a plain string.
    """
    if hasattr(response, "content"):
        content = response.content
        if isinstance(content, list):
            content = "\n".join(
                block.get("text", str(block))
                if isinstance(block, dict)
                else str(block)
                for block in content
            )
        return content.strip()
    return str(response).strip()


class LangChainGenerator:
    """Adapter turning a LangChain chat model into a text generator."""

    def __init__(self, llm):
        self.llm = llm

    def __call__(self, system_prompt: str, user_content: str) -> str:
        try:
            response = self.llm.invoke([
                SystemMessage(content=system_prompt),
                HumanMessage(content=user_content),
            ])
        except Exception as exc:
            raise TextGenerationError(f"LLM call failed: {exc}") from exc
        text = message_text(response)
        if not text:
            raise TextGenerationError("LLM returned an empty response")
        return text


def get_text_generator(settings: RewriteSettings):
    """Return the text generator for ``settings.provider``.

    Raises
    ------
    ConfigurationError
        If the provider needs a token that is not set.
    ValueError
        If the provider is not recognised.
    """
    provider = settings.provider.lower().strip()
    if provider in HTTP_PROVIDERS:
        return ChatCompletionClient(
            base_url=settings.base_url,
            model=settings.model,
            token=get_api_token(),
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
    llm = get_llm(
        model=settings.model, temperature=settings.temperature, provider=provider
    )
    return LangChainGenerator(llm)
