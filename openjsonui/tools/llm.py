"""
Language model access via LangChain.

Agents treat the model as optional: :func:`get_llm` returns ``None`` when no
credentials are configured and every agent then falls back to its keyword
behaviour.  Three credential setups are recognised, checked in order:

1. Azure OpenAI with Entra ID client credentials
   (``AZURE_TENANT_ID``/``AZURE_CLIENT_ID``/``AZURE_CLIENT_SECRET``),
2. Azure OpenAI with ``AZURE_OPENAI_API_KEY``,
3. OpenAI with ``OPENAI_API_KEY``.

Azure also needs ``AZURE_OPENAI_API_BASE``, ``AZURE_OPENAI_API_VERSION`` and a
deployment (the caller's ``model_name`` or ``AZURE_OPENAI_DEPLOYMENT_NAME``).
Requests and responses are logged and traced.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from .langfuse_tracing import end_span, start_span

try:
    # Only needed for Entra ID client-credential auth.
    from azure.identity import ClientSecretCredential  # type: ignore
except ImportError:  # pragma: no cover
    ClientSecretCredential = None  # type: ignore

logger = logging.getLogger("openjsonui.llm")

# One chat model per model/deployment name.
_cached_llms: Dict[str, Any] = {}


def _azure_token_provider(scope: str) -> Any:
    if ClientSecretCredential is None:
        raise RuntimeError(
            "Azure Entra ID auth requested but azure-identity isn't installed. "
            "Install `azure-identity` or use AZURE_OPENAI_API_KEY instead."
        )
    credential = ClientSecretCredential(
        tenant_id=os.environ["AZURE_TENANT_ID"],
        client_id=os.environ["AZURE_CLIENT_ID"],
        client_secret=os.environ["AZURE_CLIENT_SECRET"],
    )

    def token_provider() -> str:
        return credential.get_token(scope).token

    return token_provider


def _azure_auth() -> Optional[Dict[str, Any]]:
    """Credential kwargs for AzureChatOpenAI, or None when Azure isn't set up."""
    if all(os.getenv(k) for k in ("AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET")):
        scope = os.getenv("AZURE_OPENAI_SCOPE", "https://cognitiveservices.azure.com/.default")
        return {"azure_ad_token_provider": _azure_token_provider(scope)}
    if os.getenv("AZURE_OPENAI_API_KEY"):
        return {"api_key": os.getenv("AZURE_OPENAI_API_KEY")}
    return None


def _build_llm(model_name: Optional[str]) -> Any:
    base = os.getenv("AZURE_OPENAI_API_BASE")
    version = os.getenv("AZURE_OPENAI_API_VERSION")
    deployment = model_name or os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME")
    if base and version and deployment:
        auth = _azure_auth()
        if auth is not None:
            mode = "Entra ID" if "azure_ad_token_provider" in auth else "API key"
            logger.info(f"Using Azure OpenAI deployment {deployment} ({mode})")
            return AzureChatOpenAI(
                azure_endpoint=base, azure_deployment=deployment, api_version=version, temperature=0, **auth
            )

    api_key = os.getenv("OPENAI_API_KEY")
    if api_key:
        logger.info(f"Using OpenAI model {model_name or 'default'}")
        options: Dict[str, Any] = {"api_key": api_key, "temperature": 0}
        if model_name:
            options["model"] = model_name
        return ChatOpenAI(**options)
    return None


def get_llm(model_name: Optional[str] = None) -> Any:
    """Return a cached chat model, or ``None`` when no credentials are set."""
    key = model_name or "__default__"
    if key not in _cached_llms:
        llm = _build_llm(model_name)
        if llm is None:
            logger.debug("No model credentials configured; agents use keyword fallbacks")
            return None
        _cached_llms[key] = llm
    return _cached_llms[key]


def ask_llm(
    prompt: str,
    *,
    model_name: Optional[str] = None,
    system_prompt: Optional[str] = None,
) -> str:
    """Send one prompt (with an optional system prompt) and return the text.

    Raises:
        RuntimeError: no language model is configured.
    """
    llm = get_llm(model_name)
    if llm is None:
        raise RuntimeError("No language model configured.  Set the appropriate environment variables.")

    messages: list = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    messages.append(HumanMessage(content=prompt))

    span = start_span(name="llm", input={"prompt": prompt}, metadata={"kind": "llm", "model": model_name})
    logger.info(f"LLM request (model={model_name}): {prompt}")
    try:
        response = llm.invoke(messages)
    except Exception as e:
        logger.exception("Error during LLM request")
        end_span(span, error=str(e))
        raise
    answer = response.content if hasattr(response, "content") else str(response)
    logger.info(f"LLM response: {answer}")
    end_span(span, output=answer)
    return answer
