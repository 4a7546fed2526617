# utils/local_llm_connector.py
import asyncio
import json
import time # For retry delay
from typing import List, Dict, Any, Optional
import requests
import config
from connectors.base_llm_connector import BaseTextGenerator
from utils.logger import log


class LLMConnectorError(RuntimeError):
    pass


def call_local_llm_api(
    prompt_messages: List[Dict[str, str]],
    model_name: Optional[str] = None,
    **kwargs: Any
) -> str:
    """
    Calls a local LLM chat API (e.g., Ollama) and returns the response content.

    Args:
        prompt_messages: A list of message dictionaries, e.g.,
                         [{"role": "system", "content": "..."},
                          {"role": "user", "content": "What is the CELO rate?"}]
        model_name: The model to use. If None, uses LOCAL_LLM_DEFAULT_MODEL from config.
        **kwargs: Extra payload fields (temperature, top_p, ...) passed to the API.

    Raises:
        LLMConnectorError when the endpoint is unreachable after all retries or
        answers with an unexpected structure.
    """
    api_url = config.LOCAL_LLM_API_BASE_URL
    if not api_url:
        raise LLMConnectorError("LOCAL_LLM_API_BASE_URL is not configured.")

    model_to_use = model_name or config.LOCAL_LLM_DEFAULT_MODEL
    payload = {
        "model": model_to_use,
        "messages": prompt_messages,
        "stream": False,  # Single response object
        **kwargs
    }

    max_retries = config.LOCAL_LLM_MAX_RETRIES
    retry_delay_seconds = config.LOCAL_LLM_RETRY_DELAY

    log(f"[LLMConnector] Sending request to {model_to_use} at {api_url} with {len(prompt_messages)} message(s).", level="DEBUG")
    for attempt in range(max_retries + 1):
        try:
            response = requests.post(api_url, json=payload, timeout=config.LOCAL_LLM_REQUEST_TIMEOUT)
            response.raise_for_status()
            response_data = response.json()
        except requests.exceptions.RequestException as e:
            log_level = "ERROR" if attempt == max_retries else "WARNING"
            log(f"[LLMConnector] Error calling LLM API (Attempt {attempt+1}/{max_retries+1}) for model {model_to_use}: {e}", level=log_level)
            if attempt < max_retries:
                time.sleep(retry_delay_seconds)
                continue
            raise LLMConnectorError(f"LLM request failed after {max_retries + 1} attempt(s): {e}") from e
        except json.JSONDecodeError as e:
            raise LLMConnectorError(f"LLM returned invalid JSON: {e}") from e

        content = (response_data.get("message") or {}).get("content")
        if content is None:
            log(f"[LLMConnector] Unexpected response structure: {str(response_data)[:200]}", level="ERROR")
            raise LLMConnectorError("LLM response has no message content")
        log(f"[LLMConnector] Received response (Attempt {attempt+1}): {content[:100]}...", level="DEBUG")
        return content

    raise LLMConnectorError("LLM request was not attempted")


class LocalLLMConnector(BaseTextGenerator):
    """Runs the blocking HTTP call in a worker thread so the event loop stays free."""

    def __init__(self, model_name: Optional[str] = None, **options: Any):
        self.model_name = model_name or config.LOCAL_LLM_DEFAULT_MODEL
        self.options = options

    async def generate(self, messages: List[Dict[str, str]], model_name: Optional[str] = None) -> str:
        return await asyncio.to_thread(call_local_llm_api, messages, model_name or self.model_name, **self.options)
