"""
concierge/openai_client.py
--------------------------
Builds the OpenAI SDK client shared by the embedder and the transcriber.

Retries are disabled: collaborator failures propagate to the HTTP boundary
on the first error, and the request timeout comes from HTTP_TIMEOUT.
"""

from openai import OpenAI

from concierge.config import Settings


def build_openai_client(settings: Settings) -> OpenAI:
    return OpenAI(
        api_key     = settings.openai_api_key,
        base_url    = settings.openai_base_url,
        timeout     = settings.http_timeout,
        max_retries = 0,
    )
