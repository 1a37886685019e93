"""LLM provider inference from model identifiers.

Generative search pipelines name their model as `<provider>/<model>`;
identifiers without a known prefix are treated as OpenAI models.
"""

import enum

BEDROCK_PROVIDER_PREFIX = "bedrock/"
OCI_GENAI_PROVIDER_PREFIX = "oci_genai/"


class LlmProvider(enum.Enum):
    OPENAI = "openai"
    BEDROCK = "bedrock"
    OCI_GENAI = "oci_genai"


def infer_llm_provider(model_id: str | None) -> LlmProvider:
    """Return the provider serving `model_id`."""
    if model_id is not None:
        if model_id.startswith(BEDROCK_PROVIDER_PREFIX):
            return LlmProvider.BEDROCK
        if model_id.startswith(OCI_GENAI_PROVIDER_PREFIX):
            return LlmProvider.OCI_GENAI
    return LlmProvider.OPENAI
