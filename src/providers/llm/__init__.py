"""LLM provider adapters.

Two concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - OpenAILLMProvider -- gpt-4o / gpt-4o-mini (also OpenAI-compatible APIs)
    - OllamaLLMProvider -- local models via an Ollama server (llama3.1 / llava)

main.py picks the first configured provider and hands it to the
generation adapter.
"""

from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "OllamaLLMProvider"]
