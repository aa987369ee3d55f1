"""
Model Catalog

Static model lists shown to clients picking a provider/model.

DESIGN RULES:
- Configuration only, display names derived from ids
- Lists are advisory: providers accept any non-empty model id
"""

import re
from typing import Dict, List


OPENAI_MODELS: List[str] = [
    # GPT-5.x
    "gpt-5.2",
    "gpt-5.2-pro",
    "gpt-5.1",
    "gpt-5.1-mini",
    "gpt-5.1-codex",
    "gpt-5",
    "gpt-5-mini",
    "gpt-5-nano",
    "gpt-5-2025-08-07",
    "gpt-5-mini-2025-08-07",
    "gpt-5-nano-2025-08-07",
    "gpt-5-pro",
    # GPT-4.1
    "gpt-4.1",
    "gpt-4.1-mini",
    "gpt-4.1-nano",
    "gpt-4.1-2025-04-14",
    # O-series (reasoning)
    "o4-mini",
    "o3",
    "o3-mini",
    "o3-pro",
    "o1",
    "o1-pro",
    # GPT-4o
    "gpt-4o",
    "gpt-4o-2024-11-20",
    "gpt-4o-mini",
    "gpt-4o-mini-2024-07-18",
    "chatgpt-4o-latest",
    "codex-mini-latest",
]

GOOGLE_MODELS: Dict[str, str] = {
    "gemini-flash-lite-latest": "Gemini Flash Lite (Latest)",
    "gemini-flash-latest": "Gemini Flash (Latest)",
    "gemini-3-pro-preview": "Gemini 3.0 Pro (Preview)",
    "gemini-3-flash-preview": "Gemini 3.0 Flash (Preview)",
    "gemini-2.5-pro": "Gemini 2.5 Pro",
    "gemini-2.5-flash": "Gemini 2.5 Flash",
    "gemini-2.5-flash-lite": "Gemini 2.5 Flash Lite",
    "gemini-2.0-flash": "Gemini 2.0 Flash",
}

# Names that do not follow the id -> name rule
_SPECIAL_NAMES: Dict[str, str] = {
    "chatgpt-4o-latest": "ChatGPT-4o Latest",
    "codex-mini-latest": "Codex Mini Latest",
}

_DATE_SUFFIX = re.compile(r"^(?P<base>.+)-(?P<date>\d{4}-\d{2}-\d{2})$")


def format_model_name(model_id: str) -> str:
    """
    Human-readable name for an OpenAI model id.

    e.g. "gpt-4o-mini-2024-07-18" -> "GPT-4O-MINI (2024-07-18)"
    """
    if model_id in _SPECIAL_NAMES:
        return _SPECIAL_NAMES[model_id]

    match = _DATE_SUFFIX.match(model_id)
    if match:
        return f"{match.group('base').upper()} ({match.group('date')})"
    return model_id.upper()


def get_openai_models() -> List[Dict[str, str]]:
    return [{"id": model_id, "name": format_model_name(model_id)} for model_id in OPENAI_MODELS]


def get_google_models() -> List[Dict[str, str]]:
    return [{"id": model_id, "name": name} for model_id, name in GOOGLE_MODELS.items()]
