# agents/llm.py
"""Shared helpers for talking to the chat model and reading its replies."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

import config
from workflows.schemas import ConversationMessage

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


def build_chat_model(temperature: Optional[float] = None, model_name: Optional[str] = None) -> ChatGoogleGenerativeAI:
    if not config.get_google_api_key():
        logger.warning("Missing GOOGLE_API_KEY or GEMINI_API_KEY; model calls will fail")
    return ChatGoogleGenerativeAI(
        model=model_name or config.DEFAULT_MODEL_NAME,
        temperature=config.DEFAULT_TEMPERATURE if temperature is None else temperature,
        google_api_key=config.get_google_api_key(),
    )


def message_text(message: Any) -> str:
    """Plain text of a model reply. Gemini may return a list of content parts."""
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, dict):
                text = part.get("text") or part.get("content") or ""
                if text:
                    parts.append(str(text))
            else:
                parts.append(str(part))
        return "\n".join(parts).strip()
    return str(content or "").strip()


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Find a JSON object in model output: whole text, fenced block, then the outermost braces."""
    if not text:
        return None
    candidates = [text]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            obj = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def history_messages(history: List[ConversationMessage]) -> List[BaseMessage]:
    out: List[BaseMessage] = []
    for msg in history:
        if msg.role == "user":
            out.append(HumanMessage(content=msg.content))
        elif msg.role == "assistant":
            out.append(AIMessage(content=msg.content))
        else:
            out.append(SystemMessage(content=msg.content))
    return out
