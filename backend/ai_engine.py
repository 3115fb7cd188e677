import re
import asyncio
import requests
import logging
from typing import List, Optional

import config
from errors import ExternalProviderError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are playing a party game where you need to blend in with player answers.
Your goal is to match the tone, style, humor level, content type, AND LENGTH of the other players.
If they are crude, be crude. If they are making dark jokes, make dark jokes.
Be creative and funny, but match their energy and answer length.

CRITICAL RULES:
- NEVER reference or restate the question in your answer
- NEVER mention player names in your answer
- NEVER use punctuation (no periods, commas, quotes, apostrophes, etc.)
- Use casual, informal grammar like real players do
- Keep answers concise and direct"""

USER_PROMPT_TEMPLATE = """Question: {question}

Here are the answers other players submitted:
{answers}

Generate ONE answer that matches the tone, style, AND LENGTH (approximately {avg_length} characters, between {min_length}-{max_length} characters) of these answers. It should be funny, blend in seamlessly, and make it hard for players to guess it's AI-generated.

Return ONLY your answer text, with NO numbering, NO prefixes, NO formatting, NO punctuation."""

DEFAULT_ANSWER_LENGTH = 50


def _length_window(answers: List[str]) -> tuple:
    """Target (avg, min, max) answer length derived from the players' answers."""
    if answers:
        avg = round(sum(len(a) for a in answers) / len(answers))
    else:
        avg = DEFAULT_ANSWER_LENGTH
    return avg, max(10, int(avg * 0.7)), max(10, int(avg * 1.3))


def build_prompts(question: str, answers: List[str]) -> tuple:
    avg, lo, hi = _length_window(answers)
    numbered = "\n".join(f"{i + 1}. {a}" for i, a in enumerate(answers))
    user_prompt = USER_PROMPT_TEMPLATE.format(
        question=question, answers=numbered,
        avg_length=avg, min_length=lo, max_length=hi,
    )
    return SYSTEM_PROMPT, user_prompt


def sanitize_answer(text: str, player_names: List[str], max_length: int) -> str:
    """Strip formatting, name echoes and punctuation from a raw model answer."""
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    answer = lines[0] if lines else ""
    # Leading list markers like "3.", "1)", "- "
    answer = re.sub(r'^\d+[.)\s\-]*\s*', '', answer)
    answer = re.sub(r'^[-•*]\s*', '', answer)

    for name in player_names:
        if not name:
            continue
        pattern = re.compile(rf'\b{re.escape(name)}\b', re.IGNORECASE)
        match = pattern.search(answer)
        if match:
            logger.debug("Removing echoed player name '%s' from AI answer", name)
            after = answer[match.end():].strip()
            after = re.sub(r"^(?:can'?t\s+stop\s+\w+\s*|would\s+be\s+|is\s+|are\s+|was\s+|were\s+)", '', after,
                           flags=re.IGNORECASE)
            answer = after if after else pattern.sub('', answer)

    answer = re.sub(r'[\"\'‘’“”`]', '', answer)
    answer = re.sub(r'[.,;:!?]', '', answer)
    answer = re.sub(r'\s+', ' ', answer).strip()

    if len(answer) > max_length:
        words = answer.split(' ')
        kept: List[str] = []
        for word in words:
            if len(' '.join(kept + [word])) > max_length:
                break
            kept.append(word)
        answer = ' '.join(kept) if kept else answer[:max_length]
    return answer


def _call_openai(system_prompt: str, user_prompt: str) -> str:
    if not config.OPENAI_API_KEY:
        raise ExternalProviderError("OpenAI API key not configured")
    payload = {
        "model": config.OPENAI_MODEL,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": config.AI_TEMPERATURE,
        "max_tokens": 80,
    }
    headers = {"Authorization": f"Bearer {config.OPENAI_API_KEY}"}
    response = requests.post(config.OPENAI_URL, json=payload, headers=headers, timeout=config.AI_TIMEOUT)
    response.raise_for_status()
    return response.json()["choices"][0]["message"]["content"]


def _call_ollama(system_prompt: str, user_prompt: str) -> str:
    payload = {
        "model": config.OLLAMA_MODEL,
        "prompt": f"{system_prompt}\n\n{user_prompt}",
        "stream": False,
        "options": {"temperature": config.AI_TEMPERATURE},
    }
    response = requests.post(config.OLLAMA_URL, json=payload, timeout=config.AI_TIMEOUT)
    response.raise_for_status()
    return response.json()["response"]


def _call_claude(system_prompt: str, user_prompt: str) -> str:
    if not config.ANTHROPIC_API_KEY:
        raise ExternalProviderError("Anthropic API key not configured")
    headers = {
        "x-api-key": config.ANTHROPIC_API_KEY,
        "anthropic-version": "2023-06-01",
        "content-type": "application/json",
    }
    payload = {
        "model": config.ANTHROPIC_MODEL,
        "max_tokens": 100,
        "system": system_prompt,
        "messages": [{"role": "user", "content": user_prompt}],
        "temperature": config.AI_TEMPERATURE,
    }
    response = requests.post("https://api.anthropic.com/v1/messages", json=payload,
                             headers=headers, timeout=config.AI_TIMEOUT)
    response.raise_for_status()
    return response.json()["content"][0]["text"]


def _call_gemini(system_prompt: str, user_prompt: str) -> str:
    if not config.GEMINI_API_KEY:
        raise ExternalProviderError("Gemini API key not configured")
    url = f"https://generativelanguage.googleapis.com/v1beta/models/{config.GEMINI_MODEL}:generateContent"
    headers = {"x-goog-api-key": config.GEMINI_API_KEY}
    payload = {
        "contents": [{"parts": [{"text": f"{system_prompt}\n\n{user_prompt}"}]}],
        "generationConfig": {"temperature": config.AI_TEMPERATURE},
    }
    response = requests.post(url, json=payload, headers=headers, timeout=config.AI_TIMEOUT)
    response.raise_for_status()
    return response.json()["candidates"][0]["content"]["parts"][0]["text"]


PROVIDERS = {
    "openai": _call_openai,
    "ollama": _call_ollama,
    "claude": _call_claude,
    "gemini": _call_gemini,
}


class AIEngine:
    def __init__(self, provider: str = ""):
        self.provider = provider

    async def generate_answer(self, question: str, answers: List[str],
                              player_names: Optional[List[str]] = None) -> str:
        """One blended answer for the round. Raises ExternalProviderError on any failure."""
        provider = self.provider or config.AI_PROVIDER
        call = PROVIDERS.get(provider)
        if call is None:
            raise ExternalProviderError(f"Unknown AI provider: {provider}")

        system_prompt, user_prompt = build_prompts(question, answers)
        _, _, max_length = _length_window(answers)
        logger.info("Generating AI answer with provider '%s' for: '%s'", provider, question[:100])
        try:
            raw = await asyncio.to_thread(call, system_prompt, user_prompt)
        except ExternalProviderError:
            raise
        except requests.Timeout:
            logger.warning("AI provider '%s' timed out after %ds", provider, config.AI_TIMEOUT)
            raise ExternalProviderError("AI took too long to answer")
        except requests.RequestException as e:
            logger.error("HTTP error calling AI provider '%s': %s", provider, e)
            raise ExternalProviderError("Failed to generate AI answer")
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error("Unexpected response structure from '%s': %s", provider, e)
            raise ExternalProviderError("Failed to generate AI answer")

        answer = sanitize_answer(raw or "", player_names or [], max_length)
        if not answer:
            logger.warning("AI provider '%s' returned an empty answer", provider)
            raise ExternalProviderError("Failed to generate AI answer")
        return answer

    def get_available_providers(self) -> list[dict]:
        ollama_available = False
        try:
            base_url = config.OLLAMA_URL.rsplit("/api/", 1)[0]
            r = requests.get(base_url, timeout=2)
            ollama_available = r.status_code == 200
        except requests.RequestException:
            pass
        return [
            {"id": "openai", "name": "OpenAI", "model": config.OPENAI_MODEL,
             "available": bool(config.OPENAI_API_KEY)},
            {"id": "ollama", "name": "Ollama (Local)", "model": config.OLLAMA_MODEL,
             "available": ollama_available},
            {"id": "claude", "name": "Claude", "model": config.ANTHROPIC_MODEL,
             "available": bool(config.ANTHROPIC_API_KEY)},
            {"id": "gemini", "name": "Google AI", "model": config.GEMINI_MODEL,
             "available": bool(config.GEMINI_API_KEY)},
        ]


ai_engine = AIEngine()
