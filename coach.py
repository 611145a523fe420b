"""OpenAI-backed sales coach behind /api/generateTip."""
import json
import logging

from flask import current_app
from openai import OpenAI, OpenAIError

log = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful sales coach assistant."

TIP_PROMPT = """
You are a sales coach. Given these daily sales entries:
{entries}
Give me one concise actionable tip to improve performance this week.
""".strip()

MAX_TIP_TOKENS = 60


class TipGenerationError(Exception):
    """The completion call failed or was never possible."""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


def build_prompt(entries):
    return TIP_PROMPT.format(entries=json.dumps(entries, indent=2))


def client():
    api_key = current_app.config.get('OPENAI_API_KEY')
    if not api_key:
        raise TipGenerationError("OPENAI_API_KEY is not configured")
    return OpenAI(api_key=api_key)


def generate_tip(entries):
    """Ask the model for one coaching sentence about ``entries``."""
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(entries)},
    ]
    try:
        completion = client().chat.completions.create(
            model=current_app.config['OPENAI_MODEL'],
            messages=messages,
            max_tokens=MAX_TIP_TOKENS,
        )
    except OpenAIError as e:
        raise TipGenerationError(f"OpenAI API error: {e}", cause=e)

    content = completion.choices[0].message.content if completion.choices else None
    tip = (content or '').strip()
    log.debug("Generated tip: %s", tip)
    return tip or "(no tip)"
