"""
Static prompt list
静态提示词列表 - LLM 不可用时的兜底来源
"""

import math
import random
import re

PROMPTS = [
    "A Renaissance painting of ____ but it's actually ____",
    "A children's book illustration of ____ gone horribly wrong",
    "A movie poster for ____ starring ____",
    "A corporate logo for ____ that accidentally looks like ____",
    "A nature documentary screenshot of ____ in the wild",
    "A medieval tapestry showing ____ and ____",
    "An infomercial still frame selling ____ to ____",
    "A photo of ____ that feels cursed for no reason",
]

_EDGE_QUOTES = re.compile(r"^[\"'\s]+|[\"'\s]+$")
_WHITESPACE = re.compile(r"\s+")


def pick_random_prompt() -> str:
    """Uniformly random entry of PROMPTS"""
    return PROMPTS[math.floor(random.random() * len(PROMPTS))]


def sanitize_prompt(text: str) -> str:
    """Strip surrounding quotes/whitespace and collapse internal whitespace"""
    text = _EDGE_QUOTES.sub("", text or "")
    return _WHITESPACE.sub(" ", text).strip()
