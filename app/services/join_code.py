"""
Join code generation
房间加入码生成 - 排除容易混淆的字符 O/0/I/1
"""

import random
from typing import Optional

from app.core.config import settings

JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_join_code(length: Optional[int] = None) -> str:
    """Random human-shareable code drawn uniformly from JOIN_CODE_ALPHABET"""
    if length is None:
        length = settings.JOIN_CODE_LENGTH
    return "".join(random.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def normalize_join_code(raw: Optional[str]) -> str:
    return (raw or "").strip().upper()
