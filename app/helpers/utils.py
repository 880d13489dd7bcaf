from typing import Optional
from fastapi import Request


def get_lang_from_request(request: Optional[Request]) -> str:
    # "ru-RU,ru;q=0.9,en;q=0.8" -> "ru"
    header = request.headers.get("Accept-Language", "en") if request is not None else "en"
    lang = header.split(",")[0].split(";")[0].split("-")[0].strip().lower()
    return lang or "en"

def format_size(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.0f} MB"
