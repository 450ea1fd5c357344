"""site_mapper.utils: вспомогательные функции для URL, которые вводит пользователь."""

from __future__ import annotations

from typing import Sequence

from site_mapper.logger import logger

__all__: Sequence[str] = ("ensure_scheme",)

_WEB_SCHEMES = ("http://", "https://")


def ensure_scheme(url: str, default_scheme: str = "https") -> str:
    """Добавляет схему, если адрес не начинается с http:// или https://.

    ``://`` further along (e.g. in a query string) does not count as a scheme.
    """
    value = url.strip()
    if value.lower().startswith(_WEB_SCHEMES):
        return value
    normalized = f"{default_scheme}://{value.lstrip('/')}"
    logger.debug("Added scheme: %s -> %s", url, normalized)
    return normalized
