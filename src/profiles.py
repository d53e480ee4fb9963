import logging
from pathlib import Path

import tomlkit

from domain.models import RetrieverSettings

logger = logging.getLogger(__name__)


def load_profile(path: str | Path) -> RetrieverSettings:
    """
    Загрузка и валидация профиля TOML -> RetrieverSettings.

    Неизвестные ключи профиля игнорируются.
    """
    p = Path(path)
    if not p.exists():
        msg = f'Профиль не найден: {p}'
        raise FileNotFoundError(msg)
    text = p.read_text(encoding='utf-8')
    data = tomlkit.parse(text)
    settings = RetrieverSettings.model_validate(data.unwrap())
    logger.info('Profile %s loaded: %s', p, settings.model_dump(mode='json'))
    return settings


def save_profile(path: str | Path, settings: RetrieverSettings) -> Path:
    """Сохранение профиля в TOML (без атомарности и бэкапов)."""
    p = Path(path)
    # TOML не умеет null: незаданные поля не пишем
    data = settings.model_dump(mode='json', exclude_none=True)
    text = tomlkit.dumps(data)
    p.write_text(text, encoding='utf-8')
    return p
