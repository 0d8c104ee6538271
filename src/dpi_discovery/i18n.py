"""
Internationalization (i18n) module for the discovery console.

Provides translations for all user-facing CLI messages in English (en)
and Russian (ru).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"en", "ru"})
DEFAULT_LANGUAGE = "en"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Coordinator states
    "state.idle": {
        "en": "Idle",
        "ru": "Ожидание",
    },
    "state.starting": {
        "en": "Starting",
        "ru": "Запуск",
    },
    "state.running": {
        "en": "Running",
        "ru": "Выполняется",
    },
    "state.complete": {
        "en": "Complete",
        "ru": "Завершено",
    },
    "state.failed": {
        "en": "Failed",
        "ru": "Ошибка",
    },
    "state.canceled": {
        "en": "Canceled",
        "ru": "Отменено",
    },

    # Session lifecycle
    "cli.starting_discovery": {
        "en": "Starting discovery for {target}...",
        "ru": "Запуск поиска стратегий для {target}...",
    },
    "cli.discovery_started": {
        "en": "Discovery started (session {session_id})",
        "ru": "Поиск запущен (сессия {session_id})",
    },
    "cli.discovery_detached": {
        "en": "Running in the background. Use 'watch' to follow it.",
        "ru": "Поиск продолжается в фоне. Используйте 'watch' для отслеживания.",
    },
    "cli.resuming": {
        "en": "Resuming session {session_id}",
        "ru": "Возобновление сессии {session_id}",
    },
    "cli.no_session": {
        "en": "No discovery session is being tracked",
        "ru": "Нет отслеживаемой сессии поиска",
    },
    "preset.no_session": {
        "en": "No discovery session is being tracked; pass --session <id> (shown when a discovery finishes)",
        "ru": "Нет отслеживаемой сессии поиска; укажите --session <id> (выводится по завершении поиска)",
    },
    "cli.session_active": {
        "en": "A discovery session is already being tracked: {session_id}",
        "ru": "Уже отслеживается сессия поиска: {session_id}",
    },
    "cli.progress": {
        "en": "[{state}] {phase}: {completed}/{total} checks ({progress:.0f}%)",
        "ru": "[{state}] {phase}: {completed}/{total} проверок ({progress:.0f}%)",
    },
    "cli.progress_indeterminate": {
        "en": "[{state}] {phase}...",
        "ru": "[{state}] {phase}...",
    },
    "cli.waiting": {
        "en": "[{state}] waiting for the service...",
        "ru": "[{state}] ожидание ответа сервиса...",
    },
    "cli.warning": {
        "en": "Warning: {message}",
        "ru": "Предупреждение: {message}",
    },
    "cli.error": {
        "en": "Error: {message}",
        "ru": "Ошибка: {message}",
    },
    "cli.finished": {
        "en": "Discovery {session_id} finished: {state}",
        "ru": "Поиск {session_id} завершён: {state}",
    },
    "cli.canceled": {
        "en": "Discovery canceled",
        "ru": "Поиск отменён",
    },
    "cli.reset_done": {
        "en": "Stored session cleared",
        "ru": "Сохранённая сессия удалена",
    },
    "cli.interrupted": {
        "en": "Stopped watching. The session keeps running; use 'watch' to resume.",
        "ru": "Отслеживание остановлено. Сессия продолжается; используйте 'watch'.",
    },

    # Results
    "results.header": {
        "en": "Results:",
        "ru": "Результаты:",
    },
    "results.best": {
        "en": "  {domain}: best preset {preset} at {speed}",
        "ru": "  {domain}: лучший пресет {preset}, скорость {speed}",
    },
    "results.no_working": {
        "en": "  {domain}: no working preset found",
        "ru": "  {domain}: рабочий пресет не найден",
    },
    "results.improvement": {
        "en": "    {improvement:+.0f}% over baseline",
        "ru": "    {improvement:+.0f}% относительно базовой скорости",
    },
    "results.trials": {
        "en": "    {successful}/{total} presets worked",
        "ru": "    сработало пресетов: {successful}/{total}",
    },
    "results.families": {
        "en": "    Working families: {families}",
        "ru": "    Рабочие семейства: {families}",
    },
    "results.phase": {
        "en": "    {phase}:",
        "ru": "    {phase}:",
    },
    "results.trial_ok": {
        "en": "      + {preset} ({speed})",
        "ru": "      + {preset} ({speed})",
    },
    "results.trial_failed": {
        "en": "      - {preset}: {error}",
        "ru": "      - {preset}: {error}",
    },

    # Fingerprint
    "fingerprint.running": {
        "en": "Fingerprinting DPI for {domain}...",
        "ru": "Определение DPI для {domain}...",
    },
    "fingerprint.type": {
        "en": "  DPI type: {dpi_type} (confidence {confidence:.0f}%)",
        "ru": "  Тип DPI: {dpi_type} (уверенность {confidence:.0f}%)",
    },
    "fingerprint.method": {
        "en": "  Blocking method: {method}",
        "ru": "  Метод блокировки: {method}",
    },
    "fingerprint.recommended": {
        "en": "  Recommended families: {families}",
        "ru": "  Рекомендуемые семейства: {families}",
    },

    # Config Store
    "preset.not_found": {
        "en": "Preset '{preset}' did not succeed for {domain} in the current session",
        "ru": "Пресет '{preset}' не сработал для {domain} в текущей сессии",
    },
    "preset.similar_sets": {
        "en": "Existing sets with the same configuration: {sets}",
        "ru": "Существующие наборы с такой же конфигурацией: {sets}",
    },
    "preset.added_to_set": {
        "en": "Added {domain} to set {set_id}",
        "ru": "{domain} добавлен в набор {set_id}",
    },

    # Log stream
    "logs.connecting": {
        "en": "Streaming discovery logs from {url} (Ctrl+C to stop)",
        "ru": "Поток журнала поиска с {url} (Ctrl+C для остановки)",
    },

    # Configuration
    "config.not_found": {
        "en": "No configuration found at: {path}",
        "ru": "Конфигурация не найдена: {path}",
    },
    "config.created": {
        "en": "Configuration created at: {path}",
        "ru": "Конфигурация создана: {path}",
    },
    "config.exists": {
        "en": "Configuration already exists at: {path}. Use --force to overwrite.",
        "ru": "Конфигурация уже существует: {path}. Используйте --force для перезаписи.",
    },
    "config.valid": {
        "en": "Configuration at {path} is valid.",
        "ru": "Конфигурация {path} корректна.",
    },
    "config.load_failed": {
        "en": "Could not load config from {path}",
        "ru": "Не удалось загрузить конфигурацию из {path}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'state.running')
        language: Language code ('en' or 'ru'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('state.complete', 'en')
        'Complete'
        >>> get_message('cli.canceled', 'ru')
        'Поиск отменён'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)

    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except (KeyError, ValueError):
            # Missing or mistyped argument, show the template as is
            pass

    return message


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def has_translation(key: str, language: str) -> bool:
    """Check if a translation exists for a key and language."""
    translations = TRANSLATIONS.get(key)
    if translations is None:
        return False
    return language in translations


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }
