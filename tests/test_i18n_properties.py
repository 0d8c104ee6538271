"""
Property-based tests for internationalization (i18n) module.

Uses Hypothesis to verify that every console message exists in every
supported language and formats without errors.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from dpi_discovery.enums import CoordinatorState
from dpi_discovery.i18n import (
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
    get_message,
    get_all_message_keys,
    has_translation,
    get_missing_translations,
)


class TestTranslationCoverageProperty:
    """
    Property-based tests for translation coverage.

    **Property: Every language has every message**
    """

    def test_all_languages_have_all_translations(self) -> None:
        """
        *For any* message key used by the console, translations SHALL exist
        for both "en" and "ru".
        """
        all_keys = get_all_message_keys()
        assert len(all_keys) > 0, "No translations defined"

        for language in SUPPORTED_LANGUAGES:
            missing = get_missing_translations(language)
            assert len(missing) == 0, (
                f"Language '{language}' is missing translations for: {missing}"
            )

    @given(key=st.sampled_from(sorted(TRANSLATIONS.keys())))
    @settings(max_examples=100)
    def test_translations_are_non_empty(self, key: str) -> None:
        for language in SUPPORTED_LANGUAGES:
            assert has_translation(key, language)
            assert TRANSLATIONS[key][language].strip()

    @given(
        key=st.sampled_from(sorted(TRANSLATIONS.keys())),
        language=st.sampled_from(sorted(SUPPORTED_LANGUAGES)),
    )
    @settings(max_examples=100)
    def test_get_message_returns_string(self, key: str, language: str) -> None:
        message = get_message(key, language)
        assert isinstance(message, str)
        assert len(message) > 0

    def test_every_state_has_a_label(self) -> None:
        for state in CoordinatorState:
            for language in SUPPORTED_LANGUAGES:
                assert has_translation(f"state.{state.value}", language)

    def test_russian_and_english_differ(self) -> None:
        assert get_message("state.running", "en") != get_message("state.running", "ru")


class TestGetMessageFunction:
    def test_default_language_is_english(self) -> None:
        assert DEFAULT_LANGUAGE == "en"

    def test_get_message_with_no_language_uses_default(self) -> None:
        assert get_message("state.complete") == get_message("state.complete", "en")

    def test_get_message_with_invalid_language_uses_default(self) -> None:
        assert get_message("state.complete", "de") == get_message("state.complete", "en")

    def test_get_message_with_unknown_key_returns_key(self) -> None:
        assert get_message("no.such.key", "en") == "no.such.key"

    def test_get_message_with_format_args(self) -> None:
        message = get_message(
            "cli.progress", "en",
            state="Running", phase="Strategy detection", completed=3, total=12, progress=25.0,
        )
        assert "3/12" in message
        assert "25%" in message

    def test_get_message_with_missing_format_args(self) -> None:
        message = get_message("cli.progress", "en", state="Running")
        assert message == TRANSLATIONS["cli.progress"]["en"]


class TestSupportedLanguages:
    def test_supported_languages(self) -> None:
        assert SUPPORTED_LANGUAGES == {"en", "ru"}

    def test_supported_languages_is_frozen(self) -> None:
        assert isinstance(SUPPORTED_LANGUAGES, frozenset)
