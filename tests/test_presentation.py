import pytest

from boundary.config import ConfigError
from boundary.presentation import DEFAULT_MESSAGES, GENERIC_MESSAGE, MessageCatalog


def test_known_code_in_default_locale() -> None:
    catalog = MessageCatalog()
    assert catalog.message("invalid_date") == DEFAULT_MESSAGES["en"]["invalid_date"]


def test_unknown_code_falls_back_to_default_code() -> None:
    catalog = MessageCatalog()
    assert catalog.message("no_such_code") == DEFAULT_MESSAGES["en"]["default"]


def test_locale_falls_back_to_default_locale() -> None:
    catalog = MessageCatalog.from_config({"fr": {"invalid_date": "Date invalide."}})

    assert catalog.message("invalid_date", locale="fr") == "Date invalide."
    assert catalog.message("invalid_api_key", locale="fr") == DEFAULT_MESSAGES["en"]["invalid_api_key"]
    assert catalog.message("invalid_date", locale="de") == DEFAULT_MESSAGES["en"]["invalid_date"]


def test_localized_default_code_is_preferred() -> None:
    catalog = MessageCatalog.from_config({"fr": {"default": "Une erreur est survenue."}})
    assert catalog.message("mystery", locale="fr") == "Une erreur est survenue."


def test_empty_catalog_uses_generic_text() -> None:
    assert MessageCatalog(messages={}).message("anything") == GENERIC_MESSAGE


def test_from_config_rejects_non_mapping_tables() -> None:
    with pytest.raises(ConfigError):
        MessageCatalog.from_config({"en": "not a table"})
