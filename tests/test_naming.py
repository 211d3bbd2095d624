import pytest

from core.errors import UnrecognizedFilenameError
from core.naming import (
    NamingConvention,
    backup_table_name,
    destination_table_name,
    is_valid_identifier,
)
from core.schema import MigrationJob


class TestNamingConvention:

    def test_prefixed_filename(self):
        assert NamingConvention().parse("packs/sqlite/TranslationData.sqlite_en.sqlite") == "en"

    def test_region_code_is_kept_whole(self):
        assert NamingConvention().parse("en_US.sqlite") == "en_US"
        assert NamingConvention().parse("de_languagedata.sqlite") == "de_languagedata"

    def test_suffix_only_filename(self):
        assert NamingConvention().parse("de.sqlite") == "de"
        assert NamingConvention().parse("english.sqlite") == "english"

    def test_prefix_without_suffix(self):
        assert NamingConvention().parse("TranslationData.sqlite_fr") == "fr"

    def test_fallback_when_nothing_is_left(self):
        convention = NamingConvention(prefix="sv_", suffix=".sqlite")
        assert convention.parse("sv_.sqlite") == "sv"

    def test_empty_code_with_invalid_fallback(self):
        # Nothing left after stripping; the text before the underscore is not an identifier
        with pytest.raises(UnrecognizedFilenameError) as exc_info:
            NamingConvention().parse("TranslationData.sqlite_.sqlite")
        assert "invalid language code 'TranslationData.sqlite'" in str(exc_info.value)

    def test_fallback_can_be_disabled(self):
        convention = NamingConvention(prefix="sv_", suffix=".sqlite", fallback=False)
        with pytest.raises(UnrecognizedFilenameError) as exc_info:
            convention.parse("sv_.sqlite")
        assert "no language code" in str(exc_info.value)
        assert exc_info.value.filename == "sv_.sqlite"

    def test_invalid_characters_are_rejected(self):
        with pytest.raises(UnrecognizedFilenameError):
            NamingConvention().parse("en-US.sqlite")
        with pytest.raises(UnrecognizedFilenameError):
            NamingConvention().parse("my data.sqlite")

    def test_custom_prefix(self):
        convention = NamingConvention(prefix="pack-", suffix=".db")
        assert convention.parse("pack-sv.db") == "sv"


class TestTableNames:

    def test_destination_name_strips_source_prefix(self):
        assert destination_table_name("en", "sqlite_nouns") == "en_nouns"
        assert destination_table_name("en", "nouns") == "en_nouns"

    def test_backup_name(self):
        assert backup_table_name("en_nouns") == "en_nouns_old"

    def test_job_names(self):
        job = MigrationJob("fr", "verbs")
        assert job.destination_table == "fr_verbs"
        assert job.backup_table == "fr_verbs_old"

    @pytest.mark.parametrize("name,valid", [
        ("en_nouns", True),
        ("EN1", True),
        ("en-nouns", False),
        ("en nouns", False),
        ("", False),
        ("a" * 64, True),
        ("a" * 65, False),
    ])
    def test_identifier_validation(self, name, valid):
        assert is_valid_identifier(name) is valid
