from modmanager.domain.catalog_utils import (
    as_int,
    extract_content_hash,
    match_text,
    strip_version_suffix,
)
from modmanager.domain.models import CatalogEntry, ChunkReference, Community


def test_strip_version_suffix():
    assert strip_version_suffix("Author-Mod-1.0.0") == "Author-Mod"
    assert strip_version_suffix("Author-Mod") == "Author-Mod"
    assert strip_version_suffix("Author-Mod-1.0") == "Author-Mod-1.0"
    assert strip_version_suffix("Author-My-Mod-10.20.30") == "Author-My-Mod"


def test_match_text_is_case_insensitive_and_empty_matches_all():
    assert match_text("LethalThings", "things")
    assert match_text("LethalThings", "")
    assert not match_text("LethalThings", "company")


def test_extract_content_hash_from_chunk_url():
    url = "https://gcdn.thunderstore.io/live/repository/packages/0a1b2c3d4e5f60718293a4b5c6d7e8f9.json.gz"
    assert extract_content_hash(url) == "0a1b2c3d4e5f60718293a4b5c6d7e8f9"

    ref = ChunkReference.from_url(url)
    assert ref.url == url
    assert ref.content_hash == "0a1b2c3d4e5f60718293a4b5c6d7e8f9"


def test_extract_content_hash_falls_back_to_url_digest():
    first = extract_content_hash("https://example.com/chunks/first.json.gz")
    second = extract_content_hash("https://example.com/chunks/second.json.gz")
    assert len(first) == 64
    assert first != second
    assert first == extract_content_hash("https://example.com/chunks/first.json.gz")


def test_as_int_rejects_booleans_and_strings():
    assert as_int(True) == 0
    assert as_int("12") == 0
    assert as_int(3.7) == 3
    assert as_int(None, default=5) == 5


def test_catalog_entry_reads_fields_best_effort():
    entry = CatalogEntry.from_record(
        {
            "name": "BiggerLobby",
            "full_name": "bizzlemip-BiggerLobby",
            "owner": "bizzlemip",
            "rating_score": "not a number",
            "is_deprecated": "yes",
            "categories": ["Mods", 7, "Misc"],
            "versions": [
                {"version_number": "2.7.0", "downloads": 40},
                {"version_number": "2.6.0", "downloads": 2},
                "garbage",
            ],
        }
    )
    assert entry is not None
    assert entry.full_name == "bizzlemip-BiggerLobby"
    assert entry.rating_score == 0
    assert entry.is_deprecated is False
    assert entry.categories == ["Mods", "Misc"]
    assert len(entry.versions) == 2
    assert entry.downloads == 42
    assert entry.latest_version.version_number == "2.7.0"


def test_catalog_entry_skips_non_objects():
    assert CatalogEntry.from_record(["not", "a", "record"]) is None
    assert CatalogEntry.from_record(None) is None


def test_community_requires_identifier():
    assert Community.from_record({"name": "No id"}) is None
    community = Community.from_record({"identifier": "lethal-company", "name": "Lethal Company"})
    assert community.identifier == "lethal-company"
    assert community.discord_url is None
