import pytest

from jp_subtitles.metadata import AnimeMetadata
from jp_subtitles.title import ParsedTitle, generate_title_variants, parse_video_title


def test_parse_full_title():
    parsed = parse_video_title("Anime Name (2021) - S1E2 - The Beginning")
    assert parsed == ParsedTitle(
        main_title="Anime Name",
        season=1,
        episode=2,
        episode_title="The Beginning",
        year=2021,
    )


def test_parse_title_without_season_episode():
    parsed = parse_video_title("Anime Name - The Beginning")
    assert parsed.main_title == "Anime Name"
    assert parsed.episode_title == "The Beginning"
    assert parsed.season is None
    assert parsed.episode is None
    assert parsed.year is None


@pytest.mark.parametrize(
    "raw,season,episode",
    [
        ("Show - s02e05", 2, 5),
        ("Show - S3 E12", 3, 12),
        ("Show - S1:E4", 1, 4),
        ("Show - S01E010", 1, 10),
    ],
)
def test_parse_season_episode_variants(raw, season, episode):
    parsed = parse_video_title(raw)
    assert parsed.main_title == "Show"
    assert (parsed.season, parsed.episode) == (season, episode)


def test_episode_title_joins_trailing_segments_and_drops_parentheses():
    parsed = parse_video_title("Show - S1E3 - Part One - Part Two (Dub)")
    assert parsed.episode_title == "Part One - Part Two"


def test_season_episode_segment_is_not_an_episode_title():
    parsed = parse_video_title("Show - S1E3")
    assert parsed.episode == 3
    assert parsed.episode_title is None


@pytest.mark.parametrize("raw", ["", "   ", " - ", "(2020)", "((", "S1E", "- - -", "日本語のタイトル"])
def test_parse_is_total(raw):
    parsed = parse_video_title(raw)
    assert isinstance(parsed.main_title, str)


@pytest.mark.parametrize(
    "raw",
    [
        "Frieren (2023) - S1E2 - Farewell",
        "Bocchi the Rock! - Episode",
        "  Spy x Family  ",
        "A (B) C",
        "A (x)- B",
        "A -(x) B",
        "(x) - B",
    ],
)
def test_reparsing_main_title_is_idempotent(raw):
    main = parse_video_title(raw).main_title
    assert parse_video_title(main).main_title == main


def test_parentheses_exposing_delimiter_are_resplit():
    assert parse_video_title("A (x)- B").main_title == "A"
    assert parse_video_title("A -(x) B").main_title == "A"


def test_variants_order_and_shapes():
    parsed = parse_video_title("Spy x Family - S1E1")
    variants = generate_title_variants(parsed, AnimeMetadata.empty())
    assert variants == [
        "Spy x Family",
        "Spy+x+Family",
        "Spy.x.Family",
        "Spy_x_Family",
        "spy x family",
        "Spy x Famil",
    ]


def test_variants_follow_metadata_priority_without_duplicates():
    parsed = ParsedTitle(main_title="Shingeki no Kyojin")
    meta = AnimeMetadata(
        english_title="Attack on Titan",
        romaji_title="Shingeki no Kyojin",
        native_title="進撃の巨人",
        synonyms=("AoT", "SnK"),
    )
    variants = generate_title_variants(parsed, meta)

    assert len(variants) == len(set(variants))
    assert variants[0] == "Shingeki no Kyojin"
    for source in ("Attack on Titan", "進撃の巨人", "AoT", "SnK"):
        assert source in variants
    assert variants.index("Attack on Titan") < variants.index("進撃の巨人") < variants.index("AoT")
    assert "進撃の巨" in variants


def test_variants_skip_blank_sources_and_single_chars():
    parsed = ParsedTitle(main_title="X")
    meta = AnimeMetadata(english_title="  ", synonyms=("",))
    assert generate_title_variants(parsed, meta) == ["X", "x"]
