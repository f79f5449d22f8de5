import logging
from pathlib import Path

import pytest

from maniamap import (
    Beatmap,
    GameMode,
    HitSound,
    HoldNote,
    MalformedRecord,
    Note,
    SampleSet,
    UnknownHitObjectType,
    UnsupportedMode,
)


example_path = (
    Path(__file__).resolve().parent.parent
    / "example_data"
    / "beatmaps"
    / "example-4k.osu"
)


@pytest.fixture(scope="module")
def beatmap() -> Beatmap:
    return Beatmap.from_path(example_path)


def make_beatmap(*sections: str) -> str:
    return "\r\n".join(["osu file format v14", "", *sections])


def test_general(beatmap):
    assert beatmap.format_version == 14
    assert beatmap.audio_filename == "audio.mp3"
    assert beatmap.audio_lead_in == 0
    assert beatmap.preview_time == 41283
    assert beatmap.mode is GameMode.mania


def test_metadata(beatmap):
    # values are split on the first colon only
    assert beatmap.title == "Re:Volution"
    assert beatmap.title_unicode == "Re:Volution"
    assert beatmap.artist == "Example Artist"
    assert beatmap.artist_unicode == "Example Artist"
    assert beatmap.creator == "mapper"
    assert beatmap.version == "4K Normal"
    assert beatmap.source == ""
    assert beatmap.tags == ["mania", "test", "example"]
    assert beatmap.beatmap_id == 1234567
    assert beatmap.beatmap_set_id == 765432
    assert beatmap.display_name == "Example Artist - Re:Volution [4K Normal]"


def test_difficulty(beatmap):
    assert beatmap.hp_drain_rate == 8.0
    assert beatmap.key_count == 4
    assert beatmap.overall_difficulty == 7.5


def test_timing_points(beatmap):
    assert [tp.time for tp in beatmap.timing_points] == [1000, 5000, 9000, 13000]
    assert [tp.bpm for tp in beatmap.timing_points] == [120, None, 160, None]
    assert [tp.velocity for tp in beatmap.timing_points] == [1, 2, 1, 0.5]
    assert beatmap.timing_points[0].sample_set is SampleSet.soft
    assert beatmap.timing_points[1].kiai_time
    assert beatmap.timing_points[2].omit_first_bar_line
    assert beatmap.min_bpm == 120
    assert beatmap.max_bpm == 160


def test_hit_objects(beatmap):
    hit_objects = beatmap.hit_objects

    assert len(hit_objects) == 8
    assert [type(h) for h in hit_objects[:3]] == [Note, Note, HoldNote]
    assert beatmap.note_count == 5
    assert beatmap.hold_count == 3

    assert hit_objects[1].new_combo
    assert hit_objects[1].hit_sound == HitSound.clap
    assert hit_objects[2].end_time == 2500
    assert hit_objects[3].hit_sound == HitSound.whistle
    assert hit_objects[4].hit_sound == HitSound.finish


def test_key_positions(beatmap):
    assert beatmap.key_positions == [64, 192, 320, 448]


def test_key_positions_sorted_numerically():
    beatmap = Beatmap.parse(make_beatmap(
        "[HitObjects]",
        "448,192,0,1,0,0:0:0:0:",
        "64,192,100,1,0,0:0:0:0:",
        "192,192,200,1,0,0:0:0:0:",
        "64,192,300,1,0,0:0:0:0:",
        "320,192,400,1,0,0:0:0:0:",
        "448,192,500,1,0,0:0:0:0:",
        "1000,192,600,1,0,0:0:0:0:",
    ))

    assert beatmap.key_positions == [64, 192, 320, 448, 1000]


def test_parse_is_idempotent():
    data = example_path.read_text(encoding="utf-8-sig")
    assert Beatmap.parse(data) == Beatmap.parse(data)


def test_empty_input():
    beatmap = Beatmap.parse("")

    assert beatmap == Beatmap()
    assert beatmap.format_version is None
    assert beatmap.min_bpm == beatmap.max_bpm == 0


def test_unsupported_mode():
    data = make_beatmap(
        "[General]",
        "Mode: 1",
        "[HitObjects]",
        "64,192,0,1,0,0:0:0:0:",
    )
    with pytest.raises(UnsupportedMode) as e:
        Beatmap.parse(data)

    assert e.value.mode == "1"


def test_unsupported_mode_after_hit_objects():
    data = make_beatmap(
        "[HitObjects]",
        "64,192,0,1,0,0:0:0:0:",
        "[General]",
        "Mode: 0",
    )
    with pytest.raises(UnsupportedMode):
        Beatmap.parse(data)


def test_mode_without_space():
    beatmap = Beatmap.parse(make_beatmap("[General]", "Mode:3"))
    assert beatmap.mode is GameMode.mania


def test_missing_mode_is_accepted():
    beatmap = Beatmap.parse(make_beatmap("[General]", "PreviewTime: 500"))
    assert beatmap.preview_time == 500


def test_unknown_hit_object_type_aborts_parse():
    data = make_beatmap(
        "[HitObjects]",
        "64,192,0,1,0,0:0:0:0:",
        "64,192,100,2,0,B|100:100,1,100",
    )
    with pytest.raises(UnknownHitObjectType):
        Beatmap.parse(data)


def test_malformed_difficulty_field():
    with pytest.raises(MalformedRecord) as e:
        Beatmap.parse(make_beatmap("[Difficulty]", "OverallDifficulty:hard"))

    assert e.value.section == "Difficulty"
    assert e.value.field == "OverallDifficulty"


@pytest.mark.parametrize("value", ["nan", "inf", "-inf"])
def test_non_finite_difficulty_field(value):
    with pytest.raises(MalformedRecord) as e:
        Beatmap.parse(make_beatmap("[Difficulty]", f"HPDrainRate:{value}"))

    assert e.value.field == "HPDrainRate"


def test_unknown_sections_and_keys_are_ignored(caplog):
    data = make_beatmap(
        "[General]",
        "SomeNewSetting: 1",
        "[Metadata]",
        "Title:song",
        "Unknown:value",
        "[Storyboard]",
        "Title:not the title",
        "64,192,0,1,0,0:0:0:0:",
    )
    with caplog.at_level(logging.DEBUG):
        beatmap = Beatmap.parse(data)

    assert beatmap.title == "song"
    assert beatmap.hit_objects == []
    assert "Storyboard" in caplog.text


def test_lines_before_first_section_are_ignored():
    beatmap = Beatmap.parse("Title:stray\n[Metadata]\nTitle:song\n")
    assert beatmap.format_version is None
    assert beatmap.title == "song"


def test_comments_blank_lines_and_line_endings():
    data = (
        "\ufeffosu file format v7\n"
        "[Metadata]\r\n"
        "// Title:commented\n"
        "\n"
        "   Title:song   \r\n"
        "Tags:\n"
    )
    beatmap = Beatmap.parse(data)

    assert beatmap.format_version == 7
    assert beatmap.title == "song"
    assert beatmap.tags == []


def test_unicode_line_separators_stay_inside_values():
    beatmap = Beatmap.parse(make_beatmap(
        "[Metadata]",
        "TitleUnicode:a\u2028b",
        "ArtistUnicode:c\x85d\x0ce",
        "Tags:one\u2029two",
        "Creator:mapper",
    ))

    assert beatmap.title_unicode == "a\u2028b"
    assert beatmap.artist_unicode == "c\x85d\x0ce"
    assert beatmap.tags == ["one", "two"]
    assert beatmap.creator == "mapper"


def test_section_header_must_be_alphanumeric():
    beatmap = Beatmap.parse(make_beatmap(
        "[Metadata]",
        "[Not A Section]",
        "Title:song",
    ))
    assert beatmap.title == "song"


def test_repeated_key_last_write_wins():
    beatmap = Beatmap.parse(make_beatmap(
        "[Difficulty]",
        "CircleSize:4",
        "CircleSize:7",
    ))
    assert beatmap.key_count == 7


def test_bpm_aggregates_ignore_inherited_points():
    beatmap = Beatmap.parse(make_beatmap(
        "[TimingPoints]",
        "0,-25,4,0,0,100,0,0",
        "100,500,4,0,0,100,1,0",
        "200,-400,4,0,0,100,0,0",
        "300,250,4,0,0,100,1,0",
        "400,1000,4,0,0,100,1,0",
    ))

    assert beatmap.min_bpm == 60
    assert beatmap.max_bpm == 240
    for tp in beatmap.timing_points:
        if tp.bpm is not None:
            assert beatmap.min_bpm <= tp.bpm <= beatmap.max_bpm


def test_bpm_aggregates_without_tempo():
    beatmap = Beatmap.parse(make_beatmap(
        "[TimingPoints]",
        "0,-50,4,0,0,100,0,0",
    ))
    assert beatmap.min_bpm == 0
    assert beatmap.max_bpm == 0


def test_zero_bpm_is_indistinguishable_from_no_bpm():
    # 60000 / 200000 rounds to 0, which leaves the aggregates unseeded
    beatmap = Beatmap.parse(make_beatmap(
        "[TimingPoints]",
        "0,200000,4,0,0,100,1,0",
        "100,500,4,0,0,100,1,0",
    ))
    assert beatmap.timing_points[0].bpm == 0
    assert beatmap.min_bpm == 120
    assert beatmap.max_bpm == 120


def test_timing_point_at(beatmap):
    first, second, third, fourth = beatmap.timing_points

    # before the first point falls back to the first point
    assert beatmap.timing_point_at(0) is first
    assert beatmap.timing_point_at(999) is first
    assert beatmap.timing_point_at(1000) is first
    assert beatmap.timing_point_at(4999) is first
    assert beatmap.timing_point_at(5000) is second
    assert beatmap.timing_point_at(9001) is third
    assert beatmap.timing_point_at(10 ** 9) is fourth


def test_timing_point_at_without_timing_points():
    with pytest.raises(ValueError):
        Beatmap().timing_point_at(0)


def test_column(beatmap):
    assert [beatmap.column(h) for h in beatmap.hit_objects] == [
        0, 1, 2, 3, 0, 1, 2, 3,
    ]
    assert beatmap.column(448) == 3

    with pytest.raises(ValueError):
        beatmap.column(100)

    with pytest.raises(ValueError):
        beatmap.column(500)


def test_incremental_building():
    beatmap = Beatmap()
    beatmap.add_timing_point("0,500,4,0,0,100,1,0")
    hold = beatmap.add_hit_object("320,192,0,128,0,500:0:0:0:0:")
    beatmap.add_hit_object("64,192,250,1,0,0:0:0:0:")

    assert hold.end_time == 500
    assert beatmap.key_positions == [320, 64]

    beatmap.finalize()
    assert beatmap.key_positions == [64, 320]
    assert beatmap.min_bpm == beatmap.max_bpm == 120
    assert beatmap.note_count == beatmap.hold_count == 1


def test_from_path_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Beatmap.from_path(tmp_path / "missing.osu")
