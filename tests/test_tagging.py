from dset.data.schema import E621Config
from dset.data.tagging import (
    append_caption,
    cleanup_caption,
    filter_tags,
    join_tags,
    normalize_tag,
    render_template,
    should_ignore_e621_tag,
    split_tags,
)


def test_ignore_patterns() -> None:
    assert should_ignore_e621_tag("conditional_dnp")
    assert should_ignore_e621_tag("2023")
    assert should_ignore_e621_tag("16:9")
    assert should_ignore_e621_tag("4:3")
    assert not should_ignore_e621_tag("Conditional_DNP")
    assert not should_ignore_e621_tag("20234")
    assert not should_ignore_e621_tag("year_2023")
    assert not should_ignore_e621_tag("16:9 aspect")
    assert not should_ignore_e621_tag("conditional_dnp_extra")


def test_filter_tags_can_be_disabled() -> None:
    tags = ["wolf", "2023", "16:9"]
    assert filter_tags(tags) == ["wolf"]
    assert filter_tags(tags, enabled=False) == tags


def test_split_tags_trims_and_drops_empty() -> None:
    assert split_tags(" tag1,tag2 , ,  tag3,") == ["tag1", "tag2", "tag3"]
    assert split_tags("") == []


def test_normalize_artist() -> None:
    config = E621Config()
    assert normalize_tag("artist2 (artist)", "artist", config) == "by artist2"
    assert normalize_tag("ulala_ko", "artist", config) == "by ulala ko"
    custom = config.with_artist_prefix(None).with_artist_suffix(" (art)")
    assert normalize_tag("some_one", "artist", custom) == "some one (art)"


def test_normalize_underscores_switch() -> None:
    on = E621Config()
    off = E621Config().with_replace_underscores(False)
    assert normalize_tag("blue_eyes", "general", on) == "blue eyes"
    assert normalize_tag("blue_eyes", "general", off) == "blue_eyes"
    # artists are always de-underscored
    assert normalize_tag("ulala_ko", "artist", off) == "by ulala ko"


def test_join_with_dedupe_sorts_and_removes_repeats() -> None:
    tags = ["tag3", "tag1", "tag2", "tag2", "Tag1"]
    joined = join_tags(tags, ", ", dedupe=True)
    assert joined == "Tag1, tag1, tag2, tag3"
    parts = joined.split(", ")
    assert parts == sorted(parts)
    assert len(parts) == len(set(parts))


def test_join_with_dedupe_is_idempotent() -> None:
    once = join_tags(["b", "a", "c", "a"], ", ", dedupe=True)
    assert join_tags(once.split(", "), ", ", dedupe=True) == once


def test_join_without_dedupe_keeps_order_and_repeats() -> None:
    assert join_tags(["b", "a", "b"], " | ", dedupe=False) == "b | a | b"


def test_append_caption() -> None:
    assert append_caption("a, b", "a photo", ", ") == "a, b, a photo"
    assert append_caption("", "a photo", ", ") == "a photo"
    assert append_caption("a, b", "", ", ") == "a, b"
    assert append_caption("", "", ", ") == ""


def test_render_template_is_literal() -> None:
    values = [("rating", "safe"), ("artists", "by x"), ("meta", "")]
    rendered = render_template("{rating}|{artists}|{meta}|{unknown}|{{x}}", values)
    assert rendered == "safe|by x||{unknown}|{{x}}"


def test_cleanup_collapses_empty_groups() -> None:
    assert cleanup_caption("safe, by artist2, , , , , ") == "safe, by artist2"
    assert cleanup_caption("explicit, , , , , 2023, 16:9, ") == "explicit, 2023, 16:9"
    assert cleanup_caption(", , safe") == "safe"
    assert cleanup_caption("") == ""


def test_cleanup_is_stable() -> None:
    samples = [
        "safe, , , , , , ",
        "explicit,,, 2023, 16:9",
        " , ,a ,, b , , ,c, ",
        "Rating: safe\nArtists: ",
    ]
    for s in samples:
        once = cleanup_caption(s)
        assert cleanup_caption(once) == once


def test_render_template_does_not_rescan_values() -> None:
    values = [("general", "{meta} sign"), ("meta", "hi res")]
    assert render_template("{general}, {meta}", values) == "{meta} sign, hi res"
