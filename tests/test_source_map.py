"""Tests for source_map: bucket matching, fallback tilt, and validation.

Pure unit tests, no Flask, no network. Expected link lists are written
against data/source_map.json.
"""

import copy
import json

import pytest

from canine.errors import ConfigurationError
from canine.source_map import (
    HEALTH,
    MAX_LINKS,
    TRAINING,
    load_source_map,
    parse_source_map,
    select_links,
)

POISON = ["https://www.petpoisonhelpline.com/", "https://www.fda.gov/animal-veterinary"]
PUPPY = ["https://positively.com/", "https://www.ccpdt.org/"]
HEALTH_FALLBACK = [
    "https://veterinarypartner.vin.com/",
    "https://www.merckvetmanual.com/pethealth",
    "https://www.avma.org/",
]
TRAINING_FALLBACK = ["https://positively.com/", "https://www.ccpdt.org/"]


MINIMAL = {
    "version": "test",
    "buckets": [
        {"tag": "a", "keywords": ["alpha"], "urls": ["https://a.example/1", "https://shared.example/"]},
        {"tag": "b", "keywords": ["beta"], "urls": ["https://shared.example/", "https://b.example/1"]},
        {"tag": "c", "keywords": ["gamma"], "urls": ["https://c.example/1", "https://c.example/2"]},
    ],
    "fallbacks": {
        "health": {"cap": 3, "urls": ["https://h.example/1", "https://h.example/2",
                                      "https://h.example/3", "https://h.example/4"]},
        "training": {"cap": 1, "urls": ["https://t.example/1", "https://t.example/2"]},
    },
    "tilt_hints": ["Train", "sit"],
}


def _minimal(**changes):
    data = copy.deepcopy(MINIMAL)
    data.update(changes)
    return data


# ---------------------------------------------------------------------------
# Bucket matching against the shipped map
# ---------------------------------------------------------------------------

def test_nipping_puppy_question(source_map):
    links = source_map.select_links("my puppy bit my hand and won't stop nipping")
    assert links == PUPPY


def test_no_match_no_hint_uses_health_fallback(source_map):
    assert source_map.select_links("what's the weather today") == HEALTH_FALLBACK


def test_no_match_with_hint_uses_training_fallback(source_map):
    assert source_map.select_links("how do i teach my dog to sit") == TRAINING_FALLBACK


def test_case_insensitive(source_map):
    assert source_map.select_links("My dog got into XYLITOL gum") == POISON


def test_shared_url_keeps_first_position(source_map):
    """parasites and dermatology both list the Merck manual; it appears once."""
    links = source_map.select_links("my dog has fleas and an itchy rash")
    assert links == [
        "https://capcvet.org/",
        "https://www.merckvetmanual.com/pethealth",
        "https://acvd.org/",
    ]


def test_truncates_to_four(source_map):
    links = source_map.select_links(
        "flea and tick prevention plus rabies vaccine and dental cleaning"
    )
    assert links == [
        "https://capcvet.org/",
        "https://www.merckvetmanual.com/pethealth",
        "https://www.avma.org/",
        "https://www.aaha.org/",
    ]


def test_substring_not_word_match(source_map):
    """'ate' is a keyword; it fires inside 'grate' too."""
    assert source_map.select_links("my dog chews on the grate") == POISON


def test_literal_phrase_not_tokenized(source_map):
    matched = [b.tag for b in source_map.match_buckets("housebreaking tips")]
    assert matched == ["foundations_puppy"]


def test_match_buckets_in_definition_order(source_map):
    matched = [b.tag for b in source_map.match_buckets("itchy dog with fleas")]
    assert matched == ["parasites", "dermatology_allergy"]


@pytest.mark.parametrize("query", ["", None])
def test_empty_query_is_health_fallback(source_map, query):
    assert source_map.select_links(query) == HEALTH_FALLBACK


def test_very_long_query(source_map):
    links = source_map.select_links("xylitol " * 5000)
    assert links == POISON


@pytest.mark.parametrize("query", [
    "my puppy bit my hand and won't stop nipping",
    "what's the weather today",
    "how do i teach my dog to sit",
    "flea and tick prevention plus rabies vaccine and dental cleaning",
    "cataract surgery and hip dysplasia genetic testing",
    "clicker training for agility and rally",
    "zzz",
])
def test_links_bounded_unique_and_approved(source_map, query):
    links = source_map.select_links(query)
    assert 1 <= len(links) <= MAX_LINKS
    assert len(set(links)) == len(links)
    assert set(links) <= source_map.all_urls()


def test_deterministic(source_map):
    q = "cataract surgery and hip dysplasia genetic testing"
    assert source_map.select_links(q) == source_map.select_links(q)


def test_tilt_rule(source_map):
    assert source_map.is_training("crate problems") is True
    assert source_map.is_training("my dog is limping") is False


# ---------------------------------------------------------------------------
# Minimal synthetic map
# ---------------------------------------------------------------------------

def test_shared_url_between_buckets_minimal():
    smap = parse_source_map(_minimal())
    assert smap.select_links("alpha and beta") == [
        "https://a.example/1", "https://shared.example/", "https://b.example/1",
    ]


def test_bucket_order_not_query_order():
    smap = parse_source_map(_minimal())
    assert smap.select_links("gamma then alpha")[:2] == ["https://a.example/1", "https://shared.example/"]


def test_health_fallback_cap():
    smap = parse_source_map(_minimal())
    assert smap.select_links("nothing here") == [
        "https://h.example/1", "https://h.example/2", "https://h.example/3",
    ]


def test_training_fallback_cap_and_lowercased_hints():
    smap = parse_source_map(_minimal())
    assert smap.tilt_hints == ("train", "sit")
    assert smap.select_links("TRAINING question") == ["https://t.example/1"]


def test_links_alias_accepted():
    data = _minimal()
    data["buckets"][0] = {"tag": "a", "keywords": ["alpha"], "links": ["https://a.example/1"]}
    smap = parse_source_map(data)
    assert smap.buckets[0].urls == ("https://a.example/1",)


def test_bare_list_fallback_gets_default_cap():
    data = _minimal()
    data["fallbacks"]["health"] = ["https://h.example/%d" % i for i in range(5)]
    smap = parse_source_map(data)
    assert smap.fallbacks[HEALTH].cap == 3
    assert len(smap.select_links("nothing")) == 3


def test_keywords_lowercased():
    data = _minimal()
    data["buckets"][0]["keywords"] = ["ALPHA"]
    smap = parse_source_map(data)
    assert smap.select_links("alpha") == ["https://a.example/1", "https://shared.example/"]


def test_padded_keyword_kept_verbatim():
    data = _minimal()
    data["buckets"][0]["keywords"] = [" KA "]
    smap = parse_source_map(data)
    assert smap.buckets[0].keywords == (" ka ",)
    assert smap.select_links("okay, what now") == [
        "https://h.example/1", "https://h.example/2", "https://h.example/3",
    ]
    assert smap.select_links("what is a ka score")[0] == "https://a.example/1"


def test_padded_tilt_hint_kept_verbatim():
    smap = parse_source_map(_minimal(tilt_hints=[" sit "]))
    assert smap.tilt_hints == (" sit ",)
    assert smap.is_training("my dog is sitting") is False
    assert smap.is_training("how do i teach sit to a puppy") is True
    assert smap.select_links("my dog is sitting")[0] == "https://h.example/1"


def test_padded_url_is_trimmed():
    data = _minimal()
    data["buckets"][0]["urls"] = ["  https://a.example/1 "]
    assert parse_source_map(data).buckets[0].urls == ("https://a.example/1",)


def test_module_level_select_links_with_explicit_map():
    smap = parse_source_map(_minimal())
    assert select_links("beta", smap) == ["https://shared.example/", "https://b.example/1"]


def test_snapshot_is_immutable():
    smap = parse_source_map(_minimal())
    with pytest.raises(TypeError):
        smap.fallbacks[TRAINING] = smap.fallbacks[HEALTH]


# ---------------------------------------------------------------------------
# Validation: every problem is fatal
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("bucket, message", [
    ({"keywords": ["x"], "urls": ["https://x.example/"]}, "missing 'tag'"),
    ({"tag": "x", "keywords": [], "urls": ["https://x.example/"]}, "no keywords"),
    ({"tag": "x", "keywords": ["x"], "urls": []}, "no urls"),
    ({"tag": "x", "keywords": ["x"]}, "no 'urls'"),
    ({"tag": "x", "keywords": ["x"], "urls": ["/relative"]}, "non-absolute"),
    ({"tag": "x", "keywords": ["", "y"], "urls": ["https://x.example/"]}, "blank"),
    ({"tag": "x", "keywords": "x", "urls": ["https://x.example/"]}, "must be a list"),
    ({"tag": "x", "keywords": ["x"], "urls": ["https://x.example/"], "domain": "grooming"}, "unknown domain"),
])
def test_bad_bucket_rejected(bucket, message):
    data = _minimal()
    data["buckets"].append(bucket)
    with pytest.raises(ConfigurationError, match=message):
        parse_source_map(data)


def test_duplicate_tags_rejected():
    data = _minimal()
    data["buckets"].append(dict(data["buckets"][0]))
    with pytest.raises(ConfigurationError, match="duplicate bucket tags: a"):
        parse_source_map(data)


def test_empty_fallback_pool_rejected():
    data = _minimal()
    data["fallbacks"]["training"] = {"urls": []}
    with pytest.raises(ConfigurationError, match="'training' is empty"):
        parse_source_map(data)


def test_missing_fallback_pool_rejected():
    data = _minimal()
    del data["fallbacks"]["health"]
    with pytest.raises(ConfigurationError, match="'health' is missing"):
        parse_source_map(data)


def test_unknown_fallback_domain_rejected():
    data = _minimal()
    data["fallbacks"]["grooming"] = ["https://g.example/"]
    with pytest.raises(ConfigurationError, match="unknown fallback domains"):
        parse_source_map(data)


@pytest.mark.parametrize("cap", [0, -1, "3", True])
def test_bad_cap_rejected(cap):
    data = _minimal()
    data["fallbacks"]["health"]["cap"] = cap
    with pytest.raises(ConfigurationError, match="cap"):
        parse_source_map(data)


def test_non_object_document_rejected():
    with pytest.raises(ConfigurationError):
        parse_source_map([])


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_source_map(tmp_path / "nope.json")


def test_load_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="could not read"):
        load_source_map(path)


def test_load_round_trip(tmp_path):
    path = tmp_path / "map.json"
    path.write_text(json.dumps(MINIMAL), encoding="utf-8")
    assert load_source_map(path) == load_source_map(path)
    assert load_source_map(path).version == "test"


def test_shipped_map_shape(source_map):
    tags = [b.tag for b in source_map.buckets]
    assert tags[0] == "emergency_poison"
    assert tags[-1] == "competition_basics"
    assert {b.domain for b in source_map.buckets} == {HEALTH, TRAINING}
    assert source_map.fallbacks[HEALTH].cap == 3
    assert source_map.fallbacks[TRAINING].cap == 3
