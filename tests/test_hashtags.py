from fitspo.hashtags import extract_hashtags


def test_extracts_lowercased_unique_tags():
    assert extract_hashtags("#OOTD today #ootd #Vintage") == ["ootd", "vintage"]


def test_ignores_tags_glued_to_words():
    assert extract_hashtags("email me@x#nope or #yes") == ["yes"]


def test_no_tags():
    assert extract_hashtags("just a caption") == []
