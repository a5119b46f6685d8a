from datetime import date

import pytest

from cinelog import catalog
from cinelog.errors import ValidationError
from cinelog.media import MOVIE, TV_SHOW


def _titles(result):
    return [item["title"] for item in result["items"]]


def test_combined_listing_merges_across_collections(make_movie, make_show):
    make_movie("Nine", vote_average=9.0)
    make_movie("Seven", vote_average=7.0)
    make_show("Eight", vote_average=8.0)

    result = catalog.search(sort_by="rating")

    assert [i["vote_average"] for i in result["items"]] == [9.0, 8.0, 7.0]
    assert [i["contentType"] for i in result["items"]] == ["movie", "tv", "movie"]
    assert result["totalMovies"] == 2
    assert result["totalTVShows"] == 1
    assert result["totalItems"] == 3


def test_merge_order_ignores_source_collection(make_movie, make_show):
    make_movie("Nine", vote_average=9.0)
    make_show("Seven", vote_average=7.0)
    make_movie("Eight", vote_average=8.0)

    result = catalog.search(sort_by="rating", order="desc")
    assert [i["vote_average"] for i in result["items"]] == [9.0, 8.0, 7.0]


def test_ascending_order(make_movie, make_show):
    make_movie("Nine", vote_average=9.0)
    make_show("Eight", vote_average=8.0)

    result = catalog.search(sort_by="rating", order="asc")
    assert _titles(result) == ["Eight", "Nine"]


def test_pagination_over_merged_results(make_movie, make_show):
    for title, pop in (("m50", 50), ("m40", 40), ("m30", 30)):
        make_movie(title, popularity=pop)
    for name, pop in (("s45", 45), ("s35", 35)):
        make_show(name, popularity=pop)

    first = catalog.search(page=1, limit=2)
    second = catalog.search(page=2, limit=2)
    third = catalog.search(page=3, limit=2)
    beyond = catalog.search(page=4, limit=2)

    assert _titles(first) == ["m50", "s45"]
    assert _titles(second) == ["m40", "s35"]
    assert _titles(third) == ["m30"]
    assert beyond["items"] == []
    assert first["totalPages"] == 3
    assert beyond["totalItems"] == 5


def test_single_type_listing(make_movie, make_show):
    make_movie("Film")
    make_show("Series")

    result = catalog.search(content_type="tv")

    assert _titles(result) == ["Series"]
    assert result["totalMovies"] == 0
    assert result["totalTVShows"] == 1


def test_adult_hidden_by_default(make_movie, make_account):
    make_movie("Family")
    make_movie("Late Night", adult=True)

    assert _titles(catalog.search()) == ["Family"]

    viewer = make_account(show_adult=True)
    assert sorted(_titles(catalog.search(viewer=viewer))) == ["Family", "Late Night"]


def test_explicit_adult_filter_beats_setting(make_movie, make_account):
    make_movie("Family")
    make_movie("Late Night", adult=True)
    viewer = make_account(show_adult=True)

    assert _titles(catalog.search({"adult": False}, viewer=viewer)) == ["Family"]
    assert _titles(catalog.search({"adult": True})) == ["Late Night"]


def test_title_sort_ignores_case(make_movie, make_show):
    make_movie("beta")
    make_show("Alpha")
    make_movie("Charlie")

    assert _titles(catalog.search(sort_by="title", order="asc")) == ["Alpha", "beta", "Charlie"]


def test_search_matches_title_and_overview(make_movie, make_show):
    make_movie("The Matrix")
    make_show("Dark", overview="A matrix of timelines")
    make_movie("Heat")

    result = catalog.search({"search": "MATRIX"})
    assert sorted(_titles(result)) == ["Dark", "The Matrix"]


def test_search_text_is_not_a_pattern(make_movie):
    make_movie("Anything")
    assert catalog.search({"search": ".*"})["items"] == []


def test_filters_by_year_genre_and_language(make_movie, make_show):
    make_movie("Old", release_date="1999-05-01", genre_names=["Drama"])
    make_movie("New", release_date="2021-05-01", genre_names=["Drama"], original_language="fr")
    make_show("Show", first_air_date="2021-02-02", genre_names=["Comedy"])

    assert sorted(_titles(catalog.search({"year": "2021"}))) == ["New", "Show"]
    assert _titles(catalog.search({"genre": "Drama", "year": 2021})) == ["New"]
    assert _titles(catalog.search({"original_language": "fr"})) == ["New"]


def test_rating_range(make_movie):
    make_movie("Low", vote_average=3.0)
    make_movie("Mid", vote_average=6.0)
    make_movie("High", vote_average=9.0)

    result = catalog.search({"min_rating": 5, "max_rating": 8})
    assert _titles(result) == ["Mid"]


def test_country_filter_excludes_movies(make_movie, make_show):
    make_movie("Film")
    make_show("Local", origin_country=["US"])
    make_show("Foreign", origin_country=["DE"])

    result = catalog.search({"country": "US"})

    assert _titles(result) == ["Local"]
    assert result["totalMovies"] == 0


def test_quick_filter_upcoming(make_movie, make_show):
    make_movie("Released", release_date="2020-01-01")
    make_movie("Later", release_date="2031-01-01")
    make_show("Soon", first_air_date="2030-06-01")

    result = catalog.search({"filter": "upcoming"}, today=date(2026, 1, 1))
    assert _titles(result) == ["Soon", "Later"]


def test_quick_filter_top_rated_needs_votes(make_movie):
    make_movie("Obscure", vote_average=10.0, vote_count=3)
    make_movie("Known", vote_average=8.0, vote_count=500)

    assert _titles(catalog.search({"filter": "top_rated"})) == ["Known"]


def test_user_rating_sort_uses_review_average(make_movie):
    make_movie("Critics", vote_average=9.0, average_rating=2.0)
    make_movie("Audience", vote_average=5.0, average_rating=4.5)

    assert _titles(catalog.search(sort_by="user_rating")) == ["Audience", "Critics"]


@pytest.mark.parametrize("kwargs", [
    {"sort_by": "budget"},
    {"order": "sideways"},
    {"content_type": "podcast"},
    {"page": 0},
    {"limit": 0},
    {"filters": {"filter": "trending"}},
])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValidationError):
        catalog.search(**kwargs)


def test_build_query_uses_variant_fields():
    query, sort = catalog.build_query(TV_SHOW, {"year": "2020", "search": "x"}, sort_by="release_date", order="asc")

    assert "first_air_date" in query
    assert {"name", "original_name", "overview"} == {next(iter(c)) for c in query["$or"]}
    assert sort == ("date", 1)


def test_build_query_skips_movies_for_country():
    query, _ = catalog.build_query(MOVIE, {"country": "US"})
    assert query is None


def test_facets(make_movie, make_show):
    make_movie("A", release_date="2001-01-01", genre_names=["Drama", "Crime"], original_language="en", vote_average=6.0)
    make_movie("B", release_date="2005-01-01", genre_names=["Drama"], original_language="fr", vote_average=8.0)
    make_show("C", first_air_date="2005-03-03", genre_names=["Comedy"], original_language="en", vote_average=7.0)

    result = catalog.facets(today=date(2026, 1, 1))

    assert result["years"] == [2005, 2001]
    assert result["genres"][0] == {"name": "Drama", "count": 2}
    assert {l["code"] for l in result["languages"]} == {"en", "fr"}
    assert result["ratings"]["min"] == 6.0
    assert result["ratings"]["max"] == 8.0
    assert [c["count"] for c in result["contentTypes"]] == [2, 1]


def test_facets_on_empty_catalog():
    result = catalog.facets()
    assert result["years"] == []
    assert result["genres"] == []
    assert result["contentTypes"][0]["count"] == 0


def test_title_sort_ignores_case_for_single_type(make_movie):
    make_movie("beta")
    make_movie("Alpha")
    make_movie("Charlie")

    assert _titles(catalog.search(sort_by="title", order="asc", content_type="movie")) == ["Alpha", "beta", "Charlie"]
    assert _titles(catalog.search(sort_by="title", order="asc", content_type="movie", page=2, limit=2)) == ["Charlie"]


def test_facets_popularity_ranges(make_movie, make_show):
    make_movie("Niche", popularity=50.0)
    make_movie("Hit", popularity=750.0)
    make_show("Phenomenon", popularity=1500.0)

    result = catalog.facets()

    ranges = {r["label"]: r for r in result["popularity"]["ranges"]}
    assert [r["count"] for r in result["popularity"]["ranges"]] == [1, 0, 1, 1]
    assert ranges["Very High"]["max"] is None
    assert result["ratings"]["popular"] == [7, 8, 9]


def test_filter_stats_years(make_movie, make_show):
    make_movie("A", release_date="2001-01-01")
    make_movie("B", release_date="2005-06-01")
    make_show("C", first_air_date="2005-03-03")
    make_movie("D", release_date="unknown")

    result = catalog.filter_stats("years")

    assert result["filterType"] == "years"
    assert result["stats"] == [{"year": 2005, "count": 2}, {"year": 2001, "count": 1}]


def test_filter_stats_genres(make_movie, make_show):
    make_movie("A", genre_names=["Drama", "Crime"], vote_average=6.0, popularity=10.0)
    make_movie("B", genre_names=["Drama"], vote_average=7.5, popularity=21.0)
    make_show("C", genre_names=["Comedy"], vote_average=8.0, popularity=5.0)

    stats = catalog.filter_stats("genres")["stats"]

    assert stats[0] == {"genre": "Drama", "count": 2, "avgRating": 6.8, "avgPopularity": 16}
    assert [s["genre"] for s in stats[1:]] == ["Comedy", "Crime"]


def test_filter_stats_unknown_type():
    with pytest.raises(ValidationError):
        catalog.filter_stats("languages")


def test_filter_stats_empty_catalog():
    assert catalog.filter_stats("genres") == {"filterType": "genres", "stats": []}
