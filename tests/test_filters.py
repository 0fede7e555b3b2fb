from itertools import product

import pytest
from pydantic import ValidationError

from app import crud
from app.auth import register
from app.filters import MovieFilter, build_movie_query
from app.schemas import MovieIn

DEFAULT_COVER = "https://example.com/cover.jpg"

OWN_MOVIES = [
    ("Alpha", 1999, ["Drama"], 7.0),
    ("Beta", 2010, ["Action"], 9.0),
    ("Gamma Ray", 2003, ["Sci-Fi", "Action"], 6.5),
    ("delta_force", 1986, ["Action", "Thriller"], 5.0),
]
OTHER_MOVIES = [
    ("Alpha Prime", 2010, ["Action"], 9.5),
]


def add_movie(db_session, user, name, year, genres, rating):
    movie_in = MovieIn(
        name=name,
        description=f"{name} is a movie worth keeping.",
        year=year,
        genres=genres,
        rating=rating,
    )
    return crud.create_movie(db_session, movie_in, user, DEFAULT_COVER)


@pytest.fixture()
def owner(db_session):
    user_id = register(db_session, "Alice", "alice@example.com", "secret123")
    user = crud.get_user_by_id(db_session, user_id)
    for row in OWN_MOVIES:
        add_movie(db_session, user, *row)
    return user


@pytest.fixture()
def stranger(db_session):
    user_id = register(db_session, "Bob", "bob@example.com", "secret123")
    user = crud.get_user_by_id(db_session, user_id)
    for row in OTHER_MOVIES:
        add_movie(db_session, user, *row)
    return user


def names(movies):
    return [movie.name for movie in movies]


def search(db_session, user, **criteria):
    return names(crud.list_movies(db_session, user, MovieFilter(**criteria)))


def test_concrete_scenario(db_session):
    user_id = register(db_session, "A", "a@example.com", "secret123")
    user = crud.get_user_by_id(db_session, user_id)
    add_movie(db_session, user, "Alpha", 1999, ["Drama"], 7.0)
    add_movie(db_session, user, "Beta", 2010, ["Action"], 9.0)

    assert search(db_session, user, genre="Action", minRating="8") == ["Beta"]
    assert search(db_session, user, minYear="2000", maxYear="2005") == []


def test_unfiltered_list_is_owner_scoped_newest_first(db_session, owner, stranger):
    assert names(crud.list_movies(db_session, owner)) == [
        "delta_force",
        "Gamma Ray",
        "Beta",
        "Alpha",
    ]
    assert names(crud.list_movies(db_session, stranger)) == ["Alpha Prime"]


def test_name_is_case_insensitive_substring(db_session, owner, stranger):
    assert search(db_session, owner, name="ALP") == ["Alpha"]
    assert search(db_session, owner, name="ray") == ["Gamma Ray"]
    assert search(db_session, stranger, name="alpha") == ["Alpha Prime"]


def test_name_wildcards_match_literally(db_session, owner):
    assert search(db_session, owner, name="%") == []
    assert search(db_session, owner, name="a_f") == ["delta_force"]
    assert search(db_session, owner, name="l_h") == []


def test_genre_matches_any_of_the_movie_genres(db_session, owner):
    assert search(db_session, owner, genre="Action") == [
        "delta_force",
        "Gamma Ray",
        "Beta",
    ]
    assert search(db_session, owner, genre="Sci-Fi") == ["Gamma Ray"]
    assert search(db_session, owner, genre="Horror") == []


def test_any_genre_and_blank_values_impose_nothing(db_session, owner):
    everything = names(crud.list_movies(db_session, owner))
    assert (
        search(
            db_session,
            owner,
            name="  ",
            genre="all",
            minYear="",
            maxYear="",
            minRating="",
            maxRating="",
        )
        == everything
    )


def test_inclusive_bounds(db_session, owner):
    assert search(db_session, owner, minYear="2003", maxYear="2010") == [
        "Gamma Ray",
        "Beta",
    ]
    assert search(db_session, owner, minRating="7", maxRating="9") == [
        "Beta",
        "Alpha",
    ]
    assert search(db_session, owner, maxYear="1999") == ["delta_force", "Alpha"]


def test_inverted_bounds_give_empty_result(db_session, owner):
    assert search(db_session, owner, minYear="2010", maxYear="1990") == []
    assert search(db_session, owner, minRating="9", maxRating="2") == []


def test_every_combination_matches_hand_filter(db_session, owner, stranger):
    name_options = [None, "a", "BETA"]
    genre_options = [None, "Action", "Drama"]
    year_options = [(None, None), (2000, None), (None, 2003), (2005, 1990)]
    rating_options = [(None, None), (6.5, None), (None, 7.0), (8.0, 9.0)]

    for name, genre, (min_year, max_year), (min_rating, max_rating) in product(
        name_options, genre_options, year_options, rating_options
    ):
        expected = [
            row[0]
            for row in reversed(OWN_MOVIES)
            if (name is None or name.lower() in row[0].lower())
            and (genre is None or genre in row[2])
            and (min_year is None or row[1] >= min_year)
            and (max_year is None or row[1] <= max_year)
            and (min_rating is None or row[3] >= min_rating)
            and (max_rating is None or row[3] <= max_rating)
        ]
        criteria = MovieFilter(
            name=name,
            genre=genre,
            min_year=min_year,
            max_year=max_year,
            min_rating=min_rating,
            max_rating=max_rating,
        )
        assert names(crud.list_movies(db_session, owner, criteria)) == expected


def test_builder_is_pure():
    criteria = MovieFilter(name="alp", genre="Drama", minYear="1990", maxRating="8")
    first = build_movie_query(7, criteria)
    second = build_movie_query(7, criteria)
    assert str(first) == str(second)
    assert first.compile().params == second.compile().params
    assert first.compile().params != build_movie_query(8, criteria).compile().params


def test_filter_parses_form_values():
    criteria = MovieFilter(
        name=" Alpha ", genre="all", minYear="1999", maxRating="8.5"
    )
    assert criteria.name == "Alpha"
    assert criteria.genre is None
    assert criteria.min_year == 1999
    assert criteria.max_rating == 8.5
    assert criteria.echo()["genre"] == "all"
    assert criteria.echo()["minYear"] == 1999


def test_unknown_genre_matches_nothing(db_session, owner):
    assert MovieFilter(genre="Western").genre == "Western"
    assert search(db_session, owner, genre="Western") == []
    assert search(db_session, owner, genre="action") == []


def test_filter_rejects_bad_numbers():
    with pytest.raises(ValidationError):
        MovieFilter(minYear="nineteen")
    with pytest.raises(ValidationError):
        MovieFilter(maxRating="high")
