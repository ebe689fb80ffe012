# ABOUTME: Canned Hardcover GraphQL response fixtures for testing.
# ABOUTME: Provides realistic `data` objects matching the catalog's response shapes.

DUNE_DOCUMENT = {
    "id": "312460",
    "title": "Dune",
    "alternative_titles": ["Dune (Dune Chronicles #1)"],
    "isbns": ["9780441172719", "0441172717"],
}

SEARCH_DUNE = {"search": {"results": {"found": 1, "hits": [{"document": DUNE_DOCUMENT}]}}}

# Typesense returns hits ordered by relevance; only the first is trusted.
SEARCH_WRONG_FIRST_HIT = {
    "search": {
        "results": {
            "found": 2,
            "hits": [
                {"document": {"id": "9001", "title": "Dune Messiah"}},
                {"document": DUNE_DOCUMENT},
            ],
        }
    }
}

SEARCH_NO_HITS = {"search": {"results": {"found": 0, "hits": []}}}

BOOKS_BY_TITLE_PIRANESI = {
    "books": [
        {"id": 77001, "title": "Piranesi: A Novel"},
        {"id": 77002, "title": "Piranesi"},
    ]
}

FIND_DUNE = {
    "books": [
        {
            "id": 312460,
            "title": "Dune",
            "slug": "dune",
            "default_physical_edition": {"isbn_13": "9780441172719", "isbn_10": "0441172717"},
        }
    ]
}

DUNE_TAGS = {
    "books": [
        {
            "id": 312460,
            "title": "Dune",
            "cached_tags": {
                "Genre": [{"tag": "Science Fiction"}, {"tag": "Classics"}],
                "Mood": [{"tag": "adventurous"}],
            },
        }
    ]
}

HYPERION = {
    "id": 1001,
    "title": "Hyperion",
    "slug": "hyperion",
    "rating": 4.2,
    "cached_contributors": [{"author": {"name": "Dan Simmons"}}],
    "cached_tags": {"Genre": [{"tag": "Science Fiction"}]},
    "default_physical_edition": {"isbn_13": "9780553283686", "isbn_10": None},
}

FOUNDATION = {
    "id": 1002,
    "title": "Foundation",
    "slug": "foundation",
    "rating": 3.1,
    "cached_contributors": [{"author": {"name": "Isaac Asimov"}}],
    "cached_tags": {"Genre": [{"tag": "Science Fiction"}, {"tag": "Classics"}]},
}

UNRATED = {
    "id": 1003,
    "title": "A Memory Called Empire",
    "slug": "a-memory-called-empire",
    "cached_contributors": [{"author": {"name": "Arkady Martine"}}],
}

DUNE_LISTS = {
    "list_books": [
        {
            "list": {
                "id": 501,
                "name": "Desert Planets",
                "slug": "desert-planets",
                "user": {"name": "Sam", "username": "sam"},
                "list_books": [{"book": HYPERION}, {"book": FOUNDATION}],
            }
        },
        {
            "list": {
                "id": 502,
                "name": "Space Operas",
                "slug": "space-operas",
                "user": {"name": None, "username": "reader42"},
                "list_books": [{"book": HYPERION}, {"book": UNRATED}],
            }
        },
    ]
}

WANT_TO_READ = {
    "me": [
        {
            "user_books": [
                {
                    "status_id": 1,
                    "book": {
                        "id": 4242,
                        "title": "The Left Hand of Darkness",
                        "slug": "the-left-hand-of-darkness",
                        "cached_contributors": [{"author": {"name": "Ursula K. Le Guin"}}],
                        "default_physical_edition": {
                            "isbn_13": "9780441478125",
                            "isbn_10": "0441478123",
                        },
                        "image": {"url": "https://assets.hardcover.app/4242.jpg"},
                    },
                },
                {
                    "status_id": 1,
                    "book": {"id": 4343, "title": "Gideon the Ninth", "slug": "gideon-the-ninth"},
                },
            ]
        }
    ]
}
