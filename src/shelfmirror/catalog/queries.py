# ABOUTME: GraphQL documents sent to the Hardcover API.
# ABOUTME: Book lookups, list neighbourhoods, list pushes, and want-to-read shelf access.

BOOK_FIELDS = """
    id
    title
    slug
    rating
    ratings_count
    users_count
    cached_contributors
    cached_tags
    contributions(where: { contributable_type: { _eq: "Book" } }) {
      author { id name slug }
    }
    image { url }
    default_physical_edition { isbn_13 isbn_10 }
    default_ebook_edition { isbn_13 isbn_10 }
"""

SEARCH_BY_ISBN = """
query SearchByIsbn($query: String!) {
  search(query: $query, query_type: "isbns", per_page: 5, page: 1) {
    results
  }
}
"""

BOOKS_BY_TITLE = """
query BooksByTitle($title: String!) {
  books(where: { title: { _ilike: $title } }, limit: 5) {
    id
    title
  }
}
"""

FIND_BOOK_BY_ISBN = f"""
query FindBookByIsbn($isbn: String!) {{
  books(
    where: {{ _or: [
      {{ default_physical_edition: {{ isbn_13: {{ _eq: $isbn }} }} }},
      {{ default_physical_edition: {{ isbn_10: {{ _eq: $isbn }} }} }},
      {{ default_ebook_edition: {{ isbn_13: {{ _eq: $isbn }} }} }},
      {{ default_ebook_edition: {{ isbn_10: {{ _eq: $isbn }} }} }}
    ] }}
    limit: 5
    order_by: {{ users_count: desc }}
  ) {{
    {BOOK_FIELDS}
  }}
}}
"""

FIND_BOOK_BY_TITLE = f"""
query FindBookByTitle($pattern: String!, $title: String!) {{
  books(
    where: {{ _or: [{{ title: {{ _ilike: $pattern }} }}, {{ title: {{ _eq: $title }} }}] }}
    limit: 5
    order_by: {{ users_count: desc }}
  ) {{
    {BOOK_FIELDS}
  }}
}}
"""

BOOK_TAGS = """
query BookTags($id: Int!) {
  books(where: { id: { _eq: $id } }, limit: 1) {
    id
    title
    cached_tags
  }
}
"""

LISTS_CONTAINING_BOOK = f"""
query ListsContainingBook($id: Int!, $listLimit: Int!, $itemLimit: Int!) {{
  list_books(
    where: {{ book_id: {{ _eq: $id }} }}
    limit: $listLimit
    order_by: {{ created_at: desc }}
  ) {{
    list {{
      id
      name
      slug
      user {{ name username }}
      list_books(where: {{ book_id: {{ _neq: $id }} }}, limit: $itemLimit) {{
        book {{
          {BOOK_FIELDS}
        }}
      }}
    }}
  }}
}}
"""

INSERT_LIST_BOOK = """
mutation AddBookToList($bookId: Int!, $listId: Int!) {
  insert_list_book(object: { book_id: $bookId, list_id: $listId }) {
    id
  }
}
"""

_WANT_BOOK_FIELDS = """
      id
      title
      slug
      rating
      ratings_count
      users_count
      default_physical_edition { isbn_13 isbn_10 }
      default_ebook_edition { isbn_13 isbn_10 }
      cached_contributors
      image { url }
"""

# The user-book relation has been exposed under both names; both are tried.
WANT_TO_READ = tuple(
    f"""
query WantToRead {{
  me {{
    {relation}(where: {{ status_id: {{ _eq: 1 }} }}, order_by: {{ date_added: desc }}) {{
      status_id
      book {{
        {_WANT_BOOK_FIELDS}
      }}
    }}
  }}
}}
"""
    for relation in ("user_books", "user_book")
)

SET_USER_BOOK_STATUS = """
mutation SetUserBookStatus($bookId: Int!, $statusId: Int!) {
  insert_user_book(object: { book_id: $bookId, status_id: $statusId }) {
    id
    error
  }
}
"""
