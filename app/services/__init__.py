# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single concern:
#
#   user_service      — registration, login, account edits, profile lookup
#   relation_service  — favorites/following sets and the favorites counter
#   article_service   — article CRUD, listing, feed and the tag index
#   comment_service   — comment creation, listing and author-only deletion
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
