# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   user_service      registration, login, account updates
#   profile_service   follow relation and public profiles
#   article_service   articles, tag links, favourites, listing and feed
#   comment_service   comments on an article
#   tag_service       tag lookup and the global tag list
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
