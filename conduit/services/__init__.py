# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain concern:
#
#   article_service: listing filters, slug lookup, create/update/delete
#   favorite_service: favorites membership + favorites_count bookkeeping
#   user_service: registration, login, self-service updates
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``conduit.exceptions``
# errors rather than returned as None.
