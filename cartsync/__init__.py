"""
cartsync - client-side shopping cart kept in sync with a remote cart API.

Modules:
- cart: models, sanitizer, snapshot storage, remote client, sync engine
- catalog: product-page helpers over the read-only catalog
- services: money helpers and user notifications
- db: Upstash Redis client for shared snapshots
- errors, config, logging

Note: `db` is imported lazily; only Redis-backed storage needs it.
"""

__version__ = "0.1.0"
