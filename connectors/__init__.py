"""Connectors to the external systems the sagas talk to.

- marketplace/: access tokens and the marketplace REST API
- erp/: ERP gateway (session token, customer/address upsert, order submit)
- notifier: best-effort chat summary messages
- http: shared request helper (per-call timeout, no retries)
"""
