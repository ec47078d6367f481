"""
Algolia-compatible search over Postgres full-text indexes.

Modules, leaves first:
- numeric, facet_filters, filters: filter grammars and their WHERE fragment
- facets, highlight, pagination, sort: the other statement fragments
- models, validation, request: payload validation into SearchRequest
- compiler, reshaper: statement assembly and response building
- handler: batch execution against an injected connection pool
"""
