"""PlayerValue-Pro core source package.

Components of the valuation crawler:
- browser: shared Chromium session ownership (SessionManager)
- resource_filter: per-page request interception policy
- extractor: per-item navigate / wait / extract pipeline
- pool: bounded-concurrency task pool with exclusion handling
- aggregator: completion-ordered outcome collection
- writer: idempotent batch upserts into the price collection
- query: season-scoped player search over the report collection
- campaign: end-to-end wiring of search, extraction and write-back
- reporter: Excel and Plotly campaign reports
"""

__version__ = "1.0.0"
