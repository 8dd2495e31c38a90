"""
Business logic for short links, redirects and click analytics.

Endpoints stay thin and delegate here; the click tracking pipeline
(queue, worker, enrichment) also lives in this package.
"""
