"""
Gripp Mirror

Mirrors entity collections from the Gripp project-management API into a
local SQLite store and derives time-accounting metrics from it:
- Rate-limited, retrying upstream client
- Transactional full/windowed sync per entity type
- Tiered cache in front of expensive reads
- Contract, holiday, leave and written hours per employee per week or month
"""

__version__ = "1.0.0"
