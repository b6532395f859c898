"""
Utils package.

- Dates handled by the engine are calendar dates (`datetime.date`); raw input
  may carry ISO strings, epoch milliseconds or datetime objects.
- Timestamps on stored records are epoch milliseconds (UTC).
"""
