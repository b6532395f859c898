"""
Subscription detection engine.

Classifies recurring merchant charges in a user's transaction history and
ranks them as subscription candidates with a frequency, an estimated monthly
cost and a confidence score.
"""

__version__ = "0.1.0"
