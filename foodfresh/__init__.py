"""
FoodFresh - food freshness assessment from photos.

Structure:
- domain/: Freshness models, request building, response interpretation
- infrastructure/: Inference clients, image acquisition, scheduling, config
- application/: Analysis session workflow (state machine)
- metrics/: In-memory counters and histograms
- tests/: Unit test suite
"""

__version__ = "1.0.0"
