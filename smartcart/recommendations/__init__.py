"""
Cart recommendation engine.

Responsibilities:
- Collect raw suggestions from independent signal sources (AI advisor,
  trending, similarity, time/season context, pairing rules).
- Substitute deterministic fallback rules when the advisor has nothing to say.
- Blend, de-duplicate and rank suggestions against the current cart.
- Return structured recommendations ready for API serialisation.
"""
