"""
Cart layer.

Responsibilities:
- Hold the session cart behind a small add/read interface.
- Apply a chosen recommendation to the cart exactly once.
- Tell interested observers when the cart changed.
"""
