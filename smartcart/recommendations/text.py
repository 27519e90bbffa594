from __future__ import annotations


def fold(text: str | None) -> str:
    """Lower-case *text* for keyword matching.

    ``str.lower`` turns the Turkish dotted capital "İ" into "i" plus a combining
    dot, which then fails to match plain "i" in keywords such as "içecek".
    """
    return (text or "").replace("İ", "i").lower()
