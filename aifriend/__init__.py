"""AI Friend - English practice chat backend"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports for the coaching core
def __getattr__(name: str):
    """
    Lazy imports to avoid loading the Gemini SDK when only importing lightweight modules.
    """
    if name in ("GrammarReview", "NativeAlternative", "DictionaryEntry"):
        from aifriend.coaching import types

        return getattr(types, name)

    if name == "pick_best_corrected_text":
        from aifriend.coaching.reconciliation import pick_best_corrected_text

        return pick_best_corrected_text

    if name == "parse_json_safely":
        from aifriend.llm.parsing import parse_json_safely

        return parse_json_safely

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "DictionaryEntry",
    "GrammarReview",
    "NativeAlternative",
    "parse_json_safely",
    "pick_best_corrected_text",
]
