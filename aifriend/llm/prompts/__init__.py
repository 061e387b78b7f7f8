"""
Prompt Management Module

Loads the per-feature LLM prompts from text files next to this module.
Templates use ``str.format`` placeholders, so literal JSON braces in a
template are doubled.
"""

from __future__ import annotations

from pathlib import Path

# Get the prompts directory
PROMPTS_DIR = Path(__file__).parent

EMPTY_PLACEHOLDER = "(empty)"


class PromptLoader:
    """Load and cache prompt templates from files"""

    def __init__(self):
        self._cache = {}

    def load_prompt(self, prompt_name: str) -> str:
        """
        Load a prompt template from file.

        Args:
            prompt_name: Name of the prompt file (without .txt extension)

        Returns:
            Prompt template string
        """
        if prompt_name not in self._cache:
            prompt_path = PROMPTS_DIR / f"{prompt_name}.txt"

            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

            with open(prompt_path, encoding="utf-8") as f:
                self._cache[prompt_name] = f.read().strip()

        return self._cache[prompt_name]

    def render(self, prompt_name: str, **kwargs) -> str:
        """Load ``prompt_name`` and inject ``kwargs`` into its placeholders."""
        template = self.load_prompt(prompt_name)
        return template.format(**kwargs)

    def reload(self) -> None:
        """Clear cache and reload prompts from disk"""
        self._cache.clear()


# Global instance
_loader = PromptLoader()


def get_chat_system_prompt() -> str:
    return _loader.render("chat_system")


def get_grammar_prompt(text: str, *, strict: bool = False) -> str:
    """JSON grammar-review prompt; ``strict`` selects the terse retry wording."""
    name = "grammar_retry_strict" if strict else "grammar_primary"
    return _loader.render(name, text=text)


def get_grammar_plaintext_prompt(text: str) -> str:
    return _loader.render("grammar_plaintext", text=text)


def get_native_prepare_prompt(text: str) -> str:
    return _loader.render("native_prepare_source", text=text)


def get_native_json_prompt(text: str, source: str, *, mixed: bool) -> str:
    """
    First-tier native-alternatives prompt.

    Mixed Korean+English input gets its own wording that shows the model both
    the raw message and the prepared English intent.
    """
    if mixed:
        return _loader.render("native_primary_mixed", text=text, source=source)
    return _loader.render("native_primary", source=source)


def get_native_strict_prompt(source: str) -> str:
    return _loader.render("native_retry_strict", source=source)


def get_native_plaintext_prompt(source: str, *, mixed: bool) -> str:
    kind = "mixed Korean+English message" if mixed else "sentence"
    return _loader.render("native_plaintext", kind=kind, source=source)


def get_native_salvage_prompt(text: str) -> str:
    return _loader.render("native_salvage", text=text)


def get_memory_summary_prompt(
    *, current_summary: str, current_profile: str, history: str, max_chars: int
) -> str:
    return _loader.render(
        "memory_summary",
        current_summary=current_summary or EMPTY_PLACEHOLDER,
        current_profile=current_profile or EMPTY_PLACEHOLDER,
        history=history,
        max_chars=max_chars,
    )


def get_memory_summary_plaintext_prompt(
    *, current_summary: str, history: str, max_chars: int
) -> str:
    return _loader.render(
        "memory_summary_plaintext",
        current_summary=current_summary or EMPTY_PLACEHOLDER,
        history=history,
        max_chars=max_chars,
    )


def get_translate_prompt(text: str, target_lang: str) -> str:
    return _loader.render("translate", text=text, target_lang=target_lang)


def get_tts_prompt(text: str, style: str = "") -> str:
    """Spoken-style prompt: caller style instruction first, else the friendly default."""
    if style:
        return f"{style}\n\n{text}"
    return _loader.render("tts_default", text=text)


def get_proactive_message_prompt() -> str:
    return _loader.render("proactive_message")


def reload_prompts() -> None:
    """Reload all prompts from disk (convenience function)"""
    _loader.reload()
