"""System prompt sections for transcript rewriting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..core.errors import RewriteError

if TYPE_CHECKING:
    from .base import RewriteProvider

MAIN_PROMPT_DEFAULT = """You are a dictation formatting assistant. Your task is to format transcribed speech.

## Core Rules
- Remove filler words (um, uh, err, erm, etc.)
- Use punctuation where appropriate
- Capitalize sentences properly
- Keep the original meaning and tone intact
- Do NOT add any new information or change the intent
- Do NOT condense or summarize; preserve the speaker's full expression
- Do NOT answer questions; if the speaker dictates a question, output the cleaned question
- Do NOT respond conversationally; you are a text processor, not an assistant
- Output ONLY the cleaned text, with no explanations, quotes or prefixes

### Example
Input: "um so basically I was like thinking we should uh you know update the readme file"
Output: "So basically, I was thinking we should update the readme file."

## Punctuation
Convert spoken punctuation to symbols:
- "comma" = ,
- "period" or "full stop" = .
- "question mark" = ?
- "exclamation point" or "exclamation mark" = !
- "colon" = :
- "semicolon" = ;
- "open parenthesis" = (
- "close parenthesis" = )

## New Line and Paragraph
- "new line" = Insert a line break
- "new paragraph" = Insert a blank line"""

ADVANCED_PROMPT_DEFAULT = """## Backtrack Corrections
When the speaker corrects themselves mid-sentence, keep only the corrected version:
- "actually": "at 2 actually 3" = "at 3"
- "scratch that": "cookies scratch that brownies" = "brownies"
- "wait" or "I mean": "on Monday wait Tuesday" = "on Tuesday"

## List Formats
When sequence words are detected ("one", "two", "three" or "first", "second", "third"),
format the items as a numbered list and capitalize each item.

Example:
"My goals are one finish the report two send the slides" =
"My goals are:
1. Finish the report
2. Send the slides\""""

DICTIONARY_PROMPT_DEFAULT = """## Personal Dictionary
Apply these corrections for technical terms, proper nouns and custom words.
Entries may be explicit mappings ("pie torch = PyTorch"), single terms to recognize,
or short natural-language notes. When you hear something that sounds like an entry,
use the entry's spelling.

### Entries:"""


@dataclass(frozen=True)
class PromptSections:
    """Toggleable prompt sections; each `*_custom` replaces its default text."""
    main_custom: Optional[str] = None
    advanced_enabled: bool = False
    advanced_custom: Optional[str] = None
    dictionary_enabled: bool = False
    dictionary_custom: Optional[str] = None
    dictionary_entries: tuple[str, ...] = ()

    @classmethod
    def all_enabled(cls) -> "PromptSections":
        return cls(advanced_enabled=True, dictionary_enabled=True)

    def main_prompt(self) -> str:
        return self.main_custom or MAIN_PROMPT_DEFAULT

    def advanced_prompt(self) -> str:
        return self.advanced_custom or ADVANCED_PROMPT_DEFAULT

    def dictionary_prompt(self) -> str:
        if self.dictionary_custom:
            return self.dictionary_custom
        return "\n".join([DICTIONARY_PROMPT_DEFAULT, *self.dictionary_entries])


def combine_prompt_sections(prompts: PromptSections) -> str:
    """Core rules first, then corrections/lists, then the dictionary."""
    parts = [prompts.main_prompt()]
    if prompts.advanced_enabled:
        parts.append(prompts.advanced_prompt())
    if prompts.dictionary_enabled:
        parts.append(prompts.dictionary_prompt())
    return "\n\n".join(parts)


async def format_text(provider: "RewriteProvider", transcript: str, prompts: PromptSections) -> str:
    """
    Rewrite a transcript with the configured prompt.

    Blank transcripts are returned untouched without calling the provider.

    Raises:
        RewriteError: provider failure or an empty completion.
    """
    if not transcript.strip():
        return transcript

    result = await provider.complete(combine_prompt_sections(prompts), transcript)
    result = result.strip()
    if not result:
        raise RewriteError(f"{provider.name} returned an empty completion")
    return result
