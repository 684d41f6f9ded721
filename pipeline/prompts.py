"""
Prompt templates for translation and proofreading.
"""

DEFAULT_TRANSLATION_INSTRUCTION = (
    "You are a professional translator. Maintain the tone, style, and formatting of the "
    "original text. Only return the translated text, without any explanations or "
    "additional commentary."
)

DEFAULT_PROOFREADING_INSTRUCTION = (
    "You are a linguistic expert in proof reading an original text vs the translated text. "
    "You are to understand the original content, and then review the translated content. "
    "You will then output a proof read version of the translated content (that only) in the "
    "format it's given, preserving the html and any kind of formatting given in the "
    "translated content"
)

PROPOSE_CHANGES_REQUEST = (
    "Step 1: List out all the changes that is required for this to be primarily 100% accurate "
    "to the original source and as fluent as possible in the translated text, into a JSON "
    "array format:\n"
    '[{"original":"original translated text in plain text", '
    '"changes":"proposed change to the translated text in plain text", '
    '"reason":"reason in English"}]\n'
    "You must output this in a valid JSON format only."
)

APPLY_CHANGES_REQUEST = (
    "Step 2: Now output the new translation only based on your proposed changes. "
    "Output only the translated content with the HTML structure intact."
)


def translation_prompt(language: str, text: str) -> str:
    return f"Translate to {language}. This is the text: {text}"


def proofread_context(language: str, source_text: str, translated_text: str) -> str:
    """Shared context for both proofreading steps."""
    return (
        f"Language: {language}\n\n"
        f"Original content:\n\n{source_text}\n\n"
        f"Translated content:\n\n{translated_text}"
    )


def propose_changes_prompt(language: str, source_text: str, translated_text: str) -> str:
    return f"{proofread_context(language, source_text, translated_text)}\n\n{PROPOSE_CHANGES_REQUEST}"
