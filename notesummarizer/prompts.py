"""Prompt builders for the summary call.

``build_prompt`` returns the system instruction and the user-prompt prefix;
the caller appends the extracted paper text with ``build_user_content``.
Both functions are pure: the same inputs always give the same strings.
"""

from notesummarizer.models import Style

SYSTEM_INSTRUCTION = (
    "You are an AI assistant for summarizing academic publications. "
    "You answer with a perfect summary of the given text. "
    "You do not add unnecessary filler, you just answer with the summary.\n"
)

STRUCTURED_DIRECTIVE = (
    "Don't start with a title etc. Please format the output in markdown style.\n"
)

PROMPT_TEMPLATE = (
    "Please summarize the following paper by focusing on the key findings and "
    "main arguments. Limit the summary to 150 words and present it in a clear, "
    "format. Do not include introductory phrases like 'The summary is...' or "
    "any unnecessary filler. Title: {title}"
)


def build_prompt(title: str, style: Style) -> tuple[str, str]:
    """Return ``(system_instruction, prompt_prefix)`` for one paper.

    For ``Style.STRUCTURED`` the system instruction also asks the model to skip
    the title line and answer in markdown, matching the note section the
    merger writes.
    """
    system_instruction = SYSTEM_INSTRUCTION
    if style is Style.STRUCTURED:
        system_instruction += STRUCTURED_DIRECTIVE
    return system_instruction, PROMPT_TEMPLATE.format(title=title)


def build_user_content(prompt_prefix: str, paper_text: str) -> str:
    """Append the paper text to the prompt prefix.

    A blank line keeps the title from running into the first extracted line.
    With no text (unreadable PDF) the model gets the title alone.
    """
    if not paper_text:
        return prompt_prefix
    return f"{prompt_prefix}\n\n{paper_text}"
