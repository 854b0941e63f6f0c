"""
Prompt templates for initial and follow-up code reviews.
"""

from typing import Optional

from codereview.constants import SYSTEM_PROMPT

__all__ = ["SYSTEM_PROMPT", "format_initial_prompt", "format_follow_up_prompt"]


def format_initial_prompt(code: str, language: str, context: Optional[str] = None) -> str:
    """Build the user message for the first review in a session."""
    prompt = f"Please review the following {language} code:\n\n```{language}\n{code}\n```\n"

    if context:
        prompt += f"\nAdditional context: {context}\n"

    prompt += "\nProvide a comprehensive code review following the format specified in your system prompt."

    return prompt


def format_follow_up_prompt(previous_review: str, new_code: str, language: str) -> str:
    """
    Build the user message for a review that follows up on an earlier one.

    Args:
        previous_review: Review text of the most recent entry in the session.
        new_code: The updated code submitted by the caller.
        language: Language label used for the code fence.
    """
    return (
        f"Based on your previous review:\n\n{previous_review}\n\n"
        f"The code has been updated to:\n\n```{language}\n{new_code}\n```\n\n"
        "Please review the changes and confirm if the previous issues were addressed "
        "or if new issues have been introduced."
    )
