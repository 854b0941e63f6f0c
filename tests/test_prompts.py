from codereview.prompts import SYSTEM_PROMPT, format_follow_up_prompt, format_initial_prompt


def test_system_prompt_sections():
    for section in ("**Summary**", "**Issues Found**", "**Suggestions**", "**Positive Notes**"):
        assert section in SYSTEM_PROMPT


def test_initial_prompt_fences_code():
    prompt = format_initial_prompt("def f(): pass", "python")
    assert prompt.startswith("Please review the following python code:")
    assert "```python\ndef f(): pass\n```" in prompt
    assert "Additional context" not in prompt
    assert prompt.endswith("following the format specified in your system prompt.")


def test_initial_prompt_with_context():
    prompt = format_initial_prompt("x", "go", context="hot path in the scheduler")
    assert "\nAdditional context: hot path in the scheduler\n" in prompt
    assert prompt.index("```go") < prompt.index("Additional context")


def test_follow_up_prompt():
    prompt = format_follow_up_prompt("Missing null check on line 3.", "let y = 2;", "javascript")
    assert prompt.startswith("Based on your previous review:\n\nMissing null check on line 3.\n\n")
    assert "```javascript\nlet y = 2;\n```" in prompt
    assert "previous issues were addressed" in prompt
