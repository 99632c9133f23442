"""System prompt composition for widget chat turns.

The tenant's stored system prompt is used as-is: persona, tone and guardrails are
expected to live in that text. The optional document context is appended after a
divider. No templating and no shared boilerplate are added here.
"""

DOCUMENT_DIVIDER = "\n\n---\n\n"


def compose_system_prompt(tenant) -> str:
    """Return tenant.system_prompt, followed by the divider and document_context when present."""
    prompt = tenant.system_prompt or ""
    document_context = tenant.document_context
    if document_context and document_context.strip():
        prompt += DOCUMENT_DIVIDER + document_context
    return prompt
