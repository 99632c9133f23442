"""Tests for tenant system prompt composition."""

from types import SimpleNamespace

from app.ai.prompts import DOCUMENT_DIVIDER, compose_system_prompt


def _tenant(system_prompt="You are Bean, the Sunrise Coffee assistant.", document_context=None):
    return SimpleNamespace(system_prompt=system_prompt, document_context=document_context)


def test_prompt_is_tenant_text_verbatim():
    assert compose_system_prompt(_tenant()) == "You are Bean, the Sunrise Coffee assistant."


def test_document_context_appended_after_divider():
    prompt = compose_system_prompt(_tenant(document_context="Hours: 7am-6pm"))

    assert prompt == "You are Bean, the Sunrise Coffee assistant." + DOCUMENT_DIVIDER + "Hours: 7am-6pm"
    assert DOCUMENT_DIVIDER == "\n\n---\n\n"


def test_blank_document_context_is_ignored():
    assert compose_system_prompt(_tenant(document_context="   \n")) == "You are Bean, the Sunrise Coffee assistant."


def test_no_placeholder_substitution():
    prompt = compose_system_prompt(_tenant(system_prompt="Hi, I am {bot_name} from {business_name}."))
    assert prompt == "Hi, I am {bot_name} from {business_name}."
