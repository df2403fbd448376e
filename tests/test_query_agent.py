import pytest

from querybot.agents.query_agent import (
    CONVERSATIONAL_SUMMARY_SYSTEM,
    SQL_SYSTEM_PROMPT,
    STRICT_SUMMARY_SYSTEM,
    LLMTextGenerator,
    clean_generated_sql,
    format_rows,
)
from querybot.core.errors import GenerationDegraded
from querybot.llm import chat_client
from querybot.llm.chat_client import ChatCompletionsLLM


class FakeLLM:
    """Stands in for ChatCompletionsLLM.invoke."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def invoke(self, prompt, **kwargs):
        self.calls.append((prompt, kwargs))
        return self.reply


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("```sql\nSELECT a FROM t;\n```", "SELECT a FROM t"),
        ("\ufeffSELECT a FROM t", "SELECT a FROM t"),
        ("  SELECT a FROM t ;; ", "SELECT a FROM t"),
        ("", ""),
    ],
)
def test_clean_generated_sql(raw, expected):
    assert clean_generated_sql(raw) == expected


def test_format_rows():
    assert format_rows([]) == "[no rows returned]"
    assert format_rows([{"a": 1, "b": "x"}]) == "Row 1: a=1, b=x\n"


def test_without_llm_no_sql_is_generated():
    generator = LLMTextGenerator(llm=None)
    assert generator.generate_sql("ctx", "sales", ["amount"]) is None


def test_without_llm_summary_counts_rows():
    generator = LLMTextGenerator(llm=None)
    assert generator.generate_summary("q", "t", [], "", "(no rows)", False) == "No rows found."
    assert generator.generate_summary("q", "t", [{"a": 1}, {"a": 2}], "", "", False) == "Found 2 matching rows."


def test_generate_sql_sends_context_and_columns():
    llm = FakeLLM("```sql\nSELECT amount FROM sales ORDER BY amount DESC LIMIT 1\n```")
    sql = LLMTextGenerator(llm=llm).generate_sql("Table name: sales\n", "sales", ["product", "amount"])

    assert sql == "SELECT amount FROM sales ORDER BY amount DESC LIMIT 1"
    prompt, kwargs = llm.calls[0]
    assert prompt.startswith("Table name: sales\n")
    assert "Available columns: product, amount" in prompt
    assert kwargs["system"] == SQL_SYSTEM_PROMPT


def test_summary_prompt_switches_on_conversational_flag():
    llm = FakeLLM("The laptop is the priciest item at 1200.")
    generator = LLMTextGenerator(llm=llm)
    rows = [{"product": "Laptop", "amount": 1200}]

    generator.generate_summary("most expensive", "sales", rows, "user: hi\n", "ROW1: product=Laptop", False)
    generator.generate_summary("is it overpriced?", "sales", rows, "", "ROW1: product=Laptop", True)

    strict_prompt, strict_kwargs = llm.calls[0]
    assert strict_kwargs["system"] == STRICT_SUMMARY_SYSTEM
    assert "Rows returned (1):\nRow 1: product=Laptop, amount=1200" in strict_prompt
    assert "Facts: ROW1: product=Laptop" in strict_prompt
    assert llm.calls[1][1]["system"] == CONVERSATIONAL_SUMMARY_SYSTEM


def test_empty_summary_is_degraded():
    with pytest.raises(GenerationDegraded):
        LLMTextGenerator(llm=FakeLLM("  ")).generate_summary("q", "t", [], "", "", False)


def test_chat_llm_posts_system_and_user_messages(monkeypatch):
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured.update(url=url, json=json, headers=headers, timeout=timeout)
        return FakeResponse(200, {"choices": [{"message": {"content": " SELECT 1 "}}]})

    monkeypatch.setattr(chat_client.requests, "post", fake_post)
    llm = ChatCompletionsLLM(api_key="k", api_url="http://llm.local/v1/chat/completions", timeout=5)

    assert llm.invoke("question", system="be strict", max_tokens=300) == "SELECT 1"
    assert captured["url"] == "http://llm.local/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer k"
    assert captured["timeout"] == 5
    assert captured["json"]["max_tokens"] == 300
    assert captured["json"]["messages"] == [
        {"role": "system", "content": "be strict"},
        {"role": "user", "content": "question"},
    ]


def test_chat_llm_raises_on_http_error(monkeypatch):
    monkeypatch.setattr(
        chat_client.requests, "post", lambda *a, **kw: FakeResponse(500, text="upstream error")
    )
    llm = ChatCompletionsLLM(api_key="k")
    with pytest.raises(RuntimeError, match="500"):
        llm.invoke("question")


def test_chat_llm_requires_api_key():
    with pytest.raises(ValueError):
        ChatCompletionsLLM(api_key=None).invoke("question")


def test_factory_returns_none_without_provider(monkeypatch):
    monkeypatch.setattr(chat_client.settings, "LLM_PROVIDER", "none")
    assert chat_client.get_chat_llm() is None
