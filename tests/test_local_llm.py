import pytest

from islandsim.local_llm import LocalLLMError, build_options, call_ollama_chat


@pytest.mark.asyncio
async def test_call_ollama_chat_builds_payload(monkeypatch):
    captured: dict[str, object] = {}

    def fake_request(payload, base_url, timeout):
        captured["payload"] = payload
        captured["base_url"] = base_url
        captured["timeout"] = timeout
        return '{"tool_calls": []}'

    monkeypatch.setattr("islandsim.local_llm._perform_ollama_request", fake_request)

    result = await call_ollama_chat(
        system_prompt="System context",
        user_prompt="User payload",
        llm_model="llama3.1",
        base_url="http://localhost:11434/",
        timeout=30,
        options={"temperature": 0.3, "max_tokens": 128},
    )

    assert result == '{"tool_calls": []}'
    payload = captured["payload"]
    assert payload["model"] == "llama3.1"
    assert payload["stream"] is False
    assert payload["format"] == "json"
    assert payload["messages"][0] == {"role": "system", "content": "System context"}
    assert payload["messages"][1] == {"role": "user", "content": "User payload"}
    assert payload["options"] == {"temperature": 0.3, "num_predict": 128}
    assert captured["base_url"] == "http://localhost:11434"
    assert captured["timeout"] == 30


@pytest.mark.asyncio
async def test_call_ollama_chat_omits_empty_sections(monkeypatch):
    captured: dict[str, object] = {}

    def fake_request(payload, base_url, timeout):
        captured["payload"] = payload
        return "{}"

    monkeypatch.setattr("islandsim.local_llm._perform_ollama_request", fake_request)

    await call_ollama_chat(
        system_prompt="   ",
        user_prompt="Only the user",
        llm_model="llama3.1",
        base_url="http://localhost:11434",
        json_format=False,
    )

    payload = captured["payload"]
    assert payload["messages"] == [{"role": "user", "content": "Only the user"}]
    assert "format" not in payload
    assert "options" not in payload


@pytest.mark.asyncio
async def test_call_ollama_chat_rejects_empty_user_prompt():
    with pytest.raises(LocalLLMError):
        await call_ollama_chat(system_prompt="System", user_prompt="  ", llm_model="llama3.1")


def test_build_options_drops_none_and_renames_token_budget():
    assert build_options(None) == {}
    assert build_options({"temperature": None, "max_tokens": 10}) == {"num_predict": 10}
