"""
Unit Tests for FakeProvider, BaseProvider helpers and ProviderFactory
"""

import pytest

from iris.core.config.constants import TASK_SYSTEM_PROMPTS, UpstreamKind
from iris.core.exceptions import ConfigurationError, UpstreamRejectedError
from iris.models.query import QueryRequest
from iris.providers import BaseProvider, FakeProvider, ProviderFactory
from test_fixtures import ScriptedProvider, make_upstream


@pytest.mark.unit
@pytest.mark.asyncio
class TestFakeProvider:
    async def test_echo_is_deterministic(self):
        provider = FakeProvider()
        upstream = make_upstream("fake", name="Echo", model="echo")
        request = QueryRequest(text="what is python", task_type="code")

        first = await provider.invoke(upstream, request, timeout_ms=1000)
        second = await provider.invoke(upstream, request, timeout_ms=1000)

        assert first.content == "[Echo/code] what is python"
        assert first == second
        assert first.usage["prompt_tokens"] == 3
        assert provider.calls == 2

    async def test_health_check(self):
        result = await FakeProvider().health_check(make_upstream("fake"))
        assert result["status"] == "healthy"


@pytest.mark.unit
class TestBuildMessages:
    def test_task_system_prompt(self):
        messages = BaseProvider.build_messages(QueryRequest(text="sort a list", task_type="code"))
        assert messages[0] == {"role": "system", "content": TASK_SYSTEM_PROMPTS["code"]}
        assert messages[1] == {"role": "user", "content": "sort a list"}

    def test_unknown_task_type_uses_balanced_prompt(self):
        messages = BaseProvider.build_messages(QueryRequest(text="x", task_type="poetry"))
        assert messages[0]["content"] == TASK_SYSTEM_PROMPTS["balanced"]


@pytest.mark.unit
class TestProviderFactory:
    def test_register_instantiates_lazily_once(self):
        factory = ProviderFactory()
        factory.register(UpstreamKind.FAKE, FakeProvider, delay_ms=5)

        provider = factory.get("fake")
        assert isinstance(provider, FakeProvider)
        assert provider.delay_ms == 5
        assert factory.get(UpstreamKind.FAKE) is provider

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ProviderFactory().get("ollama")
        assert exc_info.value.details["kind"] == "ollama"

    def test_validate_lists_unserved_upstreams(self):
        factory = ProviderFactory()
        factory.register(UpstreamKind.FAKE, FakeProvider)
        upstreams = [
            make_upstream("a"),
            make_upstream("b", kind=UpstreamKind.OLLAMA),
            make_upstream("c", kind=UpstreamKind.OPENAI),
        ]

        with pytest.raises(ConfigurationError) as exc_info:
            factory.validate(upstreams)
        assert exc_info.value.details["upstreams"] == ["b", "c"]

    def test_re_register_replaces_instance(self):
        factory = ProviderFactory()
        scripted = ScriptedProvider()
        factory.register_instance(UpstreamKind.FAKE, scripted)
        assert factory.get("fake") is scripted

        factory.register(UpstreamKind.FAKE, FakeProvider)
        assert isinstance(factory.get("fake"), FakeProvider)


@pytest.mark.unit
@pytest.mark.asyncio
class TestProviderFactoryDispatch:
    async def test_invoke_dispatches_on_kind(self):
        factory = ProviderFactory()
        scripted = ScriptedProvider()
        factory.register_instance(UpstreamKind.FAKE, scripted)

        response = await factory.invoke(make_upstream("a"), QueryRequest(text="hi"), timeout_ms=1000)
        assert response.content == "a: hi"
        assert scripted.calls == [("a", "hi")]

    async def test_invoke_without_adapter_is_a_rejection(self):
        request = QueryRequest(text="hi")
        with pytest.raises(UpstreamRejectedError) as exc_info:
            await ProviderFactory().invoke(make_upstream("a"), request, timeout_ms=1000)

        assert exc_info.value.request_id == request.request_id
        assert exc_info.value.details["upstream"] == "a"

    async def test_aclose_closes_adapters(self):
        factory = ProviderFactory()
        scripted = ScriptedProvider()
        factory.register_instance(UpstreamKind.FAKE, scripted)

        await factory.aclose()
        assert scripted.closed
