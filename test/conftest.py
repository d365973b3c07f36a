"""
Pytest configuration and shared fixtures for all tests.

Provides a small bill document shaped like the real engrossed-amendment XML,
the snapshot/engine/executor built from it, a scripted stand-in for the
language model and an in-memory stand-in for the Redis client.
"""
import copy
import fnmatch
import pytest
from core.conversation import FinalText, ToolCall, ToolRequest
from core.document_indexer import build_snapshot
from core.retrieval import RetrievalEngine
from core.tool_executor import ToolExecutor


BILL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<amendment-doc xmlns:dc="http://purl.org/dc/elements/1.1/">
  <metadata>
    <dublinCore>
      <dc:title>119 HR 1 EAS: One Big Beautiful Bill Act</dc:title>
      <dc:publisher>U.S. Senate</dc:publisher>
      <dc:date>2025-07-01</dc:date>
      <dc:language>EN</dc:language>
    </dublinCore>
  </metadata>
  <engrossed-amendment-form>
    <congress>119th CONGRESS</congress>
    <session>1st Session</session>
    <legis-num>H.R. 1</legis-num>
  </engrossed-amendment-form>
  <engrossed-amendment-body>
    <toc>
      <toc-entry idref="H1" level="title">TITLE I Agriculture, Nutrition, and Forestry</toc-entry>
      <toc-entry idref="H2" level="section">Sec. 10101. Supplemental nutrition assistance program</toc-entry>
      <toc-entry idref="H9" level="title">TITLE II Armed Services</toc-entry>
    </toc>
    <title id="H1">
      <enum>I</enum>
      <header>Agriculture, Nutrition, and Forestry</header>
      <section id="H2" section-type="subsequent-section" changed="added">
        <enum>10101.</enum>
        <header>Supplemental nutrition assistance program</header>
        <text>The Food and Nutrition Act of 2008 is amended to reduce funding for SNAP benefits.</text>
        <subsection id="H3">
          <enum>(a)</enum>
          <text>There is appropriated $500,000,000 for farm conservation programs.</text>
        </subsection>
      </section>
    </title>
    <title id="H9">
      <enum>II</enum>
      <header>Armed Services</header>
      <section id="H10" section-type="subsequent-section">
        <enum>20001.</enum>
        <header>Enhancement of military readiness</header>
        <text>There is appropriated to the Secretary of Defense $1.5 billion for military shipbuilding.</text>
      </section>
      <section id="H11">
        <enum>20002.</enum>
        <header>Tax credit for defense contractors</header>
        <text>The Internal Revenue Code is amended to add a tax credit for income from defense manufacturing.</text>
      </section>
    </title>
  </engrossed-amendment-body>
</amendment-doc>
"""


@pytest.fixture
def bill_xml():
    return BILL_XML


@pytest.fixture
def snapshot():
    return build_snapshot(BILL_XML)


@pytest.fixture
def engine(snapshot):
    return RetrievalEngine(snapshot)


@pytest.fixture
def executor(engine):
    return ToolExecutor(engine)


def tool_request(*calls, text=""):
    """Build a ToolRequest from (id, name, arguments) triples."""
    return ToolRequest(
        calls=tuple(ToolCall(id=i, name=n, arguments=a) for i, n, a in calls),
        text=text,
    )


def final_text(text):
    return FinalText(text=text)


class ScriptedModel:
    """
    Stand-in for AnthropicClient.send. Replays `replies` in order; an
    Exception instance in the script is raised instead of returned. Every
    request is recorded so tests can inspect what was sent.
    """

    model = "scripted-model"

    def __init__(self, replies, repeat_last=False):
        self._replies = list(replies)
        self._repeat_last = repeat_last
        self.requests = []

    async def send(self, *, system, messages, tools, allow_tools=True):
        self.requests.append(
            {
                "system": system,
                "messages": copy.deepcopy(messages),
                "tools": list(tools),
                "allow_tools": allow_tools,
            }
        )
        if not self._replies:
            raise AssertionError("model called more times than scripted")
        reply = self._replies[0] if (self._repeat_last and len(self._replies) == 1) else self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def stats(self):
        return {"requestCount": len(self.requests)}

    def reset_stats(self):
        self.requests.clear()


class InMemoryRedis:
    """The handful of redis.asyncio.Redis calls the answer cache makes."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for k in keys:
            if self.data.pop(k, None) is not None:
                removed += 1
            self.expiry.pop(k, None)
        return removed

    async def scan_iter(self, match=None):
        for k in list(self.data):
            if match is None or fnmatch.fnmatchcase(k, match):
                yield k


@pytest.fixture
def fake_redis():
    return InMemoryRedis()
