"""Shared test fixtures."""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from papertok.core.config import Config
from papertok.core.database import init_db
from papertok.core.models import APIConfiguration, LLMProviderType, LLMResponse, Paper

@pytest.fixture()
def tmp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    """Create an isolated Config pointing to a temp database."""
    db_path = tmp_path / "test.db"
    config = Config(db_path=db_path)

    def _get_config() -> Config:
        return config

    # Patch every module that imports get_config at the top level
    monkeypatch.setattr("papertok.core.database.get_config", _get_config)
    monkeypatch.setattr("papertok.services.recommendation.get_config", _get_config)
    monkeypatch.setattr("papertok.services.arxiv_client.get_config", _get_config)
    monkeypatch.setattr("papertok.services.providers.get_config", _get_config)
    monkeypatch.setattr("papertok.services.feed_service.get_config", _get_config)

    # Reset the global config singleton so it doesn't leak between tests
    monkeypatch.setattr("papertok.core.config._config", config)

    init_db(db_path)
    return config


@pytest.fixture()
def sample_paper() -> Paper:
    """A minimal Paper for testing."""
    return Paper(
        arxiv_id="2401.00001",
        title="Attention Is Still All You Need",
        abstract="We revisit attention mechanisms for sequence modeling.",
        authors=["Alice", "Bob"],
        categories=["cs.CL", "cs.LG"],
        published=datetime(2024, 1, 8, tzinfo=timezone.utc),
        pdf_url="http://arxiv.org/pdf/2401.00001v1",
    )


@pytest.fixture()
def sample_papers() -> list[Paper]:
    """Three papers of different age and categories."""
    return [
        Paper(
            arxiv_id="2401.00001",
            title="Deep Learning for Jet Tagging",
            abstract="A deep learning approach to jet classification.",
            authors=["Alice"],
            categories=["cs.LG"],
            published=datetime(2024, 1, 15, tzinfo=timezone.utc),
        ),
        Paper(
            arxiv_id="2401.00002",
            title="Vision Transformers Revisited",
            abstract="An analysis of vision transformers.",
            authors=["Bob"],
            categories=["cs.CV"],
            published=datetime(2024, 1, 8, tzinfo=timezone.utc),
        ),
        Paper(
            arxiv_id="2401.00003",
            title="Agents That Plan",
            abstract="Planning with language model agents.",
            authors=["Charlie"],
            categories=["cs.AI", "cs.LG"],
            published=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
    ]


@pytest.fixture()
def api_config() -> APIConfiguration:
    return APIConfiguration(provider=LLMProviderType.ANTHROPIC, api_key="sk-test-key")


def atom_entry(
    arxiv_id: str,
    title: str = "A Paper",
    published: str = "2024-01-10T12:00:00Z",
    categories: tuple[str, ...] = ("cs.AI",),
    authors: tuple[str, ...] = ("Alice",),
    version: int = 1,
) -> str:
    tags = "".join(f'<category term="{c}" scheme="http://arxiv.org/schemas/atom"/>' for c in categories)
    names = "".join(f"<author><name>{a}</name></author>" for a in authors)
    published_tag = f"<published>{published}</published>" if published else ""
    return f"""
  <entry>
    <id>http://arxiv.org/abs/{arxiv_id}v{version}</id>
    <updated>2024-01-10T12:00:00Z</updated>
    {published_tag}
    <title>{title}</title>
    <summary>  Abstract of
      {title}.  </summary>
    {names}
    <link href="http://arxiv.org/abs/{arxiv_id}v{version}" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/{arxiv_id}v{version}" rel="related" type="application/pdf"/>
    {tags}
  </entry>"""


def atom_feed(*entries: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom">\n'
        "  <title>ArXiv Query</title>\n"
        "  <id>http://arxiv.org/api/query</id>\n"
        "  <updated>2024-01-10T00:00:00-05:00</updated>"
        + "".join(entries)
        + "\n</feed>\n"
    )


def anthropic_reply(text: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "content": [{"type": "text", "text": text}],
            "usage": {"input_tokens": 10, "output_tokens": 5},
        },
    )


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


SUMMARY_TEXT = """0) 标题中文翻译（Title Chinese）：注意力仍然是你所需要的
1) 发布机构（Institutions）：清华大学、北京大学
2) 这篇论文在解决什么问题（Problem）
长序列建模效率低。
计算开销随长度平方增长。
3) 它用了什么核心方法（Method）：
提出 **稀疏注意力**（Sparse Attention）。
4) 最关键的实验结果和结论是什么（Result & Conclusion）
在基准上提升 2.1 分。
5) 一句话总结（One-liner）：稀疏注意力又快又好。
6) Terms to Know（3-6 个核心术语）：
- Sparse Attention
- 稀疏注意力
- 只关注部分位置的注意力。
- 本文用它降低计算量。

- Long Range Arena
- 长程基准
- 评测长序列模型的基准。
- 本文的主要评测集。
"""


class FakeGateway:
    """Returns canned completions and records every call."""

    model_name = "fake-model"

    def __init__(self, title: str = "注意力仍然是你所需要的", summary: str = SUMMARY_TEXT, delay: float = 0.0):
        self.title = title
        self.summary = summary
        self.delay = delay
        self.calls: list[str] = []
        self.error: Exception | None = None
        self.active = 0
        self.peak = 0

    async def complete(self, system_prompt, user_prompt, temperature=0.3, max_tokens=2000):
        kind = "title" if max_tokens <= 200 else "summary"
        self.calls.append(kind)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if self.error is not None:
            raise self.error
        content = self.title if kind == "title" else self.summary
        return LLMResponse(content=content, model=self.model_name)
