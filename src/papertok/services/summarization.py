"""Summarization service using AI providers."""
import asyncio
import re
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from ..core.models import Paper, PaperSummary, SummaryState, TermGlossaryItem, utcnow
from .paper_store import PaperStore
from .providers import LLMGateway

T = TypeVar("T")

TITLE_SYSTEM_PROMPT = (
    "你是一个学术论文标题翻译助手。请将英文论文标题翻译成准确、通顺的中文。"
    "只输出翻译结果，不要任何额外内容。"
)

SUMMARY_SYSTEM_PROMPT = """我是一名拥有初中生智力的博士生，请你用中文输出，尽量通俗易懂、短句表达。
专业名词请在中文后面加括号英文（例如：注意力机制（Attention Mechanism））。
请严格按照以下结构输出：

0) 标题中文翻译（Title Chinese）：将论文标题翻译成中文，要求准确、通顺
1) 发布机构（Institutions）：根据作者信息中提取发布机构/大学名称，多个机构用顿号分隔。如果无法确定，直接留空不写
2) 这篇论文在解决什么问题（Problem）
3) 它用了什么核心方法（Method）
4) 最关键的实验结果和结论是什么（Result & Conclusion）
5) 一句话总结（One-liner）
6) Terms to Know（3-6 个核心术语）：
   每个术语按以下格式输出：
   - English Term Name（英文术语原文）
   - 中文翻译
   - 一句话解释（不超过 30 字，说明这个术语的通用含义）
   - 在本文里的具体含义（不超过 40 字，说明在这篇论文中的特定用法或意义）

额外要求：
- 不要使用 Markdown 格式（不要用 **加粗**、# 标题、- 列表等），使用纯文本
- 不要使用营销语气，不要夸张
- 数字结果尽量保留原文量级或指标名
- 术语要选择论文中最核心、最重要的概念"""

TITLE_TEMPERATURE = 0.1
TITLE_MAX_TOKENS = 200
SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 2000

TERMS_MARKER = "Terms to Know"

# (section, numbered prefix, keywords); matched in order
_SECTION_MARKERS: list[tuple[str, str, tuple[str, ...]]] = [
    ("title_chinese", "0", ("Title Chinese", "标题中文翻译")),
    ("institutions", "1", ("Institutions", "发布机构")),
    ("problem", "2", ("Problem", "解决什么问题")),
    ("method", "3", ("Method", "核心方法")),
    ("result", "4", ("Result", "实验结果")),
    ("one_liner", "5", ("One-liner", "一句话总结")),
    ("terms", "6", (TERMS_MARKER,)),
]

_NUMBERED = re.compile(r"^[#*\s]*(\d)\s*[)）]")
_COLON = re.compile(r"[:：]")
_BULLET = re.compile(r"^(?:[-•·*]\s*)+")
_DECORATION = re.compile(r"[#*\s()（）\[\]【】]+")


def _is_bare_header(line: str, keywords: tuple[str, ...]) -> bool:
    rest = line
    for keyword in keywords:
        rest = rest.replace(keyword, "")
    return rest != line and not _DECORATION.sub("", rest)


def _match_section(line: str) -> str | None:
    if TERMS_MARKER in line:
        return "terms"
    numbered = _NUMBERED.match(line)
    # Keywords only count before a colon, or on a line holding nothing else
    parts = _COLON.split(line, maxsplit=1)
    for section, number, keywords in _SECTION_MARKERS:
        if numbered and numbered.group(1) == number:
            return section
        if len(parts) == 2 and any(k in parts[0] for k in keywords):
            return section
        if len(parts) == 1 and _is_bare_header(line, keywords):
            return section
    return None


def _after_colon(line: str) -> str | None:
    parts = _COLON.split(line, maxsplit=1)
    if len(parts) < 2:
        return None
    return parts[1].strip() or None


def parse_summary_sections(text: str) -> dict[str, str]:
    """Parse the numbered plain-text summary into section fields.

    Missing sections are simply absent from the result.
    """
    sections: dict[str, str] = {}
    current: str | None = None
    content: list[str] = []

    def flush() -> None:
        if current is None:
            return
        value = "\n".join(content).strip()
        if value:
            sections[current] = value.replace("**", "").replace("__", "")

    for line in text.splitlines():
        trimmed = line.strip()
        section = _match_section(trimmed)
        if section == "terms":
            break
        if section is not None:
            flush()
            current = section
            content = []
            inline = _after_colon(trimmed)
            if inline:
                content.append(inline)
        elif trimmed and current is not None:
            content.append(trimmed)

    flush()
    return sections


def _terms_block(text: str) -> str | None:
    if TERMS_MARKER in text:
        return text.rsplit(TERMS_MARKER, 1)[1]
    lines = text.splitlines()
    for i, line in enumerate(lines):
        numbered = _NUMBERED.match(line.strip())
        if numbered and numbered.group(1) == "6":
            return "\n".join(lines[i + 1:])
    return None


def extract_terms(text: str, arxiv_id: str) -> list[TermGlossaryItem]:
    """Extract Terms to Know as 4-line groups.

    Each term is English name, Chinese translation, general explanation and
    in-paper meaning. A trailing term without the last line keeps an empty
    context meaning.
    """
    block = _terms_block(text)
    if block is None:
        return []

    terms: list[TermGlossaryItem] = []
    english = chinese = explanation = None

    for line in block.splitlines():
        content = _BULLET.sub("", line.strip())
        if not content:
            continue

        if english is None:
            # A term starts with a capitalised English name
            if content[0].isupper():
                english = content.replace("（", "").replace("）", "")
        elif chinese is None:
            chinese = content
        elif explanation is None:
            explanation = content
        else:
            terms.append(TermGlossaryItem(
                arxiv_id=arxiv_id,
                term_chinese=chinese,
                term_english=english,
                explanation=explanation,
                context_meaning=content,
            ))
            english = chinese = explanation = None

    if english is not None and chinese is not None and explanation is not None:
        terms.append(TermGlossaryItem(
            arxiv_id=arxiv_id,
            term_chinese=chinese,
            term_english=english,
            explanation=explanation,
        ))

    return terms


class SummarizationService:
    """Structured paper summaries through the LLM gateway, cached per paper.

    A paper moves from absent to title-only (fast title translation) to
    complete (full summary). Completed summaries are only regenerated on
    request.
    """

    def __init__(self, gateway: LLMGateway, store: PaperStore | None = None):
        self.gateway = gateway
        self.store = store or PaperStore()
        self._inflight: dict[tuple[str, str], asyncio.Task] = {}

    def get_summary(self, arxiv_id: str) -> PaperSummary | None:
        return self.store.get_summary(arxiv_id)

    def get_terms(self, arxiv_id: str) -> list[TermGlossaryItem]:
        return self.store.get_terms(arxiv_id)

    def get_state(self, arxiv_id: str) -> SummaryState:
        summary = self.store.get_summary(arxiv_id)
        return summary.state if summary else SummaryState.ABSENT

    async def translate_title(self, paper: Paper) -> PaperSummary:
        """Quick title-only translation so the title can be shown early."""
        return await self._run_once("title", paper.arxiv_id, lambda: self._translate_title(paper))

    async def generate_summary(self, paper: Paper) -> PaperSummary:
        """Generate the full summary, at most once per paper."""
        return await self._run_once("summary", paper.arxiv_id, lambda: self._generate_summary(paper))

    async def regenerate_summary(self, paper: Paper) -> PaperSummary:
        """Delete the summary and its terms, then generate from scratch."""
        self.store.delete_summary(paper.arxiv_id)
        logger.debug("Deleted summary for {}", paper.arxiv_id)
        return await self.generate_summary(paper)

    async def _run_once(
        self,
        kind: str,
        arxiv_id: str,
        factory: Callable[[], Awaitable[T]],
    ) -> T:
        # Concurrent callers for the same paper share one in-flight task
        key = (kind, arxiv_id)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _translate_title(self, paper: Paper) -> PaperSummary:
        existing = self.store.get_summary(paper.arxiv_id)
        if existing is not None and existing.state != SummaryState.ABSENT:
            return existing

        response = await self.gateway.complete(
            TITLE_SYSTEM_PROMPT,
            paper.title,
            temperature=TITLE_TEMPERATURE,
            max_tokens=TITLE_MAX_TOKENS,
        )
        title_chinese = response.content.strip()

        # Re-read: a full summary may have landed while we were waiting
        summary = self.store.get_summary(paper.arxiv_id)
        if summary is None:
            summary = PaperSummary(arxiv_id=paper.arxiv_id, model_name=response.model)
        elif summary.title_chinese is not None:
            return summary
        summary.title_chinese = title_chinese
        summary.updated_at = utcnow()
        self.store.save_summary(summary)
        return summary

    async def _generate_summary(self, paper: Paper) -> PaperSummary:
        existing = self.store.get_summary(paper.arxiv_id)
        if existing is not None and existing.is_complete:
            logger.debug("Summary cache hit for {}", paper.arxiv_id)
            return existing

        user_prompt = (
            f"标题：{paper.title}\n"
            f"作者：{', '.join(paper.authors)}\n\n"
            f"摘要：\n{paper.abstract}"
        )
        response = await self.gateway.complete(
            SUMMARY_SYSTEM_PROMPT,
            user_prompt,
            temperature=SUMMARY_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS,
        )

        sections = parse_summary_sections(response.content)
        terms = extract_terms(response.content, paper.arxiv_id)

        # Reuse a title-only record when one exists
        summary = self.store.get_summary(paper.arxiv_id) or PaperSummary(arxiv_id=paper.arxiv_id)
        summary.model_name = response.model
        summary.summary_text = response.content
        summary.title_chinese = sections.get("title_chinese") or summary.title_chinese
        summary.institutions = sections.get("institutions")
        summary.problem = sections.get("problem")
        summary.method = sections.get("method")
        summary.result = sections.get("result")
        summary.one_liner = sections.get("one_liner")
        summary.updated_at = utcnow()

        self.store.save_summary(summary, terms)
        logger.debug(
            "Saved summary for {} ({} terms, complete={})",
            paper.arxiv_id, len(terms), summary.is_complete,
        )
        return summary
