import asyncio
import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from google import genai
from google.genai import types

from studyhub.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Created on first use, only when an API key is configured
_client: Optional[genai.Client] = None

# Thread pool for running sync Gemini calls
_executor = ThreadPoolExecutor(max_workers=4)

AI_MIN_CONTENT_LENGTH = 50
AI_MAX_CONTENT_LENGTH = 3000
AI_CARDS_PER_CHAPTER = 5
GENERATABLE_CHAPTER_TYPES = ("Text", "Quiz")

SYSTEM_PROMPT = (
    "You are an educational content AI that creates flashcard questions and answers "
    "from course material. Respond with valid JSON only."
)

ALTERNATIVES_PROMPT = """Rephrase the following flashcard {count} different ways.
Each variant must test the same fact, in different words.
Format your response as JSON array: [{{"question": "...", "answer": "..."}}]
Don't include any other text in your response, just the JSON array.

Question: {question}
Answer: {answer}"""

CHAPTER_PROMPT = """You are an expert educator creating flashcards to help students learn.
Generate {count} high-quality flashcards from the following course content.
Each flashcard should have a question and answer format that tests key concepts.
Make questions that require understanding, not just memorization.
Format your response as JSON array: [{{"question": "...", "answer": "..."}}]
Don't include any other text in your response, just the JSON array.

Content title: {title}
Content: {content}"""


def ai_enabled() -> bool:
    return bool(settings.GEMINI_API_KEY)


def _get_client() -> genai.Client:
    global _client
    if _client is None:
        _client = genai.Client(
            api_key=settings.GEMINI_API_KEY,
            http_options=types.HttpOptions(timeout=120_000),  # milliseconds
        )
    return _client


def _query_to_llm_sync(prompt: str) -> Optional[str]:
    """
    Synchronous Gemini LLM query (runs in thread pool).
    """
    try:
        logger.info("Querying Gemini LLM...")
        response = _get_client().models.generate_content(
            model=settings.GEMINI_MODEL,
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_PROMPT,
                response_mime_type="application/json",
            ),
            contents=prompt,
        )
        logger.info("Received response from Gemini LLM.")
        return response.text
    except Exception as e:
        logger.error(f"Error querying Gemini: {e}")
        return None


async def query_to_llm(prompt: str, timeout: float = 60.0) -> Optional[str]:
    """
    Query Gemini without blocking the event loop.

    Returns the response text or None on error/timeout.
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(_executor, _query_to_llm_sync, prompt),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error(f"Gemini LLM query timed out after {timeout} seconds")
        return None


def parse_card_pairs(response: Optional[str]) -> List[Dict[str, str]]:
    """Pull a list of question/answer pairs out of an LLM response."""
    if not response:
        return []

    text = response.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1])

    match = re.search(r"\[.*\]", text, re.DOTALL)
    try:
        items = json.loads(match.group(0) if match else text)
    except ValueError:
        logger.warning("Could not parse LLM response as JSON")
        return []

    if isinstance(items, dict):
        # Some responses wrap the array in an object
        items = next((v for v in items.values() if isinstance(v, list)), [])
    if not isinstance(items, list):
        return []

    cards = []
    for item in items:
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        answer = str(item.get("answer") or "").strip()
        if question and answer:
            cards.append({"question": question, "answer": answer})
    return cards


# ============== ALTERNATIVES ==============

def template_alternatives(question: str, answer: str, count: int) -> List[Dict[str, str]]:
    """Rephrase a card with fixed templates."""
    question_formats = [
        f"Explain: {question}",
        f"Define in your own words: {question}",
        f'What is meant by "{question}"?',
        f'How would you describe "{question}" to someone new to this topic?',
    ]
    answer_formats = [
        answer,
        f"Simply put, {answer.lower()}",
        f"In technical terms, {answer}",
        f"The most accurate description would be: {answer}",
    ]
    return [
        {"question": q, "answer": a}
        for q, a in list(zip(question_formats, answer_formats))[:count]
    ]


async def generate_alternatives(question: str, answer: str, count: int = 3) -> List[Dict[str, str]]:
    """Alternative phrasings of a card, from Gemini when available."""
    if ai_enabled():
        prompt = ALTERNATIVES_PROMPT.format(count=count, question=question, answer=answer)
        alternatives = parse_card_pairs(await query_to_llm(prompt))
        if alternatives:
            return alternatives[:count]
        logger.info("Falling back to template alternatives")

    return template_alternatives(question, answer, count)


# ============== COURSE CONTENT ==============

_QUESTION_RE = re.compile(r"[^.!?]+\?")
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]")
_DEFINITION_RE = re.compile(r"[^.!?]+ is [^.!?]+[.!?]")


def extract_cards_from_text(content: str) -> List[Dict[str, str]]:
    """
    Heuristic question/answer extraction.

    - a sentence ending in "?" is a question, the sentence after it the answer
    - "X is Y." (or "!", "?") becomes "What is X?" / "Y"
    """
    cards = []

    for match in _QUESTION_RE.finditer(content):
        answer = _SENTENCE_RE.search(content[match.end():].strip())
        if answer and answer.group(0).strip():
            cards.append({
                "question": match.group(0).strip(),
                "answer": answer.group(0).strip(),
            })

    for match in _DEFINITION_RE.finditer(content):
        parts = match.group(0).split(" is ")
        if len(parts) != 2:
            continue
        term, definition = parts[0].strip(), parts[1].strip().rstrip(".!?")
        if term and definition:
            cards.append({"question": f"What is {term}?", "answer": definition})

    return cards


async def generate_cards_for_chapter(title: str, content: str) -> List[Dict[str, str]]:
    """Ask Gemini for flashcards on one chapter. Empty when AI is off or fails."""
    if not ai_enabled() or len(content) < AI_MIN_CONTENT_LENGTH:
        return []
    prompt = CHAPTER_PROMPT.format(
        count=AI_CARDS_PER_CHAPTER,
        title=title,
        content=content[:AI_MAX_CONTENT_LENGTH],
    )
    return parse_card_pairs(await query_to_llm(prompt))


async def collect_course_cards(course, completed_chapter_ids) -> List[Dict]:
    """
    Candidate cards from the completed Text and Quiz chapters of a course.

    AI cards (when enabled) are listed before the heuristic ones. Repeated
    questions are dropped.
    """
    completed = set(completed_chapter_ids)
    ai_cards, heuristic_cards = [], []

    for section in course.sections or []:
        for chapter in section.get("chapters") or []:
            if chapter.get("chapterId") not in completed:
                continue
            if chapter.get("type") not in GENERATABLE_CHAPTER_TYPES:
                continue

            content = chapter.get("content") or ""
            link = {"section_id": section.get("sectionId"), "chapter_id": chapter.get("chapterId")}

            for pair in extract_cards_from_text(content):
                heuristic_cards.append({**pair, **link, "ai_generated": False})
            for pair in await generate_cards_for_chapter(chapter.get("title") or "", content):
                ai_cards.append({**pair, **link, "ai_generated": True})

    cards, seen = [], set()
    for card in ai_cards + heuristic_cards:
        key = card["question"].lower()
        if key not in seen:
            seen.add(key)
            cards.append(card)
    return cards
