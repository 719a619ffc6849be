import json
import logging
from typing import List, Literal, Sequence

import requests
from pydantic import BaseModel

from . import config
from .schemas import Course

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

ADVISOR_APOLOGY = "I'm currently having trouble connecting to the course database. Please try again in a moment."
TUTOR_APOLOGY = "I am having trouble connecting to the course materials right now. Please try again."


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    text: str


class AdvisorError(Exception):
    pass


def advisor_instruction(courses: Sequence[Course]) -> str:
    catalog = json.dumps([
        {"id": c.id, "title": c.title, "category": c.category, "level": c.level, "tags": c.tags, "price": c.price}
        for c in courses
    ])
    return f"""
You are "Omni", the dedicated academic advisor and admissions specialist for OmniLearn Academy.
Your goal is to help prospective students find the perfect course from OUR specific catalog to advance their careers.

Here is our current course catalog (Live Database):
{catalog}

Note: All prices are in INR (Indian Rupees).

Rules:
1. You represent OmniLearn Academy exclusively. Do not recommend outside resources.
2. Be professional, enthusiastic, and persuasive but honest.
3. Highlight the benefits of our academy: "Expert-Led", "Project-Based", and "Lifetime Access".
4. If a user asks about a topic we don't cover, politely suggest the closest alternative we offer or mention we are adding new courses soon.
5. Keep responses concise (under 150 words) and formatted for easy reading.
"""


def tutor_instruction(course: Course) -> str:
    context = course.ai_context or (
        "No specific knowledge base provided by the instructor. "
        "Answer based on general knowledge about the course title and description."
    )
    return f"""
You are the dedicated AI Tutor for the course: "{course.title}".

INSTRUCTOR KNOWLEDGE BASE:
"{context}"

COURSE DESCRIPTION:
"{course.description}"

RULES:
1. Your primary source of truth is the INSTRUCTOR KNOWLEDGE BASE above.
2. Answer the student's question accurately using that context.
3. If the answer is not in the context, you may use general knowledge related to the course topic, but mention that it is a general answer.
4. Be helpful, encouraging, and polite.
5. DETECT THE LANGUAGE of the user. If they ask in Hindi, reply in Hindi. If English, reply in English.
"""


def send_message(system_instruction: str, temperature: float, history: List[ChatTurn], message: str) -> str:
    """One chat completion round trip. Raises AdvisorError on any failure."""
    if not config.GEMINI_API_KEY:
        raise AdvisorError("GEMINI_API_KEY not configured")

    contents = [{"role": t.role, "parts": [{"text": t.text}]} for t in history]
    contents.append({"role": "user", "parts": [{"text": message}]})
    data = {
        "systemInstruction": {"parts": [{"text": system_instruction}]},
        "contents": contents,
        "generationConfig": {"temperature": temperature},
    }
    headers = {"x-goog-api-key": config.GEMINI_API_KEY, "Content-Type": "application/json"}

    try:
        r = requests.post(GEMINI_URL.format(model=config.GEMINI_MODEL), json=data,
                          headers=headers, timeout=config.GEMINI_TIMEOUT)
        r.raise_for_status()
        body = r.json()
    except requests.RequestException as e:
        raise AdvisorError(f"Gemini request failed: {e}") from e
    except ValueError as e:
        raise AdvisorError("Gemini returned invalid JSON") from e

    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise AdvisorError("Gemini returned no candidates") from e
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    if not text:
        raise AdvisorError("Gemini returned an empty reply")
    return text


def get_course_recommendation(message: str, history: List[ChatTurn], courses: Sequence[Course]) -> str:
    try:
        return send_message(advisor_instruction(courses), 0.7, history, message)
    except AdvisorError as e:
        logger.error("Gemini API Error: %s", e)
        return ADVISOR_APOLOGY


def get_course_tutor_response(message: str, history: List[ChatTurn], course: Course) -> str:
    try:
        # lower temperature keeps answers close to the instructor's material
        return send_message(tutor_instruction(course), 0.5, history, message)
    except AdvisorError as e:
        logger.error("Gemini API Error (Tutor): %s", e)
        return TUTOR_APOLOGY
