"""
Conversational enrollment assistant.

Every message is passed to an optional LLM (Ollama) that is asked to return
the enrollment fields as JSON, then through a few regex heuristics. Whatever
is found is merged into the session and the still-missing fields drive the
next prompt.
"""
import json
import logging
import re
import threading
import uuid
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

PAYMENT_OPTIONS = ["Monthly", "Quarterly"]

PHONE_RE = re.compile(r"\+?\d[\d\s-]{8,}")
EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
NAME_RE = re.compile(r"name is ([A-Za-z\s]+)", re.IGNORECASE)

READY_PROMPT = "All required fields captured. Reply CONFIRM to proceed to enrollment."


def safe_json_extract(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Pull the outermost {...} object out of free-form model output."""
    if not text or not isinstance(text, str):
        return None
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    try:
        value = json.loads(text[start : end + 1])
    except ValueError:
        logger.warning("Failed to parse JSON from LLM response")
        return None
    return value if isinstance(value, dict) else None


def fallback_extract(message: Optional[str]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    if not message or not isinstance(message, str):
        return result
    phone = PHONE_RE.search(message)
    email = EMAIL_RE.search(message)
    iso_date = ISO_DATE_RE.search(message)
    name = NAME_RE.search(message)
    if phone:
        result["phone"] = phone.group(0).strip()
    if email:
        result["email"] = email.group(0).strip()
    if iso_date:
        result["dob"] = iso_date.group(0)
    if name:
        result["fullName"] = name.group(1).strip()
    return result


def merge_collected(
    current: Dict[str, Any], incoming: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    merged = dict(current)
    if not isinstance(incoming, dict):
        return merged
    for key, value in incoming.items():
        if value is None:
            continue
        if key == "instruments" and isinstance(value, list):
            instruments = list(merged.get("instruments") or [])
            for entry in value:
                if not isinstance(entry, dict) or not entry.get("instrument"):
                    continue
                plan = entry.get("payment_plan")
                instruments.append(
                    {
                        "instrument": entry["instrument"],
                        "batch_preference": entry.get("batch_preference")
                        or entry.get("batch"),
                        "payment_plan": plan if plan in PAYMENT_OPTIONS else None,
                    }
                )
            merged["instruments"] = instruments
        else:
            merged[key] = value
    return merged


def detect_missing(collected: Dict[str, Any]) -> List[str]:
    missing = [
        field
        for field in ("fullName", "dob", "phone", "guardianContact", "dateOfJoining")
        if not collected.get(field)
    ]
    instruments = collected.get("instruments")
    if not isinstance(instruments, list) or not instruments:
        missing.append("instruments")
        return missing
    for idx, item in enumerate(instruments):
        if not item.get("instrument"):
            missing.append(f"instruments[{idx}].instrument")
        if not item.get("batch_preference"):
            missing.append(f"instruments[{idx}].batch_preference")
        if not item.get("payment_plan"):
            missing.append(f"instruments[{idx}].payment_plan (Monthly/Quarterly)")
    return missing


def build_clarification(missing: List[str]) -> str:
    if not missing:
        return READY_PROMPT
    return f"Need these details: {', '.join(missing)}. Please provide them in natural language."


def build_prompt(message: str, collected: Dict[str, Any]) -> str:
    context = json.dumps(collected) if collected else "none"
    return "\n".join(
        [
            "You are an enrollment assistant for a music school.",
            "Extract structured data as JSON. Only return JSON.",
            "Fields: fullName, dob (YYYY-MM-DD), phone, guardianContact, email, address, "
            "dateOfJoining (YYYY-MM-DD), instruments [{instrument, batch_preference, "
            "payment_plan (Monthly|Quarterly)}].",
            "Keep values short and do not invent data.",
            f"Existing context: {context}",
            f"User message: {message}",
            "Return JSON only.",
        ]
    )


def call_ollama(prompt: str) -> str:
    response = httpx.post(
        f"{settings.OLLAMA_HOST.rstrip('/')}/api/generate",
        json={"model": settings.OLLAMA_MODEL, "prompt": prompt, "stream": False},
        timeout=settings.LLM_TIMEOUT,
    )
    response.raise_for_status()
    return (response.json() or {}).get("response") or ""


def run_llm(prompt: str) -> str:
    if not prompt:
        return ""
    if settings.LLM_PROVIDER == "ollama":
        return call_ollama(prompt)
    return ""


class EnrollmentAgent:
    """Holds conversation state per session id for the lifetime of the process."""

    def __init__(self, llm=run_llm) -> None:
        self._llm = llm
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._sessions.get(session_id)

    def handle_message(self, message: str, session_id: Optional[str] = None) -> Dict[str, Any]:
        sid = session_id or str(uuid.uuid4())
        with self._lock:
            session = self._sessions.get(sid) or {"collected": {}, "history": []}

        llm_extract = None
        try:
            llm_extract = safe_json_extract(self._llm(build_prompt(message, session["collected"])))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"LLM call failed, using heuristics only: {e}")

        merged = merge_collected(session["collected"], llm_extract)
        merged = merge_collected(merged, fallback_extract(message))
        missing = detect_missing(merged)

        session["collected"] = merged
        session["history"].append({"user": message, "extracted": merged, "missing": missing})
        with self._lock:
            self._sessions[sid] = session

        return {
            "sessionId": sid,
            "collected": merged,
            "missing": missing,
            "prompt": build_clarification(missing),
            "readyForSubmission": not missing,
        }


agent = EnrollmentAgent()
