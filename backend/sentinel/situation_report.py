# -*- coding: utf-8 -*-
"""
Bounded wrapper around the AI text collaborator.

The model is reached through Gemini's OpenAI-compatible endpoint. Nothing in
here ever raises to the caller: a missing key, a rate limit or any other API
error turns into a canned status string (or canned traffic data).
"""

import asyncio
import json
import logging
import re
from datetime import datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from openai import AsyncOpenAI, RateLimitError
from pydantic import TypeAdapter, ValidationError

from .schemas import SeismicEvent, TrafficHotspot
from .settings import ConfigProvider, config_provider, settings
from .sources import BAGUIO_TRAFFIC_HOTSPOTS

logger = logging.getLogger(__name__)

STANDBY_MISSING_KEY = "AI System Standby (Missing Key)"
STANDBY_RATE_LIMITED = "Status Normal. Monitoring active. (AI Standby)"
REPORT_EMPTY = "Status Normal. Monitoring active."
REPORT_OFFLINE = "System Offline: Unable to generate AI report."

MAX_EVENTS_IN_PROMPT = 5

FALLBACK_TRAFFIC = [
    TrafficHotspot(name="Session Road", status="Moderate", trend="Stable", details="Steady flow"),
    TrafficHotspot(name="Magsaysay Ave", status="Heavy", trend="Worsening", details="Market traffic"),
    TrafficHotspot(name="City Hall Loop", status="Moderate", trend="Stable", details="Intersection busy"),
    TrafficHotspot(name="Naguilian Rd", status="Light", trend="Stable", details="Moving well"),
    TrafficHotspot(name="BGH Rotunda", status="Congested", trend="Worsening", details="Merge heavy"),
    TrafficHotspot(name="Marcos Hwy", status="Light", trend="Stable", details="Free flowing"),
    TrafficHotspot(name="Pacdal Circle", status="Moderate", trend="Stable", details="Tourist traffic"),
    TrafficHotspot(name="Camp John Hay", status="Light", trend="Stable", details="Flowing freely"),
    TrafficHotspot(name="Kisad Road", status="Heavy", trend="Worsening", details="Volume buildup"),
]

_hotspots = TypeAdapter(list[TrafficHotspot])
_FENCE = re.compile(r"```(?:json)?", re.I)


def is_rate_limited(error: Exception) -> bool:
    if isinstance(error, RateLimitError):
        return True
    if getattr(error, "status_code", None) == 429 or getattr(error, "code", None) == 429:
        return True
    message = str(error)
    return "429" in message or "RESOURCE_EXHAUSTED" in message


def build_report_prompt(events: Sequence[SeismicEvent], current_time: str) -> str:
    tz = ZoneInfo(settings.app_timezone)
    lines = []
    for q in list(events)[:MAX_EVENTS_IN_PROMPT]:
        at = datetime.fromtimestamp(q.occurred_at_ms / 1000, tz).strftime("%I:%M:%S %p")
        lines.append(f"- Mag {q.magnitude} at {q.place} ({at})")
    recent = "\n".join(lines) or "No significant recent earthquakes reported."

    return (
        f"Current Time (PST): {current_time}\n\n"
        f"Recent Significant Seismic Activity in the Philippines (Top {MAX_EVENTS_IN_PROMPT}):\n"
        f"{recent}\n\n"
        'Task: Provide a very brief, professional "Situation Report" styled like a military or '
        "scientific monitoring dashboard.\n"
        "1. Acknowledge the time.\n"
        "2. Summarize the seismic status (Calm, Active, or Alert).\n"
        "3. Give a 1-sentence interesting fact or safety tip related to current weather or geology in the region.\n\n"
        "Keep it under 60 words. No markdown formatting like bolding. Plain text only."
    )


def build_traffic_prompt(now: str) -> str:
    spots = "\n".join(f"{i}. {name}" for i, name in enumerate(BAGUIO_TRAFFIC_HOTSPOTS, 1))
    return (
        f"Current Time in Baguio City: {now}\n\n"
        "Task: Estimate the current traffic conditions for these specific Baguio locations based on "
        "the time of day, day of week, and typical historical patterns:\n"
        f"{spots}\n\n"
        "Return ONLY a raw JSON array of objects. Do not use markdown blocks.\n"
        'Each object: {"name": "Location Name (Short)", '
        '"status": "Light" | "Moderate" | "Heavy" | "Congested", '
        '"trend": "Stable" | "Worsening" | "Improving", '
        '"details": "Very short 3-4 word reason"}'
    )


class SituationReporter:
    def __init__(self, config: ConfigProvider = config_provider, client: Optional[AsyncOpenAI] = None):
        self.config = config
        self._client = client

    def get_client(self) -> Optional[AsyncOpenAI]:
        if self._client is None:
            api_key = self.config.get_api_key()
            if not api_key:
                logger.warning("API key is missing. Set VITE_API_KEY, API_KEY or GEMINI_API_KEY.")
                return None
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=settings.gemini_base_url,
                timeout=settings.ai_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def _complete(self, client: AsyncOpenAI, prompt: str) -> str:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=settings.gemini_model,
                messages=[{"role": "user", "content": prompt}],
            ),
            timeout=settings.ai_timeout_seconds,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def generate_situation_report(self, events: Sequence[SeismicEvent], current_time: str) -> str:
        client = self.get_client()
        if client is None:
            return STANDBY_MISSING_KEY

        try:
            text = await self._complete(client, build_report_prompt(events, current_time))
        except asyncio.TimeoutError:
            logger.warning(f"AI report timed out after {settings.ai_timeout_seconds}s")
            return REPORT_OFFLINE
        except Exception as e:
            if is_rate_limited(e):
                logger.warning("AI rate limit hit (429). Using fallback report.")
                return STANDBY_RATE_LIMITED
            logger.error(f"AI report error: {e}")
            return REPORT_OFFLINE
        return text or REPORT_EMPTY

    async def estimate_traffic(self) -> list[TrafficHotspot]:
        client = self.get_client()
        if client is None:
            return list(FALLBACK_TRAFFIC)

        now = datetime.now(ZoneInfo(settings.app_timezone)).strftime("%m/%d/%Y, %I:%M:%S %p")
        try:
            text = await self._complete(client, build_traffic_prompt(now))
        except asyncio.TimeoutError:
            logger.warning(f"Traffic analysis timed out after {settings.ai_timeout_seconds}s")
            return list(FALLBACK_TRAFFIC)
        except Exception as e:
            logger.error(f"Traffic analysis error: {e}")
            return list(FALLBACK_TRAFFIC)

        return parse_traffic(text)


def parse_traffic(text: str) -> list[TrafficHotspot]:
    cleaned = _FENCE.sub("", text or "").strip()
    if not cleaned:
        return list(FALLBACK_TRAFFIC)
    try:
        return _hotspots.validate_python(json.loads(cleaned))
    except (ValueError, ValidationError) as e:
        logger.error(f"Traffic analysis returned unusable data: {e}")
        return list(FALLBACK_TRAFFIC)
