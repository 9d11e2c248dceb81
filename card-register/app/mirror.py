"""Remote Draft Mirror: best-effort copy of the draft to the server.

Only on the profile-editing page. The payload is a structured projection of
the local snapshot: flattened scalar card fields, greetings with positional
``display_order``, the selected tech tools and the active communication
methods. The mirror is write-only; restore always reads the local stores.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlparse

import requests
from pydantic import ValidationError

from app.schema import (
    AutosaveResponse,
    CommunicationMethodDraft,
    DraftForServer,
    GreetingDraft,
    TechToolDraft,
)

logger = logging.getLogger(__name__)

SCALAR_FIELDS = (
    "company_name", "company_logo", "profile_photo",
    "real_estate_license_prefecture", "real_estate_license_renewal_number",
    "real_estate_license_registration_number", "company_postal_code",
    "company_address", "company_phone", "company_website",
    "branch_department", "position", "name", "name_romaji",
    "mobile_phone", "birth_date", "current_residence", "hometown",
    "alma_mater", "qualifications", "hobbies", "free_input",
)

# Image paths are only sent when set, so a draft never blanks a stored image
IMAGE_FIELDS = ("company_logo", "profile_photo")

TECH_TOOLS_FIELD = "tech_tools[]"

# comm_<type> checkbox + comm_<type>_id input, holding either an id or a URL
MESSAGE_APPS = ("line", "messenger", "whatsapp", "plus_message", "chatwork", "andpad")
# comm_<type> checkbox + comm_<type>_url input
SNS_APPS = ("instagram", "facebook", "twitter", "youtube", "tiktok", "note", "pinterest", "threads")


def is_profile_page(url: str, profile_paths: list[str] | tuple[str, ...]) -> bool:
    path = urlparse(url).path or url
    return any(path == p or path.endswith(p) for p in profile_paths)


def _merged_fields(snapshot: dict) -> dict:
    """All per-form mappings folded into one; the first form wins on a clash."""
    merged: dict = {}
    for value in snapshot.values():
        if isinstance(value, dict):
            for name, v in value.items():
                merged.setdefault(name, v)
    return merged


def _first_value(value) -> str:
    if isinstance(value, list):
        return next((v for v in value if isinstance(v, str) and v), "")
    return value if isinstance(value, str) else ""


def _checked_values(value) -> list[str]:
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str) and v]
    return [value] if isinstance(value, str) and value else []


def build_payload(snapshot: dict) -> DraftForServer:
    """Project a FormSnapshot onto the draft-autosave request body."""
    fields = _merged_fields(snapshot)

    scalars: dict[str, str] = {}
    for name in SCALAR_FIELDS:
        if name not in fields:
            continue
        value = _first_value(fields[name])
        if name in IMAGE_FIELDS and not value:
            continue
        scalars[name] = value

    greetings = [
        GreetingDraft(title=g.get("title", ""), content=g.get("content", ""), display_order=i)
        for i, g in enumerate(
            g for g in snapshot.get("greetings", [])
            if isinstance(g, dict) and (g.get("title") or g.get("content"))
        )
    ]

    tech_tools = [
        TechToolDraft(tool_type=tool, display_order=i)
        for i, tool in enumerate(_checked_values(fields.get(TECH_TOOLS_FIELD)))
    ]

    methods: list[CommunicationMethodDraft] = []
    for app_type in MESSAGE_APPS:
        if not _checked_values(fields.get(f"comm_{app_type}")):
            continue
        value = _first_value(fields.get(f"comm_{app_type}_id")).strip()
        if not value:
            continue
        is_url = value.startswith("http")
        methods.append(CommunicationMethodDraft(
            method_type=app_type,
            method_name=app_type,
            method_url=value if is_url else "",
            method_id="" if is_url else value,
            display_order=len(methods),
        ))
    for app_type in SNS_APPS:
        if not _checked_values(fields.get(f"comm_{app_type}")):
            continue
        methods.append(CommunicationMethodDraft(
            method_type=app_type,
            method_name=app_type,
            method_url=_first_value(fields.get(f"comm_{app_type}_url")).strip(),
            display_order=len(methods),
        ))

    return DraftForServer(
        greetings=greetings,
        tech_tools=tech_tools,
        communication_methods=methods,
        **scalars,
    )


class RemoteDraftMirror:
    def __init__(self, url: str, timeout: float = 10.0, http=None) -> None:
        self.url = url
        self.timeout = timeout
        self.http = http or requests

    def post(self, payload: DraftForServer) -> bool:
        """Blocking POST. True only for a 2xx answer with ``success: true``."""
        try:
            resp = self.http.post(self.url, json=payload.model_dump(), timeout=self.timeout)
            if not 200 <= resp.status_code < 300:
                logger.debug("Draft mirror rejected: HTTP %s", resp.status_code)
                return False
            result = AutosaveResponse.model_validate(resp.json())
        except (requests.RequestException, ValueError, ValidationError) as e:
            logger.debug("Draft mirror failed: %s", e)
            return False
        if not result.success:
            logger.debug("Draft mirror not accepted: %s", result.message)
        return result.success

    async def push(self, snapshot: dict) -> bool:
        """Mirror *snapshot* without blocking the event loop. Never raises."""
        try:
            payload = build_payload(snapshot)
        except ValidationError as e:
            logger.debug("Draft mirror payload invalid: %s", e)
            return False
        return await asyncio.to_thread(self.post, payload)
