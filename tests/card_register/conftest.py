"""Fixtures for the card-register draft manager tests.

Puts the tool's directory on sys.path so ``app.*`` resolves to
card-register/app, and provides a registration wizard page plus stand-ins
for the upload and draft-autosave endpoints.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_TOOL_DIR = str(Path(__file__).resolve().parent.parent.parent / "card-register")


if _TOOL_DIR not in sys.path:
    sys.path.insert(0, _TOOL_DIR)

from fastapi import FastAPI, File, Form, Request, UploadFile  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.config import Settings  # noqa: E402
from app.page import (  # noqa: E402
    Page,
    checkbox,
    element,
    file_input,
    form,
    password_input,
    text_input,
    textarea,
)

UPLOAD_PATH = "/backend/api/business-card/upload.php"
AUTOSAVE_PATH = "/backend/api/mypage/autosave.php"


@pytest.fixture()
def settings(tmp_data_dir) -> Settings:
    return Settings(
        data_dir=tmp_data_dir,
        debounce_ms=20,
        status_duration_ms=1000,
        saved_notice_delay_ms=10,
        api_base_url="http://testserver",
    )


def _greeting_item(title: str = "", content: str = ""):
    return element(
        "div",
        text_input("greeting_title[]", title, classes=["greeting-title"]),
        textarea("greeting_content[]", content, classes=["greeting-content"]),
        classes=["greeting-item"],
    )


@pytest.fixture()
def make_page():
    """Factory for a fresh registration wizard page, as after a reload."""

    def _make(url: str = "http://testserver/frontend/register.php", greetings: int = 1) -> Page:
        body = element(
            "body",
            form(
                element("h2", text="名刺情報の登録"),
                text_input("company_name"),
                text_input("name"),
                text_input("mobile_phone"),
                textarea("free_input"),
                password_input("password"),
                text_input("password_confirm"),
                checkbox("tech_tools[]", "ielove"),
                checkbox("tech_tools[]", "rabbynet"),
                checkbox("tech_tools[]", "self_in"),
                checkbox("comm_line"),
                text_input("comm_line_id"),
                checkbox("comm_instagram"),
                text_input("comm_instagram_url"),
                element("div", *[_greeting_item() for _ in range(greetings)], id="greetings-list"),
                file_input("company_logo"),
                file_input("profile_photo"),
                id="registration-form",
            ),
        )
        return Page(body, url=url)

    return _make


@pytest.fixture()
def page(make_page) -> Page:
    return make_page()


# ── Collaborator stand-ins ───────────────────────────────────────────────────


@pytest.fixture()
def collaborators():
    """FastAPI app playing the upload and draft-autosave endpoints.

    ``app.state.uploads`` / ``app.state.drafts`` record what arrived;
    ``app.state.fail_upload`` / ``app.state.fail_autosave`` make them refuse.
    """
    api = FastAPI()
    api.state.uploads = []
    api.state.drafts = []
    api.state.fail_upload = False
    api.state.fail_autosave = False

    @api.post(UPLOAD_PATH)
    async def upload(file: UploadFile = File(...), file_type: str = Form(...)):
        content = await file.read()
        if api.state.fail_upload:
            return {"success": False, "message": "アップロードに失敗しました"}
        api.state.uploads.append({"file_name": file.filename, "file_type": file_type, "size": len(content)})
        return {
            "success": True,
            "message": "File uploaded successfully",
            "data": {
                "file_path": f"backend/uploads/{file_type}/{file.filename}",
                "file_name": file.filename,
                "file_type": file_type,
                "was_resized": False,
            },
        }

    @api.post(AUTOSAVE_PATH)
    async def autosave(request: Request):
        if api.state.fail_autosave:
            return {"success": False, "message": "Database error"}
        api.state.drafts.append(await request.json())
        return {"success": True, "message": "Draft saved"}

    return api


@pytest.fixture()
def http(collaborators) -> TestClient:
    return TestClient(collaborators)
