import json

import httpx

from app.services import enrollment_agent
from app.services.enrollment_agent import (
    READY_PROMPT,
    EnrollmentAgent,
    detect_missing,
    fallback_extract,
    merge_collected,
    safe_json_extract,
)


def test_safe_json_extract():
    assert safe_json_extract('Sure! {"fullName": "Meera"} hope that helps') == {"fullName": "Meera"}
    assert safe_json_extract("no json here") is None
    assert safe_json_extract("{broken") is None
    assert safe_json_extract(None) is None


def test_fallback_extract():
    found = fallback_extract("My name is Meera Iyer, phone +91 98765 43210, born 2012-04-09, meera@example.com")
    assert found["fullName"].startswith("Meera Iyer")
    assert found["dob"] == "2012-04-09"
    assert found["phone"].startswith("+91 98765")
    assert found["email"] == "meera@example.com"
    assert fallback_extract("") == {}


def test_merge_appends_instruments_and_drops_bad_plans():
    merged = merge_collected(
        {"fullName": "Meera", "instruments": [{"instrument": "Piano", "batch_preference": "SAT", "payment_plan": "Monthly"}]},
        {
            "fullName": None,
            "instruments": [
                {"instrument": "Guitar", "batch": "MON", "payment_plan": "Weekly"},
                {"batch": "no instrument"},
            ],
        },
    )
    assert merged["fullName"] == "Meera"
    assert merged["instruments"][1] == {
        "instrument": "Guitar",
        "batch_preference": "MON",
        "payment_plan": None,
    }
    assert len(merged["instruments"]) == 2


def test_detect_missing():
    assert detect_missing({}) == [
        "fullName",
        "dob",
        "phone",
        "guardianContact",
        "dateOfJoining",
        "instruments",
    ]
    missing = detect_missing({"instruments": [{"instrument": "Guitar"}]})
    assert "instruments[0].batch_preference" in missing
    assert "instruments[0].payment_plan (Monthly/Quarterly)" in missing


def test_agent_collects_across_messages():
    replies = iter(
        [
            json.dumps({"fullName": "Meera Iyer", "dob": "2012-04-09", "guardianContact": "Suresh"}),
            json.dumps(
                {
                    "phone": "+91 98765 43210",
                    "dateOfJoining": "2026-06-01",
                    "instruments": [{"instrument": "Guitar", "batch_preference": "MON", "payment_plan": "Monthly"}],
                }
            ),
        ]
    )
    agent = EnrollmentAgent(llm=lambda prompt: next(replies))

    first = agent.handle_message("Hi, enrolling my daughter Meera")
    assert first["readyForSubmission"] is False
    assert "phone" in first["missing"]

    second = agent.handle_message("Guitar on Mondays, monthly", first["sessionId"])
    assert second["sessionId"] == first["sessionId"]
    assert second["missing"] == []
    assert second["readyForSubmission"] is True
    assert second["prompt"] == READY_PROMPT
    assert len(agent.get_session(first["sessionId"])["history"]) == 2


def test_agent_survives_llm_failure():
    def broken(prompt):
        raise httpx.ConnectError("connection refused")

    reply = EnrollmentAgent(llm=broken).handle_message("my name is Ravi, phone 9876543210")
    assert reply["collected"]["phone"] == "9876543210"
    assert reply["prompt"].startswith("Need these details:")


def test_agent_endpoint(client, monkeypatch):
    monkeypatch.setattr(enrollment_agent.agent, "_llm", lambda prompt: "")
    response = client.post("/api/agent/enroll", json={"message": "Guitar lessons please, mail meera@example.com"})
    assert response.status_code == 200
    body = response.json()
    assert body["collected"] == {"email": "meera@example.com"}
    assert body["sessionId"]
    assert client.post("/api/agent/enroll", json={"message": ""}).status_code == 422
