import pytest
from pydantic import ValidationError

from app.intake.schema import AgentReply, IntakeForm, TranscriptRecord, VisitInfo


def test_merge_fills_and_overwrites_but_never_blanks():
    form = IntakeForm(name="Chris", impact="A lot")

    changed = form.merge({"impact": "Everyone is stressed", "reason_for_call": "exploring"})
    assert set(changed) == {"impact", "reason_for_call"}

    changed = form.merge({"name": "", "impact": None})
    assert changed == []
    assert form.name == "Chris"
    assert form.impact == "Everyone is stressed"


def test_merge_ignores_unknown_fields():
    form = IntakeForm()
    assert form.merge({"phone": "555-0100"}) == []


def test_merge_reports_nothing_for_identical_values():
    form = IntakeForm(recap="It sounds like Jane is your loved one.")
    assert form.merge({"recap": "It sounds like Jane is your loved one."}) == []


def test_clear_flags_only_touches_flag_fields():
    form = IntakeForm(name="Chris", aware_looking="yes", preferred_contact_method="phone")
    form.clear_flags()
    assert form.aware_looking == ""
    assert form.preferred_contact_method == ""
    assert form.name == "Chris"


def test_set_field_rejects_unknown_names():
    form = IntakeForm()
    form.set_field("referral_source", "A friend")
    assert form.referral_source == "A friend"

    with pytest.raises(KeyError):
        form.set_field("favourite_colour", "blue")


def test_transcript_record_accepts_backend_keys():
    record = TranscriptRecord.from_payload(
        {
            "contact_info": {"name": "Chris", "loved_one_name": "Jane", "collected_at": "x"},
            "visit_scheduling": [{"question": "Q", "answer": "A", "timestamp": "t"}],
            "last_updated": "2025-08-14T19:45:14.568Z",
        }
    )

    assert record.contact_info.loved_one_name == "Jane"
    assert record.visit_scheduling[0].answer == "A"
    assert record.situation == []
    assert record.last_updated == "2025-08-14T19:45:14.568Z"


def test_transcript_record_coerces_loose_values():
    record = TranscriptRecord.from_payload(
        {
            "contact_info": {"name": 42, "location": ["Houston"]},
            "situation_discovery": [{"question": None, "answer": 7}],
        }
    )

    assert record.contact_info.name == "42"
    assert record.contact_info.location is None
    assert record.situation[0].question == ""
    assert record.situation[0].answer == "7"


def test_non_mapping_payloads_are_absent():
    assert TranscriptRecord.from_payload(None) is None
    assert TranscriptRecord.from_payload(["nope"]) is None
    assert VisitInfo.from_payload("nope") is None


def test_agent_reply_metadata():
    reply = AgentReply.model_validate(
        {
            "text": "Hello",
            "metadata": {
                "stage": "Trust Building",
                "responseStatus": "Unexpected situation",
                "askedQuestion": "What brings you here?",
                "confidence": 0.8,
            },
        }
    )

    assert reply.metadata.stage == "Trust Building"
    assert reply.metadata.response_status == "Unexpected situation"
    assert reply.metadata.asked_question == "What brings you here?"
    assert reply.metadata.model_dump()["confidence"] == 0.8


def test_agent_reply_without_usable_metadata():
    reply = AgentReply.model_validate({"text": None, "metadata": "oops"})
    assert reply.text == ""
    assert reply.metadata is None


def test_set_field_rejects_values_outside_choices():
    form = IntakeForm()

    with pytest.raises(ValidationError):
        form.set_field("aware_looking", "maybe")
    with pytest.raises(ValidationError):
        form.set_field("preferred_contact_method", "carrier pigeon")

    assert form.aware_looking == ""
    assert form.preferred_contact_method == ""

    form.set_field("aware_looking", "no")
    assert form.aware_looking == "no"


def test_visit_info_normalizes_contact_method():
    assert VisitInfo.from_payload({"preferredContact": " Phone "}).preferred_contact == "phone"
    assert VisitInfo.from_payload({"preferred_contact": "EMAIL"}).preferred_contact == "email"


def test_visit_info_drops_unknown_contact_method():
    info = VisitInfo.from_payload(
        {"email": "chris@example.com", "preferredContact": "Carrier pigeon"}
    )

    assert info.preferred_contact is None
    assert info.email == "chris@example.com"


def test_merge_skips_values_outside_choices():
    form = IntakeForm(preferred_contact_method="mail")

    changed = form.merge({"preferred_contact_method": "fax", "name": "Chris"})

    assert changed == ["name"]
    assert form.preferred_contact_method == "mail"
