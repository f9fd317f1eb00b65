from __future__ import annotations

import pytest

from domain.models import (
    ElementLayout,
    FieldDescriptor,
    FieldKind,
    FieldType,
    LabelCandidate,
    LabelSource,
)
from domain.services import infer_field_type


def _field(
    label: str | None = None,
    *,
    tag: str = "input",
    input_type: str | None = "text",
    element_id: str | None = None,
    name: str | None = None,
) -> FieldDescriptor:
    labels = (LabelCandidate(LabelSource.LABEL_FOR, label),) if label else ()
    return FieldDescriptor(
        kind=FieldKind.TEXTAREA if tag == "textarea" else FieldKind.INPUT,
        tag=tag,
        input_type=input_type,
        element_id=element_id,
        name=name,
        labels=labels,
        layout=ElementLayout(width=100, height=20),
        visible=True,
        interactive=True,
        disabled=False,
        required=False,
        css_path=f"#{element_id or 'f'}",
        node_index=1,
    )


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("First name", FieldType.FIRST_NAME),
        ("Surname", FieldType.LAST_NAME),
        ("Full name", FieldType.FULL_NAME),
        ("Email address", FieldType.EMAIL),
        ("Mobile number", FieldType.PHONE),
        ("Street address", FieldType.ADDRESS),
        ("Postal code", FieldType.ZIP_CODE),
        ("LinkedIn profile", FieldType.LINKEDIN),
        ("GitHub URL", FieldType.GITHUB),
        ("Cumulative GPA", FieldType.GPA),
        ("Do you require visa sponsorship?", FieldType.WORK_AUTHORIZATION),
        ("Cover letter", FieldType.COVER_LETTER),
    ],
)
def test_label_patterns(label: str, expected: FieldType) -> None:
    assert infer_field_type(_field(label)).field_type is expected


def test_id_and_name_contribute_to_matching() -> None:
    match = infer_field_type(_field(element_id="applicant_email", name="contact"))
    assert match.field_type is FieldType.EMAIL
    assert match.confidence == pytest.approx(0.95)


def test_highest_weight_wins_when_several_types_match() -> None:
    # "linkedin" (0.95) beats "website" (0.8)
    match = infer_field_type(_field("LinkedIn or personal website"))
    assert match.field_type is FieldType.LINKEDIN


def test_file_input_resume_before_patterns() -> None:
    match = infer_field_type(_field("Upload your CV", input_type="file"))
    assert match.field_type is FieldType.RESUME


def test_file_input_cover_letter() -> None:
    match = infer_field_type(_field("Attach cover", input_type="file"))
    assert match.field_type is FieldType.COVER_LETTER


def test_long_textarea_prompt_without_keywords_is_open_ended() -> None:
    match = infer_field_type(_field("Anything else we ought to know about you?", tag="textarea", input_type=None))
    assert match.field_type is FieldType.OPEN_ENDED


@pytest.mark.parametrize(
    ("input_type", "expected"),
    [("email", FieldType.EMAIL), ("tel", FieldType.PHONE), ("url", FieldType.PORTFOLIO)],
)
def test_input_type_fallbacks(input_type: str, expected: FieldType) -> None:
    assert infer_field_type(_field(None, input_type=input_type, name="x1")).field_type is expected


def test_unknown_field() -> None:
    match = infer_field_type(_field("Favourite colour"))
    assert match.field_type is FieldType.UNKNOWN
    assert match.confidence == 0.0
