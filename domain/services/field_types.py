from __future__ import annotations

import re

from domain.models import FieldDescriptor, FieldType, FieldTypeMatch

# (field type, weight, patterns); table order breaks ties between equal weights.
FIELD_TYPE_PATTERNS: tuple[tuple[FieldType, float, tuple[str, ...]], ...] = (
    (FieldType.FIRST_NAME, 0.9, (
        r"first\s*name", r"given\s*name", r"fname", r"^first$", r"nombre",
        r"forename", r"vorname", r"prénom",
    )),
    (FieldType.LAST_NAME, 0.9, (
        r"last\s*name", r"surname", r"family\s*name", r"lname", r"^last$",
        r"apellido", r"nachname", r"nom\s*de\s*famille",
    )),
    (FieldType.FULL_NAME, 0.85, (
        r"full\s*name", r"^name$", r"your\s*name", r"legal\s*name",
        r"complete\s*name", r"applicant\s*name", r"candidate\s*name",
    )),
    (FieldType.EMAIL, 0.95, (
        r"e-?mail", r"email\s*address", r"correo", r"courriel", r"electronic\s*mail",
    )),
    (FieldType.PHONE, 0.9, (
        r"phone", r"mobile", r"cell", r"telephone", r"contact\s*number",
        r"tel[eé]fono", r"nummer", r"numéro", r"\+1", r"\(\d{3}\)",
    )),
    (FieldType.ADDRESS, 0.85, (
        r"street\s*address", r"address\s*line", r"^address$", r"mailing\s*address",
        r"home\s*address", r"residential\s*address", r"street\s*1", r"address\s*1",
    )),
    (FieldType.CITY, 0.85, (r"^city$", r"city\s*name", r"ciudad", r"ville", r"stadt", r"town")),
    (FieldType.STATE, 0.8, (
        r"^state$", r"province", r"region", r"estado", r"bundesland",
        r"state\s*/\s*province", r"prefecture",
    )),
    (FieldType.ZIP_CODE, 0.85, (
        r"zip", r"postal", r"post\s*code", r"código\s*postal", r"plz",
        r"postleitzahl", r"code\s*postal",
    )),
    (FieldType.COUNTRY, 0.8, (r"country", r"nation", r"país", r"pays", r"land", r"location")),
    (FieldType.LINKEDIN, 0.95, (
        r"linkedin", r"linked-in", r"linkedin\.com", r"linkedin\s*url", r"linkedin\s*profile",
    )),
    (FieldType.GITHUB, 0.95, (
        r"github", r"git-hub", r"github\.com", r"github\s*url", r"github\s*profile",
        r"code\s*repository",
    )),
    (FieldType.PORTFOLIO, 0.8, (
        r"portfolio", r"website", r"personal\s*site", r"^url$", r"web\s*page",
        r"personal\s*website", r"online\s*portfolio",
    )),
    (FieldType.UNIVERSITY, 0.8, (
        r"university", r"college", r"school", r"institution", r"alma\s*mater",
        r"education", r"universidad", r"école", r"hochschule",
    )),
    (FieldType.DEGREE, 0.8, (
        r"degree", r"qualification", r"diploma", r"certification",
        r"bachelor", r"master", r"phd", r"doctorate", r"título",
    )),
    (FieldType.MAJOR, 0.8, (
        r"major", r"field\s*of\s*study", r"concentration", r"specialization",
        r"subject", r"discipline", r"area\s*of\s*study", r"especialidad",
    )),
    (FieldType.GPA, 0.85, (
        r"gpa", r"grade\s*point", r"cumulative\s*gpa", r"academic\s*average",
        r"grades", r"cgpa",
    )),
    (FieldType.GRADUATION_DATE, 0.85, (
        r"graduat", r"completion\s*date", r"expected\s*graduat",
        r"graduation\s*year", r"year\s*of\s*completion", r"fecha\s*de\s*graduación",
    )),
    (FieldType.WORK_AUTHORIZATION, 0.9, (
        r"work\s*auth", r"visa", r"sponsor", r"legal.*work", r"authorized.*work",
        r"citizenship", r"immigration", r"eligible\s*to\s*work", r"permit",
        r"right\s*to\s*work", r"employment\s*eligibility",
    )),
    (FieldType.YEARS_OF_EXPERIENCE, 0.85, (
        r"years?\s*(of)?\s*experience", r"experience\s*level",
        r"how\s*many\s*years", r"total\s*experience", r"work\s*experience",
        r"professional\s*experience",
    )),
    (FieldType.RESUME, 0.95, (
        r"resume", r"cv", r"curriculum", r"upload.*resume", r"attach.*resume",
        r"lebenslauf", r"curriculum\s*vitae",
    )),
    (FieldType.COVER_LETTER, 0.9, (
        r"cover\s*letter", r"letter\s*of\s*interest", r"motivation\s*letter",
        r"application\s*letter", r"carta\s*de\s*presentación",
    )),
    (FieldType.OPEN_ENDED, 0.7, (
        r"why", r"describe", r"tell\s*us", r"explain", r"what\s*makes",
        r"how\s*would", r"please\s*describe", r"share.*experience",
        r"what\s*interest", r"why\s*do\s*you", r"what\s*attract",
    )),
)

_COMPILED = tuple(
    (field_type, weight, tuple(re.compile(p, re.IGNORECASE) for p in patterns))
    for field_type, weight, patterns in FIELD_TYPE_PATTERNS
)


def _text_sources(field: FieldDescriptor) -> str:
    parts = [field.element_id or "", field.name or ""]
    parts.extend(candidate.text for candidate in field.labels)
    return " ".join(p for p in parts if p).lower()


def infer_field_type(field: FieldDescriptor) -> FieldTypeMatch:
    """Rule-based semantic type of a discovered field."""
    text = _text_sources(field)
    input_type = (field.input_type or "").lower()

    if input_type == "file":
        if re.search(r"resume|cv|curriculum", text):
            return FieldTypeMatch(FieldType.RESUME, 0.95)
        if "cover" in text:
            return FieldTypeMatch(FieldType.COVER_LETTER, 0.9)

    best: FieldTypeMatch | None = None
    for field_type, weight, patterns in _COMPILED:
        if any(p.search(text) for p in patterns):
            if best is None or weight > best.confidence:
                best = FieldTypeMatch(field_type, weight)
    if best is not None:
        return best

    if field.tag == "textarea" and len(field.best_label or "") > 20:
        return FieldTypeMatch(FieldType.OPEN_ENDED, 0.7)
    if input_type == "email":
        return FieldTypeMatch(FieldType.EMAIL, 0.95)
    if input_type == "tel":
        return FieldTypeMatch(FieldType.PHONE, 0.9)
    if input_type == "url":
        if "linkedin" in text:
            return FieldTypeMatch(FieldType.LINKEDIN, 0.9)
        if "github" in text:
            return FieldTypeMatch(FieldType.GITHUB, 0.9)
        return FieldTypeMatch(FieldType.PORTFOLIO, 0.7)
    return FieldTypeMatch(FieldType.UNKNOWN, 0.0)
