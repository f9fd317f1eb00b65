from __future__ import annotations

import asyncio

from domain.models import FieldKind, LabelSource
from domain.services import FieldDiscoveryEngine
from test.mocks import FakePageHost, InMemoryLogger


def _discover(html: str, **kwargs):
    page = FakePageHost(html)
    logger = InMemoryLogger()
    engine = FieldDiscoveryEngine(page=page, logger=logger, **kwargs)
    return asyncio.run(engine.discover()), logger


_APPLICATION_FORM = """
<html><body>
<h1>Careers</h1>
<form id="apply">
  <fieldset>
    <legend>Personal details</legend>
    <label for="first_name">First name</label>
    <input id="first_name" name="first_name" required>
    <label for="email">Email</label>
    <input id="email" type="email" name="email">
  </fieldset>
  <section class="section">
    <h2>Questions</h2>
    <textarea name="why" aria-label="Why do you want to work here?"></textarea>
    <select name="country"><option value="">Choose</option><option value="de">DE</option></select>
  </section>
  <input type="hidden" name="csrf" value="x">
  <button type="submit">Submit application</button>
</form>
</body></html>
"""


# -- native fields ------------------------------------------------------------


def test_discovers_inputs_selects_textareas_and_buttons() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)

    assert [f.key for f in ctx.inputs] == ["first_name", "email"]
    assert [f.name for f in ctx.selects] == ["country"]
    assert [f.name for f in ctx.textareas] == ["why"]
    assert len(ctx.buttons) == 1
    assert ctx.buttons[0].kind is FieldKind.BUTTON


def test_hidden_inputs_are_never_reported() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)
    assert all(f.name != "csrf" for f in ctx.all_fields)


def test_all_fields_follow_document_order() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)
    indices = [f.node_index for f in ctx.all_fields]
    assert indices == sorted(indices)
    assert ctx.all_fields[-1].kind is FieldKind.BUTTON


def test_fillable_fields_exclude_buttons() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)
    assert len(ctx.fillable_fields) == 4
    assert all(f.kind is not FieldKind.BUTTON for f in ctx.fillable_fields)


def test_single_form_is_primary_form() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)
    assert ctx.form_path == "#apply"


def test_discovery_is_repeatable_on_unchanged_page() -> None:
    page = FakePageHost(_APPLICATION_FORM)
    engine = FieldDiscoveryEngine(page=page, logger=InMemoryLogger())

    first = asyncio.run(engine.discover())
    second = asyncio.run(engine.discover())

    assert [f.identity for f in first.all_fields] == [f.identity for f in second.all_fields]
    assert [f.labels for f in first.all_fields] == [f.labels for f in second.all_fields]


# -- visibility and interactivity ------------------------------------------------


def test_invisible_and_inert_fields_are_excluded() -> None:
    html = """
    <form>
      <input name="shown">
      <input name="none" style="display:none">
      <div style="display:none"><input name="inside_hidden"></div>
      <input name="ghost" style="opacity:0">
      <input name="invisible" style="visibility:hidden">
      <input name="offscreen" style="position:absolute;left:-9999px">
      <input name="disabled" disabled>
      <input name="locked" readonly>
      <input name="no_pointer" style="pointer-events:none">
      <fieldset disabled><input name="in_disabled_fieldset"></fieldset>
      <input name="aria_off" aria-disabled="true">
    </form>
    """
    ctx, _ = _discover(html)
    assert [f.name for f in ctx.fillable_fields] == ["shown"]


def test_fixed_position_element_is_discovered() -> None:
    html = '<form><input name="floating" style="position:fixed;top:10px;left:10px"></form>'
    ctx, _ = _discover(html)
    assert [f.name for f in ctx.inputs] == ["floating"]


def test_hidden_submit_button_is_not_reported() -> None:
    html = '<form><input name="a"><button style="display:none">Go</button></form>'
    ctx, _ = _discover(html)
    assert ctx.buttons == ()


# -- labels -------------------------------------------------------------------------


def test_buttons_are_labelled_by_their_own_text() -> None:
    html = (
        "<form><h2>Eligibility</h2>"
        '<label for="a">A</label><input id="a">'
        '<button type="submit">Submit Application</button>'
        '<input type="submit" value="Send">'
        "</form>"
    )
    ctx, _ = _discover(html)

    assert [b.best_label for b in ctx.buttons] == ["Submit Application", "Send"]
    assert ctx.buttons[0].labels[0].source is LabelSource.ACCESSIBLE_NAME


def test_button_aria_label_wins_over_its_text() -> None:
    ctx, _ = _discover('<form><input name="q"><button aria-label="Apply now">Go</button></form>')
    assert ctx.buttons[0].best_label == "Apply now"


def test_label_tiers_are_ranked_by_precedence() -> None:
    html = """
    <form>
      <span id="hint">We never share this</span>
      <div class="form-group">
        <label for="mail">Email address</label>
        <input id="mail" name="mail" aria-label="Work email" placeholder="you@company.com"
               aria-describedby="hint">
      </div>
    </form>
    """
    ctx, _ = _discover(html)
    field = ctx.inputs[0]

    sources = [c.source for c in field.labels]
    assert sources[:4] == [
        LabelSource.ACCESSIBLE_NAME,
        LabelSource.LABEL_FOR,
        LabelSource.PLACEHOLDER,
        LabelSource.DESCRIBED_BY,
    ]
    assert field.best_label == "Work email"
    assert field.label_from(LabelSource.PLACEHOLDER) == "you@company.com"


def test_aria_labelledby_resolves_referenced_text() -> None:
    html = '<form><p id="q1">Preferred start date</p><input name="start" aria-labelledby="q1"></form>'
    ctx, _ = _discover(html)
    assert ctx.inputs[0].best_label == "Preferred start date"


def test_sibling_span_is_used_as_label() -> None:
    html = "<form><div><span>Salary expectation</span><input name='salary'></div></form>"
    ctx, _ = _discover(html)
    assert ctx.inputs[0].label_from(LabelSource.SIBLING) == "Salary expectation"


def test_wrapping_label_excludes_the_fields_own_text() -> None:
    html = "<form><label>Notice period <input name='notice'></label></form>"
    ctx, _ = _discover(html)
    assert ctx.inputs[0].label_from(LabelSource.CONTAINER) == "Notice period"


def test_section_heading_is_the_last_tier() -> None:
    html = "<form><h3>Education</h3><div><input name='school'></div></form>"
    ctx, _ = _discover(html)
    field = ctx.inputs[0]
    assert field.labels[-1].source is LabelSource.SECTION_HEADING
    assert field.labels[-1].text == "Education"


def test_overlong_label_text_is_discarded() -> None:
    long_text = "x" * 250
    html = f'<form><input name="blob" aria-label="{long_text}" placeholder="Short"></form>'
    ctx, _ = _discover(html)
    assert ctx.inputs[0].best_label == "Short"


def test_field_without_any_label_has_empty_labels() -> None:
    ctx, _ = _discover("<form><input name='bare'></form>")
    assert ctx.inputs[0].labels == ()
    assert ctx.inputs[0].best_label is None


# -- required -----------------------------------------------------------------------


def test_required_detection_sources() -> None:
    html = """
    <form>
      <input name="attr" required>
      <input name="aria" aria-required="true">
      <div class="form-group"><label>Phone *</label><input name="star"></div>
      <input name="optional">
    </form>
    """
    ctx, _ = _discover(html)
    flags = {f.name: f.required for f in ctx.inputs}
    assert flags == {"attr": True, "aria": True, "star": True, "optional": False}


# -- custom widgets -------------------------------------------------------------------


def test_custom_widget_with_nested_input_reports_target_path() -> None:
    html = """
    <form>
      <div class="react-select__container" role="combobox" aria-label="Location">
        <input id="loc-input" style="display:none">
      </div>
    </form>
    """
    ctx, _ = _discover(html)
    assert len(ctx.custom_widgets) == 1
    widget = ctx.custom_widgets[0]
    assert widget.kind is FieldKind.CUSTOM
    assert widget.best_label == "Location"
    assert widget.target_path == "#loc-input"


def test_custom_widget_candidates_must_look_interactive() -> None:
    html = '<form><div class="form-control-decoration">Static text</div><input name="a"></form>'
    ctx, _ = _discover(html)
    assert ctx.custom_widgets == ()


def test_widget_matched_by_several_signatures_is_reported_once() -> None:
    html = '<form><div class="MuiInput-root" role="textbox" tabindex="0" data-qa="city"></div></form>'
    ctx, _ = _discover(html)
    assert len(ctx.custom_widgets) == 1


def test_configured_widget_signatures_extend_the_builtin_table() -> None:
    html = '<form><div class="acme-picker" tabindex="0" aria-label="Start date"></div></form>'
    ctx, _ = _discover(html, widget_signatures={"acme": [".acme-picker"]})
    assert [w.best_label for w in ctx.custom_widgets] == ["Start date"]


def test_invalid_widget_selector_is_logged_and_skipped() -> None:
    html = "<form><input name='a'></form>"
    ctx, logger = _discover(html, widget_signatures={"broken": ["div[[["]})
    assert [f.name for f in ctx.inputs] == ["a"]
    assert "widget_signature_invalid" in logger.messages("warning")


# -- forms and sections -----------------------------------------------------------------


def test_primary_form_prefers_application_keywords() -> None:
    html = """
    <form id="search"><input name="q"></form>
    <form id="application">
      <h2>Apply for this job</h2>
      <input name="resume" type="file"><input name="email">
    </form>
    """
    ctx, _ = _discover(html)
    assert ctx.form_path == "#application"


def test_no_form_element_means_no_form_path() -> None:
    ctx, _ = _discover("<div><input name='loose'></div>")
    assert ctx.form_path is None
    assert [f.name for f in ctx.inputs] == ["loose"]


def test_fields_are_grouped_into_sections() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)
    titles = [s.title for s in ctx.sections]
    assert titles[:2] == ["Personal details", "Questions"]
    assert titles[-1] == "General"
    general = ctx.sections[-1]
    assert [f.kind for f in general.fields] == [FieldKind.BUTTON]


def test_describe_renders_fields_and_required_flags() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)
    text = ctx.describe()
    assert "Found 4 form fields:" in text
    assert 'input[type="text"]#first_name name="first_name"' in text
    assert "Section: Personal details" in text
    assert "Required: true" in text


def test_label_map_is_keyed_by_field_key() -> None:
    ctx, _ = _discover(_APPLICATION_FORM)
    labels = ctx.label_map()
    assert labels["first_name"] == "First name"
    assert labels["email"] == "Email"
