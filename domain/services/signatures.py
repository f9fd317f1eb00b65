"""
Signature tables for widget, challenge, identity-provider and ATS detection.

These are data, not control flow: adding a UI component family or a new
challenge vendor means adding a row here (or, for widgets, in config.json
under ``custom_widget_signatures``).
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from domain.models import AtsSystem, ChallengeType, OAuthProvider

# -- custom widgets -----------------------------------------------------------

CUSTOM_WIDGET_SIGNATURES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "material-ui": (
            '[class*="MuiInput"]',
            '[class*="MuiTextField"]',
            '[class*="MuiSelect"]',
            '[class*="MuiAutocomplete"]',
        ),
        "react-select": ('[class*="react-select"]', '[class*="Select__control"]'),
        "ant-design": (
            '[class*="ant-input"]',
            '[class*="ant-select"]',
            '[class*="ant-picker"]',
        ),
        "bootstrap": ('[class*="form-control"]', '[class*="form-select"]'),
        "headless-ui": ("[data-headlessui-state]", '[class*="listbox"]'),
        "aria-roles": (
            '[role="textbox"]',
            '[role="combobox"]',
            '[role="listbox"]',
            '[role="spinbutton"]',
            '[role="slider"]',
            '[contenteditable="true"]',
        ),
        "angular": ("[ng-model]", "[formcontrolname]"),
        "data-attributes": (
            "[data-input]",
            "[data-field]",
            "[data-form-field]",
            '[data-testid*="input"]',
            '[data-testid*="field"]',
            '[data-automation-id*="input"]',
            '[data-automation-id*="field"]',
        ),
        "workday": ("[data-automation-id]",),
        "greenhouse-lever": ("[data-qa]",),
        "icims": ('[class*="iCIMS"]',),
    }
)

NATIVE_FIELD_TAGS = frozenset({"input", "select", "textarea", "button"})

INTERACTIVE_ROLES = frozenset({"textbox", "combobox", "listbox", "spinbutton", "slider"})

FIELD_DATA_INDICATORS = ("input", "field", "control", "value")

NATIVE_FIELD_SELECTOR = "input, select, textarea, button"
EXCLUDED_INPUT_TYPES = frozenset({"hidden", "submit", "button", "image"})
BUTTON_INPUT_TYPES = frozenset({"submit", "button"})

SECTION_SELECTOR = (
    'fieldset, section, .section, [class*="section"], [class*="group"], .form-section'
)
SECTION_TITLE_SELECTOR = 'h1, h2, h3, h4, legend, .section-title, [class*="title"]'

REQUIRED_CONTAINER_SELECTOR = '.form-group, .field, .input-group, [class*="field"]'
LABEL_CONTAINER_SELECTORS = (
    ".form-group",
    ".form-field",
    ".field",
    ".input-group",
    ".input-wrapper",
    '[class*="field"]',
    '[class*="FormField"]',
    '[class*="input-container"]',
)
DISABLED_ANCESTOR_SELECTOR = '[disabled], [aria-disabled="true"], .disabled'
HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6, legend"

FORM_KEYWORDS = ("apply", "application", "resume", "cv", "experience", "education", "skills")


# -- challenges ---------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeSignature:
    """How one challenge family shows up in a page.

    ``script_patterns`` only corroborate. A family is present when a marker
    element or a frame matches, or, for families without a reliable marker,
    when ``global_capability`` is reported by the page host.
    """

    type: ChallengeType
    script_patterns: tuple[str, ...] = ()
    marker_selectors: tuple[str, ...] = ()
    frame_patterns: tuple[str, ...] = ()
    frame_exclude_patterns: tuple[str, ...] = ()
    site_key_attributes: tuple[str, ...] = ("data-sitekey",)
    frame_site_key_params: tuple[str, ...] = ("k", "sitekey")
    global_capability: str | None = None
    global_response: str | None = None
    response_field: str | None = None


CHALLENGE_SIGNATURES: tuple[ChallengeSignature, ...] = (
    ChallengeSignature(
        type=ChallengeType.RECAPTCHA_V2,
        script_patterns=(
            r"google\.com/recaptcha/api\.js",
            r"recaptcha\.net/recaptcha/api\.js",
            r"gstatic\.com/recaptcha",
        ),
        marker_selectors=(
            '.g-recaptcha:not([data-size="invisible"])',
            "#recaptcha",
            '[data-sitekey]:not(.h-captcha):not(.cf-turnstile):not([data-size="invisible"])',
        ),
        frame_patterns=(
            r"google\.com/recaptcha/(api2|enterprise)/(anchor|bframe)",
            r"recaptcha\.net/recaptcha/(api2|enterprise)/(anchor|bframe)",
        ),
        frame_exclude_patterns=(r"size=invisible",),
        global_response="grecaptcha",
        response_field="g-recaptcha-response",
    ),
    ChallengeSignature(
        type=ChallengeType.RECAPTCHA_V3,
        script_patterns=(
            r"recaptcha/api\.js\?(.*&)?render=(?!explicit)",
            r"recaptcha/enterprise\.js",
        ),
        marker_selectors=(
            '.g-recaptcha[data-size="invisible"]',
            '[data-sitekey][data-size="invisible"]:not(.h-captcha)',
        ),
        global_capability="grecaptcha.execute",
        global_response="grecaptcha",
        response_field="g-recaptcha-response",
    ),
    ChallengeSignature(
        type=ChallengeType.HCAPTCHA,
        script_patterns=(r"hcaptcha\.com/1/api\.js", r"js\.hcaptcha\.com"),
        marker_selectors=(".h-captcha", "[data-hcaptcha-widget-id]"),
        frame_patterns=(r"hcaptcha\.com/captcha", r"newassets\.hcaptcha\.com"),
        global_response="hcaptcha",
        response_field="h-captcha-response",
    ),
    ChallengeSignature(
        type=ChallengeType.TURNSTILE,
        script_patterns=(r"challenges\.cloudflare\.com/turnstile",),
        marker_selectors=(".cf-turnstile", "[data-turnstile-widget-id]"),
        frame_patterns=(r"challenges\.cloudflare\.com",),
        global_response="turnstile",
        response_field="cf-turnstile-response",
    ),
    ChallengeSignature(
        type=ChallengeType.FUNCAPTCHA,
        script_patterns=(r"funcaptcha\.com", r"arkoselabs\.com"),
        marker_selectors=("#FunCaptcha", "[data-pkey]"),
        frame_patterns=(r"funcaptcha\.com", r"arkoselabs\.com"),
        site_key_attributes=("data-pkey",),
        frame_site_key_params=("pkey", "public_key"),
        response_field="fc-token",
    ),
)

# Generic captchas have no vendor fingerprint; only markers.
TEXT_CAPTCHA_SELECTORS = (
    'input[name*="captcha" i]',
    'input[id*="captcha" i]',
)
IMAGE_CAPTCHA_SELECTORS = (
    'img[src*="captcha" i]',
    'img[alt*="captcha" i]',
    ".captcha-image",
    "#captcha-image",
)

# Interactive checkbox-style first, then invisible/scored, then free-text.
CHALLENGE_PRIORITY: tuple[ChallengeType, ...] = (
    ChallengeType.RECAPTCHA_V2,
    ChallengeType.HCAPTCHA,
    ChallengeType.TURNSTILE,
    ChallengeType.FUNCAPTCHA,
    ChallengeType.RECAPTCHA_V3,
    ChallengeType.TEXT,
    ChallengeType.IMAGE,
)

INLINE_SITE_KEY_PATTERNS = (
    r"""sitekey['":\s]+['"]([^'"]+)['"]""",
    r"""data-sitekey['":\s]+['"]([^'"]+)['"]""",
    r"""grecaptcha\.execute\(['"]([^'"]+)['"]""",
    r"""hcaptcha\.execute\(['"]([^'"]+)['"]""",
)

TURNSTILE_SUCCESS_SELECTOR = '.cf-turnstile[data-success="true"]'


def signature_for(challenge_type: ChallengeType) -> ChallengeSignature | None:
    for signature in CHALLENGE_SIGNATURES:
        if signature.type is challenge_type:
            return signature
    return None


# -- identity providers and ATS -----------------------------------------------

OAUTH_PROVIDERS: tuple[OAuthProvider, ...] = (
    OAuthProvider(
        name="LinkedIn",
        url_patterns=(
            r"linkedin\.com/oauth",
            r"linkedin\.com/uas/login",
            r"linkedin\.com/checkpoint",
            r"linkedin\.com/authwall",
        ),
        success_patterns=(
            r"linkedin\.com/feed",
            r"linkedin\.com/in/",
            r"callback.*code=",
            r"\?oauth_token=",
        ),
        failure_patterns=(r"linkedin\.com/uas/login.*error", r"access_denied"),
    ),
    OAuthProvider(
        name="Google",
        url_patterns=(
            r"accounts\.google\.com/o/oauth",
            r"accounts\.google\.com/signin",
            r"accounts\.google\.com/ServiceLogin",
        ),
        success_patterns=(r"callback.*code=", r"oauth2callback", r"\?state=.*&code="),
        failure_patterns=(r"error=access_denied", r"error=consent_required"),
    ),
    OAuthProvider(
        name="Microsoft",
        url_patterns=(
            r"login\.microsoftonline\.com",
            r"login\.live\.com",
            r"microsoft\.com/oauth",
        ),
        success_patterns=(r"callback.*code=", r"\?code=.*&state="),
        failure_patterns=(r"error=access_denied", r"error_description="),
    ),
    OAuthProvider(
        name="GitHub",
        url_patterns=(
            r"github\.com/login/oauth",
            r"github\.com/login\?",
            r"github\.com/sessions",
        ),
        success_patterns=(r"callback.*code=", r"github\.com/settings"),
        failure_patterns=(r"error=access_denied",),
    ),
    OAuthProvider(
        name="Indeed",
        url_patterns=(r"secure\.indeed\.com/auth", r"indeed\.com/account/login"),
        success_patterns=(r"indeed\.com/jobs", r"indeed\.com/viewjob"),
        failure_patterns=(r"login.*error",),
    ),
)

GENERIC_OAUTH_SUCCESS_PATTERNS = (r"[?&]code=", r"oauth.*callback")
GENERIC_OAUTH_FAILURE_PATTERNS = (r"error=access_denied", r"error=consent_required")

ATS_SYSTEMS: tuple[AtsSystem, ...] = (
    AtsSystem("Greenhouse", (r"boards\.greenhouse\.io", r"greenhouse\.io/embed")),
    AtsSystem("Lever", (r"jobs\.lever\.co",)),
    AtsSystem("Workday", (r"myworkdayjobs\.com", r"workday\.com")),
    AtsSystem("iCIMS", (r"icims\.com", r"careers-.*\.icims\.com")),
    AtsSystem("Taleo", (r"taleo\.net",)),
    AtsSystem("BrassRing", (r"brassring\.com",)),
    AtsSystem("SmartRecruiters", (r"smartrecruiters\.com",)),
    AtsSystem("Ashby", (r"jobs\.ashbyhq\.com", r"ashbyhq\.com")),
)

JOB_BOARD_PATTERNS = (
    r"linkedin\.com/jobs",
    r"indeed\.com",
    r"glassdoor\.com",
    r"ziprecruiter\.com",
    r"monster\.com",
)
