"""
Newswire site paths and CSS selectors.

Everything the automation knows about the site's markup lives here so a
layout change is a one-file edit.
"""

# -------- Paths --------
LOGIN_PATH = "/login-email"
PRICING_PATH = "/pricing"
EDIT_PATH = "/press-releases/edit"
EDIT_ALT_PATHS = ("/press-releases/create", "/press-releases/new", "/press-releases/edit")
DISTRIBUTION_PATH = "/press-releases/edit-location"

# -------- Session --------
LOGGED_IN_MARKER = "a.gtm-upper_menu-click-logout, a.gtm-upper_menu-click-my_releases"
POST_LOGIN_MARKER = "a.gtm-upper_menu-click-submit_release, a.gtm-upper_menu-click-logout"
LOGIN_FORM = 'form[action="/login-email"]'
LOGIN_EMAIL = "input#login"
LOGIN_PASSWORD = "input#password"
LOGIN_SUBMIT = 'form[action="/login-email"] button[type="submit"]'

# -------- Overlays --------
CONSENT_BUTTONS = (
    'button:has-text("I Agree")',
    'button:has-text("Accept")',
    'button[aria-label="Close"]',
    'button:has-text("×")',
    ".cc-allow",
    ".cc-accept",
    ".cookie-consent .close",
    ".cookie-bar .close",
)

# Removes fixed/sticky banners that mention cookies or consent.
REMOVE_FIXED_BANNERS_JS = """
() => {
  let removed = 0;
  for (const el of Array.from(document.querySelectorAll('div, section, footer'))) {
    const style = window.getComputedStyle(el);
    const text = (el.textContent || '').toLowerCase();
    if ((style.position === 'fixed' || style.position === 'sticky') && /cookie|consent|terms|privacy/.test(text)) {
      el.remove();
      removed += 1;
    }
  }
  return removed;
}
"""

# -------- Package selection --------
BASIC_PACKAGE_ANCHOR = 'a.gtm-press_release_packages_up-basic-pricing, a[href*="plan=presswire-basic"]'
BASIC_TILE = 'div:has-text("Basic")'
TILE_SELECT_BUTTON = 'button:has-text("Select")'
TABLE_GET_STARTED = 'table a:has-text("Get Started"), table button:has-text("Get Started")'
PACKAGE_SELECTORS = {
    "basic": '[data-package="basic"], .package-basic button, .plan-basic button',
    "premium": '[data-package="premium"], .package-premium button, .plan-premium button',
    "enterprise": '[data-package="enterprise"], .package-enterprise button, .plan-enterprise button',
}
PACKAGE_INDEX = {"basic": 0, "premium": 1, "enterprise": 2}
CTA_TEXTS = ("Get Started", "Buy Now", "Select Plan", "Select", "Purchase", "Order Now", "Continue")
CTA_PATTERNS = ("get started", "select", "buy now", "continue", "order")

# -------- Checkout --------
CREDIT_OPTIONS = (
    "text=Use Credit",
    "text=Use Credit(s)",
    "text=Available Credits",
    'label:has-text("Use Credit") input[type="radio"]',
    'input[type="radio"][value*="credit"]',
    'button:has-text("Use Credit")',
    'input[name*="credit"]',
    'select[name*="credit"]',
)
ORDER_CONFIRM_BUTTONS = (
    'button:has-text("Place Order")',
    'button:has-text("Submit")',
    'button:has-text("Complete Order")',
    'button:has-text("Confirm")',
    'input[type="submit"][value*="Order"]',
    'input[type="submit"][value*="Submit"]',
)
CHECKOUT_SUCCESS_URL_PARTS = ("/submit", "/dashboard", "success")
CHECKOUT_PENDING_URL_PARTS = ("/buy", "/checkout")

# -------- Step 1: content --------
EDIT_FORM_MARKERS = ("form#pr_edit_form", "#title", 'input[name="title"]')
SUBMIT_RELEASE_CTA = "a.gtm-upper_menu-click-submit_release"

FIELD_TITLE = ("#title", 'input[name="title"]')
FIELD_SUMMARY = ("#subtitle", 'textarea[name="subtitle"]')
FIELD_BODY = ("#text", 'textarea[name="text"]')
FIELD_CITY = ("#location_city",)
FIELD_STATE = ("#location_state",)
COUNTRY_SELECT = "#location_country_select"
LANGUAGE_SELECT = "#language"
RELEASE_NOW = "#release_date_active_no"
RELEASE_SCHEDULED = "#release_date_active_yes"
RELEASE_DATE = ("#release_date",)
RELEASE_TIME = ("#release_time",)
RELEASE_TIME_ZONE = "#release_time_zone"
FIELD_CONTACT_NAME = ("#contact_name",)
FIELD_CONTACT_ORG = ("#contact_organization",)
FIELD_CONTACT_PHONE = ("#contact_phone",)
FIELD_CONTACT_EMAIL = ("#contact_email",)

# Values re-read after filling; keys match the required-field names below.
FILLED_SNAPSHOT = {
    "title": "#title",
    "subtitle": "#subtitle",
    "text": "#text",
    "location_city": "#location_city",
    "location_country_select": "#location_country_select",
    "contact_name": "#contact_name",
    "contact_organization": "#contact_organization",
    "contact_email": "#contact_email",
}
REQUIRED_FIELDS = ("title", "text", "contact_name", "contact_email", "location_city", "location_country_select")

# -------- Step 2: preview --------
PREVIEW_BUTTON = 'button[name="preview"], button:has-text("Continue to Step 2"), button:has-text("Preview")'
VALIDATION_BANNER = "#flash_error"

# -------- Step 3: distribution --------
STEP3_LINK = 'a[href="/press-releases/edit-location"]'
PROCEED_BUTTONS = (
    'button:has-text("Continue")',
    'button:has-text("Proceed")',
    'a:has-text("Continue")',
    'a:has-text("Proceed")',
    'button:has-text("Step 3")',
)
CHANNEL_SELECTS = 'select[name="channels[]"]'

# -------- Publish --------
PUBLISH_BUTTON = 'button[name="save_and_publish"]'
OVERLAY_SUBMIT = 'a.js_confirm_publish[href*="/press-releases/publish/"]'
HIDDEN_PUBLISH_LINK = "div.channels-save-choice a.js_confirm_publish"
CONFIRM_MODAL = "div.popup-sure_to_publish, div.msg-overlay"
CONFIRM_CHECKBOXES = ("#permission", "#images", "#links", "#decline")
CONFIRM_SUBMIT = (
    "a.close_popup_send:not(.disabled)",
    "a.a-button--green:not(.disabled)",
    'button:has-text("Submit for Review")',
)
