"""
Newswire submission workflow.

Walks the site in strict order: login, package purchase, content entry,
preview, distribution, publish. Each stage runs under the StepRecorder so the
submission's processing_logs mirror the worker log. The public entry point,
`run_submission_workflow`, owns the browser session and never raises.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Callable, Dict, List, Optional

from core.jobs.models import PressReleaseJobData
from worker import selectors as sel
from worker.audit import StepRecorder
from worker.browser import BrowserDriver, browser_session
from worker.config import WorkerSettings
from worker.errors import (
    AutomationError,
    ElementNotFound,
    NavigationFailed,
    ValidationRejected,
    is_job_retryable,
)
from worker.forms import DEFAULT_COUNTRY, PressRelease, missing_required_fields, release_timing
from worker.locators import (
    DomScanStrategy,
    LocatorStrategy,
    NearTextStrategy,
    SelectorStrategy,
    TextCandidatesStrategy,
)
from worker.results import PurchaseResult, SubmissionResult, WorkflowOutcome
from worker.retry import with_retry

log = logging.getLogger("worker.engine")

_PUBLISH_ID_RE = re.compile(r"/press-releases/publish/([\w-]+)")


def package_strategies(package_type: str) -> List[LocatorStrategy]:
    """Ordered ways of finding the buy button for a package on the pricing page."""
    index = sel.PACKAGE_INDEX.get(package_type, 0)
    strategies: List[LocatorStrategy] = []
    if package_type == "basic":
        strategies.append(SelectorStrategy(sel.BASIC_PACKAGE_ANCHOR, name="basic-anchor"))
        strategies.append(NearTextStrategy(sel.BASIC_TILE, sel.TILE_SELECT_BUTTON, name="basic-tile"))
    strategies.extend(
        [
            SelectorStrategy(sel.TABLE_GET_STARTED, nth=index, name="pricing-table"),
            SelectorStrategy(sel.PACKAGE_SELECTORS.get(package_type, sel.PACKAGE_SELECTORS["basic"]), name="package-markup"),
            TextCandidatesStrategy(sel.CTA_TEXTS, index=index, name="cta-text-indexed"),
            TextCandidatesStrategy(sel.CTA_TEXTS, index=None, name="cta-text-first"),
            DomScanStrategy(sel.CTA_PATTERNS, keyword=package_type, name="dom-scan"),
        ]
    )
    return strategies


def _url_has(url: str, parts) -> bool:
    return any(p in (url or "") for p in parts)


class EinPresswireWorkflow:
    def __init__(
        self,
        driver: BrowserDriver,
        settings: WorkerSettings,
        recorder: StepRecorder,
        *,
        sleep: Optional[Callable] = None,
    ):
        self.driver = driver
        self.settings = settings
        self.recorder = recorder
        self.sleep = sleep

    async def _retry(self, operation, label: str):
        return await with_retry(
            operation,
            attempts=self.settings.retry_attempts,
            max_delay=self.settings.retry_max_delay,
            label=label,
            sleep=self.sleep,
        )

    async def _screenshots(self) -> List[str]:
        shot = await self.driver.screenshot_b64()
        return [shot] if shot else []

    # -------- Orchestration --------
    async def run(self, release: PressRelease, options: PressReleaseJobData) -> WorkflowOutcome:
        dry_run = options.dry_run
        try:
            await self.establish_session()
        except AutomationError as exc:
            return WorkflowOutcome(
                purchase=PurchaseResult(
                    success=False,
                    error=f"Login failed: {exc}",
                    retryable=is_job_retryable(exc),
                    screenshots=await self._screenshots(),
                )
            )

        purchase: Optional[PurchaseResult] = None
        if options.skip_purchase or dry_run:
            self.recorder.record(
                "purchase",
                "skipped",
                reason="dry_run" if dry_run else "skip_purchase",
                package_type=options.package_type,
            )
        else:
            purchase = await self.purchase_package(options.package_type)
            if not purchase.success:
                return WorkflowOutcome(purchase=purchase)

        submission = await self.submit_release(release, dry_run=dry_run)
        return WorkflowOutcome(purchase=purchase, submission=submission)

    async def establish_session(self) -> None:
        async with self.recorder.step("login"):
            await self._retry(
                lambda: self.driver.ensure_logged_in(
                    self.settings.email,
                    self.settings.password,
                    self.settings.url(sel.LOGIN_PATH),
                ),
                "login",
            )

    # -------- Purchase --------
    async def purchase_package(self, package_type: str) -> PurchaseResult:
        async with self.recorder.step("purchase", package_type=package_type, payment_mode=self.settings.payment_mode) as step:
            try:
                result = await self._purchase(package_type, step)
            except AutomationError as exc:
                result = PurchaseResult(
                    success=False,
                    error=f"Purchase failed: {exc}",
                    retryable=is_job_retryable(exc),
                    screenshots=await self._screenshots(),
                )
            if not result.success:
                step.fail(result.error or "purchase failed")
                step.details["requires_manual_payment"] = result.requires_manual_payment
            else:
                step.details["order_id"] = result.order_id
            return result

    async def _purchase(self, package_type: str, step) -> PurchaseResult:
        driver = self.driver
        await driver.goto(self.settings.url(sel.PRICING_PATH))
        await driver.wait_for_load()
        await driver.dismiss_overlays()

        winner = await driver.click(f"{package_type} package button", package_strategies(package_type))
        step.details["package_strategy"] = winner
        await driver.wait_for_load()

        mode = self.settings.payment_mode
        if mode == "manual":
            return PurchaseResult(
                success=False,
                error="Manual payment required",
                requires_manual_payment=True,
                retryable=False,
            )
        if mode == "credit":
            if await self._apply_credit():
                return PurchaseResult(success=True, order_id=self._order_id())
            return PurchaseResult(
                success=False,
                error="No credits available, manual payment required",
                requires_manual_payment=True,
                retryable=False,
            )
        return await self._confirm_checkout()

    async def _apply_credit(self) -> bool:
        driver = self.driver
        await driver.wait_for_load()
        if await driver.try_click(sel.CREDIT_OPTIONS, timeout_ms=3000) is None:
            log.info("No credit option on checkout")
            return False
        if await driver.try_click(sel.ORDER_CONFIRM_BUTTONS, timeout_ms=3000) is None:
            log.info("No order confirmation control after choosing credit")
            return False
        await driver.wait_for_load(timeout_ms=15000)
        url = driver.url
        if _url_has(url, sel.CHECKOUT_SUCCESS_URL_PARTS):
            return True
        if _url_has(url, sel.CHECKOUT_PENDING_URL_PARTS):
            return False
        return True

    async def _confirm_checkout(self) -> PurchaseResult:
        driver = self.driver
        await driver.try_click(sel.ORDER_CONFIRM_BUTTONS, timeout_ms=3000)
        await driver.wait_for_load(timeout_ms=15000)
        if _url_has(driver.url, sel.CHECKOUT_PENDING_URL_PARTS):
            return PurchaseResult(
                success=False,
                error=f"Checkout did not complete (still on {driver.url})",
                retryable=True,
                screenshots=await self._screenshots(),
            )
        return PurchaseResult(success=True, order_id=self._order_id())

    @staticmethod
    def _order_id() -> str:
        return f"ORDER_{int(time.time() * 1000)}"

    # -------- Submission --------
    async def submit_release(self, release: PressRelease, *, dry_run: bool = False) -> SubmissionResult:
        missing: List[str] = []
        try:
            async with self.recorder.step("open_editor"):
                await self.open_editor()

            async with self.recorder.step("fill_content") as step:
                missing = await self.fill_content(release)
                step.details["missing_fields"] = missing

            async with self.recorder.step("preview"):
                await self._retry(self.advance_to_preview, "preview")

            if dry_run:
                self.recorder.record("publish", "skipped", reason="dry_run")
                return SubmissionResult(
                    success=True,
                    dry_run=True,
                    confirmation_url=self.driver.url,
                    missing_fields=missing,
                    screenshots=await self._screenshots(),
                )

            async with self.recorder.step("distribution") as step:
                step.details.update(await self.choose_distribution(release))

            async with self.recorder.step("publish") as step:
                published = await self.publish()
                step.details.update(published)

            url = self.driver.url
            async with self.recorder.step("capture_result", confirmation_url=url):
                screenshots = await self._screenshots()
            return SubmissionResult(
                success=True,
                submission_id=published.get("external_id") or f"SUBMISSION_{int(time.time() * 1000)}",
                confirmation_url=url,
                missing_fields=missing,
                screenshots=screenshots,
            )
        except AutomationError as exc:
            return SubmissionResult(
                success=False,
                error=f"Submission failed: {exc}",
                retryable=is_job_retryable(exc),
                missing_fields=missing,
                screenshots=await self._screenshots(),
            )

    async def _editor_visible(self) -> bool:
        for marker in sel.EDIT_FORM_MARKERS:
            if await self.driver.is_visible(marker, 3000):
                return True
        return False

    async def open_editor(self) -> None:
        """Reach step 1 of the release editor, trying alternates before giving up."""
        driver = self.driver
        edit_url = self.settings.url(sel.EDIT_PATH)
        await driver.goto(edit_url)
        await driver.wait_for_load()

        if "/login" in driver.url:
            log.info("Editor redirected to login; re-authenticating")
            await driver.ensure_logged_in(self.settings.email, self.settings.password, self.settings.url(sel.LOGIN_PATH))
            await driver.goto(edit_url)
            await driver.wait_for_load()

        if await self._editor_visible():
            return

        for path in sel.EDIT_ALT_PATHS:
            try:
                await driver.goto(self.settings.url(path))
            except NavigationFailed as exc:
                log.info("Alternate editor path failed", extra={"path": path, "error": str(exc)})
                continue
            await driver.wait_for_load()
            if await self._editor_visible():
                return

        if await driver.try_click([sel.SUBMIT_RELEASE_CTA]):
            await driver.wait_for_load()
            if await self._editor_visible():
                return

        raise ElementNotFound("press release editor", ["edit-url", "alternate-urls", "header-cta"])

    async def fill_content(self, release: PressRelease) -> List[str]:
        """Fill step 1 and return the required fields still empty afterwards."""
        driver = self.driver
        await driver.fill("title", sel.FIELD_TITLE, release.title)
        await driver.fill("summary", sel.FIELD_SUMMARY, release.short_summary)
        await driver.fill("body", sel.FIELD_BODY, release.content)

        location = release.parsed_location
        await driver.fill("city", sel.FIELD_CITY, location.city or release.location)
        await driver.fill("state", sel.FIELD_STATE, location.state)
        if location.country:
            await driver.select_option(sel.COUNTRY_SELECT, label=location.country)
        if not await driver.input_value(sel.COUNTRY_SELECT):
            await driver.select_option(sel.COUNTRY_SELECT, label=DEFAULT_COUNTRY)

        await driver.select_option(sel.LANGUAGE_SELECT, value="en")

        timing = release_timing(release.scheduled_release_at, self.settings.release_timezone)
        if timing is None:
            await driver.check(sel.RELEASE_NOW)
        else:
            await driver.check(sel.RELEASE_SCHEDULED)
            await driver.fill("release_date", sel.RELEASE_DATE, timing.date)
            await driver.fill("release_time", sel.RELEASE_TIME, timing.time)
            await driver.select_option(sel.RELEASE_TIME_ZONE, value=timing.timezone)

        await driver.fill("contact_name", sel.FIELD_CONTACT_NAME, release.contact_name)
        await driver.fill("contact_organization", sel.FIELD_CONTACT_ORG, release.company_name)
        await driver.fill("contact_phone", sel.FIELD_CONTACT_PHONE, release.contact_phone)
        await driver.fill("contact_email", sel.FIELD_CONTACT_EMAIL, release.contact_email)

        snapshot = await driver.input_values(sel.FILLED_SNAPSHOT)
        missing = missing_required_fields(snapshot)
        if missing:
            log.warning("Required fields empty after fill", extra={"missing_fields": missing})
        return missing

    async def _raise_if_rejected(self, timeout_ms: int = 2000) -> None:
        banner = await self.driver.text_of(sel.VALIDATION_BANNER, timeout_ms)
        if banner:
            raise ValidationRejected(f"Site validation errors: {banner}")

    async def advance_to_preview(self) -> None:
        driver = self.driver
        try:
            await driver.click("preview button", [SelectorStrategy(sel.PREVIEW_BUTTON)], timeout_ms=10000)
        except ElementNotFound:
            await self._raise_if_rejected()
            raise
        await driver.wait_for_load()
        await self._raise_if_rejected(1000)

    async def choose_distribution(self, release: PressRelease) -> Dict:
        driver = self.driver
        if await driver.is_visible(sel.STEP3_LINK, 4000):
            await driver.click("distribution link", [SelectorStrategy(sel.STEP3_LINK)])
            await driver.wait_for_load()
        elif await driver.try_click(sel.PROCEED_BUTTONS, timeout_ms=1500):
            await driver.wait_for_load()
        else:
            await driver.goto(self.settings.url(sel.DISTRIBUTION_PATH))

        industry = release.distribution_industry
        country = release.distribution_country
        picked = await driver.select_by_option_text(sel.CHANNEL_SELECTS, [industry, country])
        return {
            "industry": industry,
            "country": country,
            "industry_selected": picked.get(industry, False),
            "country_selected": picked.get(country, False),
        }

    async def publish(self) -> Dict:
        """Save and submit for review. A missing publish control is an error."""
        driver = self.driver
        await driver.click("publish button", [SelectorStrategy(sel.PUBLISH_BUTTON)], timeout_ms=8000)
        await driver.wait_for_load()

        if await driver.is_visible(sel.OVERLAY_SUBMIT, 4000):
            href = await driver.attribute_of(sel.OVERLAY_SUBMIT, "href")
            await driver.click("submit for review", [SelectorStrategy(sel.OVERLAY_SUBMIT)])
            await driver.wait_for_load()
        else:
            href = await driver.attribute_of(sel.HIDDEN_PUBLISH_LINK, "href")
            if not href:
                raise ElementNotFound("submit for review control", [sel.OVERLAY_SUBMIT, sel.HIDDEN_PUBLISH_LINK])
            log.info("Navigating directly to publish link", extra={"href": href})
            await driver.goto(self.settings.url(href))
            await driver.wait_for_load()

        confirmed = await self.confirm_review()
        match = _PUBLISH_ID_RE.search(href or "")
        return {
            "publish_href": href,
            "confirmed": confirmed,
            "external_id": match.group(1) if match else None,
        }

    async def confirm_review(self) -> bool:
        """Tick the confirmation modal's boxes and submit it. False when no modal appeared."""
        driver = self.driver
        if not await driver.is_visible(sel.CONFIRM_MODAL, 3000):
            return False
        for checkbox in sel.CONFIRM_CHECKBOXES:
            await driver.check(checkbox)
        clicked = await driver.try_click(sel.CONFIRM_SUBMIT, timeout_ms=2000)
        if clicked is None:
            raise ElementNotFound("enabled confirmation control", list(sel.CONFIRM_SUBMIT))
        await driver.wait_for_load()
        return True


async def run_submission_workflow(
    release: PressRelease,
    options: PressReleaseJobData,
    settings: WorkerSettings,
    recorder: StepRecorder,
    *,
    session_factory=browser_session,
    sleep: Optional[Callable] = None,
) -> WorkflowOutcome:
    """Run the whole workflow in a fresh browser session. Always returns an outcome."""
    try:
        async with session_factory(
            headless=settings.headless,
            timeout_ms=settings.timeout_ms,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            locator_timeout_ms=settings.locator_timeout_ms,
        ) as driver:
            workflow = EinPresswireWorkflow(driver, settings, recorder, sleep=sleep)
            return await workflow.run(release, options)
    except Exception as exc:
        log.exception("Submission workflow crashed", extra={"submission_id": recorder.submission_id})
        recorder.record("workflow", "failed", error=str(exc))
        return WorkflowOutcome(
            submission=SubmissionResult(
                success=False,
                error=f"Automation crashed: {exc}",
                retryable=is_job_retryable(exc),
            )
        )


__all__ = [
    "package_strategies",
    "EinPresswireWorkflow",
    "run_submission_workflow",
]
