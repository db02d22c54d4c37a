"""Tests for BrowserSession against a mocked Patchright driver."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from patchright.async_api import Error as PlaywrightError

from webdelegate.config import BrowserConfig
from webdelegate.errors import ProvisioningError
from webdelegate.services import BrowserSession, CaptureBridge, ScreencastFrame

EXTENSION_ID = "foofdhnicbkplmcpgcnianionbjbbold"


@pytest.fixture
def page():
    page = MagicMock()
    page.goto = AsyncMock()
    page.go_back = AsyncMock()
    page.set_viewport_size = AsyncMock()
    page.bring_to_front = AsyncMock()
    page.evaluate = AsyncMock()
    page.close = AsyncMock()
    page.mouse.down = AsyncMock()
    page.mouse.move = AsyncMock()
    page.mouse.up = AsyncMock()
    page.mouse.wheel = AsyncMock()
    page.keyboard.down = AsyncMock()
    page.keyboard.up = AsyncMock()
    return page


@pytest.fixture
def cdp():
    cdp = MagicMock()
    cdp.send = AsyncMock()
    return cdp


@pytest.fixture
def extension_page():
    ext = MagicMock()
    ext.url = f"chrome-extension://{EXTENSION_ID}/background.html"
    ext.expose_function = AsyncMock()
    return ext


@pytest.fixture
def context(page, cdp):
    ctx = MagicMock()
    ctx.pages = [page]
    ctx.background_pages = []
    ctx.new_page = AsyncMock(return_value=page)
    ctx.new_cdp_session = AsyncMock(return_value=cdp)
    ctx.wait_for_event = AsyncMock(side_effect=PlaywrightError("Timeout 10000ms exceeded"))
    ctx.close = AsyncMock()
    return ctx


@pytest.fixture
def playwright(context):
    pw = MagicMock()
    pw.chromium.launch_persistent_context = AsyncMock(return_value=context)
    pw.stop = AsyncMock()
    return pw


@pytest.fixture
def mock_async_playwright(playwright):
    with patch("webdelegate.services.browser.async_playwright") as factory:
        factory.return_value.start = AsyncMock(return_value=playwright)
        yield factory


@pytest.fixture
def no_extension():
    return BrowserConfig(extension_path=None)


async def _provision(config, width=800, height=600, push=None):
    return await BrowserSession.provision(config, width, height, push=push or MagicMock())


class TestProvision:
    async def test_launches_persistent_context(
        self, mock_async_playwright, playwright, context, page, cdp, no_extension
    ):
        browser = await _provision(no_extension)

        args, kwargs = playwright.chromium.launch_persistent_context.call_args
        assert args == ("",)
        assert kwargs["no_viewport"] is True
        assert kwargs["headless"] is False
        assert "--autoplay-policy=no-user-gesture-required" in kwargs["args"]
        assert "--enable-automation" in kwargs["ignore_default_args"]

        context.set_default_navigation_timeout.assert_called_once_with(30000)
        page.set_viewport_size.assert_awaited_once_with({"width": 800, "height": 600})
        context.new_cdp_session.assert_awaited_once_with(page)
        assert browser.page is page
        assert browser.cdp is cdp
        assert browser.capture_bridge is None

    async def test_opens_page_when_context_has_none(
        self, mock_async_playwright, context, page, no_extension
    ):
        context.pages = []
        browser = await _provision(no_extension)
        context.new_page.assert_awaited_once()
        assert browser.page is page

    async def test_launch_failure_raises_provisioning_error(
        self, mock_async_playwright, playwright, no_extension
    ):
        playwright.chromium.launch_persistent_context.side_effect = PlaywrightError(
            "Executable doesn't exist"
        )

        with pytest.raises(ProvisioningError, match="Executable doesn't exist"):
            await _provision(no_extension)
        playwright.stop.assert_awaited_once()

    async def test_cancelled_launch_releases_driver(
        self, mock_async_playwright, playwright, context, no_extension
    ):
        async def hang(*args, **kwargs):
            await asyncio.Event().wait()

        context.new_cdp_session.side_effect = hang
        task = asyncio.create_task(_provision(no_extension))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        context.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    async def test_extension_args(self, mock_async_playwright, playwright, tmp_path):
        config = BrowserConfig(extension_path=str(tmp_path))
        await _provision(config)

        args = playwright.chromium.launch_persistent_context.call_args.kwargs["args"]
        assert f"--load-extension={tmp_path.resolve()}" in args
        assert f"--disable-extensions-except={tmp_path.resolve()}" in args
        assert f"--whitelisted-extension-id={EXTENSION_ID}" in args

    async def test_attaches_bridge_to_running_extension(
        self, mock_async_playwright, context, extension_page, tmp_path
    ):
        context.background_pages = [extension_page]
        push = MagicMock()

        browser = await _provision(BrowserConfig(extension_path=str(tmp_path)), push=push)

        assert isinstance(browser.capture_bridge, CaptureBridge)
        extension_page.expose_function.assert_awaited_once()
        context.wait_for_event.assert_not_awaited()

        callback = extension_page.expose_function.call_args.args[1]
        callback({"id": "s1", "data": "ab"})
        push.assert_called_once_with("s1", b"ab")

    async def test_waits_for_extension_background_page(
        self, mock_async_playwright, context, extension_page, tmp_path
    ):
        context.wait_for_event = AsyncMock(return_value=extension_page)

        browser = await _provision(BrowserConfig(extension_path=str(tmp_path)))

        assert browser.capture_bridge is not None
        event, = context.wait_for_event.call_args.args
        assert event == "backgroundpage"
        assert context.wait_for_event.call_args.kwargs["timeout"] == 10000

    async def test_missing_extension_leaves_capture_unavailable(
        self, mock_async_playwright, context, tmp_path
    ):
        other = MagicMock(url="chrome-extension://someoneelse/background.html")
        context.background_pages = [other]

        browser = await _provision(BrowserConfig(extension_path=str(tmp_path)))

        assert browser.capture_bridge is None


class TestPrimitives:
    @pytest.fixture
    async def browser(self, mock_async_playwright, no_extension):
        return await _provision(no_extension)

    async def test_navigation(self, browser, page):
        await browser.navigate("https://example.com")
        await browser.go_back()
        page.goto.assert_awaited_once_with("https://example.com")
        page.go_back.assert_awaited_once()

    async def test_mouse(self, browser, page):
        await browser.mouse_down("right")
        await browser.mouse_move(3, 4)
        await browser.mouse_up()
        await browser.wheel(-120)

        page.mouse.down.assert_awaited_once_with(button="right")
        page.mouse.move.assert_awaited_once_with(3.0, 4.0)
        page.mouse.up.assert_awaited_once()
        page.mouse.wheel.assert_awaited_once_with(0, -120.0)

    async def test_keyboard(self, browser, page):
        await browser.key_down("Enter")
        await browser.key_up("Enter")
        page.keyboard.down.assert_awaited_once_with("Enter")
        page.keyboard.up.assert_awaited_once_with("Enter")

    async def test_cursor_at(self, browser, page):
        page.evaluate.return_value = "pointer"
        assert await browser.cursor_at(5, 6) == "pointer"
        assert page.evaluate.call_args.args[1] == [5, 6]

    @pytest.mark.parametrize("value", [None, ""])
    async def test_cursor_at_nothing(self, browser, page, value):
        page.evaluate.return_value = value
        assert await browser.cursor_at(5, 6) is None


class TestScreencast:
    @pytest.fixture
    async def browser(self, mock_async_playwright, no_extension):
        return await _provision(no_extension)

    async def test_start_and_deliver(self, browser, cdp):
        received: list[ScreencastFrame] = []

        async def on_frame(frame: ScreencastFrame) -> None:
            received.append(frame)

        await browser.start_screencast(
            on_frame, image_format="jpeg", quality=35, every_nth_frame=10
        )

        cdp.send.assert_awaited_once_with(
            "Page.startScreencast", {"format": "jpeg", "quality": 35, "everyNthFrame": 10}
        )
        event, listener = cdp.on.call_args.args
        assert event == "Page.screencastFrame"

        await listener({"data": "aGVsbG8=", "sessionId": 3, "metadata": {}})
        assert received == [ScreencastFrame(payload="aGVsbG8=", ack_token=3)]

    async def test_ack(self, browser, cdp):
        await browser.ack_frame(3)
        cdp.send.assert_awaited_once_with("Page.screencastFrameAck", {"sessionId": 3})

    async def test_stop_removes_listener(self, browser, cdp):
        await browser.start_screencast(
            AsyncMock(), image_format="jpeg", quality=35, every_nth_frame=10
        )
        listener = cdp.on.call_args.args[1]

        await browser.stop_screencast()

        cdp.remove_listener.assert_called_once_with("Page.screencastFrame", listener)
        cdp.send.assert_awaited_with("Page.stopScreencast")


class TestClose:
    async def test_close_releases_everything_once(
        self, mock_async_playwright, playwright, context, page, no_extension
    ):
        browser = await _provision(no_extension)

        await browser.close()
        await browser.close()

        page.close.assert_awaited_once()
        context.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    async def test_close_tolerates_errors(
        self, mock_async_playwright, playwright, context, page, no_extension
    ):
        browser = await _provision(no_extension)
        page.close.side_effect = PlaywrightError("Target closed")

        await browser.close()

        context.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    async def test_close_unlaunched(self, no_extension):
        await BrowserSession(no_extension).close()
