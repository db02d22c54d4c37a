from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_launch_options() -> dict:
    return {
        "headless": False,
        "args": [
            "--no-sandbox",
            "--no-zygote",
            "--use-angle=default",
            "--autoplay-policy=no-user-gesture-required",
            "--start-fullscreen",
        ],
    }


class BrowserConfig(BaseModel):
    launch_options: dict = Field(default_factory=_default_launch_options)
    # Chromium defaults that would hide scrollbars or block the recorder extension
    ignore_default_args: list[str] = Field(
        default_factory=lambda: [
            "--hide-scrollbars",
            "--disable-extensions",
            "--enable-automation",
        ]
    )
    extension_path: str | None = "extension"
    extension_id: str = "foofdhnicbkplmcpgcnianionbjbbold"
    extension_timeout: int = 10000  # ms to wait for the recorder background page
    navigation_timeout: int = 30000

    def resolved_extension_path(self) -> Path | None:
        """Return the absolute extension directory, or ``None`` if capture is disabled."""
        if not self.extension_path:
            return None
        return Path(self.extension_path).resolve()

    def launch_args(self) -> list[str]:
        """Return the Chromium command line for a session browser."""
        args = list(self.launch_options.get("args", []))
        extension = self.resolved_extension_path()
        if extension is not None:
            args.extend(
                [
                    f"--load-extension={extension}",
                    f"--disable-extensions-except={extension}",
                    f"--whitelisted-extension-id={self.extension_id}",
                ]
            )
        return args


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    browser: BrowserConfig = Field(default_factory=BrowserConfig)

    # Screencast settings
    every_nth_frame: int = Field(default=10, ge=1)  # Used when the client sends none
    screencast_format: Literal["jpeg", "png"] = "jpeg"
    screencast_quality: int = Field(default=35, ge=0, le=100)

    # Capture settings (audio/video recorded by the browser extension)
    capture_audio: bool = True
    capture_video: bool = False
    capture_mime_type: str | None = "audio/webm; codecs=opus"  # None = modality default
    capture_frame_size: int = 20

    model_config = SettingsConfigDict(
        env_prefix="WEBDELEGATE_",
        env_nested_delimiter="__",
    )
