import logging
import threading

import pystray
from PIL import Image, ImageDraw


class TrayController:
    """Tray icon with Show/Quit entries; also delivers decay notifications."""

    def __init__(self, title: str, on_show, on_quit, logger: logging.Logger | None = None):
        self._title = title
        self._on_show = on_show
        self._on_quit = on_quit
        self._logger = logger or logging.getLogger("StatKeeper")

        self._icon: pystray.Icon | None = None
        self._ready = threading.Event()
        self.last_payload: dict | None = None

    @staticmethod
    def _draw_bars() -> Image.Image:
        img = Image.new("RGBA", (64, 64), color=(0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        draw.rounded_rectangle((4, 4, 60, 60), radius=12, fill=(99, 102, 241))
        for i, height in enumerate((12, 22, 32)):
            left = 14 + i * 13
            draw.rectangle((left, 48 - height, left + 8, 48), fill=(245, 245, 245))
        return img

    def ensure_running(self) -> None:
        if self._icon is not None:
            return

        menu = pystray.Menu(
            pystray.MenuItem("Open Stat Keeper", lambda icon, item: self._on_show(), default=True),
            pystray.MenuItem("Quit", lambda icon, item: self._on_quit()),
        )
        self._icon = pystray.Icon("StatKeeper", self._draw_bars(), self._title, menu)

        def setup(icon):
            icon.visible = True
            self._ready.set()

        threading.Thread(target=self._icon.run, kwargs={"setup": setup}, daemon=True).start()

    def notify(self, title: str, body: str, data: dict | None = None) -> None:
        self.ensure_running()
        if not self._ready.is_set():
            self._logger.warning(f"NOTIFY skipped, tray not ready title={title!r} data={data}")
            return
        if not self._icon.HAS_NOTIFICATION:
            raise RuntimeError("tray backend cannot show notifications")
        self.last_payload = data
        self._icon.notify(body, title)
        self._logger.info(f"NOTIFY sent title={title!r} data={data}")

    def stop(self) -> None:
        if self._icon is None:
            return
        try:
            self._icon.stop()
        except Exception:
            self._logger.exception("Tray stop failed")
        self._icon = None
        self._ready.clear()
